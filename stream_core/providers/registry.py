"""Provider 级别的默认配置与端点解析。

会话本身只关心“往哪发、带什么头”，具体值按以下优先级决定：

- 端点：调用方显式传入 > Provider 针对该模式的覆盖 > Provider 基础 URL + 默认路径。
- 请求头：Provider 默认头 < 调用方头；Provider 配置了 api_key 且调用方没给 Authorization 时自动补上。
- body：Provider 额外字段 < 调用方 body < 模式字段（messages / prompt / schema / exchangeId）。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional

from stream_core.domain.models import CredentialsMode, RetryPolicy

SessionMode = Literal["chat", "completion", "object"]

DEFAULT_API_URL = "https://inference-ui-api.neureus.workers.dev"

DEFAULT_PATHS: Mapping[str, str] = {
    "chat": "/stream/chat",
    "completion": "/stream/completion",
    "object": "/stream/object",
}


@dataclass
class ProviderConfig:
    """所有会话共享的 Provider 配置。"""

    api_url: str = DEFAULT_API_URL
    api_key: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    body: Dict[str, Any] = field(default_factory=dict)
    credentials: CredentialsMode = "same-origin"
    throttle: Optional[float] = None
    endpoints: Dict[str, str] = field(default_factory=dict)
    retry: RetryPolicy = field(default_factory=RetryPolicy)


def provider_from_settings(cfg=None) -> ProviderConfig:
    """根据全局配置构造默认 ProviderConfig。"""

    if cfg is None:
        from stream_core.config.settings import settings as cfg

    endpoints: Dict[str, str] = {}
    for mode in DEFAULT_PATHS:
        override = getattr(cfg, f"{mode}_endpoint", None)
        if override:
            endpoints[mode] = override
    return ProviderConfig(
        api_url=getattr(cfg, "api_url", None) or DEFAULT_API_URL,
        api_key=getattr(cfg, "api_key", None),
        credentials=getattr(cfg, "credentials", "same-origin"),
        throttle=getattr(cfg, "throttle", None) or None,
        endpoints=endpoints,
        retry=RetryPolicy(
            max_retries=getattr(cfg, "max_retries", 3),
            retry_delay=getattr(cfg, "retry_delay", 1.0),
        ),
    )


def resolve_endpoint(endpoint: Optional[str], provider: ProviderConfig, mode: SessionMode) -> str:
    if endpoint:
        return endpoint
    override = provider.endpoints.get(mode)
    if override:
        return override
    base = (provider.api_url or DEFAULT_API_URL).rstrip("/")
    return f"{base}{DEFAULT_PATHS[mode]}"


def merge_headers(headers: Optional[Mapping[str, str]], provider: ProviderConfig) -> Dict[str, str]:
    merged: Dict[str, str] = {**provider.headers, **(headers or {})}
    has_auth = any(k.lower() == "authorization" for k in merged)
    if provider.api_key and not has_auth:
        merged["Authorization"] = f"Bearer {provider.api_key}"
    return merged
