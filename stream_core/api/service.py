"""对外 API 服务模块。

提供不需要维护会话状态的简化函数接口：

- stream_parts: 发起一次 exchange（不重试），逐个产出合并前的 part。
- complete_text: 一次性补全，返回完整文本。
"""

from typing import Any, AsyncIterator, Dict, Optional

from stream_core.domain.models import (
    AbortSignal,
    ExchangeRequest,
    MessagePartEvent,
    Part,
    RetryPolicy,
    StreamProtocol,
)
from stream_core.infrastructure.logging.logger import logger
from stream_core.providers import create_source, default_provider
from stream_core.providers.base import ByteSource
from stream_core.providers.registry import ProviderConfig, SessionMode, merge_headers, resolve_endpoint
from stream_core.sessions.completion import CompletionSession
from stream_core.streaming.pipeline import stream_events


async def stream_parts(
    api: Optional[str] = None,
    body: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    mode: SessionMode = "chat",
    protocol: StreamProtocol = "data",
    provider: Optional[ProviderConfig] = None,
    source: Optional[ByteSource] = None,
    signal: Optional[AbortSignal] = None,
) -> AsyncIterator[Part]:
    """对单次 exchange 逐个产出 part。

    Args:
        api: 端点；为空时按 provider 与 mode 解析。
        body: 请求体（原样发送，不附加 exchangeId）。
        headers: 调用方请求头，与 provider 默认头合并。
        signal: 可选的取消句柄。

    Raises:
        domain.exceptions 中的 TransportError / ProtocolError / BackendError。
    """

    provider = provider or default_provider()
    request = ExchangeRequest(
        endpoint=resolve_endpoint(api, provider, mode),
        body=dict(provider.body, **(body or {})),
        headers=merge_headers(headers, provider),
        credentials=provider.credentials,
        signal=signal or AbortSignal(),
        throttle=None,
        retry=RetryPolicy(max_retries=0),
        protocol=protocol,
    )
    try:
        async for event in stream_events(source or create_source(), request):
            if isinstance(event, MessagePartEvent):
                yield event.part
    except Exception as e:
        logger.error(f"Stream failed: {e}", extra={"extra": {
            "endpoint": request.endpoint,
            "error": str(e),
        }})
        raise


async def complete_text(
    prompt: str,
    api: Optional[str] = None,
    source: Optional[ByteSource] = None,
    provider: Optional[ProviderConfig] = None,
    **options: Any,
) -> str:
    """一次性补全，按配置重试，返回完整文本。"""

    session = CompletionSession(
        api=api,
        source=source,
        provider=provider,
        **options,
    )
    async with session:
        result = await session.complete(prompt)
    return result or ""
