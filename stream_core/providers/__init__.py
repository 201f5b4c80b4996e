"""Provider 集成层。

该包下的模块负责：
- 定义字节源抽象接口 (base)。
- 维护 Provider 默认配置与端点解析 (registry)。
- 提供基于 httpx 的传输实现 (http_client)。
"""

from typing import Optional

from stream_core.config.settings import settings
from stream_core.providers.base import ByteSource
from stream_core.providers.http_client import HttpStreamClient
from stream_core.providers.registry import ProviderConfig, provider_from_settings


def create_source(transport=None) -> ByteSource:
    """创建默认字节源，transport 仅在测试或自定义网络栈时传入。"""

    return HttpStreamClient(settings, transport=transport)


def default_provider(cfg: Optional[object] = None) -> ProviderConfig:
    return provider_from_settings(cfg or settings)
