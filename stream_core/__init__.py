"""Stream Core 顶层包。

该包提供生成式后端增量响应的客户端消费引擎：
字节流解析、事件解释、片段合并、增量 JSON 修复，
以及对话 / 补全 / 对象生成三种会话模式共享的状态机。
"""

from stream_core.domain.exceptions import (
    BackendError,
    BusinessError,
    CancellationError,
    ConcurrencyError,
    ProtocolError,
    TransportError,
    ValidationError,
)
from stream_core.domain.models import Message, RetryPolicy
from stream_core.providers.registry import ProviderConfig
from stream_core.sessions import ChatSession, CompletionSession, ObjectSession
from stream_core.streaming import parse_partial_json

__all__ = [
    "BackendError",
    "BusinessError",
    "CancellationError",
    "ChatSession",
    "CompletionSession",
    "ConcurrencyError",
    "Message",
    "ObjectSession",
    "ProtocolError",
    "ProviderConfig",
    "RetryPolicy",
    "TransportError",
    "ValidationError",
    "parse_partial_json",
]
