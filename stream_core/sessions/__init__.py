"""会话层：三种消费模式共享的状态机与具体实现。"""

from stream_core.sessions.base_session import StreamSession
from stream_core.sessions.chat import ChatSession
from stream_core.sessions.completion import CompletionSession
from stream_core.sessions.object import ObjectSession

__all__ = ["StreamSession", "ChatSession", "CompletionSession", "ObjectSession"]
