"""对话模式会话。

维护完整的消息历史；每次 append 追加一条用户消息，并把流式返回的
助手消息（由 PartMerger 维护 part 列表）实时放在历史末尾。
"""

from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple, Union

from stream_core.domain.exceptions import NothingToReloadError
from stream_core.domain.models import Message, Part, Role, TextPart
from stream_core.sessions.base_session import StreamSession
from stream_core.streaming.merger import PartMerger, create_message


class ChatSession(StreamSession):
    """对话会话。

    - initial_messages: 初始历史。
    - max_messages: 只把最近 N 条消息发给后端（本地历史不裁剪）。
    """

    mode = "chat"

    def __init__(
        self,
        *,
        initial_messages: Optional[Iterable[Message]] = None,
        max_messages: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._messages: List[Message] = list(initial_messages or [])
        self.max_messages = max_messages
        self._assistant: Optional[Message] = None
        self._merger = PartMerger()

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    async def append(self, message: Union[Message, str], role: Role = "user") -> Optional[Message]:
        """追加一条消息并流式获取助手回复，返回最终的助手消息（被 stop 时为 None）。"""

        exchange = self._begin()
        if isinstance(message, str):
            message = create_message(
                [TextPart(text=message)],
                role=role,
                metadata={"timestamp": datetime.now(timezone.utc).isoformat()},
            )
        self._messages.append(message)
        return await self._send(exchange)

    async def reload(self) -> Optional[Message]:
        """截断到最后一条用户消息并重新提交它。"""

        self._ensure_idle()
        last_user = None
        for idx in range(len(self._messages) - 1, -1, -1):
            if self._messages[idx].role == "user":
                last_user = idx
                break
        if last_user is None:
            raise NothingToReloadError("No user message found to reload from")
        exchange = self._begin()
        self._messages = self._messages[: last_user + 1]
        return await self._send(exchange)

    async def _submit_text(self, text: str) -> Optional[Message]:
        return await self.append(text)

    async def _send(self, exchange) -> Optional[Message]:
        history = self._messages
        if self.max_messages and len(history) > self.max_messages:
            history = history[-self.max_messages:]
        body = {"messages": [m.to_dict() for m in history]}
        return await self._execute(exchange, body)

    # ---- 钩子 ----

    def _reset_live(self) -> None:
        if self._assistant is not None and self._messages and self._messages[-1] is self._assistant:
            self._messages.pop()
        self._assistant = None
        self._merger = PartMerger()

    def _on_part(self, part: Part) -> None:
        self._merger.add(part)
        self._sync_assistant()

    def _on_end(self, message: Message) -> None:
        if message.parts and not self._merger.parts:
            for part in message.parts:
                self._merger.add(part)
        self._sync_assistant()
        if message.metadata:
            self._assistant.metadata = {**(self._assistant.metadata or {}), **message.metadata}

    def _finalize(self) -> Tuple[Optional[Message], bool]:
        if self._assistant is None:
            # 后端没有输出任何内容，也视为一次完整回复
            self._sync_assistant()
        return self._assistant, True

    def _sync_assistant(self) -> None:
        if self._assistant is None:
            self._assistant = create_message([], role="assistant", metadata=dict(self._data or {}) or None)
            self._messages.append(self._assistant)
        self._assistant.parts = self._merger.parts
