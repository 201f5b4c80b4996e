"""单轮补全模式会话：把流中的 text 片段累加为一段补全文本。"""

from typing import Any, Optional, Tuple

from stream_core.domain.exceptions import NothingToReloadError
from stream_core.domain.models import Message, Part, TextPart
from stream_core.sessions.base_session import StreamSession
from stream_core.streaming.merger import extract_text


class CompletionSession(StreamSession):
    mode = "completion"

    def __init__(
        self,
        *,
        initial_completion: str = "",
        initial_input: str = "",
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._completion = initial_completion
        self.input = initial_input
        self._last_prompt: Optional[str] = None

    @property
    def completion(self) -> str:
        return self._completion

    @property
    def last_prompt(self) -> Optional[str]:
        return self._last_prompt

    async def complete(self, prompt: str) -> Optional[str]:
        exchange = self._begin()
        self._last_prompt = prompt
        return await self._execute(exchange, {"prompt": prompt})

    async def reload(self) -> Optional[str]:
        self._ensure_idle()
        if not self._last_prompt:
            raise NothingToReloadError("No prompt to reload")
        return await self.complete(self._last_prompt)

    async def _submit_text(self, text: str) -> Optional[str]:
        return await self.complete(text)

    def _reset_live(self) -> None:
        self._completion = ""

    def _on_part(self, part: Part) -> None:
        if isinstance(part, TextPart):
            self._completion += part.text

    def _on_end(self, message: Message) -> None:
        # message-end 携带了完整文本时以后端为准
        text = extract_text(message)
        if text:
            self._completion = text

    def _finalize(self) -> Tuple[str, bool]:
        return self._completion, True
