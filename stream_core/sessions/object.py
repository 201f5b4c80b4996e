"""结构化对象生成模式会话。

流式过程中累积原始 JSON 文本，每收到一个 text 片段就尝试修复并解析出部分值；
修复失败（返回 {}）时保留上一次的部分值。流结束后严格解析并按 schema 校验：

- 校验通过：object / result 为校验后的值，触发 on_finish；
- 校验失败：不进入 error 状态，错误记录在 validation_error 上并触发 on_validation_error，
  object 保持最后一次的部分值。

initial_value 只在第一次提交之前可见；每次提交与重试开始时 object 都被清空为 None。
"""

import logging
from typing import Any, Callable, Optional, Tuple

from stream_core.domain.exceptions import NothingToReloadError, ValidationError
from stream_core.domain.models import Message, Part, TextPart
from stream_core.sessions.base_session import StreamSession, _invoke
from stream_core.streaming.merger import extract_text
from stream_core.streaming.partial_json import parse_final_object, parse_partial_json, schema_to_json


class ObjectSession(StreamSession):
    mode = "object"

    def __init__(
        self,
        *,
        schema: Any,
        initial_value: Any = None,
        on_validation_error: Optional[Callable[..., Any]] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.schema = schema
        self.on_validation_error = on_validation_error
        self._object: Any = initial_value
        self._result: Any = None
        self._validation_error: Optional[ValidationError] = None
        self._raw = ""
        self._last_prompt: Optional[str] = None

    @property
    def object(self) -> Any:
        """最新的部分值；校验通过后为最终值。"""
        return self._object

    @property
    def result(self) -> Any:
        return self._result

    @property
    def validation_error(self) -> Optional[ValidationError]:
        return self._validation_error

    @property
    def raw_text(self) -> str:
        return self._raw

    async def submit(self, prompt: str) -> Any:
        exchange = self._begin()
        self._last_prompt = prompt
        self._validation_error = None
        self._result = None
        body = {"prompt": prompt, "schema": schema_to_json(self.schema)}
        value = await self._execute(exchange, body)
        if self._validation_error is not None:
            await _invoke(self.on_validation_error, self._validation_error)
        return value

    async def reload(self) -> Any:
        self._ensure_idle()
        if not self._last_prompt:
            raise NothingToReloadError("No prompt to reload")
        return await self.submit(self._last_prompt)

    async def _submit_text(self, text: str) -> Any:
        return await self.submit(text)

    def _reset_live(self) -> None:
        # 新的提交或重试都从空值开始，不沿用上一次的对象
        self._raw = ""
        self._object = None

    def _on_part(self, part: Part) -> None:
        if not isinstance(part, TextPart):
            return
        self._raw += part.text
        partial = parse_partial_json(self._raw)
        if partial != {}:
            self._object = partial

    def _on_end(self, message: Message) -> None:
        text = extract_text(message)
        if text:
            self._raw = text

    def _finalize(self) -> Tuple[Any, bool]:
        try:
            value = parse_final_object(self._raw, self.schema)
        except ValidationError as e:
            self._validation_error = e
            self._log(
                logging.WARNING,
                "Generated object failed validation",
                {"mode": self.mode, "session_id": self.id},
                issues=len(e.issues),
            )
            return None, False
        self._object = value
        self._result = value
        return value, True
