"""单个帧 payload → StreamEvent 的解释器。

后端实现五花八门，这里尽量宽容：

1. 信封事件（message-start / message-part / message-end / error / done）按类型映射。
2. 直接下发的 part（{"type": "tool-call", ...}）视为 message-part。
3. 没有可识别 type、但带 text 字段的对象视为文本片段。
4. JSON 解析失败时，原始字符串本身作为文本片段，而不是丢弃。

空字符串片段一律丢弃；每个 payload 至多产生一个事件。
"""

import json
from typing import Any, Optional

from stream_core.domain.models import (
    PART_TYPES,
    DoneEvent,
    ErrorEvent,
    Message,
    MessageEndEvent,
    MessagePartEvent,
    MessageStartEvent,
    StreamEvent,
    TextPart,
    part_from_dict,
)


def text_event(fragment: str) -> Optional[MessagePartEvent]:
    if not fragment:
        return None
    return MessagePartEvent(part=TextPart(text=fragment))


def interpret_payload(payload: str) -> Optional[StreamEvent]:
    """把一个 JSON payload 字符串解释为 StreamEvent，无内容时返回 None。"""

    if not payload:
        return None
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return text_event(payload)

    if isinstance(data, str):
        return text_event(data)
    if not isinstance(data, dict):
        return text_event(payload)
    return _interpret_object(data)


def _interpret_object(data: dict) -> Optional[StreamEvent]:
    kind = data.get("type")
    if kind == "message-start":
        message = data.get("message")
        return MessageStartEvent(message=message if isinstance(message, dict) else {})
    if kind == "message-part":
        raw_part = data.get("part")
        if not isinstance(raw_part, dict):
            return None
        return _part_event(raw_part)
    if kind == "message-end":
        message = data.get("message")
        return MessageEndEvent(message=Message.from_dict(message if isinstance(message, dict) else {}))
    if kind == "error":
        return ErrorEvent(error=_error_message(data.get("error")))
    if kind == "done":
        return DoneEvent()
    if kind in PART_TYPES:
        return _part_event(data)

    text = data.get("text")
    if isinstance(text, str):
        return text_event(text)
    return None


def _part_event(raw_part: dict) -> Optional[MessagePartEvent]:
    part = part_from_dict(raw_part)
    if part is None:
        text = raw_part.get("text")
        return text_event(text) if isinstance(text, str) else None
    if isinstance(part, TextPart) and not part.text:
        return None
    return MessagePartEvent(part=part)


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or "Unknown stream error")
    if error:
        return str(error)
    return "Unknown stream error"
