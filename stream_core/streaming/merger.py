"""消息片段合并与常用的消息读取工具。

PartMerger 在一次 exchange 内独占地维护助手消息的 part 列表：
相邻的 text 片段直接拼接，其余类型的片段按到达顺序追加，
不会互相合并，也不会和 text 合并，保证 tool-call / tool-result 的配对顺序。
"""

from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from stream_core.domain.models import Message, Part, Role, TextPart, ToolCallPart, ToolResultPart


class PartMerger:
    def __init__(self, parts: Optional[Iterable[Part]] = None):
        self._parts: List[Part] = []
        for part in parts or []:
            self.add(part)

    @property
    def parts(self) -> List[Part]:
        return list(self._parts)

    def add(self, part: Part) -> None:
        last = self._parts[-1] if self._parts else None
        if isinstance(part, TextPart) and isinstance(last, TextPart):
            # 替换而不是原地修改，已经交给观察者的快照不受影响
            self._parts[-1] = TextPart(text=last.text + part.text)
        elif isinstance(part, TextPart):
            self._parts.append(TextPart(text=part.text))
        else:
            self._parts.append(part)

    def reset(self) -> None:
        self._parts = []


def merge_parts(parts: Iterable[Part]) -> List[Part]:
    return PartMerger(parts).parts


def create_message(
    parts: Optional[Iterable[Part]] = None,
    role: Role = "assistant",
    metadata: Optional[Dict[str, Any]] = None,
) -> Message:
    return Message(id=f"msg-{uuid4().hex}", role=role, parts=merge_parts(parts or []), metadata=metadata)


def extract_text(message: Message) -> str:
    return "".join(p.text for p in message.parts if isinstance(p, TextPart))


def get_tool_calls(message: Message) -> List[ToolCallPart]:
    return [p for p in message.parts if isinstance(p, ToolCallPart)]


def get_tool_results(message: Message) -> List[ToolResultPart]:
    return [p for p in message.parts if isinstance(p, ToolResultPart)]
