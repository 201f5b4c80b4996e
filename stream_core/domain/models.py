"""统一的消息、事件与请求数据模型。

本模块定义了流式消费引擎在各层之间共享的标准数据结构：

- Part: 消息内容片段（text / tool-call / tool-result / file / reasoning / source-url）。
- Message: 一条会话消息，由有序的 Part 列表组成。
- StreamEvent: 线协议层的事件词汇（message-start / message-part / message-end / error / done），
  与具体 UI 形态无关。
- ExchangeRequest: 一次 exchange 的完整请求描述（端点、头、body、取消句柄、节流与重试策略）。

所有 Part 都提供 to_dict()，输出与后端约定的 JSON 结构（type 判别字段、camelCase 字段名）。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, ClassVar, Dict, List, Literal, Optional, Union
from uuid import uuid4

from stream_core.domain.exceptions import CancellationError


# 消息角色（与后端 role 字段一一对应）
Role = Literal["user", "assistant", "system", "tool"]

# 会话状态
SessionStatus = Literal["ready", "submitted", "streaming", "error"]

# 线协议分帧方式：text 为纯文本分块，data 为 SSE / NDJSON 行
StreamProtocol = Literal["text", "data"]

# 请求凭据模式，沿用 fetch 的三种取值
CredentialsMode = Literal["omit", "same-origin", "include"]

ToolResultState = Literal["input-available", "output-available", "output-error"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TextPart:
    text: str

    type: ClassVar[str] = "text"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass
class ToolCallPart:
    """模型发起的一次工具调用。"""

    id: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)

    type: ClassVar[str] = "tool-call"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "id": self.id, "name": self.name, "args": self.args}


@dataclass
class ToolResultPart:
    """工具执行结果，id 与对应的 ToolCallPart 关联。"""

    id: str
    name: str
    result: Any = None
    state: Optional[ToolResultState] = None

    type: ClassVar[str] = "tool-result"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "result": self.result,
        }
        if self.state:
            payload["state"] = self.state
        return payload


@dataclass
class FilePart:
    url: str
    mime_type: Optional[str] = None
    name: Optional[str] = None

    type: ClassVar[str] = "file"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type, "url": self.url}
        if self.mime_type:
            payload["mimeType"] = self.mime_type
        if self.name:
            payload["name"] = self.name
        return payload


@dataclass
class ReasoningPart:
    text: str

    type: ClassVar[str] = "reasoning"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass
class SourceUrlPart:
    url: str
    title: Optional[str] = None

    type: ClassVar[str] = "source-url"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type, "url": self.url}
        if self.title:
            payload["title"] = self.title
        return payload


Part = Union[TextPart, ToolCallPart, ToolResultPart, FilePart, ReasoningPart, SourceUrlPart]


def part_from_dict(data: Dict[str, Any]) -> Optional[Part]:
    """把一个线协议 part 字典转换为 Part，无法识别的类型返回 None。

    同时兼容 toolCallId / toolName 这类旧字段名；tool-call 缺少 id 时自动生成，
    保证后续 tool-result 可以按顺序配对。
    """

    kind = data.get("type")
    if kind == "text":
        return TextPart(text=str(data.get("text") or ""))
    if kind == "tool-call":
        return ToolCallPart(
            id=data.get("id") or data.get("toolCallId") or f"call-{uuid4().hex}",
            name=data.get("name") or data.get("toolName") or "",
            args=data.get("args") or {},
        )
    if kind == "tool-result":
        return ToolResultPart(
            id=data.get("id") or data.get("toolCallId") or "",
            name=data.get("name") or data.get("toolName") or "",
            result=data.get("result"),
            state=data.get("state"),
        )
    if kind == "file":
        return FilePart(
            url=data.get("url") or "",
            mime_type=data.get("mimeType"),
            name=data.get("name"),
        )
    if kind == "reasoning":
        return ReasoningPart(text=str(data.get("text") or ""))
    if kind == "source-url":
        return SourceUrlPart(url=data.get("url") or "", title=data.get("title"))
    return None


PART_TYPES = frozenset({"text", "tool-call", "tool-result", "file", "reasoning", "source-url"})


@dataclass
class Message:
    """一条会话消息。

    - parts: 按到达顺序排列的内容片段，相邻 text 片段由 PartMerger 合并。
    - metadata: 附加元数据（后端下发的 metadata、时间戳等），不参与渲染。
    """

    id: str
    role: Role
    parts: List[Part] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "parts": [p.to_dict() for p in self.parts],
            "createdAt": self.created_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        parts: List[Part] = []
        for raw in data.get("parts") or []:
            if isinstance(raw, dict):
                part = part_from_dict(raw)
                if part is not None:
                    parts.append(part)
        created_raw = data.get("createdAt")
        created_at = _utcnow()
        if isinstance(created_raw, str):
            try:
                created_at = datetime.fromisoformat(created_raw.replace("Z", "+00:00"))
            except ValueError:
                pass
        return cls(
            id=data.get("id") or f"msg-{uuid4().hex}",
            role=data.get("role") or "assistant",
            parts=parts,
            created_at=created_at,
            metadata=data.get("metadata"),
        )


# ---- 流事件 ----


@dataclass
class MessageStartEvent:
    """后端开始输出一条消息，message 为部分字段（role、metadata 等）。"""

    message: Dict[str, Any] = field(default_factory=dict)

    type: ClassVar[str] = "message-start"


@dataclass
class MessagePartEvent:
    part: Part

    type: ClassVar[str] = "message-part"


@dataclass
class MessageEndEvent:
    message: Message

    type: ClassVar[str] = "message-end"


@dataclass
class ErrorEvent:
    error: str

    type: ClassVar[str] = "error"


@dataclass
class DoneEvent:
    type: ClassVar[str] = "done"


StreamEvent = Union[MessageStartEvent, MessagePartEvent, MessageEndEvent, ErrorEvent, DoneEvent]


# ---- 请求 ----


class AbortSignal:
    """协作式取消句柄。

    会话在 stop() 时调用 abort()；Transport Reader 在每个 chunk 之间检查，
    重试控制器看到 CancellationError 时不会重试。
    """

    def __init__(self) -> None:
        self._aborted = False

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self) -> None:
        self._aborted = True

    def raise_if_aborted(self) -> None:
        if self._aborted:
            raise CancellationError()


@dataclass
class RetryPolicy:
    """重试策略：失败后等待 retry_delay 秒重新开始，最多 max_retries 次。"""

    max_retries: int = 3
    retry_delay: float = 1.0


HeadersInput = Union[
    Dict[str, str],
    Callable[[], Union[Dict[str, str], Awaitable[Dict[str, str]]]],
]
BodyInput = Union[
    Dict[str, Any],
    Callable[[], Union[Dict[str, Any], Awaitable[Dict[str, Any]]]],
]


@dataclass
class ExchangeRequest:
    """一次 exchange 的完整请求描述。

    headers / body 既可以是静态字典，也可以是（异步）函数，
    在每次尝试发起请求前即时求值，便于刷新 token 等场景。
    """

    endpoint: str
    body: Optional[BodyInput] = None
    headers: Optional[HeadersInput] = None
    credentials: CredentialsMode = "same-origin"
    signal: AbortSignal = field(default_factory=AbortSignal)
    throttle: Optional[float] = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    protocol: StreamProtocol = "data"
