"""字节流分帧。

两种分帧方式：

- text: 每个解码后的 chunk 就是一个不透明的文本片段。
- data: 按行处理。以 ``data:`` 开头的行携带 JSON payload（SSE），
  其余非空行本身就是 payload（NDJSON），两种服务端都能直接对接。

chunk 边界可能落在一行中间，也可能落在多字节 UTF-8 字符中间：
不完整的行留在 _buffer，不完整的字符由增量解码器保留到下一次 feed。
"""

import codecs
from typing import List, Optional

from stream_core.domain.models import StreamProtocol

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class FrameParser:
    """把原始字节增量地切分为协议帧（payload 字符串）。"""

    def __init__(self, protocol: StreamProtocol = "data"):
        if protocol not in ("text", "data"):
            raise ValueError(f"Unknown stream protocol: {protocol!r}")
        self.protocol = protocol
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[str]:
        text = self._decoder.decode(chunk)
        if self.protocol == "text":
            return [text] if text else []
        self._buffer += text
        lines = self._buffer.split("\n")
        # 最后一段可能是半行，留待下一个 chunk 补齐
        self._buffer = lines.pop()
        return [p for p in (self._line_payload(line) for line in lines) if p is not None]

    def flush(self) -> List[str]:
        """流结束时调用，输出解码器和行缓冲中剩余的内容。"""

        text = self._decoder.decode(b"", final=True)
        if self.protocol == "text":
            return [text] if text else []
        rest = self._buffer + text
        self._buffer = ""
        frames: List[str] = []
        for line in rest.split("\n"):
            payload = self._line_payload(line)
            if payload is not None:
                frames.append(payload)
        return frames

    @staticmethod
    def _line_payload(line: str) -> Optional[str]:
        line = line.rstrip("\r")
        if not line.strip():
            return None
        payload = line
        if line.startswith(DATA_PREFIX):
            payload = line[len(DATA_PREFIX):]
            # 只去掉 data: 之后的一个可选空格，其余空白属于文本片段本身
            if payload.startswith(" "):
                payload = payload[1:]
        if payload.strip() == DONE_SENTINEL:
            return None
        return payload
