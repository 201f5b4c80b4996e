"""流式消费管线。

- frames: 字节流 → 帧（text / data 两种协议）。
- interpreter: 帧 → StreamEvent。
- merger: part 合并与消息读取工具。
- partial_json: 对象模式的增量 JSON 修复与最终校验。
- throttle / retry: 节流与重试控制。
- pipeline: 把以上环节串成一个异步事件生成器。
"""

from stream_core.streaming.merger import (
    PartMerger,
    create_message,
    extract_text,
    get_tool_calls,
    get_tool_results,
    merge_parts,
)
from stream_core.streaming.partial_json import parse_partial_json

__all__ = [
    "PartMerger",
    "create_message",
    "extract_text",
    "get_tool_calls",
    "get_tool_results",
    "merge_parts",
    "parse_partial_json",
]
