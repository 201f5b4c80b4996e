"""对象生成模式下的增量 JSON 修复与最终校验。

流式过程中拿到的是不完整的 JSON 文本，例如 ``{"a":1,"b":[1,2,``。
parse_partial_json 尽力补全为语法合法的 JSON：

1. 先直接解析；
2. 失败时：补上未闭合的字符串引号，去掉收尾处多余的逗号，
   按嵌套顺序补齐缺失的 ``}`` / ``]``，再解析一次；
3. 仍然失败则返回 {}。调用方应把 {} 理解为“暂时还没有部分值”，而不是错误。

修复是有损的、非唯一的：同一段截断文本可能有多种合法补全，这里只保证给出其中一种。

message-end 之后的最终文本走 parse_final_object：严格解析（不修复）并通过 schema 校验，
失败时抛出带字段级明细的 ValidationError。
"""

import json
import re
from typing import Any, Dict, List

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from stream_core.domain.exceptions import ValidationError

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_CLOSERS = {"{": "}", "[": "]"}


def parse_partial_json(text: str) -> Any:
    if not text or not text.strip():
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(repair_json(text))
    except json.JSONDecodeError:
        return {}


def repair_json(text: str) -> str:
    """补全一段被截断的 JSON 文本，不保证结果一定可解析。"""

    stack: List[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()

    fixed = text
    if in_string:
        if escaped:
            fixed = fixed[:-1]
        fixed += '"'
    fixed = _TRAILING_COMMA.sub(r"\1", fixed).rstrip()
    if fixed.endswith(","):
        fixed = fixed[:-1]
    elif fixed.endswith(":"):
        fixed += " null"
    return fixed + "".join(reversed(stack))


def schema_adapter(schema: Any) -> TypeAdapter:
    """schema 可以是 pydantic 模型、dataclass、TypedDict 等任意类型，或现成的 TypeAdapter。"""

    if isinstance(schema, TypeAdapter):
        return schema
    return TypeAdapter(schema)


def schema_to_json(schema: Any) -> Dict[str, Any]:
    return schema_adapter(schema).json_schema()


def parse_final_object(text: str, schema: Any) -> Any:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(
            "Generated object is not valid JSON",
            issues=[{"type": "json_invalid", "loc": [], "msg": str(e)}],
        )
    try:
        return schema_adapter(schema).validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Generated object failed schema validation ({e.error_count()} issues)",
            issues=[dict(err) for err in e.errors(include_url=False)],
        )
