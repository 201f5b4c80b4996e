"""Stream Source 抽象接口。

会话层不直接依赖 httpx，而是依赖此协议：

- 默认实现是 HttpStreamClient（一次 HTTP POST，逐块产出响应字节）。
- 测试或嵌入式场景可以提供任意实现，例如从内存回放录制好的字节流。

这样可以在不改会话代码的前提下替换传输层。
"""

import inspect
from typing import Any, AsyncIterator, Protocol

from stream_core.domain.models import ExchangeRequest


class ByteSource(Protocol):
    """流式字节源协议。

    实现者需要提供：
    - name: 名称，用于日志。
    - stream(request): 发起一次请求并逐块产出原始字节；
      必须在 chunk 之间检查 request.signal，并把网络错误包装为 TransportError。
    """

    name: str

    def stream(self, request: ExchangeRequest) -> AsyncIterator[bytes]:
        ...


async def resolve_value(value: Any) -> Any:
    """headers / body 可能是值、函数或异步函数，这里统一求值。"""

    if value is None:
        return None
    if callable(value):
        value = value()
    if inspect.isawaitable(value):
        value = await value
    return value
