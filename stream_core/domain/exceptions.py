"""统一业务异常模型。

所有跨模块抛出的错误都继承自 BusinessError，便于会话层统一捕获、
写入 session.error 并通知 on_error 回调。

- TransportError / ProtocolError / BackendError：会经过重试控制器。
- ValidationError：最终对象未通过 schema 校验，永不重试，走独立通道。
- ConcurrencyError：会话忙时再次提交，立即拒绝且不修改状态。
- CancellationError：显式 stop()，不面向用户。
"""

from typing import Any, Dict, List, Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "HTTP_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 exchange_id、endpoint 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class TransportError(BusinessError):
    """非 2xx 响应或网络层失败（连接失败、读超时等）。"""


class ProtocolError(BusinessError):
    """响应体缺失或格式无法处理。"""


class BackendError(BusinessError):
    """后端在流中主动下发了 {"type": "error"} 事件。"""


class ValidationError(BusinessError):
    """最终对象未通过 schema 校验。

    issues 保留字段级明细（loc/msg/type），与 pydantic 的 errors() 结构一致。
    """

    def __init__(self, message: str, issues: Optional[List[Dict[str, Any]]] = None, **extra):
        super().__init__(code="SCHEMA_VALIDATION", message=message, http_status=422, **extra)
        self.issues = issues or []


class ConcurrencyError(BusinessError):
    """同一会话已有进行中的 exchange。"""

    def __init__(self, message: str = "Session already has an active exchange", **extra):
        super().__init__(code="SESSION_BUSY", message=message, http_status=409, **extra)


class CancellationError(BusinessError):
    """exchange 被 stop()/teardown 取消。"""

    def __init__(self, message: str = "Exchange cancelled", **extra):
        super().__init__(code="CANCELLED", message=message, http_status=499, **extra)


class NothingToReloadError(BusinessError):
    """reload() 时没有可以重新提交的输入。"""

    def __init__(self, message: str = "No prior input to reload", **extra):
        super().__init__(code="NOTHING_TO_RELOAD", message=message, **extra)
