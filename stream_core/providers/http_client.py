"""HTTP 传输层（Transport Reader）。

本模块负责：

1. 即时求值 ExchangeRequest 中的 headers / body。
2. 发起唯一一次 POST 请求，按凭据模式处理认证头。
3. 非 2xx 响应包装为 TransportError，网络错误同样包装为 TransportError，本层不做重试。
4. 逐块产出响应字节，每块之间检查取消句柄。

每次 exchange 使用独立的 httpx.AsyncClient，exchange 结束（或被取消）即释放连接。
"""

import logging
from typing import AsyncIterator, Dict, Optional

import httpx

from stream_core.config.settings import settings
from stream_core.domain.exceptions import ProtocolError, TransportError
from stream_core.domain.models import CredentialsMode, ExchangeRequest
from stream_core.infrastructure.logging.logger import logger
from stream_core.providers.base import resolve_value

_CREDENTIAL_HEADERS = {"authorization", "cookie"}
_NO_BODY_STATUSES = {204, 205, 304}


class HttpStreamClient:
    """基于 httpx 的流式字节源。

    - transport: 可选的 httpx 传输层，测试中传入 httpx.MockTransport。
    """

    name = "http"

    def __init__(self, cfg=settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = cfg
        self._transport = transport

    async def stream(self, request: ExchangeRequest) -> AsyncIterator[bytes]:
        request.signal.raise_if_aborted()
        headers = await resolve_value(request.headers) or {}
        body = await resolve_value(request.body)
        merged = apply_credentials({"Content-Type": "application/json", **headers}, request.credentials)
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout,
                trust_env=False,
                transport=self._transport,
            ) as client:
                async with client.stream("POST", request.endpoint, json=body, headers=merged) as resp:
                    if resp.status_code in _NO_BODY_STATUSES:
                        raise ProtocolError(
                            code="EMPTY_BODY",
                            message="Response body is null",
                            http_status=resp.status_code,
                        )
                    if not resp.is_success:
                        await resp.aread()
                        raise TransportError(
                            code="HTTP_ERROR",
                            message=f"HTTP {resp.status_code}: {resp.text or resp.reason_phrase}",
                            http_status=resp.status_code,
                            endpoint=request.endpoint,
                        )
                    logger.log(
                        logging.DEBUG,
                        "Stream opened",
                        extra={"extra": {"endpoint": request.endpoint, "status": resp.status_code}},
                    )
                    async for chunk in resp.aiter_bytes():
                        request.signal.raise_if_aborted()
                        if chunk:
                            yield chunk
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时、读中断等
            raise TransportError(code="NETWORK_ERROR", message=str(e) or type(e).__name__, http_status=503)


def apply_credentials(headers: Dict[str, str], credentials: CredentialsMode) -> Dict[str, str]:
    """credentials="omit" 时去掉认证相关的头，其余模式原样透传。"""

    if credentials != "omit":
        return headers
    return {k: v for k, v in headers.items() if k.lower() not in _CREDENTIAL_HEADERS}
