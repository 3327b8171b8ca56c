"""
Request ID 中间件

透传或生成 X-Request-ID，并把 request_id / client_ip / caller_id 绑定到
structlog contextvars，使命令、门面和支付适配器的日志都能按请求关联。
"""
import uuid
from contextvars import ContextVar
from typing import Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
client_ip_var: ContextVar[Optional[str]] = ContextVar("client_ip", default=None)
caller_id_var: ContextVar[Optional[str]] = ContextVar("caller_id", default=None)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


class RequestIDMiddleware(BaseHTTPMiddleware):
    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME) or uuid.uuid4().hex
        client_ip = _client_ip(request)
        caller_id = request.headers.get("X-User-ID")

        request.state.request_id = request_id
        request.state.client_ip = client_ip
        request_id_var.set(request_id)
        client_ip_var.set(client_ip)
        caller_id_var.set(caller_id)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            caller_id=caller_id,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response


def get_request_id() -> Optional[str]:
    """当前请求的 request_id，不在请求上下文中时为 None"""
    return request_id_var.get()


def get_client_ip() -> Optional[str]:
    return client_ip_var.get()


def get_caller_id() -> Optional[str]:
    """上游网关注入的调用方ID（未校验，仅用于日志关联）"""
    return caller_id_var.get()
