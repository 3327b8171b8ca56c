"""
请求/响应日志中间件

每个请求记录一条 request_started 和一条完成事件（含耗时与调用方ID）。
支付相关字段在写入日志前脱敏。
"""
import json
import time
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import get_logger, mask_value


logger = get_logger(__name__)

# 完全隐藏
REDACTED_FIELDS = frozenset({
    "password", "token", "secret", "api_key", "access_token", "client_secret",
    "card_number", "cvc", "cvv", "iban",
})
# 保留末四位，便于排查
MASKED_FIELDS = frozenset({"payment_method_id", "customer_email", "requester_email", "provider_email"})


def sanitize(data: Any) -> Any:
    """递归脱敏 JSON 结构"""
    if isinstance(data, dict):
        clean = {}
        for key, value in data.items():
            lowered = str(key).lower()
            if lowered in REDACTED_FIELDS:
                clean[key] = "***"
            elif lowered in MASKED_FIELDS:
                clean[key] = mask_value(value)
            else:
                clean[key] = sanitize(value)
        return clean
    if isinstance(data, list):
        return [sanitize(v) for v in data]
    return data


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    日志记录中间件

    - 健康检查与文档路径不记录
    - 请求体仅在 DEBUG 且开启时记录，可用 X-Log-Body 请求头覆盖
    - 响应按状态码分级：<400 info，4xx warning，5xx error
    """

    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.log_body_by_default: bool = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT
        self.max_body_bytes: int = settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        fields = await self._request_fields(request)
        logger.info("request_started", **fields)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=self._elapsed_ms(started),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
                **fields,
            )
            raise

        duration_ms = self._elapsed_ms(started)
        self._log_response(response, duration_ms, fields)
        response.headers["X-Process-Time"] = f"{duration_ms / 1000:.3f}"
        return response

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)

    async def _request_fields(self, request: Request) -> dict:
        fields: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "caller_id": request.headers.get("X-User-ID"),
        }
        if request.query_params:
            fields["query_params"] = dict(request.query_params)
        if request.method in ("POST", "PUT", "PATCH") and self._should_log_body(request):
            body = await self._json_body(request)
            if body is not None:
                fields["body"] = body
        return fields

    def _should_log_body(self, request: Request) -> bool:
        header = (request.headers.get("X-Log-Body") or "").lower()
        if header in {"true", "1", "yes"}:
            return True
        if header in {"false", "0", "no"}:
            return False
        return bool(self.log_body_by_default and settings.DEBUG)

    async def _json_body(self, request: Request) -> Any:
        if "application/json" not in request.headers.get("content-type", "").lower():
            return None
        raw = await request.body()
        if not raw:
            return None
        snippet = raw[: self.max_body_bytes].decode("utf-8", errors="ignore")
        try:
            return sanitize(json.loads(snippet))
        except ValueError:
            # 截断后的 JSON 无法解析时只记录长度
            return {"truncated": True, "bytes": len(raw)}

    @staticmethod
    def _log_response(response: Response, duration_ms: float, fields: dict) -> None:
        status_code = response.status_code
        if status_code < 400:
            logger.info("request_completed", status_code=status_code, duration_ms=duration_ms, **fields)
        elif status_code < 500:
            logger.warning("request_client_error", status_code=status_code, duration_ms=duration_ms, **fields)
        else:
            logger.error("request_server_error", status_code=status_code, duration_ms=duration_ms, **fields)
