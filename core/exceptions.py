"""
业务异常到 HTTP 响应的映射

领域/网关异常都继承 BusinessException，这里只负责决定 HTTP 状态码和统一信封。
"""
import traceback
import uuid
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status as http_status

from core.logging_config import get_logger
from core.response import Response, error_response
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)


class UnauthorizedException(BusinessException):
    """缺少调用方身份（X-User-ID）"""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(code=BusinessCode.UNAUTHORIZED, message=message, error_type="Unauthorized")


_BAD_REQUEST = http_status.HTTP_400_BAD_REQUEST

_STATUS_BY_CODE = {
    BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.BOOKING_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.TRANSACTION_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.COMMAND_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.BOOKING_INVALID_TRANSITION: http_status.HTTP_409_CONFLICT,
    BusinessCode.COMMAND_ALREADY_EXECUTED: http_status.HTTP_409_CONFLICT,
    BusinessCode.COMMAND_NOT_UNDOABLE: http_status.HTTP_409_CONFLICT,
    BusinessCode.UNAUTHORIZED: http_status.HTTP_401_UNAUTHORIZED,
    BusinessCode.PERMISSION_ERROR: http_status.HTTP_403_FORBIDDEN,
    BusinessCode.FORBIDDEN: http_status.HTTP_403_FORBIDDEN,
    BusinessCode.SYSTEM_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.DATABASE_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.NETWORK_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    PaymentCode.PROVIDER_ERROR: http_status.HTTP_502_BAD_GATEWAY,
    PaymentCode.PROVIDER_RECOVERABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    PaymentCode.CONFIGURATION_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# HTTPException 反向映射为业务码
_CODE_BY_STATUS = {
    401: BusinessCode.UNAUTHORIZED,
    403: BusinessCode.FORBIDDEN,
    404: BusinessCode.NOT_FOUND,
    503: BusinessCode.SERVICE_UNAVAILABLE,
}


def business_code_to_http_status(code: int) -> int:
    """参数/业务类错误及未登记的码一律 400"""
    return _STATUS_BY_CODE.get(code, _BAD_REQUEST)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or uuid.uuid4().hex


def _json(status_code: int, body: Response, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BusinessException)
    async def on_business_error(request: Request, exc: BusinessException):
        status_code = business_code_to_http_status(exc.code)
        body = error_response(
            code=exc.code,
            message=exc.message,
            error_type=exc.error_type,
            details=exc.details,
            field=exc.field,
            request_id=_request_id(request),
        )
        if status_code >= 500:
            logger.error("business_exception", code=exc.code, error_type=exc.error_type, error=exc.message)
        headers = {"WWW-Authenticate": "X-User-ID"} if status_code == http_status.HTTP_401_UNAUTHORIZED else None
        return _json(status_code, body, headers)

    @app.exception_handler(RequestValidationError)
    async def on_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        # loc[0] 是 body/query/path
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
        body = error_response(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=f"Validation failed: {first.get('msg', 'invalid request')}",
            error_type="ValidationError",
            details={"errors": [{k: v for k, v in e.items() if k not in ("ctx", "input")} for e in errors]},
            field=field,
            request_id=_request_id(request),
            kind="validation",
        )
        return _json(_BAD_REQUEST, body)

    @app.exception_handler(HTTPException)
    async def on_http_error(request: Request, exc: HTTPException):
        body = error_response(
            code=_CODE_BY_STATUS.get(exc.status_code, BusinessCode.SYSTEM_ERROR),
            message=str(exc.detail),
            error_type="HTTPError",
            details={"status_code": exc.status_code},
            request_id=_request_id(request),
        )
        return _json(exc.status_code, body, getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception):
        request_id = _request_id(request)
        logger.error("unhandled_exception", request_id=request_id, error=str(exc), exc_info=True)
        details = {"exception": str(exc), "traceback": traceback.format_exc()} if app.debug else None
        body = error_response(
            code=BusinessCode.SYSTEM_ERROR,
            message="Internal server error",
            error_type="SystemError",
            details=details,
            request_id=request_id,
            kind="system",
        )
        return _json(http_status.HTTP_500_INTERNAL_SERVER_ERROR, body)
