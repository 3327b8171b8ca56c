"""
CommandResult → HTTP 映射

success → 200 (201 for creations); requires_action → 200;
validation/declined → 400; not_found → 404; conflict → 409; system → 500.
"""
from typing import Any, Callable, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette import status as http_status

from application.commands import CommandResult, ErrorKind
from core.response import error_response, success_response
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


_FAILURE = {
    ErrorKind.VALIDATION: (http_status.HTTP_400_BAD_REQUEST, PaymentCode.VALIDATION_ERROR, "ValidationError"),
    ErrorKind.DECLINED: (http_status.HTTP_400_BAD_REQUEST, PaymentCode.DECLINED, "PaymentDeclined"),
    ErrorKind.NOT_FOUND: (http_status.HTTP_404_NOT_FOUND, BusinessCode.NOT_FOUND, "NotFound"),
    ErrorKind.CONFLICT: (http_status.HTTP_409_CONFLICT, BusinessCode.BUSINESS_ERROR, "Conflict"),
    ErrorKind.SYSTEM: (http_status.HTTP_500_INTERNAL_SERVER_ERROR, BusinessCode.SYSTEM_ERROR, "SystemError"),
}


def status_for(result: CommandResult, *, created: bool = False) -> int:
    if result.success:
        return http_status.HTTP_201_CREATED if created else http_status.HTTP_200_OK
    if result.requires_action:
        return http_status.HTTP_200_OK
    return _FAILURE[result.error_kind or ErrorKind.SYSTEM][0]


def command_response(
    result: CommandResult,
    *,
    created: bool = False,
    render: Optional[Callable[[Any], Any]] = None,
    request_id: Optional[str] = None,
) -> JSONResponse:
    data = render(result.data) if render and result.data is not None else result.data
    data = jsonable_encoder(data)
    meta = {"command_id": result.command_id, "requires_action": result.requires_action}
    status_code = status_for(result, created=created)

    if result.success or result.requires_action:
        message = "Action required" if result.requires_action else "Success"
        body = success_response(data={**meta, "result": data}, message=message)
    else:
        _, code, error_type = _FAILURE[result.error_kind or ErrorKind.SYSTEM]
        body = error_response(
            code=code,
            message=result.error or "Request failed",
            error_type=error_type,
            kind=(result.error_kind or ErrorKind.SYSTEM).value,
            request_id=request_id,
            data={**meta, "result": data},
        )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
