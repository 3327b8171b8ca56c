"""
统一响应信封

所有接口返回 ``{code, message, data, error}``；命令类接口在 data 中附带
command_id / requires_action，失败时 error.kind 给出失败类别。
"""
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, field_serializer

from shared.codes import BusinessCode


T = TypeVar("T")


def _utc_iso(ts: datetime) -> str:
    ts = ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts.astimezone(timezone.utc)
    return ts.isoformat().replace("+00:00", "Z")


class ErrorDetail(BaseModel):
    type: str
    kind: Optional[str] = None  # validation | declined | not_found | conflict | system
    details: Optional[dict] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return _utc_iso(timestamp)


class Response(BaseModel, Generic[T]):
    code: int
    message: str
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None


def success_response(data: Any = None, message: str = "Success", code: int = BusinessCode.SUCCESS) -> Response:
    return Response(code=code, message=message, data=data)


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
    data: Any = None,
    kind: Optional[str] = None,
) -> Response:
    """
    创建错误响应

    Args:
        code: 业务状态码
        message: 面向调用方的错误消息（网关拒付原因原样保留）
        error_type: 错误类型名
        details: 附加上下文
        field: 出错字段
        request_id: 请求ID
        data: 失败时仍需返回的数据（如已创建但支付失败的预约）
        kind: 失败类别
    """
    return Response(
        code=code,
        message=message,
        data=data,
        error=ErrorDetail(
            type=error_type,
            kind=kind,
            details=details,
            field=field,
            request_id=request_id,
        ),
    )
