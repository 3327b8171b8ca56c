"""领域异常：携带业务码，由 core.exceptions 统一映射为 HTTP 响应"""
from __future__ import annotations

from typing import Optional

from shared.codes import BusinessCode


class BusinessException(Exception):
    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field


class DomainValidationException(BusinessException):
    """实体不变量被破坏（金额、币种、必填字段）"""

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(
            BusinessCode.PARAM_VALIDATION_ERROR,
            message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class _NotFound(BusinessException):
    code_value: int = BusinessCode.NOT_FOUND
    entity: str = "Resource"
    id_field: str = "id"

    def __init__(self, entity_id: Optional[str] = None):
        super().__init__(
            self.code_value,
            f"{self.entity} not found",
            error_type=f"{self.entity}NotFound",
            details={self.id_field: entity_id} if entity_id else None,
        )


class BookingNotFoundException(_NotFound):
    code_value = BusinessCode.BOOKING_NOT_FOUND
    entity = "Booking"
    id_field = "booking_id"


class TransactionNotFoundException(_NotFound):
    code_value = BusinessCode.TRANSACTION_NOT_FOUND
    entity = "Transaction"
    id_field = "transaction_id"


class InvalidBookingTransitionException(BusinessException):
    def __init__(self, current: str, target: str):
        super().__init__(
            BusinessCode.BOOKING_INVALID_TRANSITION,
            f"Cannot move booking from {current} to {target}",
            error_type="InvalidBookingTransition",
            details={"current": current, "target": target},
            field="status",
        )
