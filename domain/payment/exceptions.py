"""
Payment business failures shared by the processing pipeline and gateway adapters.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PaymentValidationError(BusinessException):
    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(
            code=PaymentCode.VALIDATION_ERROR,
            message=message,
            error_type="PaymentValidationError",
            field=field,
        )


class PaymentDeclinedError(BusinessException):
    """Gateway refused the charge (card declined, insufficient funds, ...)."""

    def __init__(self, message: str, *, provider: str, decline_code: Optional[str] = None):
        super().__init__(
            code=PaymentCode.DECLINED,
            message=message,
            error_type="PaymentDeclined",
            details={"provider": provider, "decline_code": decline_code},
        )
