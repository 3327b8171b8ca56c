"""
Payment DTOs (Pydantic v2) used at application boundaries.

Amount, currency and payment method are validated by the processing
pipeline (application.services.payment_pipeline), not at construction.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from domain.booking.entity import ServiceType

# Common ISO-4217 currencies (extend as needed)
ISO_4217 = {
    "USD", "EUR", "GBP", "CHF", "CAD", "AUD", "JPY", "CNY", "HKD", "SGD",
    "XOF", "XAF", "MAD", "TND", "DZD", "NGN", "GHS", "KES", "ZAR", "HTG",
}


class PaymentData(BaseModel):
    amount: Decimal
    currency: str
    customer_id: str
    payment_method_id: str
    payer_id: Optional[str] = None
    beneficiary_id: Optional[str] = None
    service_type: ServiceType
    service_id: str = "default"
    description: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)
    country: Optional[str] = None
    idempotency_key: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("currency", "country")
    @classmethod
    def _upper(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if isinstance(v, str) else v

    @property
    def effective_payer_id(self) -> str:
        return self.payer_id or self.customer_id

    @property
    def effective_beneficiary_id(self) -> str:
        return self.beneficiary_id or self.customer_id


class PaymentFacadeData(PaymentData):
    provider: Optional[str] = None
    create_invoice: bool = True
    send_notification: bool = True

    def to_payment_data(self) -> PaymentData:
        return PaymentData(**self.model_dump(exclude={"provider", "create_invoice", "send_notification"}))


class NextAction(BaseModel):
    type: str
    url: str = ""


class PaymentResult(BaseModel):
    success: bool
    transaction_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    invoice_id: Optional[str] = None
    requires_action: bool = False
    next_action: Optional[NextAction] = None
    error: Optional[str] = None
    provider: Optional[str] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "PaymentResult":
        if self.success:
            if not self.transaction_id:
                raise ValueError("successful payment requires transaction_id")
            if self.error or self.requires_action:
                raise ValueError("successful payment cannot carry error or requires_action")
        elif self.requires_action:
            if self.next_action is None:
                raise ValueError("requires_action payment needs next_action")
        elif not self.error:
            raise ValueError("failed payment requires error")
        return self

    @classmethod
    def failed(cls, error: str, **kwargs) -> "PaymentResult":
        return cls(success=False, error=error or "Payment failed", **kwargs)


class Charge(BaseModel):
    """Provider-side payment object created before confirmation."""

    id: str
    provider: str
    amount: Decimal
    currency: str
    status: str
    client_secret: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    raw: Optional[dict] = None


class ChargeConfirmation(BaseModel):
    status: str  # succeeded | requires_action | failed | pending
    transaction_id: Optional[str] = None
    next_action: Optional[NextAction] = None
    failure_message: Optional[str] = None


class RefundOutcome(BaseModel):
    refund_id: str
    status: str
    provider: str
    provider_ref: Optional[str] = None


class ProcessorInfo(BaseModel):
    code: str
    name: str
    enabled: bool
    currencies: list[str]
    countries: list[str]
