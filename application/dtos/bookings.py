"""
Booking DTOs (Pydantic v2) used by the booking facade, commands and routes.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from application.dtos.payments import PaymentResult
from domain.booking.entity import Booking, ServiceType


class BookingPayment(BaseModel):
    amount: Decimal
    currency: str
    payment_method_id: str
    provider: Optional[str] = None
    country: Optional[str] = None
    create_invoice: bool = True


class BookingFacadeData(BaseModel):
    requester_id: str
    provider_id: str
    service_id: str
    service_type: ServiceType
    appointment_date: datetime
    timeslot: Optional[str] = None
    consultation_mode: Optional[Literal["IN_PERSON", "TELEMEDICINE", "HYBRID"]] = None
    recipient: Optional[dict[str, Any]] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    payment: Optional[BookingPayment] = None

    model_config = ConfigDict(frozen=True)


class BookingView(BaseModel):
    id: str
    requester_id: str
    provider_id: str
    service_id: str
    service_type: ServiceType
    appointment_date: datetime
    timeslot: Optional[str] = None
    consultation_mode: Optional[str] = None
    status: str
    payment_provider: Optional[str] = None
    payment_intent_id: Optional[str] = None
    transaction_id: Optional[str] = None
    cancellation_reason: Optional[str] = None

    @classmethod
    def from_entity(cls, booking: Booking) -> "BookingView":
        return cls(
            id=booking.id,
            requester_id=booking.requester_id,
            provider_id=booking.provider_id,
            service_id=booking.service_id,
            service_type=booking.service_type,
            appointment_date=booking.appointment_date,
            timeslot=booking.timeslot,
            consultation_mode=booking.consultation_mode,
            status=booking.status.value,
            payment_provider=booking.payment_provider,
            payment_intent_id=booking.payment_intent_id,
            transaction_id=booking.transaction_id,
            cancellation_reason=booking.cancellation_reason,
        )


class BookingFacadeResult(BaseModel):
    success: bool
    booking: Optional[BookingView] = None
    payment_result: Optional[PaymentResult] = None
    error: Optional[str] = None
    failure_code: Optional[int] = None

    @property
    def requires_action(self) -> bool:
        return bool(self.payment_result and self.payment_result.requires_action)


class BookingChange(BaseModel):
    """A status change together with the status it replaced (used by undo)."""

    booking: BookingView
    previous_status: str
