"""
预约领域实体 - Booking 聚合根
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException, InvalidBookingTransitionException


class ServiceType(str, Enum):
    HEALTH = "HEALTH"
    BTP = "BTP"
    EDUCATION = "EDUCATION"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"
    FAILED = "FAILED"


# Allowed status transitions; terminal statuses map to an empty set.
_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.FAILED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.IN_PROGRESS,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    },
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED, BookingStatus.CONFIRMED},
    BookingStatus.FAILED: {BookingStatus.PENDING, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.NO_SHOW: set(),
}


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Booking:
    """
    预约聚合根 - 管理服务预约生命周期

    业务规则：
    1. requester/provider/service 必填
    2. 状态转换必须遵循状态机（CANCELLED/COMPLETED/NO_SHOW 为终态）
    3. 支付成功后记录支付引用，便于撤销时退款
    """

    id: Optional[str]
    requester_id: str
    provider_id: str
    service_id: str
    service_type: ServiceType
    appointment_date: datetime
    status: BookingStatus = BookingStatus.PENDING
    timeslot: Optional[str] = None
    consultation_mode: Optional[str] = None
    recipient: Optional[dict] = None

    # Payment references (set once a charge succeeded or is pending action)
    payment_provider: Optional[str] = None
    payment_intent_id: Optional[str] = None
    transaction_id: Optional[str] = None

    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        for name in ("requester_id", "provider_id", "service_id"):
            if not (getattr(self, name) or "").strip():
                raise DomainValidationException(f"{name} is required", field=name)
        self.service_type = ServiceType(self.service_type)
        self.status = BookingStatus(self.status)
        self.appointment_date = _ensure_utc(self.appointment_date)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.cancelled_at = _ensure_utc(self.cancelled_at)
        if self.metadata is None:
            self.metadata = {}

    @classmethod
    def open(cls, **kwargs) -> "Booking":
        """Create a new PENDING booking with a fresh id."""
        now = datetime.now(timezone.utc)
        kwargs.setdefault("id", new_id())
        kwargs.setdefault("status", BookingStatus.PENDING)
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)
        return cls(**kwargs)

    def can_transition_to(self, target: BookingStatus) -> bool:
        return target in _TRANSITIONS[self.status]

    def transition_to(self, target: BookingStatus) -> None:
        target = BookingStatus(target)
        if target == self.status:
            return
        if not self.can_transition_to(target):
            raise InvalidBookingTransitionException(self.status.value, target.value)
        self.status = target
        self.updated_at = datetime.now(timezone.utc)

    def attach_payment(
        self,
        *,
        provider: Optional[str],
        payment_intent_id: Optional[str],
        transaction_id: Optional[str] = None,
    ) -> None:
        self.payment_provider = provider
        self.payment_intent_id = payment_intent_id
        self.transaction_id = transaction_id
        self.updated_at = datetime.now(timezone.utc)

    def cancel(self, reason: Optional[str] = None) -> None:
        """取消预约并释放时段"""
        self.transition_to(BookingStatus.CANCELLED)
        self.cancellation_reason = reason
        self.cancelled_at = self.updated_at

    def restore(self, status: BookingStatus, *, expected: BookingStatus) -> None:
        """Put a previous status back, bypassing the transition table.

        Only used to compensate a command. The booking must still be in
        ``expected`` (the status that command produced); if it has moved on,
        e.g. to COMPLETED, the restore is refused.
        """
        status, expected = BookingStatus(status), BookingStatus(expected)
        if self.status != expected:
            raise InvalidBookingTransitionException(self.status.value, status.value)
        self.status = status
        if self.status != BookingStatus.CANCELLED:
            self.cancelled_at = None
            self.cancellation_reason = None
        self.updated_at = datetime.now(timezone.utc)

    @property
    def is_paid(self) -> bool:
        return bool(self.transaction_id)
