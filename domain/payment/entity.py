"""
支付领域实体 - 交易记录聚合根
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException


class TransactionStatus(str, Enum):
    """交易状态枚举"""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class Transaction:
    """
    交易聚合根 - 记录一次已发生的扣款

    业务规则：
    1. 金额必须大于0
    2. 货币代码必须是3位字母
    3. 只有 COMPLETED 的交易才能退款
    """

    id: Optional[str]
    payer_id: str
    beneficiary_id: str
    amount: Decimal
    currency: str
    service_type: str
    service_id: str
    provider: str
    payment_intent_id: Optional[str]
    provider_ref: Optional[str]  # 渠道扣款ID (Stripe charge / PayPal capture)
    status: TransactionStatus = TransactionStatus.COMPLETED
    description: Optional[str] = None

    refund_ref: Optional[str] = None
    refund_reason: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.amount <= 0:
            raise DomainValidationException(f"Transaction amount must be positive: {self.amount}", field="amount")
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(f"Invalid currency code: {self.currency}", field="currency")
        self.currency = self.currency.upper()
        self.status = TransactionStatus(self.status)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.refunded_at = _ensure_utc(self.refunded_at)
        if self.metadata is None:
            self.metadata = {}

    @classmethod
    def record(cls, **kwargs) -> "Transaction":
        now = datetime.now(timezone.utc)
        kwargs.setdefault("id", uuid.uuid4().hex)
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)
        return cls(**kwargs)

    def can_refund(self) -> bool:
        return self.status == TransactionStatus.COMPLETED

    def mark_refunded(self, refund_ref: Optional[str], reason: Optional[str] = None) -> None:
        if not self.can_refund():
            raise DomainValidationException(
                f"Transaction in status {self.status.value} cannot be refunded",
                field="status",
            )
        self.status = TransactionStatus.REFUNDED
        self.refund_ref = refund_ref
        self.refund_reason = reason
        self.refunded_at = datetime.now(timezone.utc)
        self.updated_at = self.refunded_at
