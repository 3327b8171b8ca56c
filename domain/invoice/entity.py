"""
发票领域实体
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from domain.common.exceptions import DomainValidationException


class InvoiceStatus(str, Enum):
    ISSUED = "ISSUED"
    VOID = "VOID"


@dataclass
class InvoiceLine:
    description: str
    quantity: int
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "total": str(self.total),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "InvoiceLine":
        return cls(
            description=raw["description"],
            quantity=int(raw["quantity"]),
            unit_price=Decimal(str(raw["unit_price"])),
        )


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    """INV-YYYYMMDD-XXXXXXXX"""
    now = now or datetime.now(timezone.utc)
    return f"INV-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


@dataclass
class Invoice:
    id: Optional[str]
    invoice_number: str
    user_id: str
    transaction_id: Optional[str]
    amount: Decimal
    currency: str
    lines: List[InvoiceLine] = field(default_factory=list)
    status: InvoiceStatus = InvoiceStatus.ISSUED
    issued_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.amount <= 0:
            raise DomainValidationException(f"Invoice amount must be positive: {self.amount}", field="amount")
        self.status = InvoiceStatus(self.status)
        if self.metadata is None:
            self.metadata = {}

    @classmethod
    def issue(cls, **kwargs) -> "Invoice":
        now = datetime.now(timezone.utc)
        kwargs.setdefault("id", uuid.uuid4().hex)
        kwargs.setdefault("invoice_number", generate_invoice_number(now))
        kwargs.setdefault("issued_at", now)
        return cls(**kwargs)
