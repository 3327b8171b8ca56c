"""Application-owned ports for notification dispatch and invoice generation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol, runtime_checkable

from application.dtos.payments import PaymentData, PaymentResult


@runtime_checkable
class Notifier(Protocol):
    """Sends a templated message; returns False on failure and never raises."""

    async def send(self, recipient: str, template: str, data: Mapping[str, Any]) -> bool: ...


@dataclass(frozen=True)
class InvoiceRef:
    invoice_id: str
    invoice_number: str = ""


@runtime_checkable
class InvoiceGenerator(Protocol):
    async def generate(self, payment_result: PaymentResult, data: PaymentData) -> InvoiceRef: ...
