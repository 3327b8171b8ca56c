"""
Payment processor port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters
(Stripe, PayPal). The shared pipeline in application.services.payment_pipeline
drives any implementation through validate → create → confirm → package.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol, runtime_checkable

from application.dtos.payments import (
    Charge,
    ChargeConfirmation,
    PaymentData,
    ProcessorInfo,
    RefundOutcome,
)


@runtime_checkable
class PaymentProcessor(Protocol):
    """Gateway protocol for third-party payment providers.

    Business failures (declines) are raised as PaymentDeclinedError;
    transport failures as PaymentProviderError after retries.
    """

    provider: str
    supported_currencies: frozenset[str]

    async def create_charge(self, data: PaymentData) -> Charge: ...

    async def confirm_charge(self, charge: Charge, data: PaymentData) -> ChargeConfirmation: ...

    async def refund_charge(
        self,
        *,
        payment_intent_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
        amount: Optional[Decimal] = None,
        currency: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RefundOutcome:
        """Refund a settled charge; each provider refunds against the reference it owns."""
        ...

    def describe(self) -> ProcessorInfo: ...


@runtime_checkable
class ProcessorResolver(Protocol):
    """Selects processors by code or by best fit for a currency/country."""

    def create_processor(self, code: str) -> PaymentProcessor: ...

    def get_best_processor(self, currency: str, country: Optional[str] = None) -> PaymentProcessor: ...

    def list_processors(self) -> list[ProcessorInfo]: ...
