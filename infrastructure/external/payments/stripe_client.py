"""
Stripe PaymentIntents adapter using the official stripe-python SDK.

Notes on SDK usage:
- PaymentIntents are created with ``confirmation_method="manual"`` and then
  confirmed server-side with the payment method, so 3-D Secure surfaces as
  ``requires_action`` with a ``redirect_to_url`` next action.
- Idempotency keys are supplied via the ``idempotency_key`` kwarg.
- SDK calls are blocking; they run in a worker thread.
"""
from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Optional

import stripe

from application.dtos.payments import (
    Charge,
    ChargeConfirmation,
    NextAction,
    PaymentData,
    RefundOutcome,
)
from domain.payment.exceptions import PaymentDeclinedError
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    PaymentConfigurationError,
    PaymentProviderError,
    PaymentRecoverableError,
)
from core.settings import payment_settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class StripeClient(BasePaymentClient):
    provider = "stripe"
    display_name = "Stripe"
    supported_currencies = frozenset({"EUR", "USD", "GBP", "CAD", "AUD"})
    supported_countries = frozenset({"FR", "US", "GB", "CA", "AU", "DE", "ES", "IT"})

    def __init__(self):
        super().__init__()
        if not payment_settings.stripe.secret_key:
            raise PaymentConfigurationError("STRIPE__SECRET_KEY not configured", provider=self.provider)
        # Configure module-level key for compatibility across SDK variants
        stripe.api_key = payment_settings.stripe.secret_key
        if payment_settings.stripe.api_version:
            stripe.api_version = payment_settings.stripe.api_version

    @classmethod
    def is_configured(cls) -> bool:
        return bool(payment_settings.stripe.secret_key)

    async def _call(self, fn, *args, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except stripe.CardError as exc:
            raise PaymentDeclinedError(
                exc.user_message or str(exc) or "Card error",
                provider=self.provider,
                decline_code=getattr(exc, "code", None),
            ) from exc
        except (stripe.RateLimitError, stripe.APIConnectionError) as exc:
            raise PaymentRecoverableError(str(exc), provider=self.provider) from exc
        except stripe.AuthenticationError as exc:
            raise PaymentConfigurationError(str(exc), provider=self.provider) from exc
        except stripe.StripeError as exc:
            raise PaymentProviderError(
                str(exc),
                provider=self.provider,
                provider_code=getattr(exc, "code", None),
            ) from exc

    async def create_charge(self, data: PaymentData) -> Charge:
        metadata = dict(data.metadata)
        metadata.update(
            {
                "service_type": data.service_type.value,
                "service_id": data.service_id,
                "payer_id": data.effective_payer_id,
                "beneficiary_id": data.effective_beneficiary_id,
                "processor": self.provider,
            }
        )
        params: dict[str, Any] = {
            "amount": self._to_minor(data.amount, data.currency),
            "currency": data.currency.lower(),
            "customer": data.customer_id,
            "metadata": metadata,
            "confirmation_method": "manual",
            "capture_method": "automatic",
        }
        if data.description:
            params["description"] = data.description
        if data.idempotency_key:
            params["idempotency_key"] = data.idempotency_key

        pi = await self._call(stripe.PaymentIntent.create, **params)
        self._log("stripe_payment_intent_created", payment_intent_id=pi["id"], status=pi["status"])
        return Charge(
            id=str(pi["id"]),
            provider=self.provider,
            amount=data.amount,
            currency=data.currency,
            status=self._map_status(pi["status"]),
            client_secret=pi.get("client_secret"),
            metadata=metadata,
        )

    async def confirm_charge(self, charge: Charge, data: PaymentData) -> ChargeConfirmation:
        pi = await self._call(
            stripe.PaymentIntent.confirm,
            charge.id,
            payment_method=data.payment_method_id,
        )
        status = self._map_status(pi["status"])
        self._log("stripe_payment_intent_confirmed", payment_intent_id=charge.id, status=pi["status"])

        if status == "requires_action":
            return ChargeConfirmation(status=status, next_action=self._next_action(pi.get("next_action")))
        if status == "succeeded":
            return ChargeConfirmation(status=status, transaction_id=str(pi.get("latest_charge") or charge.id))
        return ChargeConfirmation(status=status, failure_message=f"Payment status: {pi['status']}")

    @staticmethod
    def _next_action(raw: Optional[dict]) -> NextAction:
        if not raw:
            return NextAction(type="", url="")
        action_type = str(raw.get("type") or "")
        url = ""
        if action_type == "redirect_to_url":
            url = str((raw.get("redirect_to_url") or {}).get("url") or "")
        return NextAction(type=action_type, url=url)

    async def refund_charge(
        self,
        *,
        payment_intent_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
        amount: Optional[Decimal] = None,
        currency: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RefundOutcome:
        if not payment_intent_id:
            raise PaymentProviderError("payment_intent_id is required for Stripe refunds", provider=self.provider)
        params: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "metadata": {"reason": reason or ""},
        }
        if amount is not None and currency:
            params["amount"] = self._to_minor(amount, currency)
        refund = await self._call(stripe.Refund.create, **params)
        self._log("stripe_refund_created", payment_intent_id=payment_intent_id, refund_id=refund["id"])
        return RefundOutcome(
            refund_id=str(refund["id"]),
            status=self._map_status(str(refund.get("status", ""))),
            provider=self.provider,
            provider_ref=str(refund.get("charge") or transaction_id or ""),
        )
