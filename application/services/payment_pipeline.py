"""
Shared payment pipeline: validate → create charge → confirm → package.

Provider adapters only implement create/confirm/refund; validation,
decline handling and result shaping live here so every processor behaves
the same at the application boundary.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Optional

from application.dtos.payments import (
    ISO_4217,
    ChargeConfirmation,
    NextAction,
    PaymentData,
    PaymentResult,
)
from application.ports.payment_processor import PaymentProcessor
from core.logging_config import get_logger
from domain.payment.exceptions import PaymentDeclinedError, PaymentValidationError


logger = get_logger(__name__)

_AMOUNT_BUCKETS: tuple[tuple[Decimal, str], ...] = (
    (Decimal("10"), "0-10"),
    (Decimal("50"), "10-50"),
    (Decimal("100"), "50-100"),
    (Decimal("500"), "100-500"),
    (Decimal("1000"), "500-1000"),
)


def amount_range(amount: Decimal) -> str:
    for upper, label in _AMOUNT_BUCKETS:
        if amount < upper:
            return label
    return "1000+"


def validate_payment_data(processor: PaymentProcessor, data: PaymentData) -> None:
    """Raise PaymentValidationError on the first invalid field."""
    try:
        amount = Decimal(data.amount)
    except (InvalidOperation, TypeError, ValueError):
        raise PaymentValidationError("Invalid amount: not a number", field="amount")
    if not amount.is_finite() or amount <= 0:
        raise PaymentValidationError("Invalid amount: must be greater than 0", field="amount")

    currency = (data.currency or "").upper()
    if len(currency) != 3 or currency not in ISO_4217:
        raise PaymentValidationError(f"Invalid currency: {data.currency!r}", field="currency")
    if currency not in processor.supported_currencies:
        raise PaymentValidationError(
            f"Currency {currency} is not supported by {processor.provider}",
            field="currency",
        )
    if not (data.payment_method_id or "").strip():
        raise PaymentValidationError("Payment method is required", field="payment_method_id")
    if not (data.customer_id or "").strip():
        raise PaymentValidationError("Customer is required", field="customer_id")


def _package(provider: str, charge_id: str, confirmation: ChargeConfirmation) -> PaymentResult:
    if confirmation.status == "succeeded":
        return PaymentResult(
            success=True,
            transaction_id=confirmation.transaction_id or charge_id,
            payment_intent_id=charge_id,
            provider=provider,
        )
    if confirmation.status == "requires_action":
        return PaymentResult(
            success=False,
            requires_action=True,
            next_action=confirmation.next_action or NextAction(type="unknown"),
            payment_intent_id=charge_id,
            provider=provider,
        )
    # pending / failed / anything else is not a completed charge
    message = confirmation.failure_message or f"Payment not completed (status: {confirmation.status})"
    return PaymentResult.failed(message, payment_intent_id=charge_id, provider=provider)


async def process_payment(
    processor: PaymentProcessor,
    data: PaymentData,
    *,
    idempotency_key: Optional[str] = None,
) -> PaymentResult:
    """Run one payment through the processor.

    Business failures (validation, declines) come back as a failed
    PaymentResult. PaymentConfigurationError and PaymentProviderError
    propagate to the caller.
    """
    provider = processor.provider
    try:
        validate_payment_data(processor, data)
    except PaymentValidationError as exc:
        logger.info("payment_validation_failed", provider=provider, field=exc.field, error=exc.message)
        return PaymentResult.failed(exc.message, provider=provider)

    if idempotency_key and not data.idempotency_key:
        data = data.model_copy(update={"idempotency_key": idempotency_key})

    charge_id: Optional[str] = None
    try:
        charge = await processor.create_charge(data)
        charge_id = charge.id
        confirmation = await processor.confirm_charge(charge, data)
    except PaymentDeclinedError as exc:
        logger.info(
            "payment_declined",
            provider=provider,
            payment_intent_id=charge_id,
            decline_code=(exc.details or {}).get("decline_code"),
            error=exc.message,
        )
        return PaymentResult.failed(exc.message, payment_intent_id=charge_id, provider=provider)

    result = _package(provider, charge.id, confirmation)
    logger.info(
        "payment_processed",
        provider=provider,
        currency=data.currency,
        service_type=data.service_type.value,
        amount_range=amount_range(Decimal(data.amount)),
        success=result.success,
        requires_action=result.requires_action,
        payment_intent_id=result.payment_intent_id,
    )
    return result
