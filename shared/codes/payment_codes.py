"""
Payment specific codes, provider status mapping and processor preferences.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Caller-attributable payment failures (5xxxx)
    VALIDATION_ERROR = 50100
    DECLINED = 50101
    REQUIRES_ACTION = 50102
    UNSUPPORTED_PROVIDER = 50103
    UNSUPPORTED_CURRENCY = 50104

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    CONFIGURATION_ERROR = 60005


# Provider→internal status mapping; unknown statuses pass through unchanged.
PROVIDER_STATUS_TO_INTERNAL = {
    "stripe": {
        "requires_payment_method": "failed",
        "requires_confirmation": "created",
        "requires_action": "requires_action",
        "processing": "pending",
        "requires_capture": "pending",
        "succeeded": "succeeded",
        "canceled": "canceled",
    },
    "paypal": {
        "CREATED": "created",
        "SAVED": "created",
        "APPROVED": "pending",
        "PAYER_ACTION_REQUIRED": "requires_action",
        "COMPLETED": "succeeded",
        "VOIDED": "canceled",
        "DECLINED": "failed",
        "FAILED": "failed",
        "PENDING": "pending",
    },
}

# Best-fit preferences: (currency, country) first, then (currency, None).
# Anything missing falls back to PaymentSettings.default_provider.
PROCESSOR_PREFERENCES: dict[tuple[str, str | None], str] = {
    ("EUR", "FR"): "stripe",
    ("EUR", "DE"): "stripe",
    ("EUR", None): "stripe",
    ("GBP", None): "stripe",
    ("USD", "US"): "stripe",
    ("USD", None): "paypal",
    ("CAD", None): "stripe",
    ("AUD", None): "stripe",
    ("JPY", None): "paypal",
}
