"""
PayPal Orders v2 adapter over httpx.

Flow: OAuth2 client-credentials token → create order (intent CAPTURE,
vaulted payment source) → capture. Orders that still need the payer come
back as ``PAYER_ACTION_REQUIRED`` and are surfaced as requires_action with
the ``payer-action`` (or ``approve``) link.
"""
from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Optional

import httpx

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


# Issues PayPal reports (HTTP 422) when the buyer's instrument is refused
DECLINE_ISSUES = frozenset({
    "INSTRUMENT_DECLINED",
    "PAYER_CANNOT_PAY",
    "TRANSACTION_REFUSED",
    "PAYER_ACCOUNT_RESTRICTED",
    "PAYEE_ACCOUNT_RESTRICTED",
    "MAX_NUMBER_OF_PAYMENT_ATTEMPTS_EXCEEDED",
})


class PayPalClient(BasePaymentClient):
    provider = "paypal"
    display_name = "PayPal"
    supported_currencies = frozenset({"EUR", "USD", "GBP", "CAD", "AUD", "JPY"})
    supported_countries = frozenset({"FR", "US", "GB", "CA", "AU", "DE", "ES", "IT", "JP"})

    def __init__(self, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__()
        cfg = payment_settings.paypal
        if not (cfg.client_id and cfg.client_secret):
            raise PaymentConfigurationError("PAYPAL__CLIENT_ID / PAYPAL__CLIENT_SECRET not configured", provider=self.provider)
        self._base_url = cfg.base_url.rstrip("/")
        self._transport = transport
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    @classmethod
    def is_configured(cls) -> bool:
        cfg = payment_settings.paypal
        return bool(cfg.client_id and cfg.client_secret)

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self._base_url, timeout=self.timeouts, transport=self._transport)

    async def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        cfg = payment_settings.paypal
        http = self.http
        resp = await self._retry(
            lambda: http.post(
                "/v1/oauth2/token",
                auth=(cfg.client_id or "", cfg.client_secret or ""),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
            )
        )
        if resp.status_code in (401, 403):
            raise PaymentConfigurationError("PayPal rejected the client credentials", provider=self.provider)
        if resp.status_code != 200:
            raise PaymentProviderError(
                "Failed to authenticate with PayPal",
                provider=self.provider,
                provider_code=str(resp.status_code),
            )
        body = resp.json()
        self._access_token = body["access_token"]
        # refresh one minute early
        self._token_expires_at = time.monotonic() + max(int(body.get("expires_in", 3600)) - 60, 0)
        return self._access_token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        idempotency_key: Optional[str] = None,
    ) -> dict[str, Any]:
        token = await self._get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        if idempotency_key:
            headers["PayPal-Request-Id"] = idempotency_key

        http = self.http
        resp = await self._retry(lambda: http.request(method, path, json=json, headers=headers))

        if resp.status_code < 400:
            return resp.json() if resp.content else {}

        payload = self._error_payload(resp)
        issue = self._first_issue(payload)
        message = self._error_message(payload) or f"PayPal request failed ({resp.status_code})"
        self._log("paypal_request_failed", path=path, status_code=resp.status_code, issue=issue)
        if resp.status_code == 422 and issue in DECLINE_ISSUES:
            raise PaymentDeclinedError(message, provider=self.provider, decline_code=issue)
        if resp.status_code == 401:
            self._access_token = None
            raise PaymentConfigurationError(message, provider=self.provider)
        if resp.status_code == 429 or resp.status_code >= 500:
            raise PaymentRecoverableError(message, provider=self.provider, provider_code=issue)
        raise PaymentProviderError(message, provider=self.provider, provider_code=issue or str(resp.status_code))

    @staticmethod
    def _error_payload(resp: httpx.Response) -> dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            return {"message": resp.text}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _first_issue(payload: dict[str, Any]) -> Optional[str]:
        details = payload.get("details") or []
        if details and isinstance(details[0], dict):
            return details[0].get("issue")
        return payload.get("name")

    @staticmethod
    def _error_message(payload: dict[str, Any]) -> str:
        details = payload.get("details") or []
        if details and isinstance(details[0], dict) and details[0].get("description"):
            return str(details[0]["description"])
        return str(payload.get("message") or "")

    @staticmethod
    def _action_link(order: dict[str, Any]) -> NextAction:
        links = {link.get("rel"): link.get("href", "") for link in order.get("links") or []}
        for rel in ("payer-action", "approve"):
            if links.get(rel):
                return NextAction(type=rel, url=links[rel])
        return NextAction(type="payer-action", url="")

    @staticmethod
    def _capture_of(order: dict[str, Any]) -> dict[str, Any]:
        for unit in order.get("purchase_units") or []:
            captures = (unit.get("payments") or {}).get("captures") or []
            if captures:
                return captures[0]
        return {}

    async def create_charge(self, data: PaymentData) -> Charge:
        cfg = payment_settings.paypal
        metadata = dict(data.metadata)
        metadata.update({"service_type": data.service_type.value, "service_id": data.service_id})
        experience: dict[str, Any] = {}
        if cfg.return_url:
            experience["return_url"] = cfg.return_url
        if cfg.cancel_url:
            experience["cancel_url"] = cfg.cancel_url
        order_body: dict[str, Any] = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": data.service_id,
                    "custom_id": data.effective_payer_id[:127],
                    "description": (data.description or data.service_type.value)[:127],
                    "amount": {
                        "currency_code": data.currency,
                        "value": self._to_major_str(data.amount, data.currency),
                    },
                }
            ],
            "payment_source": {
                "paypal": {
                    "vault_id": data.payment_method_id,
                    "experience_context": experience,
                }
            },
        }
        order = await self._request(
            "POST", "/v2/checkout/orders", json=order_body, idempotency_key=data.idempotency_key
        )
        self._log("paypal_order_created", order_id=order.get("id"), status=order.get("status"))
        return Charge(
            id=str(order["id"]),
            provider=self.provider,
            amount=data.amount,
            currency=data.currency,
            status=self._map_status(str(order.get("status", ""))),
            metadata=metadata,
            raw=order,
        )

    async def confirm_charge(self, charge: Charge, data: PaymentData) -> ChargeConfirmation:
        order = charge.raw or {}
        if charge.status == "requires_action":
            return ChargeConfirmation(status="requires_action", next_action=self._action_link(order))
        if charge.status != "succeeded":
            capture_key = f"{data.idempotency_key}-capture" if data.idempotency_key else None
            order = await self._request(
                "POST", f"/v2/checkout/orders/{charge.id}/capture", json={}, idempotency_key=capture_key
            )

        status = self._map_status(str(order.get("status", "")))
        self._log("paypal_order_captured", order_id=charge.id, status=order.get("status"))
        if status == "requires_action":
            return ChargeConfirmation(status=status, next_action=self._action_link(order))

        capture = self._capture_of(order)
        capture_status = str(capture.get("status") or "")
        if status == "succeeded" and capture_status in ("COMPLETED", ""):
            return ChargeConfirmation(status="succeeded", transaction_id=str(capture.get("id") or charge.id))
        if capture_status == "DECLINED":
            raise PaymentDeclinedError("PayPal declined the capture", provider=self.provider, decline_code=capture_status)
        return ChargeConfirmation(
            status=self._map_status(capture_status) if capture_status else status,
            failure_message=f"Payment status: {capture_status or order.get('status')}",
        )

    async def refund_charge(
        self,
        *,
        payment_intent_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
        amount: Optional[Decimal] = None,
        currency: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RefundOutcome:
        if not transaction_id:
            raise PaymentProviderError("capture id is required for PayPal refunds", provider=self.provider)
        body: dict[str, Any] = {}
        if amount is not None and currency:
            body["amount"] = {"currency_code": currency.upper(), "value": self._to_major_str(amount, currency)}
        if reason:
            body["note_to_payer"] = reason[:255]
        refund = await self._request("POST", f"/v2/payments/captures/{transaction_id}/refund", json=body)
        self._log("paypal_refund_created", capture_id=transaction_id, refund_id=refund.get("id"))
        return RefundOutcome(
            refund_id=str(refund.get("id") or ""),
            status=self._map_status(str(refund.get("status", ""))),
            provider=self.provider,
            provider_ref=transaction_id,
        )
