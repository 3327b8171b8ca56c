import json
from decimal import Decimal

import httpx
import pytest

from core.settings import payment_settings
from domain.payment.exceptions import PaymentDeclinedError
from infrastructure.external.payments.exceptions import (
    PaymentConfigurationError,
    PaymentProviderError,
    PaymentRecoverableError,
)
from infrastructure.external.payments.paypal_client import PayPalClient
from fakes import make_payment_data


class PayPalSandbox:
    """Minimal Orders v2 responder for httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_calls = 0
        self.order_status = "CREATED"
        self.capture_response: tuple[int, dict] = (
            201,
            {
                "id": "ORDER-1",
                "status": "COMPLETED",
                "purchase_units": [{"payments": {"captures": [{"id": "CAPTURE_1", "status": "COMPLETED"}]}}],
            },
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v1/oauth2/token":
            self.token_calls += 1
            return httpx.Response(200, json={"access_token": "A21AA", "expires_in": 32400})
        if path == "/v2/checkout/orders":
            return httpx.Response(
                201,
                json={
                    "id": "ORDER-1",
                    "status": self.order_status,
                    "links": [{"rel": "payer-action", "href": "https://www.sandbox.paypal.com/checkoutnow?token=ORDER-1"}],
                },
            )
        if path == "/v2/checkout/orders/ORDER-1/capture":
            status, body = self.capture_response
            return httpx.Response(status, json=body)
        if path == "/v2/payments/captures/CAPTURE_1/refund":
            return httpx.Response(201, json={"id": "REFUND-1", "status": "COMPLETED"})
        return httpx.Response(404, json={"name": "RESOURCE_NOT_FOUND", "message": "not found"})

    def last(self, path: str) -> httpx.Request:
        return [r for r in self.requests if r.url.path == path][-1]


@pytest.fixture
def sandbox():
    return PayPalSandbox()


@pytest.fixture
def client(monkeypatch, sandbox):
    monkeypatch.setattr(payment_settings.paypal, "client_id", "cid")
    monkeypatch.setattr(payment_settings.paypal, "client_secret", "secret")
    monkeypatch.setattr(payment_settings.paypal, "sandbox", True)
    return PayPalClient(transport=httpx.MockTransport(sandbox))


def test_requires_credentials(monkeypatch):
    monkeypatch.setattr(payment_settings.paypal, "client_id", None)
    with pytest.raises(PaymentConfigurationError):
        PayPalClient()


@pytest.mark.asyncio
async def test_create_and_capture(client, sandbox):
    data = make_payment_data(amount=Decimal("42.5"), currency="USD", idempotency_key="cmd-9")
    charge = await client.create_charge(data)
    confirmation = await client.confirm_charge(charge, data)
    await client.aclose()

    order = sandbox.last("/v2/checkout/orders")
    body = json.loads(order.content)
    assert body["intent"] == "CAPTURE"
    assert body["purchase_units"][0]["amount"] == {"currency_code": "USD", "value": "42.50"}
    assert body["payment_source"]["paypal"]["vault_id"] == "pm_card_visa"
    assert order.headers["PayPal-Request-Id"] == "cmd-9"
    assert order.headers["Authorization"] == "Bearer A21AA"

    capture = sandbox.last("/v2/checkout/orders/ORDER-1/capture")
    assert capture.headers["PayPal-Request-Id"] == "cmd-9-capture"
    assert charge.status == "created"
    assert confirmation.status == "succeeded"
    assert confirmation.transaction_id == "CAPTURE_1"


@pytest.mark.asyncio
async def test_token_is_cached(client, sandbox):
    data = make_payment_data(currency="USD")
    await client.confirm_charge(await client.create_charge(data), data)
    await client.create_charge(data)
    assert sandbox.token_calls == 1


@pytest.mark.asyncio
async def test_payer_action_required(client, sandbox):
    sandbox.order_status = "PAYER_ACTION_REQUIRED"
    data = make_payment_data(currency="USD")
    confirmation = await client.confirm_charge(await client.create_charge(data), data)

    assert confirmation.status == "requires_action"
    assert confirmation.next_action.type == "payer-action"
    assert confirmation.next_action.url.endswith("token=ORDER-1")
    assert not any(r.url.path.endswith("/capture") for r in sandbox.requests)


@pytest.mark.asyncio
async def test_instrument_declined_on_capture(client, sandbox):
    sandbox.capture_response = (
        422,
        {
            "name": "UNPROCESSABLE_ENTITY",
            "details": [{"issue": "INSTRUMENT_DECLINED", "description": "The instrument presented was declined."}],
        },
    )
    data = make_payment_data(currency="USD")
    charge = await client.create_charge(data)
    with pytest.raises(PaymentDeclinedError) as exc:
        await client.confirm_charge(charge, data)
    assert exc.value.message == "The instrument presented was declined."
    assert exc.value.details["decline_code"] == "INSTRUMENT_DECLINED"


@pytest.mark.asyncio
async def test_declined_capture_status(client, sandbox):
    sandbox.capture_response = (
        201,
        {
            "id": "ORDER-1",
            "status": "COMPLETED",
            "purchase_units": [{"payments": {"captures": [{"id": "CAPTURE_1", "status": "DECLINED"}]}}],
        },
    )
    data = make_payment_data(currency="USD")
    with pytest.raises(PaymentDeclinedError):
        await client.confirm_charge(await client.create_charge(data), data)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, expected",
    [(503, PaymentRecoverableError), (429, PaymentRecoverableError), (400, PaymentProviderError), (401, PaymentConfigurationError)],
)
async def test_error_statuses(client, sandbox, status, expected):
    sandbox.capture_response = (status, {"name": "ERROR", "message": "boom"})
    data = make_payment_data(currency="USD")
    charge = await client.create_charge(data)
    with pytest.raises(expected):
        await client.confirm_charge(charge, data)


@pytest.mark.asyncio
async def test_refund_uses_capture_id(client, sandbox):
    outcome = await client.refund_charge(
        payment_intent_id="ORDER-1", transaction_id="CAPTURE_1", amount=Decimal("10"), currency="usd", reason="undo"
    )

    body = json.loads(sandbox.last("/v2/payments/captures/CAPTURE_1/refund").content)
    assert body == {"amount": {"currency_code": "USD", "value": "10.00"}, "note_to_payer": "undo"}
    assert outcome.refund_id == "REFUND-1"
    assert outcome.status == "succeeded"
    assert outcome.provider_ref == "CAPTURE_1"


@pytest.mark.asyncio
async def test_refund_without_capture_is_rejected(client):
    with pytest.raises(PaymentProviderError):
        await client.refund_charge(payment_intent_id="ORDER-1")


@pytest.mark.asyncio
async def test_rejected_credentials(monkeypatch):
    monkeypatch.setattr(payment_settings.paypal, "client_id", "cid")
    monkeypatch.setattr(payment_settings.paypal, "client_secret", "wrong")
    client = PayPalClient(transport=httpx.MockTransport(lambda r: httpx.Response(401, json={"error": "invalid_client"})))
    with pytest.raises(PaymentConfigurationError):
        await client.create_charge(make_payment_data(currency="USD"))
