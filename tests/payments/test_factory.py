import pytest

from application.dtos.payments import ProcessorInfo
from core.settings import payment_settings
from infrastructure.external.payments import PaymentProcessorFactory, ProcessorRegistry, registry
from infrastructure.external.payments.exceptions import PaymentConfigurationError, UnsupportedProviderError
from infrastructure.external.payments.paypal_client import PayPalClient
from infrastructure.external.payments.stripe_client import StripeClient


class _Built:
    def __init__(self, code: str) -> None:
        self.provider = code


def _registry(enabled: dict[str, bool], currencies: dict[str, list[str]]) -> ProcessorRegistry:
    reg = ProcessorRegistry()
    for code in enabled:
        reg.register(
            code,
            lambda code=code: _Built(code),
            lambda code=code: ProcessorInfo(
                code=code, name=code.title(), enabled=enabled[code], currencies=currencies[code], countries=[]
            ),
            aliases=("pp",) if code == "paypal" else (),
        )
    return reg


@pytest.fixture
def factory(monkeypatch):
    monkeypatch.setattr(payment_settings, "default_provider", "stripe")
    monkeypatch.setattr(payment_settings, "preferences", {})
    reg = _registry(
        {"stripe": True, "paypal": True},
        {"stripe": ["EUR", "USD", "GBP"], "paypal": ["EUR", "USD", "JPY"]},
    )
    return PaymentProcessorFactory(reg)


def test_create_processor_by_code_and_alias(factory):
    assert factory.create_processor("stripe").provider == "stripe"
    assert factory.create_processor("PayPal").provider == "paypal"
    assert factory.create_processor("pp").provider == "paypal"


def test_unknown_code_is_rejected(factory):
    with pytest.raises(UnsupportedProviderError) as exc:
        factory.create_processor("bitcoin")
    assert exc.value.field == "provider"


@pytest.mark.parametrize(
    "currency, country, expected",
    [
        ("EUR", "FR", "stripe"),
        ("eur", None, "stripe"),
        ("USD", None, "paypal"),
        ("USD", "US", "stripe"),
        ("JPY", None, "paypal"),
        ("CHF", None, "stripe"),
    ],
)
def test_best_processor_follows_preferences(factory, currency, country, expected):
    assert factory.get_best_processor(currency, country).provider == expected


def test_country_preference_falls_back_to_currency_only(factory):
    assert factory.get_best_processor("USD", "MX").provider == "paypal"


def test_disabled_preference_is_skipped(monkeypatch):
    monkeypatch.setattr(payment_settings, "default_provider", "stripe")
    monkeypatch.setattr(payment_settings, "preferences", {})
    reg = _registry({"stripe": True, "paypal": False}, {"stripe": ["EUR", "USD"], "paypal": ["USD", "JPY"]})
    assert PaymentProcessorFactory(reg).get_best_processor("USD").provider == "stripe"


def test_preference_without_currency_support_is_skipped(monkeypatch):
    monkeypatch.setattr(payment_settings, "default_provider", "paypal")
    monkeypatch.setattr(payment_settings, "preferences", {})
    reg = _registry({"stripe": True, "paypal": True}, {"stripe": ["USD"], "paypal": ["EUR", "USD"]})
    assert PaymentProcessorFactory(reg).get_best_processor("EUR", "FR").provider == "paypal"


def test_configured_overrides_win(factory, monkeypatch):
    monkeypatch.setattr(payment_settings, "preferences", {"EUR:FR": "paypal", "GBP": "PAYPAL"})
    assert factory.get_best_processor("EUR", "FR").provider == "paypal"
    assert factory.get_best_processor("EUR", "DE").provider == "stripe"


def test_disabled_default_falls_back_to_enabled_processor(monkeypatch):
    monkeypatch.setattr(payment_settings, "default_provider", "stripe")
    monkeypatch.setattr(payment_settings, "preferences", {})
    reg = _registry({"stripe": False, "paypal": True}, {"stripe": ["EUR", "USD"], "paypal": ["EUR", "USD"]})

    assert PaymentProcessorFactory(reg).get_best_processor("EUR", "FR").provider == "paypal"


def test_builtin_fallback_when_stripe_has_no_key(monkeypatch):
    monkeypatch.setattr(payment_settings, "default_provider", "stripe")
    monkeypatch.setattr(payment_settings, "preferences", {})
    monkeypatch.setattr(payment_settings.stripe, "secret_key", None)
    monkeypatch.setattr(payment_settings.paypal, "client_id", "cid")
    monkeypatch.setattr(payment_settings.paypal, "client_secret", "secret")

    assert isinstance(PaymentProcessorFactory(registry).get_best_processor("EUR", "FR"), PayPalClient)


def test_unknown_default_is_a_configuration_error(factory, monkeypatch):
    monkeypatch.setattr(payment_settings, "default_provider", "nowhere")
    with pytest.raises(PaymentConfigurationError):
        factory.get_best_processor("CHF")


def test_list_processors_does_not_build(monkeypatch):
    built = []
    reg = ProcessorRegistry()
    reg.register(
        "stripe",
        lambda: built.append("stripe"),
        lambda: ProcessorInfo(code="stripe", name="Stripe", enabled=False, currencies=["EUR"], countries=["FR"]),
    )
    infos = PaymentProcessorFactory(reg).list_processors()
    assert [i.code for i in infos] == ["stripe"]
    assert infos[0].enabled is False
    assert built == []


def test_unregister_drops_aliases():
    reg = _registry({"paypal": True}, {"paypal": ["USD"]})
    reg.unregister("paypal")
    with pytest.raises(UnsupportedProviderError):
        reg.resolve("pp")


def test_builtin_registry_reports_credentials(monkeypatch):
    monkeypatch.setattr(payment_settings.stripe, "secret_key", None)
    monkeypatch.setattr(payment_settings.paypal, "client_id", "cid")
    monkeypatch.setattr(payment_settings.paypal, "client_secret", "secret")

    infos = {i.code: i for i in PaymentProcessorFactory(registry).list_processors()}
    assert infos["stripe"].enabled is False
    assert infos["paypal"].enabled is True
    assert "JPY" in infos["paypal"].currencies


def test_builtin_selection_uses_real_clients(monkeypatch):
    monkeypatch.setattr(payment_settings, "default_provider", "stripe")
    monkeypatch.setattr(payment_settings, "preferences", {})
    monkeypatch.setattr(payment_settings.stripe, "secret_key", "sk_test_123")
    monkeypatch.setattr(payment_settings.paypal, "client_id", "cid")
    monkeypatch.setattr(payment_settings.paypal, "client_secret", "secret")
    factory = PaymentProcessorFactory(registry)

    assert isinstance(factory.get_best_processor("EUR", "FR"), StripeClient)
    assert isinstance(factory.get_best_processor("JPY"), PayPalClient)


def test_unconfigured_client_refuses_to_build(monkeypatch):
    monkeypatch.setattr(payment_settings.stripe, "secret_key", None)
    with pytest.raises(PaymentConfigurationError):
        PaymentProcessorFactory(registry).create_processor("stripe")
