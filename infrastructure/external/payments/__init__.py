"""
Factory for payment processors.

Processors are registered as builders so deployments and tests can add or
replace providers without touching selection logic.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.payments import ProcessorInfo
from application.ports.payment_processor import PaymentProcessor
from core.logging_config import get_logger
from core.settings import payment_settings
from infrastructure.external.payments.exceptions import (
    PaymentConfigurationError,
    UnsupportedProviderError,
)
from shared.codes.payment_codes import PROCESSOR_PREFERENCES


logger = get_logger(__name__)

ProcessorBuilder = Callable[[], PaymentProcessor]
InfoProvider = Callable[[], ProcessorInfo]


class ProcessorRegistry:
    def __init__(self) -> None:
        self._builders: dict[str, ProcessorBuilder] = {}
        self._info: dict[str, InfoProvider] = {}
        self._aliases: dict[str, str] = {}

    def register(
        self,
        code: str,
        builder: ProcessorBuilder,
        info: InfoProvider,
        *,
        aliases: tuple[str, ...] = (),
    ) -> None:
        code = code.lower()
        self._builders[code] = builder
        self._info[code] = info
        self._aliases[code] = code
        for alias in aliases:
            self._aliases[alias.lower()] = code

    def unregister(self, code: str) -> None:
        code = code.lower()
        self._builders.pop(code, None)
        self._info.pop(code, None)
        self._aliases = {k: v for k, v in self._aliases.items() if v != code}

    def resolve(self, code: str) -> str:
        try:
            return self._aliases[(code or "").strip().lower()]
        except KeyError:
            raise UnsupportedProviderError(code) from None

    def build(self, code: str) -> PaymentProcessor:
        return self._builders[self.resolve(code)]()

    def info(self, code: str) -> ProcessorInfo:
        return self._info[self.resolve(code)]()

    def codes(self) -> list[str]:
        return list(self._builders)


def _build_stripe() -> PaymentProcessor:
    from .stripe_client import StripeClient
    return StripeClient()


def _stripe_info() -> ProcessorInfo:
    from .stripe_client import StripeClient
    return StripeClient.info()


def _build_paypal() -> PaymentProcessor:
    from .paypal_client import PayPalClient
    return PayPalClient()


def _paypal_info() -> ProcessorInfo:
    from .paypal_client import PayPalClient
    return PayPalClient.info()


registry = ProcessorRegistry()
registry.register("stripe", _build_stripe, _stripe_info)
registry.register("paypal", _build_paypal, _paypal_info, aliases=("pp",))


class PaymentProcessorFactory:
    """按渠道代码或币种/国家选择支付处理器"""

    def __init__(self, processor_registry: Optional[ProcessorRegistry] = None) -> None:
        self.registry = processor_registry or registry

    def create_processor(self, code: str) -> PaymentProcessor:
        return self.registry.build(code)

    def _preferences(self) -> dict[tuple[str, Optional[str]], str]:
        table = dict(PROCESSOR_PREFERENCES)
        for key, provider in payment_settings.preferences.items():
            currency, _, country = key.upper().partition(":")
            table[(currency, country or None)] = provider.lower()
        return table

    def _usable(self, code: str, currency: str) -> bool:
        try:
            info = self.registry.info(code)
        except UnsupportedProviderError:
            return False
        return info.enabled and currency in info.currencies

    def get_best_processor(self, currency: str, country: Optional[str] = None) -> PaymentProcessor:
        currency = (currency or "").upper()
        country = country.upper() if country else None
        table = self._preferences()
        candidates = []
        if country:
            candidates.append(table.get((currency, country)))
        candidates.append(table.get((currency, None)))

        for code in candidates:
            if code and self._usable(code, currency):
                logger.debug("payment_processor_selected", provider=code, currency=currency, country=country)
                return self.create_processor(code)
            if code:
                logger.info("payment_processor_skipped", provider=code, currency=currency, country=country)

        default = payment_settings.default_provider
        if self._usable(default, currency):
            logger.debug("payment_processor_default", provider=default, currency=currency, country=country)
            return self.create_processor(default)

        # default is disabled or cannot take this currency
        for code in self.registry.codes():
            if self._usable(code, currency):
                logger.info(
                    "payment_processor_fallback", provider=code, default=default, currency=currency, country=country
                )
                return self.create_processor(code)

        # nothing fits; the default still gets the chance to report its own error
        logger.warning("payment_processor_unmatched", provider=default, currency=currency, country=country)
        try:
            return self.create_processor(default)
        except UnsupportedProviderError as exc:
            raise PaymentConfigurationError(
                f"PAYMENT__DEFAULT_PROVIDER {default!r} is not a registered processor", provider=default
            ) from exc

    def list_processors(self) -> list[ProcessorInfo]:
        return [self.registry.info(code) for code in self.registry.codes()]


_factory: Optional[PaymentProcessorFactory] = None


def get_processor_factory() -> PaymentProcessorFactory:
    global _factory
    if _factory is None:
        _factory = PaymentProcessorFactory()
    return _factory


def create_processor(code: str) -> PaymentProcessor:
    return get_processor_factory().create_processor(code)


def get_best_processor(currency: str, country: Optional[str] = None) -> PaymentProcessor:
    return get_processor_factory().get_best_processor(currency, country)


def list_processors() -> list[ProcessorInfo]:
    return get_processor_factory().list_processors()


__all__ = [
    "ProcessorRegistry",
    "PaymentProcessorFactory",
    "registry",
    "get_processor_factory",
    "create_processor",
    "get_best_processor",
    "list_processors",
]
