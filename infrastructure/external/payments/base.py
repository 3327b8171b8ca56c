"""
网关客户端基类

HTTP 客户端复用、tenacity 重试、金额单位换算和状态映射放在这里；
子类只实现 create_charge / confirm_charge / refund_charge。
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from application.dtos.payments import Charge, ChargeConfirmation, PaymentData, ProcessorInfo, RefundOutcome
from core.logging_config import get_logger
from core.settings import PaymentRetry, PaymentTimeouts, payment_settings
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL


logger = get_logger(__name__)

# 无小数位币种：金额即最小单位
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "XOF", "XAF"})

# 只有网络层错误才重试；HTTP 4xx/5xx 由子类按响应体判断
RETRYABLE_TRANSPORT_ERRORS = (httpx.TimeoutException, httpx.TransportError)


class BasePaymentClient:
    provider: str = "base"
    display_name: str = "Base"
    supported_currencies: frozenset[str] = frozenset()
    supported_countries: frozenset[str] = frozenset()

    def __init__(
        self,
        *,
        timeouts: Optional[PaymentTimeouts] = None,
        retry: Optional[PaymentRetry] = None,
    ) -> None:
        self._timeouts = timeouts or payment_settings.timeouts
        self._retry_policy = retry or payment_settings.retry
        self._http: Optional[httpx.AsyncClient] = None

    @classmethod
    def is_configured(cls) -> bool:
        return False

    @classmethod
    def info(cls) -> ProcessorInfo:
        """不实例化客户端即可列出渠道能力"""
        return ProcessorInfo(
            code=cls.provider,
            name=cls.display_name,
            enabled=cls.is_configured(),
            currencies=sorted(cls.supported_currencies),
            countries=sorted(cls.supported_countries),
        )

    def describe(self) -> ProcessorInfo:
        return self.info()

    @property
    def timeouts(self) -> httpx.Timeout:
        t = self._timeouts
        return httpx.Timeout(t.total, connect=t.connect, read=t.read, write=t.write)

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeouts)

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = self._build_client()
        return self._http

    async def aclose(self) -> None:
        http, self._http = self._http, None
        if http is not None:
            await http.aclose()

    async def _retry(self, call: Callable[[], Awaitable[Any]]) -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_policy.max + 1),
            wait=wait_exponential(multiplier=self._retry_policy.base_backoff, min=0.1, max=2.0),
            retry=retry_if_exception_type(RETRYABLE_TRANSPORT_ERRORS),
            reraise=True,
        ):
            with attempt:
                return await call()

    async def create_charge(self, data: PaymentData) -> Charge:
        raise NotImplementedError

    async def confirm_charge(self, charge: Charge, data: PaymentData) -> ChargeConfirmation:
        raise NotImplementedError

    async def refund_charge(
        self,
        *,
        payment_intent_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
        amount: Optional[Decimal] = None,
        currency: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RefundOutcome:
        raise NotImplementedError

    @staticmethod
    def _exponent(currency: str) -> int:
        return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2

    @classmethod
    def _to_minor(cls, amount: Decimal, currency: str) -> int:
        """12.34 EUR -> 1234；1500 JPY -> 1500"""
        return int(Decimal(amount).scaleb(cls._exponent(currency)).to_integral_value())

    @classmethod
    def _to_major_str(cls, amount: Decimal, currency: str) -> str:
        return str(Decimal(amount).quantize(Decimal(1).scaleb(-cls._exponent(currency))))

    def _map_status(self, provider_status: str) -> str:
        return PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {}).get(provider_status, provider_status)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(event, provider=self.provider, **kwargs)
