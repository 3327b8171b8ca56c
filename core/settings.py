"""
支付渠道配置

环境变量示例::

    PAYMENT__DEFAULT_PROVIDER=stripe
    STRIPE__SECRET_KEY=sk_live_...
    PAYPAL__CLIENT_ID=... / PAYPAL__CLIENT_SECRET=... / PAYPAL__SANDBOX=false
    PREFERENCES='{"XOF:SN": "paypal"}'
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, NonNegativeInt, PositiveFloat
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaymentTimeouts(BaseModel):
    """单位：秒"""

    connect: PositiveFloat = 1.0
    read: PositiveFloat = 3.0
    write: PositiveFloat = 3.0
    total: PositiveFloat = 5.0


class PaymentRetry(BaseModel):
    # 首次请求之外的重试次数，仅针对网络层错误
    max: NonNegativeInt = 2
    base_backoff: PositiveFloat = 0.2


class StripeSettings(BaseModel):
    secret_key: Optional[str] = None
    api_version: Optional[str] = None


class PaypalSettings(BaseModel):
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    sandbox: bool = True
    live_base_url: str = "https://api-m.paypal.com"
    sandbox_base_url: str = "https://api-m.sandbox.paypal.com"
    # 买家批准订单后的回跳地址
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None

    @property
    def base_url(self) -> str:
        return self.sandbox_base_url if self.sandbox else self.live_base_url


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="stripe", validation_alias="PAYMENT__DEFAULT_PROVIDER")
    # "CUR" 或 "CUR:CC" -> 渠道，叠加在内置偏好表之上
    preferences: dict[str, str] = Field(default_factory=dict)
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    stripe: StripeSettings = Field(default_factory=StripeSettings)
    paypal: PaypalSettings = Field(default_factory=PaypalSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


payment_settings = PaymentSettings()
