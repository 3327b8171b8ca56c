"""
网关侧异常

- PaymentProviderError：网关返回了无法恢复的错误（参数被拒、鉴权以外的 4xx）
- PaymentRecoverableError：超时、限流、5xx，调用方可以稍后重试
- PaymentConfigurationError：凭据或 SDK 缺失，属于部署问题
拒付（PaymentDeclinedError）属于领域异常，定义在 domain.payment.exceptions。
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class _GatewayError(BusinessException):
    code_value: int = PaymentCode.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(
            code=self.code_value,
            message=message,
            error_type=type(self).__name__,
            details={"provider": provider, "provider_code": provider_code, **(details or {})},
        )
        self.provider = provider
        self.provider_code = provider_code


class PaymentProviderError(_GatewayError):
    code_value = PaymentCode.PROVIDER_ERROR


class PaymentRecoverableError(_GatewayError):
    code_value = PaymentCode.PROVIDER_RECOVERABLE


class PaymentConfigurationError(_GatewayError):
    code_value = PaymentCode.CONFIGURATION_ERROR


class UnsupportedProviderError(BusinessException):
    def __init__(self, provider: str):
        super().__init__(
            code=PaymentCode.UNSUPPORTED_PROVIDER,
            message=f"Unsupported payment provider: {provider}",
            error_type="UnsupportedProvider",
            details={"provider": provider},
            field="provider",
        )
