"""
Structlog 日志配置

structlog 与标准库 logging 共用一条处理链（ProcessorFormatter），
DEBUG 下输出彩色控制台，其它环境输出 JSON。支付凭据类字段在渲染前脱敏。
"""
import json
import logging
from typing import Any, List

import structlog
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import ProcessorFormatter

from core.config import settings


# Keys whose values must never reach log sinks verbatim
SENSITIVE_LOG_KEYS = frozenset({
    "payment_method_id", "client_secret", "secret_key", "password", "access_token", "recipient",
})

# Third-party loggers that are chatty at DEBUG/INFO
NOISY_LOGGERS = ("httpx", "httpcore", "stripe", "sqlalchemy.engine", "celery.app.trace")


def mask_value(value: Any) -> Any:
    """Keep a 4-char suffix for correlation, hide the rest."""
    if isinstance(value, str) and len(value) > 4:
        return "***" + value[-4:]
    return "***" if value else value


def mask_sensitive_values(_logger: Any, _method: str, event_dict: dict) -> dict:
    for key in SENSITIVE_LOG_KEYS.intersection(event_dict):
        event_dict[key] = mask_value(event_dict[key])
    return event_dict


def add_service_context(_logger: Any, _method: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", settings.PROJECT_NAME)
    event_dict.setdefault("environment", settings.ENVIRONMENT)
    return event_dict


def get_renderer() -> Any:
    if settings.DEBUG:
        return ConsoleRenderer(colors=True)

    # structlog passes default/sort_keys through to the serializer
    def _dumps(obj, default=None, **kwargs):
        return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)
    return JSONRenderer(serializer=_dumps)


def configure_logging() -> None:
    """配置 structlog 并桥接标准库 logging 到同一处理链。"""
    shared_pre_chain: List[Any] = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso", utc=True),
        mask_sensitive_values,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if not settings.DEBUG:
        shared_pre_chain.insert(1, add_service_context)

    structlog.configure(
        processors=[*shared_pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = ProcessorFormatter(
        foreign_pre_chain=shared_pre_chain,
        processors=[ProcessorFormatter.remove_processors_meta, get_renderer()],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if settings.DEBUG else logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


configure_logging()
