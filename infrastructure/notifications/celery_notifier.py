"""Notifier adapter that hands emails to the Celery worker."""
from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

from core.logging_config import get_logger
from infrastructure.tasks.utils.dispatcher import TaskDispatcher


logger = get_logger(__name__)


def _jsonable(data: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v if v is None or isinstance(v, (str, int, float, bool)) else str(v) for k, v in data.items()}


class CeleryEmailNotifier:
    """Implements application.ports.notifications.Notifier; never raises."""

    def __init__(self, dispatcher: Optional[TaskDispatcher] = None) -> None:
        self._dispatcher = dispatcher or TaskDispatcher()

    async def send(self, recipient: str, template: str, data: Mapping[str, Any]) -> bool:
        if "@" not in (recipient or ""):
            logger.warning("notification_recipient_unresolved", recipient=recipient, template=template)
            return False
        try:
            await asyncio.to_thread(
                self._dispatcher.send_notification_email, recipient, template, _jsonable(data)
            )
        except Exception as exc:
            logger.error("notification_dispatch_failed", recipient=recipient, template=template, error=str(exc))
            return False
        logger.info("notification_dispatched", recipient=recipient, template=template)
        return True
