"""Celery 任务基类"""
from __future__ import annotations

from celery import Task

from core.logging_config import get_logger

logger = get_logger(__name__)


class BaseTask(Task):
    """统一记录任务结果；kwargs 里可能有收件人等敏感字段，只记录键名"""

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.error(
            "notification_task_failed",
            task_id=task_id,
            task_name=self.name,
            kwarg_keys=sorted(kwargs or {}),
            error=str(exc),
            error_type=type(exc).__name__,
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.warning(
            "notification_task_retry",
            task_id=task_id,
            task_name=self.name,
            retries=self.request.retries,
            error=str(exc),
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval, task_id, args, kwargs):  # type: ignore[override]
        logger.info("notification_task_succeeded", task_id=task_id, task_name=self.name)
        super().on_success(retval, task_id, args, kwargs)
