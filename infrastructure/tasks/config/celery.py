"""Celery 应用：目前只承载通知邮件投递"""
from __future__ import annotations

import os

from celery import Celery
from kombu import Queue

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

TASK_PACKAGES = ("infrastructure.tasks.tasks",)
EAGER_ENVIRONMENTS = {"development", "dev", "test", "testing"}

celery_app = Celery("diaspora_payments")

celery_app.conf.update(
    broker_url=settings.redis.url or os.getenv("CELERY_BROKER_URL"),
    result_backend=settings.redis.url or os.getenv("CELERY_RESULT_BACKEND"),
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # 邮件发送失败时允许重投
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,
    worker_prefetch_multiplier=1,
    task_default_queue="notifications",
    task_default_retry_delay=30,
    task_queues=(Queue("notifications"),),
    task_routes={"infrastructure.tasks.tasks.email.*": {"queue": "notifications"}},
    imports=TASK_PACKAGES,
)

# 开发/测试环境同步执行，不需要 broker
celery_app.conf.task_always_eager = (settings.ENVIRONMENT or "").lower() in EAGER_ENVIRONMENTS

celery_app.autodiscover_tasks(packages=TASK_PACKAGES)


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    logger.info(
        "celery_configured",
        broker=sender.conf.broker_url,
        eager=bool(sender.conf.task_always_eager),
    )
