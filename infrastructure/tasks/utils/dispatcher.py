"""Notifier 与 Celery 之间的薄层，测试中可替换"""
from __future__ import annotations

from typing import Any


class TaskDispatcher:
    def send_notification_email(self, recipient: str, template: str, data: dict[str, Any]) -> None:
        """投递邮件任务；eager 模式下同步执行"""
        from ..tasks.email import send_notification_email

        send_notification_email.apply_async(
            kwargs={"recipient": recipient, "template": template, "data": data},
        )
