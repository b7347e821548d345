"""
Best-effort user notifications and activity tracking.
Nothing here may raise into the caller: a broker outage must not change a job outcome.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)

DELIVER_TASK = "app.workers.tasks.notifications.deliver_notification"
ACTIVITY_TASK = "app.workers.tasks.notifications.record_generation_activity"


class Notifier(ABC):
    @abstractmethod
    def notify_complete(self, user_id: str, library_id: str, media_type: str, title: str) -> None:
        pass

    @abstractmethod
    def notify_failed(self, user_id: str, media_type: str, title: str, reason: str) -> None:
        pass

    @abstractmethod
    def notify_credit_change(self, user_id: str, amount: int, description: str) -> None:
        pass

    @abstractmethod
    def track_activity(self, user_id: str, event: str, data: dict[str, Any]) -> None:
        pass


class CeleryNotifier(Notifier):
    """Dispatches Celery tasks; dispatch errors are logged and dropped."""

    def __init__(self, celery=None) -> None:
        if celery is None:
            from app.core.celery_app import celery_app as celery
        self.celery = celery

    def _send(self, task: str, *args: Any) -> None:
        try:
            self.celery.send_task(task, args=list(args))
        except Exception as e:
            logger.warning("notification_dispatch_failed", extra={"detail": task, "error": str(e)[:200]})

    def notify_complete(self, user_id, library_id, media_type, title):
        self._send(DELIVER_TASK, user_id, "generation_complete", {"library_id": library_id, "media_type": media_type, "title": title})

    def notify_failed(self, user_id, media_type, title, reason):
        self._send(DELIVER_TASK, user_id, "generation_failed", {"media_type": media_type, "title": title, "reason": reason})

    def notify_credit_change(self, user_id, amount, description):
        self._send(DELIVER_TASK, user_id, "credit_deduct" if amount < 0 else "credit_refund", {"amount": amount, "description": description})

    def track_activity(self, user_id, event, data):
        self._send(ACTIVITY_TASK, user_id, event, data)
