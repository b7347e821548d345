"""
Celery application: broker and result backend from settings.
Tasks: notification delivery, activity tracking, stale-job watchdog.
"""
from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

celery_app = Celery(
    "app",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.workers.tasks.notifications",
        "app.workers.tasks.watchdog",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=600,
    result_expires=86400,
    beat_schedule={
        "refund-stale-generation-jobs": {
            "task": "app.workers.tasks.watchdog.refund_stale_jobs",
            "schedule": crontab(minute="*/5"),
        },
    },
)

celery_app.conf.task_routes = {
    "app.workers.tasks.notifications.*": {"queue": "notifications"},
}
