"""
Notification delivery and generation activity tracking.
Dispatched by CeleryNotifier; both tasks are safe to retry.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from app.core.celery_app import celery_app
from app.db.session import session_scope
from app.models.notification import Notification
from app.models.user_activity import UserActivity

logger = logging.getLogger(__name__)


def store_notification(db: Session, user_id: str, kind: str, data: dict[str, Any]) -> Notification:
    note = Notification(user_id=user_id, type=kind, data=data or {})
    db.add(note)
    db.commit()
    return note


def apply_generation_activity(db: Session, user_id: str, data: dict[str, Any], today: date | None = None) -> UserActivity:
    """Bump counters and the daily streak for one completed generation."""
    today = today or datetime.now(timezone.utc).date()
    activity = db.query(UserActivity).filter(UserActivity.user_id == user_id).with_for_update().one_or_none()
    if activity is None:
        activity = UserActivity(user_id=user_id, songs_generated=0, usage_counts={}, streak_days=0)
        db.add(activity)

    activity.songs_generated = (activity.songs_generated or 0) + 1
    counts = dict(activity.usage_counts or {})
    for key in ("genre", "model", "language"):
        value = data.get(key)
        if value:
            counts[f"{key}:{value}"] = counts.get(f"{key}:{value}", 0) + 1
    activity.usage_counts = counts

    last = activity.last_generation_on
    if last != today:
        if last is not None and (today - last).days == 1:
            activity.streak_days = (activity.streak_days or 0) + 1
        else:
            activity.streak_days = 1
        activity.last_generation_on = today
    db.commit()
    return activity


@celery_app.task(
    name="app.workers.tasks.notifications.deliver_notification",
    autoretry_for=(Exception,),
    retry_backoff=True,
    max_retries=3,
)
def deliver_notification(user_id: str, kind: str, data: dict) -> dict:
    with session_scope() as db:
        note = store_notification(db, user_id, kind, data)
        logger.info("notification_delivered", extra={"user_id": user_id, "detail": kind})
        return {"ok": True, "id": note.id}


@celery_app.task(
    name="app.workers.tasks.notifications.record_generation_activity",
    autoretry_for=(Exception,),
    retry_backoff=True,
    max_retries=3,
)
def record_generation_activity(user_id: str, event: str, data: dict) -> dict:
    if event != "music_generated":
        return {"ok": True, "skipped": event}
    with session_scope() as db:
        activity = apply_generation_activity(db, user_id, data or {})
        return {"ok": True, "songs_generated": activity.songs_generated, "streak_days": activity.streak_days}
