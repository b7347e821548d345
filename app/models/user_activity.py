from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Integer, String

from app.db.base import Base, JSONType


class UserActivity(Base):
    """Per-user generation counters and daily streak (quest progress input)."""

    __tablename__ = "user_activity"

    user_id = Column(String, primary_key=True)
    songs_generated = Column(Integer, nullable=False, default=0)
    # {"genre:lofi": 3, "model:minimax/music-1.5": 5}
    usage_counts = Column(JSONType, nullable=False, default=dict)
    last_generation_on = Column(Date, nullable=True)
    streak_days = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
