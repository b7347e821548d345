from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from app.db.base import Base, JSONType


class LibraryItem(Base):
    """Catalog record for a stored artifact (song or cover image)."""

    __tablename__ = "library_items"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    job_id = Column(String, nullable=True, index=True)
    media_type = Column(String, nullable=False)  # audio | image
    title = Column(String, nullable=True)
    prompt = Column(Text, nullable=True)
    lyrics = Column(Text, nullable=True)
    media_url = Column(String, nullable=False)
    audio_format = Column(String, nullable=True)
    sample_rate = Column(Integer, nullable=True)
    bitrate = Column(Integer, nullable=True)
    genre = Column(String, nullable=True)
    generation_params = Column(JSONType, nullable=False, default=dict)
    is_public = Column(Boolean, nullable=False, default=False)
    status = Column(String, nullable=False, default="ready")
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
