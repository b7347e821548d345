from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, Text

from app.db.base import Base, JSONType


class GenerationJob(Base):
    __tablename__ = "generation_jobs"

    job_id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    prompt = Column(Text, nullable=False)
    lyrics = Column(Text, nullable=True)
    lyrics_source = Column(String, nullable=True)  # user | library | bonus_pack | fallback
    language = Column(String, nullable=True)
    duration_class = Column(String, nullable=True)
    provider = Column(String, nullable=True)
    provider_job_id = Column(String, nullable=True)
    # JobState value; see app.services.generation.lifecycle
    status = Column(String, nullable=False, index=True)
    credits_reserved = Column(Integer, nullable=False, default=0)
    deduct_transaction_id = Column(String, nullable=True)
    error_code = Column(String, nullable=True)
    artifact_url = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    library_id = Column(String, nullable=True)
    params = Column(JSONType, nullable=False, default=dict)
    heartbeat_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
