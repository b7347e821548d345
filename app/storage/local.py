"""
Filesystem artifact storage served under public_media_base_url.
Layout: {base}/users/{user_id}/{category}/{timestamp}-{filename}
"""
import logging
import os
import re
import time
from typing import Any

import httpx
from sqlalchemy.orm import Session

from app.models.library_item import LibraryItem
from app.storage.base import ArtifactPersister, StoreResult

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")
_CATALOG_FIELDS = {c for c in LibraryItem.__table__.columns.keys() if c not in ("id", "created_at")}


def safe_filename(name: str, max_len: int = 80) -> str:
    cleaned = _UNSAFE.sub("-", name).strip("-.") or "artifact"
    return cleaned[:max_len]


class LocalArtifactPersister(ArtifactPersister):
    def __init__(
        self,
        db: Session,
        base_path: str,
        public_base_url: str,
        timeout: float = 120.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.db = db
        self.base_path = base_path
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _relative_path(self, user_id: str, category: str, filename: str) -> str:
        return "/".join(
            ["users", safe_filename(user_id), safe_filename(category), f"{int(time.time() * 1000)}-{safe_filename(filename)}"]
        )

    def store(self, source_url: str, user_id: str, category: str, filename: str) -> StoreResult:
        rel = self._relative_path(user_id, category, filename)
        dest = os.path.join(self.base_path, *rel.split("/"))
        tmp = f"{dest}.part"
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            with httpx.Client(timeout=self.timeout, follow_redirects=True, transport=self.transport) as client:
                with client.stream("GET", source_url) as response:
                    response.raise_for_status()
                    with open(tmp, "wb") as f:
                        for chunk in response.iter_bytes():
                            f.write(chunk)
            if os.path.getsize(tmp) == 0:
                raise ValueError("downloaded artifact is empty")
            os.replace(tmp, dest)
        except (httpx.HTTPError, OSError, ValueError) as e:
            if os.path.exists(tmp):
                os.remove(tmp)
            logger.error("artifact_store_failed", extra={"user_id": user_id, "error": str(e)[:300], "detail": category})
            return StoreResult(success=False, error=str(e))
        return StoreResult(success=True, public_url=f"{self.public_base_url}/{rel}")

    def write_catalog_record(self, fields: dict[str, Any]) -> str:
        item = LibraryItem(**{k: v for k, v in fields.items() if k in _CATALOG_FIELDS})
        try:
            self.db.add(item)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("library_item_created", extra={"user_id": item.user_id, "job_id": item.job_id, "library_id": item.id})
        return item.id
