"""
NDJSON progress channel between the generation thread and the HTTP response.
The job thread writes; the response generator drains. Once the transport has
detached (client gone) or the stream is closed, writes are dropped silently and
the job keeps running.
"""
import json
import logging
import queue
import threading
from typing import Any

logger = logging.getLogger(__name__)

_CLOSE = object()


class StreamEmitter:
    def __init__(self, job_id: str | None = None) -> None:
        self.job_id = job_id
        self._queue: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._detached = False
        self._closed = False
        self._disconnect_logged = False

    def emit(self, event: dict[str, Any]) -> bool:
        """Queue one JSON line. Returns False if the write was dropped."""
        line = json.dumps(event, default=str, ensure_ascii=False) + "\n"
        with self._lock:
            if self._detached or self._closed:
                return False
            self._queue.put(line)
            return True

    def started(self, job_id: str, **fields: Any) -> bool:
        return self.emit({"type": "started", "jobId": job_id, **fields})

    def result(self, success: bool, **fields: Any) -> bool:
        return self.emit({"type": "result", "success": success, **fields})

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_CLOSE)

    def detach(self) -> None:
        """Called by the HTTP layer when the client goes away."""
        with self._lock:
            if self._detached:
                return
            self._detached = True
            # Normal end of stream, not a disconnect
            if self._closed:
                return
        logger.info("stream_detached", extra={"job_id": self.job_id})

    def note_disconnect(self) -> bool:
        """True exactly once, the first time the poll loop sees a detached transport."""
        with self._lock:
            if self._detached and not self._disconnect_logged:
                self._disconnect_logged = True
                return True
            return False

    def next_line(self, timeout: float | None = None) -> str | None:
        """Blocking read for the response generator.
        Returns a line, "" on timeout (keep waiting), or None once closed."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return ""
        if item is _CLOSE:
            return None
        return item
