"""
Optional cover image for a persisted song.
Billed and refunded on its own job id ("{job_id}:cover"); whatever happens here
never touches the song's own deduction or result.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable

from app.services.credits.ledger import CreditLedger
from app.services.generation.base import ProviderJobStatus
from app.services.generation.errors import PersistenceError, ProviderError, ProviderTimeoutError
from app.services.generation.output import normalize_output
from app.services.generation.providers.replicate import ReplicateProvider
from app.storage.base import ArtifactPersister
from app.storage.local import safe_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoverArtResult:
    image_url: str | None
    balance_after: int | None
    library_id: str | None = None


def cover_prompt(prompt: str, genre: str | None) -> str:
    return f"{prompt} music album cover art, {genre or 'modern'} style, professional music artwork, vibrant colors"


class CoverArtGenerator:
    def __init__(
        self,
        client: ReplicateProvider,
        ledger: CreditLedger,
        persister: ArtifactPersister,
        price: int,
        poll_interval: float = 1.0,
        max_attempts: int = 40,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.ledger = ledger
        self.persister = persister
        self.price = price
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.sleep = sleep

    def generate(self, job_id: str, user_id: str, title: str, prompt: str, genre: str | None, known_balance: int | None) -> CoverArtResult | None:
        """Returns None when nothing was charged (balance too low or deduction refused).
        The ledger balance is read again here; known_balance is used only when the ledger has none."""
        current = self.ledger.balance(user_id)
        if current is None:
            current = known_balance
        if current is None or current < self.price:
            logger.info("cover_art_skipped_balance", extra={"job_id": job_id, "balance_after": current})
            return None

        cover_job_id = f"{job_id}:cover"
        image_prompt = cover_prompt(prompt, genre)
        deduction = self.ledger.deduct(
            user_id, self.price, cover_job_id, f"Cover art: {title}", {"prompt": image_prompt, "parent_job_id": job_id}
        )
        if not deduction.success:
            logger.info("cover_art_deduct_refused", extra={"job_id": job_id, "reason": deduction.error_message})
            return None

        try:
            image_url = self._render(image_prompt)
            stored = self.persister.store(image_url, user_id, "images", f"{safe_filename(title[:30])}-cover.jpg")
            if not stored.success:
                raise PersistenceError(stored.error or "cover image store failed")
            library_id = self.persister.write_catalog_record({
                "user_id": user_id,
                "job_id": cover_job_id,
                "media_type": "image",
                "title": title,
                "prompt": image_prompt,
                "media_url": stored.public_url,
                "generation_params": {"model": self.client.model, "parent_job_id": job_id},
            })
        except Exception as e:
            logger.warning("cover_art_failed", extra={"job_id": job_id, "error": str(e)[:300]})
            reason = getattr(e, "refund_reason", "generation_failed")
            try:
                refund = self.ledger.refund(user_id, self.price, reason, {"error": str(e)[:500]}, cover_job_id)
            except Exception:
                logger.exception("cover_art_refund_error", extra={"job_id": job_id})
                return CoverArtResult(image_url=None, balance_after=deduction.new_balance)
            balance = refund.new_balance if refund.success else deduction.new_balance
            return CoverArtResult(image_url=None, balance_after=balance)

        logger.info("cover_art_persisted", extra={"job_id": job_id, "library_id": library_id})
        return CoverArtResult(image_url=stored.public_url, balance_after=deduction.new_balance, library_id=library_id)

    def _render(self, image_prompt: str) -> str:
        handle = self.client.submit_prediction(
            self.client.model,
            {
                "prompt": image_prompt,
                "width": 1024,
                "height": 1024,
                "output_format": "jpg",
                "output_quality": 100,
                "guidance_scale": 0,
                "num_inference_steps": 8,
            },
        )
        for _ in range(self.max_attempts):
            status = self.client.get_status(handle)
            if status.status == ProviderJobStatus.SUCCEEDED:
                return normalize_output(status.output).url
            if status.status.is_terminal:
                raise ProviderError(status.error or f"cover art {status.status.value}")
            self.sleep(self.poll_interval)
        raise ProviderTimeoutError("cover art timed out")
