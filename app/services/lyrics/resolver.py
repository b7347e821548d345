"""
Lyrics resolution for requests without user-supplied lyrics.

Picks a template by keyword score against the prompt, expands it into the
length band for the requested duration and enforces the length bounds every
provider accepts. The bonus pack (prompt contains the trigger) is limited to
once per user per UTC day; the quota is consumed here, before any credit moves.
"""
import logging
import re
import zlib
from dataclasses import dataclass
from typing import Sequence

from app.services.generation.errors import QuotaError
from app.services.lyrics.library import (
    BONUS_PACK,
    FALLBACK,
    GENRE_KEYWORDS,
    LIBRARY,
    MOOD_KEYWORDS,
    LyricsTemplate,
)

logger = logging.getLogger(__name__)

# duration_class -> (min, max) characters
LENGTH_BANDS: dict[str, tuple[int, int]] = {
    "short": (150, 300),
    "medium": (250, 400),
    "long": (350, 400),
}

ELLIPSIS = "..."
_WORD_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ResolvedContent:
    text: str
    source: str  # user | library | bonus_pack | fallback
    template_id: str | None = None
    quota_day: str | None = None


def score_template(template: LyricsTemplate, prompt: str) -> int:
    """genre keyword x10, mood keyword x5, tag x3, shared content word x1."""
    text = prompt.lower()
    score = 10 * sum(1 for kw in GENRE_KEYWORDS.get(template.genre, ()) if kw in text)
    score += 5 * sum(1 for kw in MOOD_KEYWORDS.get(template.mood, ()) if kw in text)
    score += 3 * sum(1 for tag in template.tags if tag in text)
    lyrics = template.lyrics.lower()
    score += sum(1 for word in _WORD_RE.split(text) if len(word) > 3 and word in lyrics)
    return score


def pick_template(prompt: str, templates: Sequence[LyricsTemplate]) -> LyricsTemplate:
    """Highest score wins, first in library order on ties; no match -> stable pick by prompt hash."""
    best, best_score = templates[0], -1
    for template in templates:
        s = score_template(template, prompt)
        if s > best_score:
            best, best_score = template, s
    if best_score > 0:
        return best
    return templates[zlib.crc32(prompt.encode("utf-8")) % len(templates)]


def _sections(primary: str, duration_class: str) -> list[tuple[str, str]]:
    lines = [line for line in primary.splitlines() if line.strip()]
    sections = [("[Verse 2]", primary), ("[Chorus]", "\n".join(lines[:2]))]
    if duration_class == "long":
        sections.append(("[Bridge]", "\n".join(lines[-2:])))
        sections.append(("[Outro]", lines[0] if lines else primary))
    return sections


def cap_to_band(text: str, lo: int, hi: int) -> str:
    """Cut to at most hi chars, at a line break when that keeps at least lo."""
    if len(text) <= hi:
        return text
    cut = text[:hi]
    nl = cut.rfind("\n")
    if nl > 0:
        candidate = cut[:nl].rstrip()
        if len(candidate) >= lo:
            return candidate
    return cut


def hard_truncate(text: str, cap: int) -> str:
    if len(text) <= cap:
        return text
    return text[: cap - len(ELLIPSIS)].rstrip() + ELLIPSIS


def expand(primary: str, duration_class: str, hard_cap: int) -> str:
    lo, hi = LENGTH_BANDS.get(duration_class, LENGTH_BANDS["medium"])
    text = f"[Verse]\n{primary}"
    sections = _sections(primary, duration_class)
    expanded = False
    i = 0
    # Each pass adds at least one non-empty section; the bound only guards bad input
    while len(text) < lo and i < 50:
        header, body = sections[i % len(sections)]
        text = f"{text}\n\n{header}\n{body}"
        expanded = True
        i += 1
    if expanded:
        text = cap_to_band(text, lo, hi)
    return hard_truncate(text, hard_cap)


class ContentResolver:
    def __init__(
        self,
        quota_store,
        bonus_trigger: str = "#signature",
        min_chars: int = 10,
        hard_cap: int = 600,
        library: Sequence[LyricsTemplate] = LIBRARY,
        bonus_pack: Sequence[LyricsTemplate] = BONUS_PACK,
        fallback: LyricsTemplate = FALLBACK,
    ) -> None:
        self.quota_store = quota_store
        self.bonus_trigger = bonus_trigger.lower()
        self.min_chars = min_chars
        self.hard_cap = hard_cap
        self.library = tuple(library)
        self.bonus_pack = tuple(bonus_pack)
        self.fallback = fallback

    @classmethod
    def from_settings(cls, settings, quota_store) -> "ContentResolver":
        return cls(
            quota_store=quota_store,
            bonus_trigger=settings.bonus_pack_trigger,
            min_chars=settings.lyrics_min_chars,
            hard_cap=settings.lyrics_hard_cap,
        )

    def wants_bonus_pack(self, prompt: str) -> bool:
        return bool(self.bonus_trigger) and self.bonus_trigger in prompt.lower()

    def resolve(self, request) -> ResolvedContent:
        if request.creative_input:
            return ResolvedContent(text=hard_truncate(request.creative_input, self.hard_cap), source="user")

        quota_day = None
        if self.wants_bonus_pack(request.prompt) and self.bonus_pack:
            quota_day = self.quota_store.try_consume(request.user_id)
            if quota_day is None:
                logger.info("bonus_pack_quota_exhausted", extra={"user_id": request.user_id})
                raise QuotaError("Daily bonus pack already used. Try again tomorrow.")
            template, source = pick_template(request.prompt, self.bonus_pack), "bonus_pack"
        else:
            template, source = pick_template(request.prompt, self.library), "library"

        text = expand(template.lyrics, request.duration_class, self.hard_cap)
        if len(text.strip()) < self.min_chars:
            logger.warning("lyrics_degenerate_fallback", extra={"detail": template.id})
            template, source = self.fallback, "fallback"
            text = expand(template.lyrics, request.duration_class, self.hard_cap)

        return ResolvedContent(text=text, source=source, template_id=template.id, quota_day=quota_day)

    def release(self, content: ResolvedContent, user_id: str) -> None:
        """Give back the bonus pack quota when the request did not go ahead."""
        if content.quota_day:
            self.quota_store.release(user_id, content.quota_day)
