"""
Provider routing by declared language and script evidence in the content.
Script evidence wins over the declared language.
"""
import logging
from typing import Iterable

logger = logging.getLogger(__name__)

# Unicode blocks whose presence routes to the regional provider
REGIONAL_SCRIPT_RANGES: tuple[tuple[int, int], ...] = (
    (0x0900, 0x097F),  # Devanagari
    (0x0980, 0x09FF),  # Bengali
    (0x0A00, 0x0A7F),  # Gurmukhi
    (0x0A80, 0x0AFF),  # Gujarati
    (0x0B00, 0x0B7F),  # Oriya
    (0x0B80, 0x0BFF),  # Tamil
    (0x0C00, 0x0C7F),  # Telugu
    (0x0C80, 0x0CFF),  # Kannada
    (0x0D00, 0x0D7F),  # Malayalam
    (0x0600, 0x06FF),  # Arabic (Urdu)
    (0x0750, 0x077F),  # Arabic Supplement
)


def has_regional_script(text: str) -> bool:
    for ch in text:
        cp = ord(ch)
        if cp < 0x0600:
            continue
        for lo, hi in REGIONAL_SCRIPT_RANGES:
            if lo <= cp <= hi:
                return True
    return False


class ProviderRouter:
    def __init__(
        self,
        default_provider: str,
        regional_provider: str,
        regional_languages: Iterable[str],
    ) -> None:
        self.default_provider = default_provider
        self.regional_provider = regional_provider
        self.regional_languages = frozenset(lang.strip().lower() for lang in regional_languages)

    @classmethod
    def from_settings(cls, settings) -> "ProviderRouter":
        return cls(
            default_provider=settings.default_music_provider,
            regional_provider=settings.regional_music_provider,
            regional_languages=settings.regional_languages_set,
        )

    def select(self, language: str | None, content: str) -> str:
        lang = (language or "").strip().lower()
        if lang in self.regional_languages:
            return self.regional_provider
        if has_regional_script(content or ""):
            if lang:
                logger.info(
                    "provider_route_script_override",
                    extra={"detail": lang, "provider": self.regional_provider},
                )
            return self.regional_provider
        return self.default_provider
