"""
Request validation for song generation.
Raw JSON (camelCase or snake_case keys) in, frozen GenerationRequest out.
The first violated constraint is raised as GenerationValidationError(field, message).
"""
from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.services.generation.errors import GenerationValidationError

DURATION_CLASSES = ("short", "medium", "long")
AUDIO_FORMATS = ("mp3", "wav", "flac")
SAMPLE_RATES = (16000, 24000, 32000, 44100)
BITRATES = (32000, 64000, 128000, 256000)


@dataclass(frozen=True)
class GenerationRequest:
    user_id: str
    title: str
    prompt: str
    creative_input: str | None
    duration_class: str = "medium"
    language: str = "english"
    audio_format: str = "mp3"
    sample_rate: int = 44100
    bitrate: int = 256000
    genre: str | None = None
    bpm: int | None = None
    generate_cover_art: bool = False


def _length(field: str, value: str, lo: int, hi: int) -> str:
    if not lo <= len(value) <= hi:
        raise ValueError(f"{field} length must be {lo}-{hi}")
    return value


class GenerationRequestIn(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str
    prompt: str
    creative_input: str | None = Field(
        default=None, validation_alias=AliasChoices("creative_input", "creativeInput", "lyrics")
    )
    duration_class: str = Field(
        default="medium", validation_alias=AliasChoices("duration_class", "durationClass", "duration")
    )
    language: str = "english"
    audio_format: str = Field(default="mp3", validation_alias=AliasChoices("audio_format", "audioFormat"))
    sample_rate: int = Field(default=44100, validation_alias=AliasChoices("sample_rate", "sampleRate"))
    bitrate: int = 256000
    genre: str | None = None
    bpm: int | None = None
    generate_cover_art: bool = Field(
        default=False, validation_alias=AliasChoices("generate_cover_art", "generateCoverArt")
    )

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise ValueError("title is required")
        return _length("title", v.strip(), 3, 100)

    @field_validator("prompt", mode="before")
    @classmethod
    def check_prompt(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise ValueError("prompt is required")
        return _length("prompt", v.strip(), 10, 300)

    @field_validator("creative_input", mode="before")
    @classmethod
    def check_creative_input(cls, v: Any) -> str | None:
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("creative_input must be text")
        v = v.strip()
        # Blank means "pick lyrics for me"
        if not v:
            return None
        return _length("creative_input", v, 10, 600)

    @field_validator("duration_class", mode="before")
    @classmethod
    def check_duration_class(cls, v: Any) -> str:
        v = str(v or "medium").strip().lower()
        if v not in DURATION_CLASSES:
            raise ValueError(f"duration_class must be one of {', '.join(DURATION_CLASSES)}")
        return v

    @field_validator("language", mode="before")
    @classmethod
    def normalize_language(cls, v: Any) -> str:
        v = str(v or "english").strip().lower()
        if len(v) > 32:
            raise ValueError("language length must be 1-32")
        return v

    @field_validator("audio_format", mode="before")
    @classmethod
    def check_audio_format(cls, v: Any) -> str:
        v = str(v or "mp3").strip().lower()
        if v not in AUDIO_FORMATS:
            raise ValueError(f"audio_format must be one of {', '.join(AUDIO_FORMATS)}")
        return v

    @field_validator("sample_rate")
    @classmethod
    def check_sample_rate(cls, v: int) -> int:
        if v not in SAMPLE_RATES:
            raise ValueError(f"sample_rate must be one of {', '.join(map(str, SAMPLE_RATES))}")
        return v

    @field_validator("bitrate")
    @classmethod
    def check_bitrate(cls, v: int) -> int:
        if v not in BITRATES:
            raise ValueError(f"bitrate must be one of {', '.join(map(str, BITRATES))}")
        return v

    @field_validator("genre", mode="before")
    @classmethod
    def check_genre(cls, v: Any) -> str | None:
        if v is None:
            return None
        v = str(v).strip()
        if not v:
            return None
        if len(v) > 50:
            raise ValueError("genre length must be 1-50")
        return v

    @field_validator("bpm")
    @classmethod
    def check_bpm(cls, v: int | None) -> int | None:
        if v is not None and not 40 <= v <= 240:
            raise ValueError("bpm must be 40-240")
        return v


_ALIASES = {
    "creativeInput": "creative_input",
    "lyrics": "creative_input",
    "durationClass": "duration_class",
    "duration": "duration_class",
    "audioFormat": "audio_format",
    "sampleRate": "sample_rate",
    "generateCoverArt": "generate_cover_art",
}


def _first_error(exc: ValidationError) -> GenerationValidationError:
    err = exc.errors()[0]
    loc = err.get("loc") or ("request",)
    field = _ALIASES.get(str(loc[0]), str(loc[0]))
    if err.get("type") == "missing":
        return GenerationValidationError(field, f"{field} is required")
    message = str(err.get("msg", "invalid value"))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return GenerationValidationError(field, message)


def validate_generation_request(raw: Any, user_id: str) -> GenerationRequest:
    """Pure: no I/O. Raises GenerationValidationError on the first bad field."""
    if not user_id or not str(user_id).strip():
        raise GenerationValidationError("user_id", "user_id is required")
    if not isinstance(raw, dict):
        raise GenerationValidationError("body", "request body must be a JSON object")
    try:
        parsed = GenerationRequestIn.model_validate(raw)
    except ValidationError as e:
        raise _first_error(e) from None
    return GenerationRequest(
        user_id=str(user_id).strip(),
        title=parsed.title,
        prompt=parsed.prompt,
        creative_input=parsed.creative_input,
        duration_class=parsed.duration_class,
        language=parsed.language,
        audio_format=parsed.audio_format,
        sample_rate=parsed.sample_rate,
        bitrate=parsed.bitrate,
        genre=parsed.genre,
        bpm=parsed.bpm,
        generate_cover_art=parsed.generate_cover_art,
    )
