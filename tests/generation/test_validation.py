"""Tests for validate_generation_request: bounds, aliases, first-error reporting."""
import pytest

from app.services.generation.errors import GenerationValidationError
from app.services.generation.validation import validate_generation_request


def _raw(**kwargs):
    raw = {"title": "Night Drive", "prompt": "lofi beats for a rainy night"}
    raw.update(kwargs)
    return raw


def _error(raw, user_id="user-1"):
    with pytest.raises(GenerationValidationError) as exc:
        validate_generation_request(raw, user_id)
    return exc.value


class TestDefaults:
    def test_minimal_request(self):
        req = validate_generation_request(_raw(), "user-1")
        assert req.user_id == "user-1"
        assert req.creative_input is None
        assert req.duration_class == "medium"
        assert req.language == "english"
        assert req.audio_format == "mp3"
        assert req.sample_rate == 44100
        assert req.bitrate == 256000
        assert req.generate_cover_art is False

    def test_camel_case_aliases(self):
        req = validate_generation_request(
            _raw(creativeInput="Ten chars or more", durationClass="LONG", audioFormat="WAV", sampleRate=24000, generateCoverArt=True),
            "user-1",
        )
        assert req.creative_input == "Ten chars or more"
        assert req.duration_class == "long"
        assert req.audio_format == "wav"
        assert req.sample_rate == 24000
        assert req.generate_cover_art is True

    def test_lyrics_alias(self):
        req = validate_generation_request(_raw(lyrics="  some lyrics here  "), "user-1")
        assert req.creative_input == "some lyrics here"

    def test_blank_creative_input_means_none(self):
        req = validate_generation_request(_raw(creative_input="   "), "user-1")
        assert req.creative_input is None

    def test_title_and_prompt_are_trimmed(self):
        req = validate_generation_request(_raw(title="  Night Drive  "), "user-1")
        assert req.title == "Night Drive"

    def test_unknown_keys_ignored(self):
        req = validate_generation_request(_raw(model="whatever"), "user-1")
        assert req.title == "Night Drive"


class TestBounds:
    @pytest.mark.parametrize("title", ["ab", "x" * 101])
    def test_title_length(self, title):
        err = _error(_raw(title=title))
        assert err.field == "title"
        assert err.message == "title length must be 3-100"

    def test_title_boundaries_accepted(self):
        validate_generation_request(_raw(title="abc"), "u")
        validate_generation_request(_raw(title="x" * 100), "u")

    @pytest.mark.parametrize("prompt", ["too short", "x" * 301])
    def test_prompt_length(self, prompt):
        err = _error(_raw(prompt=prompt))
        assert err.field == "prompt"
        assert "10-300" in err.message

    def test_creative_input_too_long(self):
        err = _error(_raw(creativeInput="x" * 601))
        assert err.field == "creative_input"
        assert "10-600" in err.message

    def test_creative_input_too_short(self):
        err = _error(_raw(creative_input="short"))
        assert err.field == "creative_input"

    def test_bad_duration_class(self):
        err = _error(_raw(duration="epic"))
        assert err.field == "duration_class"

    def test_bad_audio_format(self):
        assert _error(_raw(audio_format="ogg")).field == "audio_format"

    def test_bad_sample_rate(self):
        assert _error(_raw(sampleRate=48000)).field == "sample_rate"

    def test_bad_bitrate(self):
        assert _error(_raw(bitrate=320000)).field == "bitrate"

    @pytest.mark.parametrize("bpm", [39, 241])
    def test_bpm_range(self, bpm):
        assert _error(_raw(bpm=bpm)).field == "bpm"

    def test_bpm_in_range(self):
        assert validate_generation_request(_raw(bpm=240), "u").bpm == 240

    def test_genre_too_long(self):
        assert _error(_raw(genre="g" * 51)).field == "genre"


class TestMissing:
    def test_missing_title(self):
        err = _error({"prompt": "lofi beats for a rainy night"})
        assert err.field == "title"
        assert err.message == "title is required"

    def test_missing_prompt(self):
        err = _error({"title": "Night Drive"})
        assert err.field == "prompt"

    def test_missing_user(self):
        err = _error(_raw(), user_id="")
        assert err.field == "user_id"

    def test_non_object_body(self):
        err = _error(["not", "an", "object"])
        assert err.field == "body"

    def test_to_dict(self):
        err = _error(_raw(title="ab"))
        assert err.to_dict() == {"error": "title length must be 3-100", "field": "title"}
