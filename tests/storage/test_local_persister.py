"""Tests for LocalArtifactPersister: download into storage, catalog record."""
import os

import httpx
import pytest
import respx

from app.models.library_item import LibraryItem
from app.storage.local import LocalArtifactPersister, safe_filename

SOURCE = "https://cdn.example/tmp/song.mp3"


@pytest.fixture
def persister(db, tmp_path):
    return LocalArtifactPersister(db, base_path=str(tmp_path), public_base_url="https://media.example/media/")


def _local_path(tmp_path, public_url):
    rel = public_url.split("/media/", 1)[1]
    return os.path.join(str(tmp_path), *rel.split("/"))


class TestStore:
    @respx.mock
    def test_downloads_to_user_directory(self, persister, tmp_path):
        respx.get(SOURCE).mock(return_value=httpx.Response(200, content=b"ID3audio-bytes"))

        result = persister.store(SOURCE, "user-1", "music", "Night Drive.mp3")

        assert result.success is True
        assert result.public_url.startswith("https://media.example/media/users/user-1/music/")
        assert result.public_url.endswith("-Night-Drive.mp3")
        path = _local_path(tmp_path, result.public_url)
        with open(path, "rb") as f:
            assert f.read() == b"ID3audio-bytes"
        assert not os.path.exists(f"{path}.part")

    @respx.mock
    def test_http_error_returns_failure(self, persister, tmp_path):
        respx.get(SOURCE).mock(return_value=httpx.Response(404))
        result = persister.store(SOURCE, "user-1", "music", "a.mp3")
        assert result.success is False
        assert result.public_url is None
        music_dir = tmp_path / "users" / "user-1" / "music"
        assert list(music_dir.iterdir()) == []

    @respx.mock
    def test_empty_download_is_failure(self, persister):
        respx.get(SOURCE).mock(return_value=httpx.Response(200, content=b""))
        result = persister.store(SOURCE, "user-1", "music", "a.mp3")
        assert result.success is False
        assert "empty" in result.error

    @respx.mock
    def test_transport_error_is_failure(self, persister):
        respx.get(SOURCE).mock(side_effect=httpx.ConnectError("refused"))
        assert persister.store(SOURCE, "user-1", "music", "a.mp3").success is False


class TestCatalog:
    def test_writes_library_item(self, persister, db):
        library_id = persister.write_catalog_record({
            "user_id": "user-1",
            "job_id": "job-1",
            "media_type": "audio",
            "title": "Night Drive",
            "media_url": "https://media.example/media/users/user-1/music/1-a.mp3",
            "generation_params": {"provider": "replicate"},
            "not_a_column": "dropped",
        })
        item = db.get(LibraryItem, library_id)
        assert item.job_id == "job-1"
        assert item.generation_params == {"provider": "replicate"}

    def test_missing_required_field_raises(self, persister):
        with pytest.raises(Exception):
            persister.write_catalog_record({"user_id": "user-1", "media_type": "audio"})


def test_safe_filename():
    assert safe_filename("../../etc/passwd") == "etc-passwd"
    assert safe_filename("...") == "artifact"
