import os
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
import requests
from pydantic import ValidationError as SchemaValidationError

from storage.exceptions import StorageError
from storage.local_storage import LocalStorageService
from storage.upload_chain import UploadResult, generate_upload_filename, upload_with_fallback


VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + bytes(range(256)) * 4


def test_cdn_success_returns_cdn_result(cdn, cdn_session, local_storage, upload_folder):
    result = upload_with_fallback(VIDEO_BYTES, "video-1.mp4", "videos", "video/mp4", cdn, local_storage)

    assert result.success is True
    assert result.provider == "cdn"
    assert result.key == "video-1.mp4"
    assert result.url == "https://cdn.example.com/videos/video-1.mp4"

    args, kwargs = cdn_session.put.call_args
    assert args[0] == "https://storage.example.com/coursehub-media/videos/video-1.mp4"
    assert kwargs["data"] == VIDEO_BYTES
    assert kwargs["headers"]["Content-Type"] == "video/mp4"
    assert kwargs["timeout"] == 5
    # Nothing written locally when the CDN accepted the file
    assert not os.path.exists(upload_folder / "video-1.mp4")


def test_network_error_falls_back_to_identical_local_file(cdn, cdn_session, local_storage, upload_folder, caplog):
    cdn_session.put.side_effect = requests.ConnectionError("connection refused")

    with caplog.at_level("WARNING"):
        result = upload_with_fallback(VIDEO_BYTES, "video-2.mp4", "videos", "video/mp4", cdn, local_storage)

    assert result.success is True
    assert result.provider == "local"
    assert result.key == "video-2.mp4"
    assert result.url == "http://testserver/uploads/video-2.mp4"
    assert (upload_folder / "video-2.mp4").read_bytes() == VIDEO_BYTES
    assert any("falling back to local storage" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize("status_code", [200, 401, 404, 500, 503])
def test_non_created_status_falls_back(cdn, cdn_session, local_storage, upload_folder, status_code):
    cdn_session.put.return_value.status_code = status_code

    result = upload_with_fallback(b"thumb", "thumbnail-1.jpg", "thumbnails", "image/jpeg", cdn, local_storage)

    assert result.provider == "local"
    assert (upload_folder / "thumbnail-1.jpg").read_bytes() == b"thumb"


def test_slow_cdn_is_abandoned_after_timeout(cdn, cdn_session, local_storage, upload_folder):
    def slow_put(*args, **kwargs):
        time.sleep(1)
        return cdn_session.put.return_value

    cdn_session.put.side_effect = slow_put

    started = time.monotonic()
    result = upload_with_fallback(b"late", "audio-1.mp3", "audio", "audio/mpeg", cdn, local_storage, timeout=0.1)

    assert time.monotonic() - started < 0.9
    assert result.provider == "local"
    assert (upload_folder / "audio-1.mp3").read_bytes() == b"late"


def test_late_cdn_upload_is_removed_after_fallback(cdn, cdn_session, local_storage):
    deleted = threading.Event()

    def slow_put(*args, **kwargs):
        time.sleep(0.3)
        return cdn_session.put.return_value

    def delete(*args, **kwargs):
        deleted.set()
        return cdn_session.delete.return_value

    cdn_session.put.side_effect = slow_put
    cdn_session.delete.side_effect = delete

    result = upload_with_fallback(b"late", "video-9.mp4", "videos", "video/mp4", cdn, local_storage, timeout=0.05)

    assert result.provider == "local"
    assert deleted.wait(timeout=5)
    assert cdn_session.delete.call_args[0][0] == "https://storage.example.com/coursehub-media/videos/video-9.mp4"
    # The local copy the client was given stays
    assert local_storage.exists("video-9.mp4")


def test_failed_late_cdn_upload_needs_no_cleanup(cdn, cdn_session, local_storage):
    finished = threading.Event()

    def slow_failing_put(*args, **kwargs):
        time.sleep(0.3)
        finished.set()
        raise requests.ConnectionError("reset by peer")

    cdn_session.put.side_effect = slow_failing_put

    result = upload_with_fallback(b"late", "video-10.mp4", "videos", "video/mp4", cdn, local_storage, timeout=0.05)

    assert result.provider == "local"
    assert finished.wait(timeout=5)
    time.sleep(0.1)
    cdn_session.delete.assert_not_called()


def test_local_storage_exists_and_delete(local_storage, upload_folder):
    local_storage.save_bytes(b"notes", "document-2.pdf")

    assert local_storage.exists("document-2.pdf")
    assert local_storage.delete("document-2.pdf") is True
    assert not local_storage.exists("document-2.pdf")
    assert not (upload_folder / "document-2.pdf").exists()
    assert local_storage.delete("document-2.pdf") is False


def test_without_cdn_goes_straight_to_local(local_storage, upload_folder):
    result = upload_with_fallback(b"%PDF-1.4", "document-1.pdf", "documents", "application/pdf", None, local_storage)

    assert result.provider == "local"
    assert result.message == "Uploaded to local storage"
    assert (upload_folder / "document-1.pdf").read_bytes() == b"%PDF-1.4"


def test_empty_buffer_is_stored_as_zero_byte_file(cdn, cdn_session, local_storage, upload_folder):
    cdn_session.put.side_effect = requests.Timeout("timed out")

    result = upload_with_fallback(b"", "empty.bin", "videos", None, cdn, local_storage)

    assert result.provider == "local"
    assert (upload_folder / "empty.bin").exists()
    assert (upload_folder / "empty.bin").stat().st_size == 0


def test_local_failure_raises_storage_error(cdn, cdn_session, tmp_path):
    cdn_session.put.side_effect = requests.ConnectionError("down")
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    broken_local = LocalStorageService(str(blocker / "uploads"), "http://testserver", "/uploads")

    with pytest.raises(StorageError):
        upload_with_fallback(b"data", "video-3.mp4", "videos", "video/mp4", cdn, broken_local)


@pytest.mark.parametrize("file_name", ["videos/video.mp4", "..\\video.mp4", "", "../video.mp4", ".", ".."])
def test_rejects_names_that_are_not_plain_files(cdn, cdn_session, local_storage, file_name):
    with pytest.raises(ValueError):
        upload_with_fallback(b"data", file_name, "videos", "video/mp4", cdn, local_storage)
    # Rejected before the CDN is contacted
    cdn_session.put.assert_not_called()


def test_concurrent_fallbacks_share_directory_creation(cdn, cdn_session, local_storage, upload_folder):
    cdn_session.put.side_effect = requests.ConnectionError("down")

    def upload(index):
        return upload_with_fallback(f"part-{index}".encode(), f"track-{index}.wav", "multitracks",
                                    "audio/wav", cdn, local_storage)

    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(upload, range(16)))

    assert {r.provider for r in results} == {"local"}
    for index in range(16):
        assert (upload_folder / f"track-{index}.wav").read_bytes() == f"part-{index}".encode()


def test_upload_result_enforces_flat_key_and_absolute_url():
    with pytest.raises(SchemaValidationError):
        UploadResult(success=True, key="videos/a.mp4", url="https://cdn.example.com/videos/a.mp4",
                     provider="cdn", message="")
    with pytest.raises(SchemaValidationError):
        UploadResult(success=True, key="a.mp4", url="/uploads/a.mp4", provider="local", message="")
    with pytest.raises(SchemaValidationError):
        UploadResult(success=True, key="a.mp4", url="https://x/a.mp4", provider="s3", message="")


def test_generate_upload_filename():
    name = generate_upload_filename("video", "My Lesson.MOV", "mp4")
    assert re.fullmatch(r"video-\d{13}-\d+\.mov", name)

    assert generate_upload_filename("thumbnail", "cover", "jpg").endswith(".jpg")
    assert generate_upload_filename("audio", None, "mp3").endswith(".mp3")
    assert "/" not in generate_upload_filename("document", "../../etc/passwd.pdf", "pdf")
