from unittest.mock import MagicMock

import pytest
from flask import Flask

from storage.bunny_storage_service import (
    BunnyStorageService, init_bunny_storage, close_bunny_storage, get_bunny_storage
)
from storage.exceptions import RemoteUploadError


@pytest.mark.parametrize("zone,key,pull_zone", [
    ("", "key", "cdn.example.com"),
    ("zone", None, "cdn.example.com"),
    ("zone", "CHANGE_ME_storage_password", "cdn.example.com"),
    ("zone", "key", ""),
])
def test_rejects_missing_credentials(zone, key, pull_zone):
    with pytest.raises(ValueError):
        BunnyStorageService(zone, key, pull_zone, session=MagicMock())


def test_client_sets_auth_headers_and_normalises_pull_zone(cdn, cdn_session):
    assert cdn_session.headers["AccessKey"] == "zone-access-key"
    assert cdn.pull_zone_url == "https://cdn.example.com"
    assert cdn.get_cdn_url("videos/a.mp4") == "https://cdn.example.com/videos/a.mp4"
    assert cdn.get_storage_url("videos/a.mp4") == "https://storage.example.com/coursehub-media/videos/a.mp4"


def test_upload_bytes_returns_object_details(cdn, cdn_session):
    uploaded = cdn.upload_bytes(b"abc", "cover.png", "thumbnails", "image/png")

    assert uploaded == {
        "url": "https://cdn.example.com/thumbnails/cover.png",
        "storage_url": "https://storage.example.com/coursehub-media/thumbnails/cover.png",
        "file_name": "cover.png",
        "folder": "thumbnails",
    }


def test_upload_bytes_without_folder_and_default_content_type(cdn, cdn_session):
    uploaded = cdn.upload_bytes(b"abc", "raw.bin")

    assert uploaded["url"] == "https://cdn.example.com/raw.bin"
    _, kwargs = cdn_session.put.call_args
    assert kwargs["headers"]["Content-Type"] == "application/octet-stream"


def test_upload_bytes_raises_on_rejected_upload(cdn, cdn_session):
    cdn_session.put.return_value.status_code = 401

    with pytest.raises(RemoteUploadError) as excinfo:
        cdn.upload_bytes(b"abc", "cover.png", "thumbnails")
    assert excinfo.value.status_code == 401


def test_delete_file(cdn, cdn_session):
    assert cdn.delete_file("cover.png", "thumbnails") is True
    cdn_session.delete.assert_called_once()
    assert cdn_session.delete.call_args[0][0].endswith("/coursehub-media/thumbnails/cover.png")

    cdn_session.delete.return_value.status_code = 404
    assert cdn.delete_file("missing.png", "thumbnails") is False


def test_list_files(cdn, cdn_session):
    listing = MagicMock()
    listing.json.return_value = [
        {"ObjectName": "video-1.mp4", "Length": 1024, "IsDirectory": False, "LastChanged": "2025-06-01T10:00:00"},
        {"ObjectName": "old", "Length": 0, "IsDirectory": True, "LastChanged": "2025-05-01T10:00:00"},
    ]
    cdn_session.get.return_value = listing

    files = cdn.list_files("videos")

    assert cdn_session.get.call_args[0][0] == "https://storage.example.com/coursehub-media/videos/"
    assert [f["file_name"] for f in files] == ["video-1.mp4", "old"]
    assert files[1]["is_directory"] is True


def test_init_without_credentials_leaves_cdn_unset():
    app = Flask(__name__)
    app.config.update(BUNNY_STORAGE_ZONE_NAME=None, BUNNY_STORAGE_PASSWORD=None, BUNNY_PULL_ZONE_URL=None)

    assert init_bunny_storage(app) is None
    assert get_bunny_storage(app) is None


def test_init_builds_client_from_app_config():
    app = Flask(__name__)
    app.config.update(
        BUNNY_STORAGE_ZONE_NAME="zone",
        BUNNY_STORAGE_PASSWORD="secret",
        BUNNY_PULL_ZONE_URL="https://media.example.com",
        BUNNY_STORAGE_API_URL="https://ny.storage.bunnycdn.com",
        CDN_UPLOAD_TIMEOUT=12,
    )

    service = init_bunny_storage(app)
    try:
        assert get_bunny_storage(app) is service
        assert service.storage_api_url == "https://ny.storage.bunnycdn.com"
        assert service.timeout == 12
    finally:
        close_bunny_storage(app)
    assert get_bunny_storage(app) is None


def test_close_releases_injected_client(cdn, cdn_session):
    app = Flask(__name__)
    init_bunny_storage(app, cdn)

    close_bunny_storage(app)

    cdn_session.close.assert_called_once()
