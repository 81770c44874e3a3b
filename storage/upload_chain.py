"""
CDN-first upload with local fallback.

Every upload path in the API goes through `upload_with_fallback`, which always
answers with the same `UploadResult` shape whichever provider stored the file.
"""

import random
import time
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Optional, Literal

from pydantic import BaseModel, validator

from storage.bunny_storage_service import BunnyStorageService
from storage.exceptions import StorageError
from storage.local_storage import LocalStorageService

logger = logging.getLogger(__name__)


class UploadResult(BaseModel):
    success: bool
    key: str
    url: str
    provider: Literal["cdn", "local"]
    message: str

    @validator('key')
    def key_must_be_flat(cls, v):
        if not v or '/' in v or '\\' in v:
            raise ValueError('key must be a plain file name')
        return v

    @validator('url')
    def url_must_be_absolute(cls, v):
        if not v.startswith(('http://', 'https://')):
            raise ValueError('url must be an absolute http(s) URL')
        return v


def generate_upload_filename(prefix: str, original_name: Optional[str] = None, default_extension: str = "bin") -> str:
    """Timestamp-qualified name like video-1718000000000-123456789.mp4"""
    extension = default_extension
    if original_name and '.' in original_name:
        candidate = original_name.rsplit('.', 1)[1].lower()
        if candidate.isalnum():
            extension = candidate
    timestamp = int(time.time() * 1000)
    suffix = random.randint(0, 10 ** 9)
    return f"{prefix}-{timestamp}-{suffix}.{extension}"


def _discard_late_upload(cdn: BunnyStorageService, file_name: str, folder: str):
    """Done-callback for an abandoned attempt: remove the CDN copy if it landed after all"""
    def _callback(future):
        if future.cancelled() or future.exception() is not None:
            return
        try:
            deleted = cdn.delete_file(file_name, folder)
        except Exception as e:
            logger.error(f"Could not remove late CDN upload {folder}/{file_name}: {str(e)}")
            return
        logger.info(f"Late CDN upload {folder}/{file_name} finished after fallback; removed: {deleted}")
    return _callback


def _upload_to_cdn(cdn: BunnyStorageService, data: bytes, file_name: str, folder: str,
                   content_type: Optional[str], timeout: float):
    # requests' timeout only bounds individual socket operations, so the
    # whole attempt is also capped here
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(cdn.upload_bytes, data, file_name, folder, content_type, timeout)
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        # A running PUT cannot be interrupted; the client gets the local copy
        if not future.cancel():
            future.add_done_callback(_discard_late_upload(cdn, file_name, folder))
        raise TimeoutError(f"CDN upload of {file_name} did not finish within {timeout}s")
    finally:
        executor.shutdown(wait=False)


def upload_with_fallback(data: bytes, file_name: str, folder: str, content_type: Optional[str],
                         cdn: Optional[BunnyStorageService], local: LocalStorageService,
                         timeout: Optional[float] = None) -> UploadResult:
    """
    Store an upload on the CDN, falling back to local disk

    Args:
        data: File content; empty content is stored as a zero-byte file
        file_name: Pre-generated, collision-free flat file name
        folder: Logical folder on the CDN ("videos", "thumbnails", ...)
        content_type: Declared MIME type
        cdn: CDN client, or None when the CDN is not configured
        local: Local fallback storage
        timeout: Seconds the CDN attempt may take before falling back

    Raises:
        ValueError: file_name is not a plain file name
        StorageError: the local fallback could not be written either
    """
    # Same rule as the local directory, checked before anything goes to the CDN
    local.path_for(file_name)

    if cdn is not None:
        attempt_timeout = timeout if timeout is not None else cdn.timeout
        try:
            uploaded = _upload_to_cdn(cdn, data, file_name, folder, content_type, attempt_timeout)
            return UploadResult(
                success=True,
                key=file_name,
                url=uploaded['url'],
                provider="cdn",
                message=f"Uploaded to CDN folder '{folder}'",
            )
        except Exception as e:
            logger.warning(f"CDN upload of {folder}/{file_name} failed, falling back to local storage: {str(e)}")
    else:
        logger.info(f"CDN not configured, storing {file_name} locally")

    try:
        local.save_bytes(data, file_name)
    except OSError as e:
        logger.error(f"Local fallback write of {file_name} failed: {str(e)}")
        raise StorageError(f"Could not store {file_name}: {str(e)}") from e

    return UploadResult(
        success=True,
        key=file_name,
        url=local.get_url(file_name),
        provider="local",
        message="Uploaded to local storage (CDN fallback)" if cdn is not None else "Uploaded to local storage",
    )
