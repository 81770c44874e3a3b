class StorageError(Exception):
    """Upload could not be persisted anywhere"""


class RemoteUploadError(Exception):
    """CDN rejected or never acknowledged an upload"""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code
