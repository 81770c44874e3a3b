import os
import logging
from typing import Optional

import config

logger = logging.getLogger(__name__)


class LocalStorageService:
    """Flat uploads directory exposed through the app's static uploads route"""

    def __init__(self, upload_folder: str = config.UPLOAD_FOLDER,
                 public_base_url: str = config.PUBLIC_BASE_URL,
                 url_path: str = config.UPLOADS_URL_PATH):
        self.upload_folder = upload_folder
        self.public_base_url = public_base_url.rstrip('/')
        self.url_path = '/' + url_path.strip('/')

    def ensure_directory(self):
        # exist_ok tolerates another request creating it at the same moment
        os.makedirs(self.upload_folder, exist_ok=True)

    def path_for(self, file_name: str) -> str:
        if not file_name or os.path.basename(file_name) != file_name or '\\' in file_name or file_name in ('.', '..'):
            raise ValueError(f"Invalid file name: {file_name!r}")
        return os.path.join(self.upload_folder, file_name)

    def get_url(self, file_name: str) -> str:
        return f"{self.public_base_url}{self.url_path}/{file_name}"

    def save_bytes(self, data: bytes, file_name: str) -> str:
        """Write data under the uploads directory and return the file path"""
        file_path = self.path_for(file_name)
        self.ensure_directory()
        with open(file_path, 'wb') as f:
            f.write(data)
        logger.info(f"Saved {len(data)} bytes to local storage: {file_path}")
        return file_path

    def exists(self, file_name: str) -> bool:
        return os.path.isfile(self.path_for(file_name))

    def delete(self, file_name: str) -> bool:
        file_path = self.path_for(file_name)
        try:
            os.unlink(file_path)
        except FileNotFoundError:
            return False
        logger.info(f"Deleted local upload: {file_path}")
        return True


def init_local_storage(app, service: Optional[LocalStorageService] = None) -> LocalStorageService:
    if service is None:
        service = LocalStorageService(
            upload_folder=app.config['UPLOAD_FOLDER'],
            public_base_url=app.config['PUBLIC_BASE_URL'],
            url_path=app.config['UPLOADS_URL_PATH'],
        )
    service.ensure_directory()
    app.extensions['local_storage'] = service
    return service


def get_local_storage(app) -> LocalStorageService:
    return app.extensions['local_storage']
