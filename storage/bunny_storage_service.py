import logging
from typing import Optional, Dict, Any, List

import requests

import config
from storage.exceptions import RemoteUploadError

logger = logging.getLogger(__name__)

USER_AGENT = "CourseHub/1.0"


class BunnyStorageService:
    """Client for a Bunny CDN storage zone (HTTP storage API)"""

    def __init__(self, storage_zone_name: str, access_key: str, pull_zone_url: str,
                 storage_api_url: str = config.BUNNY_STORAGE_API_URL,
                 timeout: float = config.CDN_UPLOAD_TIMEOUT,
                 session: Optional[requests.Session] = None):
        if not config.bunny_is_configured(storage_zone_name or '', access_key or '', pull_zone_url or ''):
            raise ValueError(
                "Bunny CDN credentials not properly configured. Please set BUNNY_STORAGE_ZONE_NAME, "
                "BUNNY_STORAGE_PASSWORD, and BUNNY_PULL_ZONE_URL environment variables."
            )

        self.storage_zone_name = storage_zone_name
        self.access_key = access_key
        self.storage_api_url = storage_api_url.rstrip('/')
        # Pull zones are often configured without a scheme
        if not pull_zone_url.startswith('http'):
            pull_zone_url = f"https://{pull_zone_url}"
        self.pull_zone_url = pull_zone_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'AccessKey': self.access_key,
            'User-Agent': USER_AGENT,
        })

    @classmethod
    def from_config(cls, session: Optional[requests.Session] = None):
        return cls(
            storage_zone_name=config.BUNNY_STORAGE_ZONE_NAME,
            access_key=config.BUNNY_STORAGE_PASSWORD,
            pull_zone_url=config.BUNNY_PULL_ZONE_URL,
            storage_api_url=config.BUNNY_STORAGE_API_URL,
            timeout=config.CDN_UPLOAD_TIMEOUT,
            session=session,
        )

    @staticmethod
    def object_path(file_name: str, folder: str = "") -> str:
        return f"{folder.strip('/')}/{file_name}" if folder else file_name

    def get_storage_url(self, path: str = "") -> str:
        return f"{self.storage_api_url}/{self.storage_zone_name}/{path}"

    def get_cdn_url(self, path: str = "") -> str:
        return f"{self.pull_zone_url}/{path}"

    def upload_bytes(self, data: bytes, file_name: str, folder: str = "",
                     content_type: Optional[str] = None, timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Upload raw bytes to the storage zone

        Args:
            data: File content
            file_name: Object name inside the folder
            folder: Logical folder, e.g. "videos" or "thumbnails"
            content_type: MIME type sent with the upload
            timeout: Seconds before the attempt is abandoned

        Returns:
            Dict with the public CDN url, storage url, file name and folder

        Raises:
            RemoteUploadError: The zone did not answer 201 Created
            requests.RequestException: Network failure or timeout
        """
        path = self.object_path(file_name, folder)
        storage_url = self.get_storage_url(path)

        response = self.session.put(
            storage_url,
            data=data,
            headers={'Content-Type': content_type or 'application/octet-stream'},
            timeout=timeout if timeout is not None else self.timeout,
        )
        if response.status_code != 201:
            raise RemoteUploadError(
                f"Upload of {path} failed with status: {response.status_code}",
                status_code=response.status_code,
            )

        cdn_url = self.get_cdn_url(path)
        logger.info(f"File uploaded successfully to Bunny CDN: {cdn_url} ({len(data)} bytes)")
        return {
            'url': cdn_url,
            'storage_url': storage_url,
            'file_name': file_name,
            'folder': folder,
        }

    def delete_file(self, file_name: str, folder: str = "") -> bool:
        path = self.object_path(file_name, folder)
        try:
            response = self.session.delete(self.get_storage_url(path), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to delete {path} from Bunny CDN: {str(e)}")
            return False

        if response.status_code != 200:
            logger.error(f"Failed to delete {path} from Bunny CDN: status {response.status_code}")
            return False

        logger.info(f"Successfully deleted {path} from Bunny CDN")
        return True

    def list_files(self, folder: str = "") -> List[Dict[str, Any]]:
        """List objects in a folder of the storage zone"""
        path = f"{folder.strip('/')}/" if folder else ""
        response = self.session.get(self.get_storage_url(path), timeout=self.timeout)
        response.raise_for_status()

        entries = response.json()
        if not isinstance(entries, list):
            return []
        return [
            {
                'file_name': entry.get('ObjectName'),
                'content_length': entry.get('Length'),
                'is_directory': entry.get('IsDirectory', False),
                'last_changed': entry.get('LastChanged'),
            }
            for entry in entries
        ]

    def close(self):
        self.session.close()


def init_bunny_storage(app, service: Optional[BunnyStorageService] = None):
    """Attach the CDN client to the app; uploads go straight to local storage when it is absent"""
    if service is None and config.bunny_is_configured(
        app.config.get('BUNNY_STORAGE_ZONE_NAME') or '',
        app.config.get('BUNNY_STORAGE_PASSWORD') or '',
        app.config.get('BUNNY_PULL_ZONE_URL') or '',
    ):
        service = BunnyStorageService(
            storage_zone_name=app.config['BUNNY_STORAGE_ZONE_NAME'],
            access_key=app.config['BUNNY_STORAGE_PASSWORD'],
            pull_zone_url=app.config['BUNNY_PULL_ZONE_URL'],
            storage_api_url=app.config.get('BUNNY_STORAGE_API_URL', config.BUNNY_STORAGE_API_URL),
            timeout=app.config.get('CDN_UPLOAD_TIMEOUT', config.CDN_UPLOAD_TIMEOUT),
        )

    if service is None:
        logger.warning("Bunny CDN configuration incomplete; uploads will be stored locally")
    else:
        logger.info(f"Bunny CDN storage zone {service.storage_zone_name} ready ({service.storage_api_url})")

    app.extensions['bunny_storage'] = service
    return service


def close_bunny_storage(app):
    service = app.extensions.pop('bunny_storage', None)
    if service is not None:
        service.close()
        logger.info("Bunny CDN client closed")


def get_bunny_storage(app) -> Optional[BunnyStorageService]:
    return app.extensions.get('bunny_storage')
