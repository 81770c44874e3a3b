import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Base directory of the application
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

# Database connection parameters
DB_USER = os.getenv('DB_USER', 'coursehub')
DB_PASSWORD = os.getenv('DB_PASSWORD', '')
DB_HOST = os.getenv('DB_HOST', '127.0.0.1')
DB_PORT = os.getenv('DB_PORT', '3306')
DB_NAME = os.getenv('DB_NAME', 'coursehub')

DATABASE_URL = os.getenv(
    'DATABASE_URL',
    f"mysql+pymysql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')

# Local fallback storage, served back through the static uploads route
UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'storage', 'uploads'))
PUBLIC_BASE_URL = os.getenv('PUBLIC_BASE_URL', 'http://localhost:5001')
UPLOADS_URL_PATH = os.getenv('UPLOADS_URL_PATH', '/uploads')

# 500MB request bodies (large lesson videos)
MAX_CONTENT_LENGTH = int(os.getenv('MAX_CONTENT_LENGTH', 500 * 1024 * 1024))

# Bunny CDN storage zone
BUNNY_STORAGE_ZONE_NAME = os.getenv('BUNNY_STORAGE_ZONE_NAME')
BUNNY_STORAGE_PASSWORD = os.getenv('BUNNY_STORAGE_PASSWORD')
BUNNY_PULL_ZONE_URL = os.getenv('BUNNY_PULL_ZONE_URL')
BUNNY_REGION = os.getenv('BUNNY_REGION', 'de')

BUNNY_STORAGE_REGIONS = {
    'de': 'https://storage.bunnycdn.com',     # Falkenstein
    'ny': 'https://ny.storage.bunnycdn.com',  # New York
    'la': 'https://la.storage.bunnycdn.com',  # Los Angeles
    'sg': 'https://sg.storage.bunnycdn.com',  # Singapore
    'syd': 'https://syd.storage.bunnycdn.com',  # Sydney
    'uk': 'https://uk.storage.bunnycdn.com',  # London
}

BUNNY_STORAGE_API_URL = os.getenv(
    'BUNNY_STORAGE_API_URL',
    BUNNY_STORAGE_REGIONS.get(BUNNY_REGION, BUNNY_STORAGE_REGIONS['de'])
)

# Seconds before a CDN upload attempt gives up and falls back to local storage
CDN_UPLOAD_TIMEOUT = float(os.getenv('CDN_UPLOAD_TIMEOUT', 30))

# Upload rules per kind: target folder, accepted extensions, max size in bytes
UPLOAD_KINDS = {
    'video': {
        'folder': 'videos',
        'extensions': {'mp4', 'mov', 'avi', 'mkv', 'webm'},
        'default_extension': 'mp4',
        'max_size': 500 * 1024 * 1024,
    },
    'audio': {
        'folder': 'audio',
        'extensions': {'mp3', 'wav', 'flac', 'ogg', 'm4a'},
        'default_extension': 'mp3',
        'max_size': 200 * 1024 * 1024,
    },
    'document': {
        'folder': 'documents',
        'extensions': {'pdf', 'doc', 'docx', 'txt'},
        'default_extension': 'pdf',
        'max_size': 50 * 1024 * 1024,
    },
    'thumbnail': {
        'folder': 'thumbnails',
        'extensions': {'jpg', 'jpeg', 'png', 'gif', 'webp'},
        'default_extension': 'jpg',
        'max_size': 10 * 1024 * 1024,
    },
    'multitrack': {
        'folder': 'multitracks',
        'extensions': {'mp3', 'wav', 'flac', 'ogg'},
        'default_extension': 'wav',
        'max_size': 200 * 1024 * 1024,
    },
}

# Redis configuration for Celery
REDIS_HOST = os.getenv('REDIS_HOST', 'localhost')
REDIS_PORT = os.getenv('REDIS_PORT', '6379')
REDIS_PASSWORD = os.getenv('REDIS_PASSWORD', '')


def is_credential_set(value):
    """A credential counts as missing when empty or still a CHANGE_ME_ placeholder"""
    return bool(value) and not value.startswith('CHANGE_ME_')


def bunny_is_configured(zone_name=None, access_key=None, pull_zone_url=None):
    zone_name = BUNNY_STORAGE_ZONE_NAME if zone_name is None else zone_name
    access_key = BUNNY_STORAGE_PASSWORD if access_key is None else access_key
    pull_zone_url = BUNNY_PULL_ZONE_URL if pull_zone_url is None else pull_zone_url
    return all(is_credential_set(v) for v in (zone_name, access_key, pull_zone_url))


def get_upload_rules(kind):
    return UPLOAD_KINDS.get(kind)


def allowed_file(filename, kind):
    rules = get_upload_rules(kind)
    if not rules or '.' not in filename:
        return False
    return filename.rsplit('.', 1)[1].lower() in rules['extensions']
