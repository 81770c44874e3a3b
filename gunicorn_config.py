import os
import multiprocessing

# Server socket
bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"
backlog = 2048

# Uploads hold a worker for the whole CDN attempt, so keep the pool wide
workers = int(os.getenv('GUNICORN_WORKERS', multiprocessing.cpu_count() * 2 + 1))
worker_class = 'sync'
# Must outlast CDN_UPLOAD_TIMEOUT plus the local fallback write of a large video
timeout = int(os.getenv('GUNICORN_TIMEOUT', 600))
keepalive = 2

# Logging
accesslog = '-'
errorlog = '-'
loglevel = os.getenv('LOG_LEVEL', 'info').lower()

proc_name = 'coursehub-api'

# Spooled request bodies go to the same volume as the local uploads
tmp_upload_dir = os.getenv('GUNICORN_TMP_UPLOAD_DIR')
