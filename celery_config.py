import logging
from celery import Celery
from celery.schedules import crontab

from config import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Build Redis URL with optional password authentication
if REDIS_PASSWORD:
    REDIS_URL = f'redis://:{REDIS_PASSWORD}@{REDIS_HOST}:{REDIS_PORT}/0'
else:
    REDIS_URL = f'redis://{REDIS_HOST}:{REDIS_PORT}/0'

# Create Celery instance
celery = Celery('coursehub',
                broker=REDIS_URL,
                backend=REDIS_URL)

# Celery configuration
celery.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=900,
    task_soft_time_limit=840,
    worker_prefetch_multiplier=1,
    task_acks_late=True,  # Only acknowledge task after completion
    task_reject_on_worker_lost=True,  # Requeue task if worker dies
    task_default_retry_delay=60,
    task_routes={
        'revenue.rollover_monthly_records': {'queue': 'revenue'},
    },
    task_default_queue='default',
    beat_schedule={
        # Open every active instructor's ledger shortly after month rollover
        'open-monthly-revenue-records': {
            'task': 'revenue.rollover_monthly_records',
            'schedule': crontab(minute=5, hour=0, day_of_month=1),
        },
    },
)

# Import tasks module to ensure tasks are registered
import tasks_revenue  # noqa: E402,F401

__all__ = ['celery']
