import logging
from datetime import datetime

from celery_config import celery
from database import db_connector
from revenue.services.ledger_service import RevenueLedgerService

logger = logging.getLogger(__name__)


def current_period(now=None):
    now = now or datetime.utcnow()
    return now.month, now.year


@celery.task(bind=True, name='revenue.rollover_monthly_records', max_retries=3, default_retry_delay=60)
def rollover_monthly_records(self, month=None, year=None):
    """Open this month's revenue record for every active instructor"""
    if month is None or year is None:
        month, year = current_period()

    logger.info(f"Starting revenue rollover for {year}-{month:02d}")
    if db_connector.engine is None:
        db_connector.init_db()

    db = db_connector.get_db()
    try:
        created = RevenueLedgerService(db).rollover_monthly_records(month, year)
        return {"month": month, "year": year, "created": created}
    except Exception as e:
        logger.error(f"Revenue rollover for {year}-{month:02d} failed: {str(e)}")
        raise self.retry(exc=e)
    finally:
        db.close()
