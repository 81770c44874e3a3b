import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL
from .base import Base

logger = logging.getLogger(__name__)

# Engine is created lazily so tests and tooling can point at another database
engine = None

# Session factory, bound once the engine exists
SessionLocal = sessionmaker(autocommit=False, autoflush=False)

# Scoped session for request handlers
db_session = scoped_session(SessionLocal)


def _engine_options(database_url: str) -> dict:
    if database_url.startswith('sqlite'):
        options = {'connect_args': {'check_same_thread': False}}
        # In-memory databases only live as long as their single connection
        if database_url in ('sqlite://', 'sqlite:///:memory:'):
            options['poolclass'] = StaticPool
        return options

    return {
        'pool_size': 5,
        'max_overflow': 10,
        'pool_timeout': 30,
        'pool_recycle': 3600,
        'pool_pre_ping': True,  # Enable automatic reconnection
    }


def init_engine(database_url: Optional[str] = None):
    """Create the SQLAlchemy engine and bind the session factories to it"""
    global engine

    database_url = database_url or DATABASE_URL
    if engine is not None:
        db_session.remove()
        engine.dispose()

    engine = create_engine(database_url, **_engine_options(database_url))
    SessionLocal.configure(bind=engine)
    logger.info(f"Database engine initialised for {engine.url.render_as_string(hide_password=True)}")
    return engine


def get_engine():
    if engine is None:
        raise RuntimeError("Database engine not initialized")
    return engine


def init_db():
    """Initialize the database by creating all tables"""
    # Model modules register their tables on Base when imported
    import instructors.models.models  # noqa: F401
    import revenue.models.models  # noqa: F401

    if engine is None:
        init_engine()
    Base.metadata.create_all(bind=engine)


def drop_db():
    Base.metadata.drop_all(bind=get_engine())


def get_db():
    """Get a database session"""
    if engine is None:
        raise RuntimeError("Database not initialized")
    return SessionLocal()
