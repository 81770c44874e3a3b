from unittest.mock import MagicMock

import pytest
from flask_jwt_extended import create_access_token

from app import create_app, shutdown_app
from database import db_connector
from instructors.models.models import Instructor
from revenue.models.models import SubscriptionTier
from revenue.services.ledger_service import RevenueLedgerService
from storage.bunny_storage_service import BunnyStorageService
from storage.local_storage import LocalStorageService


def _response(status_code, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


@pytest.fixture
def cdn_session():
    """Stand-in for the requests.Session used by the CDN client; uploads succeed by default"""
    session = MagicMock()
    session.headers = {}
    session.put.return_value = _response(201)
    session.delete.return_value = _response(200)
    return session


@pytest.fixture
def cdn(cdn_session):
    return BunnyStorageService(
        storage_zone_name="coursehub-media",
        access_key="zone-access-key",
        pull_zone_url="cdn.example.com",
        storage_api_url="https://storage.example.com",
        timeout=5,
        session=cdn_session,
    )


@pytest.fixture
def upload_folder(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def local_storage(upload_folder):
    return LocalStorageService(
        upload_folder=str(upload_folder),
        public_base_url="http://testserver",
        url_path="/uploads",
    )


@pytest.fixture
def db():
    db_connector.init_engine("sqlite://")
    db_connector.init_db()
    session = db_connector.get_db()
    try:
        yield session
    finally:
        session.close()
        db_connector.drop_db()


@pytest.fixture
def ledger(db):
    return RevenueLedgerService(db)


@pytest.fixture
def make_instructor(db):
    counter = {"n": 0}

    def _make(name=None, tier=SubscriptionTier.basic, is_active=True):
        counter["n"] += 1
        instructor = Instructor(
            name=name or f"Instructor {counter['n']}",
            email=f"instructor{counter['n']}@example.com",
            subscription_tier=tier,
            is_active=is_active,
        )
        db.add(instructor)
        db.commit()
        db.refresh(instructor)
        return instructor

    return _make


@pytest.fixture
def record(ledger, make_instructor):
    instructor = make_instructor()
    return ledger.create_monthly_record(instructor.id, 6, 2025)


@pytest.fixture
def app_factory(upload_folder):
    apps = []

    def _create(bunny_storage=None):
        app = create_app({
            "TESTING": True,
            "DATABASE_URL": "sqlite://",
            "JWT_SECRET_KEY": "test-secret-key-with-enough-length-1234",
            "UPLOAD_FOLDER": str(upload_folder),
            "PUBLIC_BASE_URL": "http://testserver",
            "UPLOADS_URL_PATH": "/uploads",
            "BUNNY_STORAGE_ZONE_NAME": None,
            "BUNNY_STORAGE_PASSWORD": None,
            "BUNNY_PULL_ZONE_URL": None,
            "CDN_UPLOAD_TIMEOUT": 2,
        }, bunny_storage=bunny_storage)
        apps.append(app)
        return app

    yield _create

    for app in apps:
        shutdown_app(app)
    db_connector.drop_db()


@pytest.fixture
def app(app_factory):
    return app_factory()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers_for():
    def _headers(app):
        with app.app_context():
            token = create_access_token(identity="1")
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def auth_headers(app, auth_headers_for):
    return auth_headers_for(app)
