import os

# Must be set before the app modules build their engine
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient

from app.database.db import Base, SessionLocal, engine
from app.domain.entities import OrganizationEntity, ServiceEntity
from app.main import app
from app.repositories.organization_repository import OrganizationRepository
from app.repositories.service_repository import ServiceRepository
from app.services.broadcaster import Broadcaster


class RecordingHandle:
    """Client handle that keeps every event it is sent."""

    def __init__(self):
        self.events = []

    def send(self, event_type, payload):
        self.events.append((event_type, payload))

    def names(self):
        return [name for name, _ in self.events]

    def of_type(self, event_type):
        return [payload for name, payload in self.events if name == event_type]


class FailingHandle:
    def send(self, event_type, payload):
        raise ConnectionError("socket closed")


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def broadcaster():
    instance = Broadcaster()
    yield instance
    instance.close()


@pytest.fixture
def recorder():
    return RecordingHandle()


@pytest.fixture
def organization(db):
    return OrganizationRepository(db).create(OrganizationEntity.create(name="Acme", slug="acme"))


@pytest.fixture
def other_organization(db):
    return OrganizationRepository(db).create(OrganizationEntity.create(name="Globex", slug="globex"))


@pytest.fixture
def make_service(db):
    def _make(organization_id, name="API", status="operational", is_public=True):
        service = ServiceEntity.create(name=name, organization_id=organization_id, status=status, is_public=is_public)
        return ServiceRepository(db).create(service)
    return _make


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user_headers():
    return {"X-User-Id": "user-1"}
