import os
import tempfile
import uuid

# settings are read at import time, so the environment goes first
_TMP = tempfile.mkdtemp(prefix="dc-tests-")
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", f"sqlite:///{_TMP}/test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["STORAGE_ROOT"] = os.path.join(_TMP, "storage")
os.environ["TEMP_DIR"] = os.path.join(_TMP, "temp")

import pytest
from fastapi.testclient import TestClient

# FORCE model registration
import app.models  # noqa

from app.core.config import get_settings
from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.main import create_app
from app.services.installation_service import InstallationService
from app.services.storage import LocalBlobStorage, get_storage

settings = get_settings()


def installation_fields(**overrides):
    fields = {
        "region_division": "Pune",
        "location_address": "ZP School, Haveli",
        "district": "Pune",
        "tahsil": "Haveli",
        "pin_code": "411001",
        "receiver_name": "Asha Patil",
        "contact_no": "9876543210",
        "delivery_status": "Pending",
        "installation_status": "Pending",
        "priority": "Medium",
    }
    fields.update(overrides)
    return fields


@pytest.fixture(scope="function")
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage(tmp_path):
    return LocalBlobStorage(tmp_path / "storage")


@pytest.fixture
def temp_dir():
    path = settings.temp_dir
    os.makedirs(path, exist_ok=True)
    for name in os.listdir(path):
        os.remove(os.path.join(path, name))
    return path


@pytest.fixture
def make_installation(db):
    svc = InstallationService()

    def _make(actor="Admin", **overrides):
        return svc.create(db, fields=installation_fields(**overrides), actor=actor)

    return _make


@pytest.fixture
def client(db, storage):
    app = create_app()
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers():
    def _headers(user_type="Admin", name=None, user_id=None):
        uid = user_id or str(uuid.uuid4())
        token = create_access_token(
            subject=uid,
            claims={
                "user_id": uid,
                "user_type": user_type,
                "name": name or f"{user_type} Tester",
                "email": f"{user_type.lower()}@example.com",
            },
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def fields():
    return installation_fields
