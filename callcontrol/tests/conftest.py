import os
import tempfile
from datetime import timedelta

os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="callcontrol-media-")
os.environ["STORAGE_PUBLIC_BASE_URL"] = "http://testserver/media"
# Nothing listens here; the login rate limiter lets requests through.
os.environ["REDIS_URL"] = "redis://127.0.0.1:6399/0"

import pytest
from fastapi.testclient import TestClient

from callcontrol.core import database
from callcontrol.core.database import Base, SessionLocal, engine
from callcontrol.core.security import hash_password, utcnow
from callcontrol.main import app
from callcontrol.models import Organization, TelfinConnection, User


def override_get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def organization(db):
    org = Organization(name="Acme")
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


def _make_user(db, org, username, password, role):
    user = User(
        org_id=org.id,
        username=username,
        name=username.capitalize(),
        hashed_password=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def admin(db, organization):
    return _make_user(db, organization, "admin", "adminpassword", "admin")


@pytest.fixture()
def operator(db, organization):
    return _make_user(db, organization, "operator", "operatorpassword", "operator")


@pytest.fixture()
def telfin_connection(db, organization):
    connection = TelfinConnection(
        org_id=organization.id,
        client_id="app-id",
        client_secret="app-secret",
        telfin_client_id="12345",
        access_token="cached-token",
        token_expiry=utcnow() + timedelta(hours=1),
    )
    db.add(connection)
    db.commit()
    db.refresh(connection)
    return connection


@pytest.fixture()
def client():
    app.dependency_overrides[database.get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
