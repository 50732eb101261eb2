import os
from typing import Generator

# Must be set before legaldesk.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from legaldesk import crud
from legaldesk.db import Base, make_engine
from legaldesk.main import app, get_db
from legaldesk.rules import Role

ADMIN_EMAIL = "admin@legaldesk.test"
ADMIN_PASSWORD = "admin123"


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # In-memory SQLite on a single connection, foreign keys on like the real engine
    engine = make_engine("sqlite://", poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def make_client(db_session):
    """Factory of TestClients sharing one DB; each keeps its own cookie jar (one per actor)."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    clients = []

    def factory(**kwargs) -> TestClient:
        c = TestClient(app, **kwargs)
        clients.append(c)
        return c

    yield factory
    for c in clients:
        c.close()
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(make_client):
    """An anonymous caller."""
    return make_client()


@pytest.fixture(scope="function")
def admin(make_client, db_session):
    crud.create_user(db_session, "Admin User", ADMIN_EMAIL, ADMIN_PASSWORD, Role.ADMIN)
    c = make_client()
    r = c.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    return c


@pytest.fixture(scope="function")
def register_client(make_client):
    """Self-register a client account and return a TestClient logged in as it."""
    def _register(name: str, email: str, password: str = "client123") -> TestClient:
        c = make_client()
        r = c.post("/auth/register", json={"name": name, "email": email, "password": password})
        assert r.status_code == 200, r.text
        c.user = r.json()["user"]
        return c
    return _register


@pytest.fixture(scope="function")
def product(admin):
    r = admin.post(
        "/products",
        json={
            "title": "Contract Review",
            "description": "Review of contracts and agreements.",
            "price": 4500000,
            "category": "Contract Law",
            "processingTime": "3-5 business days",
            "whatsIncluded": ["Line-by-line review", "Risk summary"],
        },
    )
    assert r.status_code == 201, r.text
    return r.json()["product"]
