import os

# Configuration is read at import time; pin it before the package is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["AUTH_SECRET_KEY"] = "test-secret-key"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["APP_BASE_URL"] = "http://testserver"
os.environ["SESSION_COOKIE_NAME"] = "waterlily-auth"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from waterlily import database, models  # noqa: F401
from waterlily.database import Base, build_engine
from waterlily.docstore import DocumentStore
from waterlily.identity import IdentityProvider
from waterlily.main import app

TEST_SECRET = "test-secret-key"
COOKIE_NAME = "waterlily-auth"


def make_session_factory(engine):
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )


@pytest.fixture
async def db_session():
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with make_session_factory(engine)() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def store(db_session):
    return DocumentStore(db_session)


@pytest.fixture
def identity(db_session):
    return IdentityProvider(db_session, TEST_SECRET, token_ttl_minutes=60, password_rounds=4)


@pytest.fixture
def client(monkeypatch):
    """The real app on a fresh in-memory database (tables created by the lifespan)."""
    engine = build_engine("sqlite+aiosqlite://")
    monkeypatch.setattr(database, "engine", engine)
    monkeypatch.setattr(database, "AsyncSessionFactory", make_session_factory(engine))
    with TestClient(app) as c:
        yield c


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def sign_up(client: TestClient, email: str, password: str = "secret123", name: str = None) -> dict:
    resp = client.post(
        "/api/auth/signup",
        json={"email": email, "password": password, "displayName": name},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def survey_payload(**overrides) -> dict:
    payload = {
        "title": "Customer Satisfaction",
        "description": "Help us improve",
        "questions": [
            {"id": "q1", "text": "text", "question": "Any suggestions?"},
            {
                "id": "q2",
                "text": "multipleChoice",
                "question": "Which features do you like?",
                "options": ["Speed", "Price", "Support"],
            },
        ],
    }
    payload.update(overrides)
    return payload


def create_survey(client: TestClient, token: str, **overrides) -> dict:
    resp = client.post("/api/surveys", json=survey_payload(**overrides), headers=auth_headers(token))
    assert resp.status_code == 201, resp.text
    return resp.json()
