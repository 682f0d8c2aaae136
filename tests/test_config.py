import importlib
import logging

import dotenv
import pytest

from waterlily import config


@pytest.fixture
def reload_config(monkeypatch):
    # keep a developer's .env out of the picture
    monkeypatch.setattr(dotenv, "load_dotenv", lambda *args, **kwargs: False)
    yield lambda: importlib.reload(config)
    monkeypatch.undo()
    importlib.reload(config)


def test_missing_database_url_and_secret_fall_back_with_warnings(reload_config, monkeypatch, caplog):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("AUTH_SECRET_KEY", raising=False)

    with caplog.at_level(logging.WARNING, logger="waterlily.config"):
        reload_config()

    assert config.DATABASE_URL.startswith("sqlite+aiosqlite:///")
    assert config.DATABASE_URL.endswith("waterlily_fallback.db")
    assert config.AUTH_SECRET_KEY
    assert config.AUTH_SECRET_KEY != "test-secret-key"

    warnings = [r for r in caplog.records if r.name == "waterlily.config"]
    assert {r.levelno for r in warnings} == {logging.WARNING}
    messages = " ".join(r.getMessage() for r in warnings)
    assert "DATABASE_URL" in messages
    assert "AUTH_SECRET_KEY" in messages


def test_settings_come_from_the_environment(reload_config, monkeypatch, caplog):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./other.db")
    monkeypatch.setenv("AUTH_SECRET_KEY", "configured")
    monkeypatch.setenv("PASSWORD_HASH_ROUNDS", "10")
    monkeypatch.setenv("SESSION_COOKIE_SECURE", "true")
    monkeypatch.setenv("BACKEND_ALLOWED_ORIGINS", "https://a.example, https://b.example,")
    monkeypatch.setenv("APP_BASE_URL", "https://surveys.example/")

    with caplog.at_level(logging.WARNING, logger="waterlily.config"):
        reload_config()

    assert config.DATABASE_URL == "sqlite+aiosqlite:///./other.db"
    assert config.AUTH_SECRET_KEY == "configured"
    assert config.PASSWORD_HASH_ROUNDS == 10
    assert config.SESSION_COOKIE_SECURE is True
    assert config.ALLOWED_ORIGINS == ["https://a.example", "https://b.example"]
    assert config.APP_BASE_URL == "https://surveys.example"
    assert not [r for r in caplog.records if r.name == "waterlily.config"]


def test_test_environment_is_back_in_place():
    assert config.DATABASE_URL == "sqlite+aiosqlite://"
    assert config.AUTH_SECRET_KEY == "test-secret-key"
