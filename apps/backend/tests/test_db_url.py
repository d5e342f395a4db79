"""Tests for database URL normalisation and log redaction rules."""

from __future__ import annotations

from unittest.mock import patch

from core.error_handler import redact
from core.security_config import get_allowed_error_fields, is_sensitive_key
from dependencies.db import resolve_database_url, to_asyncpg_url


class TestToAsyncpgUrl:
    def test_postgres_scheme_switches_driver(self):
        url = to_asyncpg_url("postgres://support:pw@db.internal:5432/support")
        assert url.drivername == "postgresql+asyncpg"
        assert url.host == "db.internal"
        assert url.database == "support"

    def test_psycopg_driver_is_replaced(self):
        url = to_asyncpg_url("postgresql+psycopg2://support:pw@localhost/support")
        assert url.drivername == "postgresql+asyncpg"

    def test_sslmode_becomes_ssl(self):
        url = to_asyncpg_url("postgresql://u:pw@host/db?sslmode=require")
        assert "sslmode" not in url.query
        assert url.query["ssl"] == "require"

    def test_non_postgres_url_is_left_alone(self):
        url = to_asyncpg_url("sqlite+aiosqlite:///support.db")
        assert url.drivername == "sqlite+aiosqlite"


def test_fallback_url_uses_postgres_env(monkeypatch):
    monkeypatch.setenv("POSTGRES_USER", "relay")
    monkeypatch.setenv("POSTGRES_PASSWORD", "pw")
    monkeypatch.setenv("POSTGRES_DB", "tickets")
    monkeypatch.setenv("POSTGRES_PORT", "6543")
    with patch("dependencies.db.get_settings") as mocked:
        mocked.return_value.DATABASE_URL = None
        url = resolve_database_url()

    assert url.drivername == "postgresql+asyncpg"
    assert (url.username, url.database, url.port) == ("relay", "tickets", 6543)


def test_sensitive_keys_match_case_insensitively():
    assert is_sensitive_key("customerEmail")
    assert is_sensitive_key("X-API-KEY")
    assert not is_sensitive_key("ticketId")


def test_redact_walks_lists_and_dicts():
    redacted = redact({"tickets": [{"phone": "555", "status": "open"}], "limit": 5})
    assert redacted == {"tickets": [{"phone": "[REDACTED]", "status": "open"}], "limit": 5}


def test_production_hides_debug_fields():
    assert get_allowed_error_fields("production") == {"correlation_id", "type", "code"}
    assert "traceback" in get_allowed_error_fields("development")
