"""Tests for database connection helpers: the URL always comes from config."""

from unittest.mock import patch

import pytest
from psycopg2.extras import RealDictCursor

from lead_scout.api.deps import get_db
from lead_scout.config import ScoutConfig
from lead_scout.db.connection import get_connection

CONFIG_URL = "postgresql://config-host:5432/leads"


@pytest.fixture(autouse=True)
def stray_env_url(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://env-host:5432/ignored")


@patch("lead_scout.db.connection.psycopg2.connect")
def test_get_connection_uses_given_url(connect):
    with get_connection(CONFIG_URL):
        pass

    connect.assert_called_once_with(CONFIG_URL, cursor_factory=RealDictCursor)
    conn = connect.return_value
    conn.commit.assert_called_once()
    conn.close.assert_called_once()


@patch("lead_scout.db.connection.psycopg2.connect")
def test_get_connection_rolls_back_on_error(connect):
    with pytest.raises(RuntimeError):
        with get_connection(CONFIG_URL):
            raise RuntimeError("boom")

    conn = connect.return_value
    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    conn.close.assert_called_once()


@patch("lead_scout.api.deps.psycopg2.connect")
def test_get_db_uses_config_url(connect):
    dependency = get_db(ScoutConfig(database_url=CONFIG_URL))

    assert next(dependency) is connect.return_value
    with pytest.raises(StopIteration):
        next(dependency)

    connect.assert_called_once_with(CONFIG_URL, cursor_factory=RealDictCursor)
    connect.return_value.commit.assert_called_once()
