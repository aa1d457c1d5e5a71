"""Unit tests for the herald.runtime module."""

from __future__ import annotations

import os
from http import HTTPStatus
from unittest import mock

import falcon.asgi
import falcon.testing
import pytest

from herald.runtime import ServerSettings, _parse_port, create_app


class TestParsePort:
    """Tests for _parse_port()."""

    @pytest.mark.parametrize("raw", ["1", "8080", "65535"])
    def test_accepts_valid_ports(self, raw: str) -> None:
        """Ports inside 1-65535 are returned as integers."""
        assert _parse_port(raw) == int(raw)

    @pytest.mark.parametrize("raw", ["0", "65536", "http", ""])
    def test_rejects_invalid_ports(self, raw: str) -> None:
        """Anything else exits with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            _parse_port(raw)
        assert exc_info.value.code == 1


class TestServerSettings:
    """Tests for ServerSettings.from_env()."""

    def test_defaults(self) -> None:
        """An empty environment binds every interface on 8080."""
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = ServerSettings.from_env()

        assert settings == ServerSettings(host="0.0.0.0", port=8080, log_level="INFO")  # noqa: S104

    def test_reads_overrides(self) -> None:
        """Host, port and level come from HERALD_* variables."""
        env = {
            "HERALD_HOST": "127.0.0.1",
            "HERALD_PORT": "9000",
            "HERALD_LOG_LEVEL": "debug",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = ServerSettings.from_env()

        assert settings == ServerSettings(
            host="127.0.0.1", port=9000, log_level="debug"
        )


class TestCreateApp:
    """Tests for the environment-driven create_app factory."""

    def test_health_only_without_database(self) -> None:
        """Without HERALD_DATABASE_URL only the probes are served."""
        with mock.patch.dict(os.environ, {}, clear=True):
            app = create_app()

        assert isinstance(app, falcon.asgi.App)
        client = falcon.testing.TestClient(app)
        health = client.simulate_get("/health")
        assert health.status_code == HTTPStatus.OK
        assert health.json == {"status": "ok"}
        assert health.headers.get("content-type", "").startswith("application/json")
        executions = client.simulate_get("/reports/r1/executions")
        assert executions.status_code == HTTPStatus.NOT_FOUND

    def test_database_url_enables_execution_routes(self, database_url: str) -> None:
        """With a database URL the execution endpoints are registered."""
        env = {"HERALD_DATABASE_URL": database_url}
        with mock.patch.dict(os.environ, env, clear=True):
            app = create_app()

        client = falcon.testing.TestClient(app)
        result = client.simulate_get("/reports/r1/executions/not-a-date")
        assert result.status_code == HTTPStatus.BAD_REQUEST
        ready = client.simulate_get("/ready")
        assert ready.json == {"status": "ready"}
