"""Process entrypoint for the Herald operator API.

Granian loads ``herald.runtime:create_app`` as an app factory. The factory
reads ``HERALD_DATABASE_URL``: with it, the app can query executions and
queue resends on the Dramatiq broker; without it, only the health probes
are served.

Environment
-----------
``HERALD_HOST``
    Bind address, ``0.0.0.0`` by default.
``HERALD_PORT``
    Listen port, ``8080`` by default.
``HERALD_LOG_LEVEL``
    femtologging level, ``INFO`` by default.
``HERALD_DATABASE_URL``
    SQLAlchemy async URL shared with the worker.

Start the server with ``python -m herald.runtime``.
"""

from __future__ import annotations

import dataclasses as dc
import os
import typing as typ

from herald.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["ServerSettings", "create_app", "main"]

logger = get_logger(__name__)

_PORT_RANGE = range(1, 65536)


def _parse_port(raw: str) -> int:
    """Return ``raw`` as a TCP port.

    Raises
    ------
    SystemExit
        With status 1 when ``raw`` is not an integer between 1 and 65535.

    """
    port = int(raw) if raw.strip().isdigit() else None
    if port is None or port not in _PORT_RANGE:
        log_error(
            logger,
            "HERALD_PORT must be an integer between %d and %d, got %r",
            _PORT_RANGE.start,
            _PORT_RANGE.stop - 1,
            raw,
        )
        raise SystemExit(1)
    return port


@dc.dataclass(frozen=True, slots=True)
class ServerSettings:
    """Bind address and log level for the API process."""

    host: str
    port: int
    log_level: str

    @classmethod
    def from_env(cls) -> ServerSettings:
        """Read the settings, exiting on an unusable port."""
        return cls(
            host=os.environ.get("HERALD_HOST", "0.0.0.0"),  # noqa: S104 - container bind
            port=_parse_port(os.environ.get("HERALD_PORT", "8080")),
            log_level=os.environ.get("HERALD_LOG_LEVEL", "INFO"),
        )


def create_app() -> falcon.asgi.App:
    """Build the Falcon app for the current environment."""
    from herald.api.app import AppDependencies
    from herald.api.app import create_app as build_api

    database_url = os.environ.get("HERALD_DATABASE_URL")
    if database_url is None:
        return build_api()

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from herald.dispatch.actor import DramatiqResendEnqueuer

    engine = create_async_engine(database_url)
    return build_api(
        AppDependencies(
            session_factory=async_sessionmaker(engine, expire_on_commit=False),
            resend_enqueuer=DramatiqResendEnqueuer(database_url),
        )
    )


def main() -> None:
    """Configure logging and serve the app with Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    settings = ServerSettings.from_env()
    level, rejected = configure_logging(settings.log_level)
    if rejected:
        log_warning(
            logger,
            "Ignoring HERALD_LOG_LEVEL %r; using %s",
            settings.log_level,
            level,
        )
    log_info(
        logger,
        "Herald API listening on %s:%d at %s",
        settings.host,
        settings.port,
        level,
    )

    Granian(
        "herald.runtime:create_app",
        address=settings.host,
        port=settings.port,
        interface=Interfaces.ASGI,
        factory=True,
    ).serve()


if __name__ == "__main__":
    main()
