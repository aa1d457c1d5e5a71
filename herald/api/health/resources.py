"""Probe endpoints for the Herald API process.

Both probes answer without touching the database, so they are mounted in
health-only mode too. ``/health`` backs the liveness check and ``/ready``
the readiness check of the deployment.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["HealthResource", "ReadyResource"]


class _StaticProbe:
    """Answer GET with a fixed ``{"status": ...}`` body."""

    body: typ.ClassVar[dict[str, str]]

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Return the probe body with HTTP 200."""
        resp.status = HTTPStatus.OK
        resp.media = dict(self.body)


class HealthResource(_StaticProbe):
    """``GET /health``: the process is up."""

    body: typ.ClassVar[dict[str, str]] = {"status": "ok"}


class ReadyResource(_StaticProbe):
    """``GET /ready``: the app has finished wiring its routes."""

    body: typ.ClassVar[dict[str, str]] = {"status": "ready"}
