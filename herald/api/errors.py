"""Error bodies returned by the execution API.

Resources raise domain exceptions; the handlers here turn them into JSON
problem bodies with a ``title`` and ``description``. Execution errors also
echo the ``report_id`` and ``period_key`` they refer to.

Usage
-----
Install every handler on an app::

    register_error_handlers(app)

"""

from __future__ import annotations

import typing as typ

import falcon

from herald.execution.errors import (
    ExecutionNotCompletedError,
    ExecutionNotFoundError,
)

if typ.TYPE_CHECKING:
    import falcon.asgi
    from falcon.asgi import Request, Response

__all__ = [
    "InvalidInputError",
    "handle_execution_not_completed",
    "handle_execution_not_found",
    "handle_invalid_input",
    "register_error_handlers",
]


class InvalidInputError(Exception):
    """A path or query parameter failed validation (HTTP 400).

    Attributes
    ----------
    reason
        What was wrong with the value.
    field
        Parameter name, when the failure concerns a single parameter.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Record the failure and build a ``field: reason`` message."""
        self.reason = reason
        self.field = field
        super().__init__(reason if field is None else f"{field}: {reason}")


def _execution_body(
    title: str, ex: ExecutionNotFoundError | ExecutionNotCompletedError
) -> dict[str, str]:
    return {
        "title": title,
        "description": str(ex),
        "report_id": ex.report_id,
        "period_key": ex.period_key,
    }


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Respond 400 with the validation reason and offending field."""
    resp.status = falcon.HTTP_400
    body = {"title": "Invalid input", "description": ex.reason}
    if ex.field is not None:
        body["field"] = ex.field
    resp.media = body


async def handle_execution_not_found(
    _req: Request,
    resp: Response,
    ex: ExecutionNotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Respond 404 for an unknown ``(report_id, period_key)`` pair."""
    resp.status = falcon.HTTP_404
    resp.media = _execution_body("Execution not found", ex)


async def handle_execution_not_completed(
    _req: Request,
    resp: Response,
    ex: ExecutionNotCompletedError,
    _params: dict[str, typ.Any],
) -> None:
    """Respond 409 when an execution has no content to resend.

    The body carries the execution's current ``status`` so callers can tell
    a run still in flight from one that failed.
    """
    resp.status = falcon.HTTP_409
    body = _execution_body("Execution not completed", ex)
    body["status"] = ex.status
    resp.media = body


def register_error_handlers(app: falcon.asgi.App) -> None:
    """Install the Herald error handlers on ``app``."""
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(ExecutionNotFoundError, handle_execution_not_found)
    app.add_error_handler(ExecutionNotCompletedError, handle_execution_not_completed)
