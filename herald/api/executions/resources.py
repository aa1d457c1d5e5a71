"""Execution record resources for operators and alerting.

Routes
------
``GET /reports/{report_id}/executions``
    Range query over a report's executions, newest period first. Accepts
    ``status`` (``pending``, ``processing``, ``completed``, ``failed``),
    ``delivery`` (``sent``, ``failed``, or ``none`` for no recorded hand-off)
    and ``limit`` (1-500, default 50) query parameters.
``GET /reports/{report_id}/executions/{period_key}``
    Point lookup including the generated content.
``POST /reports/{report_id}/executions/{period_key}/resend``
    Queue a fresh delivery of a completed execution.

"""

from __future__ import annotations

import enum
import re
import typing as typ

import falcon

from herald.api.errors import InvalidInputError
from herald.execution.errors import (
    ExecutionNotCompletedError,
    ExecutionNotFoundError,
)
from herald.execution.storage import (
    DeliveryFilter,
    ExecutionRecord,
    ExecutionStatus,
)
from herald.execution.store import execution_range_query

if typ.TYPE_CHECKING:
    import datetime as dt

    from falcon.asgi import Request, Response
    from sqlalchemy.ext.asyncio import AsyncSession

__all__ = [
    "ExecutionCollectionResource",
    "ExecutionResendResource",
    "ExecutionResource",
    "ResendEnqueuer",
    "serialize_execution",
]

_PERIOD_KEY = re.compile(r"\d{4}-\d{2}-\d{2}")
_DEFAULT_LIMIT = 50
_MAX_LIMIT = 500


@typ.runtime_checkable
class ResendEnqueuer(typ.Protocol):
    """Port for queuing a delivery resend outside the request."""

    def enqueue_resend(self, report_id: str, period_key: str) -> None:
        """Queue a resend for the execution."""
        ...


def _iso(value: dt.datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def serialize_execution(
    record: ExecutionRecord, *, include_content: bool = False
) -> dict[str, typ.Any]:
    """Serialise an execution record to a JSON-compatible dict."""
    media: dict[str, typ.Any] = {
        "report_id": record.report_id,
        "period_key": record.period_key,
        "status": record.status,
        "attempt_count": record.attempt_count,
        "start_time": _iso(record.start_time),
        "end_time": _iso(record.end_time),
        "next_attempt_at": _iso(record.next_attempt_at),
        "error": None,
        "delivery": {
            "status": record.delivery_status,
            "error": record.delivery_error,
            "attempts": record.delivery_attempts,
            "delivered_at": _iso(record.delivered_at),
        },
        "updated_at": _iso(record.updated_at),
    }
    if record.error_reason is not None:
        media["error"] = {
            "kind": record.error_kind,
            "reason": record.error_reason,
            "message": record.error_message,
        }
    if include_content:
        media["content"] = record.content
    return media


def _validate_period_key(period_key: str) -> str:
    if not _PERIOD_KEY.fullmatch(period_key):
        raise InvalidInputError("expected YYYY-MM-DD", field="period_key")
    return period_key


def _parse_choice[E: enum.StrEnum](
    raw: str | None, choices: type[E], field: str
) -> E | None:
    if raw is None:
        return None
    try:
        return choices(raw.strip().lower())
    except ValueError as exc:
        options = ", ".join(choice.value for choice in choices)
        raise InvalidInputError(f"expected one of: {options}", field=field) from exc


async def _load(
    session: AsyncSession, report_id: str, period_key: str
) -> ExecutionRecord:
    record = await session.get(ExecutionRecord, (report_id, period_key))
    if record is None:
        raise ExecutionNotFoundError(report_id, period_key)
    return record


class ExecutionCollectionResource:
    """Range query over one report's execution records."""

    async def on_get(self, req: Request, resp: Response, *, report_id: str) -> None:
        """Handle GET requests listing a report's executions.

        Parameters
        ----------
        req
            Falcon request carrying the session and query parameters.
        resp
            Falcon response receiving the list.
        report_id
            Report identifier from the URL path.

        """
        status = _parse_choice(req.get_param("status"), ExecutionStatus, "status")
        delivery = _parse_choice(req.get_param("delivery"), DeliveryFilter, "delivery")
        limit = req.get_param_as_int(
            "limit", default=_DEFAULT_LIMIT, min_value=1, max_value=_MAX_LIMIT
        )
        stmt = execution_range_query(
            report_id, status=status, delivery=delivery, limit=limit
        )

        session: AsyncSession = req.context.session
        records = (await session.scalars(stmt)).all()
        resp.media = {
            "report_id": report_id,
            "executions": [serialize_execution(record) for record in records],
        }
        resp.status = falcon.HTTP_200


class ExecutionResource:
    """Point lookup of one execution record."""

    async def on_get(
        self,
        req: Request,
        resp: Response,
        *,
        report_id: str,
        period_key: str,
    ) -> None:
        """Handle GET requests for a single execution."""
        session: AsyncSession = req.context.session
        record = await _load(session, report_id, _validate_period_key(period_key))
        resp.media = serialize_execution(record, include_content=True)
        resp.status = falcon.HTTP_200


class ExecutionResendResource:
    """Delivery resend hook for completed executions."""

    def __init__(self, enqueuer: ResendEnqueuer) -> None:
        """Configure the resource with the resend queue."""
        self._enqueuer = enqueuer

    async def on_post(
        self,
        req: Request,
        resp: Response,
        *,
        report_id: str,
        period_key: str,
    ) -> None:
        """Queue a resend; 404 for unknown and 409 for unfinished executions."""
        session: AsyncSession = req.context.session
        record = await _load(session, report_id, _validate_period_key(period_key))
        if record.execution_status is not ExecutionStatus.COMPLETED:
            raise ExecutionNotCompletedError(report_id, period_key, record.status)

        self._enqueuer.enqueue_resend(report_id, period_key)
        resp.media = {
            "report_id": report_id,
            "period_key": period_key,
            "queued": True,
        }
        resp.status = falcon.HTTP_202
