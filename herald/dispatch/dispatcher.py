"""Entry point for time-triggered report executions.

The trigger facility calls ``TriggerDispatcher.dispatch`` with the report and
the period the trigger was scheduled for. Missing or inactive definitions
are discarded with a structured log event. Everything else becomes a call
to ``ExecutionStateMachine.start_execution`` under a period key derived only
from the trigger, so redelivered or late triggers map onto the same
execution.
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import re
import typing as typ

from herald.definitions.models import ReportSnapshot
from herald.dispatch.errors import InvalidScheduledPeriodError
from herald.execution.observability import ExecutionEventLogger

if typ.TYPE_CHECKING:
    from herald.definitions.storage import ReportDefinitionRow
    from herald.execution.machine import ExecutionStateMachine
    from herald.execution.outcomes import StartResult

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


class DiscardReason(enum.StrEnum):
    """Why a trigger produced no execution."""

    DEFINITION_NOT_FOUND = "definition_not_found"
    DEFINITION_INACTIVE = "definition_inactive"


@dc.dataclass(frozen=True, slots=True)
class DispatchResult:
    """What a dispatch did.

    Attributes
    ----------
    report_id
        Report named by the trigger.
    period_key
        Derived period key.
    discarded
        Discard reason, or ``None`` when the state machine was invoked.
    start
        Result of ``start_execution`` when the trigger was not discarded.

    """

    report_id: str
    period_key: str
    discarded: DiscardReason | None = None
    start: StartResult | None = None

    @property
    def dispatched(self) -> bool:
        """Return whether the trigger reached the state machine."""
        return self.discarded is None


def compute_period_key(scheduled_period: str) -> str:
    """Derive the period key (UTC ``YYYY-MM-DD``) for a trigger.

    Parameters
    ----------
    scheduled_period
        An ISO date (``2024-06-01``) or a timezone-aware ISO datetime
        (``2024-06-01T09:00:00Z``).

    Raises
    ------
    InvalidScheduledPeriodError
        If the value is not ISO formatted or is a naive datetime.

    Examples
    --------
    >>> compute_period_key("2024-06-01T23:30:00-02:00")
    '2024-06-02'

    """
    text = scheduled_period.strip()
    if _ISO_DATE.fullmatch(text):
        try:
            return dt.date.fromisoformat(text).isoformat()
        except ValueError as exc:
            raise InvalidScheduledPeriodError(scheduled_period, str(exc)) from exc

    try:
        moment = dt.datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidScheduledPeriodError(
            scheduled_period, "not an ISO date or datetime"
        ) from exc
    if moment.tzinfo is None:
        raise InvalidScheduledPeriodError(
            scheduled_period, "datetime must include a UTC offset"
        )
    return moment.astimezone(dt.UTC).date().isoformat()


@typ.runtime_checkable
class DefinitionReader(typ.Protocol):
    """Read access to report definitions by id."""

    async def get(self, report_id: str) -> ReportDefinitionRow | None:
        """Return the definition for ``report_id``, if it exists."""
        ...


class TriggerDispatcher:
    """Turn ``(report_id, scheduled_period)`` triggers into executions."""

    def __init__(
        self,
        definitions: DefinitionReader,
        machine: ExecutionStateMachine,
        *,
        event_logger: ExecutionEventLogger | None = None,
    ) -> None:
        """Bind the dispatcher to definitions and the state machine."""
        self._definitions = definitions
        self._machine = machine
        self._events = event_logger or ExecutionEventLogger()

    async def dispatch(self, report_id: str, scheduled_period: str) -> DispatchResult:
        """Handle one trigger.

        Raises
        ------
        InvalidScheduledPeriodError
            If ``scheduled_period`` cannot produce a period key.

        """
        period_key = compute_period_key(scheduled_period)
        definition = await self._definitions.get(report_id)
        if definition is None:
            return self._discard(
                report_id,
                scheduled_period,
                period_key,
                DiscardReason.DEFINITION_NOT_FOUND,
            )
        if not definition.active:
            return self._discard(
                report_id,
                scheduled_period,
                period_key,
                DiscardReason.DEFINITION_INACTIVE,
            )

        start = await self._machine.start_execution(
            report_id, period_key, ReportSnapshot.from_row(definition)
        )
        return DispatchResult(report_id=report_id, period_key=period_key, start=start)

    def _discard(
        self,
        report_id: str,
        scheduled_period: str,
        period_key: str,
        reason: DiscardReason,
    ) -> DispatchResult:
        self._events.log_trigger_discarded(
            report_id=report_id,
            scheduled_period=scheduled_period,
            reason=reason,
        )
        return DispatchResult(
            report_id=report_id, period_key=period_key, discarded=reason
        )
