"""Emit structured lifecycle events for executions.

Each event is one log line ``[<event type>] key=value ...`` so operators can
filter and alert on stable identifiers.

Usage
-----
>>> event_logger = ExecutionEventLogger()
>>> event_logger.log_started(report_id="r1", period_key="2024-06-01")

"""

from __future__ import annotations

import enum
import typing as typ

from herald.logging import get_logger, log_error, log_info, log_warning
from herald.research.metrics import ModelInvocationMetrics

if typ.TYPE_CHECKING:
    import datetime as dt

    from herald.research.models import ResearchFailure

logger = get_logger(__name__)


class ExecutionEventType(enum.StrEnum):
    """Structured log event types for the execution lifecycle."""

    TRIGGER_DISCARDED = "trigger.discarded"
    EXECUTION_STARTED = "execution.started"
    EXECUTION_DUPLICATE = "execution.duplicate"
    EXECUTION_COMPLETED = "execution.completed"
    EXECUTION_RETRY_SCHEDULED = "execution.retry_scheduled"
    EXECUTION_FAILED = "execution.failed"
    DELIVERY_SENT = "delivery.sent"
    DELIVERY_FAILED = "delivery.failed"
    REPORT_DEACTIVATED = "report.deactivated"


class ExecutionEventLogger:
    """Emit execution lifecycle events via femtologging."""

    def log_trigger_discarded(
        self, *, report_id: str, scheduled_period: str, reason: str
    ) -> None:
        """Log a trigger dropped before an execution was created.

        Parameters
        ----------
        report_id
            Report named by the trigger.
        scheduled_period
            Period value carried by the trigger.
        reason
            Why the trigger was discarded, e.g. ``definition_inactive``.

        """
        log_info(
            logger,
            "[%s] report_id=%s scheduled_period=%s reason=%s",
            ExecutionEventType.TRIGGER_DISCARDED,
            report_id,
            scheduled_period,
            reason,
        )

    def log_started(self, *, report_id: str, period_key: str) -> None:
        """Log that this worker won the pair and began processing."""
        log_info(
            logger,
            "[%s] report_id=%s period_key=%s",
            ExecutionEventType.EXECUTION_STARTED,
            report_id,
            period_key,
        )

    def log_duplicate(self, *, report_id: str, period_key: str, status: str) -> None:
        """Log a trigger that found an existing record for its pair."""
        log_info(
            logger,
            "[%s] report_id=%s period_key=%s existing_status=%s",
            ExecutionEventType.EXECUTION_DUPLICATE,
            report_id,
            period_key,
            status,
        )

    def log_completed(
        self,
        *,
        report_id: str,
        period_key: str,
        attempt_count: int,
        model: str,
        metrics: ModelInvocationMetrics | None,
    ) -> None:
        """Log a completed execution with model latency and token fields.

        Parameters
        ----------
        report_id
            Report identifier.
        period_key
            Period the execution covers.
        attempt_count
            Attempts used, including the successful one.
        model
            Model identifier that produced the content.
        metrics
            Invocation metrics of the successful call, when available.

        """
        if metrics is None:
            metrics = ModelInvocationMetrics()
        log_info(
            logger,
            "[%s] report_id=%s period_key=%s attempts=%s model=%s "
            "latency_ms=%s total_tokens=%s",
            ExecutionEventType.EXECUTION_COMPLETED,
            report_id,
            period_key,
            attempt_count,
            model,
            metrics.latency_text,
            metrics.total_tokens,
        )

    def log_retry_scheduled(
        self,
        *,
        report_id: str,
        period_key: str,
        attempt_count: int,
        delay: dt.timedelta,
        failure: ResearchFailure,
    ) -> None:
        """Log a transient failure that will be retried after ``delay``."""
        log_warning(
            logger,
            "[%s] report_id=%s period_key=%s attempts=%s delay_seconds=%.0f "
            "reason=%s error_message=%s",
            ExecutionEventType.EXECUTION_RETRY_SCHEDULED,
            report_id,
            period_key,
            attempt_count,
            delay.total_seconds(),
            failure.reason,
            failure.message,
        )

    def log_failed(
        self,
        *,
        report_id: str,
        period_key: str,
        attempt_count: int,
        failure: ResearchFailure,
    ) -> None:
        """Log a terminal execution failure.

        Parameters
        ----------
        report_id
            Report identifier.
        period_key
            Period the execution covers.
        attempt_count
            Attempts consumed before giving up.
        failure
            The failure that ended the execution.

        """
        log_error(
            logger,
            "[%s] report_id=%s period_key=%s attempts=%s error_kind=%s "
            "reason=%s error_message=%s",
            ExecutionEventType.EXECUTION_FAILED,
            report_id,
            period_key,
            attempt_count,
            failure.kind,
            failure.reason,
            failure.message,
        )

    def log_delivery_sent(
        self, *, report_id: str, period_key: str, channel: str
    ) -> None:
        """Log a delivery accepted by its channel."""
        log_info(
            logger,
            "[%s] report_id=%s period_key=%s channel=%s",
            ExecutionEventType.DELIVERY_SENT,
            report_id,
            period_key,
            channel,
        )

    def log_delivery_failed(
        self, *, report_id: str, period_key: str, channel: str, reason: str
    ) -> None:
        """Log a delivery the channel did not accept."""
        log_warning(
            logger,
            "[%s] report_id=%s period_key=%s channel=%s reason=%s",
            ExecutionEventType.DELIVERY_FAILED,
            report_id,
            period_key,
            channel,
            reason,
        )

    def log_report_deactivated(
        self, *, report_id: str, consecutive_failures: int
    ) -> None:
        """Log a report switched off after repeated failed executions."""
        log_error(
            logger,
            "[%s] report_id=%s consecutive_failures=%s",
            ExecutionEventType.REPORT_DEACTIVATED,
            report_id,
            consecutive_failures,
        )
