"""Capture femtologging output for assertions.

femtologging hands records to handlers on its own worker thread, so
assertions wait on a condition variable instead of reading the list
immediately.
"""

from __future__ import annotations

import contextlib
import dataclasses
import threading
import time
import typing as typ

from femtologging import get_logger


@dataclasses.dataclass(slots=True)
class CapturedRecord:
    """One record received by ``LogCapture``."""

    logger: str
    level: str
    message: str
    exc_info: object | None = None


class LogCapture:
    """Python handler collecting femtologging records."""

    def __init__(self) -> None:
        """Initialise storage and the condition guarding it."""
        self.records: list[CapturedRecord] = []
        self._condition = threading.Condition()

    def handle(self, logger: str, level: str, message: str) -> None:
        """Receive a plain record from the femtologging worker thread."""
        self._append(CapturedRecord(str(logger), str(level), message))

    def handle_record(self, record: dict[str, object]) -> None:
        """Receive a structured record payload."""
        self._append(
            CapturedRecord(
                logger=str(record.get("logger", "")),
                level=str(record.get("level", "")),
                message=str(record.get("message", "")),
                exc_info=record.get("exc_info"),
            )
        )

    def _append(self, record: CapturedRecord) -> None:
        with self._condition:
            self.records.append(record)
            self._condition.notify_all()

    @property
    def messages(self) -> list[str]:
        """Return the captured messages in arrival order."""
        with self._condition:
            return [record.message for record in self.records]

    def wait_for_message(self, fragment: str, timeout: float = 1.0) -> CapturedRecord:
        """Block until a record containing ``fragment`` arrives and return it."""
        deadline = time.monotonic() + timeout
        with self._condition:
            while True:
                for record in self.records:
                    if fragment in record.message:
                        return record
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._condition.wait(timeout=remaining)
        seen = [record.message for record in self.records]
        msg = f"No record containing {fragment!r}; captured {seen!r}"
        raise AssertionError(msg)

    def settle(self, timeout: float = 0.1) -> None:
        """Give the worker thread ``timeout`` seconds to flush records."""
        deadline = time.monotonic() + timeout
        with self._condition:
            while (remaining := deadline - time.monotonic()) > 0:
                self._condition.wait(timeout=remaining)


@contextlib.contextmanager
def capture_femto_logs(
    logger_name: str,
    *,
    level: str = "TRACE",
) -> typ.Iterator[LogCapture]:
    """Attach a ``LogCapture`` to ``logger_name`` for the block's duration."""
    logger = get_logger(logger_name)
    previous_level = logger.level
    previous_propagate = logger.propagate

    logger.set_level(level)
    logger.set_propagate(False)
    handler = LogCapture()
    logger.add_handler(handler)
    try:
        yield handler
    finally:
        logger.remove_handler(handler)
        logger.set_level(previous_level)
        logger.set_propagate(previous_propagate)
