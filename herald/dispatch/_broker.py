"""Dramatiq broker bootstrap for the Herald actors.

Actor decorators bind to whatever broker is global when ``herald.dispatch.actor``
is imported, so that module calls :func:`ensure_broker_configured` at import
time and again at the top of each actor body.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

_lock = threading.Lock()
_configured = False

_PYTEST_ENV_VARS = ("PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER", "PYTEST_ADDOPTS")


def _stub_allowed() -> bool:
    """Return whether an in-memory ``StubBroker`` is acceptable.

    Allowed under pytest, or when ``HERALD_ALLOW_STUB_BROKER`` is ``1``,
    ``true`` or ``yes``.
    """
    if "pytest" in sys.modules or any(name in os.environ for name in _PYTEST_ENV_VARS):
        return True
    flag = os.environ.get("HERALD_ALLOW_STUB_BROKER", "").strip().lower()
    return flag in {"1", "true", "yes"}


def _existing_broker() -> dramatiq.Broker | None:
    try:  # pragma: no cover - depends on installed broker extras
        return dramatiq.get_broker()
    except (ImportError, LookupError):
        # The default RabbitMQ broker needs pika, which Herald does not install.
        return None


def ensure_broker_configured() -> None:
    """Make sure a global Dramatiq broker exists.

    Idempotent and safe to call from several worker threads.

    Raises
    ------
    RuntimeError
        When no broker is set and a stub broker is not allowed.

    """
    global _configured  # noqa: PLW0603

    if _configured:
        return
    with _lock:
        if _configured:
            return
        if _existing_broker() is None:
            if not _stub_allowed():  # pragma: no cover - production misconfiguration
                msg = (
                    "Herald needs a Dramatiq broker; configure one or set "
                    "HERALD_ALLOW_STUB_BROKER=1 for local runs"
                )
                raise RuntimeError(msg)
            dramatiq.set_broker(StubBroker())
        _configured = True
