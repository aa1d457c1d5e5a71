"""Exceptions raised by delivery channels and their configuration."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class DeliveryError(Exception):
    """Raised when a channel fails to hand off a message.

    Attributes
    ----------
    reason
        Short machine-readable failure cause.

    """

    def __init__(self, message: str, *, reason: str) -> None:
        """Initialise the error with its failure reason."""
        self.reason = reason
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int) -> DeliveryError:
        """Create error for a non-success HTTP response."""
        return cls(
            f"Email API HTTP error {status_code}",
            reason=f"http_{status_code}",
        )

    @classmethod
    def timeout(cls, timeout_s: float | None = None) -> DeliveryError:
        """Create error for a hand-off that exceeded its timeout."""
        msg = "Delivery timed out"
        if timeout_s is not None:
            msg = f"{msg} after {timeout_s}s"
        return cls(msg, reason="timeout")

    @classmethod
    def network_error(cls, detail: str) -> DeliveryError:
        """Create error for connection-level failures."""
        return cls(f"Email API network error: {detail}", reason="network_error")

    @classmethod
    def write_failed(cls, detail: str) -> DeliveryError:
        """Create error for an outbox write that could not complete."""
        return cls(f"Outbox write failed: {detail}", reason="write_failed")


class DeliveryConfigError(Exception):
    """Raised when delivery configuration is invalid."""

    @classmethod
    def missing_backend(cls) -> DeliveryConfigError:
        """Create error when ``HERALD_DELIVERY_BACKEND`` is not set."""
        return cls("HERALD_DELIVERY_BACKEND environment variable is required")

    @classmethod
    def invalid_backend(
        cls, name: str, valid_backends: cabc.Iterable[str]
    ) -> DeliveryConfigError:
        """Create error for an unrecognised backend name."""
        options = ", ".join(f"'{b}'" for b in sorted(valid_backends))
        return cls(f"Invalid delivery backend '{name}'. Valid options are: {options}")

    @classmethod
    def missing_endpoint(cls) -> DeliveryConfigError:
        """Create error when ``HERALD_EMAIL_ENDPOINT`` is not set."""
        return cls("HERALD_EMAIL_ENDPOINT environment variable is required")

    @classmethod
    def missing_sender(cls) -> DeliveryConfigError:
        """Create error when ``HERALD_EMAIL_SENDER`` is not set."""
        return cls("HERALD_EMAIL_SENDER environment variable is required")

    @classmethod
    def missing_outbox_path(cls) -> DeliveryConfigError:
        """Create error when ``HERALD_OUTBOX_PATH`` is not set."""
        return cls("HERALD_OUTBOX_PATH environment variable is required")
