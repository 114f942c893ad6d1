"""Exceptions describing why a poll session did not succeed."""

from __future__ import annotations

from typing import Any


class PollError(Exception):
    """Base class for poll session failures."""


class ProbeError(PollError):
    """Raised when the probe itself could not report a status."""


class UnrecognizedStateError(PollError):
    """The probe reported a state that no configured set accounts for."""

    def __init__(self, state: str, description: str = "operation") -> None:
        super().__init__(
            f"{description} reported unexpected state {state!r}; "
            "it is neither pending, target nor failure"
        )
        self.state = state


class TerminalStateError(PollError):
    """The operation being waited on reached a failure state."""

    def __init__(self, message: str, state: str, payload: Any = None) -> None:
        super().__init__(message)
        self.state = state
        self.payload = payload


class PollTimeoutError(PollError, TimeoutError):
    """The deadline passed while the operation was still pending."""

    def __init__(self, timeout: float, last_state: str | None) -> None:
        super().__init__(
            f"Operation did not complete within {timeout} seconds "
            f"(last state: {last_state})"
        )
        self.timeout = timeout
        self.last_state = last_state


class PollCancelledError(PollError):
    """The caller cancelled the session before it completed."""


class InvalidObservationError(ProbeError):
    """The probe returned a value that is not a valid observation."""
