"""Poll session outcomes and probe observations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, NamedTuple

from infra_poller.polling.errors import (
    PollCancelledError,
    PollError,
    PollTimeoutError,
    ProbeError,
    TerminalStateError,
)


class Observation(NamedTuple):
    """A single status reading returned by a probe."""

    payload: Any
    state: str
    # Optional explanation, used as the failure reason for failure states.
    detail: str | None = None


class PollOutcome(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollResult:
    """Terminal outcome of one poll session.

    ``cause`` and ``elapsed`` are excluded from equality: two sessions that
    observe the same sequence of states compare equal even though their
    timings and exception instances differ.
    """

    outcome: PollOutcome
    payload: Any = None
    state: str | None = None
    reason: str = ""
    attempts: int = 0
    cause: BaseException | None = field(default=None, compare=False)
    elapsed: float = field(default=0.0, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.outcome == PollOutcome.SUCCEEDED

    def raise_for_outcome(self) -> Any:
        """Return the payload on success, otherwise raise a ``PollError``."""
        if self.outcome == PollOutcome.SUCCEEDED:
            return self.payload
        if self.outcome == PollOutcome.FAILED:
            raise TerminalStateError(
                self.reason, state=self.state or "", payload=self.payload
            )
        if self.outcome == PollOutcome.TIMED_OUT:
            if isinstance(self.cause, PollTimeoutError):
                raise self.cause
            raise PollTimeoutError(self.elapsed, self.state) from self.cause
        if self.outcome == PollOutcome.CANCELLED:
            raise PollCancelledError(self.reason or "poll session cancelled")
        if isinstance(self.cause, PollError):
            raise self.cause
        raise ProbeError(self.reason) from self.cause
