"""State-change waiter: poll a probe until an operation settles.

A poll session invokes a caller-supplied probe, classifies the state it
reports against a :class:`PollConfig` and either returns a terminal
:class:`PollResult` or sleeps for the configured interval and tries again.
Sessions always end with exactly one outcome; nothing is raised past this
module except task cancellation.

Two front-ends share the session logic:

- :func:`wait_for_state` for asyncio callers (async probe, ``asyncio.Event``)
- :func:`wait_for_state_blocking` for threaded callers (plain probe,
  ``threading.Event``)

Cancellation is only observed between probe calls.  A probe that blocks
forever blocks the session with it, so probes should bound their own I/O.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from infra_poller.config.models import PollConfig, ProbeErrorPolicy, StateClass
from infra_poller.polling.errors import (
    InvalidObservationError,
    PollCancelledError,
    PollTimeoutError,
    UnrecognizedStateError,
)
from infra_poller.polling.result import Observation, PollOutcome, PollResult

logger = structlog.get_logger()

AsyncProbe = Callable[[], Awaitable[Any]]
BlockingProbe = Callable[[], Any]


def as_observation(raw: Any) -> Observation:
    """Normalize a probe return value into an :class:`Observation`.

    Probes may return an :class:`Observation`, a ``(payload, state)`` tuple
    or a ``(payload, state, err)`` tuple.  An exception in the third slot is
    raised as the probe's error; otherwise it must be a ``str`` detail or
    ``None``.  Any other shape raises :class:`InvalidObservationError`.
    """
    if isinstance(raw, Observation):
        obs = raw
    elif isinstance(raw, tuple) and len(raw) in (2, 3):
        if len(raw) == 3 and isinstance(raw[2], Exception):
            raise raw[2]
        obs = Observation(*raw)
    else:
        msg = (
            "Probe must return an Observation or a (payload, state[, err]) "
            f"tuple, got {type(raw).__name__}"
        )
        raise InvalidObservationError(msg)
    if not isinstance(obs.state, str):
        msg = f"Probe returned a non-string state: {obs.state!r}"
        raise InvalidObservationError(msg)
    if obs.detail is not None and not isinstance(obs.detail, str):
        msg = f"Probe returned a detail that is not a string: {obs.detail!r}"
        raise InvalidObservationError(msg)
    return obs


class _Session:
    """Bookkeeping for one poll session, independent of the I/O style."""

    def __init__(self, config: PollConfig, description: str) -> None:
        self._config = config
        self._description = description
        self._started = time.monotonic()
        self._deadline = self._started + config.timeout_seconds
        self._last_error: Exception | None = None
        self.attempts = 0
        self.last_state: str | None = None
        self.last_payload: Any = None

        if config.timeout_seconds <= config.min_interval_seconds:
            logger.warning(
                "poll.timeout_not_above_interval",
                description=description,
                timeout_seconds=config.timeout_seconds,
                min_interval_seconds=config.min_interval_seconds,
            )
        logger.info(
            "poll.started",
            description=description,
            pending=sorted(config.pending_states),
            target=sorted(config.target_states),
            timeout_seconds=config.timeout_seconds,
        )

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._started

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._deadline

    def next_delay(self) -> float | None:
        """Seconds to sleep before the next probe, or None once out of time."""
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            return None
        return min(self._config.min_interval_seconds, remaining)

    def _result(self, outcome: PollOutcome, **kwargs: Any) -> PollResult:
        return PollResult(
            outcome=outcome,
            state=self.last_state,
            attempts=self.attempts,
            elapsed=self.elapsed,
            **kwargs,
        )

    def probe_failed(self, exc: Exception) -> PollResult | None:
        # a malformed return is a bug in the probe, not a transient fault
        retryable = not isinstance(exc, InvalidObservationError)
        if retryable and self._config.probe_error_policy == ProbeErrorPolicy.RETRY:
            self._last_error = exc
            logger.warning(
                "poll.probe_error_retrying",
                description=self._description,
                attempts=self.attempts,
                error=str(exc),
            )
            return None
        logger.error(
            "poll.errored",
            description=self._description,
            attempts=self.attempts,
            elapsed=round(self.elapsed, 3),
            error=str(exc),
        )
        return self._result(
            PollOutcome.ERRORED,
            reason=f"probe for {self._description} failed: {exc}",
            cause=exc,
        )

    def observe(self, obs: Observation) -> PollResult | None:
        """Classify one observation; None means keep polling."""
        self.last_state = obs.state
        self.last_payload = obs.payload
        self._last_error = None
        state_class = self._config.classify(obs.state)
        fields = {
            "description": self._description,
            "state": obs.state,
            "attempts": self.attempts,
            "elapsed": round(self.elapsed, 3),
        }

        if state_class == StateClass.TARGET:
            logger.info("poll.succeeded", **fields)
            return self._result(PollOutcome.SUCCEEDED, payload=obs.payload)

        if state_class == StateClass.FAILURE:
            reason = obs.detail or (
                f"{self._description} entered failure state {obs.state!r}"
            )
            logger.error("poll.failed", reason=reason, **fields)
            return self._result(PollOutcome.FAILED, payload=obs.payload, reason=reason)

        if state_class == StateClass.PENDING:
            logger.debug("poll.pending", **fields)
            return None

        err = UnrecognizedStateError(obs.state, self._description)
        logger.error("poll.errored", error=str(err), **fields)
        return self._result(
            PollOutcome.ERRORED, payload=obs.payload, reason=str(err), cause=err
        )

    def timed_out(self) -> PollResult:
        err = PollTimeoutError(self._config.timeout_seconds, self.last_state)
        if self._last_error is not None:
            err.__cause__ = self._last_error
        logger.warning(
            "poll.timed_out",
            description=self._description,
            state=self.last_state,
            attempts=self.attempts,
            elapsed=round(self.elapsed, 3),
        )
        return self._result(
            PollOutcome.TIMED_OUT,
            payload=self.last_payload,
            reason=str(err),
            cause=err,
        )

    def cancelled(self) -> PollResult:
        reason = f"waiting for {self._description} was cancelled"
        logger.info(
            "poll.cancelled",
            description=self._description,
            state=self.last_state,
            attempts=self.attempts,
        )
        return self._result(
            PollOutcome.CANCELLED,
            payload=self.last_payload,
            reason=reason,
            cause=PollCancelledError(reason),
        )


async def _sleep(delay: float, cancel: asyncio.Event | None) -> bool:
    """Sleep for *delay* seconds; True if *cancel* fired first."""
    if cancel is None:
        await asyncio.sleep(delay)
        return False
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except TimeoutError:
        return False
    return True


async def wait_for_state(
    config: PollConfig,
    probe: AsyncProbe,
    cancel: asyncio.Event | None = None,
    *,
    description: str = "operation",
) -> PollResult:
    """Poll an async *probe* until the operation it reports on settles.

    Args:
        config: State sets, interval and deadline for this session.
        probe: Coroutine function returning an :class:`Observation` or a
            ``(payload, state)`` tuple.  Raising counts as a probe error.
        cancel: Optional event; setting it ends the session as
            ``cancelled`` at the next sleep.
        description: Label used in log events and messages.

    Returns:
        The terminal :class:`PollResult`.
    """
    session = _Session(config, description)
    while True:
        if cancel is not None and cancel.is_set():
            return session.cancelled()
        if session.attempts and session.expired:
            return session.timed_out()

        session.attempts += 1
        try:
            obs = as_observation(await probe())
        except Exception as exc:
            result = session.probe_failed(exc)
        else:
            result = session.observe(obs)
        if result is not None:
            return result

        delay = session.next_delay()
        if delay is None:
            return session.timed_out()
        if await _sleep(delay, cancel):
            return session.cancelled()


def wait_for_state_blocking(
    config: PollConfig,
    probe: BlockingProbe,
    cancel: threading.Event | None = None,
    *,
    description: str = "operation",
) -> PollResult:
    """Blocking counterpart of :func:`wait_for_state` for threaded callers."""
    session = _Session(config, description)
    while True:
        if cancel is not None and cancel.is_set():
            return session.cancelled()
        if session.attempts and session.expired:
            return session.timed_out()

        session.attempts += 1
        try:
            obs = as_observation(probe())
        except Exception as exc:
            result = session.probe_failed(exc)
        else:
            result = session.observe(obs)
        if result is not None:
            return result

        delay = session.next_delay()
        if delay is None:
            return session.timed_out()
        if cancel is None:
            time.sleep(delay)
        elif cancel.wait(delay):
            return session.cancelled()
