"""Pydantic configuration models for poll sessions and the ARM client."""

from __future__ import annotations

from enum import StrEnum
from typing import Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)


class ProbeErrorPolicy(StrEnum):
    """What a poll session does when the probe raises."""

    FAIL_FAST = "fail_fast"
    RETRY = "retry"


class StateClass(StrEnum):
    """How a state reported by a probe is interpreted."""

    TARGET = "target"
    FAILURE = "failure"
    PENDING = "pending"
    UNKNOWN = "unknown"


class PollConfig(BaseModel):
    """Immutable configuration for one poll session.

    States are opaque strings; the poller only knows what the three sets
    say about them.  With ``case_insensitive`` enabled, states are compared
    after ``str.casefold`` (resource providers are not consistent about
    ``Succeeded`` vs ``succeeded``).
    """

    model_config = ConfigDict(frozen=True)

    pending_states: frozenset[str] = Field(default_factory=frozenset)
    target_states: frozenset[str] = Field(default_factory=frozenset)
    failure_states: frozenset[str] = frozenset({"Failed"})
    min_interval_seconds: float = Field(default=30.0, gt=0)
    timeout_seconds: float = Field(default=1800.0, gt=0)
    probe_error_policy: ProbeErrorPolicy = ProbeErrorPolicy.FAIL_FAST
    case_insensitive: bool = False

    @field_validator("pending_states", "target_states", "failure_states")
    @classmethod
    def reject_blank_states(cls, v: frozenset[str]) -> frozenset[str]:
        for state in v:
            if not state.strip():
                msg = "State names must be non-empty strings"
                raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def check_state_sets(self) -> Self:
        """Pending, target and failure sets must not overlap."""
        if not self.pending_states and not self.target_states:
            msg = "At least one of pending_states or target_states must be set"
            raise ValueError(msg)
        pending = self._fold_all(self.pending_states)
        target = self._fold_all(self.target_states)
        failure = self._fold_all(self.failure_states)
        for left_name, left, right_name, right in (
            ("pending_states", pending, "target_states", target),
            ("failure_states", failure, "pending_states", pending),
            ("failure_states", failure, "target_states", target),
        ):
            overlap = left & right
            if overlap:
                msg = (
                    f"{left_name} and {right_name} overlap: "
                    f"{sorted(overlap)}"
                )
                raise ValueError(msg)
        return self

    def _fold(self, state: str) -> str:
        return state.casefold() if self.case_insensitive else state

    def _fold_all(self, states: frozenset[str]) -> frozenset[str]:
        return frozenset(self._fold(s) for s in states)

    def classify(self, state: str) -> StateClass:
        """Return which configured set *state* belongs to."""
        folded = self._fold(state)
        if folded in self._fold_all(self.target_states):
            return StateClass.TARGET
        if folded in self._fold_all(self.failure_states):
            return StateClass.FAILURE
        if folded in self._fold_all(self.pending_states):
            return StateClass.PENDING
        return StateClass.UNKNOWN


class ArmConfig(BaseModel):
    """Azure Resource Manager REST API settings."""

    base_url: str = "https://management.azure.com"
    subscription_id: str = ""
    api_version: str = "2017-04-01"
    timeout_seconds: float = Field(default=30.0, gt=0)
    retry_max_attempts: int = Field(default=5, ge=1)
    retry_wait_seconds: float = Field(default=2.0, gt=0)
    access_token: SecretStr | None = None

    @field_validator("access_token", mode="before")
    @classmethod
    def blank_token_is_none(cls, v: object) -> object:
        # ${ARM_ACCESS_TOKEN:-} resolves to "" when the variable is unset
        if isinstance(v, str) and not v:
            return None
        return v


class PollerSettings(BaseModel):
    """Top-level settings: ARM connection plus named poll profiles."""

    arm: ArmConfig = Field(default_factory=ArmConfig)
    profiles: dict[str, PollConfig] = Field(default_factory=dict)

    def profile(self, name: str) -> PollConfig:
        try:
            return self.profiles[name]
        except KeyError:
            available = ", ".join(sorted(self.profiles)) or "(none)"
            msg = f"Unknown poll profile '{name}' (available: {available})"
            raise KeyError(msg) from None
