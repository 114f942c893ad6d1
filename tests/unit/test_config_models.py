"""Unit tests for configuration Pydantic models."""

import pytest
from pydantic import ValidationError

from infra_poller.config.models import (
    ArmConfig,
    PollConfig,
    PollerSettings,
    ProbeErrorPolicy,
    StateClass,
)


class TestPollConfig:
    def test_defaults(self):
        cfg = PollConfig(target_states={"Succeeded"})
        assert cfg.failure_states == frozenset({"Failed"})
        assert cfg.probe_error_policy == ProbeErrorPolicy.FAIL_FAST
        assert cfg.case_insensitive is False

    def test_lists_are_coerced_to_frozensets(self):
        cfg = PollConfig.model_validate(
            {"pending_states": ["Accepted"], "target_states": ["Succeeded"]}
        )
        assert cfg.pending_states == frozenset({"Accepted"})

    def test_is_frozen(self):
        cfg = PollConfig(target_states={"Succeeded"})
        with pytest.raises(ValidationError):
            cfg.timeout_seconds = 1.0

    def test_overlapping_pending_and_target_rejected(self):
        with pytest.raises(ValidationError, match="overlap"):
            PollConfig(pending_states={"Accepted"}, target_states={"Accepted"})

    def test_failure_overlapping_target_rejected(self):
        with pytest.raises(ValidationError, match="failure_states and target_states"):
            PollConfig(target_states={"Failed"})

    def test_overlap_detected_case_insensitively(self):
        with pytest.raises(ValidationError, match="overlap"):
            PollConfig(
                pending_states={"accepted"},
                target_states={"Accepted"},
                case_insensitive=True,
            )

    def test_both_sets_empty_rejected(self):
        with pytest.raises(ValidationError, match="At least one"):
            PollConfig()

    def test_blank_state_rejected(self):
        with pytest.raises(ValidationError, match="non-empty"):
            PollConfig(target_states={" "})

    @pytest.mark.parametrize("field", ["min_interval_seconds", "timeout_seconds"])
    def test_durations_must_be_positive(self, field: str):
        with pytest.raises(ValidationError):
            PollConfig(target_states={"Succeeded"}, **{field: 0})

    def test_classify(self):
        cfg = PollConfig(pending_states={"Accepted"}, target_states={"Succeeded"})
        assert cfg.classify("Succeeded") == StateClass.TARGET
        assert cfg.classify("Failed") == StateClass.FAILURE
        assert cfg.classify("Accepted") == StateClass.PENDING
        assert cfg.classify("succeeded") == StateClass.UNKNOWN

    def test_classify_case_insensitive(self):
        cfg = PollConfig(
            pending_states={"Accepted"},
            target_states={"Succeeded"},
            case_insensitive=True,
        )
        assert cfg.classify("SUCCEEDED") == StateClass.TARGET
        assert cfg.classify("failed") == StateClass.FAILURE


class TestArmConfig:
    def test_defaults(self):
        cfg = ArmConfig()
        assert cfg.base_url == "https://management.azure.com"
        assert cfg.api_version == "2017-04-01"
        assert cfg.access_token is None

    def test_blank_token_is_none(self):
        assert ArmConfig(access_token="").access_token is None

    def test_token_is_secret(self):
        cfg = ArmConfig(access_token="t0ken")
        assert cfg.access_token.get_secret_value() == "t0ken"
        assert "t0ken" not in repr(cfg)


class TestPollerSettings:
    def test_profile_lookup(self):
        cfg = PollConfig(target_states={"Succeeded"})
        settings = PollerSettings(profiles={"x": cfg})
        assert settings.profile("x") is cfg

    def test_unknown_profile_lists_available(self):
        settings = PollerSettings(
            profiles={"a": PollConfig(target_states={"Succeeded"})}
        )
        with pytest.raises(KeyError, match="available: a"):
            settings.profile("missing")
