"""Unit tests for the YAML config loader and env var resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from infra_poller.config.loader import load_settings, load_yaml, resolve_env_vars
from infra_poller.config.models import ProbeErrorPolicy

EXAMPLE_CONFIG = (
    Path(__file__).resolve().parents[2] / "examples" / "poller-config.yaml"
)


class TestResolveEnvVars:
    def test_plain_string_unchanged(self):
        assert resolve_env_vars("hello") == "hello"

    def test_substitutes_env_var(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("MY_SUB", "sub-1")
        assert resolve_env_vars("${MY_SUB}") == "sub-1"

    def test_default_when_var_missing(self):
        assert resolve_env_vars("${MISSING_VAR:-fallback}") == "fallback"

    def test_empty_default(self):
        assert resolve_env_vars("${MISSING_VAR:-}") == ""

    def test_missing_var_no_default_raises(self):
        with pytest.raises(ValueError, match="UNDEFINED_VAR"):
            resolve_env_vars("${UNDEFINED_VAR}")

    def test_recursive(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("STATE", "Running")
        data = {"profile": {"pending_states": ["${STATE}", "Accepted"]}, "n": 3}
        assert resolve_env_vars(data) == {
            "profile": {"pending_states": ["Running", "Accepted"]},
            "n": 3,
        }

    def test_default_with_colons(self):
        result = resolve_env_vars("${MISSING:-https://management.azure.com}")
        assert result == "https://management.azure.com"

    def test_missing_var_error_names_key_and_source(self):
        data = {"profiles": {"edge": {"timeout_seconds": "${EDGE_TIMEOUT}"}}}
        with pytest.raises(
            ValueError, match=r"profiles\.edge\.timeout_seconds in site\.yaml"
        ):
            resolve_env_vars(data, source="site.yaml")


class TestLoadYaml:
    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_yaml(tmp_path / "nope.yaml")

    def test_invalid_yaml_reports_position(self, tmp_path: Path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("profiles:\n  a: [unclosed\n")
        with pytest.raises(ValueError, match="line"):
            load_yaml(bad)

    def test_non_mapping_top_level(self, tmp_path: Path):
        bad = tmp_path / "list.yaml"
        bad.write_text("- a\n- b\n")
        with pytest.raises(TypeError, match="mapping"):
            load_yaml(bad)

    def test_empty_file_is_empty_mapping(self, tmp_path: Path):
        empty = tmp_path / "empty.yaml"
        empty.write_text("# nothing overridden\n")
        assert load_yaml(empty) == {}

    def test_unset_var_error_names_file(self, tmp_path: Path):
        cfg = tmp_path / "site.yaml"
        cfg.write_text("arm:\n  subscription_id: ${UNSET_SUBSCRIPTION_VAR}\n")
        with pytest.raises(ValueError, match="arm.subscription_id in .*site.yaml"):
            load_yaml(cfg)


class TestLoadSettings:
    def test_defaults_when_no_path(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("ARM_SUBSCRIPTION_ID", raising=False)
        monkeypatch.delenv("ARM_ACCESS_TOKEN", raising=False)
        settings = load_settings()
        assert settings.arm.subscription_id == ""
        assert settings.arm.access_token is None
        replication = settings.profile("servicebus_replication")
        assert replication.pending_states == frozenset({"Accepted"})
        assert replication.target_states == frozenset({"Succeeded"})
        assert replication.min_interval_seconds == 30
        assert settings.profile("arm_async_operation").case_insensitive is True

    def test_env_vars_fill_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ARM_SUBSCRIPTION_ID", "sub-123")
        monkeypatch.setenv("ARM_ACCESS_TOKEN", "tok")
        settings = load_settings()
        assert settings.arm.subscription_id == "sub-123"
        assert settings.arm.access_token.get_secret_value() == "tok"

    def test_example_config(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("REPLICATION_TIMEOUT_SECONDS", raising=False)
        settings = load_settings(EXAMPLE_CONFIG)
        assert settings.arm.timeout_seconds == 20
        # untouched defaults survive the merge
        assert settings.arm.api_version == "2017-04-01"
        replication = settings.profile("servicebus_replication")
        assert replication.timeout_seconds == 3600
        assert replication.min_interval_seconds == 30
        edge = settings.profile("edge_module_provisioning")
        assert edge.probe_error_policy == ProbeErrorPolicy.RETRY
        assert "arm_async_operation" in settings.profiles

    def test_invalid_profile_reports_source(self, tmp_path: Path):
        cfg = tmp_path / "bad.yaml"
        cfg.write_text(
            "profiles:\n  broken:\n    pending_states: [A]\n    target_states: [A]\n"
        )
        with pytest.raises(ValueError, match="bad.yaml"):
            load_settings(cfg)

    def test_null_override_drops_builtin_profile(self, tmp_path: Path):
        cfg = tmp_path / "site.yaml"
        cfg.write_text("profiles:\n  arm_async_operation: null\n")
        settings = load_settings(cfg)
        assert "arm_async_operation" not in settings.profiles
        assert "servicebus_replication" in settings.profiles
