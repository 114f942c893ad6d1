"""Unit tests for default config loading and merging."""

import pytest

from infra_poller.config.defaults import (
    available_defaults,
    load_defaults,
    merge_configs,
)


class TestLoadDefaults:
    def test_loads_poller_defaults(self):
        defaults = load_defaults("poller")
        assert defaults["arm"]["base_url"] == "https://management.azure.com"
        profile = defaults["profiles"]["servicebus_replication"]
        assert profile["pending_states"] == ["Accepted"]
        assert profile["target_states"] == ["Succeeded"]
        assert profile["min_interval_seconds"] == 30

    def test_missing_defaults_raises(self):
        with pytest.raises(FileNotFoundError, match="nonexistent"):
            load_defaults("nonexistent")

    def test_missing_defaults_lists_available(self):
        assert "poller" in available_defaults()
        with pytest.raises(FileNotFoundError, match="available: .*poller"):
            load_defaults("nonexistent")


class TestMergeConfigs:
    def test_shallow_override(self):
        base = {"a": 1, "b": 2}
        result = merge_configs(base, {"b": 99})
        assert result == {"a": 1, "b": 99}

    def test_deep_merge(self):
        base = {"profiles": {"p": {"timeout_seconds": 10, "min_interval_seconds": 1}}}
        result = merge_configs(base, {"profiles": {"p": {"timeout_seconds": 60}}})
        assert result["profiles"]["p"] == {
            "timeout_seconds": 60,
            "min_interval_seconds": 1,
        }

    def test_lists_are_replaced(self):
        base = {"pending_states": ["Accepted"]}
        result = merge_configs(base, {"pending_states": ["Running"]})
        assert result["pending_states"] == ["Running"]

    def test_does_not_mutate_base(self):
        base = {"arm": {"timeout_seconds": 30}}
        merge_configs(base, {"arm": {"timeout_seconds": 5}})
        assert base == {"arm": {"timeout_seconds": 30}}

    def test_null_override_removes_key(self):
        base = {"profiles": {"a": {"timeout_seconds": 1}, "b": {"timeout_seconds": 2}}}
        result = merge_configs(base, {"profiles": {"a": None}})
        assert result == {"profiles": {"b": {"timeout_seconds": 2}}}
