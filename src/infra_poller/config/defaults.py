"""Built-in poller defaults and the merge that layers user config over them."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

DEFAULTS_DIR = Path(__file__).parent / "defaults"


def available_defaults() -> list[str]:
    """Names of the YAML defaults shipped with the package."""
    return sorted(p.stem for p in DEFAULTS_DIR.glob("*.yaml"))


def load_defaults(name: str = "poller") -> dict[str, Any]:
    """Read the built-in defaults file *name* (without ``.yaml``)."""
    path = DEFAULTS_DIR / f"{name}.yaml"
    try:
        text = path.read_text()
    except FileNotFoundError as exc:
        known = ", ".join(available_defaults()) or "none"
        msg = f"No built-in defaults named '{name}' (available: {known})"
        raise FileNotFoundError(msg) from exc
    return yaml.safe_load(text) or {}


def merge_configs(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Layer *overrides* over *base* without mutating either.

    Mappings merge key by key.  Anything else, state lists included, is
    replaced outright.  An override of ``null`` removes the key, which lets
    a user file drop a built-in profile.
    """
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            merged.pop(key, None)
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = merge_configs(current, value)
        merged[key] = value
    return merged
