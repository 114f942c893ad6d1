"""Load poller settings from YAML, expanding ``${VAR}`` references."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from infra_poller.config.defaults import load_defaults, merge_configs
from infra_poller.config.models import PollerSettings

# ${NAME} or ${NAME:-default}; "\}" escapes a brace inside the default
_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>(?:[^}\\]|\\.)*))?}")

BUILTIN_SOURCE = "built-in defaults"


def _expand(value: str, keys: tuple[str, ...], source: str | None) -> str:
    def _lookup(match: re.Match[str]) -> str:
        name = match["name"]
        if name in os.environ:
            return os.environ[name]
        if match["default"] is not None:
            return match["default"].replace("\\}", "}")
        where = ".".join(keys) or "value"
        if source:
            where = f"{where} in {source}"
        msg = (
            f"Environment variable '{name}' is not set and no default provided "
            f"({where})"
        )
        raise ValueError(msg)

    return _ENV_REF.sub(_lookup, value)


def _walk(node: Any, keys: tuple[str, ...], source: str | None) -> Any:
    if isinstance(node, str):
        return _expand(node, keys, source)
    if isinstance(node, dict):
        return {k: _walk(v, (*keys, str(k)), source) for k, v in node.items()}
    if isinstance(node, list):
        return [_walk(v, (*keys, str(i)), source) for i, v in enumerate(node)]
    return node


def resolve_env_vars(data: Any, *, source: str | None = None) -> Any:
    """Expand ``${VAR}`` and ``${VAR:-default}`` anywhere in parsed YAML.

    A reference to an unset variable without a default raises
    ``ValueError`` naming the variable, the dotted key it sits under and,
    when given, the *source* it was read from.
    """
    return _walk(data, (), source)


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Parse a user config file and expand its environment references.

    An empty file yields an empty mapping.
    """
    p = Path(path)
    try:
        text = p.read_text()
    except FileNotFoundError as exc:
        msg = f"Config file not found: {p}"
        raise FileNotFoundError(msg) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        position = ""
        if mark is not None:
            position = f" at line {mark.line + 1}, column {mark.column + 1}"
        msg = f"Failed to parse YAML in {p}{position}: {exc}"
        raise ValueError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping at top level in {p}, got {type(data).__name__}"
        raise TypeError(msg)
    return resolve_env_vars(data, source=str(p))  # type: ignore[no-any-return]


def load_settings(path: str | Path | None = None) -> PollerSettings:
    """Build :class:`PollerSettings` from the built-in defaults and *path*."""
    merged = resolve_env_vars(load_defaults("poller"), source=BUILTIN_SOURCE)
    if path is not None:
        merged = merge_configs(merged, load_yaml(path))
    try:
        return PollerSettings.model_validate(merged)
    except ValidationError as exc:
        msg = f"Invalid poller config ({path or BUILTIN_SOURCE}):\n{exc}"
        raise ValueError(msg) from exc
