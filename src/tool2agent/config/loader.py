"""
tool2agent — runtime config loader.

Layers, lowest to highest: built-in defaults, ``tool2agent.toml`` (or an
explicit path), the selected profile, ``TOOL2AGENT_*`` environment variables,
then ``--set`` overrides. The file layer is validated on its own before the
profile is applied, and the merged result is validated again at the end.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Final

from tool2agent.config.schema import (
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)
from tool2agent.constants import DEFAULT_CONFIG_FILE, ENV_PREFIX

_TRUE_WORDS: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSE_WORDS: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})
_UNSET_WORDS: Final[frozenset[str]] = frozenset({"", "none", "null"})


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def _as_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    raise ValueError("must be a boolean (true/false/1/0/yes/no/on/off)")


def _as_optional_seconds(raw: str) -> float | None:
    if raw.lower() in _UNSET_WORDS:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError("must be a number of seconds or 'none'") from None


def _as_text(raw: str) -> str:
    return raw


# Every setting that can come from the environment, keyed by its config path.
_ENV_SETTINGS: Final[tuple[tuple[tuple[str, str], Callable[[str], object]], ...]] = (
    (("fixup", "strict_outcomes"), _as_bool),
    (("fixup", "validator_timeout_seconds"), _as_optional_seconds),
    (("fixup", "unknown_fields"), _as_text),
    (("fixup", "report_valid_feedback"), _as_bool),
    (("logging", "level"), _as_text),
    (("logging", "format"), _as_text),
    (("logging", "redact_values"), _as_bool),
)


def env_var_name(path: tuple[str, ...]) -> str:
    """``("fixup", "strict_outcomes")`` -> ``TOOL2AGENT_FIXUP_STRICT_OUTCOMES``."""
    return ENV_PREFIX + "_".join(part.upper() for part in path)


def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Load the effective config: CLI > env > profile > file > defaults."""

    env = os.environ if environ is None else environ
    overrides = dict(cli_overrides or {})

    if config_path is None:
        file_layer = _read_toml(Path.cwd() / DEFAULT_CONFIG_FILE, required=False)
    else:
        file_layer = _read_toml(Path(config_path).expanduser(), required=True)
    config = assert_valid_config(merge_config(default_config(), file_layer))

    selected = _select_profile(profile, overrides, env)
    if selected is not None:
        config = apply_profile_overlay(config, selected)

    config = merge_config(config, _env_layer(env))
    config = merge_config(config, _override_layer(overrides))
    return assert_valid_config(config, active_profile=selected)


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    """Redacted copy of ``config`` for logs and the CLI."""
    return redact_config(config)


def dump_effective_config(config: Mapping[str, object]) -> str:
    return json.dumps(
        effective_config(config), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.is_file():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _select_profile(
    explicit: str | None,
    overrides: Mapping[str, object],
    env: Mapping[str, str],
) -> str | None:
    candidate: object = explicit
    if candidate is None:
        candidate = overrides.get("profile")
        if candidate is not None and not isinstance(candidate, str):
            raise ConfigLoadError("cli override 'profile' must be a string")
    if candidate is None:
        candidate = env.get(f"{ENV_PREFIX}PROFILE")
    if candidate is None:
        return None
    return str(candidate).strip() or None


def _env_layer(env: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for path, coerce in _ENV_SETTINGS:
        name = env_var_name(path)
        raw = env.get(name)
        if raw is None:
            continue
        try:
            value = coerce(raw.strip())
        except ValueError as exc:
            raise ConfigLoadError(f"{name} -> {'.'.join(path)} {exc}") from exc
        layer.setdefault(path[0], {})[path[1]] = value
    return layer


def _override_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key in sorted(overrides):
        if key == "profile":
            continue
        parts = [part for part in key.split(".") if part]
        if not parts:
            raise ConfigLoadError(f"invalid CLI override key {key!r}")
        cursor = layer
        for part in parts[:-1]:
            child = cursor.get(part)
            if not isinstance(child, dict):
                child = cursor[part] = {}
            cursor = child
        cursor[parts[-1]] = overrides[key]
    return layer


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "dump_effective_config",
    "effective_config",
    "env_var_name",
    "load_config",
]
