"""Stable constants shared across tool2agent packages."""

from __future__ import annotations

from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
MANIFEST_SCHEMA_VERSION: Final[int] = 1

DEFAULT_CONFIG_FILE: Final[str] = "tool2agent.toml"
ENV_PREFIX: Final[str] = "TOOL2AGENT_"

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "MANIFEST_SCHEMA_VERSION",
]
