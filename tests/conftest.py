"""Shared pytest fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tool2agent.observability import reset_logging

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    # CLI commands install a stderr handler; drop it so later tests never write
    # to a stream pytest has already closed.
    yield
    reset_logging()
