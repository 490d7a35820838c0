"""Utility exports for concurrency helpers."""

from tool2agent.utils.concurrency import CancellationToken, run_with_timeout

__all__ = [
    "CancellationToken",
    "run_with_timeout",
]
