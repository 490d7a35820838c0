"""Module entrypoint for ``python -m tool2agent``."""

from __future__ import annotations

from tool2agent.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
