"""CLI router and plain-text rendering."""

from tool2agent.ui.cli import CLIError, build_parser, run_cli
from tool2agent.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIError",
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "run_cli",
]
