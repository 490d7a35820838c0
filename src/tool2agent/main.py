"""Process entrypoint for ``tool2agent``: runs the CLI and maps failures to exit codes."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    """Process exit codes of every ``tool2agent`` command."""

    SUCCESS = 0
    REJECTED = 1
    CONFIG_ERROR = 2
    SPEC_ERROR = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run one CLI invocation; never raises."""

    try:
        from tool2agent.ui.cli import run_cli

        code = run_cli(argv)
    except SystemExit as exc:  # pragma: no cover - argparse exits are handled in run_cli.
        code = exc.code
    except BaseException as exc:  # noqa: BLE001 - process boundary
        exit_code = exit_code_for(exc)
        if exit_code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        else:
            _write_stderr(f"tool2agent: {str(exc).strip() or type(exc).__name__}")
        return int(exit_code)

    if code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(code, int) and code in ExitCode._value2member_map_:
        return code
    _write_stderr(f"tool2agent: unexpected exit status {code!r}")
    return int(ExitCode.INTERNAL_ERROR)


def exit_code_for(exc: BaseException) -> ExitCode:
    """Exit code for an uncaught error, decided by the first known error in its chain.

    A broken tool definition is a spec error; unreadable config, manifests or
    input files are config errors; anything else is internal.
    """

    from tool2agent.config.loader import ConfigLoadError
    from tool2agent.config.schema import ConfigValidationError
    from tool2agent.engine.graph import SpecError
    from tool2agent.manifest import ManifestError

    routes: tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...] = (
        ((SpecError,), ExitCode.SPEC_ERROR),
        (
            (
                ConfigLoadError,
                ConfigValidationError,
                ManifestError,
                FileNotFoundError,
                IsADirectoryError,
                PermissionError,
            ),
            ExitCode.CONFIG_ERROR,
        ),
    )
    for item in _causes(exc):
        for types, exit_code in routes:
            if isinstance(item, types):
                return exit_code
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint", "exit_code_for"]
