"""Command-line interface router for tool2agent."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import yaml

from tool2agent.config import (
    ConfigLoadError,
    ConfigValidationError,
    effective_config,
    load_config,
)
from tool2agent.engine import FixupSettings, SpecError, ToolSpec, fixup
from tool2agent.engine.graph import CycleError, DanglingReferenceError
from tool2agent.manifest import ManifestError, load_manifest, read_document
from tool2agent.observability import setup_logging
from tool2agent.protocol import tool_call_result_schema
from tool2agent.tool import Tool
from tool2agent.ui.render import CLIRenderer, create_renderer


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 2

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="tool2agent",
        description=(
            "tool2agent — dependency-ordered validation feedback for agent tool calls.\n\n"
            "Common workflows:\n"
            "  tool2agent order pkg.tools:booking           Show evaluation order\n"
            "  tool2agent fixup pkg.tools:booking --input '{\"departure\": \"Berlin\"}'\n"
            "  tool2agent check fields.yaml                 Lint a dependency manifest\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./tool2agent.toml if present).",
    )
    common.add_argument(
        "--profile",
        default=None,
        help="Optional config profile overlay name (development, production).",
    )
    common.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a config value, e.g. --set fixup.strict_outcomes=true.",
    )
    common.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Emit machine-readable JSON.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    order_parser = subparsers.add_parser(
        "order",
        parents=[common],
        help="Print the evaluation order of a tool's fields",
    )
    order_parser.add_argument("target", help="module:attribute naming a ToolSpec or Tool")
    order_parser.set_defaults(handler=_cmd_order)

    fixup_parser = subparsers.add_parser(
        "fixup",
        parents=[common],
        help="Validate one input against a tool and print the feedback",
        description=(
            "Run incremental validation and print the accepted value or the\n"
            "per-field feedback. Exit code 0 when accepted, 1 when rejected."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    fixup_parser.add_argument("target", help="module:attribute naming a ToolSpec or Tool")
    source = fixup_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", dest="input_text", help="Tool input as a JSON object.")
    source.add_argument(
        "--input-file",
        dest="input_file",
        help="Tool input file (.json parsed as JSON, anything else as YAML).",
    )
    fixup_parser.add_argument(
        "--execute",
        action="store_true",
        default=False,
        help="When the target is a Tool, run its execute callback on acceptance.",
    )
    fixup_parser.set_defaults(handler=_cmd_fixup)

    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Lint a YAML/JSON dependency manifest",
    )
    check_parser.add_argument("manifest", help="Path to the manifest file")
    check_parser.set_defaults(handler=_cmd_check)

    schema_parser = subparsers.add_parser(
        "schema",
        parents=[common],
        help="Print the JSON Schema of a tool's accept/reject results",
    )
    schema_parser.add_argument("target", help="module:attribute naming a ToolSpec or Tool")
    schema_parser.set_defaults(handler=_cmd_schema)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Print the effective (redacted) configuration",
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    try:
        namespace = parser.parse_args(list(argv) if argv is not None else None)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 2
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_order(args: argparse.Namespace) -> int:
    _load_effective_config(args)
    spec, _ = _resolve_target(args.target)

    if args.json:
        _emit_json(
            {
                "command": "order",
                "tool": spec.name,
                "order": list(spec.order),
                "graph": spec.dependency_map(),
            }
        )
        return 0

    _get_renderer(args).evaluation_order(spec)
    return 0


def _cmd_fixup(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    spec, tool = _resolve_target(args.target)
    raw = _read_input(args)
    settings = FixupSettings.from_config(config)

    if args.execute:
        if tool is None:
            raise CLIError("--execute requires a Tool target, got a ToolSpec", exit_code=2)
        result = asyncio.run(tool.with_settings(settings).call(raw))
    else:
        result = asyncio.run(fixup(spec, raw, settings=settings))

    if args.json:
        _emit_json({"command": "fixup", "tool": spec.name, "result": result.to_dict()})
    else:
        _get_renderer(args).call_result(spec, result)
    return 0 if result.ok else 1


def _cmd_check(args: argparse.Namespace) -> int:
    _load_effective_config(args)
    try:
        spec = load_manifest(args.manifest)
    except ManifestError as exc:
        raise CLIError(str(exc), exit_code=2) from exc
    except SpecError as exc:
        return _report_spec_error(args, exc)

    if args.json:
        _emit_json(
            {
                "command": "check",
                "ok": True,
                "tool": spec.name,
                "order": list(spec.order),
                "graph": spec.dependency_map(),
            }
        )
        return 0

    _get_renderer(args).manifest_ok(spec)
    return 0


def _cmd_schema(args: argparse.Namespace) -> int:
    _load_effective_config(args)
    spec, _ = _resolve_target(args.target)
    schema = tool_call_result_schema(
        spec.input_shape, spec.output_shape, field_names=spec.field_names
    )
    if args.json:
        _emit_json(schema)
    else:
        print(json.dumps(schema, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    redacted = effective_config(config)

    payload: dict[str, object] = {
        "command": "config",
        "active_profile": args.profile,
        "config": redacted,
    }

    if args.json:
        _emit_json(payload)
        return 0

    _get_renderer(args).effective_config(args.profile, redacted)
    return 0


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(
        json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    )


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(verbose=bool(getattr(args, "verbose", False)))


def _report_spec_error(args: argparse.Namespace, exc: SpecError) -> int:
    payload: dict[str, object] = {
        "command": "check",
        "ok": False,
        "error": type(exc).__name__,
        "message": str(exc),
    }
    if isinstance(exc, CycleError):
        payload["cycles"] = [list(cycle) for cycle in exc.cycles]
    if isinstance(exc, DanglingReferenceError):
        payload["references"] = [list(reference) for reference in exc.references]

    if args.json:
        _emit_json(payload)
        return 3

    _get_renderer(args).spec_error(str(exc))
    return 3


# ---------------------------------------------------------------------------
# Helpers: config, targets, input
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    try:
        config = load_config(
            args.config_path,
            profile=args.profile,
            cli_overrides=_parse_overrides(args.overrides),
        )
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc

    setup_logging(config.get("logging"))
    return config


def _parse_overrides(raw_overrides: Sequence[str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for item in raw_overrides:
        key, separator, raw_value = item.partition("=")
        if not separator or not key.strip():
            raise CLIError(f"invalid --set value {item!r}; expected KEY=VALUE", exit_code=2)
        try:
            # YAML scalars: true/false, numbers, null, bare strings.
            overrides[key.strip()] = yaml.safe_load(raw_value) if raw_value else ""
        except yaml.YAMLError as exc:
            raise CLIError(f"invalid --set value {item!r}: {exc}", exit_code=2) from exc
    return overrides


def _resolve_target(target: str) -> tuple[ToolSpec, Tool | None]:
    module_name, separator, attribute_path = target.partition(":")
    if not separator or not module_name or not attribute_path:
        raise CLIError(f"target must look like module:attribute, got {target!r}", exit_code=2)

    try:
        resolved: object = importlib.import_module(module_name)
    except ImportError as exc:
        raise CLIError(f"cannot import {module_name!r}: {exc}", exit_code=2) from exc

    for part in attribute_path.split("."):
        try:
            resolved = getattr(resolved, part)
        except AttributeError as exc:
            raise CLIError(f"{target!r} does not resolve: no attribute {part!r}", exit_code=2) from exc

    if not isinstance(resolved, (ToolSpec, Tool)) and callable(resolved):
        # Factories such as build_booking_tool are called without arguments.
        resolved = resolved()

    if isinstance(resolved, Tool):
        return resolved.spec, resolved
    if isinstance(resolved, ToolSpec):
        return resolved, None
    raise CLIError(
        f"{target!r} resolved to {type(resolved).__name__}, expected ToolSpec or Tool",
        exit_code=2,
    )


def _read_input(args: argparse.Namespace) -> object:
    if args.input_text is not None:
        try:
            return json.loads(args.input_text)
        except json.JSONDecodeError as exc:
            raise CLIError(f"--input is not valid JSON: {exc}", exit_code=2) from exc
    try:
        return read_document(args.input_file)
    except ManifestError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


__all__ = ["CLIError", "build_parser", "run_cli"]
