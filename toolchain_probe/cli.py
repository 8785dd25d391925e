"""
toolchain-probe - detect, resolve and compare the Python/npm development toolchain.

Usage:
    toolchain-probe doctor [--offline]        # One status row per component
    toolchain-probe probe PACKAGE [--node]    # Where and at what version is PACKAGE installed
    toolchain-probe resolve TOOL              # Which executable runs TOOL here
    toolchain-probe catalog [--json]          # Module catalog (live, cache or fallback)
    toolchain-probe invalidate                # Drop the workspace's catalog cache
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

from .config import load_config
from .errors import ToolchainProbeError, ToolNotFound
from .logging_config import setup_logging
from .probe import ECOSYSTEM_NODE, ECOSYSTEM_PYTHON
from .render import render_catalog, render_doctor, render_handle, render_probe
from .resolver import LogicalTool
from .service import Toolchain


logger = logging.getLogger(__name__)


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def cmd_doctor(args: argparse.Namespace, toolchain: Toolchain) -> int:
    """Check every toolchain component."""
    rows = asyncio.run(toolchain.doctor(args.workspace, check_updates=not args.offline))
    if args.json:
        _print_json(rows)
    else:
        render_doctor(rows, sys.stdout)
    return 0 if all(r["status"] != "missing" for r in rows) else 1


def cmd_probe(args: argparse.Namespace, toolchain: Toolchain) -> int:
    ecosystem = ECOSYSTEM_NODE if args.node else ECOSYSTEM_PYTHON
    result = asyncio.run(toolchain.probe_installation(args.package, args.workspace, ecosystem))
    if args.json:
        _print_json(result.to_dict())
    else:
        render_probe(args.package, result, sys.stdout)
    return 0 if result.installed else 1


def cmd_resolve(args: argparse.Namespace, toolchain: Toolchain) -> int:
    try:
        handle = asyncio.run(toolchain.resolve_executable(args.tool, args.workspace or os.getcwd()))
    except ToolNotFound as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if args.json:
        _print_json(handle.to_dict())
    else:
        render_handle(handle, sys.stdout)
    return 0


def cmd_catalog(args: argparse.Namespace, toolchain: Toolchain) -> int:
    if args.refresh:
        toolchain.invalidate_catalog(args.workspace)
    result = asyncio.run(toolchain.resolve_catalog(args.workspace))
    if args.json:
        _print_json(result.to_dict())
    else:
        render_catalog(result, sys.stdout)
    return 0


def cmd_invalidate(args: argparse.Namespace, toolchain: Toolchain) -> int:
    removed = toolchain.invalidate_catalog(args.workspace)
    toolchain.invalidate_requirement_cache()
    print("Catalog cache removed" if removed else "No catalog cache to remove", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolchain-probe",
        description="Toolchain discovery and resolution for Python and npm tooling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--workspace", "-w", default=None, help="Project directory (default: none)")
    parser.add_argument("--config", "-c", default=None, help="Configuration file (YAML or JSON)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only warnings and errors")
    parser.add_argument("--log-file", default=None, help="Also write DEBUG logs to this file")

    sub = parser.add_subparsers(dest="command", required=True)

    doctor = sub.add_parser("doctor", help="Check every toolchain component")
    doctor.add_argument("--offline", action="store_true", help="Skip release lookups")
    doctor.add_argument("--json", action="store_true", help="JSON output")
    doctor.set_defaults(func=cmd_doctor)

    probe = sub.add_parser("probe", help="Probe a package installation")
    probe.add_argument("package", help="Distribution name")
    probe.add_argument("--node", action="store_true", help="Probe an npm package")
    probe.add_argument("--json", action="store_true", help="JSON output")
    probe.set_defaults(func=cmd_probe)

    resolve = sub.add_parser("resolve", help="Resolve the executable for a logical tool")
    resolve.add_argument("tool", choices=[t.value for t in LogicalTool], help="Logical tool")
    resolve.add_argument("--json", action="store_true", help="JSON output")
    resolve.set_defaults(func=cmd_resolve)

    catalog = sub.add_parser("catalog", help="Show the module catalog")
    catalog.add_argument("--refresh", action="store_true", help="Drop the cache before resolving")
    catalog.add_argument("--json", action="store_true", help="JSON output")
    catalog.set_defaults(func=cmd_catalog)

    invalidate = sub.add_parser("invalidate", help="Drop cached catalog and probe results")
    invalidate.set_defaults(func=cmd_invalidate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, quiet=args.quiet, log_file=args.log_file)

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    toolchain = Toolchain(config)
    try:
        return args.func(args, toolchain)
    except ToolchainProbeError as e:
        logger.error(str(e))
        return 1


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
