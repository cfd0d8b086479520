"""Command-line entry point.

Usage:
    seance-dist build [--workspace DIR] [--target linux/x86_64 ...]
    seance-dist targets
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path

from .catalog import select_targets, targets
from .config import load_config
from .errors import DistError
from .observability import StructuredLogger
from .orchestrator import Orchestrator


def cmd_build(args: argparse.Namespace) -> int:
    workspace = Path(args.workspace).resolve()
    config = load_config(
        workspace,
        args.config,
        overrides={"output_dir": args.output, "jobs": args.jobs, "version": args.version},
    )
    selected = select_targets(targets(), args.target or ())
    orchestrator = Orchestrator(
        workspace_root=workspace,
        config=config,
        catalog=selected,
        logger=StructuredLogger(echo=sys.stderr),
    )
    report = orchestrator.run()
    # The summary table is printed for every run; --json moves it to stderr.
    if args.json:
        print(report.render(), file=sys.stderr)
        print(json.dumps(report.to_dict(), indent=2, sort_keys=True))
    else:
        print(report.render())
    return report.exit_code


def cmd_targets(args: argparse.Namespace) -> int:
    for target in targets():
        formats = ", ".join(f"{p.name} ({p.format})" for p in target.packages) or "-"
        print(f"{target.key:<16} {target.toolchain:<16} {', '.join(target.binaries):<20} {formats}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seance-dist",
        description="Cross-build and package the Seance distribution",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    build_p = sub.add_parser("build", help="Build, assemble, and package every target")
    build_p.add_argument(
        "--workspace",
        default=".",
        help="Workspace root holding the build flake (default: current directory)",
    )
    build_p.add_argument("--config", help="JSON config file (default: seance-dist.json if present)")
    build_p.add_argument("--output", help="Distribution root, relative to the workspace")
    build_p.add_argument("--jobs", type=int, help="Concurrent build invocations")
    build_p.add_argument("--version", help="Package version to stamp into metadata")
    build_p.add_argument(
        "--target",
        action="append",
        metavar="OS/ARCH",
        help="Only build this target (repeatable)",
    )
    build_p.add_argument("--json", action="store_true", help="Print the run report as JSON")

    sub.add_parser("targets", help="List the target catalog")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "build":
            return cmd_build(args)
        if args.command == "targets":
            return cmd_targets(args)
    except DistError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return 2
    parser.error(f"unknown command {args.command!r}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
