"""Command-line entry point for stagehand."""

from __future__ import annotations

import argparse
from typing import Sequence

from stagehand import __version__
from stagehand.cli.destroy import handle_destroy_command, register_destroy_parser
from stagehand.cli.plan import handle_plan_command, register_plan_parser
from stagehand.cli.run import handle_run_command, register_run_parser
from stagehand.core.errors import main_with_error_handling

HANDLERS = {
    "plan": handle_plan_command,
    "run": handle_run_command,
    "destroy": handle_destroy_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stagehand",
        description="Bring up Kubernetes resources in dependency order",
    )
    parser.add_argument("--version", action="version", version=f"stagehand {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    register_plan_parser(subparsers)
    register_run_parser(subparsers)
    register_destroy_parser(subparsers)

    return parser


@main_with_error_handling()
def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = HANDLERS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)
