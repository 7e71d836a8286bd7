"""
CLI command for bringing resources up.

Commands:
    stagehand run <resources.yaml>                 - Create resources in dependency order
    stagehand run <resources.yaml> --format json   - Output the run result as JSON

Exit codes:
    0  - Every resource is ready
    2  - Some resources failed, drifted or stayed blocked
    10 - Cluster configuration could not be loaded
    12 - Declarations are invalid (cycle, duplicate, unknown dependency)
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Optional

from rich.table import Table

from stagehand.cli.common import add_common_arguments, load_graph, resolve_settings, setup_logging
from stagehand.cli.ux import console, error, header, success, warning
from stagehand.core.errors import ExitCode, StagehandError, format_error_message
from stagehand.engine import RunResult, Scheduler
from stagehand.graph import NodeState

STATE_STYLES = {
    NodeState.READY: "green",
    NodeState.FAILED: "red",
    NodeState.DRIFTED: "yellow",
    NodeState.PENDING: "muted",
}


def print_run_result(result: RunResult) -> None:
    """Print per-node outcomes as a table."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Resource", style="cyan")
    table.add_column("State")
    table.add_column("Status")
    table.add_column("Details")

    for key, outcome in result.nodes.items():
        style = STATE_STYLES.get(outcome.state, "white")
        state = outcome.state.value + (" (existing)" if outcome.existing else "")
        table.add_row(key, f"[{style}]{state}[/]", outcome.status or "-", outcome.message)

    console.print(table)
    console.print()

    if result.success:
        success(f"{len(result.ready)} resources ready in {result.duration_seconds:.1f}s")
        return
    for line in result.errors:
        error(line)
    if result.blocked:
        warning(f"{len(result.blocked)} resources were never created: {', '.join(result.blocked)}")


def run_command(
    declaration_file: str,
    namespace: Optional[str] = None,
    kube_context: Optional[str] = None,
    kubeconfig: Optional[str] = None,
    infer: bool = True,
    output_format: str = "table",
    verbose: bool = False,
) -> int:
    """
    Bring up declared resources in dependency order.

    Returns:
        Exit code (0 when everything is ready, 2 otherwise)
    """
    settings = resolve_settings(
        namespace=namespace,
        kube_context=kube_context,
        kubeconfig=kubeconfig,
    )
    setup_logging(settings, verbose)

    try:
        graph = load_graph(declaration_file, settings, infer=infer)
    except StagehandError as e:
        error(format_error_message(e))
        return e.exit_code

    if output_format != "json":
        header(f"Bringing up {len(graph)} resources in namespace {settings.namespace}")

    result = asyncio.run(Scheduler(graph, settings).run())

    if output_format == "json":
        console.print_json(data=result.to_dict())
    else:
        print_run_result(result)

    return ExitCode.SUCCESS if result.success else ExitCode.BLOCKED


def register_run_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register run subcommand parser."""
    run_parser = subparsers.add_parser(
        "run",
        help="Create resources in dependency order and wait for readiness",
    )
    add_common_arguments(run_parser)
    run_parser.add_argument(
        "--format",
        "-f",
        dest="output_format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )


def handle_run_command(args: argparse.Namespace) -> int:
    """Handle run command from CLI args."""
    return run_command(
        declaration_file=args.declaration_file,
        namespace=getattr(args, "namespace", None),
        kube_context=getattr(args, "kube_context", None),
        kubeconfig=getattr(args, "kubeconfig", None),
        infer=getattr(args, "infer", True),
        output_format=getattr(args, "output_format", "table"),
        verbose=getattr(args, "verbose", False),
    )
