"""
CLI command for previewing a bring-up.

Builds and validates the dependency graph without contacting the cluster
and prints the order resources would be created in.

Commands:
    stagehand plan <resources.yaml>         - Show creation order
    stagehand plan <resources.yaml> --json  - Output as JSON
"""

from __future__ import annotations

import argparse
from typing import Optional

from rich.table import Table

from stagehand.cli.common import add_common_arguments, load_graph, resolve_settings, setup_logging
from stagehand.cli.ux import console, error, header, success
from stagehand.core.errors import ExitCode, StagehandError, format_error_message
from stagehand.graph import DependencyEdge, DependencyGraph


def _describe_edge(edge: DependencyEdge) -> str:
    label = edge.dependency
    if edge.meta:
        label += " (" + ", ".join(f"{k}={v}" for k, v in sorted(edge.meta.items())) + ")"
    if edge.inferred:
        label += " [muted]inferred[/muted]"
    return label


def plan_to_dict(graph: DependencyGraph) -> dict:
    return {
        "order": graph.topological_order(),
        "edges": [
            {
                "dependent": edge.dependent,
                "dependency": edge.dependency,
                "meta": edge.meta,
                "inferred": edge.inferred,
            }
            for edge in graph.edges
        ],
    }


def plan_command(
    declaration_file: str,
    namespace: Optional[str] = None,
    infer: bool = True,
    output_format: str = "table",
    verbose: bool = False,
) -> int:
    """
    Validate declarations and print the creation order.

    Returns:
        Exit code (0 on success, 12 for invalid declarations)
    """
    settings = resolve_settings(namespace=namespace)
    setup_logging(settings, verbose)

    try:
        graph = load_graph(declaration_file, settings, infer=infer)
    except StagehandError as e:
        error(format_error_message(e))
        return e.exit_code

    if output_format == "json":
        console.print_json(data=plan_to_dict(graph))
        return ExitCode.SUCCESS

    header(f"Plan: {len(graph)} resources in namespace {settings.namespace}")
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="muted")
    table.add_column("Resource", style="cyan")
    table.add_column("Type")
    table.add_column("Depends on")

    for step, key in enumerate(graph.topological_order(), 1):
        node = graph.get(key)
        deps = "\n".join(_describe_edge(edge) for edge in graph.dependencies(key)) or "-"
        table.add_row(str(step), key, "existing" if node.existing else "managed", deps)

    console.print(table)
    success("Dependency graph is valid")
    return ExitCode.SUCCESS


def register_plan_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register plan subcommand parser."""
    plan_parser = subparsers.add_parser(
        "plan",
        help="Validate declarations and show the creation order",
    )
    add_common_arguments(plan_parser)
    plan_parser.add_argument(
        "--format",
        "-f",
        dest="output_format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )


def handle_plan_command(args: argparse.Namespace) -> int:
    """Handle plan command from CLI args."""
    return plan_command(
        declaration_file=args.declaration_file,
        namespace=getattr(args, "namespace", None),
        infer=getattr(args, "infer", True),
        output_format=getattr(args, "output_format", "table"),
        verbose=getattr(args, "verbose", False),
    )
