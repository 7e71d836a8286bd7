"""
CLI command for tearing resources down.

Deletes managed resources in reverse dependency order. Pre-existing
resources are left alone.

Commands:
    stagehand destroy <resources.yaml>
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Optional

from stagehand.cli.common import add_common_arguments, load_graph, resolve_settings, setup_logging
from stagehand.cli.ux import console, error, header, info, success
from stagehand.core.errors import ExitCode, StagehandError, format_error_message
from stagehand.engine import teardown


def destroy_command(
    declaration_file: str,
    namespace: Optional[str] = None,
    kube_context: Optional[str] = None,
    kubeconfig: Optional[str] = None,
    output_format: str = "table",
    verbose: bool = False,
) -> int:
    """Delete managed resources; returns 0 on success, 11 if any delete failed."""
    settings = resolve_settings(
        namespace=namespace,
        kube_context=kube_context,
        kubeconfig=kubeconfig,
    )
    setup_logging(settings, verbose)

    try:
        # Inference does not change what gets deleted, only the order
        graph = load_graph(declaration_file, settings)
    except StagehandError as e:
        error(format_error_message(e))
        return e.exit_code

    result = asyncio.run(teardown(graph, settings))

    if output_format == "json":
        console.print_json(data=result.to_dict())
    else:
        header(f"Teardown in namespace {settings.namespace}")
        for key in result.deleted:
            success(f"Deleted {key}")
        for key in result.already_absent:
            info(f"{key} was already gone")
        for key in result.skipped:
            info(f"Skipped pre-existing {key}")
        for key, message in result.errors.items():
            error(f"{key}: {message}")

    return ExitCode.SUCCESS if result.success else ExitCode.PROVIDER_ERROR


def register_destroy_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register destroy subcommand parser."""
    destroy_parser = subparsers.add_parser(
        "destroy",
        help="Delete managed resources in reverse dependency order",
    )
    add_common_arguments(destroy_parser)
    destroy_parser.add_argument(
        "--format",
        "-f",
        dest="output_format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )


def handle_destroy_command(args: argparse.Namespace) -> int:
    """Handle destroy command from CLI args."""
    return destroy_command(
        declaration_file=args.declaration_file,
        namespace=getattr(args, "namespace", None),
        kube_context=getattr(args, "kube_context", None),
        kubeconfig=getattr(args, "kubeconfig", None),
        output_format=getattr(args, "output_format", "table"),
        verbose=getattr(args, "verbose", False),
    )
