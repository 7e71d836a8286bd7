"""Helpers shared by the CLI subcommands."""

from __future__ import annotations

import argparse
import logging
from typing import Any, Optional

from stagehand.clients.kubernetes import KubernetesClient
from stagehand.config import Settings
from stagehand.graph import DependencyGraph, build_graph, load_declarations
from stagehand.logging import configure_logging


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Arguments every subcommand accepts."""
    parser.add_argument("declaration_file", help="Path to the resource declaration YAML file")
    parser.add_argument(
        "--namespace",
        "-n",
        help="Namespace to operate in (or set STAGEHAND_NAMESPACE)",
    )
    parser.add_argument(
        "--context",
        dest="kube_context",
        help="Kubeconfig context (or set STAGEHAND_KUBE_CONTEXT)",
    )
    parser.add_argument("--kubeconfig", help="Path to kubeconfig file")
    parser.add_argument(
        "--no-infer",
        dest="infer",
        action="store_false",
        help="Only use explicitly declared dependencies",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Emit structured logs at INFO level",
    )


def resolve_settings(**overrides: Optional[Any]) -> Settings:
    """Settings from the environment, with non-None CLI overrides applied."""
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


def setup_logging(settings: Settings, verbose: bool) -> None:
    configure_logging(settings.log_level if verbose else logging.WARNING)


def load_graph(declaration_file: str, settings: Settings, infer: bool = True) -> DependencyGraph:
    """Load declarations and build the graph against a lazily-connected client."""
    declarations = load_declarations(declaration_file)
    client = KubernetesClient.from_settings(settings)
    return build_graph(declarations, client, infer=infer)
