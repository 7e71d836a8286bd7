"""
Unified error handling for stagehand.

This module provides the exception taxonomy used by the graph builder,
the resource adapters and the scheduler, plus standardized exit codes
for CLI commands.

Exit Codes:
- 0: Success
- 2: Blocked (run finished with failed or permanently blocked resources)
- 10: Configuration error
- 11: Provider error (cluster API failure)
- 12: Validation error (bad declarations, cycles, duplicate keys)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    BLOCKED = 2
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127


class StagehandError(Exception):
    """Base exception for stagehand errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(StagehandError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ProviderError(StagehandError):
    """Raised when the cluster API fails."""

    exit_code = ExitCode.PROVIDER_ERROR


class ClusterError(ProviderError):
    """Non-retryable cluster API failure."""


class TransientClusterError(ProviderError):
    """Cluster API failure that is worth retrying (timeouts, 429, 5xx)."""


class ConflictError(ClusterError):
    """Create rejected because the object already exists."""


class ValidationError(StagehandError):
    """Raised for validation failures."""

    exit_code = ExitCode.VALIDATION_ERROR


class DeclarationError(ValidationError):
    """Raised when a resource declaration is malformed."""


class UnsupportedKindError(ValidationError):
    """Raised for a resource kind no adapter handles."""

    def __init__(self, kind: str):
        super().__init__(f"Unsupported resource kind: {kind}", {"kind": kind})
        self.kind = kind


class PartialReadinessConfigError(ValidationError):
    """Raised when a required readiness percentage cannot be used."""


class GraphError(ValidationError):
    """Raised when the dependency graph cannot be built."""


class CycleError(GraphError):
    """Raised when declared dependencies form a cycle."""

    def __init__(self, path: list[str]):
        super().__init__(f"Dependency cycle detected: {' -> '.join(path)}", {"cycle": path})
        self.path = path


class DuplicateResourceError(GraphError):
    """Raised when two declarations share a key."""

    def __init__(self, key: str):
        super().__init__(f"Duplicate resource: {key}", {"key": key})
        self.key = key


class UnknownDependencyError(GraphError):
    """Raised when a declaration depends on a key that is not declared."""

    def __init__(self, key: str, dependency: str):
        super().__init__(
            f"Resource {key} depends on undeclared resource {dependency}",
            {"key": key, "dependency": dependency},
        )
        self.key = key
        self.dependency = dependency


class ResourceNotFoundError(StagehandError):
    """Raised when a pre-existing resource is absent from the cluster."""

    exit_code = ExitCode.BLOCKED

    def __init__(self, key: str):
        super().__init__(f"Pre-existing resource {key} not found", {"key": key})
        self.key = key


class PollTimeoutError(StagehandError):
    """Raised when a resource does not settle within the polling budget."""

    exit_code = ExitCode.BLOCKED


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - StagehandError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except StagehandError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130  # Standard exit code for SIGINT
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: StagehandError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
