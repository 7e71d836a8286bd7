"""Core modules for stagehand - centralized error definitions."""

from stagehand.core.errors import (
    ClusterError,
    ConfigurationError,
    ConflictError,
    CycleError,
    DeclarationError,
    DuplicateResourceError,
    ExitCode,
    GraphError,
    PartialReadinessConfigError,
    PollTimeoutError,
    ProviderError,
    ResourceNotFoundError,
    StagehandError,
    TransientClusterError,
    UnknownDependencyError,
    UnsupportedKindError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "StagehandError",
    "ConfigurationError",
    "ProviderError",
    "ClusterError",
    "TransientClusterError",
    "ConflictError",
    "ValidationError",
    "DeclarationError",
    "UnsupportedKindError",
    "PartialReadinessConfigError",
    "GraphError",
    "CycleError",
    "DuplicateResourceError",
    "UnknownDependencyError",
    "ResourceNotFoundError",
    "PollTimeoutError",
    "main_with_error_handling",
    "format_error_message",
]
