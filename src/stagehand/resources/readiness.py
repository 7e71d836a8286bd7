"""
Partial readiness helpers.

Replicated workloads can unblock their dependents once a configured share
of their replicas is up. The share is read from resource meta under
``success_factor``. Percentages are truncated toward zero and a tie with
the needed percentage counts as satisfied.
"""

from __future__ import annotations

from typing import Mapping

from stagehand.core.errors import PartialReadinessConfigError

SUCCESS_FACTOR_KEY = "success_factor"
FULL_READINESS = 100


def parse_percentage(key: str, meta: Mapping[str, object] | None) -> int:
    """Read an integer percentage from meta, defaulting to full readiness."""
    if not meta or key not in meta:
        return FULL_READINESS

    raw = meta[key]
    if isinstance(raw, bool):
        raise PartialReadinessConfigError(f"{key} must be an integer percentage, got {raw!r}")
    try:
        value = int(str(raw).strip())
    except ValueError as e:
        raise PartialReadinessConfigError(
            f"{key} must be an integer percentage, got {raw!r}"
        ) from e

    if not 0 <= value <= 100:
        raise PartialReadinessConfigError(f"{key} must be between 0 and 100, got {value}")
    return value


def success_factor(meta: Mapping[str, object] | None) -> int:
    """Required readiness percentage for a replicated workload."""
    return parse_percentage(SUCCESS_FACTOR_KEY, meta)


def percentage_ready(observed: int, desired: int) -> int:
    """Share of desired replicas that are up, truncated toward zero."""
    if desired <= 0:
        return FULL_READINESS
    observed = max(observed, 0)
    return min(observed, desired) * 100 // desired


def is_sufficient(percentage: int, needed: int) -> bool:
    """Whether an observed percentage satisfies the needed one."""
    return percentage >= needed
