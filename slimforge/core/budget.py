"""Budget Evaluator: four-tier size classification.

    size <= target          -> UNDER_TARGET
    target < size <= warn   -> ABOVE_TARGET
    warn < size <= max      -> WARNING
    size > max              -> OVER_BUDGET

Thresholds are configured in KB but compared in whole bytes, so an artifact
of exactly 800 KB (819,200 bytes) is at, not over, an 800 KB threshold.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from slimforge.core.errors import BudgetConfigError
from slimforge.models.metrics import (
    BYTES_PER_KB,
    BudgetConfig,
    BudgetResult,
    BudgetStatus,
    SizeMetrics,
)

logger = logging.getLogger(__name__)


def threshold_bytes(kb: float) -> int:
    """Largest whole byte count that is still at or below *kb*."""
    return math.floor(kb * BYTES_PER_KB)


def evaluate(metrics: SizeMetrics, budget: BudgetConfig) -> BudgetStatus:
    """Classify *metrics* against *budget*. Monotonic in size."""
    size = metrics.bytes
    if size > threshold_bytes(budget.max_kb):
        return BudgetStatus.OVER_BUDGET
    if size > threshold_bytes(budget.warn_threshold_kb):
        return BudgetStatus.WARNING
    if size > threshold_bytes(budget.target_kb):
        return BudgetStatus.ABOVE_TARGET
    return BudgetStatus.UNDER_TARGET


def check(metrics: SizeMetrics, budget: BudgetConfig) -> BudgetResult:
    """Evaluate *metrics* and attach a human-readable message.

    ``result.exit_code`` is the CI contract: 1 only for OVER_BUDGET.
    """
    status = evaluate(metrics, budget)
    result = BudgetResult(
        status=status,
        size_bytes=metrics.bytes,
        budget=budget,
        message=_message(status, metrics.derived_kb, budget),
    )
    log = logger.warning if status.severity >= 2 else logger.info
    log("Budget check: %.2f KB -> %s", metrics.derived_kb, status.value)
    return result


def load_budget(mapping: Mapping[str, Any]) -> BudgetConfig:
    """Build a ``BudgetConfig`` from a mapping with kebab or snake case keys.

    Raises ``BudgetConfigError`` if a threshold is missing, negative, or out
    of order.
    """
    try:
        return BudgetConfig.model_validate(dict(mapping))
    except ValidationError as exc:
        raise BudgetConfigError(f"Invalid size budget: {_first_error(exc)}") from exc


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", str(exc)).removeprefix("Value error, ")
    return f"{location}: {message}" if location else message


def _message(status: BudgetStatus, size_kb: float, budget: BudgetConfig) -> str:
    if status is BudgetStatus.UNDER_TARGET:
        return f"Under target by {budget.target_kb - size_kb:.2f} KB"
    if status is BudgetStatus.ABOVE_TARGET:
        return f"Above target by {size_kb - budget.target_kb:.2f} KB (still within limits)"
    if status is BudgetStatus.WARNING:
        return (
            f"Warning: {size_kb - budget.warn_threshold_kb:.2f} KB over threshold "
            "(consider optimizing)"
        )
    return f"FAILED: {size_kb - budget.max_kb:.2f} KB over budget (optimization required)"
