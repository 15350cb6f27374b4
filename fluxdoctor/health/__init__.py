"""Health evaluation over Flux status conditions."""

from fluxdoctor.health.evaluator import (
    READY_CONDITION,
    RECONCILING_CONDITION,
    STALLED_CONDITION,
    StatusSignals,
    condition_message,
    condition_reason,
    evaluate_health,
    find_condition,
    resource_health,
)

__all__ = [
    "READY_CONDITION",
    "RECONCILING_CONDITION",
    "STALLED_CONDITION",
    "StatusSignals",
    "condition_message",
    "condition_reason",
    "evaluate_health",
    "find_condition",
    "resource_health",
]
