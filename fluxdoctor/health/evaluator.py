"""Health evaluator: Flux status conditions -> one HealthStatus.

Precedence, first match wins:

    suspended > Stalled=True > Reconciling=True > (no Ready) Unknown
    > Ready=True (stale generation -> Reconciling) > Ready=False Failed
    > Unknown

The evaluator never raises; missing or malformed input degrades to
``HealthStatus.UNKNOWN``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from fluxdoctor.models.flux import Condition, HealthStatus

READY_CONDITION = "Ready"
STALLED_CONDITION = "Stalled"
RECONCILING_CONDITION = "Reconciling"

_TRUE = "True"
_FALSE = "False"


class StatusSignals(Protocol):
    """Anything exposing the status signals of a Flux object.

    Every kind (Kustomization, HelmRelease, and all source kinds) is read
    through this one shape, so health is computed by a single code path.
    """

    @property
    def conditions(self) -> tuple[Condition, ...]: ...

    @property
    def generation(self) -> int: ...

    @property
    def observed_generation(self) -> int: ...

    @property
    def suspended(self) -> bool: ...


def find_condition(conditions: Iterable[Condition] | None, cond_type: str) -> Condition | None:
    """Return the first condition of *cond_type*, or None."""
    for cond in conditions or ():
        if getattr(cond, "type", None) == cond_type:
            return cond
    return None


def condition_message(conditions: Iterable[Condition] | None, cond_type: str) -> str:
    return getattr(find_condition(conditions, cond_type), "message", "") or ""


def condition_reason(conditions: Iterable[Condition] | None, cond_type: str) -> str:
    return getattr(find_condition(conditions, cond_type), "reason", "") or ""


def _status(cond: Condition | None) -> str | None:
    return getattr(cond, "status", None)


def evaluate_health(
    conditions: Iterable[Condition] | None,
    generation: int,
    observed_generation: int,
    suspended: bool,
) -> HealthStatus:
    """Interpret a condition set into a single health status."""
    try:
        if suspended:
            return HealthStatus.SUSPENDED

        conds = tuple(conditions or ())

        stalled = find_condition(conds, STALLED_CONDITION)
        if _status(stalled) == _TRUE:
            return HealthStatus.STALLED

        reconciling = find_condition(conds, RECONCILING_CONDITION)
        if _status(reconciling) == _TRUE:
            return HealthStatus.RECONCILING

        ready = find_condition(conds, READY_CONDITION)
        if ready is None:
            return HealthStatus.UNKNOWN

        if _status(ready) == _TRUE:
            if generation != observed_generation:
                return HealthStatus.RECONCILING
            return HealthStatus.READY

        if _status(ready) == _FALSE:
            return HealthStatus.FAILED
    except TypeError:
        # Non-iterable conditions or other garbage input.
        return HealthStatus.UNKNOWN

    return HealthStatus.UNKNOWN


def resource_health(obj: StatusSignals) -> HealthStatus:
    """Evaluate health of any object exposing :class:`StatusSignals`."""
    return evaluate_health(
        getattr(obj, "conditions", ()),
        getattr(obj, "generation", 0),
        getattr(obj, "observed_generation", 0),
        bool(getattr(obj, "suspended", False)),
    )
