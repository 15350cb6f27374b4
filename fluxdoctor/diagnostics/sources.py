"""Source health checker.

Fetches the upstream source a Kustomization or HelmRelease is built from
and scores it with the health evaluator. Never raises: a failed fetch is
itself reported as a WARNING finding.
"""

from __future__ import annotations

from fluxdoctor.health import READY_CONDITION, condition_message, resource_health
from fluxdoctor.models.flux import SOURCE_KINDS, HealthStatus, ResourceKind, SourceRef
from fluxdoctor.models.report import Finding, Severity
from fluxdoctor.observability.logging import get_logger
from fluxdoctor.store.context import CallContext
from fluxdoctor.store.errors import FetchError
from fluxdoctor.store.kube import ResourceStore

_log = get_logger("diagnostics.sources")

_HEALTHY = frozenset({HealthStatus.READY, HealthStatus.SUSPENDED})


async def check_source_health(
    store: ResourceStore,
    ctx: CallContext,
    kind: str,
    name: str,
    namespace: str,
) -> Finding | None:
    """Return a WARNING finding if the source is unreachable or unhealthy.

    Unknown source kinds are not checked and yield no finding.
    """
    try:
        source_kind = ResourceKind.parse(kind)
    except ValueError:
        return None
    if source_kind not in SOURCE_KINDS:
        return None

    action = f"getting source {kind}/{name}"
    try:
        source = await ctx.fetch(action, lambda: store.get(source_kind, namespace, name))
    except FetchError as exc:
        _log.warning("source_fetch_failed", action=action, error=str(exc))
        return Finding(Severity.WARNING, f"Cannot fetch source {kind}/{name}: {exc.detail or exc}")

    health = resource_health(source)
    if health in _HEALTHY:
        return None
    msg = condition_message(source.conditions, READY_CONDITION)
    return Finding(Severity.WARNING, f"Source {kind}/{name} is {health}: {msg}")


async def check_source_ref(store: ResourceStore, ctx: CallContext, ref: SourceRef | None) -> Finding | None:
    if ref is None:
        return None
    return await check_source_health(store, ctx, ref.kind, ref.name, ref.namespace)
