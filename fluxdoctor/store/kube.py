"""Resource and event store adapters over kubernetes-asyncio.

The diagnostics engine depends only on the :class:`ResourceStore` and
:class:`EventStore` protocols; these classes are the production
implementations. Both are read-only: only get/list calls are issued.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Protocol

from fluxdoctor.models.flux import ClusterEvent, ManagedResource, PodSummary, ResourceKind
from fluxdoctor.store.parsing import parse_resource


class ResourceStore(Protocol):
    """Read access to Flux custom resources."""

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> ManagedResource: ...

    async def list(self, kind: ResourceKind, namespace: str = "") -> list[ManagedResource]: ...


class EventStore(Protocol):
    """Read access to core/v1 events and controller pods."""

    async def events_for(self, namespace: str, name: str) -> list[ClusterEvent]: ...

    async def list_events(self, namespace: str) -> list[ClusterEvent]: ...

    async def list_pods(self, namespace: str) -> list[PodSummary]: ...


# (group, version, plural) per kind
_API_RESOURCES: dict[ResourceKind, tuple[str, str, str]] = {
    ResourceKind.KUSTOMIZATION: ("kustomize.toolkit.fluxcd.io", "v1", "kustomizations"),
    ResourceKind.HELM_RELEASE: ("helm.toolkit.fluxcd.io", "v2", "helmreleases"),
    ResourceKind.GIT_REPOSITORY: ("source.toolkit.fluxcd.io", "v1", "gitrepositories"),
    ResourceKind.OCI_REPOSITORY: ("source.toolkit.fluxcd.io", "v1beta2", "ocirepositories"),
    ResourceKind.HELM_REPOSITORY: ("source.toolkit.fluxcd.io", "v1", "helmrepositories"),
    ResourceKind.HELM_CHART: ("source.toolkit.fluxcd.io", "v1", "helmcharts"),
    ResourceKind.BUCKET: ("source.toolkit.fluxcd.io", "v1beta2", "buckets"),
}


def api_resource(kind: ResourceKind) -> tuple[str, str, str]:
    """Return the (group, version, plural) triple serving *kind*."""
    return _API_RESOURCES[kind]


class FluxResourceStore:
    """:class:`ResourceStore` backed by ``CustomObjectsApi``."""

    def __init__(self, custom_api: Any) -> None:
        self._api = custom_api

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> ManagedResource:
        group, version, plural = api_resource(kind)
        obj = await self._api.get_namespaced_custom_object(
            group=group,
            version=version,
            namespace=namespace,
            plural=plural,
            name=name,
        )
        return parse_resource(kind, obj)

    async def list(self, kind: ResourceKind, namespace: str = "") -> list[ManagedResource]:
        group, version, plural = api_resource(kind)
        if namespace:
            raw = await self._api.list_namespaced_custom_object(
                group=group, version=version, namespace=namespace, plural=plural
            )
        else:
            raw = await self._api.list_cluster_custom_object(group=group, version=version, plural=plural)
        return [parse_resource(kind, item) for item in raw.get("items", [])]


class KubeEventStore:
    """:class:`EventStore` backed by ``CoreV1Api``."""

    def __init__(self, core_api: Any) -> None:
        self._api = core_api

    async def events_for(self, namespace: str, name: str) -> list[ClusterEvent]:
        resp = await self._api.list_namespaced_event(
            namespace,
            field_selector=f"involvedObject.name={name}",
        )
        return _newest_first(resp.items)

    async def list_events(self, namespace: str) -> list[ClusterEvent]:
        resp = await self._api.list_namespaced_event(namespace)
        return _newest_first(resp.items)

    async def list_pods(self, namespace: str) -> list[PodSummary]:
        resp = await self._api.list_namespaced_pod(namespace)
        return [pod_summary(pod) for pod in resp.items]


def _event_time(ev: Any) -> datetime | None:
    ts = getattr(ev, "last_timestamp", None) or getattr(ev, "event_time", None)
    if ts is None and getattr(ev, "metadata", None) is not None:
        ts = ev.metadata.creation_timestamp
    if isinstance(ts, datetime) and ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


def to_cluster_event(ev: Any) -> ClusterEvent:
    return ClusterEvent(
        type=ev.type or "",
        reason=ev.reason or "",
        message=(ev.message or "").strip(),
        count=ev.count or 1,
        last_seen=_event_time(ev),
    )


def _newest_first(items: list[Any]) -> list[ClusterEvent]:
    events = [to_cluster_event(ev) for ev in items]
    _epoch = datetime.min.replace(tzinfo=UTC)
    events.sort(key=lambda e: e.last_seen or _epoch, reverse=True)
    return events


def pod_summary(pod: Any) -> PodSummary:
    """Summarise pod readiness: Succeeded, or Running with all containers ready."""
    status = pod.status
    phase = (status.phase if status is not None else None) or "Unknown"
    statuses = (status.container_statuses if status is not None else None) or []

    reason = ""
    all_ready = bool(statuses)
    for cs in statuses:
        if cs.ready:
            continue
        all_ready = False
        waiting = cs.state.waiting if cs.state is not None else None
        terminated = cs.state.terminated if cs.state is not None else None
        if not reason and waiting is not None and waiting.reason:
            reason = waiting.reason
        elif not reason and terminated is not None and terminated.reason:
            reason = terminated.reason

    ready = phase == "Succeeded" or (phase == "Running" and all_ready)
    if not ready and not reason:
        reason = (status.reason if status is not None else None) or phase
    return PodSummary(name=pod.metadata.name, phase=phase, ready=ready, reason=reason)
