"""Conversion of raw Flux custom objects into :class:`ManagedResource` snapshots.

The custom objects API returns plain dicts. Field layout per kind:

    Kustomization  spec.sourceRef, spec.dependsOn, spec.path, status.inventory
    HelmRelease    spec.chart.spec.sourceRef | spec.chartRef, status.history
    sources        spec.url | spec.endpoint | spec.chart, status.artifact
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fluxdoctor.models.flux import (
    Condition,
    InventoryEntry,
    ManagedResource,
    ReleaseSnapshot,
    ResourceId,
    ResourceKind,
    SourceRef,
)


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_conditions(raw: Any) -> tuple[Condition, ...]:
    conditions = []
    for item in _list(raw):
        item = _dict(item)
        if not item.get("type"):
            continue
        conditions.append(
            Condition(
                type=str(item["type"]),
                status=str(item.get("status", "Unknown")),
                reason=str(item.get("reason") or ""),
                message=str(item.get("message") or ""),
            )
        )
    return tuple(conditions)


def _source_ref(ref: dict[str, Any], default_kind: str, default_ns: str) -> SourceRef | None:
    name = ref.get("name")
    if not name:
        return None
    return SourceRef(
        kind=str(ref.get("kind") or default_kind),
        name=str(name),
        namespace=str(ref.get("namespace") or default_ns),
    )


def _depends_on(raw: Any, default_ns: str) -> tuple[ResourceId, ...]:
    deps = []
    for item in _list(raw):
        item = _dict(item)
        if item.get("name"):
            deps.append(ResourceId(str(item.get("namespace") or default_ns), str(item["name"])))
    return tuple(deps)


def _inventory(status: dict[str, Any]) -> tuple[InventoryEntry, ...]:
    entries = _list(_dict(status.get("inventory")).get("entries"))
    return tuple(
        InventoryEntry(id=str(e.get("id", "")), version=str(e.get("v", "")))
        for e in map(_dict, entries)
        if e.get("id")
    )


def _history(status: dict[str, Any]) -> tuple[ReleaseSnapshot, ...]:
    return tuple(
        ReleaseSnapshot(
            version=_int(snap.get("version")),
            status=str(snap.get("status", "")),
            chart_version=str(snap.get("chartVersion", "")),
            app_version=str(snap.get("appVersion", "")),
        )
        for snap in map(_dict, _list(status.get("history")))
    )


def _retries(section: Any) -> int | None:
    remediation = _dict(_dict(section).get("remediation"))
    if "retries" not in remediation:
        return None
    return _int(remediation.get("retries"))


def parse_resource(kind: ResourceKind, obj: dict[str, Any]) -> ManagedResource:
    """Build an immutable snapshot from a custom object dict.

    Missing fields fall back to empty values rather than raising, so a
    half-populated object still yields a snapshot the evaluator can score.
    """
    metadata = _dict(obj.get("metadata"))
    spec = _dict(obj.get("spec"))
    status = _dict(obj.get("status"))
    namespace = str(metadata.get("namespace", ""))

    fields: dict[str, Any] = {
        "kind": kind,
        "namespace": namespace,
        "name": str(metadata.get("name", "")),
        "generation": _int(metadata.get("generation")),
        "observed_generation": _int(status.get("observedGeneration")),
        "suspended": spec.get("suspend") is True,
        "conditions": parse_conditions(status.get("conditions")),
        "created_at": _timestamp(metadata.get("creationTimestamp")),
        "interval": str(spec.get("interval", "")),
        "inventory": _inventory(status),
        "depends_on": _depends_on(spec.get("dependsOn"), namespace),
        "artifact_revision": str(_dict(status.get("artifact")).get("revision", "")),
    }

    if kind is ResourceKind.KUSTOMIZATION:
        fields["source_ref"] = _source_ref(_dict(spec.get("sourceRef")), "GitRepository", namespace)
        fields["path"] = str(spec.get("path", ""))
        fields["applied_revision"] = str(status.get("lastAppliedRevision", ""))
        fields["attempted_revision"] = str(status.get("lastAttemptedRevision", ""))

    elif kind is ResourceKind.HELM_RELEASE:
        chart_ref = _dict(spec.get("chartRef"))
        chart_spec = _dict(_dict(spec.get("chart")).get("spec"))
        if chart_ref:
            fields["source_ref"] = _source_ref(chart_ref, "OCIRepository", namespace)
            fields["chart"] = f"{chart_ref.get('kind', '')}/{chart_ref.get('name', '')}"
            fields["chart_version"] = "<chartref>"
        elif chart_spec:
            fields["source_ref"] = _source_ref(_dict(chart_spec.get("sourceRef")), "HelmRepository", namespace)
            fields["chart"] = str(chart_spec.get("chart", ""))
            fields["chart_version"] = str(chart_spec.get("version", ""))
        fields["history"] = _history(status)
        fields["install_retries"] = _retries(spec.get("install"))
        fields["upgrade_retries"] = _retries(spec.get("upgrade"))
        fields["upgrade_strategy"] = str(_dict(_dict(spec.get("upgrade")).get("remediation")).get("strategy", ""))

    elif kind is ResourceKind.BUCKET:
        fields["url"] = str(spec.get("endpoint", ""))

    elif kind is ResourceKind.HELM_CHART:
        fields["url"] = str(spec.get("chart", ""))
        fields["source_ref"] = _source_ref(_dict(spec.get("sourceRef")), "HelmRepository", namespace)

    else:
        fields["url"] = str(spec.get("url", ""))

    return ManagedResource(**fields)
