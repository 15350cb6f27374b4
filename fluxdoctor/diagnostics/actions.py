"""Suggested operator actions keyed on (health, condition reason)."""

from __future__ import annotations

from fluxdoctor.health import READY_CONDITION, STALLED_CONDITION, condition_reason
from fluxdoctor.models.flux import HealthStatus, ManagedResource, ResourceKind

# Kustomization reasons match exactly.
_KUSTOMIZATION_ACTIONS: dict[str, str] = {
    "BuildFailed": "Check the Kustomize overlay at path '{path}' for YAML/kustomization errors",
    "HealthCheckFailed": "Inspect managed resources for readiness issues (diagnose the failing pods)",
    "DependencyNotReady": "Fix failing dependencies before this Kustomization can reconcile",
    "ArtifactFailed": "Check source {source} for fetch or authentication errors",
    "PruneFailed": "Check for finalizers or RBAC rules blocking garbage collection of managed objects",
}
_KUSTOMIZATION_DEFAULT = "Check Flux kustomize-controller logs for more details"

# HelmRelease reasons match by substring, first entry wins.
_HELM_RELEASE_ACTIONS: tuple[tuple[str, str], ...] = (
    ("DependencyNotReady", "Fix failing dependencies before this HelmRelease can reconcile"),
    ("Install", "Check Helm chart values and templates for install errors"),
    ("Upgrade", "Check Helm chart changes; the upgrade may have failed. Review release history above"),
    ("Artifact", "Check chart source {source} for fetch or authentication errors"),
)
_HELM_RELEASE_DEFAULT = "Check Flux helm-controller logs for more details"

_GENERIC_DEFAULT = "Check Flux source-controller logs for more details"


def _reason_for(resource: ManagedResource, health: HealthStatus) -> str:
    cond_type = STALLED_CONDITION if health is HealthStatus.STALLED else READY_CONDITION
    return condition_reason(resource.conditions, cond_type)


def lookup_action(resource: ManagedResource, health: HealthStatus, reason: str) -> str:
    """Pick the single remediation hint for an unhealthy resource."""
    source = str(resource.source_ref) if resource.source_ref is not None else "<none>"
    if resource.kind is ResourceKind.KUSTOMIZATION:
        template = _KUSTOMIZATION_ACTIONS.get(reason, _KUSTOMIZATION_DEFAULT)
    elif resource.kind is ResourceKind.HELM_RELEASE:
        template = next(
            (action for key, action in _HELM_RELEASE_ACTIONS if key in reason),
            _HELM_RELEASE_DEFAULT,
        )
    else:
        template = _GENERIC_DEFAULT
    return template.format(path=resource.path, source=source)


def suggest_actions(resource: ManagedResource, health: HealthStatus) -> list[str]:
    """Ordered suggested actions; empty when nothing needs doing."""
    actions: list[str] = []
    if health in (HealthStatus.FAILED, HealthStatus.STALLED):
        actions.append(lookup_action(resource, health, _reason_for(resource, health)))
    if resource.suspended:
        actions.append(
            f"Resume reconciliation: flux resume {resource.kind.lower()} {resource.name} -n {resource.namespace}"
        )
    return actions
