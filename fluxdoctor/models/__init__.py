"""Core data structures for fluxdoctor."""

from fluxdoctor.models.config import FluxDoctorConfig
from fluxdoctor.models.flux import (
    HEALTH_ORDER,
    SOURCE_KINDS,
    ClusterEvent,
    Condition,
    HealthStatus,
    InventoryEntry,
    ManagedResource,
    PodSummary,
    ReleaseSnapshot,
    ResourceId,
    ResourceKind,
    SourceRef,
)
from fluxdoctor.models.report import DependencyEdge, DiagnosticResult, Finding, Severity

__all__ = [
    "HEALTH_ORDER",
    "SOURCE_KINDS",
    "ClusterEvent",
    "Condition",
    "DependencyEdge",
    "DiagnosticResult",
    "Finding",
    "FluxDoctorConfig",
    "HealthStatus",
    "InventoryEntry",
    "ManagedResource",
    "PodSummary",
    "ReleaseSnapshot",
    "ResourceId",
    "ResourceKind",
    "Severity",
    "SourceRef",
]
