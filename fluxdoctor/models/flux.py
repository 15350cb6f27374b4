"""Flux resource snapshots and the health taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class HealthStatus(StrEnum):
    """Single reconciliation health value derived from status conditions."""

    READY = "Ready"
    RECONCILING = "Reconciling"
    STALLED = "Stalled"
    FAILED = "Failed"
    SUSPENDED = "Suspended"
    UNKNOWN = "Unknown"


# Display order for tallies.
HEALTH_ORDER: tuple[HealthStatus, ...] = (
    HealthStatus.READY,
    HealthStatus.RECONCILING,
    HealthStatus.FAILED,
    HealthStatus.STALLED,
    HealthStatus.SUSPENDED,
    HealthStatus.UNKNOWN,
)


class ResourceKind(StrEnum):
    """Flux custom resource kinds understood by the diagnostics engine."""

    KUSTOMIZATION = "Kustomization"
    HELM_RELEASE = "HelmRelease"
    GIT_REPOSITORY = "GitRepository"
    OCI_REPOSITORY = "OCIRepository"
    HELM_REPOSITORY = "HelmRepository"
    HELM_CHART = "HelmChart"
    BUCKET = "Bucket"

    @property
    def is_source(self) -> bool:
        return self in SOURCE_KINDS

    @classmethod
    def parse(cls, value: str) -> ResourceKind:
        """Resolve a kind name or short alias (case-insensitive).

        Raises:
            ValueError: if *value* names no known kind.
        """
        key = value.strip().lower()
        if key in KIND_ALIASES:
            return KIND_ALIASES[key]
        for kind in cls:
            if kind.value.lower() == key:
                return kind
        raise ValueError(f"unknown resource kind: {value!r}")


SOURCE_KINDS: frozenset[ResourceKind] = frozenset(
    {
        ResourceKind.GIT_REPOSITORY,
        ResourceKind.OCI_REPOSITORY,
        ResourceKind.HELM_REPOSITORY,
        ResourceKind.HELM_CHART,
        ResourceKind.BUCKET,
    }
)

KIND_ALIASES: dict[str, ResourceKind] = {
    "ks": ResourceKind.KUSTOMIZATION,
    "kustomizations": ResourceKind.KUSTOMIZATION,
    "hr": ResourceKind.HELM_RELEASE,
    "helmreleases": ResourceKind.HELM_RELEASE,
    "git": ResourceKind.GIT_REPOSITORY,
    "gitrepo": ResourceKind.GIT_REPOSITORY,
    "oci": ResourceKind.OCI_REPOSITORY,
    "helmrepo": ResourceKind.HELM_REPOSITORY,
    "helmchart": ResourceKind.HELM_CHART,
    "bucket": ResourceKind.BUCKET,
}


@dataclass(frozen=True, order=True)
class ResourceId:
    """Namespace/name identity of a Flux object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class Condition:
    """A single status condition (``status`` is "True", "False" or "Unknown")."""

    type: str
    status: str
    reason: str = ""
    message: str = ""


@dataclass(frozen=True)
class SourceRef:
    """Reference from a consumer to the source artifact it is built from."""

    kind: str
    name: str
    namespace: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True)
class InventoryEntry:
    """An object applied and owned by a Kustomization or HelmRelease."""

    id: str
    version: str = ""


@dataclass(frozen=True)
class ReleaseSnapshot:
    """One entry of a HelmRelease's release history."""

    version: int
    status: str
    chart_version: str = ""
    app_version: str = ""


@dataclass(frozen=True)
class ManagedResource:
    """Immutable snapshot of a Flux object for the duration of one diagnosis.

    Exposes the status signals the health evaluator consumes
    (``conditions``, ``generation``, ``observed_generation``, ``suspended``)
    uniformly across every kind.
    """

    kind: ResourceKind
    namespace: str
    name: str
    generation: int = 0
    observed_generation: int = 0
    suspended: bool = False
    conditions: tuple[Condition, ...] = ()
    source_ref: SourceRef | None = None
    depends_on: tuple[ResourceId, ...] = ()
    inventory: tuple[InventoryEntry, ...] = ()
    history: tuple[ReleaseSnapshot, ...] = ()
    created_at: datetime | None = None

    # Kind-specific display fields
    path: str = ""
    interval: str = ""
    url: str = ""
    artifact_revision: str = ""
    applied_revision: str = ""
    attempted_revision: str = ""
    chart: str = ""
    chart_version: str = ""
    install_retries: int | None = None
    upgrade_retries: int | None = None
    upgrade_strategy: str = ""

    @property
    def id(self) -> ResourceId:
        return ResourceId(self.namespace, self.name)


@dataclass(frozen=True)
class ClusterEvent:
    """A core/v1 Event correlated with a Flux object."""

    type: str
    reason: str
    message: str
    count: int = 1
    last_seen: datetime | None = None


@dataclass(frozen=True)
class PodSummary:
    """Readiness summary of a controller pod."""

    name: str
    phase: str
    ready: bool
    reason: str = ""
