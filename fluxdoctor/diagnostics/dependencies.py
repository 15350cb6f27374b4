"""Dependency tracer for Kustomization ``spec.dependsOn`` chains.

The walk is bounded by ``max_depth`` and made cycle-safe by a visited set
seeded with the root. The visited set spans the whole trace, not a single
path: in a diamond (A->B, A->C, B->D, C->D) D is expanded under B only and
reported as already seen under C.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from fluxdoctor.health import resource_health
from fluxdoctor.models.flux import HealthStatus, ManagedResource, ResourceId, ResourceKind
from fluxdoctor.models.report import DependencyEdge
from fluxdoctor.observability.logging import get_logger
from fluxdoctor.store.context import CallContext
from fluxdoctor.store.errors import FetchError, NotFoundError
from fluxdoctor.store.kube import ResourceStore

_log = get_logger("diagnostics.dependencies")

DEFAULT_MAX_DEPTH = 10


class DependencyStatus(StrEnum):
    OK = "ok"
    CIRCULAR = "circular"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class TracedDependency:
    """One visited ``dependsOn`` edge target."""

    id: ResourceId
    parent: ResourceId
    depth: int
    status: DependencyStatus
    health: HealthStatus | None = None
    detail: str = ""

    def line(self, indent_base: int = 0) -> str:
        indent = "  " * (self.depth + indent_base)
        if self.status is DependencyStatus.CIRCULAR:
            return f"{indent}-> {self.id} (circular ref, skipped)"
        if self.status is DependencyStatus.NOT_FOUND:
            return f"{indent}-> {self.id} (not found)"
        if self.status is DependencyStatus.ERROR:
            return f"{indent}-> {self.id} (could not fetch: {self.detail})"
        return f"{indent}-> {self.id} [{self.health}]"


@dataclass
class DependencyTrace:
    """Result of one trace. Allocated per call and owned by the caller."""

    root: ResourceId
    nodes: list[TracedDependency] = field(default_factory=list)
    edges: list[DependencyEdge] = field(default_factory=list)
    visited: set[ResourceId] = field(default_factory=set)
    truncated: bool = False  # max_depth hit while edges remained

    def lines(self, indent_base: int = 0) -> list[str]:
        return [node.line(indent_base) for node in self.nodes]

    @property
    def unhealthy(self) -> list[TracedDependency]:
        """Fetched dependencies that are not Ready."""
        return [n for n in self.nodes if n.status is DependencyStatus.OK and n.health is not HealthStatus.READY]

    @property
    def unreachable(self) -> list[TracedDependency]:
        return [n for n in self.nodes if n.status in (DependencyStatus.NOT_FOUND, DependencyStatus.ERROR)]

    def health_of(self, resource_id: ResourceId) -> HealthStatus | None:
        for node in self.nodes:
            if node.id == resource_id and node.health is not None:
                return node.health
        return None


class DependencyTracer:
    """Walks ``dependsOn`` edges of Kustomizations through the resource store."""

    def __init__(self, store: ResourceStore, ctx: CallContext, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self._store = store
        self._ctx = ctx
        self._max_depth = max_depth

    async def trace(self, root: ManagedResource) -> DependencyTrace:
        result = DependencyTrace(root=root.id, visited={root.id})
        await self._walk(root, 1, result)
        return result

    async def _walk(self, resource: ManagedResource, depth: int, result: DependencyTrace) -> None:
        if depth > self._max_depth or not resource.depends_on:
            return

        for dep_id in resource.depends_on:
            if dep_id in result.visited:
                result.nodes.append(TracedDependency(dep_id, resource.id, depth, DependencyStatus.CIRCULAR))
                continue
            result.visited.add(dep_id)

            action = f"getting Kustomization {dep_id}"
            try:
                dep = await self._ctx.fetch(
                    action,
                    lambda dep_id=dep_id: self._store.get(ResourceKind.KUSTOMIZATION, dep_id.namespace, dep_id.name),
                )
            except NotFoundError:
                result.nodes.append(TracedDependency(dep_id, resource.id, depth, DependencyStatus.NOT_FOUND))
                continue
            except FetchError as exc:
                _log.warning("dependency_fetch_failed", action=action, error=str(exc))
                result.nodes.append(
                    TracedDependency(dep_id, resource.id, depth, DependencyStatus.ERROR, detail=exc.detail or str(exc))
                )
                if self._ctx.cancelled:
                    return
                continue

            health = resource_health(dep)
            result.nodes.append(TracedDependency(dep_id, resource.id, depth, DependencyStatus.OK, health=health))
            result.edges.append(DependencyEdge(from_id=resource.id, to_id=dep_id))

            if depth + 1 <= self._max_depth:
                await self._walk(dep, depth + 1, result)
            elif dep.depends_on:
                result.truncated = True
