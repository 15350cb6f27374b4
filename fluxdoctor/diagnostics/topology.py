"""Topology builder: Flux resources as a Mermaid flowchart.

Nodes are resources labelled with kind and (when known) health. Edges come
in two styles:

    source --> consumer        solid, artifact provenance
    dependency -.-> dependent  dashed, declared reconcile ordering

Node keys are ``<prefix>_<namespace>_<name>`` with ``/ - . :`` replaced by
``_``. Distinct resources that normalise to the same key share one node.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from fluxdoctor.health import resource_health
from fluxdoctor.models.flux import HealthStatus, ManagedResource, ResourceId, ResourceKind, SourceRef
from fluxdoctor.models.report import DependencyEdge

_KEY_PREFIXES: dict[str, str] = {
    ResourceKind.KUSTOMIZATION: "ks",
    ResourceKind.HELM_RELEASE: "hr",
    ResourceKind.GIT_REPOSITORY: "git",
    ResourceKind.OCI_REPOSITORY: "oci",
    ResourceKind.HELM_REPOSITORY: "helmrepo",
    ResourceKind.HELM_CHART: "helmchart",
    ResourceKind.BUCKET: "bucket",
}

_ILLEGAL = str.maketrans({"/": "_", "-": "_", ".": "_", ":": "_"})


class EdgeStyle(StrEnum):
    SOLID = "-->"
    DASHED = "-.->"


@dataclass(frozen=True)
class TopologyNode:
    key: str
    label: str


@dataclass(frozen=True)
class TopologyEdge:
    source: str
    target: str
    style: EdgeStyle


def sanitize_id(raw: str) -> str:
    """Replace characters Mermaid does not accept in node ids."""
    return raw.translate(_ILLEGAL)


def node_key(kind: str, namespace: str, name: str) -> str:
    prefix = _KEY_PREFIXES.get(kind, kind.lower())
    return sanitize_id(f"{prefix}_{namespace}_{name}")


def _label(kind: str, namespace: str, name: str, health: HealthStatus | None) -> str:
    text = f"{kind}: {namespace}/{name}"
    if health is not None:
        text += f"<br/>{health}"
    return text.replace('"', "#quot;")


class TopologyBuilder:
    """Accumulates nodes and edges for one diagram; allocated per call."""

    def __init__(self, direction: str = "LR") -> None:
        self._direction = direction
        self._nodes: dict[str, TopologyNode] = {}
        self._edges: list[TopologyEdge] = []
        self._edge_keys: set[tuple[str, str, EdgeStyle]] = set()

    @property
    def nodes(self) -> list[TopologyNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> list[TopologyEdge]:
        return list(self._edges)

    def add_node(self, kind: str, namespace: str, name: str, health: HealthStatus | None = None) -> str:
        """Add or relabel a node. A later call with a health value wins over a bare one."""
        key = node_key(kind, namespace, name)
        if key not in self._nodes or health is not None:
            self._nodes[key] = TopologyNode(key, _label(kind, namespace, name, health))
        return key

    def add_resource(self, resource: ManagedResource, health: HealthStatus | None = None) -> str:
        return self.add_node(resource.kind, resource.namespace, resource.name, health)

    def _ensure_node(self, kind: str, namespace: str, name: str) -> str:
        key = node_key(kind, namespace, name)
        if key not in self._nodes:
            self._nodes[key] = TopologyNode(key, _label(kind, namespace, name, None))
        return key

    def _add_edge(self, source: str, target: str, style: EdgeStyle) -> None:
        if (source, target, style) in self._edge_keys:
            return
        self._edge_keys.add((source, target, style))
        self._edges.append(TopologyEdge(source, target, style))

    def add_source_edge(self, ref: SourceRef, consumer_kind: str, consumer: ResourceId) -> None:
        src = self._ensure_node(ref.kind, ref.namespace, ref.name)
        dst = self._ensure_node(consumer_kind, consumer.namespace, consumer.name)
        self._add_edge(src, dst, EdgeStyle.SOLID)

    def add_dependency_edge(self, kind: str, dependency: ResourceId, dependent: ResourceId) -> None:
        src = self._ensure_node(kind, dependency.namespace, dependency.name)
        dst = self._ensure_node(kind, dependent.namespace, dependent.name)
        self._add_edge(src, dst, EdgeStyle.DASHED)

    def add_dependency_edges(self, edges: Iterable[DependencyEdge], kind: str = ResourceKind.KUSTOMIZATION) -> None:
        for edge in edges:
            self.add_dependency_edge(kind, dependency=edge.to_id, dependent=edge.from_id)

    def render(self) -> str:
        lines = [f"graph {self._direction}"]
        lines.extend(f'  {node.key}["{node.label}"]' for node in self._nodes.values())
        lines.extend(f"  {edge.source} {edge.style} {edge.target}" for edge in self._edges)
        return "\n".join(lines) + "\n"


def build_cluster_topology(resources: Iterable[ManagedResource]) -> TopologyBuilder:
    """Diagram every listed resource with its source and dependency edges."""
    resources = list(resources)
    builder = TopologyBuilder()
    for resource in resources:
        builder.add_resource(resource, resource_health(resource))
    for resource in resources:
        if resource.source_ref is not None:
            builder.add_source_edge(resource.source_ref, resource.kind, resource.id)
        for dep in resource.depends_on:
            builder.add_dependency_edge(resource.kind, dependency=dep, dependent=resource.id)
    return builder
