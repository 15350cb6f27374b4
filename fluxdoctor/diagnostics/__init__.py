"""Flux diagnostics: source checks, dependency tracing, topology and reports."""

from fluxdoctor.diagnostics.composer import FluxDiagnostician
from fluxdoctor.diagnostics.dependencies import DependencyStatus, DependencyTrace, DependencyTracer
from fluxdoctor.diagnostics.sources import check_source_health, check_source_ref
from fluxdoctor.diagnostics.topology import TopologyBuilder, build_cluster_topology

__all__ = [
    "DependencyStatus",
    "DependencyTrace",
    "DependencyTracer",
    "FluxDiagnostician",
    "TopologyBuilder",
    "build_cluster_topology",
    "check_source_health",
    "check_source_ref",
]
