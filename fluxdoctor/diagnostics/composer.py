"""Diagnostic composer: orchestrates evaluation, tracing and rendering.

Entry points:
    diagnose_resource  -- single Kustomization / HelmRelease report.
    diagnose_system    -- cluster-wide tally, controller health, topology.
    get_resource_tree  -- source/dependency/inventory tree plus diagram.

Only the primary-target fetch of the single-resource entry points can fail
a call. Every other fetch (source, dependencies, events, sibling lists)
degrades to an inline warning and the report continues. All state (fetch
context, visited set, findings, diagram) is allocated per call.
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Callable
from datetime import UTC, datetime

from fluxdoctor.config import parse_time_window
from fluxdoctor.diagnostics.actions import suggest_actions
from fluxdoctor.diagnostics.dependencies import DependencyTrace, DependencyTracer
from fluxdoctor.diagnostics.formatting import (
    format_age,
    header,
    health_tally,
    key_value,
    mermaid_block,
    subheader,
    truncate_revision,
    value_or_none,
)
from fluxdoctor.diagnostics.sources import check_source_ref
from fluxdoctor.diagnostics.topology import TopologyBuilder, build_cluster_topology
from fluxdoctor.health import READY_CONDITION, STALLED_CONDITION, condition_message, condition_reason, resource_health
from fluxdoctor.models.config import DiagnosticsConfig
from fluxdoctor.models.flux import HealthStatus, ManagedResource, ResourceKind
from fluxdoctor.models.report import DiagnosticResult, Finding, Severity
from fluxdoctor.observability.logging import get_logger
from fluxdoctor.observability.metrics import diagnoses_total, diagnosis_duration_seconds
from fluxdoctor.store.context import CallContext
from fluxdoctor.store.errors import NOT_INSTALLED_GUIDANCE, FetchError, SubsystemNotInstalledError, error_result
from fluxdoctor.store.kube import EventStore, ResourceStore

_log = get_logger("diagnostics.composer")

MAX_EVENTS = 50

_PRIMARY_KINDS = (ResourceKind.KUSTOMIZATION, ResourceKind.HELM_RELEASE)
_SYSTEM_SOURCE_KINDS = (
    ResourceKind.GIT_REPOSITORY,
    ResourceKind.OCI_REPOSITORY,
    ResourceKind.HELM_REPOSITORY,
    ResourceKind.HELM_CHART,
    ResourceKind.BUCKET,
)
_BROKEN = (HealthStatus.FAILED, HealthStatus.STALLED)


def _unsupported_kind(kind: str) -> DiagnosticResult:
    return DiagnosticResult(
        text=f"Unsupported resource kind: {kind} (use Kustomization or HelmRelease)",
        is_error=True,
        error_code="INVALID_KIND",
    )


def _parse_primary_kind(kind: str) -> ResourceKind | None:
    try:
        parsed = ResourceKind.parse(kind or ResourceKind.KUSTOMIZATION)
    except ValueError:
        return None
    return parsed if parsed in _PRIMARY_KINDS else None


def _finding_lines(findings: list[Finding], indent: str = "  ") -> list[str]:
    return [f"{indent}{finding}" for finding in findings]


class FluxDiagnostician:
    """Operator-facing diagnostics over a resource store and an event store."""

    def __init__(
        self,
        resources: ResourceStore,
        events: EventStore | None = None,
        config: DiagnosticsConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._resources = resources
        self._events = events
        self._config = config or DiagnosticsConfig()
        self._now = clock or (lambda: datetime.now(tz=UTC))

    def new_context(self) -> CallContext:
        return CallContext(timeout_seconds=self._config.fetch_timeout_seconds)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def diagnose_resource(
        self, kind: str, namespace: str, name: str, ctx: CallContext | None = None
    ) -> DiagnosticResult:
        start = time.monotonic()
        result = await self._diagnose_resource(kind, namespace, name, ctx or self.new_context())
        return self._record("diagnose_resource", result, start)

    async def diagnose_system(self, ctx: CallContext | None = None) -> DiagnosticResult:
        start = time.monotonic()
        result = await self._diagnose_system(ctx or self.new_context())
        return self._record("diagnose_system", result, start)

    async def get_resource_tree(
        self, kind: str, namespace: str, name: str, ctx: CallContext | None = None
    ) -> DiagnosticResult:
        start = time.monotonic()
        result = await self._resource_tree(kind, namespace, name, ctx or self.new_context())
        return self._record("get_resource_tree", result, start)

    def _record(self, operation: str, result: DiagnosticResult, start: float) -> DiagnosticResult:
        diagnosis_duration_seconds.labels(operation=operation).observe(time.monotonic() - start)
        diagnoses_total.labels(operation=operation, outcome="error" if result.is_error else "ok").inc()
        return result

    async def _fetch_primary(
        self, ctx: CallContext, kind: ResourceKind, namespace: str, name: str
    ) -> ManagedResource | DiagnosticResult:
        action = f"getting {kind} {namespace}/{name}"
        try:
            return await ctx.fetch(action, lambda: self._resources.get(kind, namespace, name))
        except FetchError as exc:
            _log.info("primary_fetch_failed", action=action, code=exc.code, error=exc.detail)
            return error_result(action, exc)

    # ------------------------------------------------------------------
    # Single resource
    # ------------------------------------------------------------------

    async def _diagnose_resource(self, kind: str, namespace: str, name: str, ctx: CallContext) -> DiagnosticResult:
        rkind = _parse_primary_kind(kind)
        if rkind is None:
            return _unsupported_kind(kind)

        fetched = await self._fetch_primary(ctx, rkind, namespace, name)
        if isinstance(fetched, DiagnosticResult):
            return fetched
        resource = fetched

        health = resource_health(resource)
        findings = self._status_findings(resource, health)

        lines = [header(f"Flux {rkind} Diagnosis: {resource.name} (namespace: {resource.namespace})"), ""]
        lines.extend(self._summary_lines(resource, health))
        lines.extend(["", subheader("Conditions")])
        lines.extend(self._condition_lines(resource))

        if rkind is ResourceKind.HELM_RELEASE:
            lines.extend(self._remediation_lines(resource))

        source_finding = await check_source_ref(self._resources, ctx, resource.source_ref)

        trace: DependencyTrace | None = None
        if rkind is ResourceKind.KUSTOMIZATION and resource.depends_on:
            trace = await DependencyTracer(self._resources, ctx, self._config.max_dependency_depth).trace(resource)
            lines.extend(["", subheader("Dependencies")])
            lines.extend(trace.lines())
            findings.extend(self._dependency_findings(trace))

        if source_finding is not None:
            findings.append(source_finding)

        lines.extend(self._inventory_section(resource, self._config.inventory_limit))

        if resource.history:
            lines.extend(["", subheader("Release History")])
            lines.extend(
                f"  v{snap.version}: {snap.status} (chart: {snap.chart_version}, app: {snap.app_version})"
                for snap in resource.history
            )

        lines.extend(await self._event_section(ctx, resource))

        lines.extend(["", "FINDINGS:"])
        if findings:
            lines.extend(_finding_lines(findings))
        else:
            lines.append(f"  No issues found. {rkind} appears healthy.")

        lines.extend(["", "SUGGESTED ACTIONS:"])
        actions = suggest_actions(resource, health)
        if actions:
            lines.extend(f"{i}. {action}" for i, action in enumerate(actions, start=1))
        else:
            lines.append(f"  No specific actions needed. {rkind} is healthy.")

        builder = TopologyBuilder()
        builder.add_resource(resource, health)
        if resource.source_ref is not None:
            builder.add_source_edge(resource.source_ref, resource.kind, resource.id)
        if trace is not None:
            self._add_trace_to_topology(builder, trace)
        lines.extend(["", subheader("Topology"), mermaid_block(builder.render())])

        _log.info(
            "resource_diagnosed",
            kind=str(rkind),
            namespace=resource.namespace,
            name=resource.name,
            health=str(health),
            findings=len(findings),
        )
        return DiagnosticResult(text="\n".join(lines) + "\n")

    def _summary_lines(self, resource: ManagedResource, health: HealthStatus) -> list[str]:
        lines = [key_value("STATUS", str(health))]
        if resource.kind is ResourceKind.KUSTOMIZATION:
            lines.append(key_value("SOURCE", str(resource.source_ref) if resource.source_ref else "<none>"))
            lines.append(key_value("PATH", value_or_none(resource.path)))
        else:
            lines.append(key_value("CHART", value_or_none(resource.chart)))
            lines.append(key_value("VERSION", value_or_none(resource.chart_version)))
            if resource.source_ref is not None:
                lines.append(key_value("SOURCE", str(resource.source_ref)))
        lines.append(key_value("INTERVAL", value_or_none(resource.interval)))
        lines.append(key_value("SUSPENDED", str(resource.suspended).lower()))
        if resource.kind is ResourceKind.KUSTOMIZATION:
            lines.append(key_value("APPLIED REVISION", truncate_revision(resource.applied_revision)))
            lines.append(key_value("ATTEMPTED REVISION", truncate_revision(resource.attempted_revision)))
        lines.append(key_value("AGE", format_age(resource.created_at, self._now())))
        return lines

    @staticmethod
    def _condition_lines(resource: ManagedResource) -> list[str]:
        if not resource.conditions:
            return ["  (none)"]
        lines = []
        for cond in resource.conditions:
            line = f"  {cond.type:<15} {cond.status:<6}  {cond.message}"
            if cond.reason:
                line += f" ({cond.reason})"
            lines.append(line)
        return lines

    @staticmethod
    def _remediation_lines(resource: ManagedResource) -> list[str]:
        lines = ["", subheader("Remediation Config")]
        if resource.install_retries is not None:
            lines.append(f"  Install retries: {resource.install_retries}")
        if resource.upgrade_retries is not None:
            lines.append(f"  Upgrade retries: {resource.upgrade_retries}")
        if resource.upgrade_strategy:
            lines.append(f"  Upgrade strategy: {resource.upgrade_strategy}")
        if len(lines) == 2:
            lines.append("  (controller defaults)")
        return lines

    @staticmethod
    def _status_findings(resource: ManagedResource, health: HealthStatus) -> list[Finding]:
        kind = resource.kind
        findings: list[Finding] = []
        if resource.suspended:
            findings.append(Finding(Severity.INFO, f"{kind} is suspended; reconciliation paused"))
        if health is HealthStatus.FAILED:
            msg = condition_message(resource.conditions, READY_CONDITION)
            findings.append(Finding(Severity.CRITICAL, f"Reconciliation failed: {msg}"))
        if health is HealthStatus.STALLED:
            msg = condition_message(resource.conditions, STALLED_CONDITION)
            findings.append(Finding(Severity.CRITICAL, f"Reconciliation stalled: {msg}"))

        if (
            kind is ResourceKind.KUSTOMIZATION
            and resource.attempted_revision
            and resource.applied_revision != resource.attempted_revision
        ):
            findings.append(
                Finding(
                    Severity.WARNING,
                    f"Applied revision ({truncate_revision(resource.applied_revision)}) differs from "
                    f"attempted revision ({truncate_revision(resource.attempted_revision)})",
                )
            )

        if kind is ResourceKind.HELM_RELEASE:
            released_reason = condition_reason(resource.conditions, "Released")
            if released_reason and released_reason != "Succeeded":
                released_msg = condition_message(resource.conditions, "Released")
                findings.append(Finding(Severity.WARNING, f"Release issue: {released_reason}: {released_msg}"))
            if condition_reason(resource.conditions, "TestSuccess") == "Failed":
                test_msg = condition_message(resource.conditions, "TestSuccess")
                findings.append(Finding(Severity.WARNING, f"Helm tests failed: {test_msg}"))
        return findings

    def _dependency_findings(self, trace: DependencyTrace) -> list[Finding]:
        findings = [
            Finding(Severity.WARNING, f"Dependency {node.id} is not Ready ({node.health})") for node in trace.unhealthy
        ]
        findings.extend(
            Finding(Severity.WARNING, f"Dependency {node.id} could not be fetched ({node.detail or 'not found'})")
            for node in trace.unreachable
        )
        if trace.truncated:
            findings.append(
                Finding(
                    Severity.INFO,
                    f"Dependency chain is deeper than {self._config.max_dependency_depth} levels; trace truncated",
                )
            )
        return findings

    @staticmethod
    def _inventory_section(resource: ManagedResource, limit: int) -> list[str]:
        if not resource.inventory:
            return []
        total = len(resource.inventory)
        lines = ["", subheader(f"Managed Resources ({total})")]
        for entry in resource.inventory[:limit]:
            lines.append(f"  {entry.id} ({entry.version})" if entry.version else f"  {entry.id}")
        if total > limit:
            lines.append(f"  ... and {total - limit} more")
        return lines

    async def _event_section(self, ctx: CallContext, resource: ManagedResource) -> list[str]:
        if self._events is None:
            return []
        events_store = self._events
        action = f"listing events for {resource.kind} {resource.id}"
        try:
            events = await ctx.fetch(action, lambda: events_store.events_for(resource.namespace, resource.name))
        except FetchError as exc:
            _log.warning("event_fetch_failed", action=action, error=str(exc))
            return ["", subheader("Recent Events"), f"  (could not fetch events: {exc.detail or exc})"]
        if not events:
            return []
        lines = ["", subheader("Recent Events")]
        for ev in events[:MAX_EVENTS]:
            line = f"  {ev.type:<8} {ev.reason:<25} {ev.message}"
            if ev.count > 1:
                line += f" (x{ev.count})"
            lines.append(line)
        return lines

    @staticmethod
    def _add_trace_to_topology(builder: TopologyBuilder, trace: DependencyTrace) -> None:
        for node in trace.nodes:
            if node.health is not None:
                builder.add_node(ResourceKind.KUSTOMIZATION, node.id.namespace, node.id.name, node.health)
        builder.add_dependency_edges(trace.edges)

    # ------------------------------------------------------------------
    # Cluster-wide
    # ------------------------------------------------------------------

    async def _list_kind(
        self, ctx: CallContext, kind: ResourceKind
    ) -> tuple[list[ManagedResource], str | None]:
        """List *kind* cluster-wide; on failure return an inline note instead."""
        action = f"listing {kind} resources"
        try:
            return await ctx.fetch(action, lambda: self._resources.list(kind, "")), None
        except SubsystemNotInstalledError:
            return [], f"  ({kind} CRD not installed)"
        except FetchError as exc:
            _log.warning("list_failed", action=action, error=str(exc))
            return [], f"  (could not list: {exc.detail or exc})"

    async def _diagnose_system(self, ctx: CallContext) -> DiagnosticResult:
        ks_action = f"listing {ResourceKind.KUSTOMIZATION} resources"
        try:
            kustomizations: list[ManagedResource] = await ctx.fetch(
                ks_action, lambda: self._resources.list(ResourceKind.KUSTOMIZATION, "")
            )
            ks_note: str | None = None
        except SubsystemNotInstalledError:
            return DiagnosticResult(text=NOT_INSTALLED_GUIDANCE)
        except FetchError as exc:
            _log.warning("list_failed", action=ks_action, error=str(exc))
            kustomizations, ks_note = [], f"  (could not list: {exc.detail or exc})"

        releases, hr_note = await self._list_kind(ctx, ResourceKind.HELM_RELEASE)
        sources: dict[ResourceKind, list[ManagedResource]] = {}
        source_notes: list[str] = []
        for kind in _SYSTEM_SOURCE_KINDS:
            items, note = await self._list_kind(ctx, kind)
            sources[kind] = items
            if note is not None:
                source_notes.append(f"  {kind}: {note.strip()}")

        findings: list[Finding] = []
        namespace = self._config.controller_namespace
        lines = [header("FluxCD System Health Report"), ""]

        lines.append(subheader(f"Flux Controllers ({namespace} namespace)"))
        lines.extend(await self._controller_section(ctx, namespace, findings))

        for title, plural, items, note in (
            ("Kustomization Health", "Kustomizations", kustomizations, ks_note),
            ("HelmRelease Health", "HelmReleases", releases, hr_note),
        ):
            lines.extend(["", subheader(title)])
            if note is not None:
                lines.append(note)
                continue
            lines.extend(self._tally_section(items, plural, findings))

        lines.extend(["", subheader("Source Health")])
        lines.extend(source_notes)
        lines.extend(self._source_section(sources, findings))

        lines.extend(await self._warning_event_section(ctx, namespace, findings))

        lines.extend(["", subheader("Overall Assessment")])
        if findings:
            lines.append(f"  {len(findings)} issue(s) found. Review findings above.")
            lines.append("  Result: FAIL")
        else:
            lines.append("  FluxCD system appears healthy. No issues found.")
            lines.append("  Result: PASS")

        everything = [*kustomizations, *releases, *(r for kind in _SYSTEM_SOURCE_KINDS for r in sources[kind])]
        lines.extend(["", subheader("Topology"), mermaid_block(build_cluster_topology(everything).render())])

        _log.info(
            "system_diagnosed",
            kustomizations=len(kustomizations),
            helmreleases=len(releases),
            sources=sum(len(v) for v in sources.values()),
            findings=len(findings),
        )
        return DiagnosticResult(text="\n".join(lines) + "\n")

    async def _controller_section(self, ctx: CallContext, namespace: str, findings: list[Finding]) -> list[str]:
        if self._events is None:
            return ["  (event store unavailable; controller pods not checked)"]
        events_store = self._events
        action = f"listing pods in {namespace}"
        try:
            pods = await ctx.fetch(action, lambda: events_store.list_pods(namespace))
        except FetchError as exc:
            _log.warning("pod_list_failed", action=action, error=str(exc))
            return [f"  (could not list pods: {exc.detail or exc})"]

        if not pods:
            finding = Finding(
                Severity.CRITICAL, f"No pods found in {namespace} namespace; FluxCD may not be installed"
            )
            findings.append(finding)
            return [f"  {finding}"]

        healthy = sum(1 for pod in pods if pod.ready)
        lines = [f"  Pods: {healthy}/{len(pods)} healthy"]
        for pod in pods:
            if not pod.ready:
                finding = Finding(Severity.CRITICAL, f"Controller pod '{pod.name}' is unhealthy: {pod.reason}")
                findings.append(finding)
                lines.append(f"  {finding}")
        return lines

    @staticmethod
    def _tally_section(items: list[ManagedResource], plural: str, findings: list[Finding]) -> list[str]:
        healths = [(item, resource_health(item)) for item in items]
        tally = Counter(health for _, health in healths)
        lines = [f"  Total: {len(items)}  {health_tally(tally)}".rstrip()]
        broken = [(item, health) for item, health in healths if health in _BROKEN]
        if broken:
            finding = Finding(Severity.WARNING, f"{len(broken)} {plural} not healthy")
            findings.append(finding)
            lines.append(f"  {finding}")
            lines.extend(f"    - {item.id}: {health}" for item, health in broken)
        return lines

    @staticmethod
    def _source_section(sources: dict[ResourceKind, list[ManagedResource]], findings: list[Finding]) -> list[str]:
        lines: list[str] = []
        total = 0
        unhealthy = 0
        for kind, items in sources.items():
            if not items:
                continue
            healths = [(item, resource_health(item)) for item in items]
            total += len(items)
            lines.append(f"  {kind}: {health_tally(Counter(health for _, health in healths))}")
            for item, health in healths:
                if health in _BROKEN:
                    unhealthy += 1
                    lines.append(f"    {Finding(Severity.WARNING, f'{kind} {item.id}: {health}')}")
        lines.append(f"  Total sources: {total}, Unhealthy: {unhealthy}")
        # One issue for the whole section, however many sources are broken.
        if unhealthy:
            findings.append(Finding(Severity.WARNING, f"{unhealthy} sources not healthy"))
        return lines

    async def _warning_event_section(self, ctx: CallContext, namespace: str, findings: list[Finding]) -> list[str]:
        if self._events is None:
            return []
        events_store = self._events
        action = f"listing events in {namespace}"
        try:
            events = await ctx.fetch(action, lambda: events_store.list_events(namespace))
        except FetchError as exc:
            _log.warning("event_list_failed", action=action, error=str(exc))
            return ["", f"  (could not list events: {exc.detail or exc})"]

        window = self._config.warning_event_window
        cutoff = self._now() - parse_time_window(window)
        warnings = sum(
            1 for ev in events if ev.type == "Warning" and ev.last_seen is not None and ev.last_seen >= cutoff
        )
        if not warnings:
            return []
        finding = Finding(Severity.WARNING, f"{warnings} warning events in {namespace} in the last {window}")
        findings.append(finding)
        return ["", f"  {finding}"]

    # ------------------------------------------------------------------
    # Resource tree
    # ------------------------------------------------------------------

    async def _resource_tree(self, kind: str, namespace: str, name: str, ctx: CallContext) -> DiagnosticResult:
        rkind = _parse_primary_kind(kind)
        if rkind is None:
            return _unsupported_kind(kind)

        fetched = await self._fetch_primary(ctx, rkind, namespace, name)
        if isinstance(fetched, DiagnosticResult):
            return fetched
        resource = fetched

        health = resource_health(resource)
        builder = TopologyBuilder()
        builder.add_resource(resource, health)
        if resource.source_ref is not None:
            builder.add_source_edge(resource.source_ref, resource.kind, resource.id)

        lines = [header(f"Flux Resource Tree: {resource.id} ({rkind})"), ""]
        if rkind is ResourceKind.KUSTOMIZATION:
            lines.append(f"Source: {resource.source_ref or '<none>'}")
            lines.append(f"  -> Kustomization: {resource.id} [{health}]")
            trace = await DependencyTracer(self._resources, ctx, self._config.max_dependency_depth).trace(resource)
            lines.extend(trace.lines(indent_base=1))
            if trace.truncated:
                lines.append(f"    ... (maximum depth {self._config.max_dependency_depth} reached)")
            self._add_trace_to_topology(builder, trace)
        else:
            lines.append(f"Chart: {value_or_none(resource.chart)}@{value_or_none(resource.chart_version)}")
            lines.append(f"  -> HelmRelease: {resource.id} [{health}]")

        if resource.inventory:
            limit = self._config.tree_inventory_limit
            lines.append(f"  Managed Resources ({len(resource.inventory)}):")
            lines.extend(f"    {entry.id}" for entry in resource.inventory[:limit])
            if len(resource.inventory) > limit:
                lines.append(f"    ... and {len(resource.inventory) - limit} more")

        lines.extend(["", mermaid_block(builder.render())])
        return DiagnosticResult(text="\n".join(lines) + "\n")
