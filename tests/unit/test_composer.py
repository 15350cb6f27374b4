"""Tests for FluxDiagnostician report composition."""

from __future__ import annotations

from datetime import timedelta

from fakes import NOW, FakeEventStore, FakeResourceStore, make_hr, make_inventory, make_ks, make_source
from kubernetes_asyncio.client.exceptions import ApiException

from fluxdoctor.diagnostics import FluxDiagnostician
from fluxdoctor.models.config import DiagnosticsConfig
from fluxdoctor.models.flux import ClusterEvent, Condition, PodSummary, ReleaseSnapshot, ResourceKind
from fluxdoctor.store.errors import NOT_INSTALLED_GUIDANCE

_NS = "flux-system"


def _section(text: str, title: str) -> str:
    """Body of a ``FINDINGS:``-style section up to the next blank line."""
    after = text.split(f"{title}\n", 1)[1]
    return after.split("\n\n", 1)[0]


class TestDiagnoseKustomization:
    async def test_healthy(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.add(make_ks(), make_source())
        result = await diagnostician.diagnose_resource("Kustomization", _NS, "apps")

        assert not result.is_error
        assert result.text.startswith("=== Flux Kustomization Diagnosis: apps (namespace: flux-system) ===\n")
        assert "STATUS:              Ready" in result.text
        assert "SOURCE:              GitRepository/flux-system" in result.text
        assert "AGE:                 3d" in result.text
        assert "No issues found. Kustomization appears healthy." in result.text
        assert "No specific actions needed. Kustomization is healthy." in result.text
        assert "```mermaid\ngraph LR\n" in result.text
        assert "git_flux_system_flux_system --> ks_flux_system_apps" in result.text

    async def test_failed_build(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.add(
            make_ks(ready="False", reason="BuildFailed", message="kustomization.yaml not found", path="./bad"),
            make_source(),
        )
        result = await diagnostician.diagnose_resource("ks", _NS, "apps")

        findings = _section(result.text, "FINDINGS:")
        assert "[CRITICAL] Reconciliation failed: kustomization.yaml not found" in findings
        actions = _section(result.text, "SUGGESTED ACTIONS:")
        assert actions.startswith("1. Check the Kustomize overlay at path './bad'")

    async def test_findings_order(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.add(
            make_ks(
                suspended=True,
                depends_on=["infra"],
                applied_revision="main@sha1:aaaaaaaaaaaaaaaa",
                attempted_revision="main@sha1:bbbbbbbbbbbbbbbb",
            ),
            make_ks("infra", ready="False"),
            make_source(ready="False", message="auth failed"),
        )
        result = await diagnostician.diagnose_resource("Kustomization", _NS, "apps")

        lines = _section(result.text, "FINDINGS:").splitlines()
        assert lines == [
            "  [INFO] Kustomization is suspended; reconciliation paused",
            "  [WARNING] Applied revision (main@sha1:aaaaaaaaaaaa) differs from attempted revision "
            "(main@sha1:bbbbbbbbbbbb)",
            "  [WARNING] Dependency flux-system/infra is not Ready (Failed)",
            "  [WARNING] Source GitRepository/flux-system is Failed: auth failed",
        ]
        actions = _section(result.text, "SUGGESTED ACTIONS:")
        assert actions == "1. Resume reconciliation: flux resume kustomization apps -n flux-system"

    async def test_stalled(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.add(
            make_ks(
                conditions=(
                    Condition("Stalled", "True", "DependencyNotReady", "dependency 'infra' is not ready"),
                    Condition("Ready", "False", "DependencyNotReady"),
                )
            ),
            make_source(),
        )
        result = await diagnostician.diagnose_resource("Kustomization", _NS, "apps")
        assert "STATUS:              Stalled" in result.text
        assert "[CRITICAL] Reconciliation stalled: dependency 'infra' is not ready" in result.text
        assert "1. Fix failing dependencies before this Kustomization can reconcile" in result.text

    async def test_dependencies_section_and_diagram(
        self, store: FakeResourceStore, diagnostician: FluxDiagnostician
    ) -> None:
        store.add(make_ks(depends_on=["infra", "ghost"]), make_ks("infra"), make_source())
        result = await diagnostician.diagnose_resource("Kustomization", _NS, "apps")

        deps = _section(result.text, "--- Dependencies ---")
        assert deps.splitlines() == ["  -> flux-system/infra [Ready]", "  -> flux-system/ghost (not found)"]
        assert "[WARNING] Dependency flux-system/ghost could not be fetched (not found)" in result.text
        assert "ks_flux_system_infra -.-> ks_flux_system_apps" in result.text

    async def test_missing_source_degrades(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.add(make_ks())
        result = await diagnostician.diagnose_resource("Kustomization", _NS, "apps")
        assert not result.is_error
        assert "[WARNING] Cannot fetch source GitRepository/flux-system:" in result.text

    async def test_inventory_is_capped(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.add(make_ks(inventory=make_inventory(25)), make_source())
        result = await diagnostician.diagnose_resource("Kustomization", _NS, "apps")
        inventory = _section(result.text, "--- Managed Resources (25) ---").splitlines()
        assert len(inventory) == 21
        assert inventory[-1] == "  ... and 5 more"

    async def test_events_section(
        self, store: FakeResourceStore, event_store: FakeEventStore, diagnostician: FluxDiagnostician
    ) -> None:
        store.add(make_ks(), make_source())
        event_store.add_event(_NS, "apps", ClusterEvent("Warning", "ReconciliationFailed", "build failed", count=3))
        event_store.add_event(_NS, "apps", ClusterEvent("Normal", "ReconciliationSucceeded", "applied"))
        result = await diagnostician.diagnose_resource("Kustomization", _NS, "apps")

        events = _section(result.text, "--- Recent Events ---").splitlines()
        assert events[0] == f"  {'Warning':<8} {'ReconciliationFailed':<25} build failed (x3)"
        assert events[1].endswith("applied")

    async def test_event_failure_is_inline(
        self, store: FakeResourceStore, event_store: FakeEventStore, diagnostician: FluxDiagnostician
    ) -> None:
        store.add(make_ks(), make_source())
        event_store.error = ApiException(status=403, reason="Forbidden")
        result = await diagnostician.diagnose_resource("Kustomization", _NS, "apps")
        assert not result.is_error
        assert "(could not fetch events:" in result.text


class TestDiagnoseHelmRelease:
    async def test_release_and_test_findings(
        self, store: FakeResourceStore, diagnostician: FluxDiagnostician
    ) -> None:
        store.add(
            make_hr(
                conditions=(
                    Condition("Ready", "False", "UpgradeFailed", "Helm upgrade failed: timed out"),
                    Condition("Released", "False", "UpgradeFailed", "timed out waiting for the condition"),
                    Condition("TestSuccess", "False", "Failed", "test pod podinfo-test failed"),
                ),
                history=(
                    ReleaseSnapshot(3, "failed", "6.5.1", "6.5.1"),
                    ReleaseSnapshot(2, "deployed", "6.5.0", "6.5.0"),
                ),
                install_retries=3,
                upgrade_retries=2,
                upgrade_strategy="rollback",
            ),
            make_source(ResourceKind.HELM_REPOSITORY, "podinfo", "apps"),
        )
        result = await diagnostician.diagnose_resource("hr", "apps", "podinfo")

        assert result.text.startswith("=== Flux HelmRelease Diagnosis: podinfo (namespace: apps) ===")
        assert "CHART:               podinfo" in result.text
        findings = _section(result.text, "FINDINGS:").splitlines()
        assert findings == [
            "  [CRITICAL] Reconciliation failed: Helm upgrade failed: timed out",
            "  [WARNING] Release issue: UpgradeFailed: timed out waiting for the condition",
            "  [WARNING] Helm tests failed: test pod podinfo-test failed",
        ]
        assert "  v3: failed (chart: 6.5.1, app: 6.5.1)" in result.text
        assert "  Upgrade strategy: rollback" in result.text
        assert "upgrade may have failed" in _section(result.text, "SUGGESTED ACTIONS:")
        assert "helmrepo_apps_podinfo --> hr_apps_podinfo" in result.text

    async def test_remediation_defaults(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.add(make_hr(), make_source(ResourceKind.HELM_REPOSITORY, "podinfo", "apps"))
        result = await diagnostician.diagnose_resource("HelmRelease", "apps", "podinfo")
        assert "(controller defaults)" in result.text
        assert "No issues found. HelmRelease appears healthy." in result.text


class TestPrimaryFailures:
    async def test_not_found(self, diagnostician: FluxDiagnostician) -> None:
        result = await diagnostician.diagnose_resource("Kustomization", _NS, "missing")
        assert result.is_error
        assert result.error_code == "NOT_FOUND"
        assert result.text == "Not found: getting Kustomization flux-system/missing"

    async def test_not_installed_is_guidance(
        self, store: FakeResourceStore, diagnostician: FluxDiagnostician
    ) -> None:
        store.fail_get(
            ResourceKind.HELM_RELEASE, "apps", "podinfo", RuntimeError('no matches for kind "HelmRelease"')
        )
        result = await diagnostician.diagnose_resource("HelmRelease", "apps", "podinfo")
        assert not result.is_error
        assert result.text == NOT_INSTALLED_GUIDANCE

    async def test_unsupported_kind(self, diagnostician: FluxDiagnostician) -> None:
        result = await diagnostician.diagnose_resource("GitRepository", _NS, "flux-system")
        assert result.is_error
        assert result.error_code == "INVALID_KIND"
        result = await diagnostician.get_resource_tree("Deployment", _NS, "x")
        assert result.error_code == "INVALID_KIND"


class TestDiagnoseSystem:
    async def test_healthy_cluster(
        self, store: FakeResourceStore, event_store: FakeEventStore, diagnostician: FluxDiagnostician
    ) -> None:
        event_store.pods[_NS] = [
            PodSummary("source-controller-1", "Running", True),
            PodSummary("kustomize-controller-1", "Running", True),
        ]
        store.add(make_ks(), make_hr(), make_source())
        result = await diagnostician.diagnose_system()

        assert not result.is_error
        assert result.text.startswith("=== FluxCD System Health Report ===")
        assert "  Pods: 2/2 healthy" in result.text
        assert "  Total: 1  Ready: 1" in result.text
        assert "  GitRepository: Ready: 1" in result.text
        assert "  Total sources: 1, Unhealthy: 0" in result.text
        assert "FluxCD system appears healthy. No issues found." in result.text
        assert "Result: PASS" in result.text

    async def test_unhealthy_cluster(
        self, store: FakeResourceStore, event_store: FakeEventStore, diagnostician: FluxDiagnostician
    ) -> None:
        event_store.pods[_NS] = [
            PodSummary("source-controller-1", "Running", True),
            PodSummary("helm-controller-1", "Running", False, "CrashLoopBackOff"),
        ]
        event_store.add_event(_NS, "apps", ClusterEvent("Warning", "Failed", "x", last_seen=NOW - timedelta(minutes=5)))
        event_store.add_event(_NS, "apps", ClusterEvent("Warning", "Failed", "old", last_seen=NOW - timedelta(hours=3)))
        store.add(
            make_ks(),
            make_ks("broken", ready="False"),
            make_ks("paused", suspended=True),
            make_source(),
            make_source(ResourceKind.BUCKET, "artifacts", ready="False"),
            make_source(ResourceKind.BUCKET, "logs", ready="False"),
        )
        result = await diagnostician.diagnose_system()

        assert "  Pods: 1/2 healthy" in result.text
        assert "[CRITICAL] Controller pod 'helm-controller-1' is unhealthy: CrashLoopBackOff" in result.text
        assert "  Total: 3  Ready: 1, Failed: 1, Suspended: 1" in result.text
        assert "[WARNING] 1 Kustomizations not healthy" in result.text
        assert "    - flux-system/broken: Failed" in result.text
        assert "[WARNING] Bucket flux-system/artifacts: Failed" in result.text
        assert "[WARNING] Bucket flux-system/logs: Failed" in result.text
        assert "  GitRepository: Ready: 1" in result.text
        assert "  Bucket: Failed: 2" in result.text
        assert "  Total sources: 3, Unhealthy: 2" in result.text
        assert "[WARNING] 1 warning events in flux-system in the last 1h" in result.text
        assert "4 issue(s) found. Review findings above." in result.text
        assert "Result: FAIL" in result.text
        assert "bucket_flux_system_artifacts" in result.text

    async def test_no_controller_pods(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        result = await diagnostician.diagnose_system()
        assert "[CRITICAL] No pods found in flux-system namespace" in result.text
        assert "1 issue(s) found." in result.text

    async def test_not_installed(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.fail_list(ResourceKind.KUSTOMIZATION, RuntimeError('no matches for kind "Kustomization"'))
        result = await diagnostician.diagnose_system()
        assert not result.is_error
        assert result.text == NOT_INSTALLED_GUIDANCE

    async def test_missing_source_crd_is_inline(
        self, store: FakeResourceStore, diagnostician: FluxDiagnostician
    ) -> None:
        store.fail_list(ResourceKind.BUCKET, RuntimeError("the server could not find the requested resource"))
        store.add(make_ks())
        result = await diagnostician.diagnose_system()
        assert not result.is_error
        assert "  Bucket: (Bucket CRD not installed)" in result.text


class TestResourceTree:
    async def test_kustomization_tree(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.add(
            make_ks(depends_on=["infra"], inventory=make_inventory(2)),
            make_ks("infra", depends_on=["apps"]),
        )
        result = await diagnostician.get_resource_tree("Kustomization", _NS, "apps")

        assert not result.is_error
        lines = result.text.splitlines()
        assert lines[0] == "=== Flux Resource Tree: flux-system/apps (Kustomization) ==="
        assert lines[2] == "Source: GitRepository/flux-system"
        assert lines[3] == "  -> Kustomization: flux-system/apps [Ready]"
        assert lines[4] == "    -> flux-system/infra [Ready]"
        assert lines[5] == "      -> flux-system/apps (circular ref, skipped)"
        assert lines[6] == "  Managed Resources (2):"
        assert "ks_flux_system_infra -.-> ks_flux_system_apps" in result.text

    async def test_tree_inventory_cap(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.add(make_ks(inventory=make_inventory(35)))
        result = await diagnostician.get_resource_tree("ks", _NS, "apps")
        assert "    ... and 5 more" in result.text

    async def test_helm_release_tree(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.add(make_hr())
        result = await diagnostician.get_resource_tree("HelmRelease", "apps", "podinfo")
        assert "Chart: podinfo@6.5.x" in result.text
        assert "  -> HelmRelease: apps/podinfo [Ready]" in result.text
        assert "helmrepo_apps_podinfo --> hr_apps_podinfo" in result.text

    async def test_tree_not_found(self, diagnostician: FluxDiagnostician) -> None:
        result = await diagnostician.get_resource_tree("Kustomization", _NS, "missing")
        assert result.is_error
        assert "Not found" in result.text


class TestConfigLimits:
    async def test_custom_inventory_limit_and_depth(self) -> None:
        store = FakeResourceStore()
        store.add(make_ks(inventory=make_inventory(5), depends_on=["b"]), make_ks("b", depends_on=["c"]), make_ks("c"))
        diag = FluxDiagnostician(
            store, None, DiagnosticsConfig(inventory_limit=2, max_dependency_depth=1), clock=lambda: NOW
        )
        result = await diag.diagnose_resource("Kustomization", _NS, "apps")
        assert "  ... and 3 more" in result.text
        assert "flux-system/c" not in _section(result.text, "--- Dependencies ---")
        assert "trace truncated" in result.text

    async def test_calls_are_independent(self, store: FakeResourceStore, diagnostician: FluxDiagnostician) -> None:
        store.add(make_ks(depends_on=["infra"]), make_ks("infra"), make_source())
        first = await diagnostician.diagnose_resource("Kustomization", _NS, "apps")
        second = await diagnostician.diagnose_resource("Kustomization", _NS, "apps")
        assert first.text == second.text


class TestFetchTimeouts:
    @staticmethod
    def _fast_timeout(store: FakeResourceStore) -> FluxDiagnostician:
        return FluxDiagnostician(store, None, DiagnosticsConfig(fetch_timeout_seconds=0.05), clock=lambda: NOW)

    async def test_primary_timeout_is_error_result(self, store: FakeResourceStore) -> None:
        store.add(make_ks())
        store.hang_get(ResourceKind.KUSTOMIZATION, _NS, "apps")
        result = await self._fast_timeout(store).diagnose_resource("Kustomization", _NS, "apps")

        assert result.is_error
        assert result.error_code == "TIMEOUT"
        assert result.text == "Timeout: getting Kustomization flux-system/apps. The cluster may be unreachable."

    async def test_secondary_timeouts_degrade_inline(self, store: FakeResourceStore) -> None:
        store.add(make_ks(depends_on=["infra"]), make_ks("infra"), make_source())
        store.hang_get(ResourceKind.GIT_REPOSITORY, _NS, "flux-system")
        store.hang_get(ResourceKind.KUSTOMIZATION, _NS, "infra")
        result = await self._fast_timeout(store).diagnose_resource("Kustomization", _NS, "apps")

        assert not result.is_error
        assert "[WARNING] Cannot fetch source GitRepository/flux-system: no response within 0.05s" in result.text
        assert "  -> flux-system/infra (could not fetch: no response within 0.05s)" in result.text
        assert "SUGGESTED ACTIONS:" in result.text
