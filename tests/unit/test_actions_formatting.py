"""Tests for suggested actions and report text primitives."""

from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime, timedelta

from fakes import make_hr, make_ks, make_source

from fluxdoctor.diagnostics.actions import lookup_action, suggest_actions
from fluxdoctor.diagnostics.formatting import (
    format_age,
    header,
    health_tally,
    key_value,
    mermaid_block,
    subheader,
    truncate_revision,
)
from fluxdoctor.models.flux import Condition, HealthStatus

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestSuggestActions:
    def test_healthy_resource_needs_nothing(self) -> None:
        assert suggest_actions(make_ks(), HealthStatus.READY) == []

    def test_build_failed_mentions_path(self) -> None:
        ks = make_ks(ready="False", reason="BuildFailed", path="./clusters/prod")
        actions = suggest_actions(ks, HealthStatus.FAILED)
        assert actions == ["Check the Kustomize overlay at path './clusters/prod' for YAML/kustomization errors"]

    def test_artifact_failed_mentions_source(self) -> None:
        ks = make_ks(ready="False", reason="ArtifactFailed")
        assert "GitRepository/flux-system" in suggest_actions(ks, HealthStatus.FAILED)[0]

    def test_unknown_kustomization_reason_falls_back(self) -> None:
        ks = make_ks(ready="False", reason="SomethingNew")
        assert suggest_actions(ks, HealthStatus.FAILED) == ["Check Flux kustomize-controller logs for more details"]

    def test_stalled_uses_stalled_reason(self) -> None:
        ks = make_ks(
            conditions=(
                Condition("Stalled", "True", "DependencyNotReady", "dependency not ready"),
                Condition("Ready", "False", "Progressing"),
            )
        )
        assert lookup_action(ks, HealthStatus.STALLED, "DependencyNotReady").startswith("Fix failing dependencies")
        assert suggest_actions(ks, HealthStatus.STALLED)[0].startswith("Fix failing dependencies")

    def test_helm_release_substring_match(self) -> None:
        hr = make_hr(ready="False", reason="UpgradeFailed")
        assert "upgrade may have failed" in suggest_actions(hr, HealthStatus.FAILED)[0]
        hr = make_hr(ready="False", reason="InstallFailed")
        assert "install errors" in suggest_actions(hr, HealthStatus.FAILED)[0]
        hr = make_hr(ready="False", reason="ChartPullError")
        assert suggest_actions(hr, HealthStatus.FAILED) == ["Check Flux helm-controller logs for more details"]

    def test_suspended_gets_resume_command(self) -> None:
        ks = make_ks(suspended=True)
        assert suggest_actions(ks, HealthStatus.SUSPENDED) == [
            "Resume reconciliation: flux resume kustomization apps -n flux-system"
        ]
        hr = make_hr(suspended=True)
        assert suggest_actions(hr, HealthStatus.SUSPENDED)[-1].startswith("Resume reconciliation: flux resume helmrelease")

    def test_other_kinds_use_source_controller(self) -> None:
        src = make_source(ready="False")
        assert "source-controller" in suggest_actions(src, HealthStatus.FAILED)[0]


class TestFormatting:
    def test_headers(self) -> None:
        assert header("Title") == "=== Title ==="
        assert subheader("Sub") == "--- Sub ---"

    def test_key_value_padding(self) -> None:
        assert key_value("STATUS", "Ready") == "STATUS:              Ready"

    def test_format_age(self) -> None:
        assert format_age(None, _NOW) == "<unknown>"
        assert format_age(_NOW - timedelta(seconds=45), _NOW) == "45s"
        assert format_age(_NOW - timedelta(minutes=12), _NOW) == "12m"
        assert format_age(_NOW - timedelta(hours=3, minutes=20), _NOW) == "3h20m"
        assert format_age(_NOW - timedelta(hours=5), _NOW) == "5h"
        assert format_age(_NOW - timedelta(days=4), _NOW) == "4d"
        assert format_age(_NOW - timedelta(days=377), _NOW) == "1y12d"
        assert format_age(_NOW + timedelta(minutes=5), _NOW) == "0s"

    def test_truncate_revision(self) -> None:
        assert truncate_revision("") == "<none>"
        assert truncate_revision("main@sha1:0123456789abcdef0123") == "main@sha1:0123456789ab"
        assert truncate_revision("v1.2.3") == "v1.2.3"
        assert truncate_revision("x" * 50) == "x" * 40 + "..."

    def test_health_tally_order_and_zero_omission(self) -> None:
        tally = Counter({HealthStatus.UNKNOWN: 1, HealthStatus.READY: 3, HealthStatus.FAILED: 1})
        assert health_tally(tally) == "Ready: 3, Failed: 1, Unknown: 1"
        assert health_tally({}) == ""

    def test_mermaid_block(self) -> None:
        assert mermaid_block("graph LR\n") == "```mermaid\ngraph LR\n```"
