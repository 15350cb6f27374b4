"""Shared fixtures for fluxdoctor tests."""

from __future__ import annotations

from datetime import datetime

import pytest
from fakes import NOW, FakeEventStore, FakeResourceStore

from fluxdoctor.diagnostics import FluxDiagnostician
from fluxdoctor.models.config import DiagnosticsConfig


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> FakeResourceStore:
    return FakeResourceStore()


@pytest.fixture
def event_store() -> FakeEventStore:
    return FakeEventStore()


@pytest.fixture
def diag_config() -> DiagnosticsConfig:
    return DiagnosticsConfig(fetch_timeout_seconds=2.0)


@pytest.fixture
def diagnostician(
    store: FakeResourceStore, event_store: FakeEventStore, diag_config: DiagnosticsConfig
) -> FluxDiagnostician:
    return FluxDiagnostician(store, event_store, diag_config, clock=lambda: NOW)
