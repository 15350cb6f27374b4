"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class DiagnosticsConfig:
    """Diagnostic engine limits and scopes."""

    fetch_timeout_seconds: float = 30.0
    max_dependency_depth: int = 10
    inventory_limit: int = 20
    tree_inventory_limit: int = 30
    controller_namespace: str = "flux-system"
    warning_event_window: str = "1h"


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class FluxDoctorConfig:
    """Top-level fluxdoctor configuration."""

    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
