"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re
from datetime import timedelta

from fluxdoctor.models.config import APIConfig, DiagnosticsConfig, FluxDoctorConfig, LogConfig


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"FLUXDOCTOR_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None, max_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_time_window(value: str) -> str:
    if not re.match(r"^[0-9]+(m|h|d)$", value):
        raise ValueError(f"Invalid time window format: {value}")
    return value


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def parse_time_window(value: str) -> timedelta:
    """Convert a validated window such as ``"1h"`` or ``"30m"`` to a timedelta."""
    amount = int(_validate_time_window(value)[:-1])
    unit = value[-1]
    if unit == "m":
        return timedelta(minutes=amount)
    if unit == "h":
        return timedelta(hours=amount)
    return timedelta(days=amount)


def load_config() -> FluxDoctorConfig:
    """Load configuration from FLUXDOCTOR_* environment variables."""
    return FluxDoctorConfig(
        diagnostics=DiagnosticsConfig(
            fetch_timeout_seconds=_env_float("FETCH_TIMEOUT", 30.0, min_val=1.0, max_val=300.0),
            max_dependency_depth=_env_int("MAX_DEPENDENCY_DEPTH", 10, min_val=1, max_val=50),
            inventory_limit=_env_int("INVENTORY_LIMIT", 20, min_val=1, max_val=500),
            tree_inventory_limit=_env_int("TREE_INVENTORY_LIMIT", 30, min_val=1, max_val=500),
            controller_namespace=_env("CONTROLLER_NAMESPACE", "flux-system"),
            warning_event_window=_validate_time_window(_env("WARNING_EVENT_WINDOW", "1h")),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
