"""Diagnostic findings and report results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from fluxdoctor.models.flux import ResourceId


class Severity(StrEnum):
    """Finding severity, highest first."""

    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"


@dataclass(frozen=True)
class Finding:
    """A single operator-facing observation."""

    severity: Severity
    message: str

    def __str__(self) -> str:
        return f"[{self.severity}] {self.message}"


@dataclass(frozen=True)
class DependencyEdge:
    """Declared ordering edge: ``from_id`` depends on ``to_id``."""

    from_id: ResourceId
    to_id: ResourceId


@dataclass(frozen=True)
class DiagnosticResult:
    """Text report returned by every entry point.

    ``is_error`` is set only when the primary fetch failed; ``error_code``
    then carries the taxonomy code (``NOT_FOUND``, ``TIMEOUT``, ...).
    """

    text: str
    is_error: bool = False
    error_code: str | None = None
