"""Prometheus metrics for diagnostic calls and collaborator fetches."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

diagnoses_total = Counter(
    "fluxdoctor_diagnoses_total",
    "Diagnostic calls served, by operation and outcome.",
    ["operation", "outcome"],
)

fetch_errors_total = Counter(
    "fluxdoctor_fetch_errors_total",
    "Failed resource/event fetches, by error category.",
    ["category"],
)

diagnosis_duration_seconds = Histogram(
    "fluxdoctor_diagnosis_duration_seconds",
    "Wall-clock duration of one diagnostic call.",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)
