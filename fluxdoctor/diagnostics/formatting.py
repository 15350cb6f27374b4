"""Text primitives shared by every diagnostic report."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime

from fluxdoctor.models.flux import HEALTH_ORDER, HealthStatus

NONE = "<none>"


def header(title: str) -> str:
    return f"=== {title} ==="


def subheader(title: str) -> str:
    return f"--- {title} ---"


def key_value(key: str, value: str) -> str:
    return f"{key + ':':<20} {value}"


def value_or_none(value: str) -> str:
    return value or NONE


def format_age(created_at: datetime | None, now: datetime | None = None) -> str:
    """Compact age such as ``45s``, ``12m``, ``3h20m``, ``4d`` or ``1y12d``."""
    if created_at is None:
        return "<unknown>"
    now = now or datetime.now(tz=UTC)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    seconds = max(int((now - created_at).total_seconds()), 0)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        hours, minutes = divmod(seconds // 60, 60)
        return f"{hours}h{minutes}m" if minutes else f"{hours}h"
    days = seconds // 86400
    if days > 365:
        return f"{days // 365}y{days % 365}d"
    return f"{days}d"


def truncate_revision(revision: str) -> str:
    """Shorten a Flux revision: ``main@sha1:abcdef...`` keeps 12 hash characters."""
    if not revision:
        return NONE
    prefix, sep, digest = revision.partition(":")
    if sep:
        return prefix + sep + digest[:12]
    if len(revision) > 40:
        return revision[:40] + "..."
    return revision


def health_tally(tally: Mapping[HealthStatus, int]) -> str:
    """``Ready: 3, Failed: 1`` in fixed health order, zero counts omitted."""
    return ", ".join(f"{status}: {tally[status]}" for status in HEALTH_ORDER if tally.get(status, 0) > 0)


def mermaid_block(diagram: str) -> str:
    return f"```mermaid\n{diagram.rstrip()}\n```"
