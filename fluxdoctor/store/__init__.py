"""Collaborator access: Flux resource store, event store, fetch context and errors.

Submodules:
    errors   -- FetchError taxonomy, classification, primary-path error results.
    context  -- CallContext: per-fetch timeout and cooperative cancellation.
    parsing  -- Raw custom object dict -> ManagedResource snapshot.
    kube     -- kubernetes-asyncio backed ResourceStore / EventStore.
"""

from fluxdoctor.store.context import CallContext
from fluxdoctor.store.errors import (
    FetchCancelledError,
    FetchError,
    FetchTimeoutError,
    NotFoundError,
    PermissionDeniedError,
    SubsystemNotInstalledError,
    UnauthorizedError,
    classify_error,
    error_result,
)
from fluxdoctor.store.kube import EventStore, FluxResourceStore, KubeEventStore, ResourceStore

__all__ = [
    "CallContext",
    "EventStore",
    "FetchCancelledError",
    "FetchError",
    "FetchTimeoutError",
    "FluxResourceStore",
    "KubeEventStore",
    "NotFoundError",
    "PermissionDeniedError",
    "ResourceStore",
    "SubsystemNotInstalledError",
    "UnauthorizedError",
    "classify_error",
    "error_result",
]
