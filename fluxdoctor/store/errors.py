"""Fetch error taxonomy and its mapping to user-facing results.

Every collaborator failure is normalised into a :class:`FetchError`
subclass by :func:`classify_error`. Only the primary-target fetch turns
one into an error result (:func:`error_result`); secondary fetches render
the error inline and keep going.
"""

from __future__ import annotations

from fluxdoctor.models.report import DiagnosticResult

NOT_INSTALLED_MARKERS: tuple[str, ...] = (
    "no matches for kind",
    "no kind is registered",
    "the server could not find the requested resource",
)

NOT_INSTALLED_GUIDANCE = (
    "FluxCD is not installed in this cluster. The required Custom Resource "
    "Definitions were not found.\n\n"
    "To install FluxCD: https://fluxcd.io/flux/installation/"
)


class FetchError(Exception):
    """A collaborator fetch failed while performing *action*."""

    code = "ERROR"

    def __init__(self, action: str, detail: str = "") -> None:
        super().__init__(f"{action}: {detail}" if detail else action)
        self.action = action
        self.detail = detail


class NotFoundError(FetchError):
    code = "NOT_FOUND"


class PermissionDeniedError(FetchError):
    code = "PERMISSION_DENIED"


class UnauthorizedError(FetchError):
    code = "UNAUTHORIZED"


class FetchTimeoutError(FetchError):
    code = "TIMEOUT"


class FetchCancelledError(FetchError):
    code = "CANCELLED"


class SubsystemNotInstalledError(FetchError):
    """The Flux CRDs backing the requested kind are absent from the cluster."""

    code = "NOT_INSTALLED"


_STATUS_CLASSES: dict[int, type[FetchError]] = {
    401: UnauthorizedError,
    403: PermissionDeniedError,
    404: NotFoundError,
    408: FetchTimeoutError,
    504: FetchTimeoutError,
}


def _error_text(exc: BaseException) -> str:
    # kubernetes-asyncio ApiException keeps the server message in .body
    body = getattr(exc, "body", None)
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    parts = [str(exc)]
    if body:
        parts.append(str(body))
    return " ".join(parts)


def is_not_installed(exc: BaseException) -> bool:
    """True if *exc* says the requested Flux kind is not served by the API."""
    text = _error_text(exc)
    return any(marker in text for marker in NOT_INSTALLED_MARKERS)


def classify_error(action: str, exc: BaseException) -> FetchError:
    """Map an arbitrary collaborator exception onto the fetch-error taxonomy."""
    if isinstance(exc, FetchError):
        return exc

    if is_not_installed(exc):
        return SubsystemNotInstalledError(action, _short_detail(exc))

    if isinstance(exc, TimeoutError):
        return FetchTimeoutError(action, "request timed out")

    status = getattr(exc, "status", None)
    if isinstance(status, int) and status in _STATUS_CLASSES:
        return _STATUS_CLASSES[status](action, _short_detail(exc))

    return FetchError(action, _short_detail(exc))


def _short_detail(exc: BaseException) -> str:
    reason = getattr(exc, "reason", None)
    status = getattr(exc, "status", None)
    if isinstance(status, int) and reason:
        return f"({status}) {reason}"
    return str(exc) or type(exc).__name__


def error_result(action: str, err: FetchError) -> DiagnosticResult:
    """Render a primary-path failure as a result.

    A missing Flux installation is an expected state, so it produces a
    non-error result carrying installation guidance.
    """
    if isinstance(err, SubsystemNotInstalledError):
        return DiagnosticResult(text=NOT_INSTALLED_GUIDANCE)
    if isinstance(err, NotFoundError):
        text = f"Not found: {action}"
    elif isinstance(err, PermissionDeniedError):
        text = f"Permission denied: {action}. Check RBAC permissions."
    elif isinstance(err, UnauthorizedError):
        text = f"Unauthorized: {action}. Check cluster credentials."
    elif isinstance(err, FetchTimeoutError):
        text = f"Timeout: {action}. The cluster may be unreachable."
    elif isinstance(err, FetchCancelledError):
        text = f"Cancelled: {action}"
    else:
        text = f"Error {action}: {err.detail}"
    return DiagnosticResult(text=text, is_error=True, error_code=err.code)
