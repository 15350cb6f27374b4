"""Per-call fetch context: bounded timeouts and cooperative cancellation.

One :class:`CallContext` is created per diagnostic call and threaded
through every collaborator fetch in that call. It holds no state shared
with other calls.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from fluxdoctor.observability.logging import get_logger
from fluxdoctor.observability.metrics import fetch_errors_total
from fluxdoctor.store.errors import (
    FetchCancelledError,
    FetchError,
    FetchTimeoutError,
    classify_error,
)

_log = get_logger("store.context")

DEFAULT_FETCH_TIMEOUT = 30.0

T = TypeVar("T")


class CallContext:
    """Timeout and cancellation signal for one diagnostic call.

    ``fetch`` never starts a call once the context is cancelled, and
    abandons an in-flight call when the signal fires or the per-fetch
    timeout elapses.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._cancel_event = cancel_event if cancel_event is not None else asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        self._cancel_event.set()

    async def fetch(self, action: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run one collaborator call under this context.

        Raises:
            FetchError: classified failure (timeout, cancellation, API error).
        """
        if self.cancelled:
            raise _record(FetchCancelledError(action, "call cancelled before fetch started"))

        try:
            task: asyncio.Future[T] = asyncio.ensure_future(call())
        except Exception as exc:
            raise _record(classify_error(action, exc)) from exc
        waiter = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiter.cancel()

        if task in done:
            try:
                return task.result()
            except FetchError as exc:
                raise _record(exc) from exc
            except Exception as exc:
                raise _record(classify_error(action, exc)) from exc

        task.cancel()
        if self.cancelled:
            raise _record(FetchCancelledError(action, "call cancelled while fetch in flight"))
        raise _record(FetchTimeoutError(action, f"no response within {self.timeout_seconds:g}s"))


def _record(err: FetchError) -> FetchError:
    fetch_errors_total.labels(category=err.code).inc()
    _log.debug("fetch_failed", action=err.action, code=err.code, error=err.detail)
    return err
