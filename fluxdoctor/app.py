"""Application bootstrap for fluxdoctor.

Wires components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → stores → diagnostician → REST

Shutdown stops components in reverse order. Each stop error is caught and
logged on its own so one failing teardown does not block the rest.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

from fluxdoctor.config import load_config
from fluxdoctor.diagnostics import FluxDiagnostician
from fluxdoctor.models.config import DiagnosticsConfig, FluxDoctorConfig
from fluxdoctor.observability.logging import get_logger, setup_logging
from fluxdoctor.store import FluxResourceStore, KubeEventStore

if TYPE_CHECKING:
    import structlog

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


async def connect_kubernetes() -> Any:
    """Return an ApiClient configured from in-cluster config or kubeconfig."""
    import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
    from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

    log = get_logger("app")
    try:
        # load_incluster_config() is synchronous in kubernetes-asyncio
        k8s_config.load_incluster_config()
        log.info("k8s client configured from in-cluster service account")
    except k8s_config.ConfigException:
        await k8s_config.load_kube_config()
        log.info("k8s client configured from kubeconfig")
    return k8s_client.ApiClient()


def build_diagnostician(api_client: Any, config: DiagnosticsConfig) -> FluxDiagnostician:
    """Diagnostician over the custom-objects and core/v1 APIs of *api_client*."""
    from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

    return FluxDiagnostician(
        resources=FluxResourceStore(k8s_client.CustomObjectsApi(api_client)),
        events=KubeEventStore(k8s_client.CoreV1Api(api_client)),
        config=config,
    )


class FluxDoctorApp:
    """Application root. Owns every component and coordinates their lifecycle.

    ``stop()`` is safe on an app that was never started or already stopped.
    """

    def __init__(self, config: FluxDoctorConfig | None = None) -> None:
        self.config: FluxDoctorConfig | None = config

        self._api_client: Any | None = None
        self._diagnostician: FluxDiagnostician | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("fluxdoctor starting", version=_fluxdoctor_version())

        # --- 3. Kubernetes client ----------------------------------------
        try:
            self._api_client = await connect_kubernetes()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

        # --- 4. Stores + diagnostician -----------------------------------
        try:
            self._diagnostician = build_diagnostician(self._api_client, self.config.diagnostics)
        except Exception as exc:
            raise _ComponentError("diagnostician", exc) from exc

        # --- 5. REST API ------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("fluxdoctor started", port=self.config.api.port)

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn  # type: ignore[import-untyped]

            from fluxdoctor.api import create_app

            fastapi_app = create_app(diagnostician=self._diagnostician, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("fluxdoctor shutting down")

        self._running = False

        if self._rest_server is not None:
            # uvicorn exits its serve() loop once should_exit is set
            self._rest_server.should_exit = True  # type: ignore[attr-defined]

        if self._background_tasks:
            done, pending = await asyncio.wait(self._background_tasks, timeout=_SHUTDOWN_GRACE_SECONDS)
            for task in pending:
                log.warning("background task stop timed out", task=task.get_name())
                task.cancel()
        self._background_tasks.clear()
        self._rest_server = None
        self._diagnostician = None

        await self._stop_k8s_client()

        log.info("fluxdoctor stopped")

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._api_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._api_client.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._api_client = None


def _fluxdoctor_version() -> str:
    from fluxdoctor import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: FluxDoctorConfig | None = None) -> None:
    """Create the app, register OS signals, run until shutdown is requested.

    *config* overrides loading from the environment (the CLI passes its own).
    """
    app = FluxDoctorApp(config)
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app._running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app._running:
            await app.stop()
