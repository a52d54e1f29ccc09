"""Application bootstrap for kubetopo.

Startup order: config → logging → cluster reader → REST.
Shutdown runs in reverse. Each stop step is caught and logged on its own
so one failing teardown does not keep the rest from closing.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from kubetopo.config import load_config
from kubetopo.models.config import KubeTopoConfig
from kubetopo.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from kubetopo.cluster.kube import KubeClusterReader

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubeTopoApp:
    """Application root. Owns the cluster reader and the REST server.

    ``stop()`` is safe on an app that was never started or already stopped.
    """

    def __init__(self) -> None:
        self.config: KubeTopoConfig | None = None
        self._cluster: KubeClusterReader | None = None
        self._rest_server: object | None = None
        self._background_tasks: list[asyncio.Task[None]] = []
        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    async def start(self) -> None:
        """Start every component in dependency order.

        Raises _ComponentError if the cluster reader or REST server cannot start.
        """
        self.config = load_config()

        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("kubetopo starting", version=_kubetopo_version())

        await self._start_cluster()
        await self._start_rest()

        self._running = True
        self._log.info("kubetopo started", port=self.config.api.port)

    async def _start_cluster(self) -> None:
        """Connect the cluster reader from in-cluster config or kubeconfig."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting cluster reader")
        try:
            from kubetopo.cluster.kube import KubeClusterReader

            self._cluster = await KubeClusterReader.connect(self.config.cluster)
            self._log.info(
                "cluster reader ready",
                default_namespace=self._cluster.default_namespace(),
                istio_version=self.config.cluster.istio_version,
            )
        except Exception as exc:
            raise _ComponentError("cluster", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from kubetopo.api import build_app

            fastapi_app = build_app(cluster=self._cluster, config=self.config)
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

    async def stop(self) -> None:
        """Stop the REST server, then close the cluster reader."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kubetopo shutting down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]
        pending = [t for t in self._background_tasks if not t.done()]
        if pending:
            _done, still_running = await asyncio.wait(pending, timeout=_SHUTDOWN_GRACE_SECONDS)
            for task in still_running:
                log.warning("component stop timed out", component=task.get_name(), timeout=_SHUTDOWN_GRACE_SECONDS)
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_cluster()
        log.info("kubetopo stopped")

    async def _stop_cluster(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._cluster is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._cluster.close()
        except Exception as exc:
            log.debug("cluster reader close raised (non-fatal)", error=str(exc))
        self._cluster = None


def _kubetopo_version() -> str:
    from kubetopo import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


class _ShutdownRequest:
    """Starts ``app.stop()`` once, on the first signal, and keeps the task."""

    def __init__(self, app: KubeTopoApp) -> None:
        self._app = app
        self.task: asyncio.Task[None] | None = None

    def __call__(self) -> None:
        if self.task is None:
            self.task = asyncio.create_task(self._app.stop(), name="shutdown")

    async def wait(self) -> None:
        if self.task is not None:
            await self.task


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubeTopoApp()
    loop = asyncio.get_running_loop()

    request_shutdown = _ShutdownRequest(app)
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, request_shutdown)

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
        await request_shutdown.wait()
        if app._running:
            await app.stop()
