"""
Prometheus metrics for the Nexus operator.

This module provides metrics collection for lifecycle operations, Nexus
script executions and admin password rotations, plus a small HTTP server
exposing them for scraping.
"""

import logging
import time
from contextlib import asynccontextmanager

from aiohttp.web import Application, AppRunner, Request, Response, TCPSite, get
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

_metrics_registry = CollectorRegistry()

OPERATION_TOTAL = Counter(
    "nexus_operator_operation_total",
    "Total number of lifecycle operation attempts",
    ["operation", "namespace", "name", "result"],
    registry=_metrics_registry,
)

OPERATION_DURATION = Histogram(
    "nexus_operator_operation_duration_seconds",
    "Time spent on lifecycle operations",
    ["operation", "namespace"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0],
    registry=_metrics_registry,
)

OPERATION_ERRORS = Counter(
    "nexus_operator_operation_errors_total",
    "Total number of lifecycle operation errors",
    ["operation", "namespace", "error_type", "retryable"],
    registry=_metrics_registry,
)

SCRIPT_EXECUTIONS = Counter(
    "nexus_operator_script_executions_total",
    "Total number of Nexus script runs",
    ["script", "namespace", "result"],
    registry=_metrics_registry,
)

ADMIN_PASSWORD_ROTATIONS = Counter(
    "nexus_operator_admin_password_rotations_total",
    "Admin password rotations by outcome",
    ["namespace", "result"],
    registry=_metrics_registry,
)


def get_metrics_registry() -> CollectorRegistry:
    """Get the operator metrics registry."""
    return _metrics_registry


class MetricsCollector:
    """Collects and manages metrics for the Nexus operator."""

    def __init__(self):
        self.registry = get_metrics_registry()

    @asynccontextmanager
    async def track_operation(self, operation: str, namespace: str, name: str):
        """
        Context manager to track a lifecycle operation.

        Args:
            operation: install, configure, expose_configuration or integration
            namespace: Namespace of the Nexus resource
            name: Name of the Nexus resource
        """
        start_time = time.time()
        result = "unknown"

        try:
            yield
            result = "success"
        except Exception as e:
            result = "error"
            retryable = "true" if getattr(e, "retryable", False) else "false"
            OPERATION_ERRORS.labels(
                operation=operation,
                namespace=namespace,
                error_type=type(e).__name__,
                retryable=retryable,
            ).inc()
            raise
        finally:
            OPERATION_TOTAL.labels(
                operation=operation, namespace=namespace, name=name, result=result
            ).inc()
            OPERATION_DURATION.labels(operation=operation, namespace=namespace).observe(
                time.time() - start_time
            )

    def record_script_execution(self, script: str, namespace: str, success: bool):
        SCRIPT_EXECUTIONS.labels(
            script=script,
            namespace=namespace,
            result="success" if success else "error",
        ).inc()

    def record_password_rotation(self, namespace: str, result: str):
        ADMIN_PASSWORD_ROTATIONS.labels(namespace=namespace, result=result).inc()


class MetricsServer:
    """
    Serves ``/metrics`` for Prometheus and ``/healthz`` for probes.

    Runs inside the operator's event loop next to kopf; ``start`` binds the
    socket, so a port clash surfaces there as OSError.
    """

    def __init__(self, port: int = 8081, host: str = "0.0.0.0"):
        self.port = port
        self.host = host
        self.runner: AppRunner | None = None
        self.app = Application()
        self.app.add_routes(
            [get("/metrics", self._serve_metrics), get("/healthz", self._serve_health)]
        )

    async def _serve_metrics(self, request: Request) -> Response:
        try:
            payload = generate_latest(get_metrics_registry())
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            return Response(
                text=f"Error generating metrics: {type(e).__name__}. Check logs for details.",
                status=500,
            )
        # CONTENT_TYPE_LATEST carries a charset, which content_type= rejects
        return Response(body=payload, headers={"Content-Type": CONTENT_TYPE_LATEST})

    async def _serve_health(self, request: Request) -> Response:
        return Response(text="ok")

    async def start(self) -> None:
        runner = AppRunner(self.app)
        await runner.setup()
        try:
            await TCPSite(runner, self.host, self.port).start()
        except OSError:
            await runner.cleanup()
            raise
        self.runner = runner
        logger.info(f"Metrics server listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self.runner is None:
            return
        # cleanup() also stops every site of the runner
        await self.runner.cleanup()
        self.runner = None
        logger.info("Metrics server stopped")


metrics_collector = MetricsCollector()
