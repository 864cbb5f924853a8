"""
Nexus Operator entry point.

Installs Nexus repository managers, bootstraps them through the Nexus script
API, publishes CI credentials and wires the Keycloak authentication proxy.

Run it as ``nexus-operator``, ``python -m nexus_operator.operator`` or
``kopf run -m nexus_operator.operator --all-namespaces``.

Environment:
    NEXUS_OPERATOR_NAMESPACES  comma-separated namespaces to watch (default: all)
    OPERATOR_NAMESPACE         set inside the cluster; Nexus is then reached by service DNS
    LOG_LEVEL, JSON_LOGS       logging output
"""

import logging
import sys
from typing import Any

import kopf

# Registers the Nexus handlers with kopf
from nexus_operator.handlers import nexus  # noqa: F401
from nexus_operator.observability.logging import setup_structured_logging
from nexus_operator.observability.metrics import MetricsServer
from nexus_operator.settings import settings as operator_settings

logger = logging.getLogger(__name__)

LIVENESS_ENDPOINT = "http://0.0.0.0:8080/healthz"

_global_metrics_server: MetricsServer | None = None


def configure_logging() -> None:
    setup_structured_logging(
        log_level=operator_settings.log_level.upper(),
        enable_json_formatting=operator_settings.json_logs,
        correlation_id_enabled=operator_settings.correlation_ids,
    )


async def _start_metrics_server() -> MetricsServer | None:
    server = MetricsServer(
        port=operator_settings.metrics_port, host=operator_settings.metrics_host
    )
    try:
        await server.start()
    except OSError as e:
        # The operator keeps reconciling without metrics
        logger.error(f"Failed to start metrics server: {e}")
        logger.warning("Continuing without metrics server")
        return None
    return server


@kopf.on.startup()
async def startup_handler(settings: kopf.OperatorSettings, **_) -> None:
    """Tune kopf and start the Prometheus endpoint."""
    global _global_metrics_server

    logger.info("Starting Nexus Operator...")
    settings.watching.reconnect_backoff = 1.0
    settings.peering.name = operator_settings.operator_name

    scope = operator_settings.watched_namespaces
    logger.info(
        f"Watching namespaces: {', '.join(scope)}"
        if scope
        else "Watching all namespaces (cluster-wide mode)"
    )
    if operator_settings.running_in_cluster:
        logger.info(
            f"Running in cluster (namespace {operator_settings.operator_namespace}); "
            "Nexus is reached through service DNS names"
        )
    else:
        logger.info("Running outside the cluster; Nexus is reached through ingress hosts")

    _global_metrics_server = await _start_metrics_server()


@kopf.on.cleanup()
async def cleanup_handler(**_) -> None:
    global _global_metrics_server

    logger.info("Shutting down Nexus Operator...")
    if _global_metrics_server is not None:
        await _global_metrics_server.stop()
        _global_metrics_server = None


def main() -> None:
    configure_logging()

    scope = operator_settings.watched_namespaces
    run_kwargs: dict[str, Any] = (
        {"namespaces": scope} if scope else {"clusterwide": True}
    )
    try:
        kopf.run(liveness_endpoint=LIVENESS_ENDPOINT, **run_kwargs)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
        sys.exit(0)


if __name__ == "__main__":
    main()
