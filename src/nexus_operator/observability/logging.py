"""
Structured logging for the Nexus operator.

Every lifecycle operation runs under a short correlation id kept in a
context variable, so the log lines of one install/configure pass can be
grepped together even when several Nexus instances reconcile concurrently.
With JSON output enabled, the known ``extra`` fields below become top-level
keys of each log line.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Requests to these paths are probe noise
HEALTH_PROBE_PATHS = frozenset({"/healthz", "/metrics"})

STRUCTURED_FIELDS = (
    "resource_type",
    "resource_name",
    "namespace",
    "operation",
    "step",
    "duration",
    "error_type",
    "script",
    "bundle",
    "http_status",
    "response_body",
)

NOISY_LOGGERS = ("kopf", "httpx", "kubernetes", "aiohttp.access")

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CORRELATED_FORMAT = (
    "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s"
)


class HealthProbeFilter(logging.Filter):
    """Drop access log lines for the liveness and metrics endpoints."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(path in message for path in HEALTH_PROBE_PATHS)


class CorrelationIDFilter(logging.Filter):
    """Stamp records with the current correlation id, minting one if unset."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or set_correlation_id(
            generate_correlation_id()
        )
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", ""),
        }
        payload.update(
            (field, getattr(record, field))
            for field in STRUCTURED_FIELDS
            if hasattr(record, field)
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


def set_correlation_id(corr_id: str) -> str:
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str:
    return correlation_id.get("")


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
) -> None:
    """
    Replace the root handlers with a single stream handler.

    Args:
        log_level: Root level name (DEBUG, INFO, WARNING, ERROR)
        enable_json_formatting: Emit JSON lines instead of plain text
        correlation_id_enabled: Attach correlation ids to every record
    """
    handler = logging.StreamHandler()
    if enable_json_formatting:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                CORRELATED_FORMAT if correlation_id_enabled else PLAIN_FORMAT
            )
        )
    if correlation_id_enabled:
        handler.addFilter(CorrelationIDFilter())
    handler.addFilter(HealthProbeFilter())

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class OperatorLogger:
    """
    Logger handed to reconcilers and NexusService at construction.

    Keyword arguments of the plain level methods travel as ``extra`` so the
    structured formatter can pick them up.
    """

    resource_type = "nexus"

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _operation_extra(
        self, operation: str, resource_name: str, namespace: str, **fields: Any
    ) -> dict[str, Any]:
        return {
            "resource_type": self.resource_type,
            "resource_name": resource_name,
            "namespace": namespace,
            "operation": operation,
            **fields,
        }

    def log_operation_start(
        self,
        operation: str,
        resource_name: str,
        namespace: str,
        correlation_id: str | None = None,
    ) -> str:
        """Open a correlated operation and return its correlation id."""
        corr_id = set_correlation_id(correlation_id or generate_correlation_id())
        self.logger.info(
            f"Starting {operation} for Nexus {namespace}/{resource_name}",
            extra=self._operation_extra(operation, resource_name, namespace),
        )
        return corr_id

    def log_operation_success(
        self, operation: str, resource_name: str, namespace: str, duration: float
    ) -> None:
        self.logger.info(
            f"{operation} completed for Nexus {namespace}/{resource_name}",
            extra=self._operation_extra(
                operation, resource_name, namespace, duration=duration
            ),
        )

    def log_operation_error(
        self,
        operation: str,
        resource_name: str,
        namespace: str,
        error: Exception,
        duration: float,
    ) -> None:
        self.logger.error(
            f"{operation} failed for Nexus {namespace}/{resource_name}: {error}",
            extra=self._operation_extra(
                operation,
                resource_name,
                namespace,
                error_type=type(error).__name__,
                duration=duration,
            ),
            exc_info=True,
        )

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(message, extra=kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self.logger.error(message, exc_info=exc_info, extra=kwargs)
