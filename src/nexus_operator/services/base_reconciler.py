"""
Shared reconciler plumbing: status phases and conditions, operation
tracking and the translation of operator errors into kopf retry decisions.

Concrete reconcilers implement ``do_reconcile`` and optionally ``do_update``.
"""

import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, Protocol

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import PHASE_FAILED, PHASE_READY, PHASE_RECONCILING
from ..errors import KubernetesAPIError, OperatorError, TemporaryError
from ..observability.logging import OperatorLogger
from ..observability.metrics import metrics_collector

# phase -> (type, status, reason, message template) of the conditions it sets
PHASE_CONDITIONS: dict[str, tuple[tuple[str, str, str, str], ...]] = {
    PHASE_RECONCILING: (
        ("Progressing", "True", "ReconciliationInProgress", "{message}"),
    ),
    PHASE_READY: (("Ready", "True", "ReconciliationSucceeded", "{message}"),),
    PHASE_FAILED: (
        ("Ready", "False", "ReconciliationFailed", "{message}"),
        ("Degraded", "True", "ReconciliationFailed", "Resource degraded: {message}"),
    ),
}

# phase -> condition types that no longer hold once it is entered
STALE_CONDITIONS: dict[str, tuple[str, ...]] = {
    PHASE_RECONCILING: ("Ready", "Degraded"),
    PHASE_READY: ("Progressing", "Degraded"),
    PHASE_FAILED: ("Progressing",),
}


class StatusProtocol(Protocol):
    """Protocol for kopf Status objects that allow dynamic attribute assignment."""

    def __setattr__(self, name: str, value: Any) -> None: ...
    def __getattr__(self, name: str) -> Any: ...


class BaseReconciler(ABC):
    """Status bookkeeping and kopf error mapping around ``do_reconcile``."""

    def __init__(self, k8s_client: client.ApiClient | None = None):
        self.k8s_client = k8s_client
        self.logger = OperatorLogger(self.__class__.__name__)

    @property
    def kubernetes_client(self) -> client.ApiClient:
        # Built on first use
        if self.k8s_client is None:
            from ..utils.kubernetes import get_kubernetes_client

            self.k8s_client = get_kubernetes_client()
        return self.k8s_client

    async def reconcile(
        self,
        spec: dict[str, Any],
        name: str,
        namespace: str,
        status: StatusProtocol,
        **kwargs,
    ) -> dict[str, Any]:
        """Entry point for create and resume events."""
        return await self._tracked(
            "reconcile",
            name,
            namespace,
            status,
            kwargs,
            lambda: self.do_reconcile(spec, name, namespace, status, **kwargs),
        )

    async def update(
        self,
        old_spec: dict[str, Any],
        new_spec: dict[str, Any],
        diff: Any,
        name: str,
        namespace: str,
        status: StatusProtocol,
        **kwargs,
    ) -> dict[str, Any] | None:
        """Update entry point, delegating to ``do_update``."""
        return await self._tracked(
            "update",
            name,
            namespace,
            status,
            kwargs,
            lambda: self.do_update(
                old_spec, new_spec, diff, name, namespace, status, **kwargs
            ),
        )

    async def _tracked(
        self,
        operation: str,
        name: str,
        namespace: str,
        status: StatusProtocol,
        handler_kwargs: dict[str, Any],
        func: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Run ``func`` with logging, metrics and status bookkeeping.

        Operator errors are converted to kopf errors so that kopf retries
        temporary failures and stops on permanent ones.
        """
        start_time = time.time()
        self.logger.log_operation_start(operation, name, namespace)
        generation = (handler_kwargs.get("meta") or {}).get("generation", 0)

        async with metrics_collector.track_operation(operation, namespace, name):
            self.update_status_reconciling(status, f"Starting {operation}", generation)
            try:
                result = await func()
            except Exception as e:
                error = self._classify(operation, e)
                self.logger.log_operation_error(
                    operation, name, namespace, error, time.time() - start_time
                )
                if isinstance(e, TemporaryError):
                    # Waiting on Nexus or on a retryable condition; not a failure
                    self.update_status_reconciling(status, str(error), generation)
                else:
                    self.update_status_failed(status, str(error), generation)
                raise error.as_kopf_error() from e

            self.update_status_ready(
                status, f"{operation.capitalize()} completed successfully", generation
            )
            self.logger.log_operation_success(
                operation, name, namespace, time.time() - start_time
            )
            return result

    @staticmethod
    def _classify(operation: str, exc: Exception) -> OperatorError:
        """Map any failure onto an OperatorError carrying the retry decision."""
        if isinstance(exc, OperatorError):
            return exc
        if isinstance(exc, ApiException):
            http_status = getattr(exc, "status", None)
            return KubernetesAPIError(
                message=str(exc),
                reason=getattr(exc, "reason", None),
                retryable=http_status is not None and http_status >= 500,
            )
        # Unexpected errors are retried
        return TemporaryError(f"Unexpected error during {operation}: {exc}")

    @abstractmethod
    async def do_reconcile(
        self,
        spec: dict[str, Any],
        name: str,
        namespace: str,
        status: StatusProtocol,
        **kwargs,
    ) -> dict[str, Any]:
        """Bring the resource one step closer to its desired state."""

    async def do_update(
        self,
        old_spec: dict[str, Any],
        new_spec: dict[str, Any],
        diff: Any,
        name: str,
        namespace: str,
        status: StatusProtocol,
        **kwargs,
    ) -> dict[str, Any] | None:
        """Default implementation: reconcile with the new spec."""
        return await self.do_reconcile(new_spec, name, namespace, status, **kwargs)

    # Status conditions

    def update_status_reconciling(
        self, status: StatusProtocol, message: str, generation: int = 0
    ) -> None:
        self._apply_phase(status, PHASE_RECONCILING, message, generation)

    def update_status_ready(
        self,
        status: StatusProtocol,
        message: str = "Nexus is ready",
        generation: int = 0,
    ) -> None:
        self._apply_phase(status, PHASE_READY, message, generation)

    def update_status_failed(
        self, status: StatusProtocol, message: str, generation: int = 0
    ) -> None:
        self._apply_phase(status, PHASE_FAILED, message, generation)

    def _apply_phase(
        self, status: StatusProtocol, phase: str, message: str, generation: int
    ) -> None:
        """Record ``phase`` and swap in the condition set that belongs to it."""
        now = datetime.now(UTC).isoformat()
        status.phase = phase
        status.message = message
        status.lastUpdated = now
        status.observedGeneration = generation

        replaced = {spec[0] for spec in PHASE_CONDITIONS[phase]} | set(
            STALE_CONDITIONS[phase]
        )
        conditions = [
            c for c in self._conditions(status) if c.get("type") not in replaced
        ]
        for condition_type, condition_status, reason, template in PHASE_CONDITIONS[
            phase
        ]:
            conditions.append(
                {
                    "type": condition_type,
                    "status": condition_status,
                    "reason": reason,
                    "message": template.format(message=message),
                    "lastTransitionTime": now,
                    "observedGeneration": generation,
                }
            )
        status.conditions = conditions

    @staticmethod
    def _conditions(status: StatusProtocol) -> list[dict[str, Any]]:
        existing = getattr(status, "conditions", None)
        if not isinstance(existing, list):
            return []
        return [c for c in existing if isinstance(c, dict)]
