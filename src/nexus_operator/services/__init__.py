"""
Service layer for the Nexus operator.

NexusService implements the lifecycle operations against Kubernetes and the
Nexus REST API; NexusReconciler drives them from kopf handlers.
"""

from .base_reconciler import BaseReconciler
from .nexus_reconciler import NexusReconciler
from .nexus_service import NexusService

__all__ = [
    "BaseReconciler",
    "NexusReconciler",
    "NexusService",
]
