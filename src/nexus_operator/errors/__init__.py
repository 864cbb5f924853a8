"""
Error handling module for the Nexus operator.

This module provides a comprehensive error hierarchy that integrates with kopf
and provides clear categorization for different types of failures.
"""

from .operator_errors import (
    BundleNotFoundError,
    ConfigurationError,
    CredentialDesyncError,
    ExternalServiceError,
    KubernetesAPIError,
    NexusAdminError,
    OperatorError,
    PermanentError,
    ReconciliationError,
    ScriptExecutionError,
    ScriptVerificationError,
    TemporaryError,
    ValidationError,
)

__all__ = [
    "OperatorError",
    "ValidationError",
    "TemporaryError",
    "PermanentError",
    "ExternalServiceError",
    "KubernetesAPIError",
    "ConfigurationError",
    "ReconciliationError",
    "NexusAdminError",
    "ScriptExecutionError",
    "ScriptVerificationError",
    "BundleNotFoundError",
    "CredentialDesyncError",
]
