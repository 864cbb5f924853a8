"""
Operator error hierarchy.

Each error class carries its retry policy as class attributes (``retryable``,
``delay``, ``user_action``); individual raises override them through
keyword arguments. Reconcilers turn any OperatorError into the matching kopf
exception with ``as_kopf_error``, which decides whether kopf retries the
handler or gives up on it.
"""

import kopf


class OperatorError(Exception):
    """Base class for errors the operator raises on purpose."""

    category = "operator"
    retryable = True
    delay = 30
    user_action: str | None = None

    def __init__(
        self,
        message: str,
        *,
        retryable: bool | None = None,
        delay: int | None = None,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Args:
            message: Human-readable error description
            retryable: Override of the class retry policy
            delay: Override of the class retry delay in seconds
            user_action: What the user should do to resolve the issue
            cause: Underlying exception
        """
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable
        if delay is not None:
            self.delay = delay
        if user_action is not None:
            self.user_action = user_action
        self.cause = cause

    def with_context(self, context: str) -> "OperatorError":
        """Prefix the message with the step and instance it failed for."""
        if self.args:
            self.args = (f"{context}: {self.args[0]}", *self.args[1:])
        return self

    def as_kopf_error(self) -> kopf.TemporaryError | kopf.PermanentError:
        if self.retryable:
            return kopf.TemporaryError(str(self), delay=self.delay)
        return kopf.PermanentError(str(self))

    def __str__(self) -> str:
        message = super().__str__()
        if self.user_action:
            return f"{message}\nAction required: {self.user_action}"
        return message


class ValidationError(OperatorError):
    """The Nexus resource spec is invalid; retrying cannot help."""

    category = "validation"
    retryable = False
    user_action = "Check resource specification and fix validation errors"

    def __init__(
        self, message: str, field: str | None = None, user_action: str | None = None
    ):
        if field:
            message = f"Validation error in field '{field}': {message}"
        super().__init__(message, user_action=user_action)


class TemporaryError(OperatorError):
    """A condition expected to clear by itself, such as Nexus still starting."""

    category = "temporary"
    user_action = "Wait for automatic retry or check system status"

    def __init__(self, message: str, delay: int = 30, user_action: str | None = None):
        super().__init__(message, delay=delay, user_action=user_action)


class PermanentError(OperatorError):
    category = "permanent"
    retryable = False
    user_action = "Manual intervention required to resolve"

    def __init__(self, message: str, user_action: str | None = None):
        super().__init__(message, user_action=user_action)


class ExternalServiceError(OperatorError):
    """Failure talking to a system the operator depends on."""

    category = "external"
    service = "external service"
    delay = 60

    def __init__(self, message: str, **overrides):
        super().__init__(f"{self.service} error: {message}", **overrides)


class ReconciliationError(OperatorError):
    category = "reconciliation"
    delay = 60
    user_action = "Inspect operator logs and resource specification for issues"


class KubernetesAPIError(ExternalServiceError):
    service = "Kubernetes API"
    user_action = "Check RBAC permissions and cluster connectivity"

    # API reasons that repeat on every retry
    NON_RETRYABLE_REASONS = frozenset({"Forbidden", "Unauthorized", "Invalid"})

    def __init__(self, message: str, reason: str | None = None, retryable: bool = True):
        if reason:
            message = f"{message} (reason: {reason})"
        super().__init__(
            message, retryable=retryable and reason not in self.NON_RETRYABLE_REASONS
        )


class ConfigurationError(OperatorError):
    """Broken operator configuration or configuration assets."""

    category = "configuration"
    retryable = False
    user_action = "Review and correct configuration"

    def __init__(
        self, message: str, retryable: bool = False, user_action: str | None = None
    ):
        super().__init__(message, retryable=retryable, user_action=user_action)


class NexusAdminError(ExternalServiceError):
    """Error returned by the Nexus REST API."""

    service = "Nexus REST API"
    delay = 30
    user_action = "Check Nexus instance status and admin credentials"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = True,
        cause: Exception | None = None,
    ):
        self.status_code = status_code
        if status_code:
            message = f"HTTP {status_code}: {message}"
        super().__init__(message, retryable=retryable, cause=cause)


class ScriptExecutionError(NexusAdminError):
    """A Nexus script call failed; remaining steps of the invocation are skipped."""

    def __init__(
        self,
        script: str,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        self.script = script
        super().__init__(
            f"script '{script}': {message}", status_code=status_code, cause=cause
        )


class ScriptVerificationError(TemporaryError):
    """Uploaded scripts are not all registered in Nexus."""

    user_action = "Check that the Nexus script API is enabled"

    def __init__(self, message: str, missing: list[str] | None = None):
        self.missing = missing or []
        if self.missing:
            message = f"{message} (missing: {', '.join(sorted(self.missing))})"
        super().__init__(message)


class BundleNotFoundError(ReconciliationError):
    """A mandatory configuration bundle does not exist."""

    delay = 30
    user_action = "Re-run installation so that default bundles are recreated"

    def __init__(self, bundle_name: str, namespace: str):
        self.bundle_name = bundle_name
        super().__init__(f"Configuration bundle {namespace}/{bundle_name} not found")


class CredentialDesyncError(PermanentError):
    """Nexus accepts neither the stored nor the previous admin password."""

    def __init__(self, namespace: str, name: str):
        super().__init__(
            f"Admin credentials for {namespace}/{name} are out of sync: "
            "Nexus rejects both the stored and the previous password",
            user_action=(
                f"Reset the Nexus admin password and update secret "
                f"{name}-admin-password in namespace {namespace}"
            ),
        )
