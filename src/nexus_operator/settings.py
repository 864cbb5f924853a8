"""Operator settings read from the environment (and an optional .env file)."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_API_TIMEOUT,
    DEFAULT_KEYCLOAK_PROXY_IMAGE,
    DEFAULT_NOT_READY_RETRY_DELAY,
)

PACKAGED_CONFIGS_DIR = Path(__file__).parent / "configs"


class Settings(BaseSettings):
    """Environment-driven configuration; each field names its variable."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Operator identification
    operator_namespace: str = Field(
        default="",
        description="Namespace where the operator is deployed (empty when running outside the cluster)",
        validation_alias="OPERATOR_NAMESPACE",
    )
    operator_name: str = Field(
        default="nexus-operator",
        description="Name of the operator deployment",
        validation_alias="OPERATOR_NAME",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )

    # Namespace watching
    namespaces: str = Field(
        default="",
        validation_alias="NEXUS_OPERATOR_NAMESPACES",
        description="Comma-separated list of namespaces to watch (empty = all namespaces)",
    )

    # Configuration assets
    configs_dir: Path = Field(
        default=PACKAGED_CONFIGS_DIR,
        validation_alias="NEXUS_CONFIGS_DIR",
        description="Directory holding default-configuration/ and scripts/ asset trees",
    )

    # Nexus REST API
    api_timeout_seconds: int = Field(
        default=DEFAULT_API_TIMEOUT,
        validation_alias="NEXUS_API_TIMEOUT_SECONDS",
        description="Request timeout for Nexus REST API calls",
    )
    verify_ssl: bool = Field(
        default=True,
        validation_alias="NEXUS_VERIFY_SSL",
        description="Verify TLS certificates when talking to Nexus over HTTPS",
    )

    # Identity-provider integration
    keycloak_proxy_image: str = Field(
        default=DEFAULT_KEYCLOAK_PROXY_IMAGE,
        validation_alias="KEYCLOAK_PROXY_IMAGE",
        description="Image of the authentication proxy sidecar",
    )

    # Reconciliation behavior
    not_ready_retry_delay_seconds: int = Field(
        default=DEFAULT_NOT_READY_RETRY_DELAY,
        validation_alias="NOT_READY_RETRY_DELAY_SECONDS",
        description="Delay before re-invoking configuration while Nexus is not ready",
    )

    # Metrics and observability
    metrics_port: int = Field(
        default=8081,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )

    @property
    def running_in_cluster(self) -> bool:
        """The operator runs inside the cluster when its namespace is known."""
        return bool(self.operator_namespace)

    @property
    def watched_namespaces(self) -> list[str] | None:
        """Namespaces to watch, or None for cluster-wide operation."""
        names = [part.strip() for part in self.namespaces.split(",")]
        return [n for n in names if n] or None


settings = Settings()
