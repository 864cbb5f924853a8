"""
Pydantic models for Nexus custom resources.

This module defines type-safe data models for the Nexus custom resource
specification. The engine treats the resource as read-mostly: it only
appends annotations and persists them back through the Kubernetes API.
"""

from typing import Any

from kubernetes import client
from pydantic import BaseModel, Field, field_validator

from ..constants import (
    DEFAULT_NEXUS_IMAGE,
    DEFAULT_NEXUS_VERSION,
    NEXUS_API_VERSION,
    NEXUS_DATA_PATH,
    NEXUS_KIND,
)


class NexusVolume(BaseModel):
    """A persistent volume request for the Nexus workload."""

    model_config = {"populate_by_name": True}

    name: str = Field(..., description="Volume name, suffixed to the instance name")
    storage_class: str = Field(
        "standard", alias="storageClass", description="Storage class name"
    )
    capacity: str = Field(..., description="Requested capacity (e.g. 10Gi)")
    mount_path: str | None = Field(
        None, alias="mountPath", description="Mount path inside the Nexus container"
    )

    @property
    def resolved_mount_path(self) -> str:
        if self.mount_path:
            return self.mount_path
        if self.name == "data":
            return NEXUS_DATA_PATH
        return f"{NEXUS_DATA_PATH}/{self.name}"


class NexusUser(BaseModel):
    """A user declared on the instance and created during configuration."""

    model_config = {"populate_by_name": True}

    username: str = Field(..., description="Login name")
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    email: str = Field("", description="Email address")
    roles: list[str] = Field(default_factory=list, description="Nexus role ids")


class KeycloakSpec(BaseModel):
    """Identity-provider integration toggle."""

    model_config = {"populate_by_name": True}

    enabled: bool = Field(False, description="Register Nexus with Keycloak")
    url: str | None = Field(None, description="Keycloak base URL for the proxy")
    realm: str = Field("main", description="Keycloak realm used by the proxy")


class EdpSpec(BaseModel):
    """Platform-wide settings shared by delivery platform components."""

    model_config = {"populate_by_name": True}

    dns_wildcard: str | None = Field(
        None, alias="dnsWildcard", description="Wildcard DNS used for ingress hosts"
    )


class LocalObjectReference(BaseModel):
    name: str


class NexusSpec(BaseModel):
    """Desired state of one Nexus deployment."""

    model_config = {"populate_by_name": True}

    image: str = Field(DEFAULT_NEXUS_IMAGE, description="Nexus container image")
    version: str = Field(DEFAULT_NEXUS_VERSION, description="Nexus image tag")
    base_path: str = Field("/", alias="basePath", description="Ingress path prefix")
    volumes: list[NexusVolume] = Field(default_factory=list)
    users: list[NexusUser] = Field(default_factory=list)
    keycloak_spec: KeycloakSpec = Field(
        default_factory=KeycloakSpec, alias="keycloakSpec"
    )
    image_pull_secrets: list[LocalObjectReference] = Field(
        default_factory=list, alias="imagePullSecrets"
    )
    edp_spec: EdpSpec = Field(default_factory=EdpSpec, alias="edpSpec")

    @field_validator("base_path")
    @classmethod
    def validate_base_path(cls, v):
        if not v.startswith("/"):
            raise ValueError("basePath must start with '/'")
        return v

    @field_validator("volumes")
    @classmethod
    def validate_unique_volume_names(cls, v):
        names = [volume.name for volume in v]
        if len(names) != len(set(names)):
            raise ValueError("Volume names must be unique")
        return v

    @property
    def image_reference(self) -> str:
        return f"{self.image}:{self.version}"


class Nexus(BaseModel):
    """A Nexus custom resource: identity, annotations and desired state."""

    name: str
    namespace: str
    uid: str = ""
    annotations: dict[str, str] = Field(default_factory=dict)
    spec: NexusSpec = Field(default_factory=NexusSpec)
    status: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "Nexus":
        """Build the model from a raw custom object (kopf body or API response)."""
        metadata = body.get("metadata", {})
        return cls(
            name=metadata["name"],
            namespace=metadata["namespace"],
            uid=metadata.get("uid", ""),
            annotations=dict(metadata.get("annotations") or {}),
            spec=NexusSpec.model_validate(dict(body.get("spec") or {})),
            status=dict(body.get("status") or {}),
        )

    def set_annotation(self, key: str, value: str) -> None:
        self.annotations[key] = value

    def owner_reference(self) -> client.V1OwnerReference:
        """Owner reference so that deleting the Nexus cascades to its children."""
        return client.V1OwnerReference(
            api_version=NEXUS_API_VERSION,
            kind=NEXUS_KIND,
            name=self.name,
            uid=self.uid,
            controller=True,
            block_owner_deletion=True,
        )

    def bundle_name(self, category: str) -> str:
        return f"{self.name}-{category}"
