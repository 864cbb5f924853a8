"""
Typed parameter models for Nexus scripts.

The Nexus script API accepts an untyped JSON object per run. Parameters are
built through these models so that each script's payload is validated where it
is constructed, then flattened with ``to_payload()`` for the wire.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..constants import SCRIPT_CREATE_REPO_PREFIX


class ScriptParams(BaseModel):
    """Base class for script payloads."""

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BundleEntry(ScriptParams):
    """
    One parameter map read from a configuration bundle.

    Tasks, roles, blob stores, capabilities and repository deletions are
    passed through to their scripts unchanged, so unknown keys are kept.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(by_alias=True)
        if payload.get("name") is None:
            payload.pop("name", None)
        return payload

    @property
    def display_name(self) -> str:
        return self.name or "<unnamed>"


class RepositoryParams(BundleEntry):
    """Repository definition; the repository type selects the create script."""

    name: str
    repository_type: str = Field(..., alias="repositoryType")

    @property
    def script_name(self) -> str:
        return f"{SCRIPT_CREATE_REPO_PREFIX}{self.repository_type}"


class UpdateAdminPasswordParams(ScriptParams):
    new_password: str


class EnableRealmParams(ScriptParams):
    name: str


class SetupUserParams(ScriptParams):
    """Payload of the setup-user script."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    username: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    password: str
    roles: list[str] = Field(default_factory=list)


class DefaultUserEntry(BundleEntry):
    """Entry of the default-users bundle; the password is generated."""

    username: str
    first_name: str = ""
    last_name: str = ""
