"""
Credential records stored in Kubernetes secrets.

The admin record is the single source of truth for the password used to open
Nexus sessions. During rotation it also carries the previous password and a
``pending`` marker until the new password is confirmed on the Nexus side.
"""

import base64

from kubernetes import client
from pydantic import BaseModel

from ..constants import (
    NEXUS_DEFAULT_ADMIN_PASSWORD,
    PASSWORD_ROTATION_ANNOTATION,
    ROTATION_COMMITTED,
    ROTATION_PENDING,
)


def decode_secret_data(data: dict[str, str] | None) -> dict[str, str]:
    """Decode base64 values of a V1Secret ``data`` map."""
    return {
        key: base64.b64decode(value).decode("utf-8")
        for key, value in (data or {}).items()
    }


def encode_secret_data(data: dict[str, str]) -> dict[str, str]:
    """Encode plain values for a V1Secret ``data`` map."""
    return {key: base64.b64encode(value.encode()).decode() for key, value in data.items()}


class AdminCredentials(BaseModel):
    """Admin user/password record with write-ahead rotation state."""

    user: str
    password: str
    previous_password: str | None = None
    rotation_state: str = ROTATION_COMMITTED

    @classmethod
    def from_secret(cls, secret: client.V1Secret) -> "AdminCredentials":
        data = decode_secret_data(secret.data)
        annotations = (secret.metadata.annotations or {}) if secret.metadata else {}
        return cls(
            user=data["user"],
            password=data["password"],
            previous_password=data.get("previous-password"),
            rotation_state=annotations.get(
                PASSWORD_ROTATION_ANNOTATION, ROTATION_COMMITTED
            ),
        )

    @property
    def is_default(self) -> bool:
        return self.password == NEXUS_DEFAULT_ADMIN_PASSWORD

    @property
    def rotation_pending(self) -> bool:
        return self.rotation_state == ROTATION_PENDING and bool(self.previous_password)

    def to_secret_data(self) -> dict[str, str]:
        data = {"user": self.user, "password": self.password}
        if self.previous_password:
            data["previous-password"] = self.previous_password
        return data


class UserCredentials(BaseModel):
    """Credentials published for a downstream CI consumer."""

    username: str
    first_name: str = ""
    last_name: str = ""
    password: str

    def to_secret_data(self) -> dict[str, str]:
        return {
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "password": self.password,
        }
