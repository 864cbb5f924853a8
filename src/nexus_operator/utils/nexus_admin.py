"""
Nexus REST API client utilities.

This module provides an interface to the Nexus script API used to configure
an instance from the outside:
- Readiness and credential probes
- Uploading (declaring) Groovy scripts and verifying their registration
- Running a named script with a JSON parameter map

``NexusAdminClient.connect`` returns an explicit ``NexusSession`` bound to one
base URL and one set of credentials; re-authenticating means opening a new
session rather than mutating an existing one.
"""

import json
import logging
import secrets
import string
from typing import Any

import httpx

from ..constants import GENERATED_PASSWORD_LENGTH
from ..models.scripts import ScriptParams
from ..settings import settings

logger = logging.getLogger(__name__)

PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = GENERATED_PASSWORD_LENGTH) -> str:
    """Random alphanumeric password."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


class NexusClientError(Exception):
    """Base exception for Nexus REST API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    def body_preview(self, limit: int = 1024) -> str | None:
        """Return a truncated preview of the response body for logging."""
        if self.response_body is None:
            return None
        if len(self.response_body) <= limit:
            return self.response_body
        return f"{self.response_body[:limit]}...<truncated>"


class NexusSession:
    """An authenticated handle to one Nexus REST API."""

    def __init__(self, base_url: str, username: str, http_client: httpx.AsyncClient):
        self.base_url = base_url
        self.username = username
        self._http = http_client

    async def __aenter__(self) -> "NexusSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request and raise for error statuses.

        Raises:
            NexusClientError: On HTTP errors or transport failures
        """
        try:
            response = await self._http.request(method, endpoint, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            response_body = e.response.text or "<no content>"
            error = NexusClientError(
                f"{method} {endpoint} failed with HTTP {status_code}",
                status_code=status_code,
                response_body=response_body,
            )
            logger.error(
                f"Request failed: {method} {self.base_url}/{endpoint}",
                extra={
                    "http_status": status_code,
                    "response_body": error.body_preview(),
                },
            )
            raise error from e
        except httpx.HTTPError as e:
            logger.error(f"Request failed: {method} {self.base_url}/{endpoint} - {e}")
            raise NexusClientError(f"{method} {endpoint} failed: {e}") from e

    async def is_ready(self) -> tuple[bool, str]:
        """
        Check whether Nexus accepts writes.

        Connection failures mean the instance is still starting and are
        reported as not ready rather than raised.

        Returns:
            (ready, detail)
        """
        try:
            response = await self._http.get("v1/status/writable")
        except httpx.TransportError as e:
            return False, f"Nexus REST API unreachable: {e}"

        if response.status_code == 200:
            return True, "Nexus REST API is writable"
        return False, f"Nexus REST API responded with HTTP {response.status_code}"

    async def verify_credentials(self) -> bool:
        """True unless Nexus rejects the session credentials with 401."""
        try:
            response = await self._http.get("v1/script")
        except httpx.HTTPError as e:
            raise NexusClientError(f"Credential probe failed: {e}") from e
        if response.status_code == 401:
            return False
        if response.status_code >= 400:
            raise NexusClientError(
                "Credential probe failed",
                status_code=response.status_code,
                response_body=response.text,
            )
        return True

    async def list_scripts(self) -> dict[str, str]:
        """Declared scripts mapped to their content."""
        response = await self._request("GET", "v1/script")
        return {item["name"]: item.get("content", "") for item in response.json()}

    async def declare_scripts(self, scripts: dict[str, str]) -> None:
        """
        Upload Groovy scripts, creating missing ones and updating changed ones.

        Args:
            scripts: Script name to Groovy source
        """
        declared = await self.list_scripts()
        for name, content in scripts.items():
            body = {"name": name, "type": "groovy", "content": content}
            if name not in declared:
                await self._request("POST", "v1/script", json=body)
                logger.debug(f"Script {name} declared")
            elif declared[name] != content:
                await self._request("PUT", f"v1/script/{name}", json=body)
                logger.debug(f"Script {name} updated")

    async def are_scripts_declared(self, scripts: dict[str, str]) -> tuple[bool, list[str]]:
        """
        Check that every script is registered with the expected content.

        Returns:
            (all declared, names of missing or outdated scripts)
        """
        declared = await self.list_scripts()
        missing = [
            name
            for name, content in scripts.items()
            if declared.get(name) != content
        ]
        return not missing, missing

    async def run_script(
        self, name: str, params: ScriptParams | dict[str, Any] | None = None
    ) -> Any:
        """
        Run a declared script.

        Args:
            name: Script name
            params: Parameter model or untyped parameter map

        Returns:
            The ``result`` field of the script response
        """
        if isinstance(params, ScriptParams):
            payload: dict[str, Any] | None = params.to_payload()
        else:
            payload = params

        response = await self._request(
            "POST",
            f"v1/script/{name}/run",
            content=json.dumps(payload if payload is not None else {}),
            headers={"Content-Type": "text/plain"},
        )
        if not response.content:
            return None
        return response.json().get("result")


class NexusAdminClient:
    """Opens sessions against Nexus REST APIs."""

    def __init__(
        self,
        verify_ssl: bool | None = None,
        timeout: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            verify_ssl: Whether to verify TLS certificates (settings default)
            timeout: Request timeout in seconds (settings default)
            transport: Optional httpx transport, used by tests
        """
        self.verify_ssl = settings.verify_ssl if verify_ssl is None else verify_ssl
        self.timeout = settings.api_timeout_seconds if timeout is None else timeout
        self.transport = transport

    async def connect(self, base_url: str, username: str, password: str) -> NexusSession:
        """
        Open a session for ``username`` against ``base_url``.

        No request is sent; use ``is_ready`` or ``verify_credentials`` to check it.
        """
        if not base_url.startswith(("http://", "https://")):
            raise NexusClientError(f"Invalid Nexus REST API URL: {base_url}")

        base_url = base_url.rstrip("/")
        http_client = httpx.AsyncClient(
            base_url=f"{base_url}/",
            auth=httpx.BasicAuth(username, password),
            verify=self.verify_ssl,
            timeout=httpx.Timeout(self.timeout),
            headers={"Accept": "application/json"},
            follow_redirects=False,
            transport=self.transport,
        )
        logger.debug(f"Opened Nexus session for {username} at {base_url}")
        return NexusSession(base_url, username, http_client)
