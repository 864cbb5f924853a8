"""Shared fixtures for Nexus operator unit tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from kubernetes import client

from nexus_operator.constants import (
    BUNDLE_BLOBS,
    BUNDLE_CAPABILITIES,
    BUNDLE_DEFAULT_USERS,
    BUNDLE_REPOS_TO_CREATE,
    BUNDLE_REPOS_TO_DELETE,
    BUNDLE_ROLES,
    BUNDLE_TASKS,
)
from nexus_operator.models.credentials import decode_secret_data
from nexus_operator.models.nexus import Nexus
from nexus_operator.services.nexus_service import NexusService
from tests.unit.factories import SCRIPT_SOURCES, make_secret, make_session

ENTRY_CATEGORIES = (
    BUNDLE_TASKS,
    BUNDLE_ROLES,
    BUNDLE_BLOBS,
    BUNDLE_REPOS_TO_CREATE,
    BUNDLE_REPOS_TO_DELETE,
    BUNDLE_CAPABILITIES,
    BUNDLE_DEFAULT_USERS,
)


@pytest.fixture
def nexus() -> Nexus:
    return Nexus.from_body(
        {
            "metadata": {"name": "demo", "namespace": "ci", "uid": "uid-1234"},
            "spec": {
                "volumes": [{"name": "data", "capacity": "10Gi"}],
                "edpSpec": {"dnsWildcard": "example.com"},
            },
        }
    )


@pytest.fixture
def bundles() -> dict[str, dict[str, str]]:
    """ConfigMap data by name; every entry bundle starts out empty."""
    data = {f"demo-{category}": {category: "[]"} for category in ENTRY_CATEGORIES}
    data["demo-scripts"] = dict(SCRIPT_SOURCES)
    return data


@pytest.fixture
def admin_secret() -> client.V1Secret:
    return make_secret("demo-admin-password", {"user": "admin", "password": "admin123"})


@pytest.fixture
def secret_writes() -> list[tuple[dict[str, str], dict[str, str]]]:
    """(decoded data, annotations) of every admin secret update, in order."""
    return []


@pytest.fixture
def platform(bundles, admin_secret, secret_writes) -> MagicMock:
    """Mock KubernetesPlatform backed by the ``bundles`` and ``admin_secret`` fixtures."""
    async def get_secret(namespace, name):
        if name == admin_secret.metadata.name:
            return admin_secret
        return None

    async def update_secret(secret):
        secret_writes.append(
            (decode_secret_data(secret.data), dict(secret.metadata.annotations or {}))
        )
        return secret

    async def get_config_map_data(namespace, name):
        return bundles.get(name)

    mock = MagicMock()
    mock.create_secret = AsyncMock()
    mock.create_volumes = AsyncMock(return_value=[])
    mock.create_service_account = AsyncMock()
    mock.create_service = AsyncMock()
    mock.create_config_maps_from_directory = AsyncMock(return_value=[])
    mock.create_deployment = AsyncMock()
    mock.create_ingress = AsyncMock()
    mock.get_deployment = AsyncMock()
    mock.get_ingress_url = AsyncMock(return_value=("https", "demo-ci.example.com"))
    mock.get_secret = AsyncMock(side_effect=get_secret)
    mock.update_secret = AsyncMock(side_effect=update_secret)
    mock.get_secret_data = AsyncMock(return_value={})
    mock.get_config_map_data = AsyncMock(side_effect=get_config_map_data)
    mock.create_jenkins_service_account = AsyncMock()
    mock.create_keycloak_client = AsyncMock()
    mock.update_nexus = AsyncMock()
    mock.add_keycloak_proxy_to_deployment = AsyncMock()
    mock.add_port_to_service = AsyncMock()
    mock.update_ingress_target = AsyncMock()
    return mock


@pytest.fixture
def session() -> MagicMock:
    return make_session()


@pytest.fixture
def nexus_admin(session) -> MagicMock:
    """Mock NexusAdminClient whose connect() hands out ``session``."""
    mock = MagicMock()
    mock.connect = AsyncMock(return_value=session)
    return mock


@pytest.fixture
def service(platform, nexus_admin, tmp_path) -> NexusService:
    return NexusService(
        platform,
        nexus_admin=nexus_admin,
        logger=MagicMock(),
        configs_dir=tmp_path,
        in_cluster=False,
    )
