"""Unit tests for KubernetesPlatform create-or-get provisioning."""

from unittest.mock import MagicMock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from nexus_operator.errors import KubernetesAPIError, ReconciliationError
from nexus_operator.models.credentials import decode_secret_data
from nexus_operator.models.nexus import Nexus
from nexus_operator.utils.platform import (
    KEYCLOAK_PROXY_CONTAINER_NAME,
    KubernetesPlatform,
    ingress_host,
    port_in_service,
)
from tests.unit.factories import make_secret


def not_found() -> ApiException:
    return ApiException(status=404, reason="Not Found")


@pytest.fixture
def platform() -> KubernetesPlatform:
    instance = KubernetesPlatform(k8s_client=MagicMock())
    instance._core = MagicMock()
    instance._apps = MagicMock()
    instance._networking = MagicMock()
    instance._custom = MagicMock()
    return instance


def nexus_service(ports: list[client.V1ServicePort]) -> client.V1Service:
    return client.V1Service(
        metadata=client.V1ObjectMeta(name="demo", namespace="ci"),
        spec=client.V1ServiceSpec(ports=ports),
    )


HTTP_PORT = client.V1ServicePort(name="nexus-http", port=8081, protocol="TCP")
PROXY_PORT = client.V1ServicePort(
    name="keycloak-proxy", port=3000, protocol="TCP", target_port=3000
)


class TestCreateOrGet:
    @pytest.mark.asyncio
    async def test_existing_object_returned_without_create(self, platform, nexus):
        existing = make_secret("demo-admin-password", {"user": "admin", "password": "x"})
        platform.core.read_namespaced_secret.return_value = existing

        result = await platform.create_secret(
            nexus, "demo-admin-password", {"user": "admin", "password": "admin123"}
        )

        assert result is existing
        platform.core.create_namespaced_secret.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_object_created_with_owner(self, platform, nexus):
        platform.core.read_namespaced_secret.side_effect = not_found()
        platform.core.create_namespaced_secret.side_effect = (
            lambda namespace, body: body
        )

        secret = await platform.create_secret(
            nexus, "demo-admin-password", {"user": "admin", "password": "admin123"}
        )

        assert decode_secret_data(secret.data) == {
            "user": "admin",
            "password": "admin123",
        }
        assert secret.type == "Opaque"
        owner = secret.metadata.owner_references[0]
        assert (owner.kind, owner.name, owner.uid) == ("Nexus", "demo", "uid-1234")
        assert secret.metadata.labels["app"] == "demo"

    @pytest.mark.asyncio
    async def test_conflict_on_create_reads_back(self, platform, nexus):
        existing = client.V1ServiceAccount(metadata=client.V1ObjectMeta(name="demo"))
        platform.core.read_namespaced_service_account.side_effect = [
            not_found(),
            existing,
        ]
        platform.core.create_namespaced_service_account.side_effect = ApiException(
            status=409, reason="AlreadyExists"
        )

        result = await platform.create_service_account(nexus)

        assert result is existing
        assert platform.core.read_namespaced_service_account.call_count == 2

    @pytest.mark.asyncio
    async def test_read_back_failure_after_conflict_raises(self, platform, nexus):
        platform.custom.get_namespaced_custom_object.side_effect = [
            not_found(),
            ApiException(status=403, reason="Forbidden"),
        ]
        platform.custom.create_namespaced_custom_object.side_effect = ApiException(
            status=409, reason="AlreadyExists"
        )

        with pytest.raises(KubernetesAPIError) as exc_info:
            await platform.create_keycloak_client(nexus, "https://demo-ci.example.com")

        assert "Failed to read KeycloakClient ci/demo" in str(exc_info.value)
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_read_failure_raises(self, platform, nexus):
        platform.core.read_namespaced_service.side_effect = ApiException(
            status=403, reason="Forbidden"
        )

        with pytest.raises(KubernetesAPIError) as exc_info:
            await platform.create_service(nexus)

        assert exc_info.value.retryable is False
        platform.core.create_namespaced_service.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_failure_raises(self, platform, nexus):
        platform.apps.read_namespaced_deployment.side_effect = not_found()
        platform.apps.create_namespaced_deployment.side_effect = ApiException(
            status=500, reason="Internal Server Error"
        )

        with pytest.raises(KubernetesAPIError) as exc_info:
            await platform.create_deployment(nexus)

        assert "Failed to create Deployment ci/demo" in str(exc_info.value)
        assert exc_info.value.retryable is True


class TestSecrets:
    @pytest.mark.asyncio
    async def test_get_secret_not_found_is_none(self, platform):
        platform.core.read_namespaced_secret.side_effect = not_found()

        assert await platform.get_secret("ci", "missing") is None

    @pytest.mark.asyncio
    async def test_get_secret_data_decodes(self, platform):
        platform.core.read_namespaced_secret.return_value = make_secret(
            "demo-is-credentials", {"clientId": "demo", "clientSecret": "s3cr3t"}
        )

        data = await platform.get_secret_data("ci", "demo-is-credentials")

        assert data == {"clientId": "demo", "clientSecret": "s3cr3t"}

    @pytest.mark.asyncio
    async def test_get_secret_data_requires_secret(self, platform):
        platform.core.read_namespaced_secret.side_effect = not_found()

        with pytest.raises(ReconciliationError):
            await platform.get_secret_data("ci", "demo-is-credentials")

    @pytest.mark.asyncio
    async def test_update_secret_replaces(self, platform):
        secret = make_secret("demo-admin-password", {"user": "admin", "password": "x"})
        platform.core.replace_namespaced_secret.return_value = secret

        assert await platform.update_secret(secret) is secret
        platform.core.replace_namespaced_secret.assert_called_once_with(
            name="demo-admin-password", namespace="ci", body=secret
        )


class TestWorkload:
    @pytest.mark.asyncio
    async def test_volumes_named_after_instance(self, platform, nexus):
        platform.core.read_namespaced_persistent_volume_claim.side_effect = not_found()
        platform.core.create_namespaced_persistent_volume_claim.side_effect = (
            lambda namespace, body: body
        )

        claims = await platform.create_volumes(nexus)

        assert [c.metadata.name for c in claims] == ["demo-data"]
        assert claims[0].spec.access_modes == ["ReadWriteOnce"]
        assert claims[0].spec.resources.requests == {"storage": "10Gi"}

    def test_deployment_layout(self, platform):
        nexus = Nexus.from_body(
            {
                "metadata": {"name": "demo", "namespace": "ci", "uid": "uid-1234"},
                "spec": {
                    "basePath": "/nexus",
                    "version": "3.30.0",
                    "volumes": [{"name": "data", "capacity": "10Gi"}],
                    "imagePullSecrets": [{"name": "registry"}],
                },
            }
        )

        deployment = platform._build_deployment(nexus)

        assert deployment.spec.replicas == 1
        assert deployment.spec.strategy.type == "Recreate"
        pod = deployment.spec.template.spec
        container = pod.containers[0]
        assert container.image == "sonatype/nexus3:3.30.0"
        assert container.readiness_probe.http_get.path == "/nexus/service/rest/v1/status"
        assert container.volume_mounts[0].mount_path == "/nexus-data"
        assert pod.volumes[0].persistent_volume_claim.claim_name == "demo-data"
        assert pod.image_pull_secrets[0].name == "registry"
        assert {"name": "NEXUS_CONTEXT", "value": "/nexus"} in [
            {"name": e.name, "value": e.value} for e in container.env
        ]


class TestServicePorts:
    def test_port_match_requires_name_port_and_protocol(self):
        assert port_in_service([HTTP_PORT], HTTP_PORT)
        assert port_in_service(
            [client.V1ServicePort(name="nexus-http", port=8081)], HTTP_PORT
        )
        assert not port_in_service(
            [client.V1ServicePort(name="nexus-http", port=8081, protocol="UDP")],
            HTTP_PORT,
        )
        assert not port_in_service([HTTP_PORT], PROXY_PORT)
        assert not port_in_service(None, PROXY_PORT)

    @pytest.mark.asyncio
    async def test_existing_port_is_noop(self, platform, nexus):
        service = nexus_service([HTTP_PORT, PROXY_PORT])
        platform.core.read_namespaced_service.return_value = service

        result = await platform.add_port_to_service(nexus, PROXY_PORT)

        assert result is service
        platform.core.replace_namespaced_service.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_port_appended(self, platform, nexus):
        platform.core.read_namespaced_service.return_value = nexus_service([HTTP_PORT])
        platform.core.replace_namespaced_service.side_effect = (
            lambda name, namespace, body: body
        )

        result = await platform.add_port_to_service(nexus, PROXY_PORT)

        assert [p.name for p in result.spec.ports] == ["nexus-http", "keycloak-proxy"]

    @pytest.mark.asyncio
    async def test_missing_service_raises(self, platform, nexus):
        platform.core.read_namespaced_service.side_effect = not_found()

        with pytest.raises(KubernetesAPIError):
            await platform.add_port_to_service(nexus, PROXY_PORT)


class TestConfigMaps:
    @pytest.mark.asyncio
    async def test_identical_data_not_rewritten(self, platform, nexus):
        platform.core.read_namespaced_config_map.return_value = client.V1ConfigMap(
            data={"tasks": "[]"}
        )

        await platform.create_config_map(nexus, "demo-tasks", {"tasks": "[]"})

        platform.core.replace_namespaced_config_map.assert_not_called()

    @pytest.mark.asyncio
    async def test_drifted_data_replaced(self, platform, nexus):
        existing = client.V1ConfigMap(data={"tasks": "[{}]"})
        platform.core.read_namespaced_config_map.return_value = existing
        platform.core.replace_namespaced_config_map.side_effect = (
            lambda name, namespace, body: body
        )

        result = await platform.create_config_map(nexus, "demo-tasks", {"tasks": "[]"})

        assert result.data == {"tasks": "[]"}
        platform.core.replace_namespaced_config_map.assert_called_once()

    @pytest.mark.asyncio
    async def test_bundles_from_directory(self, platform, nexus, tmp_path):
        (tmp_path / "tasks").write_text("[]")
        (tmp_path / "roles").write_text("[]")
        platform.core.read_namespaced_config_map.side_effect = not_found()
        platform.core.create_namespaced_config_map.side_effect = (
            lambda namespace, body: body
        )

        names = await platform.create_config_maps_from_directory(
            nexus, tmp_path, explode=True
        )

        assert names == ["demo-roles", "demo-tasks"]
        bodies = [
            c.kwargs["body"]
            for c in platform.core.create_namespaced_config_map.call_args_list
        ]
        assert bodies[1].data == {"tasks": "[]"}

    @pytest.mark.asyncio
    async def test_get_config_map_data_missing(self, platform):
        platform.core.read_namespaced_config_map.side_effect = not_found()

        assert await platform.get_config_map_data("ci", "demo-tasks") is None


class TestKeycloakProxy:
    def deployment(self, containers: list[client.V1Container]) -> client.V1Deployment:
        return client.V1Deployment(
            metadata=client.V1ObjectMeta(name="demo", namespace="ci"),
            spec=client.V1DeploymentSpec(
                selector=client.V1LabelSelector(match_labels={"app": "demo"}),
                template=client.V1PodTemplateSpec(
                    spec=client.V1PodSpec(containers=containers)
                ),
            ),
        )

    @pytest.mark.asyncio
    async def test_sidecar_added(self, platform, nexus):
        platform.apps.read_namespaced_deployment.return_value = self.deployment(
            [client.V1Container(name="demo")]
        )
        platform.apps.replace_namespaced_deployment.side_effect = (
            lambda name, namespace, body: body
        )

        result = await platform.add_keycloak_proxy_to_deployment(
            nexus, "demo-is-credentials", "https://kc/auth/realms/main"
        )

        containers = result.spec.template.spec.containers
        assert [c.name for c in containers] == ["demo", KEYCLOAK_PROXY_CONTAINER_NAME]
        proxy = containers[1]
        assert "--discovery-url=https://kc/auth/realms/main" in proxy.args
        assert "--upstream-url=http://127.0.0.1:8081" in proxy.args
        refs = {e.name: e.value_from.secret_key_ref for e in proxy.env}
        assert refs["PROXY_CLIENT_ID"].name == "demo-is-credentials"
        assert refs["PROXY_CLIENT_ID"].key == "clientId"
        assert refs["PROXY_CLIENT_SECRET"].key == "clientSecret"

    @pytest.mark.asyncio
    async def test_sidecar_not_duplicated(self, platform, nexus):
        platform.apps.read_namespaced_deployment.return_value = self.deployment(
            [
                client.V1Container(name="demo"),
                client.V1Container(name=KEYCLOAK_PROXY_CONTAINER_NAME),
            ]
        )

        await platform.add_keycloak_proxy_to_deployment(
            nexus, "demo-is-credentials", "https://kc/auth/realms/main"
        )

        platform.apps.replace_namespaced_deployment.assert_not_called()


class TestIngress:
    def ingress(self, tls=None, port=8081) -> client.V1Ingress:
        return client.V1Ingress(
            metadata=client.V1ObjectMeta(name="demo", namespace="ci"),
            spec=client.V1IngressSpec(
                tls=tls,
                rules=[
                    client.V1IngressRule(
                        host="demo-ci.example.com",
                        http=client.V1HTTPIngressRuleValue(
                            paths=[
                                client.V1HTTPIngressPath(
                                    path="/",
                                    path_type="Prefix",
                                    backend=client.V1IngressBackend(
                                        service=client.V1IngressServiceBackend(
                                            name="demo",
                                            port=client.V1ServiceBackendPort(
                                                number=port
                                            ),
                                        )
                                    ),
                                )
                            ]
                        ),
                    )
                ],
            ),
        )

    def test_host_uses_dns_wildcard(self, nexus):
        assert ingress_host(nexus) == "demo-ci.example.com"

    def test_host_without_wildcard(self):
        nexus = Nexus.from_body({"metadata": {"name": "demo", "namespace": "ci"}})
        assert ingress_host(nexus) == "demo.ci"

    @pytest.mark.asyncio
    async def test_ingress_targets_nexus_port(self, platform, nexus):
        platform.networking.read_namespaced_ingress.side_effect = not_found()
        platform.networking.create_namespaced_ingress.side_effect = (
            lambda namespace, body: body
        )

        ingress = await platform.create_ingress(nexus)

        rule = ingress.spec.rules[0]
        assert rule.host == "demo-ci.example.com"
        assert rule.http.paths[0].backend.service.port.number == 8081

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "tls,scheme",
        [(None, "http"), ([client.V1IngressTLS(hosts=["demo-ci.example.com"])], "https")],
    )
    async def test_ingress_url_scheme(self, platform, tls, scheme):
        platform.networking.read_namespaced_ingress.return_value = self.ingress(tls=tls)

        assert await platform.get_ingress_url("ci", "demo") == (
            scheme,
            "demo-ci.example.com",
        )

    @pytest.mark.asyncio
    async def test_update_target_port(self, platform, nexus):
        platform.networking.read_namespaced_ingress.return_value = self.ingress()
        platform.networking.replace_namespaced_ingress.side_effect = (
            lambda name, namespace, body: body
        )

        result = await platform.update_ingress_target(nexus, 3000)

        assert result.spec.rules[0].http.paths[0].backend.service.port.number == 3000

    @pytest.mark.asyncio
    async def test_update_target_skips_resource_backends(self, platform, nexus):
        ingress = self.ingress()
        ingress.spec.rules[0].http.paths.append(
            client.V1HTTPIngressPath(
                path="/static",
                path_type="Prefix",
                backend=client.V1IngressBackend(
                    resource=client.V1TypedLocalObjectReference(
                        api_group="storage.example.com", kind="Bucket", name="assets"
                    )
                ),
            )
        )
        platform.networking.read_namespaced_ingress.return_value = ingress
        platform.networking.replace_namespaced_ingress.side_effect = (
            lambda name, namespace, body: body
        )

        result = await platform.update_ingress_target(nexus, 3000)

        service_path, resource_path = result.spec.rules[0].http.paths
        assert service_path.backend.service.port.number == 3000
        assert resource_path.backend.service is None

    @pytest.mark.asyncio
    async def test_update_target_port_unchanged(self, platform, nexus):
        platform.networking.read_namespaced_ingress.return_value = self.ingress(port=3000)

        await platform.update_ingress_target(nexus, 3000)

        platform.networking.replace_namespaced_ingress.assert_not_called()


class TestCustomObjects:
    @pytest.mark.asyncio
    async def test_jenkins_service_account(self, platform, nexus):
        platform.custom.get_namespaced_custom_object.side_effect = not_found()
        platform.custom.create_namespaced_custom_object.side_effect = (
            lambda **kwargs: kwargs["body"]
        )

        body = await platform.create_jenkins_service_account(nexus, "demo-ci.user")

        assert body["kind"] == "JenkinsServiceAccount"
        assert body["spec"] == {"type": "password", "credentials": "demo-ci.user"}
        assert body["metadata"]["ownerReferences"][0]["uid"] == "uid-1234"
        call = platform.custom.create_namespaced_custom_object.call_args
        assert call.kwargs["plural"] == "jenkinsserviceaccounts"

    @pytest.mark.asyncio
    async def test_keycloak_client_already_registered(self, platform, nexus):
        existing = {"kind": "KeycloakClient", "metadata": {"name": "demo"}}
        platform.custom.get_namespaced_custom_object.return_value = existing

        result = await platform.create_keycloak_client(nexus, "https://demo-ci.example.com")

        assert result is existing
        platform.custom.create_namespaced_custom_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_keycloak_client_body(self, platform, nexus):
        platform.custom.get_namespaced_custom_object.side_effect = not_found()
        platform.custom.create_namespaced_custom_object.side_effect = (
            lambda **kwargs: kwargs["body"]
        )

        body = await platform.create_keycloak_client(nexus, "https://demo-ci.example.com")

        assert body["spec"] == {
            "clientId": "demo",
            "public": True,
            "webUrl": "https://demo-ci.example.com",
        }

    @pytest.mark.asyncio
    async def test_update_nexus_patches_annotations(self, platform, nexus):
        nexus.set_annotation("v2.edp.epam.com/exposed-users", "ci.user")

        await platform.update_nexus(nexus)

        call = platform.custom.patch_namespaced_custom_object.call_args
        assert call.kwargs["body"] == {
            "metadata": {"annotations": {"v2.edp.epam.com/exposed-users": "ci.user"}}
        }
        assert call.kwargs["plural"] == "nexuses"
