"""
Kubernetes resource provisioning for Nexus instances.

KubernetesPlatform implements create-or-get semantics for every object a Nexus
instance needs: creating an object that already exists returns the existing
object instead of failing. Every object it creates carries an owner reference
to the Nexus resource so that deleting the instance cascades.
"""

import logging
from collections.abc import Callable
from typing import Any

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import (
    JENKINS_SERVICE_ACCOUNT_GROUP,
    JENKINS_SERVICE_ACCOUNT_KIND,
    JENKINS_SERVICE_ACCOUNT_PLURAL,
    JENKINS_SERVICE_ACCOUNT_VERSION,
    KEYCLOAK_CLIENT_GROUP,
    KEYCLOAK_CLIENT_KIND,
    KEYCLOAK_CLIENT_PLURAL,
    KEYCLOAK_CLIENT_VERSION,
    KEYCLOAK_PROXY_PORT,
    KEYCLOAK_PROXY_PORT_NAME,
    NEXUS_CONTAINER_PORT_NAME,
    NEXUS_GROUP,
    NEXUS_PLURAL,
    NEXUS_PORT,
    NEXUS_PORT_NAME,
    NEXUS_REST_API_PATH,
    NEXUS_VERSION,
)
from ..errors import KubernetesAPIError, ReconciliationError
from ..models.credentials import decode_secret_data, encode_secret_data
from ..models.nexus import Nexus
from ..settings import settings
from .bundles import bundles_from_directory
from .kubernetes import generate_labels, owner_reference_dict, selector_labels

logger = logging.getLogger(__name__)

KEYCLOAK_PROXY_CONTAINER_NAME = "keycloak-proxy"


def port_in_service(
    ports: list[client.V1ServicePort] | None, port: client.V1ServicePort
) -> bool:
    """A port is present when name, port number and protocol all match."""
    wanted_protocol = port.protocol or "TCP"
    return any(
        existing.name == port.name
        and existing.port == port.port
        and (existing.protocol or "TCP") == wanted_protocol
        for existing in ports or []
    )


def ingress_host(nexus: Nexus) -> str:
    """Host routed to the instance by its ingress."""
    if nexus.spec.edp_spec.dns_wildcard:
        return f"{nexus.name}-{nexus.namespace}.{nexus.spec.edp_spec.dns_wildcard}"
    return f"{nexus.name}.{nexus.namespace}"


class KubernetesPlatform:
    """Create-or-get provisioning of the cluster objects owned by a Nexus."""

    def __init__(self, k8s_client: client.ApiClient | None = None):
        """
        Initialize the platform.

        Args:
            k8s_client: Optional Kubernetes API client
        """
        self.k8s_client = k8s_client
        self._core: client.CoreV1Api | None = None
        self._apps: client.AppsV1Api | None = None
        self._networking: client.NetworkingV1Api | None = None
        self._custom: client.CustomObjectsApi | None = None

    @property
    def core(self) -> client.CoreV1Api:
        """Get CoreV1Api client."""
        if self._core is None:
            self._core = client.CoreV1Api(self.k8s_client)
        return self._core

    @property
    def apps(self) -> client.AppsV1Api:
        """Get AppsV1Api client."""
        if self._apps is None:
            self._apps = client.AppsV1Api(self.k8s_client)
        return self._apps

    @property
    def networking(self) -> client.NetworkingV1Api:
        """Get NetworkingV1Api client."""
        if self._networking is None:
            self._networking = client.NetworkingV1Api(self.k8s_client)
        return self._networking

    @property
    def custom(self) -> client.CustomObjectsApi:
        """Get CustomObjectsApi client."""
        if self._custom is None:
            self._custom = client.CustomObjectsApi(self.k8s_client)
        return self._custom

    def _metadata(self, nexus: Nexus, name: str) -> client.V1ObjectMeta:
        return client.V1ObjectMeta(
            name=name,
            namespace=nexus.namespace,
            labels=generate_labels(nexus.name),
            owner_references=[nexus.owner_reference()],
        )

    def _create_or_get(
        self,
        kind: str,
        namespace: str,
        name: str,
        read: Callable[..., Any],
        create: Callable[..., Any],
        body: Any,
    ) -> Any:
        """
        Return the existing object, creating it from ``body`` when absent.

        A 409 on create means another writer won the race; the existing object
        is read back and returned.
        """
        existing = self._read_optional(kind, namespace, name, read)
        if existing is not None:
            return existing

        try:
            created = create(namespace=namespace, body=body)
            logger.info(f"{kind} {namespace}/{name} has been created")
            return created
        except ApiException as e:
            if e.status != 409:
                raise KubernetesAPIError(
                    f"Failed to create {kind} {namespace}/{name}: {e.reason}",
                    reason=e.reason,
                ) from e
        logger.debug(f"{kind} {namespace}/{name} already exists")
        existing = self._read_optional(kind, namespace, name, read)
        if existing is None:
            raise KubernetesAPIError(
                f"{kind} {namespace}/{name} vanished after a create conflict",
                reason="Conflict",
            )
        return existing

    @staticmethod
    def _read_optional(
        kind: str, namespace: str, name: str, read: Callable[..., Any]
    ) -> Any:
        """The object, or None on 404; other API failures become KubernetesAPIError."""
        try:
            return read(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesAPIError(
                f"Failed to read {kind} {namespace}/{name}: {e.reason}",
                reason=e.reason,
            ) from e

    # Secrets

    async def create_secret(
        self, nexus: Nexus, name: str, data: dict[str, str]
    ) -> client.V1Secret:
        """Create an Opaque secret with plain ``data`` values unless it exists."""
        secret = client.V1Secret(
            api_version="v1",
            kind="Secret",
            metadata=self._metadata(nexus, name),
            type="Opaque",
            data=encode_secret_data(data),
        )
        return self._create_or_get(
            "Secret",
            nexus.namespace,
            name,
            self.core.read_namespaced_secret,
            self.core.create_namespaced_secret,
            secret,
        )

    async def get_secret(self, namespace: str, name: str) -> client.V1Secret | None:
        """
        Retrieve a secret.

        Returns:
            Secret object if found, None if not found

        Raises:
            KubernetesAPIError: If read fails for reasons other than 404
        """
        try:
            return self.core.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesAPIError(
                f"Failed to read secret {namespace}/{name}: {e.reason}",
                reason=e.reason,
            ) from e

    async def get_secret_data(self, namespace: str, name: str) -> dict[str, str]:
        """Decoded data of a secret that must exist."""
        secret = await self.get_secret(namespace, name)
        if secret is None:
            raise ReconciliationError(
                f"Secret {namespace}/{name} not found",
                delay=30,
                user_action=f"Create secret {name} in namespace {namespace}",
            )
        return decode_secret_data(secret.data)

    async def update_secret(self, secret: client.V1Secret) -> client.V1Secret:
        namespace = secret.metadata.namespace
        name = secret.metadata.name
        try:
            return self.core.replace_namespaced_secret(
                name=name, namespace=namespace, body=secret
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to update secret {namespace}/{name}: {e.reason}",
                reason=e.reason,
            ) from e

    # Workload prerequisites

    async def create_volumes(
        self, nexus: Nexus
    ) -> list[client.V1PersistentVolumeClaim]:
        """Create one ReadWriteOnce claim named ``<instance>-<volume>`` per volume."""
        claims = []
        for volume in nexus.spec.volumes:
            name = f"{nexus.name}-{volume.name}"
            claim = client.V1PersistentVolumeClaim(
                api_version="v1",
                kind="PersistentVolumeClaim",
                metadata=self._metadata(nexus, name),
                spec=client.V1PersistentVolumeClaimSpec(
                    access_modes=["ReadWriteOnce"],
                    storage_class_name=volume.storage_class,
                    resources=client.V1VolumeResourceRequirements(
                        requests={"storage": volume.capacity}
                    ),
                ),
            )
            claims.append(
                self._create_or_get(
                    "PersistentVolumeClaim",
                    nexus.namespace,
                    name,
                    self.core.read_namespaced_persistent_volume_claim,
                    self.core.create_namespaced_persistent_volume_claim,
                    claim,
                )
            )
        return claims

    async def create_service_account(self, nexus: Nexus) -> client.V1ServiceAccount:
        service_account = client.V1ServiceAccount(
            api_version="v1",
            kind="ServiceAccount",
            metadata=self._metadata(nexus, nexus.name),
        )
        return self._create_or_get(
            "ServiceAccount",
            nexus.namespace,
            nexus.name,
            self.core.read_namespaced_service_account,
            self.core.create_namespaced_service_account,
            service_account,
        )

    async def create_service(self, nexus: Nexus) -> client.V1Service:
        """Create the service exposing the Nexus administrative port."""
        service = client.V1Service(
            api_version="v1",
            kind="Service",
            metadata=self._metadata(nexus, nexus.name),
            spec=client.V1ServiceSpec(
                selector=selector_labels(nexus.name),
                ports=[
                    client.V1ServicePort(
                        name=NEXUS_PORT_NAME,
                        port=NEXUS_PORT,
                        target_port=NEXUS_CONTAINER_PORT_NAME,
                        protocol="TCP",
                    )
                ],
            ),
        )
        return self._create_or_get(
            "Service",
            nexus.namespace,
            nexus.name,
            self.core.read_namespaced_service,
            self.core.create_namespaced_service,
            service,
        )

    async def add_port_to_service(
        self, nexus: Nexus, port: client.V1ServicePort
    ) -> client.V1Service:
        """Append ``port`` to the instance service unless an equal port exists."""
        try:
            service = self.core.read_namespaced_service(
                name=nexus.name, namespace=nexus.namespace
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Couldn't get service for instance {nexus.namespace}/{nexus.name}: {e.reason}",
                reason=e.reason,
            ) from e

        if port_in_service(service.spec.ports, port):
            logger.debug(f"Port {port.name} is already in service {nexus.name}")
            return service

        service.spec.ports = list(service.spec.ports or []) + [port]
        try:
            updated = self.core.replace_namespaced_service(
                name=nexus.name, namespace=nexus.namespace, body=service
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to add port {port.name} to service {nexus.namespace}/{nexus.name}: {e.reason}",
                reason=e.reason,
            ) from e
        logger.info(f"Port {port.name} added to service {nexus.namespace}/{nexus.name}")
        return updated

    # Configuration bundles

    async def create_config_map(
        self, nexus: Nexus, name: str, data: dict[str, str]
    ) -> client.V1ConfigMap:
        """
        Create a ConfigMap, or replace its data when it differs.

        Recreating a bundle with identical data is a no-op.
        """
        config_map = client.V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=self._metadata(nexus, name),
            data=data,
        )
        existing = self._create_or_get(
            "ConfigMap",
            nexus.namespace,
            name,
            self.core.read_namespaced_config_map,
            self.core.create_namespaced_config_map,
            config_map,
        )
        if (existing.data or {}) == data:
            return existing

        existing.data = data
        try:
            updated = self.core.replace_namespaced_config_map(
                name=name, namespace=nexus.namespace, body=existing
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to update ConfigMap {nexus.namespace}/{name}: {e.reason}",
                reason=e.reason,
            ) from e
        logger.info(f"ConfigMap {nexus.namespace}/{name} has been updated")
        return updated

    async def create_config_maps_from_directory(
        self, nexus: Nexus, directory, explode: bool
    ) -> list[str]:
        """
        Materialize an asset directory into bundles.

        Args:
            nexus: Owning instance
            directory: Asset directory
            explode: One ConfigMap per file when True, a single ConfigMap
                named after the directory otherwise

        Returns:
            Names of the ConfigMaps
        """
        bundles = bundles_from_directory(directory, nexus.name, explode)
        for name, data in bundles.items():
            await self.create_config_map(nexus, name, data)
        return list(bundles)

    async def get_config_map_data(
        self, namespace: str, name: str
    ) -> dict[str, str] | None:
        """Data of a ConfigMap, or None when it does not exist."""
        try:
            config_map = self.core.read_namespaced_config_map(
                name=name, namespace=namespace
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesAPIError(
                f"Failed to read ConfigMap {namespace}/{name}: {e.reason}",
                reason=e.reason,
            ) from e
        return config_map.data or {}

    # Workload

    def _build_deployment(self, nexus: Nexus) -> client.V1Deployment:
        volume_mounts = []
        volumes = []
        for volume in nexus.spec.volumes:
            volume_mounts.append(
                client.V1VolumeMount(
                    name=volume.name, mount_path=volume.resolved_mount_path
                )
            )
            volumes.append(
                client.V1Volume(
                    name=volume.name,
                    persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                        claim_name=f"{nexus.name}-{volume.name}"
                    ),
                )
            )

        probe_path = f"{nexus.spec.base_path.rstrip('/')}/{NEXUS_REST_API_PATH}/v1/status"
        container = client.V1Container(
            name=nexus.name,
            image=nexus.spec.image_reference,
            image_pull_policy="IfNotPresent",
            ports=[
                client.V1ContainerPort(
                    name=NEXUS_CONTAINER_PORT_NAME,
                    container_port=NEXUS_PORT,
                    protocol="TCP",
                )
            ],
            env=[
                client.V1EnvVar(name="NEXUS_CONTEXT", value=nexus.spec.base_path),
                client.V1EnvVar(
                    name="NEXUS_SECURITY_RANDOMPASSWORD", value="false"
                ),
            ],
            readiness_probe=client.V1Probe(
                http_get=client.V1HTTPGetAction(
                    path=probe_path, port=NEXUS_CONTAINER_PORT_NAME
                ),
                initial_delay_seconds=60,
                period_seconds=10,
                failure_threshold=10,
            ),
            liveness_probe=client.V1Probe(
                http_get=client.V1HTTPGetAction(
                    path=probe_path, port=NEXUS_CONTAINER_PORT_NAME
                ),
                initial_delay_seconds=180,
                period_seconds=20,
                failure_threshold=6,
            ),
            volume_mounts=volume_mounts,
        )

        pod_spec = client.V1PodSpec(
            service_account_name=nexus.name,
            containers=[container],
            volumes=volumes,
            image_pull_secrets=[
                client.V1LocalObjectReference(name=reference.name)
                for reference in nexus.spec.image_pull_secrets
            ]
            or None,
            security_context=client.V1PodSecurityContext(fs_group=200),
        )

        return client.V1Deployment(
            api_version="apps/v1",
            kind="Deployment",
            metadata=self._metadata(nexus, nexus.name),
            spec=client.V1DeploymentSpec(
                replicas=1,
                # Volumes are ReadWriteOnce; old and new pods can't overlap
                strategy=client.V1DeploymentStrategy(type="Recreate"),
                selector=client.V1LabelSelector(
                    match_labels=selector_labels(nexus.name)
                ),
                template=client.V1PodTemplateSpec(
                    metadata=client.V1ObjectMeta(labels=generate_labels(nexus.name)),
                    spec=pod_spec,
                ),
            ),
        )

    async def create_deployment(self, nexus: Nexus) -> client.V1Deployment:
        return self._create_or_get(
            "Deployment",
            nexus.namespace,
            nexus.name,
            self.apps.read_namespaced_deployment,
            self.apps.create_namespaced_deployment,
            self._build_deployment(nexus),
        )

    async def get_deployment(self, namespace: str, name: str) -> client.V1Deployment:
        try:
            return self.apps.read_namespaced_deployment(name=name, namespace=namespace)
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to read deployment {namespace}/{name}: {e.reason}",
                reason=e.reason,
            ) from e

    async def add_keycloak_proxy_to_deployment(
        self, nexus: Nexus, credentials_secret: str, discovery_url: str
    ) -> client.V1Deployment:
        """
        Put an authentication proxy sidecar in front of the Nexus container.

        Client id and secret are read by the proxy from ``credentials_secret``.
        The deployment is left untouched when the sidecar is already present.
        """
        deployment = await self.get_deployment(nexus.namespace, nexus.name)
        containers = deployment.spec.template.spec.containers
        if any(c.name == KEYCLOAK_PROXY_CONTAINER_NAME for c in containers):
            logger.debug(f"Keycloak proxy already present in {nexus.namespace}/{nexus.name}")
            return deployment

        def from_secret(key: str) -> client.V1EnvVarSource:
            return client.V1EnvVarSource(
                secret_key_ref=client.V1SecretKeySelector(
                    name=credentials_secret, key=key
                )
            )

        proxy = client.V1Container(
            name=KEYCLOAK_PROXY_CONTAINER_NAME,
            image=settings.keycloak_proxy_image,
            image_pull_policy="IfNotPresent",
            ports=[
                client.V1ContainerPort(
                    name=KEYCLOAK_PROXY_PORT_NAME,
                    container_port=KEYCLOAK_PROXY_PORT,
                    protocol="TCP",
                )
            ],
            args=[
                f"--discovery-url={discovery_url}",
                f"--listen=0.0.0.0:{KEYCLOAK_PROXY_PORT}",
                f"--upstream-url=http://127.0.0.1:{NEXUS_PORT}",
                "--skip-openid-provider-tls-verify=true",
                "--resources=uri=/*",
            ],
            env=[
                client.V1EnvVar(name="PROXY_CLIENT_ID", value_from=from_secret("clientId")),
                client.V1EnvVar(
                    name="PROXY_CLIENT_SECRET", value_from=from_secret("clientSecret")
                ),
            ],
        )
        deployment.spec.template.spec.containers = list(containers) + [proxy]

        try:
            updated = self.apps.replace_namespaced_deployment(
                name=nexus.name, namespace=nexus.namespace, body=deployment
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to add Keycloak proxy to deployment {nexus.namespace}/{nexus.name}: {e.reason}",
                reason=e.reason,
            ) from e
        logger.info(f"Keycloak proxy added to deployment {nexus.namespace}/{nexus.name}")
        return updated

    # External endpoint

    async def create_ingress(self, nexus: Nexus) -> client.V1Ingress:
        host = ingress_host(nexus)
        ingress = client.V1Ingress(
            api_version="networking.k8s.io/v1",
            kind="Ingress",
            metadata=self._metadata(nexus, nexus.name),
            spec=client.V1IngressSpec(
                rules=[
                    client.V1IngressRule(
                        host=host,
                        http=client.V1HTTPIngressRuleValue(
                            paths=[
                                client.V1HTTPIngressPath(
                                    path=nexus.spec.base_path,
                                    path_type="Prefix",
                                    backend=client.V1IngressBackend(
                                        service=client.V1IngressServiceBackend(
                                            name=nexus.name,
                                            port=client.V1ServiceBackendPort(
                                                number=NEXUS_PORT
                                            ),
                                        )
                                    ),
                                )
                            ]
                        ),
                    )
                ]
            ),
        )
        return self._create_or_get(
            "Ingress",
            nexus.namespace,
            nexus.name,
            self.networking.read_namespaced_ingress,
            self.networking.create_namespaced_ingress,
            ingress,
        )

    async def get_ingress_url(self, namespace: str, name: str) -> tuple[str, str]:
        """
        Scheme and host routed by the instance ingress.

        Returns:
            (scheme, host), scheme is https when the ingress declares TLS
        """
        try:
            ingress = self.networking.read_namespaced_ingress(
                name=name, namespace=namespace
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to get ingress {namespace}/{name}: {e.reason}",
                reason=e.reason,
            ) from e

        rules = ingress.spec.rules or []
        if not rules or not rules[0].host:
            raise ReconciliationError(
                f"Ingress {namespace}/{name} has no host rule",
                user_action="Check the ingress of the Nexus instance",
            )
        scheme = "https" if ingress.spec.tls else "http"
        return scheme, rules[0].host

    async def update_ingress_target(self, nexus: Nexus, port: int) -> client.V1Ingress:
        """Point every ingress path of the instance at ``port`` of its service."""
        try:
            ingress = self.networking.read_namespaced_ingress(
                name=nexus.name, namespace=nexus.namespace
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to get ingress {nexus.namespace}/{nexus.name}: {e.reason}",
                reason=e.reason,
            ) from e

        changed = False
        for rule in ingress.spec.rules or []:
            for path in rule.http.paths if rule.http else []:
                # Resource backends have no port to retarget
                if path.backend is None or path.backend.service is None:
                    continue
                backend_port = path.backend.service.port
                if backend_port.number != port:
                    backend_port.number = port
                    backend_port.name = None
                    changed = True

        if not changed:
            return ingress

        try:
            updated = self.networking.replace_namespaced_ingress(
                name=nexus.name, namespace=nexus.namespace, body=ingress
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to update target port in ingress {nexus.namespace}/{nexus.name}: {e.reason}",
                reason=e.reason,
            ) from e
        logger.info(f"Ingress {nexus.namespace}/{nexus.name} now targets port {port}")
        return updated

    # Consumer-side custom objects

    def _create_or_get_custom_object(
        self,
        group: str,
        version: str,
        plural: str,
        namespace: str,
        name: str,
        body: dict[str, Any],
    ) -> dict[str, Any]:
        def read(name: str, namespace: str) -> dict[str, Any]:
            return self.custom.get_namespaced_custom_object(
                group=group,
                version=version,
                namespace=namespace,
                plural=plural,
                name=name,
            )

        def create(namespace: str, body: dict[str, Any]) -> dict[str, Any]:
            return self.custom.create_namespaced_custom_object(
                group=group,
                version=version,
                namespace=namespace,
                plural=plural,
                body=body,
            )

        return self._create_or_get(body["kind"], namespace, name, read, create, body)

    async def create_jenkins_service_account(
        self, nexus: Nexus, secret_name: str
    ) -> dict[str, Any]:
        """Register a CI service account backed by a password secret."""
        body = {
            "apiVersion": f"{JENKINS_SERVICE_ACCOUNT_GROUP}/{JENKINS_SERVICE_ACCOUNT_VERSION}",
            "kind": JENKINS_SERVICE_ACCOUNT_KIND,
            "metadata": {
                "name": secret_name,
                "namespace": nexus.namespace,
                "labels": generate_labels(nexus.name),
                "ownerReferences": [owner_reference_dict(nexus.name, nexus.uid)],
            },
            "spec": {"type": "password", "credentials": secret_name},
        }
        return self._create_or_get_custom_object(
            JENKINS_SERVICE_ACCOUNT_GROUP,
            JENKINS_SERVICE_ACCOUNT_VERSION,
            JENKINS_SERVICE_ACCOUNT_PLURAL,
            nexus.namespace,
            secret_name,
            body,
        )

    async def create_keycloak_client(
        self, nexus: Nexus, web_url: str
    ) -> dict[str, Any]:
        """Register a public identity-provider client for the instance."""
        body = {
            "apiVersion": f"{KEYCLOAK_CLIENT_GROUP}/{KEYCLOAK_CLIENT_VERSION}",
            "kind": KEYCLOAK_CLIENT_KIND,
            "metadata": {
                "name": nexus.name,
                "namespace": nexus.namespace,
                "labels": generate_labels(nexus.name),
                "ownerReferences": [owner_reference_dict(nexus.name, nexus.uid)],
            },
            "spec": {"clientId": nexus.name, "public": True, "webUrl": web_url},
        }
        return self._create_or_get_custom_object(
            KEYCLOAK_CLIENT_GROUP,
            KEYCLOAK_CLIENT_VERSION,
            KEYCLOAK_CLIENT_PLURAL,
            nexus.namespace,
            nexus.name,
            body,
        )

    async def update_nexus(self, nexus: Nexus) -> dict[str, Any]:
        """Persist the annotations of the instance."""
        try:
            return self.custom.patch_namespaced_custom_object(
                group=NEXUS_GROUP,
                version=NEXUS_VERSION,
                namespace=nexus.namespace,
                plural=NEXUS_PLURAL,
                name=nexus.name,
                body={"metadata": {"annotations": dict(nexus.annotations)}},
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to update Nexus {nexus.namespace}/{nexus.name}: {e.reason}",
                reason=e.reason,
            ) from e