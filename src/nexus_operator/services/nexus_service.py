"""
Nexus lifecycle operations.

NexusService drives two collaborators to convergence for one Nexus instance:
the Kubernetes platform (create-or-get provisioning) and the Nexus REST script
API. It exposes four operations, each safe to call again after any failure:

- install: provision secrets, volumes, service account, service, bundles,
  deployment and ingress
- configure: gate on readiness, upload scripts, rotate the default admin
  password exactly once and apply the declarative bundles
- expose_configuration: publish CI user credentials and register the
  instance with the identity provider
- integration: put an authentication proxy in front of Nexus

Nothing here retries or sleeps; retry is the caller's job.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pydantic
from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import (
    ADMIN_SECRET_SUFFIX,
    BUNDLE_BLOBS,
    BUNDLE_CAPABILITIES,
    BUNDLE_DEFAULT_USERS,
    BUNDLE_REPOS_TO_CREATE,
    BUNDLE_REPOS_TO_DELETE,
    BUNDLE_ROLES,
    BUNDLE_SCRIPTS,
    BUNDLE_TASKS,
    DEFAULT_CONFIGURATION_DIRECTORY,
    ENABLED_REALMS,
    EXPOSED_USERS_ANNOTATION,
    IDENTITY_CREDENTIALS_SECRET_SUFFIX,
    KEYCLOAK_PROXY_PORT,
    KEYCLOAK_PROXY_PORT_NAME,
    NEXUS_DEFAULT_ADMIN_PASSWORD,
    NEXUS_DEFAULT_ADMIN_USER,
    NEXUS_PORT,
    NEXUS_REST_API_PATH,
    PASSWORD_ROTATION_ANNOTATION,
    ROTATION_COMMITTED,
    ROTATION_PENDING,
    SCRIPT_CREATE_BLOBSTORE,
    SCRIPT_CREATE_TASK,
    SCRIPT_DELETE_REPO,
    SCRIPT_DISABLE_OUTREACH_CAPABILITY,
    SCRIPT_ENABLE_REALM,
    SCRIPT_SETUP_CAPABILITY,
    SCRIPT_SETUP_ROLE,
    SCRIPT_SETUP_USER,
    SCRIPT_UPDATE_ADMIN_PASSWORD,
    SCRIPTS_DIRECTORY,
)
from ..errors import (
    BundleNotFoundError,
    ConfigurationError,
    CredentialDesyncError,
    KubernetesAPIError,
    NexusAdminError,
    OperatorError,
    ReconciliationError,
    ScriptExecutionError,
    ScriptVerificationError,
    ValidationError,
)
from ..models.credentials import AdminCredentials, UserCredentials, encode_secret_data
from ..models.nexus import Nexus
from ..models.scripts import (
    BundleEntry,
    DefaultUserEntry,
    EnableRealmParams,
    RepositoryParams,
    ScriptParams,
    SetupUserParams,
    UpdateAdminPasswordParams,
)
from ..observability.logging import OperatorLogger
from ..observability.metrics import metrics_collector
from ..settings import settings
from ..utils.bundles import parse_bundle_entries, script_bundle_to_sources
from ..utils.nexus_admin import (
    NexusAdminClient,
    NexusClientError,
    NexusSession,
    generate_password,
)
from ..utils.platform import KubernetesPlatform


def admin_secret_name(nexus: Nexus) -> str:
    return f"{nexus.name}{ADMIN_SECRET_SUFFIX}"


class NexusService:
    """Install, configure, expose and integrate one Nexus instance."""

    def __init__(
        self,
        platform: KubernetesPlatform,
        nexus_admin: NexusAdminClient | None = None,
        logger: OperatorLogger | None = None,
        configs_dir: Path | None = None,
        in_cluster: bool | None = None,
    ):
        """
        Initialize the service.

        Args:
            platform: Kubernetes resource provisioner
            nexus_admin: Opens Nexus REST API sessions
            logger: Structured logger, one per class by default
            configs_dir: Asset tree holding default-configuration/ and scripts/
            in_cluster: Reach Nexus through its service DNS name instead of the
                ingress host; derived from settings when omitted
        """
        self.platform = platform
        self.nexus_admin = nexus_admin or NexusAdminClient()
        self.logger = logger or OperatorLogger(self.__class__.__name__)
        self.configs_dir = Path(configs_dir or settings.configs_dir)
        self.in_cluster = (
            settings.running_in_cluster if in_cluster is None else in_cluster
        )

    @contextmanager
    def _step(self, intent: str, nexus: Nexus) -> Iterator[None]:
        """Attach the step intent and instance identity to any failure."""
        context = f"{intent} for {nexus.namespace}/{nexus.name}"
        try:
            yield
        except OperatorError as e:
            raise e.with_context(context)
        except NexusClientError as e:
            raise NexusAdminError(
                f"{context}: {e}", status_code=e.status_code, cause=e
            ) from e
        except ApiException as e:
            raise KubernetesAPIError(f"{context}: {e.reason}", reason=e.reason) from e

    # Install

    async def install(self, nexus: Nexus) -> Nexus:
        """
        Provision the resources of a new instance.

        Every step is create-or-get, so calling install again after a failure
        (or after success) converges to the same resource set.
        """
        async with metrics_collector.track_operation(
            "install", nexus.namespace, nexus.name
        ):
            with self._step("Failed to create admin credentials secret", nexus):
                await self.platform.create_secret(
                    nexus,
                    admin_secret_name(nexus),
                    {
                        "user": NEXUS_DEFAULT_ADMIN_USER,
                        "password": NEXUS_DEFAULT_ADMIN_PASSWORD,
                    },
                )

            with self._step("Failed to create persistent volume claims", nexus):
                await self.platform.create_volumes(nexus)

            with self._step("Failed to create service account", nexus):
                await self.platform.create_service_account(nexus)

            with self._step("Failed to create service", nexus):
                await self.platform.create_service(nexus)

            with self._step("Failed to create default configuration bundles", nexus):
                await self.platform.create_config_maps_from_directory(
                    nexus,
                    self.configs_dir / DEFAULT_CONFIGURATION_DIRECTORY,
                    explode=True,
                )

            with self._step("Failed to create default scripts bundle", nexus):
                await self.platform.create_config_maps_from_directory(
                    nexus, self.configs_dir / SCRIPTS_DIRECTORY, explode=False
                )

            with self._step("Failed to create deployment", nexus):
                await self.platform.create_deployment(nexus)

            with self._step("Failed to create external endpoint", nexus):
                await self.platform.create_ingress(nexus)

        self.logger.info(
            f"Installation of {nexus.namespace}/{nexus.name} finished",
            resource_name=nexus.name,
            namespace=nexus.namespace,
            operation="install",
        )
        return nexus

    # Readiness and addressing

    async def is_deployment_ready(self, nexus: Nexus) -> bool:
        """Ready iff exactly one replica of the workload is available."""
        deployment = await self.platform.get_deployment(nexus.namespace, nexus.name)
        available = deployment.status.available_replicas if deployment.status else None
        return available == 1

    async def get_admin_url(self, nexus: Nexus) -> str:
        """Base URL of the Nexus REST API for this instance."""
        context = nexus.spec.base_path.rstrip("/")
        if self.in_cluster:
            root = f"http://{nexus.name}.{nexus.namespace}:{NEXUS_PORT}"
        else:
            scheme, host = await self.platform.get_ingress_url(
                nexus.namespace, nexus.name
            )
            root = f"{scheme}://{host}"
        return f"{root}{context}/{NEXUS_REST_API_PATH}"

    # Helpers shared by configure / expose

    async def _read_admin_credentials(
        self, nexus: Nexus
    ) -> tuple[AdminCredentials, client.V1Secret]:
        name = admin_secret_name(nexus)
        secret = await self.platform.get_secret(nexus.namespace, name)
        if secret is None:
            raise ReconciliationError(
                f"Admin credentials secret {nexus.namespace}/{name} not found",
                user_action="Re-run installation so that the admin secret is recreated",
            )
        try:
            return AdminCredentials.from_secret(secret), secret
        except (KeyError, pydantic.ValidationError) as e:
            raise ConfigurationError(
                f"Admin credentials secret {nexus.namespace}/{name} is malformed: {e}",
                user_action=f"Restore the 'user' and 'password' keys of secret {name}",
            ) from e

    async def _bundle_data(self, nexus: Nexus, category: str) -> dict[str, str]:
        bundle_name = nexus.bundle_name(category)
        data = await self.platform.get_config_map_data(nexus.namespace, bundle_name)
        if data is None:
            raise BundleNotFoundError(bundle_name, nexus.namespace)
        return data

    async def _bundle_entries(
        self, nexus: Nexus, category: str, model: type[BundleEntry] = BundleEntry
    ) -> list[Any]:
        """Parse the JSON array stored under the category key of its bundle."""
        bundle_name = nexus.bundle_name(category)
        data = await self._bundle_data(nexus, category)
        entries = parse_bundle_entries(data, category, bundle_name)
        try:
            return [model.model_validate(entry) for entry in entries]
        except pydantic.ValidationError as e:
            raise ConfigurationError(
                f"Bundle {nexus.namespace}/{bundle_name} has an invalid entry: {e}"
            ) from e

    async def _run_script(
        self,
        nexus: Nexus,
        session: NexusSession,
        script: str,
        params: ScriptParams | None = None,
        subject: str | None = None,
    ) -> Any:
        """Run one script; a failure aborts the calling operation."""
        self.logger.debug(
            f"Running script {script} for {nexus.namespace}/{nexus.name}",
            script=script,
            resource_name=nexus.name,
            namespace=nexus.namespace,
        )
        try:
            result = await session.run_script(script, params)
        except NexusClientError as e:
            metrics_collector.record_script_execution(script, nexus.namespace, False)
            target = f" ({subject})" if subject else ""
            raise ScriptExecutionError(
                script,
                f"failed{target}: {e}",
                status_code=e.status_code,
                cause=e,
            ) from e
        metrics_collector.record_script_execution(script, nexus.namespace, True)
        return result

    async def _run_for_each(
        self,
        nexus: Nexus,
        session: NexusSession,
        script: str,
        entries: list[BundleEntry],
    ) -> None:
        for entry in entries:
            await self._run_script(
                nexus, session, script, entry, subject=entry.display_name
            )

    # Configure

    async def configure(self, nexus: Nexus) -> tuple[Nexus, bool]:
        """
        Bring Nexus internals in line with the bundles and declared users.

        Returns:
            (instance, done). ``done`` is False without an error while Nexus is
            not ready yet; the caller should invoke configure again later.

        Raises:
            OperatorError: The first failing step; later steps are skipped and
                earlier ones are not rolled back
        """
        async with metrics_collector.track_operation(
            "configure", nexus.namespace, nexus.name
        ):
            with self._step("Failed to get Nexus REST API URL", nexus):
                url = await self.get_admin_url(nexus)

            with self._step("Failed to get Nexus admin credentials", nexus):
                credentials, secret = await self._read_admin_credentials(nexus)

            with self._step("Failed to initialize Nexus session", nexus):
                session = await self.nexus_admin.connect(
                    url, credentials.user, credentials.password
                )

            try:
                with self._step("Checking Nexus REST API readiness failed", nexus):
                    ready, detail = await session.is_ready()
                if not ready:
                    self.logger.info(
                        f"Nexus REST API for {nexus.namespace}/{nexus.name} is not "
                        f"ready for configuration yet: {detail}",
                        resource_name=nexus.name,
                        namespace=nexus.namespace,
                        operation="configure",
                    )
                    return nexus, False

                if credentials.rotation_pending:
                    session, credentials, secret = await self._resolve_pending_rotation(
                        nexus, url, session, credentials, secret
                    )

                scripts = await self._declare_scripts(nexus, session)
                self.logger.debug(
                    f"Declared {len(scripts)} scripts for {nexus.namespace}/{nexus.name}",
                    resource_name=nexus.name,
                    namespace=nexus.namespace,
                    step="declare-scripts",
                )

                if credentials.is_default or credentials.rotation_pending:
                    session = await self._rotate_admin_password(
                        nexus, url, session, credentials, secret
                    )

                await self._apply_configuration(nexus, session)
            finally:
                await session.aclose()

        self.logger.info(
            f"Configuration of {nexus.namespace}/{nexus.name} finished",
            resource_name=nexus.name,
            namespace=nexus.namespace,
            operation="configure",
        )
        return nexus, True

    async def _declare_scripts(
        self, nexus: Nexus, session: NexusSession
    ) -> dict[str, str]:
        """Upload the scripts bundle and verify that Nexus registered all of it."""
        with self._step("Failed to upload default scripts", nexus):
            scripts = script_bundle_to_sources(
                await self._bundle_data(nexus, BUNDLE_SCRIPTS)
            )
            await session.declare_scripts(scripts)
            declared, missing = await session.are_scripts_declared(scripts)

        if not declared:
            raise ScriptVerificationError(
                f"Default scripts for {nexus.namespace}/{nexus.name} are not uploaded yet",
                missing=missing,
            )
        return scripts

    async def _apply_configuration(self, nexus: Nexus, session: NexusSession) -> None:
        with self._step("Failed to create default tasks", nexus):
            tasks = await self._bundle_entries(nexus, BUNDLE_TASKS)
            await self._run_for_each(nexus, session, SCRIPT_CREATE_TASK, tasks)

        with self._step("Failed to disable outreach capability", nexus):
            await self._run_script(nexus, session, SCRIPT_DISABLE_OUTREACH_CAPABILITY)

        with self._step("Failed to install default capabilities", nexus):
            capabilities = await self._bundle_entries(nexus, BUNDLE_CAPABILITIES)
            await self._run_for_each(
                nexus, session, SCRIPT_SETUP_CAPABILITY, capabilities
            )

        with self._step("Failed to enable realms", nexus):
            for realm in ENABLED_REALMS:
                await self._run_script(
                    nexus,
                    session,
                    SCRIPT_ENABLE_REALM,
                    EnableRealmParams(name=realm),
                    subject=realm,
                )

        with self._step("Failed to create default roles", nexus):
            roles = await self._bundle_entries(nexus, BUNDLE_ROLES)
            await self._run_for_each(nexus, session, SCRIPT_SETUP_ROLE, roles)

        with self._step("Failed to create blob stores", nexus):
            blobs = await self._bundle_entries(nexus, BUNDLE_BLOBS)
            await self._run_for_each(nexus, session, SCRIPT_CREATE_BLOBSTORE, blobs)

        with self._step("Failed to create repositories", nexus):
            repositories = await self._bundle_entries(
                nexus, BUNDLE_REPOS_TO_CREATE, RepositoryParams
            )
            for repository in repositories:
                await self._run_script(
                    nexus,
                    session,
                    repository.script_name,
                    repository,
                    subject=repository.name,
                )

        with self._step("Failed to delete repositories", nexus):
            stale = await self._bundle_entries(nexus, BUNDLE_REPOS_TO_DELETE)
            await self._run_for_each(nexus, session, SCRIPT_DELETE_REPO, stale)

        with self._step("Failed to create users", nexus):
            for user in nexus.spec.users:
                params = SetupUserParams(
                    username=user.username,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    email=user.email,
                    roles=user.roles,
                    password=generate_password(),
                )
                await self._run_script(
                    nexus, session, SCRIPT_SETUP_USER, params, subject=user.username
                )

    # Admin password rotation

    async def _write_admin_secret(
        self, secret: client.V1Secret, credentials: AdminCredentials
    ) -> client.V1Secret:
        secret.data = encode_secret_data(credentials.to_secret_data())
        if secret.metadata.annotations is None:
            secret.metadata.annotations = {}
        secret.metadata.annotations[PASSWORD_ROTATION_ANNOTATION] = (
            credentials.rotation_state
        )
        return await self.platform.update_secret(secret)

    async def _reconnect(
        self, url: str, session: NexusSession, user: str, password: str
    ) -> NexusSession:
        """Open a session with other credentials and close the old one."""
        new_session = await self.nexus_admin.connect(url, user, password)
        await session.aclose()
        return new_session

    async def _rotate_admin_password(
        self,
        nexus: Nexus,
        url: str,
        session: NexusSession,
        credentials: AdminCredentials,
        secret: client.V1Secret,
    ) -> NexusSession:
        """
        Replace the default admin password, write-ahead.

        The new password is persisted as pending (keeping the old one as
        previous-password) before Nexus is asked to change it, and committed
        only after Nexus accepted the change. ``session`` must be authenticated
        with the password Nexus currently has.

        Returns:
            A session authenticated with the new password
        """
        if not credentials.rotation_pending:
            credentials = AdminCredentials(
                user=credentials.user,
                password=generate_password(),
                previous_password=credentials.password,
                rotation_state=ROTATION_PENDING,
            )
            with self._step("Failed to update Nexus admin secret with new password", nexus):
                secret = await self._write_admin_secret(secret, credentials)

        with self._step("Failed to update admin password", nexus):
            await self._run_script(
                nexus,
                session,
                SCRIPT_UPDATE_ADMIN_PASSWORD,
                UpdateAdminPasswordParams(new_password=credentials.password),
            )

        await self._commit_rotation(nexus, secret, credentials)

        with self._step("Failed to initialize Nexus session", nexus):
            return await self._reconnect(
                url, session, credentials.user, credentials.password
            )

    async def _commit_rotation(
        self, nexus: Nexus, secret: client.V1Secret, credentials: AdminCredentials
    ) -> tuple[AdminCredentials, client.V1Secret]:
        committed = AdminCredentials(
            user=credentials.user,
            password=credentials.password,
            rotation_state=ROTATION_COMMITTED,
        )
        with self._step("Failed to commit Nexus admin password rotation", nexus):
            secret = await self._write_admin_secret(secret, committed)
        metrics_collector.record_password_rotation(nexus.namespace, "committed")
        self.logger.info(
            f"Admin password of {nexus.namespace}/{nexus.name} rotated",
            resource_name=nexus.name,
            namespace=nexus.namespace,
            step="password-rotation",
        )
        return committed, secret

    async def _resolve_pending_rotation(
        self,
        nexus: Nexus,
        url: str,
        session: NexusSession,
        credentials: AdminCredentials,
        secret: client.V1Secret,
    ) -> tuple[NexusSession, AdminCredentials, client.V1Secret]:
        """
        Finish a rotation interrupted between the secret write and its commit.

        If Nexus already accepts the new password the rotation is committed.
        Otherwise a session with the previous password is returned and the
        credentials stay pending so that the rotation is run again.

        Raises:
            CredentialDesyncError: Nexus accepts neither password
        """
        with self._step("Failed to probe Nexus admin credentials", nexus):
            if await session.verify_credentials():
                committed, secret = await self._commit_rotation(
                    nexus, secret, credentials
                )
                return session, committed, secret

            self.logger.warning(
                f"Pending admin password of {nexus.namespace}/{nexus.name} was not "
                "applied, retrying rotation",
                resource_name=nexus.name,
                namespace=nexus.namespace,
                step="password-rotation",
            )
            session = await self._reconnect(
                url, session, credentials.user, credentials.previous_password
            )
            if await session.verify_credentials():
                return session, credentials, secret

        await session.aclose()
        metrics_collector.record_password_rotation(nexus.namespace, "desync")
        raise CredentialDesyncError(nexus.namespace, nexus.name)

    # Expose configuration

    async def expose_configuration(self, nexus: Nexus) -> Nexus:
        """
        Publish CI user credentials and register with the identity provider.

        Identity-provider registration failures are logged and tolerated.
        """
        async with metrics_collector.track_operation(
            "expose_configuration", nexus.namespace, nexus.name
        ):
            with self._step("Failed to get Nexus REST API URL", nexus):
                url = await self.get_admin_url(nexus)

            with self._step("Failed to get Nexus admin credentials", nexus):
                credentials, _ = await self._read_admin_credentials(nexus)

            with self._step("Failed to initialize Nexus session", nexus):
                session = await self.nexus_admin.connect(
                    url, credentials.user, credentials.password
                )

            try:
                exposed = await self._expose_default_users(nexus, session)
            finally:
                await session.aclose()

            nexus.set_annotation(EXPOSED_USERS_ANNOTATION, ",".join(exposed))
            with self._step("Failed to update Nexus resource", nexus):
                await self.platform.update_nexus(nexus)

            if nexus.spec.keycloak_spec.enabled:
                await self._register_keycloak_client(nexus)

        return nexus

    async def _expose_default_users(
        self, nexus: Nexus, session: NexusSession
    ) -> list[str]:
        with self._step("Failed to read default users", nexus):
            users = await self._bundle_entries(
                nexus, BUNDLE_DEFAULT_USERS, DefaultUserEntry
            )

        exposed = []
        for user in users:
            secret_name = f"{nexus.name}-{user.username}"
            with self._step(f"Failed to expose user {user.username}", nexus):
                record = UserCredentials(
                    username=user.username,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    password=generate_password(),
                )
                await self.platform.create_secret(
                    nexus, secret_name, record.to_secret_data()
                )
                await self.platform.create_jenkins_service_account(nexus, secret_name)

                # The secret may predate this call; Nexus gets what is stored
                stored = await self.platform.get_secret_data(
                    nexus.namespace, secret_name
                )
                if not stored.get("password"):
                    raise ReconciliationError(
                        f"Secret {nexus.namespace}/{secret_name} has no password",
                        user_action=(
                            f"Add a 'password' key to secret {secret_name} "
                            "or delete it so that it is regenerated"
                        ),
                    )
                params = SetupUserParams.model_validate(
                    {**user.to_payload(), "password": stored["password"]}
                )
                await self._run_script(
                    nexus, session, SCRIPT_SETUP_USER, params, subject=user.username
                )
            exposed.append(user.username)
        return exposed

    async def _register_keycloak_client(self, nexus: Nexus) -> None:
        try:
            scheme, host = await self.platform.get_ingress_url(
                nexus.namespace, nexus.name
            )
            await self.platform.create_keycloak_client(nexus, f"{scheme}://{host}")
        except OperatorError as e:
            self.logger.warning(
                f"Failed to register Keycloak client for {nexus.namespace}/{nexus.name}: {e}",
                resource_name=nexus.name,
                namespace=nexus.namespace,
                error_type=type(e).__name__,
            )

    # Integration

    async def integration(self, nexus: Nexus) -> Nexus:
        """Wire the authentication proxy when identity integration is enabled."""
        keycloak = nexus.spec.keycloak_spec
        if not keycloak.enabled:
            self.logger.debug(
                "Keycloak integration not enabled",
                resource_name=nexus.name,
                namespace=nexus.namespace,
            )
            return nexus

        async with metrics_collector.track_operation(
            "integration", nexus.namespace, nexus.name
        ):
            if not keycloak.url:
                raise ValidationError(
                    "keycloakSpec.url is required when Keycloak integration is enabled",
                    field="keycloakSpec.url",
                )

            secret_name = f"{nexus.name}{IDENTITY_CREDENTIALS_SECRET_SUFFIX}"
            with self._step("Failed to get Keycloak client data", nexus):
                data = await self.platform.get_secret_data(nexus.namespace, secret_name)
                missing = [key for key in ("clientId", "clientSecret") if not data.get(key)]
                if missing:
                    raise ConfigurationError(
                        f"Secret {secret_name} lacks {', '.join(missing)}",
                        retryable=True,
                    )

            with self._step("Failed to add Keycloak proxy", nexus):
                discovery_url = f"{keycloak.url.rstrip('/')}/auth/realms/{keycloak.realm}"
                await self.platform.add_keycloak_proxy_to_deployment(
                    nexus, secret_name, discovery_url
                )

            with self._step("Failed to add Keycloak proxy port to service", nexus):
                await self.platform.add_port_to_service(
                    nexus,
                    client.V1ServicePort(
                        name=KEYCLOAK_PROXY_PORT_NAME,
                        port=KEYCLOAK_PROXY_PORT,
                        protocol="TCP",
                        target_port=KEYCLOAK_PROXY_PORT,
                    ),
                )

            with self._step("Failed to update target port in ingress", nexus):
                await self.platform.update_ingress_target(nexus, KEYCLOAK_PROXY_PORT)

        return nexus

