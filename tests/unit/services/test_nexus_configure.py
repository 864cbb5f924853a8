"""Unit tests for NexusService.configure."""

import pytest

from nexus_operator.constants import (
    BUNDLE_REPOS_TO_CREATE,
    BUNDLE_REPOS_TO_DELETE,
    BUNDLE_ROLES,
    BUNDLE_TASKS,
)
from nexus_operator.errors import (
    BundleNotFoundError,
    ConfigurationError,
    ReconciliationError,
    ScriptExecutionError,
    ScriptVerificationError,
)
from nexus_operator.models.nexus import Nexus, NexusUser
from nexus_operator.utils.nexus_admin import NexusClientError
from tests.unit.factories import make_secret, script_calls, set_bundle


@pytest.fixture
def committed_secret(platform):
    """Admin secret after a finished rotation; configure skips rotation."""
    secret = make_secret(
        "demo-admin-password", {"user": "admin", "password": "s3cr3tPassw0rd00"}
    )

    async def get_secret(namespace, name):
        return secret if name == "demo-admin-password" else None

    platform.get_secret.side_effect = get_secret
    return secret


class TestConfigureReadiness:
    @pytest.mark.asyncio
    async def test_not_ready_returns_false_without_changes(
        self, service, platform, session, nexus
    ):
        session.is_ready.return_value = (False, "HTTP 503")

        result, done = await service.configure(nexus)

        assert result is nexus
        assert done is False
        session.declare_scripts.assert_not_awaited()
        session.run_script.assert_not_awaited()
        platform.update_secret.assert_not_awaited()
        session.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_admin_secret(self, service, platform, session, nexus):
        platform.get_secret.side_effect = None
        platform.get_secret.return_value = None

        with pytest.raises(ReconciliationError) as exc_info:
            await service.configure(nexus)

        assert "Failed to get Nexus admin credentials for ci/demo" in str(exc_info.value)
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_connects_with_stored_credentials(
        self, service, nexus_admin, nexus, committed_secret
    ):
        await service.configure(nexus)

        nexus_admin.connect.assert_awaited_once_with(
            "https://demo-ci.example.com/service/rest", "admin", "s3cr3tPassw0rd00"
        )


class TestConfigureScripts:
    @pytest.mark.asyncio
    async def test_scripts_declared_by_file_stem(
        self, service, session, nexus, committed_secret
    ):
        await service.configure(nexus)

        declared = session.declare_scripts.await_args.args[0]
        assert set(declared) == {
            "update-admin-password",
            "setup-user",
            "create-repo-maven-proxy",
        }

    @pytest.mark.asyncio
    async def test_verification_failure_aborts(
        self, service, session, nexus, committed_secret
    ):
        session.are_scripts_declared.return_value = (False, ["setup-user"])

        with pytest.raises(ScriptVerificationError) as exc_info:
            await service.configure(nexus)

        assert exc_info.value.missing == ["setup-user"]
        assert exc_info.value.retryable is True
        session.run_script.assert_not_awaited()
        session.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_scripts_bundle(
        self, service, session, bundles, nexus, committed_secret
    ):
        del bundles["demo-scripts"]

        with pytest.raises(BundleNotFoundError) as exc_info:
            await service.configure(nexus)

        assert "Failed to upload default scripts for ci/demo" in str(exc_info.value)
        session.declare_scripts.assert_not_awaited()


class TestConfigureBundles:
    @pytest.mark.asyncio
    async def test_empty_bundles_complete(
        self, service, session, nexus, committed_secret
    ):
        """With no entries only the unconditional scripts run."""
        result, done = await service.configure(nexus)

        assert result is nexus
        assert done is True
        assert script_calls(session) == ["disable-outreach-capability", "enable-realm"]
        realm_params = session.run_script.await_args_list[1].args[1]
        assert realm_params.to_payload() == {"name": "NuGetApiKey"}

    @pytest.mark.asyncio
    async def test_steps_run_in_order(
        self, service, session, bundles, nexus, committed_secret
    ):
        set_bundle(bundles, BUNDLE_TASKS, [{"name": "compact", "typeId": "blobstore.compact"}])
        set_bundle(bundles, "default-capabilities", [{"capability_typeId": "rapture.settings"}])
        set_bundle(bundles, BUNDLE_ROLES, [{"id": "edp-ci", "name": "edp-ci"}])
        set_bundle(bundles, "blobs", [{"name": "edp-maven", "path": "/nexus-data/blobs/edp-maven"}])
        set_bundle(
            bundles,
            BUNDLE_REPOS_TO_CREATE,
            [{"name": "edp-raw", "repositoryType": "raw-hosted"}],
        )
        set_bundle(bundles, BUNDLE_REPOS_TO_DELETE, [{"name": "maven-central"}])
        nexus.spec.users = [NexusUser(username="alice", roles=["edp-ci"])]

        await service.configure(nexus)

        assert script_calls(session) == [
            "create-task",
            "disable-outreach-capability",
            "setup-capability",
            "enable-realm",
            "setup-role",
            "create-blobstore",
            "create-repo-raw-hosted",
            "delete-repo",
            "setup-user",
        ]

    @pytest.mark.asyncio
    async def test_repository_type_selects_script(
        self, service, session, bundles, nexus, committed_secret
    ):
        entry = {
            "name": "central",
            "repositoryType": "maven-proxy",
            "remote_url": "https://repo1.maven.org/maven2/",
        }
        set_bundle(bundles, BUNDLE_REPOS_TO_CREATE, [entry])

        await service.configure(nexus)

        repo_calls = [
            c for c in session.run_script.await_args_list
            if c.args[0].startswith("create-repo-")
        ]
        assert len(repo_calls) == 1
        assert repo_calls[0].args[0] == "create-repo-maven-proxy"
        assert repo_calls[0].args[1].to_payload() == entry

    @pytest.mark.asyncio
    async def test_each_stale_repository_deleted_once(
        self, service, session, bundles, nexus, committed_secret
    ):
        set_bundle(
            bundles,
            BUNDLE_REPOS_TO_DELETE,
            [{"name": "maven-central"}, {"name": "nuget-hosted"}],
        )

        await service.configure(nexus)

        deletions = [
            c.args[1].to_payload()
            for c in session.run_script.await_args_list
            if c.args[0] == "delete-repo"
        ]
        assert deletions == [{"name": "maven-central"}, {"name": "nuget-hosted"}]

    @pytest.mark.asyncio
    async def test_declared_users_get_generated_passwords(
        self, service, session, platform, committed_secret
    ):
        nexus = Nexus.from_body(
            {
                "metadata": {"name": "demo", "namespace": "ci"},
                "spec": {
                    "users": [
                        {
                            "username": "alice",
                            "firstName": "Alice",
                            "email": "alice@example.com",
                            "roles": ["edp-admin"],
                        }
                    ]
                },
            }
        )

        await service.configure(nexus)

        params = session.run_script.await_args_list[-1].args[1]
        payload = params.to_payload()
        assert session.run_script.await_args_list[-1].args[0] == "setup-user"
        assert payload["username"] == "alice"
        assert payload["first_name"] == "Alice"
        assert payload["roles"] == ["edp-admin"]
        assert len(payload["password"]) == 16
        assert payload["password"].isalnum()

    @pytest.mark.asyncio
    async def test_script_failure_skips_remaining_steps(
        self, service, session, bundles, nexus, committed_secret
    ):
        set_bundle(bundles, BUNDLE_TASKS, [{"name": "compact"}])
        set_bundle(bundles, BUNDLE_ROLES, [{"id": "edp-ci"}])
        session.run_script.side_effect = NexusClientError(
            "POST v1/script/create-task/run failed with HTTP 500", status_code=500
        )

        with pytest.raises(ScriptExecutionError) as exc_info:
            await service.configure(nexus)

        message = str(exc_info.value)
        assert "Failed to create default tasks for ci/demo" in message
        assert "create-task" in message
        assert "compact" in message
        assert script_calls(session) == ["create-task"]
        session.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_bundle_aborts(
        self, service, session, bundles, nexus, committed_secret
    ):
        del bundles["demo-roles"]

        with pytest.raises(BundleNotFoundError) as exc_info:
            await service.configure(nexus)

        assert "Failed to create default roles for ci/demo" in str(exc_info.value)
        assert "setup-role" not in script_calls(session)
        assert "create-blobstore" not in script_calls(session)

    @pytest.mark.asyncio
    async def test_invalid_repository_entry(
        self, service, session, bundles, nexus, committed_secret
    ):
        set_bundle(bundles, BUNDLE_REPOS_TO_CREATE, [{"name": "no-type"}])

        with pytest.raises(ConfigurationError) as exc_info:
            await service.configure(nexus)

        assert "demo-repos-to-create" in str(exc_info.value)
