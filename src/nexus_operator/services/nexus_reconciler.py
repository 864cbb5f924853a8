"""
Nexus reconciler driving the instance lifecycle.

Progress is recorded in ``status.lifecycle`` so that every invocation resumes
where the previous one stopped:

    installing -> installed -> configured -> exposed -> integrated

Waiting for Nexus to come up is expressed as a TemporaryError; kopf re-invokes
the handler after the delay.
"""

from collections.abc import Callable
from typing import Any

import pydantic
from kubernetes import client

from ..constants import (
    STAGE_CONFIGURED,
    STAGE_EXPOSED,
    STAGE_INSTALLED,
    STAGE_INSTALLING,
    STAGE_INTEGRATED,
)
from ..errors import TemporaryError, ValidationError
from ..models.nexus import Nexus
from ..settings import settings
from ..utils.platform import KubernetesPlatform
from .base_reconciler import BaseReconciler, StatusProtocol
from .nexus_service import NexusService

# Stages from which a spec update restarts at configuration
_CONFIGURED_STAGES = {STAGE_CONFIGURED, STAGE_EXPOSED, STAGE_INTEGRATED}


class NexusReconciler(BaseReconciler):
    """
    Reconciler for Nexus resources.

    Runs install, configure, expose_configuration and integration in order,
    skipping the stages already recorded as done.
    """

    def __init__(
        self,
        k8s_client: client.ApiClient | None = None,
        nexus_service_factory: Callable[[], NexusService] | None = None,
    ):
        """
        Initialize Nexus reconciler.

        Args:
            k8s_client: Kubernetes API client
            nexus_service_factory: Factory creating the NexusService to drive
        """
        super().__init__(k8s_client)
        self.nexus_service_factory = nexus_service_factory or self._default_service

    def _default_service(self) -> NexusService:
        return NexusService(KubernetesPlatform(self.kubernetes_client))

    def _build_nexus(
        self, spec: dict[str, Any], name: str, namespace: str, kwargs: dict[str, Any]
    ) -> Nexus:
        body = kwargs.get("body") or {}
        meta = kwargs.get("meta") or body.get("metadata") or {}
        try:
            return Nexus.from_body(
                {
                    "metadata": {
                        "name": name,
                        "namespace": namespace,
                        "uid": meta.get("uid", ""),
                        "annotations": dict(meta.get("annotations") or {}),
                    },
                    "spec": dict(spec or {}),
                    "status": dict(body.get("status") or {}),
                }
            )
        except pydantic.ValidationError as e:
            raise ValidationError(str(e)) from e

    async def do_reconcile(
        self,
        spec: dict[str, Any],
        name: str,
        namespace: str,
        status: StatusProtocol,
        **kwargs,
    ) -> dict[str, Any]:
        nexus = self._build_nexus(spec, name, namespace, kwargs)
        return await self._drive(nexus, nexus.status.get("lifecycle", ""), status)

    async def do_update(
        self,
        old_spec: dict[str, Any],
        new_spec: dict[str, Any],
        diff: Any,
        name: str,
        namespace: str,
        status: StatusProtocol,
        **kwargs,
    ) -> dict[str, Any] | None:
        """
        Re-apply configuration after a spec change.

        Installation is create-or-get, so it is only repeated when it never
        finished; everything from configuration onwards runs again.
        """
        for operation, field_path, old_value, new_value in diff or []:
            self.logger.info(
                f"Change detected - {operation}: {field_path} "
                f"from {old_value} to {new_value}"
            )

        nexus = self._build_nexus(new_spec, name, namespace, kwargs)
        stage = nexus.status.get("lifecycle", "")
        if stage in _CONFIGURED_STAGES:
            stage = STAGE_INSTALLED
        return await self._drive(nexus, stage, status)

    def _set_stage(self, status: StatusProtocol, stage: str) -> None:
        status.lifecycle = stage

    async def _drive(
        self, nexus: Nexus, stage: str, status: StatusProtocol
    ) -> dict[str, Any]:
        service = self.nexus_service_factory()
        # patch.status starts empty on every handler call
        if stage:
            self._set_stage(status, stage)

        if stage in ("", STAGE_INSTALLING):
            self._set_stage(status, STAGE_INSTALLING)
            await service.install(nexus)
            stage = STAGE_INSTALLED
            self._set_stage(status, stage)

        if stage == STAGE_INSTALLED:
            if not await service.is_deployment_ready(nexus):
                raise TemporaryError(
                    f"Nexus deployment {nexus.namespace}/{nexus.name} is not ready yet",
                    delay=settings.not_ready_retry_delay_seconds,
                )
            nexus, done = await service.configure(nexus)
            if not done:
                raise TemporaryError(
                    f"Nexus REST API for {nexus.namespace}/{nexus.name} is not "
                    "ready for configuration yet",
                    delay=settings.not_ready_retry_delay_seconds,
                )
            stage = STAGE_CONFIGURED
            self._set_stage(status, stage)

        if stage == STAGE_CONFIGURED:
            nexus = await service.expose_configuration(nexus)
            stage = STAGE_EXPOSED
            self._set_stage(status, stage)

        if stage == STAGE_EXPOSED:
            nexus = await service.integration(nexus)
            stage = STAGE_INTEGRATED
            self._set_stage(status, stage)

        return {"lifecycle": stage}
