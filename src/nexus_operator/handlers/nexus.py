"""
Nexus handlers - kopf entry points for Nexus resources.

Creation, resumption and spec updates are delegated to NexusReconciler, which
resumes the lifecycle from ``status.lifecycle``. Deletion needs no handler:
every child object carries an owner reference to the Nexus and is garbage
collected by Kubernetes.
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any, cast

import kopf
from kopf import Diff

from nexus_operator.constants import NEXUS_GROUP, NEXUS_PLURAL, NEXUS_VERSION
from nexus_operator.services import NexusReconciler
from nexus_operator.services.base_reconciler import StatusProtocol

logger = logging.getLogger(__name__)


class StatusWrapper(MutableMapping[str, Any]):
    """
    View over kopf's ``patch.status`` usable as a mapping or with attributes.

    Reconcilers write ``status.lifecycle = ...``; every write lands in the
    patch kopf applies after the handler returns.
    """

    __slots__ = ("_target",)

    def __init__(self, patch_status: Any):
        object.__setattr__(self, "_target", patch_status)

    def __getitem__(self, key: str) -> Any:
        return self._target[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._target[key] = value

    def __delitem__(self, key: str) -> None:
        self._target.pop(key, None)

    def __iter__(self):
        return iter(self._target)

    def __len__(self) -> int:
        return len(self._target)

    def __getattr__(self, item: str) -> Any:
        if item.startswith("_"):
            raise AttributeError(item)
        try:
            return self._target[item]
        except KeyError as e:
            raise AttributeError(item) from e

    def __setattr__(self, key: str, value: Any) -> None:
        self._target[key] = value


@kopf.on.create(NEXUS_PLURAL, group=NEXUS_GROUP, version=NEXUS_VERSION)
@kopf.on.resume(NEXUS_PLURAL, group=NEXUS_GROUP, version=NEXUS_VERSION)
async def ensure_nexus(
    spec: dict[str, Any],
    name: str,
    namespace: str,
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """
    Drive a Nexus instance through install, configure, expose and integrate.

    Runs for new resources and again for every existing resource when the
    operator restarts; both resume from the recorded lifecycle stage.
    """
    logger.info(f"Ensuring Nexus {namespace}/{name}")

    reconciler = NexusReconciler()
    await reconciler.reconcile(
        spec=spec,
        name=name,
        namespace=namespace,
        status=cast(StatusProtocol, StatusWrapper(patch.status)),
        **kwargs,
    )
    # Return None to avoid kopf creating status subpaths
    return None


@kopf.on.update(NEXUS_PLURAL, group=NEXUS_GROUP, version=NEXUS_VERSION, field="spec")
async def update_nexus(
    old: dict[str, Any],
    new: dict[str, Any],
    diff: Diff,
    name: str,
    namespace: str,
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Re-apply configuration after a spec change."""
    logger.info(f"Updating Nexus {namespace}/{name}")

    reconciler = NexusReconciler()
    await reconciler.update(
        old_spec=old or {},
        new_spec=new or {},
        diff=diff,
        name=name,
        namespace=namespace,
        status=cast(StatusProtocol, StatusWrapper(patch.status)),
        **kwargs,
    )
    return None
