"""
Kubernetes utilities for the Nexus operator.

Client bootstrap plus the labels and owner references stamped on every
object created for a Nexus instance.
"""

import logging
from typing import Any

from kubernetes import client, config

from ..constants import (
    APP_LABEL_KEY,
    INSTANCE_LABEL_KEY,
    NEXUS_API_VERSION,
    NEXUS_KIND,
    OPERATOR_LABEL_KEY,
    OPERATOR_LABEL_VALUE,
)

logger = logging.getLogger(__name__)


def get_kubernetes_client() -> client.ApiClient:
    """
    API client for the cluster the operator runs against.

    The service account mount wins when present; otherwise the local
    kubeconfig is used, which covers running the operator from a workstation.
    """
    try:
        config.load_incluster_config()
        source = "in-cluster service account"
    except config.ConfigException:
        try:
            config.load_kube_config()
        except config.ConfigException as e:
            logger.error(f"No usable Kubernetes configuration: {e}")
            raise
        source = "local kubeconfig"

    logger.debug(f"Kubernetes client configured from {source}")
    return client.ApiClient()


def generate_labels(instance_name: str) -> dict[str, str]:
    """Labels carried by every object created for a Nexus instance."""
    return {
        APP_LABEL_KEY: instance_name,
        INSTANCE_LABEL_KEY: instance_name,
        OPERATOR_LABEL_KEY: OPERATOR_LABEL_VALUE,
    }


def selector_labels(instance_name: str) -> dict[str, str]:
    return {APP_LABEL_KEY: instance_name}


def owner_reference_dict(owner_name: str, owner_uid: str) -> dict[str, Any]:
    """Owner reference in the camelCase form used for custom object bodies."""
    return {
        "apiVersion": NEXUS_API_VERSION,
        "kind": NEXUS_KIND,
        "name": owner_name,
        "uid": owner_uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }
