"""
Utils package - Utility modules for Nexus operator functionality.

Contains helper modules for:
- Nexus REST API sessions
- Kubernetes resource provisioning
- Configuration bundle assets
"""

from .nexus_admin import NexusAdminClient, NexusSession, generate_password
from .platform import KubernetesPlatform

__all__ = [
    "KubernetesPlatform",
    "NexusAdminClient",
    "NexusSession",
    "generate_password",
]
