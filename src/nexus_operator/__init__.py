"""
Nexus Operator - A Kubernetes operator for Sonatype Nexus instances.

This operator manages the full lifecycle of a Nexus deployment:
- Provisioning volumes, secrets, services, workloads and ingress
- Bootstrapping runtime configuration through the Nexus script API
- Exposing CI credentials to downstream consumers
- Wiring an identity-provider authentication proxy
"""

__version__ = "0.1.0"
