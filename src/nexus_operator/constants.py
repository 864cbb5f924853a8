"""
Constants used throughout the Nexus operator.

This module defines all constant values used by the operator including:
- Custom resource coordinates for the Nexus kind and its consumers
- Default credentials and network ports
- Configuration bundle categories and well-known script names
- Resource labels and annotations
"""

# Custom resource coordinates
NEXUS_GROUP = "v2.edp.epam.com"
NEXUS_VERSION = "v1alpha1"
NEXUS_PLURAL = "nexuses"
NEXUS_KIND = "Nexus"
NEXUS_API_VERSION = f"{NEXUS_GROUP}/{NEXUS_VERSION}"

JENKINS_SERVICE_ACCOUNT_GROUP = "v2.edp.epam.com"
JENKINS_SERVICE_ACCOUNT_VERSION = "v1alpha1"
JENKINS_SERVICE_ACCOUNT_PLURAL = "jenkinsserviceaccounts"
JENKINS_SERVICE_ACCOUNT_KIND = "JenkinsServiceAccount"

KEYCLOAK_CLIENT_GROUP = "v1.edp.epam.com"
KEYCLOAK_CLIENT_VERSION = "v1alpha1"
KEYCLOAK_CLIENT_PLURAL = "keycloakclients"
KEYCLOAK_CLIENT_KIND = "KeycloakClient"

# Label constants for resource identification and management
OPERATOR_LABEL_KEY = "app.edp.epam.com/managed-by"
OPERATOR_LABEL_VALUE = "nexus-operator"
INSTANCE_LABEL_KEY = "app.edp.epam.com/instance"
APP_LABEL_KEY = "app"

# Annotation constants
PASSWORD_ROTATION_ANNOTATION = "v2.edp.epam.com/password-rotation"
EXPOSED_USERS_ANNOTATION = "v2.edp.epam.com/exposed-users"

ROTATION_PENDING = "pending"
ROTATION_COMMITTED = "committed"

# Default configuration values
DEFAULT_NEXUS_IMAGE = "sonatype/nexus3"
DEFAULT_NEXUS_VERSION = "3.29.0"
DEFAULT_KEYCLOAK_PROXY_IMAGE = "quay.io/keycloak/keycloak-gatekeeper:10.0.0"
NEXUS_PORT = 8081
NEXUS_PORT_NAME = "nexus-http"
NEXUS_CONTAINER_PORT_NAME = "http"
NEXUS_REST_API_PATH = "service/rest"
NEXUS_DATA_PATH = "/nexus-data"
KEYCLOAK_PROXY_PORT = 3000
KEYCLOAK_PROXY_PORT_NAME = "keycloak-proxy"

# Credentials
NEXUS_DEFAULT_ADMIN_USER = "admin"
NEXUS_DEFAULT_ADMIN_PASSWORD = "admin123"
GENERATED_PASSWORD_LENGTH = 16

# Resource naming patterns
ADMIN_SECRET_SUFFIX = "-admin-password"
IDENTITY_CREDENTIALS_SECRET_SUFFIX = "-is-credentials"

# Configuration bundle categories (bundle name is "<instance>-<category>")
BUNDLE_SCRIPTS = "scripts"
BUNDLE_TASKS = "tasks"
BUNDLE_ROLES = "roles"
BUNDLE_REPOS_TO_CREATE = "repos-to-create"
BUNDLE_REPOS_TO_DELETE = "repos-to-delete"
BUNDLE_BLOBS = "blobs"
BUNDLE_CAPABILITIES = "default-capabilities"
BUNDLE_DEFAULT_USERS = "default-users"

DEFAULT_CONFIGURATION_DIRECTORY = "default-configuration"
SCRIPTS_DIRECTORY = "scripts"

# Script names
SCRIPT_UPDATE_ADMIN_PASSWORD = "update-admin-password"
SCRIPT_CREATE_TASK = "create-task"
SCRIPT_DISABLE_OUTREACH_CAPABILITY = "disable-outreach-capability"
SCRIPT_SETUP_CAPABILITY = "setup-capability"
SCRIPT_ENABLE_REALM = "enable-realm"
SCRIPT_SETUP_ROLE = "setup-role"
SCRIPT_CREATE_BLOBSTORE = "create-blobstore"
SCRIPT_CREATE_REPO_PREFIX = "create-repo-"
SCRIPT_DELETE_REPO = "delete-repo"
SCRIPT_SETUP_USER = "setup-user"

ENABLED_REALMS = ["NuGetApiKey"]

# Lifecycle stages recorded in status.lifecycle
STAGE_INSTALLING = "installing"
STAGE_INSTALLED = "installed"
STAGE_CONFIGURED = "configured"
STAGE_EXPOSED = "exposed"
STAGE_INTEGRATED = "integrated"

# Status phase constants
PHASE_RECONCILING = "Reconciling"
PHASE_READY = "Ready"
PHASE_FAILED = "Failed"

# Timeout constants (in seconds)
DEFAULT_NOT_READY_RETRY_DELAY = 30
DEFAULT_API_TIMEOUT = 60
