"""Constants for the Tailscale provider."""

from __future__ import annotations

import logging
from enum import StrEnum

LOGGER = logging.getLogger(__package__)

VERSION = "0.1.0"

DEFAULT_BASE_URL = "https://api.tailscale.com"
DEFAULT_TAILNET = "-"
DEFAULT_USER_AGENT = f"tailscale-provider/{VERSION}"

# Refresh OAuth access tokens this many seconds before they expire.
TOKEN_EXPIRY_MARGIN = 60

# Only succeeds while the tailnet still runs the policy file it was created with.
DEFAULT_ACL_ETAG = '"ts-default"'


class WebhookProviderType(StrEnum):
    """Destination formats supported for webhook payloads."""

    EMPTY = ""
    SLACK = "slack"
    MATTERMOST = "mattermost"
    GOOGLE_CHAT = "googlechat"
    DISCORD = "discord"


class WebhookSubscription(StrEnum):
    """Events a webhook can subscribe to."""

    NODE_CREATED = "nodeCreated"
    NODE_NEEDS_APPROVAL = "nodeNeedsApproval"
    NODE_APPROVED = "nodeApproved"
    NODE_KEY_EXPIRING_IN_ONE_DAY = "nodeKeyExpiringInOneDay"
    NODE_KEY_EXPIRED = "nodeKeyExpired"
    NODE_DELETED = "nodeDeleted"
    POLICY_UPDATE = "policyUpdate"
    USER_CREATED = "userCreated"
    USER_NEEDS_APPROVAL = "userNeedsApproval"
    USER_SUSPENDED = "userSuspended"
    USER_RESTORED = "userRestored"
    USER_DELETED = "userDeleted"
    USER_APPROVED = "userApproved"
    USER_ROLE_UPDATED = "userRoleUpdated"
    SUBNET_IP_FORWARDING_NOT_ENABLED = "subnetIPForwardingNotEnabled"
    EXIT_NODE_IP_FORWARDING_NOT_ENABLED = "exitNodeIPForwardingNotEnabled"


class ContactType(StrEnum):
    """Contact preference categories of a tailnet."""

    ACCOUNT = "account"
    SUPPORT = "support"
    SECURITY = "security"


class PostureProvider(StrEnum):
    """Third-party device posture data providers."""

    FALCON = "falcon"
    INTUNE = "intune"
    JAMF_PRO = "jamfpro"
    KANDJI = "kandji"
    KOLIDE = "kolide"
    SENTINEL_ONE = "sentinelone"


class LogType(StrEnum):
    """Kinds of logs that can be streamed."""

    CONFIGURATION = "configuration"
    NETWORK = "network"


class LogstreamDestination(StrEnum):
    """SIEM platforms logs can be streamed to."""

    AXIOM = "axiom"
    CRIBL = "cribl"
    DATADOG = "datadog"
    ELASTIC = "elastic"
    GCS = "gcs"
    PANTHER = "panther"
    SPLUNK = "splunk"
    S3 = "s3"


class CompressionFormat(StrEnum):
    """Compression applied to streamed logs."""

    NONE = "none"
    ZSTD = "zstd"
    GZIP = "gzip"


class S3AuthenticationType(StrEnum):
    """Ways Tailscale authenticates against an S3 bucket."""

    ACCESS_KEY = "accesskey"
    ROLE_ARN = "rolearn"


class ExternalTailnetRole(StrEnum):
    """User roles allowed to join external tailnets."""

    NONE = "none"
    MEMBER = "member"
    ADMIN = "admin"


class UserType(StrEnum):
    """Relation of a user to the tailnet."""

    MEMBER = "member"
    SHARED = "shared"


class UserRole(StrEnum):
    """Roles a tailnet user can hold."""

    OWNER = "owner"
    MEMBER = "member"
    ADMIN = "admin"
    IT_ADMIN = "it-admin"
    NETWORK_ADMIN = "network-admin"
    BILLING_ADMIN = "billing-admin"
    AUDITOR = "auditor"


class RecreateIfInvalid(StrEnum):
    """Replacement policy for tailnet keys that became invalid."""

    DEFAULT = ""
    ALWAYS = "always"
    NEVER = "never"
