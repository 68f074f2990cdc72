"""Models mirroring the JSON objects of the Tailscale API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin


def _empty_to_none(d: dict[Any, Any], *keys: str) -> dict[Any, Any]:
    """Convert empty strings the API uses for unset timestamps to None."""
    for key in keys:
        if not d.get(key):
            d[key] = None
    return d


class TailscaleModel(DataClassORJSONMixin):
    """Base for models that are also sent back to the API."""

    class Config(BaseConfig):
        """Serialize with the API's field names."""

        serialize_by_alias = True


@dataclass
class APIErrorData(TailscaleModel):
    """Per-user details attached to an API error."""

    user: str = ""
    errors: list[str] = field(default_factory=list)


@dataclass
class APIErrorBody(TailscaleModel):
    """Body of a non-successful API response."""

    message: str = ""
    data: list[APIErrorData] = field(default_factory=list)


@dataclass
class ClientSupports(TailscaleModel):
    """Object holding Tailscale device information."""

    hair_pinning: bool | None = field(
        default=None, metadata=field_options(alias="hairPinning")
    )
    ipv6: bool | None = None
    pcp: bool | None = None
    pmp: bool | None = None
    udp: bool | None = None
    upnp: bool | None = None


@dataclass
class Latency(TailscaleModel):
    """Object holding Tailscale device information."""

    latency_ms: float = field(metadata=field_options(alias="latencyMs"))
    preferred: bool | None = None


@dataclass
class ClientConnectivity(TailscaleModel):
    """Object holding Tailscale device information."""

    client_supports: ClientSupports = field(
        default_factory=ClientSupports,
        metadata=field_options(alias="clientSupports"),
    )
    endpoints: list[str] = field(default_factory=list)
    latency: dict[str, Latency] = field(default_factory=dict)
    mapping_varies_by_dest_ip: bool | None = field(
        default=None,
        metadata=field_options(alias="mappingVariesByDestIP"),
    )


@dataclass
# pylint: disable-next=too-many-instance-attributes
class Device(TailscaleModel):
    """Object holding Tailscale device information."""

    device_id: str = field(metadata=field_options(alias="id"))
    name: str
    hostname: str
    addresses: list[str] = field(default_factory=list)
    authorized: bool = False
    blocks_incoming_connections: bool = field(
        default=False, metadata=field_options(alias="blocksIncomingConnections")
    )
    client_connectivity: ClientConnectivity | None = field(
        default=None, metadata=field_options(alias="clientConnectivity")
    )
    client_version: str = field(
        default="", metadata=field_options(alias="clientVersion")
    )
    connected_to_control: bool = field(
        default=False, metadata=field_options(alias="connectedToControl")
    )
    created: datetime | None = None
    expires: datetime | None = None
    is_external: bool = field(default=False, metadata=field_options(alias="isExternal"))
    key_expiry_disabled: bool = field(
        default=False, metadata=field_options(alias="keyExpiryDisabled")
    )
    last_seen: datetime | None = field(
        default=None, metadata=field_options(alias="lastSeen")
    )
    machine_key: str = field(default="", metadata=field_options(alias="machineKey"))
    node_key: str = field(default="", metadata=field_options(alias="nodeKey"))
    node_id: str = field(default="", metadata=field_options(alias="nodeId"))
    os: str = ""
    tailnet_lock_key: str = field(
        default="", metadata=field_options(alias="tailnetLockKey")
    )
    tailnet_lock_error: str = field(
        default="", metadata=field_options(alias="tailnetLockError")
    )
    update_available: bool = field(
        default=False, metadata=field_options(alias="updateAvailable")
    )
    user: str = ""
    advertised_routes: list[str] = field(
        default_factory=list, metadata=field_options(alias="advertisedRoutes")
    )
    enabled_routes: list[str] = field(
        default_factory=list, metadata=field_options(alias="enabledRoutes")
    )
    is_ephemeral: bool | None = field(
        default=None,
        metadata=field_options(alias="isEphemeral"),
    )
    multiple_connections: bool | None = field(
        default=None,
        metadata=field_options(alias="multipleConnections"),
    )
    ssh_enabled: bool | None = field(
        default=None,
        metadata=field_options(alias="sshEnabled"),
    )
    tags: list[str] = field(default_factory=list)

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        """Handle some fields that are inconsistently set by the API.

        Args:
        ----
            d: The values of the model.

        Returns:
        -------
            The adjusted values of the model.

        """
        if d.get("tags") is None:
            d["tags"] = []
        return _empty_to_none(d, "created", "expires", "lastSeen")


@dataclass
class Devices(TailscaleModel):
    """Object holding Tailscale device information."""

    devices: dict[str, Device]

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        """Handle some fields that are inconsistently named in the API.

        Args:
        ----
            d: The values of the model.

        Returns:
        -------
            The adjusted values of the model.

        """
        # Convert list into dict, keyed by device id, keeping API order.
        d["devices"] = {device["id"]: device for device in d.get("devices") or []}
        return d


@dataclass
class DeviceRoutes(TailscaleModel):
    """Subnet routes advertised by and enabled for a device."""

    advertised: list[str] = field(
        default_factory=list, metadata=field_options(alias="advertisedRoutes")
    )
    enabled: list[str] = field(
        default_factory=list, metadata=field_options(alias="enabledRoutes")
    )

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        """Tolerate null route lists."""
        for key in ("advertisedRoutes", "enabledRoutes"):
            if d.get(key) is None:
                d[key] = []
        return d


@dataclass
class DeviceCreateCapabilities(TailscaleModel):
    """Capabilities of devices registered with an auth key."""

    reusable: bool = False
    ephemeral: bool = False
    preauthorized: bool = False
    tags: list[str] = field(default_factory=list)


@dataclass
class DeviceCapabilities(TailscaleModel):
    """Device related capabilities of an auth key."""

    create: DeviceCreateCapabilities = field(default_factory=DeviceCreateCapabilities)


@dataclass
class KeyCapabilities(TailscaleModel):
    """Capabilities of an auth key."""

    devices: DeviceCapabilities = field(default_factory=DeviceCapabilities)


@dataclass
# pylint: disable-next=too-many-instance-attributes
class Key(TailscaleModel):
    """Auth key, OAuth client or federated identity of a tailnet.

    The secret ``key`` is only returned by the API when the key is created.
    """

    key_id: str = field(metadata=field_options(alias="id"))
    key: str = ""
    key_type: str = field(default="auth", metadata=field_options(alias="keyType"))
    description: str = ""
    created: datetime | None = None
    expires: datetime | None = None
    updated: datetime | None = None
    revoked: datetime | None = None
    invalid: bool = False
    capabilities: KeyCapabilities = field(default_factory=KeyCapabilities)
    scopes: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    user_id: str = field(default="", metadata=field_options(alias="userId"))
    audience: str = ""
    subject: str = ""
    issuer: str = ""
    custom_claim_rules: dict[str, str] = field(
        default_factory=dict, metadata=field_options(alias="customClaimRules")
    )

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        """Handle unset timestamps and null collections."""
        for key in ("scopes", "tags"):
            if d.get(key) is None:
                d[key] = []
        if d.get("customClaimRules") is None:
            d["customClaimRules"] = {}
        if d.get("capabilities") is None:
            d["capabilities"] = {}
        return _empty_to_none(d, "created", "expires", "updated", "revoked")


@dataclass
class Keys(TailscaleModel):
    """List of keys of a tailnet."""

    keys: list[Key] = field(default_factory=list)


@dataclass
class Webhook(TailscaleModel):
    """Webhook endpoint of a tailnet.

    The signing ``secret`` is only returned when the webhook is created.
    """

    endpoint_id: str = field(metadata=field_options(alias="endpointId"))
    endpoint_url: str = field(metadata=field_options(alias="endpointUrl"))
    provider_type: str = field(default="", metadata=field_options(alias="providerType"))
    creator_login_name: str = field(
        default="", metadata=field_options(alias="creatorLoginName")
    )
    created: datetime | None = None
    last_modified: datetime | None = field(
        default=None, metadata=field_options(alias="lastModified")
    )
    subscriptions: list[str] = field(default_factory=list)
    secret: str | None = None

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        """Handle unset timestamps."""
        if d.get("subscriptions") is None:
            d["subscriptions"] = []
        return _empty_to_none(d, "created", "lastModified")


@dataclass
class Contact(TailscaleModel):
    """Contact preference of a tailnet."""

    email: str = ""
    fallback_email: str = field(
        default="", metadata=field_options(alias="fallbackEmail")
    )
    needs_verification: bool = field(
        default=False, metadata=field_options(alias="needsVerification")
    )


@dataclass
class Contacts(TailscaleModel):
    """All contact preferences of a tailnet."""

    account: Contact = field(default_factory=Contact)
    support: Contact = field(default_factory=Contact)
    security: Contact = field(default_factory=Contact)


@dataclass
# pylint: disable-next=too-many-instance-attributes
class TailnetSettings(TailscaleModel):
    """Tailnet wide settings."""

    acls_externally_managed_on: bool = field(
        default=False, metadata=field_options(alias="aclsExternallyManagedOn")
    )
    acls_external_link: str = field(
        default="", metadata=field_options(alias="aclsExternalLink")
    )
    devices_approval_on: bool = field(
        default=False, metadata=field_options(alias="devicesApprovalOn")
    )
    devices_auto_updates_on: bool = field(
        default=False, metadata=field_options(alias="devicesAutoUpdatesOn")
    )
    devices_key_duration_days: int = field(
        default=0, metadata=field_options(alias="devicesKeyDurationDays")
    )
    users_approval_on: bool = field(
        default=False, metadata=field_options(alias="usersApprovalOn")
    )
    users_role_allowed_to_join_external_tailnets: str = field(
        default="",
        metadata=field_options(alias="usersRoleAllowedToJoinExternalTailnets"),
    )
    network_flow_logging_on: bool = field(
        default=False, metadata=field_options(alias="networkFlowLoggingOn")
    )
    regional_routing_on: bool = field(
        default=False, metadata=field_options(alias="regionalRoutingOn")
    )
    posture_identity_collection_on: bool = field(
        default=False, metadata=field_options(alias="postureIdentityCollectionOn")
    )
    https_enabled: bool = field(
        default=False, metadata=field_options(alias="httpsEnabled")
    )


@dataclass
class DNSPreferences(TailscaleModel):
    """DNS preferences of a tailnet."""

    magic_dns: bool = field(default=False, metadata=field_options(alias="magicDNS"))


@dataclass
class DNSConfigurationResolver(TailscaleModel):
    """Nameserver entry of a DNS configuration."""

    address: str
    use_with_exit_node: bool = field(
        default=False, metadata=field_options(alias="useWithExitNode")
    )


@dataclass
class DNSConfigurationPreferences(TailscaleModel):
    """Preferences part of a DNS configuration."""

    override_local_dns: bool = field(
        default=False, metadata=field_options(alias="overrideLocalDNS")
    )
    magic_dns: bool = field(default=False, metadata=field_options(alias="magicDNS"))


@dataclass
class DNSConfiguration(TailscaleModel):
    """Complete DNS configuration of a tailnet."""

    nameservers: list[DNSConfigurationResolver] = field(default_factory=list)
    search_paths: list[str] = field(
        default_factory=list, metadata=field_options(alias="searchPaths")
    )
    split_dns: dict[str, list[DNSConfigurationResolver]] = field(
        default_factory=dict, metadata=field_options(alias="splitDNS")
    )
    preferences: DNSConfigurationPreferences = field(
        default_factory=DNSConfigurationPreferences
    )

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        """Tolerate null collections."""
        for key in ("nameservers", "searchPaths"):
            if d.get(key) is None:
                d[key] = []
        if d.get("splitDNS") is None:
            d["splitDNS"] = {}
        d["splitDNS"] = {
            domain: resolvers or [] for domain, resolvers in d["splitDNS"].items()
        }
        if d.get("preferences") is None:
            d["preferences"] = {}
        return d


@dataclass
class PostureIntegration(TailscaleModel):
    """Integration with a device posture data provider."""

    integration_id: str = field(metadata=field_options(alias="id"))
    provider: str
    cloud_id: str = field(default="", metadata=field_options(alias="cloudId"))
    client_id: str = field(default="", metadata=field_options(alias="clientId"))
    tenant_id: str = field(default="", metadata=field_options(alias="tenantId"))
    config_updated: datetime | None = field(
        default=None, metadata=field_options(alias="configUpdated")
    )

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        """Handle unset timestamps."""
        return _empty_to_none(d, "configUpdated")


@dataclass
class PostureIntegrations(TailscaleModel):
    """List of posture integrations."""

    integrations: list[PostureIntegration] = field(default_factory=list)


@dataclass
# pylint: disable-next=too-many-instance-attributes
class LogstreamConfiguration(TailscaleModel):
    """Log streaming configuration for one log type."""

    log_type: str = field(default="", metadata=field_options(alias="logType"))
    destination_type: str = field(
        default="", metadata=field_options(alias="destinationType")
    )
    url: str = ""
    user: str = ""
    upload_period_minutes: int = field(
        default=0, metadata=field_options(alias="uploadPeriodMinutes")
    )
    compression_format: str = field(
        default="", metadata=field_options(alias="compressionFormat")
    )
    s3_bucket: str = field(default="", metadata=field_options(alias="s3Bucket"))
    s3_region: str = field(default="", metadata=field_options(alias="s3Region"))
    s3_key_prefix: str = field(default="", metadata=field_options(alias="s3KeyPrefix"))
    s3_authentication_type: str = field(
        default="", metadata=field_options(alias="s3AuthenticationType")
    )
    s3_access_key_id: str = field(
        default="", metadata=field_options(alias="s3AccessKeyId")
    )
    s3_role_arn: str = field(default="", metadata=field_options(alias="s3RoleArn"))
    s3_external_id: str = field(
        default="", metadata=field_options(alias="s3ExternalId")
    )
    gcs_credentials: str = field(
        default="", metadata=field_options(alias="gcsCredentials")
    )
    gcs_bucket: str = field(default="", metadata=field_options(alias="gcsBucket"))
    gcs_scopes: list[str] = field(
        default_factory=list, metadata=field_options(alias="gcsScopes")
    )
    gcs_key_prefix: str = field(
        default="", metadata=field_options(alias="gcsKeyPrefix")
    )

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        """Tolerate a null scope list."""
        if d.get("gcsScopes") is None:
            d["gcsScopes"] = []
        return d


@dataclass
class AWSExternalID(TailscaleModel):
    """External ID Tailscale presents when assuming an AWS role."""

    external_id: str = field(metadata=field_options(alias="externalId"))
    tailscale_aws_account_id: str = field(
        metadata=field_options(alias="tailscaleAwsAccountId")
    )


@dataclass
# pylint: disable-next=too-many-instance-attributes
class User(TailscaleModel):
    """User of a tailnet."""

    user_id: str = field(metadata=field_options(alias="id"))
    login_name: str = field(default="", metadata=field_options(alias="loginName"))
    display_name: str = field(default="", metadata=field_options(alias="displayName"))
    profile_pic_url: str = field(
        default="", metadata=field_options(alias="profilePicUrl")
    )
    tailnet_id: str = field(default="", metadata=field_options(alias="tailnetId"))
    created: datetime | None = None
    type: str = ""
    role: str = ""
    status: str = ""
    device_count: int = field(default=0, metadata=field_options(alias="deviceCount"))
    last_seen: datetime | None = field(
        default=None, metadata=field_options(alias="lastSeen")
    )
    currently_connected: bool = field(
        default=False, metadata=field_options(alias="currentlyConnected")
    )

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        """Handle unset timestamps."""
        return _empty_to_none(d, "created", "lastSeen")


@dataclass
class Users(TailscaleModel):
    """List of users of a tailnet."""

    users: list[User] = field(default_factory=list)


@dataclass
class OAuthToken(TailscaleModel):
    """Access token minted from OAuth client credentials."""

    access_token: str
    expires_in: int = 3600
    token_type: str = "Bearer"
    scope: str = ""
