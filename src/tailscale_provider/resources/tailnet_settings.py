"""Tailnet wide settings."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..const import ExternalTailnetRole
from ..schema import (
    Attribute,
    AttributeType,
    Resource,
    ResourceData,
    api_errors,
    create_uuid,
    is_url_with_http_or_https,
    one_of,
)

if TYPE_CHECKING:
    from ..models import TailnetSettings
    from ..tailscale import Tailscale

# Attribute name, API field name and model attribute of every setting.
SETTINGS = {
    "acls_externally_managed_on": "aclsExternallyManagedOn",
    "acls_external_link": "aclsExternalLink",
    "devices_approval_on": "devicesApprovalOn",
    "devices_auto_updates_on": "devicesAutoUpdatesOn",
    "devices_key_duration_days": "devicesKeyDurationDays",
    "users_approval_on": "usersApprovalOn",
    "users_role_allowed_to_join_external_tailnet": (
        "usersRoleAllowedToJoinExternalTailnets"
    ),
    "network_flow_logging_on": "networkFlowLoggingOn",
    "regional_routing_on": "regionalRoutingOn",
    "posture_identity_collection_on": "postureIdentityCollectionOn",
    "https_enabled": "httpsEnabled",
}


def _setting(kind: AttributeType, description: str, **kwargs: Any) -> Attribute:
    return Attribute(
        kind, optional=True, computed=True, description=description, **kwargs
    )


def settings_to_state(settings: TailnetSettings) -> dict[str, Any]:
    """Map the API settings onto attribute names."""
    api = settings.to_dict()
    return {name: api[field] for name, field in SETTINGS.items()}


class TailnetSettingsResource(Resource):
    """Settings of the tailnet; only configured settings are changed."""

    type_name = "tailscale_tailnet_settings"
    description = (
        "The tailnet_settings resource allows you to configure settings for "
        "your tailnet."
    )
    importable = True
    schema = {
        "acls_externally_managed_on": _setting(
            AttributeType.BOOL,
            "Prevent users from editing policies in the admin console to avoid "
            "conflicts with external management workflows.",
        ),
        "acls_external_link": _setting(
            AttributeType.STRING,
            "Link to your external ACL definition or management system. Must be "
            "a valid URL.",
            validators=(is_url_with_http_or_https,),
        ),
        "devices_approval_on": _setting(
            AttributeType.BOOL, "Whether device approval is enabled for the tailnet"
        ),
        "devices_auto_updates_on": _setting(
            AttributeType.BOOL,
            "Whether auto updates are enabled for devices that belong to this tailnet",
        ),
        "devices_key_duration_days": _setting(
            AttributeType.INT, "The key expiry duration for devices on this tailnet"
        ),
        "users_approval_on": _setting(
            AttributeType.BOOL, "Whether user approval is enabled for this tailnet"
        ),
        "users_role_allowed_to_join_external_tailnet": _setting(
            AttributeType.STRING,
            "Which user roles are allowed to join external tailnets",
            validators=(one_of(*ExternalTailnetRole),),
        ),
        "network_flow_logging_on": _setting(
            AttributeType.BOOL, "Whether network flow logs are enabled for the tailnet"
        ),
        "regional_routing_on": _setting(
            AttributeType.BOOL, "Whether regional routing is enabled for the tailnet"
        ),
        "posture_identity_collection_on": _setting(
            AttributeType.BOOL,
            "Whether identity collection is enabled for device posture "
            "integrations for the tailnet",
        ),
        "https_enabled": _setting(
            AttributeType.BOOL,
            "Whether provisioning of HTTPS certificates is enabled for the tailnet",
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        await self._update_settings(client, data)
        data.id = create_uuid()
        await self.read(client, data)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch tailnet settings"):
            settings = await client.tailnet_settings()
        for name, value in settings_to_state(settings).items():
            data.set(name, value)

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        await self._update_settings(client, data)
        await self.read(client, data)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        """Settings cannot be removed, leave them as they are."""

    @staticmethod
    async def _update_settings(client: Tailscale, data: ResourceData) -> None:
        changes = {
            field: value
            for name, field in SETTINGS.items()
            if (value := data.get_raw(name)) is not None
        }
        with api_errors("Failed to update tailnet settings"):
            await client.update_tailnet_settings(changes)
