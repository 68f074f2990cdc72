"""Integrations with device posture data providers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..const import PostureProvider
from ..schema import (
    Attribute,
    AttributeType,
    Resource,
    ResourceData,
    api_errors,
    one_of,
)

if TYPE_CHECKING:
    from ..models import PostureIntegration
    from ..tailscale import Tailscale


def _set_from_remote(data: ResourceData, integration: PostureIntegration) -> None:
    data.set("posture_provider", integration.provider)
    data.set("cloud_id", integration.cloud_id)
    data.set("client_id", integration.client_id)
    data.set("tenant_id", integration.tenant_id)


class PostureIntegrationResource(Resource):
    """Integration feeding third-party posture data into the tailnet.

    The client secret is write-only, the API never returns it.
    """

    type_name = "tailscale_posture_integration"
    description = (
        "The posture_integration resource allows you to manage integrations "
        "with device posture data providers."
    )
    importable = True
    schema = {
        "posture_provider": Attribute(
            AttributeType.STRING,
            required=True,
            force_new=True,
            validators=(one_of(*PostureProvider),),
            description=(
                "The third-party provider for posture data. Valid values are "
                "`falcon`, `intune`, `jamfpro`, `kandji`, `kolide`, and "
                "`sentinelone`."
            ),
        ),
        "cloud_id": Attribute(
            AttributeType.STRING,
            optional=True,
            description="Identifies which of the provider's clouds to integrate with.",
        ),
        "client_id": Attribute(
            AttributeType.STRING,
            optional=True,
            description="Unique identifier for your client.",
        ),
        "tenant_id": Attribute(
            AttributeType.STRING,
            optional=True,
            description=(
                "The Microsoft Intune directory (tenant) ID. For other "
                "providers, this is left blank."
            ),
        ),
        "client_secret": Attribute(
            AttributeType.STRING,
            required=True,
            sensitive=True,
            description=(
                "The secret (auth key, token, etc.) used to authenticate with "
                "the provider."
            ),
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to create posture integration"):
            integration = await client.create_posture_integration(
                provider=data.get("posture_provider"),
                client_secret=data.get("client_secret"),
                cloud_id=data.get("cloud_id"),
                client_id=data.get("client_id"),
                tenant_id=data.get("tenant_id"),
            )
        data.id = integration.integration_id
        _set_from_remote(data, integration)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to find posture integration with id %r", data.id):
            integration = await client.posture_integration(data.id)
        _set_from_remote(data, integration)

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to update posture integration with id %r", data.id):
            integration = await client.update_posture_integration(
                data.id,
                client_secret=data.get("client_secret"),
                cloud_id=data.get("cloud_id"),
                client_id=data.get("client_id"),
                tenant_id=data.get("tenant_id"),
            )
        _set_from_remote(data, integration)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to delete posture integration with id %r", data.id):
            await client.delete_posture_integration(data.id)
