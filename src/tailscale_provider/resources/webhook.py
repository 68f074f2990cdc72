"""Webhook endpoints of the tailnet."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..const import WebhookProviderType, WebhookSubscription
from ..schema import (
    Attribute,
    AttributeType,
    Resource,
    ResourceData,
    api_errors,
    one_of,
)

if TYPE_CHECKING:
    from ..tailscale import Tailscale


class WebhookResource(Resource):
    """Webhook endpoint receiving tailnet events.

    Only the subscriptions can change in place. The signing secret is
    returned once, on creation, and kept from then on.
    """

    type_name = "tailscale_webhook"
    description = (
        "The webhook resource allows you to configure webhook endpoints for "
        "your Tailscale network."
    )
    importable = True
    schema = {
        "endpoint_url": Attribute(
            AttributeType.STRING,
            required=True,
            force_new=True,
            description="The endpoint to send webhook events to.",
        ),
        "provider_type": Attribute(
            AttributeType.STRING,
            optional=True,
            force_new=True,
            validators=(one_of(*WebhookProviderType),),
            description=(
                "The provider type of the endpoint URL. Webhook event payloads "
                "are formatted according to the provider type if it is set to "
                "a known value. Must be one of `slack`, `mattermost`, "
                "`googlechat`, or `discord` if set."
            ),
        ),
        "subscriptions": Attribute(
            AttributeType.SET,
            element=AttributeType.STRING,
            required=True,
            validators=(one_of(*WebhookSubscription),),
            description="The Tailscale events to subscribe this webhook to.",
        ),
        "secret": Attribute(
            AttributeType.STRING,
            computed=True,
            sensitive=True,
            description=(
                "The secret used for signing webhook payloads. Only set on "
                "resource creation."
            ),
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to create webhook"):
            webhook = await client.create_webhook(
                endpoint_url=data.get("endpoint_url"),
                provider_type=data.get("provider_type"),
                subscriptions=list(data.get("subscriptions")),
            )
        data.id = webhook.endpoint_id
        data.set("secret", webhook.secret or "")
        await self.read(client, data)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch webhook"):
            webhook = await client.webhook(data.id)
        data.set("endpoint_url", webhook.endpoint_url)
        data.set("provider_type", webhook.provider_type)
        data.set("subscriptions", webhook.subscriptions)

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        if data.has_change("subscriptions"):
            with api_errors("Failed to update webhook"):
                await client.update_webhook(data.id, list(data.get("subscriptions")))
        await self.read(client, data)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to delete webhook"):
            await client.delete_webhook(data.id)
