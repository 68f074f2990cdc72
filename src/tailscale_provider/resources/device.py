"""Per-device settings: authorization, tags, key expiry and subnet routes."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..schema import (
    Attribute,
    AttributeType,
    Resource,
    ResourceData,
    api_errors,
    create_uuid,
)

if TYPE_CHECKING:
    from ..models import Device
    from ..tailscale import Tailscale

DEVICE_ID_DESCRIPTION = (
    "The device to modify. Both the legacy device id and the node id are accepted."
)


def canonical_device_id(device: Device, requested: str) -> str:
    """Return the id form the device was looked up with.

    The API accepts both the legacy numeric id and the node id, but always
    answers with both. Keeping the form the user wrote avoids spurious diffs.
    """
    if device.device_id != requested:
        return device.node_id
    return device.device_id


class DeviceAuthorizationResource(Resource):
    """Approves a device to join the tailnet when device approval is on."""

    type_name = "tailscale_device_authorization"
    description = (
        "The device_authorization resource is used to approve new devices before "
        "they can join the tailnet."
    )
    importable = True
    schema = {
        "device_id": Attribute(
            AttributeType.STRING, required=True, description=DEVICE_ID_DESCRIPTION
        ),
        "authorized": Attribute(
            AttributeType.BOOL,
            required=True,
            description="Whether or not the device is authorized",
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        device_id = data.get("device_id")
        if data.get("authorized"):
            with api_errors("Failed to authorize device"):
                await client.authorize_device(device_id)
        data.id = device_id
        await self.read(client, data)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch device"):
            device = await client.device(data.id)
        data.id = canonical_device_id(device, data.id)
        data.set("device_id", data.id)
        data.set("authorized", device.authorized)

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        """Authorize the device; authorization cannot be revoked."""
        device_id = data.get("device_id")
        with api_errors("Failed to fetch device"):
            device = await client.device(device_id)
        if device.authorized:
            data.set("authorized", True)
            return
        with api_errors("Failed to authorize device"):
            await client.authorize_device(device_id)
        data.set("authorized", True)
        await self.read(client, data)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        """Devices cannot be de-authorized, leave the device as it is."""


class DeviceTagsResource(Resource):
    """Tags applied to a device."""

    type_name = "tailscale_device_tags"
    description = "The device_tags resource is used to apply tags to Tailscale devices."
    importable = True
    schema = {
        "device_id": Attribute(
            AttributeType.STRING, required=True, description=DEVICE_ID_DESCRIPTION
        ),
        "tags": Attribute(
            AttributeType.SET,
            element=AttributeType.STRING,
            required=True,
            description="The tags to apply to the device",
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        device_id = data.get("device_id")
        with api_errors("Failed to set device tags"):
            await client.tag_device(device_id, tags=list(data.get("tags")))
        data.id = device_id
        await self.read(client, data)

    update = create

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch device"):
            device = await client.device(data.id)
        data.set("device_id", canonical_device_id(device, data.id))
        data.set("tags", device.tags)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to set device tags"):
            await client.tag_device(data.get("device_id"), tags=[])


class DeviceKeyResource(Resource):
    """Key expiry setting of a device."""

    type_name = "tailscale_device_key"
    description = (
        "The device_key resource allows you to update the properties of a "
        "device's key"
    )
    importable = True
    schema = {
        "device_id": Attribute(
            AttributeType.STRING, required=True, description=DEVICE_ID_DESCRIPTION
        ),
        "key_expiry_disabled": Attribute(
            AttributeType.BOOL,
            optional=True,
            description=(
                "Determines whether or not the device's key will expire. "
                "Defaults to `false`."
            ),
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        device_id = data.get("device_id")
        with api_errors("failed to update device key"):
            await client.set_device_key(
                device_id, key_expiry_disabled=data.get("key_expiry_disabled")
            )
        data.id = device_id
        await self.read(client, data)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch devices"):
            device = await client.device(data.id)
        data.set("device_id", canonical_device_id(device, data.id))
        data.set("key_expiry_disabled", device.key_expiry_disabled)

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("failed to update device key"):
            await client.set_device_key(
                data.get("device_id"),
                key_expiry_disabled=data.get("key_expiry_disabled"),
            )
        await self.read(client, data)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("failed to update device key"):
            await client.set_device_key(
                data.get("device_id"), key_expiry_disabled=False
            )


class DeviceSubnetRoutesResource(Resource):
    """Subnet routes enabled for a device.

    Importing takes the device id; the resource itself gets a fresh id.
    """

    type_name = "tailscale_device_subnet_routes"
    description = (
        "The device_subnet_routes resource allows you to configure enabled "
        "subnet routes for your Tailscale devices."
    )
    importable = True
    schema = {
        "device_id": Attribute(
            AttributeType.STRING, required=True, description=DEVICE_ID_DESCRIPTION
        ),
        "routes": Attribute(
            AttributeType.SET,
            element=AttributeType.STRING,
            required=True,
            description=(
                "The subnet routes that are enabled to be routed by a device. "
                "Routes can be enabled without a device advertising them "
                "(e.g. for preauth)."
            ),
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        await self._set_routes(client, data)
        data.id = create_uuid()
        await self.read(client, data)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch device subnet routes"):
            routes = await client.device_routes(data.get("device_id"))
        data.set("routes", routes.enabled)

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        await self._set_routes(client, data)
        await self.read(client, data)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to set device subnet routes"):
            await client.set_device_routes(data.get("device_id"), [])

    async def import_state(self, client: Tailscale, data: ResourceData) -> None:
        data.set("device_id", data.id)
        data.id = create_uuid()

    @staticmethod
    async def _set_routes(client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to set device subnet routes"):
            await client.set_device_routes(
                data.get("device_id"), list(data.get("routes"))
            )
