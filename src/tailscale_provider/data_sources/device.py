"""Data sources describing devices of the tailnet."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from ..const import LOGGER
from ..exceptions import DiagnosticError
from ..schema import (
    Attribute,
    AttributeType,
    DataSource,
    Diagnostic,
    ResourceData,
    Schema,
    Severity,
    api_errors,
    create_uuid,
    duration_greater_than,
    format_time,
    parse_duration,
)

if TYPE_CHECKING:
    from ..models import Device
    from ..tailscale import Tailscale

WAIT_FOR_INTERVAL = 1


def _computed(kind: AttributeType, description: str, **kwargs: Any) -> Attribute:
    return Attribute(kind, computed=True, description=description, **kwargs)


DEVICE_ATTRIBUTES: Schema = {
    "user": _computed(AttributeType.STRING, "The user associated with the device"),
    "node_id": _computed(
        AttributeType.STRING, "The preferred indentifier for a device."
    ),
    "addresses": _computed(
        AttributeType.LIST, "The list of device's IPs", element=AttributeType.STRING
    ),
    "tags": _computed(
        AttributeType.SET,
        "The tags applied to the device",
        element=AttributeType.STRING,
    ),
    "authorized": _computed(
        AttributeType.BOOL, "Whether the device is authorized to access the tailnet"
    ),
    "key_expiry_disabled": _computed(
        AttributeType.BOOL, "Whether the device's key expiry is disabled"
    ),
    "blocks_incoming_connections": _computed(
        AttributeType.BOOL, "Whether the device blocks incoming connections"
    ),
    "client_version": _computed(
        AttributeType.STRING, "The Tailscale client version running on the device"
    ),
    "created": _computed(AttributeType.STRING, "The creation time of the device"),
    "expires": _computed(AttributeType.STRING, "The expiry time of the device's key"),
    "is_external": _computed(
        AttributeType.BOOL, "Whether the device is marked as external"
    ),
    "last_seen": _computed(AttributeType.STRING, "The last seen time of the device"),
    "machine_key": _computed(AttributeType.STRING, "The machine key of the device"),
    "node_key": _computed(AttributeType.STRING, "The node key of the device"),
    "os": _computed(AttributeType.STRING, "The operating system of the device"),
    "update_available": _computed(
        AttributeType.BOOL, "Whether an update is available for the device"
    ),
    "tailnet_lock_error": _computed(
        AttributeType.STRING, "The tailnet lock error for the device, if any"
    ),
    "tailnet_lock_key": _computed(
        AttributeType.STRING, "The tailnet lock key for the device, if any"
    ),
}


def device_to_state(device: Device) -> dict[str, Any]:
    """Flatten a device into data source attributes."""
    return {
        "name": device.name,
        "hostname": device.hostname,
        "user": device.user,
        "node_id": device.node_id,
        "addresses": device.addresses,
        "tags": device.tags,
        "authorized": device.authorized,
        "key_expiry_disabled": device.key_expiry_disabled,
        "blocks_incoming_connections": device.blocks_incoming_connections,
        "client_version": device.client_version,
        "created": format_time(device.created),
        "expires": format_time(device.expires),
        "is_external": device.is_external,
        "last_seen": format_time(device.last_seen),
        "machine_key": device.machine_key,
        "node_key": device.node_key,
        "os": device.os,
        "update_available": device.update_available,
        "tailnet_lock_error": device.tailnet_lock_error,
        "tailnet_lock_key": device.tailnet_lock_key,
    }


class DeviceDataSource(DataSource):
    """A single device, looked up by full name or hostname.

    With ``wait_for`` set, a device that cannot be found yet is looked up
    again every second until it shows up or the duration has passed.
    """

    type_name = "tailscale_device"
    description = "The device data source describes a single device in a tailnet"
    schema = {
        "name": Attribute(
            AttributeType.STRING,
            optional=True,
            exactly_one_of=("name", "hostname"),
            description="The full name of the device (e.g. `hostname.domain.ts.net`)",
        ),
        "hostname": Attribute(
            AttributeType.STRING,
            optional=True,
            exactly_one_of=("name", "hostname"),
            description="The short hostname of the device",
        ),
        **DEVICE_ATTRIBUTES,
        "wait_for": Attribute(
            AttributeType.STRING,
            optional=True,
            validators=(duration_greater_than(WAIT_FOR_INTERVAL),),
            description=(
                "If specified, the provider will make multiple attempts to obtain "
                "the data source until the wait_for duration is reached. Retries "
                "are made every second so this value should be greater than 1s"
            ),
        ),
    }

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        try:
            await self._lookup(client, data)
        except DiagnosticError as exception:
            wait_for = data.get("wait_for")
            if not wait_for:
                raise
            last_error = exception
        else:
            return

        try:
            async with asyncio.timeout(parse_duration(wait_for)):
                while True:
                    LOGGER.debug(
                        "Device not available yet, retrying in %ss", WAIT_FOR_INTERVAL
                    )
                    await asyncio.sleep(WAIT_FOR_INTERVAL)
                    try:
                        await self._lookup(client, data)
                    except DiagnosticError as exception:
                        last_error = exception
                    else:
                        return
        except TimeoutError:
            raise last_error from None

    async def _lookup(self, client: Tailscale, data: ResourceData) -> None:
        if name := data.get("name"):
            field, wanted = "name", name
        else:
            field, wanted = "hostname", data.get("hostname")

        with api_errors("Failed to fetch devices"):
            devices = await client.devices()

        for device in devices.values():
            if getattr(device, field) == wanted:
                data.id = device.device_id
                for key, value in device_to_state(device).items():
                    data.set(key, value)
                return

        msg = f"Could not find device with {field}={wanted!r}"
        raise DiagnosticError([Diagnostic(severity=Severity.ERROR, summary=msg)])


class DevicesDataSource(DataSource):
    """All devices of the tailnet, optionally filtered."""

    type_name = "tailscale_devices"
    description = "The devices data source describes a list of devices in a tailnet"
    schema = {
        "filter": Attribute(
            AttributeType.BLOCK_SET,
            optional=True,
            description=(
                "Filters the device list to elements devices whose fields match "
                "the provided values."
            ),
            element={
                "name": Attribute(
                    AttributeType.STRING,
                    required=True,
                    description=(
                        "The name must be a top-level device property, e.g. "
                        "isEphemeral, tags, hostname, etc."
                    ),
                ),
                "values": Attribute(
                    AttributeType.SET,
                    required=True,
                    element=AttributeType.STRING,
                    description=(
                        "The list of values to filter for. Values are matched as "
                        "exact matches."
                    ),
                ),
            },
        ),
        "name_prefix": Attribute(
            AttributeType.STRING,
            optional=True,
            description=(
                "Filters the device list to elements whose name has the provided "
                "prefix"
            ),
        ),
        "devices": Attribute(
            AttributeType.BLOCK_LIST,
            computed=True,
            description="The list of devices in the tailnet",
            element={
                "name": _computed(
                    AttributeType.STRING,
                    "The full name of the device (e.g. `hostname.domain.ts.net`)",
                ),
                "hostname": _computed(
                    AttributeType.STRING, "The short hostname of the device"
                ),
                "id": _computed(
                    AttributeType.STRING,
                    "The legacy identifier of the device. Use node_id instead for "
                    "new resources.",
                ),
                **DEVICE_ATTRIBUTES,
            },
        ),
    }

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        filters: dict[str, list[str]] = {}
        for block in data.get("filter"):
            filters.setdefault(block["name"], []).extend(block["values"])

        with api_errors("Failed to fetch devices"):
            devices = await client.devices(filters)

        prefix = data.get("name_prefix")
        listed = []
        for device in devices.values():
            if prefix and not device.name.startswith(prefix):
                continue
            listed.append(device_to_state(device) | {"id": device.device_id})

        data.set("devices", listed)
        data.id = create_uuid()
