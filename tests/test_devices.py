"""Asynchronous client for the Tailscale API."""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

import aiohttp
from aresponses import Response, ResponsesMockServer

from tailscale_provider import Tailscale
from tailscale_provider.models import Device

from . import API_HOST, DEVICE_BAT, DEVICE_PANGOLIN, json_response


async def test_get_devices(aresponses: ResponsesMockServer) -> None:
    """Test devices are keyed by id, in the order the API returned them."""

    async def response_handler(request: aiohttp.web.Request) -> Response:
        assert request.query["fields"] == "all"
        return json_response({"devices": [DEVICE_PANGOLIN, DEVICE_BAT]})

    aresponses.add(API_HOST, "/api/v2/tailnet/frenck/devices", "GET", response_handler)
    async with aiohttp.ClientSession() as session:
        tailscale = Tailscale(tailnet="frenck", api_key="abc", session=session)
        devices = await tailscale.devices()

    assert list(devices) == ["12345", "67890"]
    device = devices["12345"]
    assert isinstance(device, Device)
    assert device.node_id == "nTESTJ30"
    assert device.name == "pangolin.tailfe8c.ts.net"
    assert device.created == datetime(2022, 12, 1, 5, 23, 30, tzinfo=UTC)
    assert device.tags == ["tag:golink"]

    bat = devices["67890"]
    assert bat.created is None
    assert bat.tags == []
    assert bat.authorized is False


async def test_get_devices_with_filters(aresponses: ResponsesMockServer) -> None:
    """Test filters are sent as repeated query parameters."""

    async def response_handler(request: aiohttp.web.Request) -> Response:
        assert request.query.getall("tags") == ["tag:a", "tag:b"]
        assert request.query["isEphemeral"] == "true"
        return json_response({"devices": []})

    aresponses.add(API_HOST, "/api/v2/tailnet/-/devices", "GET", response_handler)
    async with aiohttp.ClientSession() as session:
        tailscale = Tailscale(api_key="abc", session=session)
        devices = await tailscale.devices(
            {"tags": ["tag:a", "tag:b"], "isEphemeral": ["true"]}
        )
    assert devices == {}


async def test_get_device(aresponses: ResponsesMockServer) -> None:
    """Test a single device is fetched by id."""
    aresponses.add(
        API_HOST, "/api/v2/device/nTESTJ30", "GET", json_response(DEVICE_PANGOLIN)
    )
    async with aiohttp.ClientSession() as session:
        tailscale = Tailscale(api_key="abc", session=session)
        device = await tailscale.device("nTESTJ30")
    assert device.device_id == "12345"
    assert device.key_expiry_disabled is True


async def test_device_settings(aresponses: ResponsesMockServer) -> None:
    """Test authorization, tags and key settings are posted to the device."""
    payloads: dict[str, object] = {}

    def recorder(name: str) -> Callable[[aiohttp.web.Request], Awaitable[Response]]:
        async def response_handler(request: aiohttp.web.Request) -> Response:
            payloads[name] = await request.json()
            return aresponses.Response(status=200, text="")

        return response_handler

    for name in ("authorized", "tags", "key"):
        aresponses.add(
            API_HOST, f"/api/v2/device/12345/{name}", "POST", recorder(name)
        )

    async with aiohttp.ClientSession() as session:
        tailscale = Tailscale(api_key="abc", session=session)
        await tailscale.authorize_device("12345")
        await tailscale.tag_device("12345", tags=["tag:server"])
        await tailscale.set_device_key("12345", key_expiry_disabled=True)

    assert payloads == {
        "authorized": {"authorized": True},
        "tags": {"tags": ["tag:server"]},
        "key": {"keyExpiryDisabled": True},
    }


async def test_device_routes(aresponses: ResponsesMockServer) -> None:
    """Test subnet routes are read and replaced."""
    aresponses.add(
        API_HOST,
        "/api/v2/device/12345/routes",
        "GET",
        json_response(
            {"advertisedRoutes": ["10.0.0.0/16"], "enabledRoutes": None}
        ),
    )

    async def response_handler(request: aiohttp.web.Request) -> Response:
        assert await request.json() == {"routes": ["10.0.0.0/16"]}
        return json_response(
            {"advertisedRoutes": ["10.0.0.0/16"], "enabledRoutes": ["10.0.0.0/16"]}
        )

    aresponses.add(API_HOST, "/api/v2/device/12345/routes", "POST", response_handler)

    async with aiohttp.ClientSession() as session:
        tailscale = Tailscale(api_key="abc", session=session)
        routes = await tailscale.device_routes("12345")
        assert routes.advertised == ["10.0.0.0/16"]
        assert routes.enabled == []

        routes = await tailscale.set_device_routes("12345", ["10.0.0.0/16"])
        assert routes.enabled == ["10.0.0.0/16"]


async def test_delete_device(aresponses: ResponsesMockServer) -> None:
    """Test deleting a device."""
    aresponses.add(
        API_HOST,
        "/api/v2/device/12345",
        "DELETE",
        aresponses.Response(status=200, text=""),
    )
    async with aiohttp.ClientSession() as session:
        tailscale = Tailscale(api_key="abc", session=session)
        await tailscale.delete_device("12345")
