"""Tests for the data sources."""

import ipaddress

import aiohttp
import pytest
from aresponses import Response, ResponsesMockServer

from tailscale_provider import Tailscale
from tailscale_provider.data_sources import device as device_module
from tailscale_provider.data_sources.acl import ACLDataSource
from tailscale_provider.data_sources.device import DeviceDataSource, DevicesDataSource
from tailscale_provider.data_sources.user import UserDataSource, UsersDataSource
from tailscale_provider.data_sources.via6 import Via6DataSource, map_via
from tailscale_provider.exceptions import DiagnosticError
from tailscale_provider.schema import ResourceData, validate_config

from . import API_HOST, DEVICE_BAT, DEVICE_PANGOLIN, json_response

DEVICES = {"devices": [DEVICE_PANGOLIN, DEVICE_BAT]}

USER_AMELIE = {
    "id": "u123",
    "displayName": "Amelie",
    "loginName": "amelie@example.com",
    "profilePicUrl": "",
    "tailnetId": "t123",
    "created": "2022-12-01T05:23:30Z",
    "type": "member",
    "role": "owner",
    "status": "active",
    "deviceCount": 2,
    "lastSeen": "",
    "currentlyConnected": True,
}
USER_PANGOLIN = USER_AMELIE | {
    "id": "u456",
    "loginName": "pangolin@example.com",
    "role": "member",
}


@pytest.mark.parametrize(
    ("site", "cidr", "expected"),
    [
        (7, "10.1.1.0/24", "fd7a:115c:a1e0:b1a:0:7:a01:100/120"),
        (0, "192.168.0.1/32", "fd7a:115c:a1e0:b1a:0:0:c0a8:1/128"),
        (65535, "10.0.0.0/8", "fd7a:115c:a1e0:b1a:0:ffff:a00:0/104"),
    ],
)
def test_map_via(site: int, cidr: str, expected: str) -> None:
    """Test IPv4 prefixes are mapped into the 4via6 range."""
    assert map_via(site, cidr) == ipaddress.IPv6Interface(expected)


@pytest.mark.parametrize(
    ("site", "cidr"), [(65536, "10.0.0.0/8"), (-1, "10.0.0.0/8"), (1, "fd00::/64")]
)
def test_map_via_invalid(site: int, cidr: str) -> None:
    """Test out of range sites and IPv6 prefixes are rejected."""
    with pytest.raises(ValueError):
        map_via(site, cidr)


async def test_via6_data_source_ipv6_cidr(client: Tailscale) -> None:
    """Test an IPv6 prefix results in a diagnostic."""
    data_source = Via6DataSource()
    data = ResourceData(data_source.schema, config={"site": 1, "cidr": "fd00::/64"})
    with pytest.raises(DiagnosticError, match="Failed to map 4via6 address"):
        await data_source.read(client, data)


def test_via6_site_range() -> None:
    """Test the site has to fit in 16 bits."""
    diagnostics = validate_config(
        Via6DataSource.schema, {"site": 65536, "cidr": "10.0.0.0/8"}
    )
    assert [d.path for d in diagnostics] == [("site",)]


@pytest.mark.parametrize(
    "config",
    [{"name": "pangolin.tailfe8c.ts.net"}, {"hostname": "pangolin"}],
)
async def test_device_lookup(
    aresponses: ResponsesMockServer, client: Tailscale, config: dict[str, str]
) -> None:
    """Test a device is found by its full name or its hostname."""
    aresponses.add(
        API_HOST, "/api/v2/tailnet/frenck/devices", "GET", json_response(DEVICES)
    )
    data_source = DeviceDataSource()
    data = ResourceData(data_source.schema, config=config)
    await data_source.read(client, data)
    assert data.id == "12345"
    assert data.get("node_id") == "nTESTJ30"
    assert data.get("name") == "pangolin.tailfe8c.ts.net"
    assert data.get("hostname") == "pangolin"
    assert data.get("created") == "2022-12-01T05:23:30Z"
    assert data.get("tags") == ["tag:golink"]


def test_device_name_or_hostname() -> None:
    """Test exactly one of name and hostname is required."""
    diagnostics = validate_config(
        DeviceDataSource.schema, {"name": "pangolin", "hostname": "pangolin"}
    )
    assert len(diagnostics) == 1
    assert "exactly one of" in diagnostics[0].summary
    assert validate_config(DeviceDataSource.schema, {})


def test_device_wait_for_minimum() -> None:
    """Test wait_for has to be longer than the retry interval."""
    diagnostics = validate_config(
        DeviceDataSource.schema, {"hostname": "pangolin", "wait_for": "500ms"}
    )
    assert [d.path for d in diagnostics] == [("wait_for",)]


async def test_device_not_found(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test a missing device without wait_for fails right away."""
    aresponses.add(
        API_HOST, "/api/v2/tailnet/frenck/devices", "GET", json_response(DEVICES)
    )
    data_source = DeviceDataSource()
    data = ResourceData(data_source.schema, config={"hostname": "aardvark"})
    with pytest.raises(
        DiagnosticError, match="Could not find device with hostname='aardvark'"
    ):
        await data_source.read(client, data)


async def test_device_wait_for(
    aresponses: ResponsesMockServer,
    client: Tailscale,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test the lookup is retried until the device shows up."""
    monkeypatch.setattr(device_module, "WAIT_FOR_INTERVAL", 0)
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/devices",
        "GET",
        json_response({"devices": [DEVICE_BAT]}),
    )
    aresponses.add(
        API_HOST, "/api/v2/tailnet/frenck/devices", "GET", json_response(DEVICES)
    )
    data_source = DeviceDataSource()
    data = ResourceData(
        data_source.schema, config={"hostname": "pangolin", "wait_for": "5s"}
    )
    await data_source.read(client, data)
    assert data.id == "12345"


async def test_devices_filters(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test filters are sent to the API and the name prefix is applied locally."""

    async def response_handler(request: aiohttp.web.Request) -> Response:
        assert request.query.getall("tags") == ["tag:golink", "tag:server"]
        assert request.query["fields"] == "all"
        return json_response(DEVICES)

    aresponses.add(
        API_HOST, "/api/v2/tailnet/frenck/devices", "GET", response_handler
    )
    data_source = DevicesDataSource()
    data = ResourceData(
        data_source.schema,
        config={
            "filter": [{"name": "tags", "values": ["tag:golink", "tag:server"]}],
            "name_prefix": "bat",
        },
    )
    await data_source.read(client, data)
    devices = data.get("devices")
    assert [device["id"] for device in devices] == ["67890"]
    assert devices[0]["created"] == ""
    assert devices[0]["tags"] == []
    assert data.id


async def test_acl_data_source(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test the policy is exposed compact and indented."""
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/acl",
        "GET",
        json_response({"acls": [], "tagOwners": {"tag:a": ["autogroup:admin"]}}),
    )
    data_source = ACLDataSource()
    data = ResourceData(data_source.schema, config={})
    await data_source.read(client, data)
    assert data.get("json") == '{"acls":[],"tagOwners":{"tag:a":["autogroup:admin"]}}'
    assert data.get("hujson").startswith('{\n  "acls": [],\n  "tagOwners": {')


async def test_user_by_id(aresponses: ResponsesMockServer, client: Tailscale) -> None:
    """Test a user is looked up by id."""
    aresponses.add(API_HOST, "/api/v2/users/u123", "GET", json_response(USER_AMELIE))
    data_source = UserDataSource()
    data = ResourceData(data_source.schema, config={"id": "u123"})
    await data_source.read(client, data)
    assert data.id == "u123"
    assert data.get("login_name") == "amelie@example.com"
    assert data.get("created") == "2022-12-01T05:23:30Z"
    assert data.get("last_seen") == ""
    assert data.get("device_count") == 2


async def test_user_by_login_name(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test a user is looked up by login name."""
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/users",
        "GET",
        json_response({"users": [USER_AMELIE, USER_PANGOLIN]}),
    )
    data_source = UserDataSource()
    data = ResourceData(
        data_source.schema, config={"login_name": "pangolin@example.com"}
    )
    await data_source.read(client, data)
    assert data.id == "u456"
    assert data.get("id") == "u456"
    assert data.get("role") == "member"


async def test_user_not_found(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test an unknown login name is reported."""
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/users",
        "GET",
        json_response({"users": [USER_AMELIE]}),
    )
    data_source = UserDataSource()
    data = ResourceData(
        data_source.schema, config={"login_name": "nobody@example.com"}
    )
    with pytest.raises(
        DiagnosticError, match="Could not find user with login name nobody@example.com"
    ):
        await data_source.read(client, data)


async def test_users_filters(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test the type and role filters are passed on."""

    async def response_handler(request: aiohttp.web.Request) -> Response:
        assert dict(request.query) == {"role": "member"}
        return json_response({"users": [USER_PANGOLIN]})

    aresponses.add(API_HOST, "/api/v2/tailnet/frenck/users", "GET", response_handler)
    data_source = UsersDataSource()
    data = ResourceData(data_source.schema, config={"role": "member"})
    await data_source.read(client, data)
    assert [user["login_name"] for user in data.get("users")] == [
        "pangolin@example.com"
    ]


def test_users_role_must_be_known() -> None:
    """Test unknown roles are rejected."""
    diagnostics = validate_config(UsersDataSource.schema, {"role": "emperor"})
    assert [d.path for d in diagnostics] == [("role",)]
