"""Tests for the policy file and DNS resources."""

import aiohttp
import pytest
from aresponses import Response, ResponsesMockServer

from tailscale_provider import Tailscale
from tailscale_provider.exceptions import DiagnosticError
from tailscale_provider.models import DNSConfigurationResolver
from tailscale_provider.resources.acl import ACLResource
from tailscale_provider.resources.dns import (
    ALPHA_WARNING,
    DNSConfigurationResource,
    DNSNameserversResource,
    DNSPreferencesResource,
    DNSSearchPathsResource,
    DNSSplitNameserversResource,
    update_nameservers,
)
from tailscale_provider.schema import ResourceData, validate_config

from . import API_HOST, DEVICE_PANGOLIN, json_response

POLICY = {"acls": [{"action": "accept", "src": ["*"], "dst": ["*:*"]}]}
POLICY_TEXT = """
// Allow everything
{"ACLs": [{"Action": "accept", "src": ["*"], "dst": ["*:*"]}]}
"""

DNS_CONFIGURATION = {
    "nameservers": [
        {"address": "8.8.8.8", "useWithExitNode": True},
        {"address": "9.9.9.9"},
    ],
    "searchPaths": ["example.com"],
    "splitDNS": {
        "corp.example.com": [{"address": "10.0.0.53"}],
        "lab.example.com": None,
    },
    "preferences": {"overrideLocalDNS": True, "magicDNS": True},
}


async def test_acl_create(aresponses: ResponsesMockServer, client: Tailscale) -> None:
    """Test the policy is only written over the default policy."""

    async def response_handler(request: aiohttp.web.Request) -> Response:
        assert request.headers["If-Match"] == '"ts-default"'
        assert await request.json() == {
            "ACLs": [{"Action": "accept", "src": ["*"], "dst": ["*:*"]}]
        }
        return json_response(POLICY)

    aresponses.add(API_HOST, "/api/v2/tailnet/frenck/acl", "POST", response_handler)

    resource = ACLResource()
    data = ResourceData(resource.schema, config={"acl": POLICY_TEXT})
    await resource.create(client, data)
    assert data.id


async def test_acl_create_over_existing_policy(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test overwriting a customized policy asks for an import instead."""
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/acl",
        "POST",
        json_response({"message": "precondition failed"}, status=412),
    )

    resource = ACLResource()
    data = ResourceData(resource.schema, config={"acl": POLICY_TEXT})
    with pytest.raises(DiagnosticError) as excinfo:
        await resource.create(client, data)

    diagnostic = excinfo.value.diagnostics[0]
    assert diagnostic.summary == "Failed to set ACL"
    assert "import tailscale_acl acl" in diagnostic.detail
    assert "precondition failed (412)" in diagnostic.detail
    assert not data.id


async def test_acl_read_keeps_equivalent_text(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test the local text survives a refresh when it means the same policy."""
    aresponses.add(API_HOST, "/api/v2/tailnet/frenck/acl", "GET", json_response(POLICY))

    resource = ACLResource()
    data = ResourceData(resource.schema, resource_id="acl", state={"acl": POLICY_TEXT})
    await resource.read(client, data)
    assert data.get("acl") == POLICY_TEXT


async def test_acl_read_remote_change(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test a changed remote policy replaces the state as indented JSON."""
    remote = {"acls": [], "groups": {"group:eng": ["a@example.com"]}}
    aresponses.add(API_HOST, "/api/v2/tailnet/frenck/acl", "GET", json_response(remote))

    resource = ACLResource()
    data = ResourceData(resource.schema, resource_id="acl", state={"acl": POLICY_TEXT})
    await resource.read(client, data)
    assert data.get("acl") == (
        '{\n  "acls": [],\n  "groups": {\n    "group:eng": [\n'
        '      "a@example.com"\n    ]\n  }\n}'
    )


async def test_acl_update_without_change(client: Tailscale) -> None:
    """Test an equivalent policy is not sent again."""
    resource = ACLResource()
    data = ResourceData(
        resource.schema,
        resource_id="acl",
        state={"acl": '{"acls": [{"action": "accept", "src": ["*"], "dst": ["*:*"]}]}'},
        config={"acl": POLICY_TEXT},
    )
    await resource.update(client, data)


def test_update_nameservers_keeps_order() -> None:
    """Test remembered nameservers keep their place, new ones are appended."""
    existing = [
        {"address": "1.1.1.1", "use_with_exit_node": False},
        {"address": "9.9.9.9", "use_with_exit_node": False},
        {"address": "8.8.8.8", "use_with_exit_node": False},
    ]
    updates = [
        DNSConfigurationResolver(address="8.8.8.8", use_with_exit_node=True),
        DNSConfigurationResolver(address="9.9.9.9"),
        DNSConfigurationResolver(address="4.4.4.4"),
    ]
    assert update_nameservers(existing, updates) == [
        {"address": "9.9.9.9", "use_with_exit_node": False},
        {"address": "8.8.8.8", "use_with_exit_node": True},
        {"address": "4.4.4.4", "use_with_exit_node": False},
    ]


def test_update_nameservers_duplicates() -> None:
    """Test duplicate addresses are matched one by one."""
    existing = [{"address": "8.8.8.8"}, {"address": "8.8.8.8"}]
    updates = [
        DNSConfigurationResolver(address="8.8.8.8"),
        DNSConfigurationResolver(address="8.8.8.8", use_with_exit_node=True),
    ]
    assert update_nameservers(existing, updates) == [
        {"address": "8.8.8.8", "use_with_exit_node": False},
        {"address": "8.8.8.8", "use_with_exit_node": True},
    ]


async def test_dns_configuration_read(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test the configuration is reconciled with the remembered order."""
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/dns/configuration",
        "GET",
        json_response(DNS_CONFIGURATION),
    )
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/devices",
        "GET",
        json_response({"devices": [DEVICE_PANGOLIN]}),
    )

    resource = DNSConfigurationResource()
    data = ResourceData(
        resource.schema,
        resource_id="dns",
        state={
            "nameservers": [{"address": "9.9.9.9"}, {"address": "8.8.8.8"}],
            "split_dns": [
                {"domain": "lab.example.com", "nameservers": []},
            ],
        },
    )
    await resource.read(client, data)

    assert data.get("nameservers") == [
        {"address": "9.9.9.9", "use_with_exit_node": False},
        {"address": "8.8.8.8", "use_with_exit_node": True},
    ]
    assert data.get("split_dns") == [
        {"domain": "lab.example.com", "nameservers": []},
        {
            "domain": "corp.example.com",
            "nameservers": [{"address": "10.0.0.53", "use_with_exit_node": False}],
        },
    ]
    assert data.get("search_paths") == ["example.com"]
    assert data.get("override_local_dns") is True
    assert data.get("magic_dns") is True
    assert data.get("magic_dns_name") == "tailfe8c.ts.net"
    assert [d.summary for d in data.diagnostics] == [ALPHA_WARNING]


async def test_dns_configuration_read_without_devices(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test the MagicDNS name stays empty when no device reveals it."""
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/dns/configuration",
        "GET",
        json_response(DNS_CONFIGURATION),
    )
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/devices",
        "GET",
        json_response({"devices": []}),
    )

    resource = DNSConfigurationResource()
    data = ResourceData(resource.schema, resource_id="dns")
    await resource.read(client, data)

    assert data.get("magic_dns_name") == ""
    assert [d.summary for d in data.diagnostics] == [
        "There is a MagicDNS name, but we can't determine it with 0 devices"
    ]


async def test_dns_configuration_unexpected_device_name(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test a device name without the tailnet domain is an error."""
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/dns/configuration",
        "GET",
        json_response(DNS_CONFIGURATION),
    )
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/devices",
        "GET",
        json_response({"devices": [DEVICE_PANGOLIN | {"name": "pangolin"}]}),
    )

    resource = DNSConfigurationResource()
    data = ResourceData(resource.schema, resource_id="dns")
    with pytest.raises(DiagnosticError, match="unexpected device name format"):
        await resource.read(client, data)


async def test_dns_configuration_create_and_delete(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test the whole configuration is posted, and emptied on delete."""
    posted: list[dict[str, object]] = []

    async def response_handler(request: aiohttp.web.Request) -> Response:
        posted.append(await request.json())
        return aresponses.Response(status=200, text="")

    aresponses.add(
        API_HOST, "/api/v2/tailnet/frenck/dns/configuration", "POST", response_handler
    )
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/dns/configuration",
        "GET",
        json_response(
            {
                "nameservers": [{"address": "8.8.8.8"}],
                "preferences": {"magicDNS": False},
            }
        ),
    )
    aresponses.add(
        API_HOST, "/api/v2/tailnet/frenck/dns/configuration", "POST", response_handler
    )

    resource = DNSConfigurationResource()
    data = ResourceData(
        resource.schema,
        config={
            "nameservers": [{"address": "8.8.8.8"}],
            "split_dns": [
                {
                    "domain": "corp.example.com",
                    "nameservers": [{"address": "10.0.0.53"}],
                }
            ],
            "magic_dns": False,
        },
    )
    await resource.create(client, data)
    assert data.id
    assert data.get("magic_dns_name") == ""
    await resource.delete(client, data)

    assert posted == [
        {
            "nameservers": [{"address": "8.8.8.8", "useWithExitNode": False}],
            "searchPaths": [],
            "splitDNS": {
                "corp.example.com": [{"address": "10.0.0.53", "useWithExitNode": False}]
            },
            "preferences": {"overrideLocalDNS": False, "magicDNS": False},
        },
        {
            "nameservers": [],
            "searchPaths": [],
            "splitDNS": {},
            "preferences": {"overrideLocalDNS": False, "magicDNS": False},
        },
    ]


async def test_split_nameservers(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test split DNS is patched per domain and read back by domain."""
    patches: list[dict[str, object]] = []

    async def response_handler(request: aiohttp.web.Request) -> Response:
        patches.append(await request.json())
        return json_response({})

    aresponses.add(
        API_HOST, "/api/v2/tailnet/frenck/dns/split-dns", "PATCH", response_handler
    )
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/dns/split-dns",
        "GET",
        json_response({"corp.example.com": ["10.0.0.53"], "other.com": None}),
    )
    aresponses.add(
        API_HOST, "/api/v2/tailnet/frenck/dns/split-dns", "PATCH", response_handler
    )

    resource = DNSSplitNameserversResource()
    data = ResourceData(
        resource.schema,
        config={"domain": "corp.example.com", "nameservers": ["10.0.0.53"]},
    )
    await resource.create(client, data)
    assert data.id == "corp.example.com"

    data = ResourceData(resource.schema, resource_id="corp.example.com")
    await resource.read(client, data)
    assert data.get("domain") == "corp.example.com"
    assert data.get("nameservers") == ["10.0.0.53"]

    await resource.delete(client, data)
    assert patches == [
        {"corp.example.com": ["10.0.0.53"]},
        {"corp.example.com": []},
    ]


async def test_dns_nameservers(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test nameservers are set, read back and cleared on delete."""
    payloads: list[dict[str, list[str]]] = []

    async def response_handler(request: aiohttp.web.Request) -> Response:
        payloads.append(await request.json())
        return json_response({})

    path = "/api/v2/tailnet/frenck/dns/nameservers"
    aresponses.add(API_HOST, path, "POST", response_handler)
    aresponses.add(API_HOST, path, "GET", json_response({"dns": ["8.8.8.8"]}))
    aresponses.add(API_HOST, path, "POST", response_handler)

    resource = DNSNameserversResource()
    data = ResourceData(resource.schema, config={"nameservers": ["8.8.8.8"]})
    await resource.create(client, data)
    assert data.get("nameservers") == ["8.8.8.8"]

    await resource.delete(client, ResourceData(resource.schema, resource_id=data.id))
    assert payloads == [{"dns": ["8.8.8.8"]}, {"dns": []}]


def test_dns_nameservers_needs_one() -> None:
    """Test at least one nameserver is required."""
    diagnostics = validate_config(DNSNameserversResource.schema, {"nameservers": []})
    assert diagnostics[0].summary == "Attribute requires 1 item minimum"


async def test_dns_preferences(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test MagicDNS is switched on and off again on delete."""
    payloads: list[dict[str, bool]] = []

    async def response_handler(request: aiohttp.web.Request) -> Response:
        payloads.append(await request.json())
        return json_response({})

    path = "/api/v2/tailnet/frenck/dns/preferences"
    aresponses.add(API_HOST, path, "POST", response_handler)
    aresponses.add(API_HOST, path, "GET", json_response({"magicDNS": True}))
    aresponses.add(API_HOST, path, "POST", response_handler)

    resource = DNSPreferencesResource()
    data = ResourceData(resource.schema, config={"magic_dns": True})
    await resource.create(client, data)

    prior = ResourceData(resource.schema, resource_id=data.id)
    await resource.read(client, prior)
    assert prior.get("magic_dns") is True

    await resource.delete(client, prior)
    assert payloads == [{"magicDNS": True}, {"magicDNS": False}]


async def test_dns_search_paths_update(
    aresponses: ResponsesMockServer, client: Tailscale
) -> None:
    """Test search paths are only sent when they changed."""
    path = "/api/v2/tailnet/frenck/dns/searchpaths"
    aresponses.add(
        API_HOST, path, "GET", json_response({"searchPaths": ["example.com"]})
    )

    resource = DNSSearchPathsResource()
    data = ResourceData(
        resource.schema,
        resource_id="paths",
        state={"search_paths": ["example.com"]},
        config={"search_paths": ["example.com"]},
    )
    await resource.update(client, data)
    assert data.get("search_paths") == ["example.com"]
