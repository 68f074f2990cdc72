"""Tests for policy file parsing and the policy endpoints."""

import aiohttp
import pytest
from aresponses import Response, ResponsesMockServer

from tailscale_provider import Tailscale
from tailscale_provider.policy import (
    PolicyError,
    canonicalize,
    format_policy,
    parse_policy,
    same_policy,
)

from . import API_HOST, json_response

HUJSON_POLICY = """
// Example policy
{
  "groups": {
    "group:eng": ["alice@example.com", "bob@example.com",], // trailing comma
  },
  /* block
     comment */
  "ACLs": [
    {"Action": "accept", "src": ["group:eng"], "dst": ["*:22"]},
  ],
}
"""


def test_parse_policy() -> None:
    """Test a HuJSON policy is parsed into a document."""
    document = parse_policy(HUJSON_POLICY)
    assert document["groups"] == {"group:eng": ["alice@example.com", "bob@example.com"]}
    assert document["ACLs"][0]["Action"] == "accept"


def test_parse_policy_keeps_strings() -> None:
    """Test comment markers inside strings are not comments."""
    document = parse_policy('{"hosts": {"web": "http://x // y"},}')
    assert document == {"hosts": {"web": "http://x // y"}}


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ('{"acls": [', "Unexpected"),
        ("[]", "policy must be a JSON object"),
        ('{"unknownField": true}', 'unknown field "unknownField"'),
        ('{"acls": "unterminated', "Unexpected"),
        ('{"acls": [] /* open', "Unexpected"),
        (
            '{"acls": [{"action": "accept", "dts": ["*:*"]}]}',
            'unknown field "dts" in "acls"',
        ),
        (
            '{"grants": [{"src": ["*"], "Dest": ["*"]}]}',
            'unknown field "Dest" in "grants"',
        ),
        ('{"ssh": [{"action": "check", "period": "12h"}]}', 'unknown field "period"'),
        ('{"nodeAttrs": [{"target": ["*"], "attrs": []}]}', 'unknown field "attrs"'),
        (
            '{"tests": [{"src": "a", "allow": [], "accepts": []}]}',
            'unknown field "accepts"',
        ),
        ('{"sshTests": [{"src": "a", "dst": [], "user": []}]}', 'unknown field "user"'),
        ('{"acls": {}}', '"acls" must be a list of objects'),
        ("{acls: []}", "invalid character 'a'"),
        ('{"acls": [], \'groups\': {}}', "invalid character"),
        ('{"randomizeClientPort": 0x1}', "invalid character '0'"),
        ('{"disableIPv4": NaN}', "invalid character 'N'"),
    ],
)
def test_parse_policy_errors(text: str, message: str) -> None:
    """Test invalid policies are rejected with a useful message."""
    with pytest.raises(PolicyError, match=message):
        parse_policy(text)


def test_same_policy_ignores_case_and_empty_fields() -> None:
    """Test field name case and empty sections do not make a difference."""
    local = parse_policy(HUJSON_POLICY)
    remote = {
        "acls": [{"action": "accept", "src": ["group:eng"], "dst": ["*:22"]}],
        "groups": {"group:eng": ["alice@example.com", "bob@example.com"]},
        "tagOwners": {},
        "ssh": [],
    }
    assert same_policy(local, remote)


def test_same_policy_detects_changes() -> None:
    """Test a changed rule is a different policy."""
    local = parse_policy(HUJSON_POLICY)
    remote = {
        "acls": [{"action": "accept", "src": ["group:eng"], "dst": ["*:443"]}],
        "groups": {"group:eng": ["alice@example.com", "bob@example.com"]},
    }
    assert not same_policy(local, remote)


def test_canonicalize_keeps_user_keys() -> None:
    """Test keys of user data sections keep their case."""
    canonical = canonicalize({"Groups": {"group:Eng": ["a@example.com"]}})
    assert canonical == {"groups": {"group:Eng": ["a@example.com"]}}


def test_parse_policy_rule_fields_ignore_case() -> None:
    """Test known rule fields are accepted in any spelling."""
    document = parse_policy(
        '{"Grants": [{"SRC": ["*"], "Dst": ["*"], "IP": ["*"]}],'
        ' "ssh": [{"Action": "check", "checkPeriod": "12h"}]}'
    )
    assert document["Grants"][0]["IP"] == ["*"]


def test_canonicalize_keeps_user_keys_in_rule_sections() -> None:
    """Test only rule field names are folded, not keys holding user data."""
    canonical = canonicalize(
        {
            "grants": [
                {"Src": ["*"], "dst": ["*"], "App": {"example.com/Cap/Web": [{}]}}
            ],
            "autoApprovers": {"Routes": {"10.0.0.0/8": ["Tag:Router"]}},
        }
    )
    assert canonical == {
        "grants": [{"src": ["*"], "dst": ["*"], "app": {"example.com/Cap/Web": [{}]}}],
        "autoApprovers": {"routes": {"10.0.0.0/8": ["Tag:Router"]}},
    }
    assert not same_policy(
        {"grants": [{"src": ["*"], "app": {"example.com/cap/web": [{}]}}]},
        {"grants": [{"src": ["*"], "app": {"example.com/Cap/Web": [{}]}}]},
    )


def test_format_policy() -> None:
    """Test policies render compact or indented."""
    document = {"acls": [{"action": "accept"}]}
    assert format_policy(document, indent=False) == '{"acls":[{"action":"accept"}]}'
    assert format_policy(document) == (
        '{\n  "acls": [\n    {\n      "action": "accept"\n    }\n  ]\n}'
    )


async def test_get_policy(aresponses: ResponsesMockServer) -> None:
    """Test the policy is returned with its ETag."""
    aresponses.add(
        API_HOST,
        "/api/v2/tailnet/frenck/acl",
        "GET",
        json_response({"acls": []}, ETag='"abc123"'),
    )

    async with aiohttp.ClientSession() as session:
        tailscale = Tailscale(tailnet="frenck", api_key="abc", session=session)
        policy = await tailscale.policy()

    assert policy.document == {"acls": []}
    assert policy.etag == '"abc123"'


async def test_update_policy_with_etag(aresponses: ResponsesMockServer) -> None:
    """Test the ETag is sent as If-Match precondition."""

    async def response_handler(request: aiohttp.web.Request) -> Response:
        assert request.headers["If-Match"] == '"ts-default"'
        assert await request.json() == {"acls": [{"action": "accept"}]}
        return json_response({"acls": [{"action": "accept"}]}, ETag='"new"')

    aresponses.add(API_HOST, "/api/v2/tailnet/-/acl", "POST", response_handler)

    async with aiohttp.ClientSession() as session:
        tailscale = Tailscale(api_key="abc", session=session)
        policy = await tailscale.update_policy(
            {"acls": [{"action": "accept"}]}, etag='"ts-default"'
        )
    assert policy.etag == '"new"'


async def test_update_policy_without_etag(aresponses: ResponsesMockServer) -> None:
    """Test no precondition is sent without an ETag."""

    async def response_handler(request: aiohttp.web.Request) -> Response:
        assert "If-Match" not in request.headers
        return aresponses.Response(status=200, text="")

    aresponses.add(API_HOST, "/api/v2/tailnet/-/acl", "POST", response_handler)

    async with aiohttp.ClientSession() as session:
        tailscale = Tailscale(api_key="abc", session=session)
        policy = await tailscale.update_policy({"acls": []})
    assert policy.document == {"acls": []}
