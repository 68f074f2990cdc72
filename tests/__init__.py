"""Tests for the Tailscale provider."""

from typing import Any

import orjson
from aresponses import Response

API_HOST = "api.tailscale.com"

DEVICE_PANGOLIN: dict[str, Any] = {
    "addresses": ["100.71.74.78", "fd7a:115c:a1e0:ac82:4843:ca90:697d:c36e"],
    "id": "12345",
    "nodeId": "nTESTJ30",
    "user": "amelie@example.com",
    "name": "pangolin.tailfe8c.ts.net",
    "hostname": "pangolin",
    "clientVersion": "1.56.1",
    "updateAvailable": False,
    "os": "linux",
    "created": "2022-12-01T05:23:30Z",
    "lastSeen": "2022-12-01T05:23:30Z",
    "keyExpiryDisabled": True,
    "expires": "2023-07-30T04:44:05Z",
    "authorized": True,
    "isExternal": False,
    "machineKey": "mkey:test",
    "nodeKey": "nodekey:01234567890abcdef",
    "blocksIncomingConnections": False,
    "tags": ["tag:golink"],
    "tailnetLockError": "",
    "tailnetLockKey": "",
}

DEVICE_BAT: dict[str, Any] = {
    "addresses": ["100.71.70.69"],
    "id": "67890",
    "nodeId": "nBATJ30",
    "user": "pangolin@example.com",
    "name": "bat.tailfe8c.ts.net",
    "hostname": "bat",
    "os": "macOS",
    "created": "",
    "lastSeen": "2022-12-01T05:23:30Z",
    "tags": None,
    "authorized": False,
}


def json_response(data: Any, status: int = 200, **headers: str) -> Response:
    """Build a JSON response for the mocked Tailscale API."""
    return Response(
        status=status,
        headers={"Content-Type": "application/json", **headers},
        text=orjson.dumps(data).decode(),
    )
