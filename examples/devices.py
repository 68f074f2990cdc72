# pylint: disable=W0621
"""Look up devices of a tailnet through the provider's data sources."""

import asyncio
import os

from tailscale_provider import Provider

API_KEY = os.environ.get("TAILSCALE_API_KEY", "tskey-somethingsomething")
TAILNET = os.environ.get("TAILSCALE_TAILNET", "-")  # "-" is the default tailnet


async def main() -> None:
    """Show example on reading data sources."""
    async with Provider() as provider:
        provider.configure(api_key=API_KEY, tailnet=TAILNET)

        devices = await provider.read_data_source(
            "tailscale_devices", {"filter": [{"name": "os", "values": ["linux"]}]}
        )
        for device in devices.attributes["devices"]:
            print(device["name"], device["addresses"])

        pangolin = await provider.read_data_source(
            "tailscale_device", {"hostname": "pangolin", "wait_for": "30s"}
        )
        print(pangolin.attributes["node_id"])

        via = await provider.read_data_source(
            "tailscale_4via6", {"site": 7, "cidr": "10.1.1.0/24"}
        )
        print(via.attributes["ipv6"])


if __name__ == "__main__":
    asyncio.run(main())
