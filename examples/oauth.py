#!/usr/bin/env python3
# pylint: disable=W0621
"""Manage an auth key with a provider that authenticates with OAuth."""

import asyncio

from tailscale_provider import Provider

KEY = {
    "reusable": True,
    "ephemeral": True,
    "tags": ["tag:ci"],
    "expiry": 3600,
}


async def main_oauth() -> None:
    """Show example on creating and replacing a tailnet key.

    The OAuth client id and secret are read from TAILSCALE_OAUTH_CLIENT_ID
    and TAILSCALE_OAUTH_CLIENT_SECRET.
    """
    async with Provider() as provider:
        provider.configure(scopes=["auth_keys"])

        created = await provider.apply("tailscale_tailnet_key", KEY)
        print(created.id, created.attributes["expires_at"])

        # Changing any setting of a key replaces it.
        replaced = await provider.apply(
            "tailscale_tailnet_key",
            KEY | {"expiry": 7200},
            resource_id=created.id,
            state=created.attributes,
        )
        print(replaced.id)

        await provider.delete("tailscale_tailnet_key", replaced.id, replaced.attributes)


if __name__ == "__main__":
    asyncio.run(main_oauth())
