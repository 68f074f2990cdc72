# pylint: disable=W0621
"""Manage the policy file of a tailnet."""

import asyncio

from tailscale_provider import Provider

POLICY = """
{
  // Allow everyone in the tailnet to reach everything.
  "acls": [
    {"action": "accept", "src": ["*"], "dst": ["*:*"]},
  ],
  "tagOwners": {
    "tag:environment-dev": ["group:dev"],
  },
}
"""


async def main() -> None:
    """Show example on planning and applying a policy file."""
    async with Provider() as provider:
        provider.configure(api_key="tskey-somethingsomething", tailnet="frenck")

        current = await provider.read_data_source("tailscale_acl", {})
        print(current.attributes["hujson"])

        imported = await provider.import_resource("tailscale_acl", "acl")
        plan = await provider.plan(
            "tailscale_acl",
            {"acl": POLICY},
            resource_id=imported.id,
            state=imported.attributes,
        )
        print(plan.action, sorted(plan.changes))

        applied = await provider.apply(
            "tailscale_acl",
            {"acl": POLICY},
            resource_id=imported.id,
            state=imported.attributes,
        )
        for diagnostic in applied.diagnostics:
            print(diagnostic.severity, diagnostic.summary)


if __name__ == "__main__":
    asyncio.run(main())
