"""Data source exposing the current policy file."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..policy import format_policy
from ..schema import (
    Attribute,
    AttributeType,
    DataSource,
    ResourceData,
    api_errors,
    create_uuid,
)

if TYPE_CHECKING:
    from ..tailscale import Tailscale


class ACLDataSource(DataSource):
    """The tailnet policy file, compact and indented."""

    type_name = "tailscale_acl"
    description = "The acl data source gets the Tailscale ACL for a tailnet"
    schema = {
        "json": Attribute(
            AttributeType.STRING,
            computed=True,
            description="The contents of Tailscale ACL as JSON",
        ),
        "hujson": Attribute(
            AttributeType.STRING,
            computed=True,
            description="The contents of Tailscale ACL as indented JSON",
        ),
    }

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch ACL"):
            policy = await client.policy()
        data.set("json", format_policy(policy.document, indent=False))
        data.set("hujson", format_policy(policy.document))
        data.id = create_uuid()
