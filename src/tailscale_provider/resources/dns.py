"""DNS settings of the tailnet."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..const import LOGGER
from ..exceptions import DiagnosticError, TailscaleError
from ..models import (
    DNSConfiguration,
    DNSConfigurationPreferences,
    DNSConfigurationResolver,
)
from ..schema import (
    Attribute,
    AttributeType,
    Diagnostic,
    Resource,
    ResourceData,
    Severity,
    api_errors,
    create_uuid,
)

if TYPE_CHECKING:
    from ..tailscale import Tailscale

ALPHA_WARNING = (
    "The tailscale_dns_configuration resource is currently in alpha and subject "
    "to change, proceed with caution."
)

NAMESERVERS_DESCRIPTION = (
    "Devices on your network will use these nameservers to resolve DNS names. "
    "IPv4 or IPv6 addresses are accepted."
)


class DNSNameserversResource(Resource):
    """Global nameservers used by the devices of the tailnet."""

    type_name = "tailscale_dns_nameservers"
    description = (
        "The dns_nameservers resource allows you to configure DNS nameservers."
    )
    schema = {
        "nameservers": Attribute(
            AttributeType.LIST,
            element=AttributeType.STRING,
            required=True,
            min_items=1,
            description=NAMESERVERS_DESCRIPTION,
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to create dns nameservers"):
            await client.set_nameservers(data.get("nameservers"))
        data.id = create_uuid()
        await self.read(client, data)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch dns nameservers"):
            data.set("nameservers", await client.nameservers())

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        if data.has_change("nameservers"):
            with api_errors("Failed to update dns nameservers"):
                await client.set_nameservers(data.get("nameservers"))
        await self.read(client, data)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to set dns nameservers"):
            await client.set_nameservers([])


class DNSPreferencesResource(Resource):
    """MagicDNS switch of the tailnet."""

    type_name = "tailscale_dns_preferences"
    description = (
        "The dns_preferences resource allows you to configure DNS preferences."
    )
    schema = {
        "magic_dns": Attribute(
            AttributeType.BOOL,
            required=True,
            description="Whether or not to enable magic DNS",
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to set dns preferences"):
            await client.set_dns_preferences(magic_dns=data.get("magic_dns"))
        data.id = create_uuid()

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch dns preferences"):
            preferences = await client.dns_preferences()
        data.set("magic_dns", preferences.magic_dns)

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        if not data.has_change("magic_dns"):
            await self.read(client, data)
            return
        with api_errors("Failed to set dns preferences"):
            await client.set_dns_preferences(magic_dns=data.get("magic_dns"))

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to set dns preferences"):
            await client.set_dns_preferences(magic_dns=False)


class DNSSearchPathsResource(Resource):
    """Search domains handed to the devices of the tailnet."""

    type_name = "tailscale_dns_search_paths"
    description = (
        "The dns_search_paths resource allows you to configure DNS search "
        "paths."
    )
    importable = True
    schema = {
        "search_paths": Attribute(
            AttributeType.LIST,
            element=AttributeType.STRING,
            required=True,
            description=(
                "Devices on your network will use these domain suffixes to "
                "resolve DNS names."
            ),
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to set search paths"):
            await client.set_search_paths(data.get("search_paths"))
        data.id = create_uuid()
        await self.read(client, data)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch dns search paths"):
            data.set("search_paths", await client.search_paths())

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        if data.has_change("search_paths"):
            with api_errors("Failed to set search paths"):
                await client.set_search_paths(data.get("search_paths"))
        await self.read(client, data)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to set search paths"):
            await client.set_search_paths([])


class DNSSplitNameserversResource(Resource):
    """Nameservers for one split DNS domain, identified by the domain."""

    type_name = "tailscale_dns_split_nameservers"
    description = (
        "The dns_split_nameservers resource allows you to configure split DNS "
        "nameservers."
    )
    importable = True
    schema = {
        "domain": Attribute(
            AttributeType.STRING,
            required=True,
            force_new=True,
            description=(
                "Domain to configure split DNS for. Requests for this domain "
                "will be resolved using the provided nameservers."
            ),
        ),
        "nameservers": Attribute(
            AttributeType.SET,
            element=AttributeType.STRING,
            required=True,
            description=NAMESERVERS_DESCRIPTION,
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        domain = data.get("domain")
        with api_errors("Failed to set dns split nameservers"):
            await client.update_split_dns({domain: list(data.get("nameservers"))})
        data.id = domain

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch split DNS configs"):
            split_dns = await client.split_dns()
        data.set("domain", data.id)
        data.set("nameservers", split_dns.get(data.id, []))

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        if not data.has_change("nameservers"):
            await self.read(client, data)
            return
        await self.create(client, data)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to set dns split nameservers"):
            await client.update_split_dns({data.get("domain") or data.id: []})


def _resolver_block() -> dict[str, Attribute]:
    return {
        "address": Attribute(
            AttributeType.STRING,
            required=True,
            description="The nameserver's IPv4 or IPv6 address.",
        ),
        "use_with_exit_node": Attribute(
            AttributeType.BOOL,
            optional=True,
            default=False,
            description=(
                "This nameserver will continue to be used when an exit node "
                "is selected. Defaults to false."
            ),
        ),
    }


def _resolver_to_dict(resolver: DNSConfigurationResolver) -> dict[str, Any]:
    return {
        "address": resolver.address,
        "use_with_exit_node": resolver.use_with_exit_node,
    }


def _resolvers_from_blocks(
    blocks: list[dict[str, Any]],
) -> list[DNSConfigurationResolver]:
    return [
        DNSConfigurationResolver(
            address=block["address"],
            use_with_exit_node=bool(block.get("use_with_exit_node", False)),
        )
        for block in blocks
    ]


def update_nameservers(
    existing: list[dict[str, Any]], updates: list[DNSConfigurationResolver]
) -> list[dict[str, Any]]:
    """Merge remote nameservers into the remembered ones, keeping their order.

    Nameservers that still exist remotely stay where they were, with their
    remote settings. Nameservers that are new remotely are appended in the
    order the API returned them. Nameservers gone remotely are dropped.
    """
    remaining = list(updates)
    nameservers: list[dict[str, Any]] = []
    for nameserver in existing:
        for index, update in enumerate(remaining):
            if update.address == nameserver["address"]:
                nameservers.append(_resolver_to_dict(remaining.pop(index)))
                break
    nameservers.extend(_resolver_to_dict(update) for update in remaining)
    return nameservers


class DNSConfigurationResource(Resource):
    """The complete DNS configuration of the tailnet in one resource."""

    type_name = "tailscale_dns_configuration"
    description = (
        "The dns_configuration resource allows you to manage the complete DNS "
        "configuration for your Tailscale network."
    )
    importable = True
    schema = {
        "nameservers": Attribute(
            AttributeType.BLOCK_LIST,
            element=_resolver_block(),
            optional=True,
            description=(
                "Set the nameservers used by devices on your network to resolve "
                "DNS queries. `override_local_dns` must also be true to prefer "
                "these nameservers over local DNS configuration."
            ),
        ),
        "split_dns": Attribute(
            AttributeType.BLOCK_LIST,
            element={
                "domain": Attribute(
                    AttributeType.STRING,
                    required=True,
                    description="The nameservers will be used only for this domain.",
                ),
                "nameservers": Attribute(
                    AttributeType.BLOCK_LIST,
                    element=_resolver_block(),
                    required=True,
                    min_items=1,
                    description=(
                        "Set the nameservers used by devices on your network "
                        "to resolve DNS queries."
                    ),
                ),
            },
            optional=True,
            description=(
                "Set the nameservers used by devices on your network to resolve "
                "DNS queries on specific domains."
            ),
        ),
        "search_paths": Attribute(
            AttributeType.LIST,
            element=AttributeType.STRING,
            optional=True,
            description="Additional search domains.",
        ),
        "override_local_dns": Attribute(
            AttributeType.BOOL,
            optional=True,
            default=False,
            description=(
                "When enabled, use the configured DNS servers in `nameservers` "
                "to resolve names outside the tailnet. Defaults to false."
            ),
        ),
        "magic_dns": Attribute(
            AttributeType.BOOL,
            optional=True,
            default=True,
            description="Whether or not to enable MagicDNS. Defaults to true.",
        ),
        "magic_dns_name": Attribute(
            AttributeType.STRING,
            computed=True,
            description=(
                "The tailnet/MagicDNS domain name. Empty if disabled or "
                "undeterminable."
            ),
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        await self._set(client, data)
        data.id = create_uuid()
        await self.read(client, data)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch dns configuration"):
            configuration = await client.dns_configuration()

        nameservers = update_nameservers(
            data.get("nameservers"), configuration.nameservers
        )

        remote_split_dns = dict(configuration.split_dns)
        split_dns: list[dict[str, Any]] = []
        for block in data.get("split_dns"):
            domain = block["domain"]
            if domain in remote_split_dns:
                split_dns.append(
                    {
                        "domain": domain,
                        "nameservers": update_nameservers(
                            block.get("nameservers") or [],
                            remote_split_dns.pop(domain),
                        ),
                    }
                )
        split_dns.extend(
            {"domain": domain, "nameservers": update_nameservers([], resolvers)}
            for domain, resolvers in remote_split_dns.items()
        )

        magic_dns_name = ""
        if configuration.preferences.magic_dns:
            magic_dns_name = await self._magic_dns_name(client, data)

        data.set("nameservers", nameservers)
        data.set("split_dns", split_dns)
        data.set("search_paths", configuration.search_paths)
        data.set("override_local_dns", configuration.preferences.override_local_dns)
        data.set("magic_dns", configuration.preferences.magic_dns)
        data.set("magic_dns_name", magic_dns_name)

        if not data.diagnostics:
            data.warn(ALPHA_WARNING)

    @staticmethod
    async def _magic_dns_name(client: Tailscale, data: ResourceData) -> str:
        """Derive the tailnet domain from the name of the first device."""
        try:
            devices = await client.devices()
        except TailscaleError as exception:
            LOGGER.debug("Could not list devices: %s", exception)
            data.warn(
                "There is a MagicDNS name, but we failed to get devices",
                str(exception),
            )
            return ""
        if not devices:
            data.warn(
                "There is a MagicDNS name, but we can't determine it with 0 devices"
            )
            return ""

        first = next(iter(devices.values()))
        parts = first.name.split(".")
        if len(parts) != 4:
            raise DiagnosticError(
                [
                    Diagnostic(
                        severity=Severity.ERROR,
                        summary=(
                            "There is a MagicDNS name, but unexpected device "
                            "name format"
                        ),
                    )
                ]
            )
        return ".".join(parts[1:])

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        await self._set(client, data)
        await self.read(client, data)

    @staticmethod
    async def _set(client: Tailscale, data: ResourceData) -> None:
        configuration = DNSConfiguration(
            nameservers=_resolvers_from_blocks(data.get("nameservers")),
            search_paths=list(data.get("search_paths")),
            split_dns={
                block["domain"]: _resolvers_from_blocks(block.get("nameservers") or [])
                for block in data.get("split_dns")
            },
            preferences=DNSConfigurationPreferences(
                override_local_dns=data.get("override_local_dns"),
                magic_dns=data.get("magic_dns"),
            ),
        )
        with api_errors("Failed to set dns configuration"):
            await client.set_dns_configuration(configuration)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to delete dns configuration"):
            await client.set_dns_configuration(DNSConfiguration())
