"""Mapping of IPv4 subnets onto 4via6 IPv6 prefixes."""

from __future__ import annotations

import ipaddress
from typing import TYPE_CHECKING

from ..exceptions import DiagnosticError
from ..schema import (
    Attribute,
    AttributeType,
    DataSource,
    ResourceData,
    diagnostics_error,
    int_between,
    is_cidr,
)

if TYPE_CHECKING:
    from ..tailscale import Tailscale

VIA_PREFIX = ipaddress.IPv6Network("fd7a:115c:a1e0:b1a::/64")
MAX_SITE = 0xFFFF


def map_via(site: int, cidr: str) -> ipaddress.IPv6Interface:
    """Map an IPv4 prefix of a site to its 4via6 IPv6 prefix.

    The site id takes bytes 8 to 11 of the address and the IPv4 address
    the last four bytes, so the prefix length grows by 96 bits. Host bits
    of the IPv4 prefix are kept.

    Raises
    ------
        ValueError: The CIDR is not IPv4 or the site is out of range.

    """
    if not 0 <= site <= MAX_SITE:
        msg = f"site ID {site} is out of range (0 - {MAX_SITE})"
        raise ValueError(msg)
    interface = ipaddress.ip_interface(cidr)
    if not isinstance(interface, ipaddress.IPv4Interface):
        msg = f"{cidr} is not an IPv4 prefix"
        raise ValueError(msg)

    address = int(VIA_PREFIX.network_address) | site << 32 | int(interface.ip)
    return ipaddress.IPv6Interface((address, interface.network.prefixlen + 96))


class Via6DataSource(DataSource):
    """Computes the 4via6 prefix of a site ID and IPv4 CIDR."""

    type_name = "tailscale_4via6"
    description = (
        "The 4via6 data source is calculates an IPv6 prefix for a given site ID "
        "and IPv4 CIDR. See Tailscale documentation for [4via6 subnets]"
        "(https://tailscale.com/kb/1201/4via6-subnets/) for more details."
    )
    schema = {
        "site": Attribute(
            AttributeType.INT,
            required=True,
            validators=(int_between(0, MAX_SITE),),
            description="Site ID (between 0 and 65535)",
        ),
        "cidr": Attribute(
            AttributeType.STRING,
            required=True,
            validators=(is_cidr,),
            description="The IPv4 CIDR to map",
        ),
        "ipv6": Attribute(
            AttributeType.STRING,
            computed=True,
            description="The 4via6 mapped address",
        ),
    }

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        try:
            mapped = str(map_via(data.get("site"), data.get("cidr")))
        except ValueError as exception:
            raise DiagnosticError(
                diagnostics_error(exception, "Failed to map 4via6 address")
            ) from exception
        data.id = mapped
        data.set("ipv6", mapped)
