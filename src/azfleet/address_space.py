"""Address space checks for the virtual network and its subnet.

A subnet prefix must lie inside one of its virtual network's address
prefixes, otherwise Azure rejects the subnet (NetcfgInvalidSubnet). We check
locally so the run fails before the subnet call, and so `azfleet plan` can
report the problem without touching Azure.
"""

import ipaddress
from collections.abc import Iterable

from azfleet.config import FleetConfig
from azfleet.errors import AddressSpaceError


def _parse(prefix: str) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
    try:
        return ipaddress.ip_network(prefix, strict=True)
    except ValueError as e:
        raise AddressSpaceError(f"Invalid CIDR prefix: {prefix}") from e


def subnet_within_network(subnet_prefix: str, network_prefixes: Iterable[str]) -> bool:
    """Return True if subnet_prefix is contained in any network prefix.

    Args:
        subnet_prefix: Subnet CIDR, e.g. "172.16.0.0/28"
        network_prefixes: Virtual network CIDRs, e.g. ["172.16.0.0/16"]

    Raises:
        AddressSpaceError: If any prefix is not valid CIDR
    """
    subnet = _parse(subnet_prefix)
    for prefix in network_prefixes:
        network = _parse(prefix)
        if subnet.version == network.version and subnet.subnet_of(network):
            return True
    return False


def check_subnet_within_network(subnet_prefix: str, network_prefixes: Iterable[str]) -> None:
    """Raise AddressSpaceError unless the subnet lies inside the network."""
    prefixes = list(network_prefixes)
    if not subnet_within_network(subnet_prefix, prefixes):
        raise AddressSpaceError(
            f"Subnet prefix {subnet_prefix} is outside the virtual network "
            f"address space {', '.join(prefixes) or '(empty)'}"
        )


def find_address_space_violations(config: FleetConfig) -> list[str]:
    """List address space problems in a FleetConfig (empty if none)."""
    try:
        check_subnet_within_network(config.subnet_address_prefix, [config.network_address_prefix])
    except AddressSpaceError as e:
        return [str(e)]
    return []


__all__ = [
    "check_subnet_within_network",
    "find_address_space_violations",
    "subnet_within_network",
]
