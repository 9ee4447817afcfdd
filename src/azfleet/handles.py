"""Local handles for remote Azure resources.

A handle is an immutable record of a resource the control plane returned.
Handles hold only what later steps need (ids to reference, names to log),
never the SDK model itself, so nothing downstream depends on SDK types.
"""

from dataclasses import dataclass
from typing import Any


def _nested(obj: Any, *attrs: str) -> Any:
    """Follow attrs through optional SDK sub-models, returning None on a gap."""
    for attr in attrs:
        if obj is None:
            return None
        obj = getattr(obj, attr, None)
    return obj


@dataclass(frozen=True)
class ResourceGroupHandle:
    """Resource group that owns every other resource of a run."""

    id: str
    name: str
    location: str

    @classmethod
    def from_sdk(cls, group: Any) -> "ResourceGroupHandle":
        return cls(id=group.id, name=group.name, location=group.location)


@dataclass(frozen=True)
class NetworkHandle:
    """Virtual network."""

    id: str
    name: str
    resource_group: str
    location: str
    address_prefixes: tuple[str, ...]

    @classmethod
    def from_sdk(cls, network: Any, resource_group: str) -> "NetworkHandle":
        prefixes = _nested(network, "address_space", "address_prefixes") or []
        return cls(
            id=network.id,
            name=network.name,
            resource_group=resource_group,
            location=network.location,
            address_prefixes=tuple(prefixes),
        )


@dataclass(frozen=True)
class SubnetHandle:
    """Subnet inside a virtual network."""

    id: str
    name: str
    resource_group: str
    network_name: str
    address_prefix: str | None

    @classmethod
    def from_sdk(cls, subnet: Any, network: NetworkHandle) -> "SubnetHandle":
        return cls(
            id=subnet.id,
            name=subnet.name,
            resource_group=network.resource_group,
            network_name=network.name,
            address_prefix=subnet.address_prefix,
        )


@dataclass(frozen=True)
class StorageHandle:
    """Storage account used as the boot diagnostics target."""

    id: str
    name: str
    resource_group: str
    blob_endpoint: str | None = None

    @classmethod
    def from_sdk(cls, account: Any, resource_group: str) -> "StorageHandle":
        return cls(
            id=account.id,
            name=account.name,
            resource_group=resource_group,
            blob_endpoint=_nested(account, "primary_endpoints", "blob"),
        )

    @property
    def boot_diagnostics_uri(self) -> str:
        """Blob endpoint VMs write boot diagnostics to."""
        return self.blob_endpoint or f"https://{self.name}.blob.core.windows.net/"


@dataclass(frozen=True)
class PublicIpHandle:
    """Public IP address with a DNS label."""

    id: str
    name: str
    resource_group: str
    ip_address: str | None = None
    fqdn: str | None = None

    @classmethod
    def from_sdk(cls, public_ip: Any, resource_group: str) -> "PublicIpHandle":
        return cls(
            id=public_ip.id,
            name=public_ip.name,
            resource_group=resource_group,
            ip_address=public_ip.ip_address,
            fqdn=_nested(public_ip, "dns_settings", "fqdn"),
        )


@dataclass(frozen=True)
class NicHandle:
    """Network interface binding a subnet and a public IP."""

    id: str
    name: str
    resource_group: str

    @classmethod
    def from_sdk(cls, nic: Any, resource_group: str) -> "NicHandle":
        return cls(id=nic.id, name=nic.name, resource_group=resource_group)


@dataclass(frozen=True)
class VmHandle:
    """Virtual machine."""

    id: str
    name: str
    resource_group: str
    location: str | None = None
    size: str | None = None
    provisioning_state: str | None = None

    @classmethod
    def from_sdk(cls, vm: Any, resource_group: str) -> "VmHandle":
        return cls(
            id=vm.id,
            name=vm.name,
            resource_group=resource_group,
            location=vm.location,
            size=_nested(vm, "hardware_profile", "vm_size"),
            provisioning_state=vm.provisioning_state,
        )


__all__ = [
    "NetworkHandle",
    "NicHandle",
    "PublicIpHandle",
    "ResourceGroupHandle",
    "StorageHandle",
    "SubnetHandle",
    "VmHandle",
]
