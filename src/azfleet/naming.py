"""Random resource names and admin credentials for a run.

Each run provisions into a fresh resource group with freshly generated names,
so repeated runs never collide with resources left over by an earlier run.
"""

import re
import secrets
import string
from dataclasses import dataclass

from azfleet.config import AdminCredentials

# Azure storage account names: 3-24 chars, lowercase letters and digits only
STORAGE_NAME_PATTERN = re.compile(r"^[a-z0-9]{3,24}$")

_PASSWORD_SYMBOLS = "!@#$%^&*()-_=+"


def create_random_name(prefix: str, max_length: int = 24, suffix_digits: int = 6) -> str:
    """Append a random numeric suffix to prefix.

    Args:
        prefix: Name prefix
        max_length: Maximum length of the result; the prefix is truncated
            so the suffix always survives
        suffix_digits: Number of random digits

    Returns:
        The generated name
    """
    suffix = "".join(secrets.choice(string.digits) for _ in range(suffix_digits))
    keep = max(max_length - len(suffix), 0)
    return f"{prefix[:keep]}{suffix}"


def create_storage_account_name(prefix: str) -> str:
    """Random storage account name (lowercase alphanumerics, 3-24 chars)."""
    cleaned = re.sub(r"[^a-z0-9]", "", prefix.lower())
    name = create_random_name(cleaned, max_length=24)
    if not STORAGE_NAME_PATTERN.match(name):
        raise ValueError(f"Generated invalid storage account name: {name}")
    return name


def create_username(prefix: str = "azfleet") -> str:
    """Random admin username (lowercase, starts with a letter)."""
    return create_random_name(prefix.lower(), max_length=20, suffix_digits=4)


def create_password(length: int = 16) -> str:
    """Random admin password meeting Azure's complexity rules.

    Azure requires 12-123 characters with at least three of: lowercase,
    uppercase, digit, symbol. We always include all four.
    """
    if length < 12:
        raise ValueError("Azure VM passwords must be at least 12 characters")

    pools = [string.ascii_lowercase, string.ascii_uppercase, string.digits, _PASSWORD_SYMBOLS]
    chars = [secrets.choice(pool) for pool in pools]
    alphabet = "".join(pools)
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def create_admin_credentials() -> AdminCredentials:
    """Generate a username/password pair for the VMs of one run."""
    return AdminCredentials(username=create_username(), password=create_password())


@dataclass(frozen=True)
class ResourceNames:
    """Names of the shared resources created by one run."""

    resource_group: str
    network: str
    subnet: str
    storage_account: str
    public_ip: str
    dns_label: str
    network_interface: str
    computer_name: str

    @classmethod
    def generate(cls) -> "ResourceNames":
        """Generate a fresh, consistent set of names."""
        return cls(
            resource_group=create_random_name("rgCOPP", max_length=90),
            network=create_random_name("vnetCOMV", max_length=64),
            subnet=create_random_name("subnet_", max_length=80),
            storage_account=create_storage_account_name("stgCOMV"),
            public_ip=create_random_name("pip1", max_length=80),
            dns_label=create_random_name("rgpip1", max_length=63).lower(),
            network_interface=create_random_name("networkInterface", max_length=80),
            computer_name=create_random_name("linuxComputer", max_length=60),
        )

    def public_ip_for(self, index: int) -> str:
        """Public IP name for VM index (one-NIC-per-VM mode)."""
        return f"{self.public_ip}-{index}"

    def dns_label_for(self, index: int) -> str:
        """DNS label for VM index (one-NIC-per-VM mode)."""
        return f"{self.dns_label}-{index}"

    def network_interface_for(self, index: int) -> str:
        """Network interface name for VM index (one-NIC-per-VM mode)."""
        return f"{self.network_interface}-{index}"


__all__ = [
    "ResourceNames",
    "create_admin_credentials",
    "create_password",
    "create_random_name",
    "create_storage_account_name",
    "create_username",
]
