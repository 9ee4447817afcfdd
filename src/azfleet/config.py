"""Configuration for a provisioning run.

Replaces process-wide credential and admin-user globals with explicit,
immutable dataclasses that are passed to the Provisioner at construction.

Sources, lowest precedence first:
1. Dataclass defaults
2. Optional TOML file, table [fleet] (with [fleet.image] and [fleet.os_disk])
3. CLI options (applied by the caller with with_overrides())

Credentials never come from the TOML file: they are read from the
environment only (CLIENT_ID, CLIENT_SECRET, TENANT_ID, SUBSCRIPTION_ID, with
the AZURE_-prefixed names as fallbacks).

Security:
- Secrets are masked in repr()
- No secret is written anywhere
"""

import ipaddress
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import tomli

from azfleet.errors import ConfigError

logger = logging.getLogger(__name__)

# (primary, fallback) environment variable names per credential field
CREDENTIAL_ENV_VARS: dict[str, tuple[str, str]] = {
    "tenant_id": ("TENANT_ID", "AZURE_TENANT_ID"),
    "client_id": ("CLIENT_ID", "AZURE_CLIENT_ID"),
    "client_secret": ("CLIENT_SECRET", "AZURE_CLIENT_SECRET"),
    "subscription_id": ("SUBSCRIPTION_ID", "AZURE_SUBSCRIPTION_ID"),
}


@dataclass(frozen=True)
class ServicePrincipalCredentials:
    """Client credentials for the control plane session.

    Values may be empty; authenticate() rejects incomplete credentials
    before any client is built.
    """

    tenant_id: str | None
    client_id: str | None
    client_secret: str | None
    subscription_id: str | None

    def missing_fields(self) -> list[str]:
        """Names of credential fields that are absent or blank."""
        return [f.name for f in fields(self) if not (getattr(self, f.name) or "").strip()]

    def __repr__(self) -> str:
        secret_display = "****" if self.client_secret else None
        return (
            f"ServicePrincipalCredentials("
            f"tenant_id={self.tenant_id}, "
            f"client_id={self.client_id}, "
            f"client_secret={secret_display}, "
            f"subscription_id={self.subscription_id})"
        )


def load_credentials_from_env(
    environ: Mapping[str, str] | None = None,
) -> ServicePrincipalCredentials:
    """Read service principal credentials from environment variables.

    Missing values are left as None; validation happens in authenticate().

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        ServicePrincipalCredentials
    """
    env = os.environ if environ is None else environ
    values: dict[str, str | None] = {}
    for field_name, (primary, fallback) in CREDENTIAL_ENV_VARS.items():
        values[field_name] = env.get(primary) or env.get(fallback)
    return ServicePrincipalCredentials(**values)


@dataclass(frozen=True)
class ImageReference:
    """Marketplace image used for the OS disk."""

    publisher: str = "Canonical"
    offer: str = "0001-com-ubuntu-server-jammy"
    sku: str = "22_04-lts-gen2"
    version: str = "latest"


@dataclass(frozen=True)
class AdminCredentials:
    """Admin user configured on every VM."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"AdminCredentials(username={self.username}, password=****)"


@dataclass(frozen=True)
class OsDiskSettings:
    """Managed OS disk settings."""

    storage_account_type: str = "Standard_LRS"
    caching: str = "ReadWrite"


@dataclass(frozen=True)
class FleetConfig:
    """Everything a provisioning run needs except credentials and names."""

    region: str = "eastus"
    vm_count: int = 2
    vm_size: str = "Standard_D2a_v4"
    vm_name_prefix: str = "vm-"
    zones: tuple[str, ...] = ("1",)
    network_address_prefix: str = "172.16.0.0/16"
    subnet_address_prefix: str = "172.16.0.0/28"
    subnet_service_endpoints: tuple[str, ...] = ("Microsoft.Storage",)
    storage_sku: str = "Standard_LRS"
    storage_kind: str = "Storage"
    public_ip_sku: str = "Standard"
    image: ImageReference = field(default_factory=ImageReference)
    os_disk: OsDiskSettings = field(default_factory=OsDiskSettings)
    admin: AdminCredentials | None = None
    nic_per_vm: bool = False

    def __post_init__(self):
        """Validate values that would otherwise fail late, on the server."""
        if not isinstance(self.vm_count, int) or isinstance(self.vm_count, bool):
            raise ConfigError(f"vm_count must be an integer, got: {self.vm_count!r}")
        if self.vm_count < 1:
            raise ConfigError(f"vm_count must be at least 1, got: {self.vm_count}")
        if not self.region.strip():
            raise ConfigError("region must not be empty")
        if not self.vm_size.strip():
            raise ConfigError("vm_size must not be empty")
        for name in ("network_address_prefix", "subnet_address_prefix"):
            value = getattr(self, name)
            try:
                ipaddress.ip_network(value, strict=True)
            except ValueError as e:
                raise ConfigError(f"{name} is not a valid CIDR prefix: {value}") from e

    def vm_names(self) -> list[str]:
        """Names of the VMs this run creates, in creation order."""
        return [f"{self.vm_name_prefix}{i}" for i in range(self.vm_count)]

    def with_overrides(self, **overrides: Any) -> "FleetConfig":
        """Return a copy with non-None overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if not changes:
            return self
        return replace(self, **changes)


_SCALAR_FIELDS = {
    "region": str,
    "vm_count": int,
    "vm_size": str,
    "vm_name_prefix": str,
    "network_address_prefix": str,
    "subnet_address_prefix": str,
    "storage_sku": str,
    "storage_kind": str,
    "public_ip_sku": str,
    "nic_per_vm": bool,
}
_TUPLE_FIELDS = ("zones", "subnet_service_endpoints")


def _config_from_table(table: Any) -> FleetConfig:
    if not isinstance(table, dict):
        raise ConfigError(f"[fleet] must be a table, got: {table!r}")
    unknown = set(table) - set(_SCALAR_FIELDS) - set(_TUPLE_FIELDS) - {"image", "os_disk"}
    if unknown:
        raise ConfigError(f"Unknown keys in [fleet]: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    for key, expected in _SCALAR_FIELDS.items():
        if key in table:
            value = table[key]
            if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
                raise ConfigError(f"[fleet].{key} must be {expected.__name__}, got: {value!r}")
            kwargs[key] = value
    for key in _TUPLE_FIELDS:
        if key in table:
            value = table[key]
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"[fleet].{key} must be a list of strings")
            kwargs[key] = tuple(value)

    for key, model in (("image", ImageReference), ("os_disk", OsDiskSettings)):
        if key in table:
            value = table[key]
            if not isinstance(value, dict):
                raise ConfigError(f"[fleet.{key}] must be a table, got: {value!r}")
            try:
                kwargs[key] = model(**value)
            except TypeError as e:
                raise ConfigError(f"Invalid [fleet.{key}] table: {e}") from e

    return FleetConfig(**kwargs)


def load_config(path: str | Path | None = None) -> FleetConfig:
    """Load a FleetConfig from a TOML file.

    Args:
        path: TOML file path; None returns the defaults

    Returns:
        FleetConfig

    Raises:
        ConfigError: If the file is missing, unparsable or has invalid values
    """
    if path is None:
        return FleetConfig()

    config_path = Path(path).expanduser()
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomli.load(f)
    except tomli.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse config file {config_path}: {e}") from e

    logger.debug(f"Loaded config from {config_path}")
    return _config_from_table(data.get("fleet", {}))


__all__ = [
    "CREDENTIAL_ENV_VARS",
    "AdminCredentials",
    "FleetConfig",
    "ImageReference",
    "OsDiskSettings",
    "ServicePrincipalCredentials",
    "load_config",
    "load_credentials_from_env",
]
