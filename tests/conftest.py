"""
Shared test fixtures and configuration for azfleet tests.

This module provides common fixtures used across all test types:
- Credential isolation (tests can never reach real Azure)
- A fake Azure control plane built from unittest.mock
- Fixed resource names and a default FleetConfig
- Factories for Azure SDK exceptions
"""

import json
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from azure.core.exceptions import HttpResponseError

from azfleet.config import CREDENTIAL_ENV_VARS, AdminCredentials, FleetConfig
from azfleet.credential_factory import AzureClients
from azfleet.naming import ResourceNames
from azfleet.progress import ProgressDisplay
from azfleet.provisioner import Provisioner

SUBSCRIPTION_ID = "12345678-1234-1234-1234-123456789012"

# ============================================================================
# ISOLATION
# ============================================================================


@pytest.fixture(autouse=True)
def isolate_credentials(monkeypatch):
    """Remove every credential environment variable for the test's duration.

    CRITICAL PROTECTION: a developer shell with real service principal
    credentials must never let a test talk to Azure.
    """
    for primary, fallback in CREDENTIAL_ENV_VARS.values():
        monkeypatch.delenv(primary, raising=False)
        monkeypatch.delenv(fallback, raising=False)


@pytest.fixture
def credential_env(monkeypatch):
    """Set all four required credential environment variables."""
    values = {
        "TENANT_ID": "87654321-4321-4321-4321-210987654321",
        "CLIENT_ID": "abcdef00-0000-0000-0000-000000abcdef",
        "CLIENT_SECRET": "fake-secret-value",  # noqa: S105 - test fixture
        "SUBSCRIPTION_ID": SUBSCRIPTION_ID,
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return values


# ============================================================================
# FAKE AZURE CONTROL PLANE
# ============================================================================


class FakePoller:
    """Stand-in for azure.core.polling.LROPoller."""

    def __init__(self, value=None):
        self._value = value

    def result(self, timeout=None):
        return self._value


class FakeAzure:
    """In-memory Azure control plane behind Mock management clients.

    Each begin_* mock returns a FakePoller whose result mirrors the request,
    the way ARM echoes the created resource. Tests inspect call_args on the
    mocks and override side_effect to inject failures.
    """

    def __init__(self, subscription_id: str = SUBSCRIPTION_ID):
        self.subscription_id = subscription_id
        self.vms: dict[str, list[SimpleNamespace]] = {}

        self.resource = Mock()
        self.network = Mock()
        self.storage = Mock()
        self.compute = Mock()
        self.credential = Mock()

        self.resource.resource_groups.create_or_update.side_effect = self._create_group
        self.resource.resource_groups.begin_delete.side_effect = self._delete_group
        self.network.virtual_networks.begin_create_or_update.side_effect = self._create_network
        self.network.subnets.begin_create_or_update.side_effect = self._create_subnet
        self.network.public_ip_addresses.begin_create_or_update.side_effect = (
            self._create_public_ip
        )
        self.network.network_interfaces.begin_create_or_update.side_effect = self._create_nic
        self.storage.storage_accounts.begin_create.side_effect = self._create_storage
        self.compute.virtual_machines.begin_create_or_update.side_effect = self._create_vm
        self.compute.virtual_machines.list.side_effect = self._list_vms

        self.clients = AzureClients(
            subscription_id=subscription_id,
            credential=self.credential,
            resource=self.resource,
            network=self.network,
            storage=self.storage,
            compute=self.compute,
        )

    def resource_id(self, group: str, provider: str, name: str) -> str:
        prefix = f"/subscriptions/{self.subscription_id}/resourceGroups/{group}"
        return f"{prefix}/providers/{provider}/{name}"

    def _create_group(self, name, parameters):
        return SimpleNamespace(
            id=f"/subscriptions/{self.subscription_id}/resourceGroups/{name}",
            name=name,
            location=parameters.location,
        )

    def _delete_group(self, name):
        self.vms.pop(name, None)
        return FakePoller()

    def _create_network(self, group, name, parameters):
        return FakePoller(
            SimpleNamespace(
                id=self.resource_id(group, "Microsoft.Network/virtualNetworks", name),
                name=name,
                location=parameters.location,
                address_space=SimpleNamespace(
                    address_prefixes=list(parameters.address_space.address_prefixes)
                ),
            )
        )

    def _create_subnet(self, group, network_name, name, parameters):
        network_id = self.resource_id(group, "Microsoft.Network/virtualNetworks", network_name)
        return FakePoller(
            SimpleNamespace(
                id=f"{network_id}/subnets/{name}",
                name=name,
                address_prefix=parameters.address_prefix,
            )
        )

    def _create_storage(self, group, name, parameters):
        return FakePoller(
            SimpleNamespace(
                id=self.resource_id(group, "Microsoft.Storage/storageAccounts", name),
                name=name,
                primary_endpoints=SimpleNamespace(blob=f"https://{name}.blob.core.windows.net/"),
            )
        )

    def _create_public_ip(self, group, name, parameters):
        label = parameters.dns_settings.domain_name_label
        return FakePoller(
            SimpleNamespace(
                id=self.resource_id(group, "Microsoft.Network/publicIPAddresses", name),
                name=name,
                ip_address="20.42.0.10",
                dns_settings=SimpleNamespace(
                    fqdn=f"{label}.{parameters.location}.cloudapp.azure.com"
                ),
            )
        )

    def _create_nic(self, group, name, parameters):
        return FakePoller(
            SimpleNamespace(
                id=self.resource_id(group, "Microsoft.Network/networkInterfaces", name),
                name=name,
            )
        )

    def _create_vm(self, group, name, parameters):
        vm = SimpleNamespace(
            id=self.resource_id(group, "Microsoft.Compute/virtualMachines", name),
            name=name,
            location=parameters.location,
            hardware_profile=SimpleNamespace(vm_size=parameters.hardware_profile.vm_size),
            provisioning_state="Succeeded",
        )
        self.vms.setdefault(group, []).append(vm)
        return FakePoller(vm)

    def _list_vms(self, group):
        return iter(list(self.vms.get(group, [])))

    # Helpers for assertions

    def vm_create_calls(self):
        """(name, parameters) of every VM create call, in order."""
        return [
            (c.args[1], c.args[2])
            for c in self.compute.virtual_machines.begin_create_or_update.call_args_list
        ]


@pytest.fixture
def fake_azure():
    """Fresh fake Azure control plane."""
    return FakeAzure()


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================


@pytest.fixture
def admin_credentials():
    return AdminCredentials(username="fleetadmin", password="Sup3r-Secret!Pass")  # noqa: S106


@pytest.fixture
def fleet_config(admin_credentials):
    """Default two-VM configuration with fixed admin credentials."""
    return FleetConfig(admin=admin_credentials)


@pytest.fixture
def resource_names():
    """Deterministic resource names."""
    return ResourceNames(
        resource_group="rgCOPP000001",
        network="vnetCOMV000001",
        subnet="subnet_000001",
        storage_account="stgcomv000001",
        public_ip="pip1000001",
        dns_label="rgpip1000001",
        network_interface="networkInterface000001",
        computer_name="linuxComputer000001",
    )


@pytest.fixture
def progress():
    return ProgressDisplay(use_unicode=False)


@pytest.fixture
def make_provisioner(fake_azure, fleet_config, progress):
    """Factory building a Provisioner over the fake control plane."""

    def factory(config: FleetConfig | None = None) -> Provisioner:
        return Provisioner(fake_azure.clients, config or fleet_config, progress=progress)

    return factory


# ============================================================================
# AZURE ERROR FACTORIES
# ============================================================================


class FakeHttpResponse:
    """Minimal transport response accepted by HttpResponseError."""

    def __init__(self, status_code: int, code: str, message: str):
        self.status_code = status_code
        self.reason = "Error"
        self.headers = {"content-type": "application/json"}
        self.content_type = "application/json"
        self._body = json.dumps({"error": {"code": code, "message": message}})

    def text(self, encoding=None):
        return self._body


@pytest.fixture
def http_error():
    """Factory for HttpResponseError with a status code and ARM error body."""

    def factory(status_code: int, code: str, message: str) -> HttpResponseError:
        return HttpResponseError(
            message=f"({code}) {message}",
            response=FakeHttpResponse(status_code, code, message),
        )

    return factory
