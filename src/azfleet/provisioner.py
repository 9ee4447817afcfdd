"""Fleet provisioning module.

This module drives the whole run: create a resource group, a virtual network
and subnet, a boot diagnostics storage account, a public IP, a network
interface and N Linux VMs; list the VMs; delete the resource group.

Every step is a blocking create-or-update against Azure Resource Manager
(the SDK's begin_* poller, waited on with .result()). Steps run strictly in
order because each needs a handle from an earlier one. The resource group is
acquired through resource_group_scope(), which deletes it on every exit path.

Nothing is retried here; the SDK's transport policy is the only retry layer.
SDK exceptions are translated at the call site into azfleet.errors types.

Security:
- Admin credentials come from FleetConfig or are generated per run
- Error text is sanitized before it is logged or raised
"""

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from azure.core.exceptions import AzureError
from azure.mgmt.compute.models import (
    BootDiagnostics,
    DiagnosticsProfile,
    HardwareProfile,
    ManagedDiskParameters,
    NetworkInterfaceReference,
    NetworkProfile,
    OSDisk,
    OSProfile,
    StorageProfile,
    VirtualMachine,
)
from azure.mgmt.compute.models import ImageReference as SdkImageReference
from azure.mgmt.network.models import (
    AddressSpace,
    NetworkInterface,
    NetworkInterfaceIPConfiguration,
    PublicIPAddress,
    PublicIPAddressDnsSettings,
    PublicIPAddressSku,
    ServiceEndpointPropertiesFormat,
    Subnet,
    VirtualNetwork,
)
from azure.mgmt.resource.resources.models import ResourceGroup
from azure.mgmt.storage.models import Sku as StorageSku
from azure.mgmt.storage.models import StorageAccountCreateParameters

from azfleet.address_space import check_subnet_within_network
from azfleet.config import AdminCredentials, FleetConfig, ImageReference, OsDiskSettings
from azfleet.credential_factory import AzureClients
from azfleet.errors import translate_azure_error
from azfleet.handles import (
    NetworkHandle,
    NicHandle,
    PublicIpHandle,
    ResourceGroupHandle,
    StorageHandle,
    SubnetHandle,
    VmHandle,
)
from azfleet.log_sanitizer import LogSanitizer
from azfleet.naming import ResourceNames, create_admin_credentials
from azfleet.progress import ProgressDisplay

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningReport:
    """What a completed run created and observed.

    Attributes:
        resource_group: The run's resource group (deleted by the time the
            report is returned)
        public_ips: One entry, or one per VM in one-NIC-per-VM mode
        network_interfaces: Same cardinality as public_ips
        virtual_machines: VMs in creation order
        listed_vm_ids: Ids returned by listing the group after creation
        missing_from_listing: Created VM ids absent from the listing
        vm_creation_seconds: Wall time spent creating the VMs
        deleted: True once the resource group deletion has completed
    """

    resource_group: ResourceGroupHandle | None = None
    network: NetworkHandle | None = None
    subnet: SubnetHandle | None = None
    storage_account: StorageHandle | None = None
    public_ips: list[PublicIpHandle] = field(default_factory=list)
    network_interfaces: list[NicHandle] = field(default_factory=list)
    virtual_machines: list[VmHandle] = field(default_factory=list)
    listed_vm_ids: list[str] = field(default_factory=list)
    missing_from_listing: list[str] = field(default_factory=list)
    vm_creation_seconds: float = 0.0
    deleted: bool = False

    @property
    def vm_count(self) -> int:
        """Number of VMs created."""
        return len(self.virtual_machines)

    def get_summary(self) -> str:
        """Get human-readable summary."""
        group = self.resource_group.name if self.resource_group else "?"
        state = "deleted" if self.deleted else "not deleted"
        return (
            f"Fleet: {self.vm_count} VM(s) in {group} "
            f"({self.vm_creation_seconds:.1f}s), resource group {state}"
        )


class Provisioner:
    """Create a small fleet of Azure Linux VMs and guarantee cleanup.

    All operations block until Azure reports a terminal state. Handles
    returned by one operation are the inputs of the next.
    """

    def __init__(
        self,
        clients: AzureClients,
        config: FleetConfig,
        progress: ProgressDisplay | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize provisioner.

        Args:
            clients: Authenticated management clients
            config: Run configuration
            progress: Progress reporter (default: a new ProgressDisplay)
            clock: Monotonic time source for elapsed-time reporting
        """
        self._clients = clients
        self._config = config
        self._progress = progress or ProgressDisplay()
        self._clock = clock

    @property
    def config(self) -> FleetConfig:
        return self._config

    @contextmanager
    def _azure_call(self, operation: str) -> Iterator[None]:
        """Translate SDK exceptions raised inside the block."""
        try:
            yield
        except (AzureError, TimeoutError) as e:
            raise translate_azure_error(e, operation) from e

    @contextmanager
    def _remote_step(
        self, start_message: str, done_message: str, operation: str
    ) -> Iterator[None]:
        """Report a blocking remote operation and translate its errors."""
        self._progress.start_operation(start_message)
        try:
            with self._azure_call(operation):
                yield
        except Exception:
            self._progress.complete(success=False)
            raise
        self._progress.complete(message=done_message)

    # ------------------------------------------------------------------
    # Resource group
    # ------------------------------------------------------------------

    def create_resource_group(self, name: str, region: str) -> ResourceGroupHandle:
        """Create or update a resource group.

        Raises:
            ApiError: If Azure rejects the request
        """
        with self._remote_step(
            f"Creating resource group {name} in {region}",
            f"Created resource group {name}",
            f"create resource group {name}",
        ):
            group = self._clients.resource.resource_groups.create_or_update(
                name, ResourceGroup(location=region)
            )
        return ResourceGroupHandle.from_sdk(group)

    def delete_resource_group(self, group: ResourceGroupHandle) -> None:
        """Delete a resource group and, with it, every resource it owns.

        Raises:
            ApiError: If deletion fails (the group may be left behind)
        """
        with self._remote_step(
            f"Deleting resource group : {group.name}",
            f"Deleted resource group : {group.name}",
            f"delete resource group {group.name}",
        ):
            self._clients.resource.resource_groups.begin_delete(group.name).result()

    @contextmanager
    def resource_group_scope(self, name: str, region: str) -> Iterator[ResourceGroupHandle]:
        """Create a resource group and delete it when the block exits.

        Deletion runs on success, on early exit and on any exception. A
        failure of the deletion itself is not caught.
        """
        group = self.create_resource_group(name, region)
        try:
            yield group
        except Exception as e:
            logger.error(
                f"Provisioning failed, cleaning up resource group {name}: "
                f"{LogSanitizer.sanitize_exception(e)}"
            )
            raise
        finally:
            self.delete_resource_group(group)

    # ------------------------------------------------------------------
    # Network and storage
    # ------------------------------------------------------------------

    def create_network(
        self, group: ResourceGroupHandle, name: str, address_prefix: str
    ) -> NetworkHandle:
        """Create a virtual network with a single address prefix."""
        parameters = VirtualNetwork(
            location=group.location,
            address_space=AddressSpace(address_prefixes=[address_prefix]),
        )
        with self._remote_step(
            f"Creating virtual network {name} ({address_prefix})",
            f"Created virtual network {name}",
            f"create virtual network {name}",
        ):
            network = self._clients.network.virtual_networks.begin_create_or_update(
                group.name, name, parameters
            ).result()
        return NetworkHandle.from_sdk(network, group.name)

    def create_subnet(
        self, network: NetworkHandle, name: str, address_prefix: str
    ) -> SubnetHandle:
        """Create a subnet inside network.

        The prefix is checked against the network's address space before any
        remote call.

        Raises:
            AddressSpaceError: If address_prefix is outside the network
            ApiError: If Azure rejects the request
        """
        if network.address_prefixes:
            check_subnet_within_network(address_prefix, network.address_prefixes)
        else:
            logger.debug(f"Network {network.name} reported no address prefixes; skipping check")

        parameters = Subnet(
            name=name,
            address_prefix=address_prefix,
            service_endpoints=[
                ServiceEndpointPropertiesFormat(service=service)
                for service in self._config.subnet_service_endpoints
            ],
        )
        with self._remote_step(
            f"Creating a Linux subnet {name} ({address_prefix})",
            f"Created a Linux subnet with name : {name}",
            f"create subnet {name}",
        ):
            subnet = self._clients.network.subnets.begin_create_or_update(
                network.resource_group, network.name, name, parameters
            ).result()
        return SubnetHandle.from_sdk(subnet, network)

    def create_storage_account(
        self, group: ResourceGroupHandle, name: str, sku: str
    ) -> StorageHandle:
        """Create the storage account used for boot diagnostics."""
        parameters = StorageAccountCreateParameters(
            sku=StorageSku(name=sku),
            kind=self._config.storage_kind,
            location=group.location,
        )
        with self._remote_step(
            f"Creating storage account {name} ({sku})",
            f"Created storage account {name}",
            f"create storage account {name}",
        ):
            account = self._clients.storage.storage_accounts.begin_create(
                group.name, name, parameters
            ).result()
        return StorageHandle.from_sdk(account, group.name)

    def create_public_ip(
        self, group: ResourceGroupHandle, name: str, dns_label: str
    ) -> PublicIpHandle:
        """Create a public IP address with a DNS label."""
        sku = self._config.public_ip_sku
        # Standard SKU addresses must be statically allocated
        allocation = "Static" if sku.lower() == "standard" else "Dynamic"
        parameters = PublicIPAddress(
            location=group.location,
            sku=PublicIPAddressSku(name=sku),
            public_ip_allocation_method=allocation,
            dns_settings=PublicIPAddressDnsSettings(domain_name_label=dns_label),
        )
        with self._remote_step(
            f"Creating public IP address {name} (dns label {dns_label})",
            f"Created public IP address {name}",
            f"create public IP address {name}",
        ):
            public_ip = self._clients.network.public_ip_addresses.begin_create_or_update(
                group.name, name, parameters
            ).result()
        return PublicIpHandle.from_sdk(public_ip, group.name)

    def create_network_interface(
        self,
        group: ResourceGroupHandle,
        name: str,
        subnet: SubnetHandle,
        public_ip: PublicIpHandle,
    ) -> NicHandle:
        """Create a NIC with one primary IP configuration named "internal"."""
        parameters = NetworkInterface(
            location=group.location,
            ip_configurations=[
                NetworkInterfaceIPConfiguration(
                    name="internal",
                    primary=True,
                    subnet=Subnet(id=subnet.id),
                    private_ip_allocation_method="Dynamic",
                    public_ip_address=PublicIPAddress(id=public_ip.id),
                )
            ],
        )
        with self._remote_step(
            f"Creating a Linux network interface {name}",
            f"Created a Linux network interface with name : {name}",
            f"create network interface {name}",
        ):
            nic = self._clients.network.network_interfaces.begin_create_or_update(
                group.name, name, parameters
            ).result()
        return NicHandle.from_sdk(nic, group.name)

    # ------------------------------------------------------------------
    # Virtual machines
    # ------------------------------------------------------------------

    def create_virtual_machine(
        self,
        group: ResourceGroupHandle,
        name: str,
        size: str,
        image: ImageReference,
        nic: NicHandle,
        os_disk: OsDiskSettings,
        admin: AdminCredentials,
        boot_diagnostics: StorageHandle | None = None,
        computer_name: str | None = None,
    ) -> VmHandle:
        """Create a Linux VM attached to nic.

        Args:
            group: Owning resource group
            name: VM resource name
            size: VM size, e.g. "Standard_D2a_v4"
            image: Marketplace image for the OS disk
            nic: Primary network interface
            os_disk: Managed OS disk settings
            admin: Admin username and password
            boot_diagnostics: Storage account for boot diagnostics (optional)
            computer_name: Guest hostname (default: name)

        Returns:
            VmHandle

        Raises:
            ApiError: If Azure rejects the request (quota, size, conflict)
        """
        diagnostics = None
        if boot_diagnostics is not None:
            diagnostics = DiagnosticsProfile(
                boot_diagnostics=BootDiagnostics(
                    enabled=True, storage_uri=boot_diagnostics.boot_diagnostics_uri
                )
            )

        parameters = VirtualMachine(
            location=group.location,
            zones=list(self._config.zones) or None,
            hardware_profile=HardwareProfile(vm_size=size),
            os_profile=OSProfile(
                computer_name=computer_name or name,
                admin_username=admin.username,
                admin_password=admin.password,
            ),
            network_profile=NetworkProfile(
                network_interfaces=[NetworkInterfaceReference(id=nic.id, primary=True)]
            ),
            storage_profile=StorageProfile(
                os_disk=OSDisk(
                    create_option="FromImage",
                    os_type="Linux",
                    caching=os_disk.caching,
                    managed_disk=ManagedDiskParameters(
                        storage_account_type=os_disk.storage_account_type
                    ),
                ),
                image_reference=SdkImageReference(
                    publisher=image.publisher,
                    offer=image.offer,
                    sku=image.sku,
                    version=image.version,
                ),
            ),
            diagnostics_profile=diagnostics,
        )
        logger.debug(
            f"Virtual machine request for {name}: "
            f"{LogSanitizer.sanitize_dict(parameters.as_dict())}"
        )
        with self._remote_step(
            f"Creating virtual machine {name} ({size})",
            f"Created virtual machine {name}",
            f"create virtual machine {name}",
        ):
            vm = self._clients.compute.virtual_machines.begin_create_or_update(
                group.name, name, parameters
            ).result()
        return VmHandle.from_sdk(vm, group.name)

    def list_virtual_machines(self, group: ResourceGroupHandle) -> Iterator[VmHandle]:
        """Lazily yield a handle for each VM currently in the group.

        The underlying pager is consumed once; call again for a fresh listing.
        """
        with self._azure_call(f"list virtual machines in {group.name}"):
            for vm in self._clients.compute.virtual_machines.list(group.name):
                yield VmHandle.from_sdk(vm, group.name)

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run(self, names: ResourceNames | None = None) -> ProvisioningReport:
        """Provision the fleet, list it, then delete the resource group.

        Args:
            names: Resource names to use (default: freshly generated)

        Returns:
            ProvisioningReport (resource group already deleted)

        Raises:
            AzfleetError: On any failure; the resource group, if it was
                created, has been deleted before the error propagates
        """
        config = self._config
        names = names or ResourceNames.generate()
        admin = config.admin or create_admin_credentials()
        report = ProvisioningReport()

        if config.vm_count > 1 and not config.nic_per_vm:
            self._progress.warn(
                f"All {config.vm_count} VMs will reference the single network interface "
                f"{names.network_interface}; Azure attaches a NIC to one VM only. "
                f"Use --nic-per-vm to create one NIC per VM."
            )

        with self.resource_group_scope(names.resource_group, config.region) as group:
            report.resource_group = group

            report.network = self.create_network(
                group, names.network, config.network_address_prefix
            )
            report.storage_account = self.create_storage_account(
                group, names.storage_account, config.storage_sku
            )

            if config.nic_per_vm:
                report.public_ips = [
                    self.create_public_ip(group, names.public_ip_for(i), names.dns_label_for(i))
                    for i in range(config.vm_count)
                ]
            else:
                report.public_ips = [self.create_public_ip(group, names.public_ip, names.dns_label)]

            report.subnet = self.create_subnet(
                report.network, names.subnet, config.subnet_address_prefix
            )

            if config.nic_per_vm:
                report.network_interfaces = [
                    self.create_network_interface(
                        group, names.network_interface_for(i), report.subnet, public_ip
                    )
                    for i, public_ip in enumerate(report.public_ips)
                ]
            else:
                report.network_interfaces = [
                    self.create_network_interface(
                        group, names.network_interface, report.subnet, report.public_ips[0]
                    )
                ]

            logger.info(f"Creating {config.vm_count} virtual machine(s)")
            start = self._clock()
            for index, vm_name in enumerate(config.vm_names()):
                nic = report.network_interfaces[index if config.nic_per_vm else 0]
                report.virtual_machines.append(
                    self.create_virtual_machine(
                        group,
                        vm_name,
                        config.vm_size,
                        config.image,
                        nic,
                        config.os_disk,
                        admin,
                        boot_diagnostics=report.storage_account,
                        computer_name=f"{names.computer_name}-{index}",
                    )
                )
            report.vm_creation_seconds = self._clock() - start
            logger.info(
                f"Created {report.vm_count} virtual machine(s): "
                f"took {report.vm_creation_seconds:.1f} seconds"
            )

            for vm in self.list_virtual_machines(group):
                logger.info(vm.id)
                report.listed_vm_ids.append(vm.id)

            listed = {vm_id.lower() for vm_id in report.listed_vm_ids}
            report.missing_from_listing = [
                vm.id for vm in report.virtual_machines if vm.id.lower() not in listed
            ]
            if report.missing_from_listing:
                self._progress.warn(
                    "Created VM(s) missing from listing: "
                    + ", ".join(report.missing_from_listing)
                )

        report.deleted = True
        logger.info(report.get_summary())
        return report


__all__ = ["ProvisioningReport", "Provisioner"]
