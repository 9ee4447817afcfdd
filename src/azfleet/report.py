"""Console rendering of provisioning results and plans."""

from rich.console import Console
from rich.table import Table

from azfleet.config import FleetConfig
from azfleet.naming import ResourceNames
from azfleet.provisioner import ProvisioningReport


def build_report_table(report: ProvisioningReport) -> Table:
    """Table of every resource a run created, one row per resource."""
    title = f"Resource group {report.resource_group.name}" if report.resource_group else "Run"
    table = Table(title=title)
    table.add_column("Type", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Details")

    if report.network:
        prefixes = ", ".join(report.network.address_prefixes)
        table.add_row("Virtual network", report.network.name, prefixes)
    if report.subnet:
        table.add_row("Subnet", report.subnet.name, report.subnet.address_prefix or "")
    if report.storage_account:
        table.add_row(
            "Storage account",
            report.storage_account.name,
            report.storage_account.boot_diagnostics_uri,
        )
    for public_ip in report.public_ips:
        table.add_row("Public IP", public_ip.name, public_ip.fqdn or public_ip.ip_address or "")
    for nic in report.network_interfaces:
        table.add_row("Network interface", nic.name, "")
    for vm in report.virtual_machines:
        table.add_row("Virtual machine", vm.name, f"{vm.size or ''} {vm.provisioning_state or ''}")

    return table


def build_plan_table(config: FleetConfig, names: ResourceNames) -> Table:
    """Table of what a run with this configuration would create."""
    table = Table(title=f"Plan: {config.vm_count} VM(s) in {config.region}")
    table.add_column("Resource", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Settings")

    table.add_row("Resource group", names.resource_group, config.region)
    table.add_row("Virtual network", names.network, config.network_address_prefix)
    table.add_row("Subnet", names.subnet, config.subnet_address_prefix)
    table.add_row("Storage account", names.storage_account, config.storage_sku)

    if config.nic_per_vm:
        for i in range(config.vm_count):
            table.add_row("Public IP", names.public_ip_for(i), names.dns_label_for(i))
            table.add_row("Network interface", names.network_interface_for(i), "")
    else:
        table.add_row("Public IP", names.public_ip, names.dns_label)
        table.add_row("Network interface", names.network_interface, "shared by all VMs")

    image = config.image
    image_text = f"{image.publisher}:{image.offer}:{image.sku}:{image.version}"
    for vm_name in config.vm_names():
        table.add_row("Virtual machine", vm_name, f"{config.vm_size} {image_text}")

    return table


def print_report(report: ProvisioningReport, console: Console | None = None) -> None:
    """Print the resource table and the one-line summary."""
    console = console or Console()
    console.print(build_report_table(report))
    console.print(report.get_summary())


__all__ = ["build_plan_table", "build_report_table", "print_report"]
