"""azfleet - provision a small fleet of Azure Linux VMs, then tear it down

Philosophy:
- Ruthless simplicity: one sequential run, one resource group
- Delegate to the Azure SDK for transport, auth and polling
- Explicit configuration (no credentials in code)
- Always clean up: the resource group is deleted on every exit path

The azfleet CLI creates a resource group, a virtual network and subnet, a boot
diagnostics storage account, a public IP, a network interface and N virtual
machines, lists the machines, and deletes the resource group.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
