"""CLI entry point for azfleet.

Commands:
    azfleet run              # Provision the fleet, list it, delete it
    azfleet plan             # Show what a run would create (no Azure calls)

Credentials are read from CLIENT_ID, CLIENT_SECRET, TENANT_ID and
SUBSCRIPTION_ID. Run settings come from defaults, an optional TOML file
(--config) and command-line options, in increasing precedence.
"""

import functools
import logging
from collections.abc import Callable
from typing import Any

import click
from rich.console import Console

from azfleet import __version__
from azfleet.address_space import find_address_space_violations
from azfleet.config import (
    CREDENTIAL_ENV_VARS,
    FleetConfig,
    load_config,
    load_credentials_from_env,
)
from azfleet.credential_factory import authenticate_from_env
from azfleet.errors import AzfleetError
from azfleet.log_sanitizer import LogSanitizer
from azfleet.naming import ResourceNames
from azfleet.provisioner import Provisioner
from azfleet.report import build_plan_table, print_report

logger = logging.getLogger(__name__)


def fleet_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that resolves a FleetConfig."""

    @click.option("--config", "config_path", help="TOML config file path", type=click.Path())
    @click.option("--vm-count", help="Number of VMs to create", type=click.IntRange(min=1))
    @click.option("--region", help="Azure region", type=str)
    @click.option("--vm-size", help="Azure VM size", type=str)
    @click.option(
        "--nic-per-vm",
        help="Create one public IP and NIC per VM instead of sharing one",
        is_flag=True,
    )
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return func(*args, **kwargs)

    return wrapper


def resolve_config(
    config_path: str | None,
    vm_count: int | None,
    region: str | None,
    vm_size: str | None,
    nic_per_vm: bool,
) -> FleetConfig:
    """Merge defaults, the TOML file and CLI overrides into one FleetConfig.

    Raises:
        ConfigError: If the file or any resulting value is invalid
    """
    return load_config(config_path).with_overrides(
        vm_count=vm_count,
        region=region,
        vm_size=vm_size,
        nic_per_vm=True if nic_per_vm else None,
    )


@click.group(context_settings={"help_option_names": ["--help", "-h"]})
@click.option("--verbose", "-v", help="Enable debug logging", is_flag=True)
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """azfleet - provision N Azure Linux VMs, then tear them down.

    \b
    ENVIRONMENT:
        CLIENT_ID, CLIENT_SECRET, TENANT_ID, SUBSCRIPTION_ID (required for run)

    \b
    EXAMPLES:
        azfleet plan --vm-count 3
        azfleet run --vm-count 2 --region eastus
        azfleet run --config fleet.toml --nic-per-vm
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")
    ctx.ensure_object(dict)
    ctx.obj["console"] = Console()


@main.command(name="run")
@fleet_options
@click.pass_context
def run_command(
    ctx: click.Context,
    config_path: str | None,
    vm_count: int | None,
    region: str | None,
    vm_size: str | None,
    nic_per_vm: bool,
) -> None:
    """Provision the fleet, list its VMs and delete the resource group.

    The resource group is deleted whether or not provisioning succeeds.
    Failures are logged; the command itself still ends normally.
    """
    console: Console = ctx.obj["console"]
    try:
        config = resolve_config(config_path, vm_count, region, vm_size, nic_per_vm)
        with authenticate_from_env() as clients:
            report = Provisioner(clients, config).run()
        print_report(report, console)
    except AzfleetError as e:
        logger.error(f"Error: {LogSanitizer.sanitize_exception(e)}")
        logger.debug("Traceback:", exc_info=True)
    except Exception as e:
        logger.error(f"Unexpected error: {LogSanitizer.sanitize_exception(e)}")
        logger.debug("Traceback:", exc_info=True)


@main.command(name="plan")
@fleet_options
@click.pass_context
def plan_command(
    ctx: click.Context,
    config_path: str | None,
    vm_count: int | None,
    region: str | None,
    vm_size: str | None,
    nic_per_vm: bool,
) -> None:
    """Show the resources a run would create, without calling Azure.

    Exits with status 1 if the configuration has address space problems.
    """
    console: Console = ctx.obj["console"]
    try:
        config = resolve_config(config_path, vm_count, region, vm_size, nic_per_vm)
    except AzfleetError as e:
        raise click.ClickException(str(e)) from e

    console.print(build_plan_table(config, ResourceNames.generate()))

    if config.vm_count > 1 and not config.nic_per_vm:
        console.print(
            "[yellow]⚠ All VMs share one network interface; Azure attaches a NIC to one VM "
            "only. Consider --nic-per-vm.[/yellow]"
        )

    missing = load_credentials_from_env().missing_fields()
    if missing:
        env_names = ", ".join(CREDENTIAL_ENV_VARS[name][0] for name in missing)
        console.print(f"[yellow]⚠ Missing credentials for run: {env_names}[/yellow]")

    violations = find_address_space_violations(config)
    for violation in violations:
        console.print(f"[red]✗ {violation}[/red]")
    if violations:
        ctx.exit(1)

    console.print("[green]✓ Configuration is valid[/green]")


if __name__ == "__main__":
    main()
