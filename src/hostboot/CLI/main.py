"""
Command Line Interface for hostboot.
"""
import os
import click
from ..errors import HostbootError
from ..PARSERS.config_parser import ConfigParser, load_context
from ..MANAGERS.bootstrap_orchestrator import STEPS, BootstrapOrchestrator
from ..MANAGERS.host_filesystem import HostFilesystem
from ..MANAGERS.service_manager import ServiceManager
from ..CONVERTERS.to_hcl import HclConverter
from ..CONVERTERS.to_systemd import SystemdConverter
from ..RUNNERS.command_runner import CommandRunner
from ..UTILS.host_address import discover_primary_address
from ..UTILS.logger import configure_logging

@click.group()
@click.option('--config', '-c', 'config_path', envvar='HOSTBOOT_CONFIG',
              type=click.Path(dir_okay=False), help='YAML file overriding the default host layout')
@click.option('--env-file', default='.env', show_default=True,
              help='Variables available to ${VAR} references in the config file')
@click.option('--root', default='/', show_default=True, type=click.Path(file_okay=False),
              help='Directory standing in for / when writing files. '
                   'apt-get, useradd and systemctl still act on the real host.')
@click.option('--verbose', '-v', count=True, help='Increase log output (-v info, -vv debug)')
@click.pass_context
def cli(ctx, config_path, env_file, root, verbose):
    """
    hostboot - Nomad and Consul host bootstrapper.

    Installs both agents, writes their configuration, registers them with
    systemd and wires Docker to the ECR credential helper.
    """
    configure_logging(verbose)
    ctx.ensure_object(dict)
    try:
        ctx.obj['config'] = ConfigParser(load_context(env_file)).parse(config_path)
    except HostbootError as e:
        raise click.ClickException(str(e))
    ctx.obj['fs'] = HostFilesystem(root)

@cli.command()
@click.option('--only', multiple=True, type=click.Choice(STEPS), help='Run only this step (repeatable)')
@click.option('--skip', multiple=True, type=click.Choice(STEPS), help='Skip this step (repeatable)')
@click.pass_context
def apply(ctx, only, skip):
    """Bootstrap this host."""
    fs = ctx.obj['fs']
    if fs.is_live and os.geteuid() != 0:
        raise click.ClickException("apply must run as root (or use --root for a scratch tree)")

    orchestrator = BootstrapOrchestrator(ctx.obj['config'], fs=fs)
    try:
        report = orchestrator.apply(only=only, skip=skip)
    except HostbootError as e:
        raise click.ClickException(str(e))

    click.echo(f"{'STEP':12} {'STATUS':10} DETAIL")
    click.echo("-" * 40)
    for result in report.results:
        click.echo(f"{result.name:12} {result.status.value:10} {result.detail}")

    click.echo("")
    for name, url in report.ui_urls.items():
        click.echo(f"{name.capitalize()} UI should be available at {url}")
    click.echo("")
    click.echo("If services are not running, check logs with:")
    for hint in report.log_hints:
        click.echo(hint)

@cli.command()
@click.pass_context
def plan(ctx):
    """List bootstrap steps in the order they run."""
    for index, name in enumerate(STEPS, 1):
        click.echo(f"{index}. {name}")

@cli.command()
@click.option('--out', '-o', default='rendered', show_default=True, help='Output directory')
@click.option('--address', '-a', help='Address to advertise instead of discovering one')
@click.pass_context
def render(ctx, out, address):
    """Render agent configs and units without touching the host."""
    config = ctx.obj['config']
    try:
        address = address or config.address or discover_primary_address(
            config.interface, config.exclude_interfaces)
    except HostbootError as e:
        raise click.ClickException(str(e))

    HclConverter(config).convert(address, out)
    SystemdConverter(config).convert(out)
    click.echo(f"Rendered configuration for {address} in {out}")

@cli.command()
@click.pass_context
def address(ctx):
    """Print the address this host would advertise."""
    config = ctx.obj['config']
    try:
        click.echo(config.address or discover_primary_address(
            config.interface, config.exclude_interfaces))
    except HostbootError as e:
        raise click.ClickException(str(e))

@cli.command()
@click.pass_context
def status(ctx):
    """Show systemd status of both agents."""
    services = ServiceManager(CommandRunner())
    for agent in ctx.obj['config'].agents:
        click.echo(f"Checking {agent.unit.description} status...")
        click.echo(services.status_text(agent.unit.unit_name))

def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})

if __name__ == '__main__':
    main()
