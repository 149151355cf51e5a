"""CLI entry point for VNC Locator."""

import json
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click

from .config import Config
from .discovery.discovery_service import DeviceDiscoveryService
from .discovery.events import LoggingDiscoveryListener
from .discovery.prober import HostProber
from .discovery.registry import DeviceRegistry
from .models.device import ConnectionRecommendation, DiscoveredDevice
from .recommendation.manager import ConnectionManager
from .recommendation.trust import StaticTrustLookup
from .utils.log import setup_logging

TABLE_COLUMNS = ("Hostname", "Address", "Port", "Type", "OS")


def _format_table(devices: List[DiscoveredDevice]) -> str:
    rows = [TABLE_COLUMNS] + [
        (d.hostname, d.address, str(d.port), str(d.device_type), str(d.operating_system))
        for d in devices
    ]
    widths = [max(len(row[i]) for row in rows) for i in range(len(TABLE_COLUMNS))]
    return "\n".join("  ".join(cell.ljust(w) for cell, w in zip(row, widths)) for row in rows)


def _parse_trust(values: Tuple[str, ...]) -> StaticTrustLookup:
    levels = {}
    for value in values:
        device_id, sep, level = value.rpartition("=")
        if not sep or not device_id:
            raise click.BadParameter(f"expected ADDRESS:PORT=LEVEL, got '{value}'", param_hint="--trust")
        try:
            levels[device_id] = int(level)
        except ValueError:
            raise click.BadParameter(f"trust level must be an integer, got '{level}'", param_hint="--trust")
    return StaticTrustLookup(levels)


def _run_session(service: DeviceDiscoveryService, duration: float) -> None:
    """Runs one discovery session for at most ``duration`` seconds."""
    service.add_listener(LoggingDiscoveryListener())
    try:
        service.start_discovery()
        service.wait(timeout=duration)
    except KeyboardInterrupt:
        click.echo("\nDiscovery interrupted by user.", err=True)
        service.close()
        sys.exit(130) # Standard exit code for Ctrl+C
    service.stop_discovery(timeout=service.discovery_config.port_timeout_ms / 1000)
    service.dispatcher.flush(timeout=10)
    for strategy, error in service.strategy_errors.items():
        click.echo(f"Warning: {strategy} strategy failed: {error}", err=True)


@click.group()
@click.option(
    "--config-file", "-c",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Path to a JSON configuration file.",
    envvar="VNC_LOCATOR_CONFIG_FILE"
)
@click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the logging level (e.g., DEBUG, INFO)."
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default=None,
    help="Override logging format."
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str], log_format: Optional[str]) -> None:
    """VNC Locator - finds VNC/RFB hosts on the local network and ranks them."""
    try:
        if config_file:
            cfg = Config.from_file(Path(config_file))
        else:
            # Environment variables (and .env file if present)
            cfg = Config()
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    if log_level:
        cfg.logging.level = log_level.upper()
    if log_format:
        cfg.logging.format = log_format.lower()

    setup_logging(cfg.logging)
    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


@cli.command()
@click.option("--duration", "-d", type=float, default=30.0, show_default=True, help="Maximum seconds to run discovery.")
@click.option("--json", "as_json", is_flag=True, help="Print devices as JSON.")
@click.pass_context
def discover(ctx: click.Context, duration: float, as_json: bool) -> None:
    """Runs one discovery session and lists the hosts found."""
    config: Config = ctx.obj["config"]
    service = DeviceDiscoveryService(config)
    _run_session(service, duration)
    devices = service.get_discovered_devices()
    service.close()

    if as_json:
        click.echo(json.dumps([d.model_dump(mode="json") for d in devices], indent=2))
    elif devices:
        click.echo(_format_table(devices))
    else:
        click.echo("No remote-desktop hosts found.")
    click.echo(f"\nDiscovery completed: {len(devices)} device(s) found.", err=as_json)


@cli.command()
@click.option("--duration", "-d", type=float, default=30.0, show_default=True, help="Maximum seconds to run discovery.")
@click.option("--trust", multiple=True, metavar="ADDRESS:PORT=LEVEL", help="Trust level (0-100) for a device. Can be used multiple times.")
@click.option("--json", "as_json", is_flag=True, help="Print recommendations as JSON.")
@click.pass_context
def recommend(ctx: click.Context, duration: float, trust: Tuple[str, ...], as_json: bool) -> None:
    """Discovers hosts, then prints ranked connection recommendations."""
    config: Config = ctx.obj["config"]
    trust_lookup = _parse_trust(trust) if trust else None
    service = DeviceDiscoveryService(config)
    manager = ConnectionManager(config, discovery_service=service, trust_lookup=trust_lookup)
    _run_session(service, duration)
    recommendations: List[ConnectionRecommendation] = manager.get_connection_recommendations()
    service.close()

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in recommendations], indent=2))
        return
    if not recommendations:
        click.echo("No high-confidence recommendations.")
        return
    for rank, rec in enumerate(recommendations, start=1):
        click.echo(f"{rank}. {rec.device}  confidence {rec.confidence * 100:.1f}%")
        click.echo(f"   {rec.reason}")
        settings = ", ".join(f"{k}={v}" for k, v in rec.suggested_settings.items())
        click.echo(f"   suggested: {settings}")


@cli.command()
@click.argument("host")
@click.pass_context
def probe(ctx: click.Context, host: str) -> None:
    """Sniffs the RFB port range of a single HOST."""
    config: Config = ctx.obj["config"]
    prober = HostProber(config.discovery, DeviceRegistry())
    devices = prober.probe_host(host)
    if not devices:
        click.echo(f"No RFB service found on {host}.")
        sys.exit(1)
    click.echo(_format_table(devices))


@cli.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    click.echo(f"VNC Locator v{__version__}")


@cli.command()
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration."""
    config = ctx.obj["config"]
    click.echo(json.dumps(config.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    cli()
