"""
GeoPrec CLI - Command line front end for the precision engine

Commands:
    geoprec lookup IP [IP ...]   live multi-provider lookup
    geoprec fuse FILE            offline fusion of captured observations
    geoprec providers            list providers and reliability weights
    geoprec config               show or initialise configuration
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional

import click
import yaml
from rich.console import Console

from .. import __version__
from ..geo_core.config import ConfigManager, create_cli_overrides
from ..geo_core.logging_setup import setup_logging
from ..geo_core.models import SourceObservation
from ..geo_engine.precision_engine import PrecisionEngine
from ..geo_engine.providers import PROVIDER_REGISTRY
from .cli_exceptions import GeoCLIError, InputFileError, handle_cli_error
from .cli_output import format_providers_table, render_estimate

logger = logging.getLogger(__name__)

console = Console()


# ===============================================================================
# SHARED HELPERS
# ===============================================================================

def common_options(func):
    """Options shared by every command"""
    func = click.option('-q', '--quiet', is_flag=True, help='Quiet mode (errors only)')(func)
    func = click.option('-V', '--verbose', is_flag=True, help='Verbose output (DEBUG level)')(func)
    func = click.option('-c', '--config', 'config_path', type=click.Path(dir_okay=False),
                        help='Configuration file (YAML or JSON)')(func)
    return func


def load_cli_config(config_path: Optional[str], verbose: bool, quiet: bool, **overrides) -> ConfigManager:
    """Load configuration, apply CLI overrides and configure logging"""
    manager = ConfigManager(config_path, create_cli_overrides(verbose=verbose, quiet=quiet, **overrides))
    config = manager.config

    if verbose:
        console_level = 'DEBUG'
    elif quiet:
        console_level = 'ERROR'
    else:
        console_level = 'WARNING'
    setup_logging(console_level, config.log_file if config.enable_file_logging else None)
    logger.debug(f"Using configuration: {manager}")
    return manager


def read_observations(path: str) -> Dict[str, Any]:
    """Read a capture file: a JSON list of observations, or an object holding one"""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise InputFileError(f"Cannot read {path}: {e}", path) from e
    except json.JSONDecodeError as e:
        raise InputFileError(f"Invalid JSON in {path}: {e}", path) from e

    if isinstance(data, list):
        data = {'observations': data}
    if not isinstance(data, dict) or not isinstance(data.get('observations'), list):
        raise InputFileError(f"No observation list found in {path}", path)

    try:
        observations = [SourceObservation.from_dict(item) for item in data['observations']]
    except (TypeError, ValueError, AttributeError) as e:
        raise InputFileError(f"Malformed observation in {path}: {e}", path) from e

    return {
        'ip': data.get('ip') or data.get('requestedIp'),
        'observations': observations,
        'sources_queried': data.get('sourcesQueried', data.get('sources_queried')),
    }


def emit_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


# ===============================================================================
# COMMANDS
# ===============================================================================

@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.version_option(version=__version__, prog_name="geoprec")
def cli():
    """GeoPrec - multi-source IP geolocation with consensus and calibrated accuracy"""


@cli.command()
@click.argument('ips', nargs=-1, required=True)
@click.option('-j', '--json', 'as_json', is_flag=True, help='Print the GeoEstimate as JSON')
@click.option('-p', '--provider', 'providers', multiple=True,
              help='Query only this provider (repeatable)')
@click.option('-T', '--timeout', type=float, help='Per-provider timeout in seconds')
@click.option('-k', '--agreement-km', type=float, help='Agreement distance for clustering in km')
@common_options
@handle_cli_error
def lookup(ips, as_json, providers, timeout, agreement_km, config_path, verbose, quiet):
    """Locate one or more IP addresses using all configured providers"""
    unknown = [name for name in providers if name not in PROVIDER_REGISTRY]
    if unknown:
        raise GeoCLIError(f"Unknown provider(s): {', '.join(unknown)}", "CONFIG_ERROR",
                          {'available': ', '.join(sorted(PROVIDER_REGISTRY))})

    manager = load_cli_config(config_path, verbose, quiet, timeout=timeout,
                              agreement_km=agreement_km, providers=providers)
    engine = PrecisionEngine(manager.config)
    try:
        estimates = asyncio.run(engine.locate_many(list(ips)))
    finally:
        engine.close()

    if as_json:
        payload = [e.to_dict() for e in estimates]
        emit_json(payload[0] if len(payload) == 1 else payload)
        return

    for estimate in estimates:
        render_estimate(estimate, console)


@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('-i', '--ip', 'ip_address', help='IP the observations belong to (overrides the file)')
@click.option('-j', '--json', 'as_json', is_flag=True, help='Print the GeoEstimate as JSON')
@click.option('-k', '--agreement-km', type=float, help='Agreement distance for clustering in km')
@common_options
@handle_cli_error
def fuse(file, ip_address, as_json, agreement_km, config_path, verbose, quiet):
    """Fuse previously captured provider observations without network access"""
    manager = load_cli_config(config_path, verbose, quiet, agreement_km=agreement_km)
    capture = read_observations(file)

    engine = PrecisionEngine(manager.config, providers=[])
    estimate = engine.estimate(ip_address or capture['ip'] or "unknown",
                               capture['observations'], capture['sources_queried'])

    if as_json:
        emit_json(estimate.to_dict())
    else:
        render_estimate(estimate, console)


@cli.command(name='providers')
@common_options
@handle_cli_error
def list_providers(config_path, verbose, quiet):
    """List supported providers with their weights and status"""
    manager = load_cli_config(config_path, verbose, quiet)
    names: List[str] = [p.name for p in manager.config.providers]
    names += [name for name in PROVIDER_REGISTRY if name not in names]
    console.print(format_providers_table(names, manager.config))


@cli.command(name='config')
@click.option('--init', 'init_path', type=click.Path(dir_okay=False),
              help='Write a default configuration file to PATH')
@click.option('--force', is_flag=True, help='Overwrite an existing file with --init')
@common_options
@handle_cli_error
def show_config(init_path, force, config_path, verbose, quiet):
    """Show the effective configuration or write a default one"""
    manager = load_cli_config(config_path, verbose, quiet)

    if init_path:
        if os.path.exists(init_path) and not force:
            raise GeoCLIError(f"{init_path} already exists (use --force to overwrite)", "CONFIG_ERROR")
        written = manager.save_config(init_path)
        console.print(f"[green]✓ Configuration written to {written}[/green]")
        return

    click.echo(f"# {manager.config_path}")
    click.echo(yaml.safe_dump(manager.to_dict(), default_flow_style=False, sort_keys=False), nl=False)


def main(args=None):
    """CLI entry point"""
    return cli.main(args=args, prog_name="geoprec")
