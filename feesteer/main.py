#!/usr/bin/env python3
"""Lightning Fee Steer - Main entry point"""

import asyncio
import click
import logging
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .lnd.client import LNDRestClient, LNDError
from .policy.engine import HIGH_LIQUIDITY_THRESHOLD, LOW_LIQUIDITY_THRESHOLD
from .policy.reconciler import FeeReconciler, OutcomeStatus, StartupError, SweepResult, fetch_identity
from .utils.config import Config, ConfigError, NETWORK_DIRS

console = Console()
logger = logging.getLogger(__name__)

STATUS_STYLES = {
    OutcomeStatus.UPDATED: "green",
    OutcomeStatus.UNCHANGED: "white",
    OutcomeStatus.DRY_RUN: "yellow",
    OutcomeStatus.FAILED: "red",
}


def setup_logging(verbose: bool = False):
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)]
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_config(options: dict) -> Config:
    """Layer CLI options over environment and file configuration"""
    config = Config.load(options.get('config'))

    if options.get('interval') is not None:
        config.interval = options['interval']
    for tier_name in ('low', 'medium', 'high'):
        tier = getattr(config.tiers, tier_name)
        if options.get(f'{tier_name}_fee_ppm') is not None:
            tier.fee_rate_ppm = options[f'{tier_name}_fee_ppm']
        if options.get(f'{tier_name}_fee_base') is not None:
            tier.base_fee_msat = options[f'{tier_name}_fee_base']

    if options.get('lnd_host'):
        config.lnd.host = options['lnd_host']
    if options.get('lnd_port') is not None:
        config.lnd.port = options['lnd_port']
    if options.get('network'):
        config.lnd.network = options['network']
    if options.get('lnd_dir'):
        config.lnd.lnd_dir = options['lnd_dir']
    if options.get('cert_file'):
        config.lnd.cert_file = options['cert_file']
    if options.get('macaroon_file'):
        config.lnd.macaroon_file = options['macaroon_file']
    if options.get('verbose'):
        config.verbose = True
    if options.get('dry_run'):
        config.dry_run = True

    config.validate()
    return config


def create_client(config: Config) -> LNDRestClient:
    return LNDRestClient(
        lnd_rest_url=config.lnd.rest_url,
        cert_path=config.lnd.cert_path(),
        macaroon_path=config.lnd.macaroon_path(),
        timeout=config.lnd.timeout,
    )


@click.group()
@click.option('--interval', type=int, help='Seconds between fee sweeps (default 60)')
@click.option('--low-fee-ppm', type=int, help='Fee rate in ppm when local liquidity is low')
@click.option('--low-fee-base', type=int, help='Base fee in msat when local liquidity is low')
@click.option('--medium-fee-ppm', type=int, help='Fee rate in ppm when local liquidity is in the middle')
@click.option('--medium-fee-base', type=int, help='Base fee in msat when local liquidity is in the middle')
@click.option('--high-fee-ppm', type=int, help='Fee rate in ppm when local liquidity is high')
@click.option('--high-fee-base', type=int, help='Base fee in msat when local liquidity is high')
@click.option('--lnd-host', help='Host of the LND REST server (default 127.0.0.1)')
@click.option('--lnd-port', type=int, help='Port of the LND REST server (default 8080)')
@click.option('--network', '-n', type=click.Choice(list(NETWORK_DIRS)), help='Network LND is running on')
@click.option('--lnd-dir', help='LND directory path (default ~/.lnd)')
@click.option('--cert-file', help='Path to tls.cert file for LND')
@click.option('--macaroon-file', help='Path to admin.macaroon file for LND')
@click.option('--config', '-c', type=click.Path(exists=True), help='Configuration file path')
@click.option('--dry-run', is_flag=True, help='Log fee changes without applying them')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, **options):
    """Lightning Fee Steer - Set channel fees from local liquidity"""
    try:
        config = build_config(options)
    except (ConfigError, FileNotFoundError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    setup_logging(config.verbose)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


async def _start(client: LNDRestClient, config: Config) -> FeeReconciler:
    node_pubkey = await fetch_identity(client)
    return FeeReconciler(
        client=client,
        tiers=config.tiers.to_table(),
        node_pubkey=node_pubkey,
        dry_run=config.dry_run,
    )


async def run_reconciler(config: Config):
    """Connect, then reconcile fees until the process is stopped"""
    async with create_client(config) as client:
        reconciler = await _start(client, config)
        await reconciler.run_forever(config.interval)


async def run_single_sweep(config: Config) -> SweepResult:
    async with create_client(config) as client:
        reconciler = await _start(client, config)
        return await reconciler.run_sweep()


@cli.command()
@click.pass_context
def run(ctx):
    """Reconcile channel fees on a fixed interval"""
    config = ctx.obj['config']

    console.print("[bold blue]Lightning Fee Steer[/bold blue]")
    console.print(f"LND: {config.lnd.rest_url} ({config.lnd.network}), interval {config.interval}s\n")

    try:
        asyncio.run(run_reconciler(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped by user[/yellow]")
    except (StartupError, LNDError) as e:
        raise click.ClickException(f"Startup failed: {e}")


@cli.command()
@click.pass_context
def sweep(ctx):
    """Run a single fee sweep and show the outcome per channel"""
    config = ctx.obj['config']

    try:
        result = asyncio.run(run_single_sweep(config))
    except (StartupError, LNDError) as e:
        raise click.ClickException(f"Startup failed: {e}")

    if result.listing_failed:
        console.print("[red]Could not list channels[/red]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Channel", style="white")
    table.add_column("Local %", justify="right")
    table.add_column("Tier")
    table.add_column("Status")
    table.add_column("Detail")

    for outcome in result.outcomes:
        detail = ""
        if outcome.update:
            detail = f"{outcome.update.fee_rate_ppm}ppm / {outcome.update.base_fee_msat}msat"
        elif outcome.error:
            detail = f"{outcome.operation}: {outcome.error}"
        table.add_row(
            outcome.chan_id,
            f"{outcome.ratio:.1f}" if outcome.ratio is not None else "-",
            outcome.tier or "-",
            f"[{STATUS_STYLES[outcome.status]}]{outcome.status.value}[/]",
            detail,
        )

    console.print(table)


@cli.command('show-config')
@click.pass_context
def show_config(ctx):
    """Show the effective configuration"""
    config = ctx.obj['config']

    console.print(f"LND REST URL: {config.lnd.rest_url}")
    console.print(f"Network: {config.lnd.network}")
    console.print(f"TLS cert: {config.lnd.cert_path()}", soft_wrap=True)
    console.print(f"Macaroon: {config.lnd.macaroon_path()}", soft_wrap=True)
    console.print(f"Interval: {config.interval}s")
    console.print(f"Dry run: {config.dry_run}\n")

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Tier", style="white")
    table.add_column("Local balance")
    table.add_column("Fee rate (ppm)", justify="right")
    table.add_column("Base fee (msat)", justify="right")

    ranges = {
        'low': f"<= {LOW_LIQUIDITY_THRESHOLD:.0f}%",
        'medium': f"> {LOW_LIQUIDITY_THRESHOLD:.0f}% and <= {HIGH_LIQUIDITY_THRESHOLD:.0f}%",
        'high': f"> {HIGH_LIQUIDITY_THRESHOLD:.0f}%",
    }
    for tier_name, tier_range in ranges.items():
        tier = getattr(config.tiers, tier_name)
        table.add_row(tier_name, tier_range, str(tier.fee_rate_ppm), str(tier.base_fee_msat))

    console.print(table)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
