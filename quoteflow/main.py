"""
Main entry point for QuoteFlow
Provides CLI commands and wires the refresh runtime together
"""

import asyncio
import json
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click

from .config import Config, get_config
from .data import (
    MultiSourceFinanceService,
    ProviderRegistry,
    QuoteFlowError,
    SourceName,
)
from .domain import MarketClock
from .orchestration import NotificationGate, NotificationSink, RefreshScheduler
from .persistence import InstrumentRepository, JsonFileRecordStore
from .utils import get_logger

logger = get_logger(__name__)

SOURCE_CHOICES = [name.value for name in SourceName]
SEARCH_ORDER = (SourceName.THS, SourceName.EASTMONEY, SourceName.SINA)


class ConsoleNotificationSink(NotificationSink):
    """Prints notifications to the terminal"""

    async def deliver(self, title: str, message: str, priority: int) -> None:
        color = "red" if message.startswith("上涨") else "green"
        click.secho(f"\n🔔 {title}", bold=True)
        click.secho(message, fg=color)


@dataclass
class Runtime:
    """Components shared by the CLI commands"""
    config: Config
    registry: ProviderRegistry
    repository: InstrumentRepository
    clock: MarketClock
    gate: NotificationGate
    scheduler: RefreshScheduler

    async def close(self):
        await self.registry.close()


def build_runtime(config: Optional[Config] = None, sink: Optional[NotificationSink] = None) -> Runtime:
    """Create registry, repository, clock, gate and scheduler from config"""
    config = config or get_config()

    registry = ProviderRegistry(config.providers)
    repository = InstrumentRepository(JsonFileRecordStore(config.system.store_path))
    clock = MarketClock(config.market)
    gate = NotificationGate(
        sink or ConsoleNotificationSink(),
        threshold_pct=config.notifications.threshold_pct,
        dedup_interval=config.notifications.dedup_minutes * 60,
        priority=config.notifications.priority,
    )
    scheduler = RefreshScheduler(repository, registry, clock=clock, gate=gate)

    return Runtime(
        config=config,
        registry=registry,
        repository=repository,
        clock=clock,
        gate=gate,
        scheduler=scheduler,
    )


def _fail(message: str):
    click.echo(f"\n❌ {message}", err=True)
    sys.exit(1)


@click.group()
def cli():
    """QuoteFlow - price tracker for A-share, fund and HK holdings"""
    pass


@cli.command()
def status():
    """Show configuration, market session and tracked instruments"""
    runtime = build_runtime()
    config = runtime.config
    logger.info("QuoteFlow status check")

    click.echo("\n📋 Configuration:")
    click.echo(f"  • Default source: {runtime.registry.default_source.value}")
    click.echo(f"  • Failover order: {', '.join(config.providers.failover_sources)}")
    click.echo(f"  • Cache TTL: {config.providers.cache_ttl_minutes} minutes")
    click.echo(f"  • Store: {config.system.store_path}")

    click.echo("\n🔌 Sources:")
    for name, source_config in config.providers.data_sources.items():
        state = "✅ Enabled" if source_config.enabled else "❌ Disabled"
        click.echo(f"  • {name}: {state} (max failures {source_config.max_failures})")

    click.echo("\n🕘 Market:")
    click.echo(f"  • Now: {runtime.clock.now().strftime('%Y-%m-%d %H:%M')} {config.market.timezone}")
    click.echo(f"  • Session: {runtime.clock.session_state()}")
    click.echo(f"  • Next refresh in: {runtime.clock.next_update_interval()}")

    instruments = asyncio.run(runtime.repository.list_instruments())
    tracked = [i for i in instruments if i.is_tracked]
    click.echo(f"\n📁 Instruments: {len(instruments)} stored, {len(tracked)} tracked")
    for instrument in tracked:
        price = f"{instrument.current_price:.3f}" if instrument.current_price is not None else "-"
        click.echo(f"  • {instrument.code} {instrument.name} [{instrument.kind.value}] {price}")


@cli.command()
@click.argument('code')
@click.option('--source', type=click.Choice(SOURCE_CHOICES), default=None, help='Quote source to use')
def quote(code, source):
    """Fetch the latest price for CODE"""
    asyncio.run(run_quote(code, source))


async def run_quote(code: str, source: Optional[str] = None):
    runtime = build_runtime()
    try:
        service = runtime.registry.get(source)
        data = await service.get_price_data(code)
    except QuoteFlowError as e:
        logger.error(f"Quote lookup failed for {code}: {e}")
        _fail(f"Quote lookup failed: {e}")
    finally:
        await runtime.close()

    arrow = "▲" if data.change > 0 else "▼" if data.change < 0 else "•"
    click.echo(f"\n💹 {data.code} via {service.source.value}")
    click.echo(f"  • Price: {data.price:.3f} {arrow} {data.change:+.3f} ({data.change_percent:+.2f}%)")
    click.echo(f"  • Open/High/Low: {data.open:.3f} / {data.high:.3f} / {data.low:.3f}")
    click.echo(f"  • Last close: {data.last_close:.3f}")
    click.echo(f"  • Volume: {data.volume:,}  Amount: {data.amount:,.0f}")


@cli.command()
@click.argument('code')
@click.option('--source', type=click.Choice(SOURCE_CHOICES), default=None, help='Quote source to use')
def info(code, source):
    """Look up name, kind and sector for CODE"""
    asyncio.run(run_info(code, source))


async def run_info(code: str, source: Optional[str] = None):
    runtime = build_runtime()
    try:
        security = await runtime.registry.get(source).get_security_info(code)
    except QuoteFlowError as e:
        logger.error(f"Info lookup failed for {code}: {e}")
        _fail(f"Info lookup failed: {e}")
    finally:
        await runtime.close()

    click.echo(f"\n🏷️  {security.name} ({security.code})")
    click.echo(f"  • Kind: {security.kind.value}")
    click.echo(f"  • Market: {security.market or 'unknown'}")
    if security.current_price is not None:
        click.echo(f"  • Price: {security.current_price:.3f}")
    if security.sector or security.industry:
        click.echo(f"  • Sector: {security.sector or '-'} / {security.industry or '-'}")


@cli.command()
@click.argument('query')
@click.option('--source', type=click.Choice(SOURCE_CHOICES), default=None, help='Quote source to use')
@click.option('--all-sources', is_flag=True, help='Search every enabled source and merge results')
def search(query, source, all_sources):
    """Search securities by code, name or pinyin"""
    asyncio.run(run_search(query, source, all_sources))


async def run_search(query: str, source: Optional[str] = None, all_sources: bool = False):
    runtime = build_runtime()
    try:
        if all_sources:
            enabled = [
                name for name in SEARCH_ORDER
                if runtime.config.providers.source_config(name.value).enabled
            ]
            results = await MultiSourceFinanceService(runtime.registry, enabled).search(query)
        else:
            results = await runtime.registry.get(source).search(query)
    except QuoteFlowError as e:
        logger.error(f"Search failed for {query!r}: {e}")
        _fail(f"Search failed: {e}")
    finally:
        await runtime.close()

    if not results:
        click.echo(f"\nNo securities found for {query!r}")
        return

    click.echo(f"\n🔍 {len(results)} result(s) for {query!r}:")
    for result in results:
        click.echo(f"  • {result.code} {result.name} [{result.kind.value}, {result.market}]")


@cli.command()
def refresh():
    """Run one price refresh cycle now"""
    asyncio.run(run_refresh())


async def run_refresh():
    runtime = build_runtime()
    try:
        await runtime.scheduler.refresh_prices()
    finally:
        await runtime.close()

    report = runtime.scheduler.last_report
    if report is None:
        return
    click.echo(f"\n📊 Refreshed {len(report.updated)}/{report.total} instruments")
    if report.failed:
        click.echo(f"  ⚠️ Failed: {', '.join(report.failed)}")
    if report.notified:
        click.echo(f"  🔔 Notified: {', '.join(report.notified)}")


@cli.command()
def run():
    """Refresh prices on the market schedule until interrupted"""
    click.echo("🚀 Starting QuoteFlow refresh loop...")
    asyncio.run(run_scheduler())


async def run_scheduler():
    runtime = build_runtime()
    loop = asyncio.get_running_loop()

    # Handle shutdown signals
    shutdown_event = asyncio.Event()

    def signal_handler(sig, frame):
        logger.info("Shutdown signal received")
        loop.call_soon_threadsafe(shutdown_event.set)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await runtime.scheduler.start()
        click.echo("✅ Refresh loop running. Press Ctrl+C to stop.")
        await shutdown_event.wait()
    finally:
        click.echo("\n🛑 Shutting down...")
        await runtime.scheduler.stop()
        await runtime.scheduler.wait_idle()
        await runtime.close()
        click.echo("👋 Goodbye!")


@cli.command()
@click.argument('path', type=click.Path(dir_okay=False, path_type=Path))
def export(path):
    """Write tracked instruments to PATH as JSON"""
    runtime = build_runtime()
    payload = asyncio.run(runtime.repository.export_payload())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding='utf-8')
    click.echo(f"✅ Exported {len(payload['investments'])} instruments to {path}")


@cli.command(name='import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--replace', is_flag=True, help='Replace stored instruments instead of merging by id')
def import_(path, replace):
    """Load instruments from an exported JSON file at PATH"""
    runtime = build_runtime()
    try:
        payload = json.loads(path.read_text(encoding='utf-8'))
        count = asyncio.run(runtime.repository.import_payload(payload, replace=replace))
    except (ValueError, KeyError, TypeError) as e:
        logger.error(f"Import from {path} failed: {e}")
        _fail(f"Import failed: {e}")

    click.echo(f"✅ Imported {count} instruments from {path}")


if __name__ == "__main__":
    cli()
