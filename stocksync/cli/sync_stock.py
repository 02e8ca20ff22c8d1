# stocksync/cli/sync_stock.py
import asyncio
import csv
import sys

import click

from stocksync.core.config import get_settings
from stocksync.core.exceptions import StockSyncError
from stocksync.core.logging_config import configure_logging


def _print_run(run):
    click.echo(f"{run.master_listing_id}: {run.message} [{run.state.value}]")
    for outcome in run.results:
        mark = "OK " if outcome.success else "ERR"
        line = f"  {mark} {outcome.marketplace}: {outcome.previous_stock} -> {outcome.new_stock}"
        if outcome.error:
            line += f" ({outcome.error})"
        click.echo(line)


def _read_batch_file(path):
    from stocksync.integrations.stock_manager import BatchItem

    items = []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        missing = {"master_listing_id", "new_stock", "source_marketplace"} - set(reader.fieldnames or [])
        if missing:
            raise click.BadParameter(f"missing columns: {', '.join(sorted(missing))}", param_hint="FILE")
        for row in reader:
            raw = (row["new_stock"] or "").strip()
            try:
                quantity = int(raw)
            except ValueError:
                # left as text; the batch records the row as invalid_argument
                quantity = raw
            items.append(BatchItem(
                master_listing_id=(row["master_listing_id"] or "").strip(),
                new_quantity=quantity,
                source_marketplace=(row["source_marketplace"] or "").strip(),
                user_id=(row.get("user_id") or "").strip() or get_settings().DEFAULT_USER_ID,
            ))
    return items


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level):
    """Stock synchronization commands"""
    configure_logging(log_level or get_settings().LOG_LEVEL)


@cli.command()
@click.argument("master_listing_id")
@click.argument("quantity", type=int)
@click.option("--source", "source_marketplace", required=True, help="Marketplace the change came from")
@click.option("--user-id", default=None, help="Owner of the sync log entries")
def sync(master_listing_id, quantity, source_marketplace, user_id):
    """Push QUANTITY of MASTER_LISTING_ID to every other marketplace"""
    from stocksync.integrations.setup import setup_stock_manager

    async def _sync():
        manager = setup_stock_manager()
        return await manager.synchronize_stock(
            master_listing_id, quantity, source_marketplace, user_id=user_id or get_settings().DEFAULT_USER_ID
        )

    try:
        run = asyncio.run(_sync())
    except StockSyncError as e:
        click.echo(f"Error ({e.code}): {e}", err=True)
        sys.exit(1)

    _print_run(run)
    if not run.success:
        sys.exit(1)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def batch(file):
    """Run the stock changes listed in a CSV FILE (master_listing_id,new_stock,source_marketplace)"""
    from stocksync.integrations.setup import setup_stock_manager

    items = _read_batch_file(file)
    if not items:
        click.echo("No rows to synchronize")
        return

    async def _batch():
        manager = setup_stock_manager()
        return await manager.synchronize_batch(items)

    result = asyncio.run(_batch())

    for run in result.runs:
        _print_run(run)
    for failure in result.failures:
        click.echo(f"{failure.master_listing_id}: {failure.error_type}: {failure.error}", err=True)

    click.echo(f"{len(result.runs)} runs, {len(result.failures)} failed items")
    if result.failures:
        sys.exit(1)


@cli.command("create-tables")
def create_tables():
    """Create all database tables directly using SQLAlchemy"""
    from stocksync import models  # noqa: F401
    from stocksync.database import Base, engine

    async def _create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        click.echo("All tables created successfully!")

    asyncio.run(_create_tables())


if __name__ == "__main__":
    cli()
