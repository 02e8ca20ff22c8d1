import pytest
from click.testing import CliRunner

from stocksync.cli.sync_stock import cli
from stocksync.core.exceptions import AggregateWriteFailedError, MarketplaceAdapterError


@pytest.fixture
def runner(mocker, manager, listing_p1):
    mocker.patch("stocksync.integrations.setup.setup_stock_manager", return_value=manager)
    mocker.patch("stocksync.cli.sync_stock.configure_logging")
    return CliRunner()


def test_sync_command(runner, adapters, master_listings):
    result = runner.invoke(cli, ["sync", "P1", "5", "--source", "shopify"])

    assert result.exit_code == 0, result.output
    assert "Stock synchronized to 2 marketplaces" in result.output
    assert "trendyol: 3 -> 5" in result.output
    assert master_listings.listings["P1"].total_stock == 5


def test_sync_command_partial_failure(runner, adapters):
    adapters["trendyol"].error = MarketplaceAdapterError("invalid token")

    result = runner.invoke(cli, ["sync", "P1", "5", "--source", "shopify"])

    assert result.exit_code == 0
    assert "Partially synchronized: 1 succeeded, 1 failed" in result.output
    assert "invalid token" in result.output


def test_sync_command_aggregate_write_failure(runner, master_listings):
    master_listings.fail_with = AggregateWriteFailedError("database is locked")

    result = runner.invoke(cli, ["sync", "P1", "5", "--source", "shopify"])

    assert result.exit_code == 1
    assert "aggregate_write_failed" in result.output


def test_sync_command_fatal_error(runner):
    result = runner.invoke(cli, ["sync", "missing", "5", "--source", "shopify"])

    assert result.exit_code == 1
    assert "not_found" in result.output


def test_batch_command(runner, tmp_path, master_listings):
    batch_file = tmp_path / "changes.csv"
    batch_file.write_text(
        "master_listing_id,new_stock,source_marketplace\n"
        "P1,5,shopify\n"
        "P2,3,trendyol\n"
    )

    result = runner.invoke(cli, ["batch", str(batch_file)])

    assert result.exit_code == 1
    assert "1 runs, 1 failed items" in result.output
    assert master_listings.listings["P1"].total_stock == 5


def test_batch_command_records_bad_rows(runner, tmp_path, master_listings):
    batch_file = tmp_path / "changes.csv"
    batch_file.write_text(
        "master_listing_id,new_stock,source_marketplace\n"
        "P1,lots,shopify\n"
        "P1,7,shopify\n"
    )

    result = runner.invoke(cli, ["batch", str(batch_file)])

    assert result.exit_code == 1
    assert "invalid_argument" in result.output
    assert "1 runs, 1 failed items" in result.output
    assert master_listings.listings["P1"].total_stock == 7


def test_batch_command_rejects_missing_columns(runner, tmp_path):
    batch_file = tmp_path / "changes.csv"
    batch_file.write_text("master_listing_id,quantity\nP1,5\n")

    result = runner.invoke(cli, ["batch", str(batch_file)])

    assert result.exit_code == 2
    assert "missing columns" in result.output

