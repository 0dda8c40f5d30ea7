# backend/stockbook/cli.py
# Overview: Flask CLI commands for ledger maintenance and quick reports.
#
# Usage (FLASK_APP=stockbook, run from backend/):
# - python -m flask ledger check
#   Compare cached balances with a full ledger replay (read-only).
# - python -m flask ledger rebuild-balances
#   Replace cached balances with the ledger replay; prints divergences.
# - python -m flask ledger pnl --from 2024-06-01T00:00:00Z --to 2024-06-30T23:59:59Z
#   Profit and loss over an inclusive window.
# - python -m flask ledger recent --limit 20
#   Most recent transactions, newest first.

import asyncio
import json

import click
from flask.cli import with_appcontext

from .extensions import get_context
from .services import balance_service, reporting_service
from .time_utils import parse_timestamp, to_utc_z


@click.group('ledger')
def ledger_group():
    """Ledger maintenance and reports."""


def _print_divergences(divergences):
    click.echo(f"{'Product':<38} {'Warehouse':<16} {'Cached':>10} {'Ledger':>10}")
    click.echo("=" * 78)
    for d in divergences:
        click.echo(f"{d['product_id']:<38} {d['warehouse_id']:<16} {d['cached']:>10} {d['ledger']:>10}")


@ledger_group.command('check')
@with_appcontext
def check_balances():
    """Compare cached balances with a ledger replay."""
    divergences = asyncio.run(balance_service.check_consistency(get_context()))
    if not divergences:
        click.echo("PASS Balances match the ledger")
        return
    click.echo(f"FAIL {len(divergences)} pair(s) diverge from the ledger\n")
    _print_divergences(divergences)
    raise SystemExit(1)


@ledger_group.command('rebuild-balances')
@with_appcontext
def rebuild_balances():
    """Rebuild cached balances from the ledger."""
    result = asyncio.run(balance_service.rebuild_balances(get_context()))
    divergences = result["divergences"]
    if divergences:
        click.echo(f"WARN Corrected {len(divergences)} pair(s)\n")
        _print_divergences(divergences)
    else:
        click.echo("PASS Balances already matched the ledger")
    click.echo(f"DONE {sum(len(w) for w in result['balances'].values())} balance(s) written")


@ledger_group.command('pnl')
@click.option('--from', 'start', default=None, help='Start (epoch ms or ISO-8601), inclusive')
@click.option('--to', 'end', default=None, help='End (epoch ms or ISO-8601), inclusive')
@with_appcontext
def pnl(start, end):
    """Profit and loss over a time window."""
    try:
        start_ms = parse_timestamp(start, default=None)
        end_ms = parse_timestamp(end, default=None)
    except ValueError:
        raise click.BadParameter("expected epoch milliseconds or an ISO-8601 datetime")

    report = asyncio.run(reporting_service.report_profit_and_loss(get_context(), start_ms, end_ms))
    click.echo(f"Window:       {report['from_iso']} .. {report['to_iso']}")
    click.echo(f"Revenue:      {report['revenue']}")
    click.echo(f"COGS:         {report['cogs']}")
    click.echo(f"Purchases:    {report['purchases']}")
    click.echo(f"Gross profit: {report['gross_profit']}")


@ledger_group.command('recent')
@click.option('--limit', default=20, type=int, help='Number of transactions')
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON records')
@with_appcontext
def recent(limit, as_json):
    """List the most recent transactions."""
    items = asyncio.run(reporting_service.list_recent_transactions(get_context(), limit))
    if as_json:
        click.echo(json.dumps(items, indent=2))
        return
    if not items:
        click.echo("No transactions found.")
        return

    click.echo(f"{'When':<22} {'Type':<9} {'Product':<38} {'Qty':>8} {'Amount':>12}")
    click.echo("=" * 93)
    for tx in items:
        amount = tx.get("total_cost") if tx.get("type") == "PURCHASE" else tx.get("total_revenue")
        click.echo(
            f"{to_utc_z(tx.get('timestamp')) or '-':<22} {tx.get('type', '?'):<9} "
            f"{tx.get('product_id', '-'):<38} {tx.get('quantity', 0):>8} {amount if amount is not None else '-':>12}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
