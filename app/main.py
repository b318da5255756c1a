"""
Command-line front end for Finance Aggregator

Run with:  python -m app.main <command>   (or the finance-aggregator script)

DESIGN PRINCIPLES:
1. One command = one batch, with one correlation ID in the audit log
2. Fetch and import commands print the batch result as JSON, so they
   can be driven by cron or another script
3. Partial failure still prints the result; the exit code tells you
4. Nothing is deleted without --yes

Exit codes: 0 success, 1 batch finished with errors, 2 storage or
configuration failure. check-config exits 1 when a section every
storage command needs is missing.
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from finance_aggregator import __version__
from finance_aggregator.config import get_settings, validate_all_settings
from finance_aggregator.extraction import parse_amount
from finance_aggregator.extraction.csv_extractor import parse_date
from finance_aggregator.models.batch import BatchResult
from finance_aggregator.orchestrator import RefreshBatchRunner, create_app_components
from finance_aggregator.services.providers import (
    PlaidProvider,
    ProviderError,
    SimpleFINProvider,
)
from finance_aggregator.services.storage import NotFoundError, StorageError


console = Console()
err_console = Console(stderr=True)


def _money(value) -> str:
    return f"${value:,.2f}"


def _print_batch(result: BatchResult) -> int:
    console.print_json(json.dumps(result.to_summary_dict()))
    return 0 if result.success else 1


# =============================================================================
# COMMANDS
# =============================================================================

async def cmd_fetch(runner: RefreshBatchRunner, args) -> int:
    if args.provider == "plaid":
        result = await runner.run_plaid_fetch()
    elif args.provider == "simplefin":
        result = await runner.run_simplefin_fetch()
    else:
        result = await runner.run_all()
    return _print_batch(result)


async def cmd_import_csv(runner: RefreshBatchRunner, args) -> int:
    result = await runner.import_csv_files(args.files, account_id=args.account)
    return _print_batch(result)


async def cmd_import_folder(runner: RefreshBatchRunner, args) -> int:
    result = await runner.import_csv_folder(args.folder)
    return _print_batch(result)


async def cmd_record(runner: RefreshBatchRunner, args) -> int:
    amount = parse_amount(args.amount)
    if amount is None:
        err_console.print(f"Not a valid amount: {args.amount}", style="bold red")
        return 1

    when: Optional[datetime] = None
    if args.date:
        day = parse_date(args.date)
        if day is None:
            err_console.print(f"Not a valid date: {args.date}", style="bold red")
            return 1
        when = datetime(day.year, day.month, day.day)

    try:
        reading = await runner.record_manual_balance(
            args.account_id, amount, when=when, notes=args.notes
        )
    except NotFoundError as e:
        err_console.print(str(e), style="bold red")
        return 1

    console.print(
        f"Recorded {_money(reading.amount)} for {reading.account_id} "
        f"on {reading.date:%Y-%m-%d}",
        style="bold green",
    )
    return 0


async def cmd_summary(runner: RefreshBatchRunner, args) -> int:
    summary = await runner.net_worth_summary()

    table = Table(title="Net worth")
    table.add_column("Type")
    table.add_column("Side")
    table.add_column("Total", justify="right")
    for key, total in sorted(summary.by_type.items()):
        account_type, side = key.split(":", 1)
        table.add_row(account_type, side, _money(total))
    console.print(table)

    console.print(f"Assets:      {_money(summary.total_assets)}")
    console.print(f"Liabilities: {_money(summary.total_liabilities)}")
    console.print(f"Net worth:   {_money(summary.net_worth)}", style="bold cyan")
    console.print(f"{summary.account_count} active accounts", style="dim")
    return 0


async def cmd_stale(runner: RefreshBatchRunner, args) -> int:
    run_config = await runner.load_run_config()
    stale = await runner.check_stale_accounts(run_config)
    if not stale:
        console.print("All accounts are up to date", style="bold green")
        return 0

    table = Table(title=f"Not updated in {run_config.stale_threshold_days}+ days")
    table.add_column("Account")
    table.add_column("Name")
    table.add_column("Last updated")
    table.add_column("Days", justify="right")
    for item in stale:
        table.add_row(
            item.account_id,
            item.display_name,
            f"{item.last_updated:%Y-%m-%d}" if item.last_updated else "never",
            str(item.days_since_update) if item.days_since_update is not None else "-",
        )
    console.print(table)
    return 0


async def cmd_accounts(runner: RefreshBatchRunner, args) -> int:
    table = Table(title="Accounts")
    for column in ("ID", "Institution", "Name", "Type", "Method", "Linked", "Active"):
        table.add_column(column)
    for account in await runner.accounts():
        table.add_row(
            account.id,
            account.institution,
            account.display_name,
            f"{account.type.value} ({'asset' if account.is_asset else 'liability'})",
            account.ingestion_method.value,
            "yes" if account.is_linked else "no",
            "yes" if account.is_active else "no",
        )
    console.print(table)
    return 0


async def cmd_clear_balances(runner: RefreshBatchRunner, args) -> int:
    if not args.yes:
        err_console.print("Refusing to delete balances without --yes", style="bold yellow")
        return 1
    count = await runner.clear_balances()
    console.print(f"Deleted {count} balance readings", style="bold")
    return 0


def cmd_link_plaid(args) -> int:
    with PlaidProvider.from_settings(get_settings().plaid) as plaid:
        token = plaid.create_link_token()
    console.print("Open Plaid Link with this token:", style="bold")
    console.print(token)
    return 0


def cmd_exchange_plaid(args) -> int:
    with PlaidProvider.from_settings(get_settings().plaid) as plaid:
        linked = plaid.exchange_public_token(args.public_token, args.institution)
    console.print_json(json.dumps(linked))
    console.print(
        f"Add \"{linked['institution_key']}\" to PLAID_ACCESS_TOKENS to fetch it",
        style="dim",
    )
    return 0


def cmd_claim_simplefin(args) -> int:
    with SimpleFINProvider(timeout=get_settings().simplefin.timeout_seconds) as simplefin:
        access_url = simplefin.claim_setup_token(args.setup_token)
    console.print("Add this access URL to SIMPLEFIN_ACCESS_URLS:", style="bold")
    console.print(access_url)
    return 0


# Sections every storage command needs; providers are optional
REQUIRED_SECTIONS = ("google_sheets", "app")


def cmd_check_config(args) -> int:
    results = validate_all_settings()

    table = Table(title="Configuration")
    table.add_column("Section")
    table.add_column("Status")
    table.add_column("Problem")
    for name in ("google_sheets", "plaid", "simplefin", "app"):
        if results.get(name):
            status = "[green]ok[/green]"
        elif name in REQUIRED_SECTIONS:
            status = "[red]missing[/red]"
        else:
            status = "[yellow]not configured[/yellow]"
        table.add_row(name, status, escape(results.get(f"{name}_error", "")))
    console.print(table)

    return 0 if all(results.get(name) for name in REQUIRED_SECTIONS) else 1


STORAGE_COMMANDS = {
    "fetch": cmd_fetch,
    "import-csv": cmd_import_csv,
    "import-folder": cmd_import_folder,
    "record": cmd_record,
    "summary": cmd_summary,
    "stale": cmd_stale,
    "accounts": cmd_accounts,
    "clear-balances": cmd_clear_balances,
}

DIRECT_COMMANDS = {
    "link-plaid": cmd_link_plaid,
    "exchange-plaid": cmd_exchange_plaid,
    "claim-simplefin": cmd_claim_simplefin,
    "check-config": cmd_check_config,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="finance-aggregator",
        description="Pull account balances into a spreadsheet ledger",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--no-storage",
        action="store_true",
        help="Use in-memory storage instead of Google Sheets (dry run)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser("fetch", help="Refresh balances from providers")
    fetch.add_argument("provider", choices=["plaid", "simplefin", "all"])

    import_csv = sub.add_parser("import-csv", help="Import CSV exports")
    import_csv.add_argument("files", nargs="+", help="CSV files")
    import_csv.add_argument("--account", help="Account ID the files belong to")

    import_folder = sub.add_parser("import-folder", help="Import every CSV in a folder")
    import_folder.add_argument("folder", nargs="?", help="Defaults to import_folder setting")

    record = sub.add_parser("record", help="Record a balance by hand")
    record.add_argument("account_id")
    record.add_argument("amount")
    record.add_argument("--date", help="YYYY-MM-DD or MM/DD/YYYY (default: now)")
    record.add_argument("--notes", default="")

    sub.add_parser("summary", help="Show net worth")
    sub.add_parser("stale", help="List accounts that need a refresh")
    sub.add_parser("accounts", help="List tracked accounts")

    clear = sub.add_parser("clear-balances", help="Delete all balance readings")
    clear.add_argument("--yes", action="store_true")

    sub.add_parser("link-plaid", help="Create a Plaid Link token")

    exchange = sub.add_parser("exchange-plaid", help="Exchange a Plaid public token")
    exchange.add_argument("public_token")
    exchange.add_argument("institution", help="Institution name, e.g. \"Wells Fargo\"")

    claim = sub.add_parser("claim-simplefin", help="Claim a SimpleFIN setup token")
    claim.add_argument("setup_token")

    sub.add_parser("check-config", help="Report which settings sections are usable")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.command in DIRECT_COMMANDS:
            return DIRECT_COMMANDS[args.command](args)

        runner, _ = create_app_components(use_storage=not args.no_storage)
        return asyncio.run(STORAGE_COMMANDS[args.command](runner, args))
    except ProviderError as e:
        err_console.print(f"Provider error: {e}", style="bold red")
        return 1
    except StorageError as e:
        err_console.print(f"Storage error: {e}", style="bold red")
        return 2
    except ValueError as e:
        # Missing or invalid settings
        err_console.print(f"Configuration error: {e}", style="bold red")
        return 2


if __name__ == "__main__":
    sys.exit(main())
