"""CLI for the ``finance_dashboard`` package.

Environment variables (``DATABASE_URL`` and the ``FD_*`` tunables) are loaded
from a local ``.env`` using ``python-dotenv`` before any command runs.
Business logic lives in ``finance_dashboard.api`` and the modules it wires;
this module only parses options, drives the event loop, and renders tables.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from datetime import MAXYEAR, MINYEAR, datetime
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from typer.models import OptionInfo

from .api import Dashboard, DashboardServices, build_dashboard, cache_from_settings
from .config import Settings
from .date_filter import available_months, available_years, parse_transaction_date
from .errors import DateParseError, RemoteFetchError, TransactionValidationError
from .formatting import annotation, format_currency, format_percentage
from .logging_setup import configure_logging
from .models import CustomFilter, DateFilter, MonthFilter, Transaction, YearFilter
from .overview import MONTH_LABELS, net_amount, net_percentage
from .rates import ExchangeRateStore

console = Console()
err_console = Console(stderr=True)


# ---- Small module-level helpers used by CLI commands -------------------------


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def _parse_bound(value: str, option: str) -> datetime:
    try:
        return parse_transaction_date(value)
    except DateParseError as e:
        raise typer.BadParameter(str(e), param_hint=option) from e


def _resolve_filter(
    transactions: Sequence[Transaction],
    *,
    year: int | None,
    month: int | None,
    start: datetime | None,
    end: datetime | None,
) -> DateFilter:
    """Custom range wins, then month, then year; default is the latest year."""

    if start is not None or end is not None:
        return CustomFilter(start=start, end=end)
    years = available_years(transactions)
    latest = years[0] if years else None
    if month is not None:
        return MonthFilter(year=year if year is not None else latest, month=month)
    return YearFilter(year=year if year is not None else latest)


def _describe_filter(date_filter: DateFilter) -> str:
    if isinstance(date_filter, MonthFilter) and date_filter.year and date_filter.month:
        return f"{MONTH_LABELS[date_filter.month - 1]} {date_filter.year}"
    if isinstance(date_filter, CustomFilter) and date_filter.start and date_filter.end:
        return f"{date_filter.start.date().isoformat()} to {date_filter.end.date().isoformat()}"
    if isinstance(date_filter, YearFilter) and date_filter.year:
        return str(date_filter.year)
    return "all time"


def _render_dashboard(dashboard: Dashboard, *, show_transactions: bool) -> None:
    currency = dashboard.target_currency
    overview = dashboard.overview

    totals = Table(title=f"Overview: {_describe_filter(dashboard.date_filter)}")
    totals.add_column("Income", justify="right", style="green")
    totals.add_column("Expense", justify="right", style="red")
    totals.add_column("Net", justify="right")
    totals.add_column("Net %", justify="right")
    totals.add_row(
        format_currency(overview.total_income, currency),
        format_currency(overview.total_expense, currency),
        format_currency(net_amount(overview), currency),
        format_percentage(net_percentage(overview)),
    )
    console.print(totals)

    breakdown = Table(title="Expenses by category")
    breakdown.add_column("Category")
    breakdown.add_column("Amount", justify="right")
    breakdown.add_column("Share", justify="right")
    for item in overview.category_breakdown:
        breakdown.add_row(
            item.category,
            format_currency(item.amount, currency),
            format_percentage(item.percentage),
        )
    console.print(breakdown)

    if dashboard.chart:
        chart = Table(title="Income and expense over time")
        chart.add_column("Period")
        chart.add_column("Income", justify="right", style="green")
        chart.add_column("Expense", justify="right", style="red")
        for point in dashboard.chart:
            chart.add_row(
                point.period,
                format_currency(point.income, currency),
                format_currency(point.expense, currency),
            )
        console.print(chart)

    if show_transactions:
        rows = Table(title=f"Transactions ({len(dashboard.transactions)})")
        rows.add_column("Date")
        rows.add_column("Item")
        rows.add_column("Category")
        rows.add_column("Amount", justify="right")
        rows.add_column("Notes")
        for t in dashboard.transactions:
            rows.add_row(
                t.date,
                t.item_name,
                t.category,
                format_currency(t.final_amount, currency),
                annotation(t),
            )
        console.print(rows)

    if dashboard.rates_loading:
        console.print("[yellow]Exchange rates are still loading; some amounts are unconverted.[/]")


async def _overview_async(
    settings: Settings,
    *,
    year: int | None,
    month: int | None,
    start: datetime | None,
    end: datetime | None,
    use_cache: bool,
) -> Dashboard:
    async with DashboardServices.from_settings(settings) as services:
        transactions = await services.load_transactions(use_cache=use_cache)
        date_filter = _resolve_filter(transactions, year=year, month=month, start=start, end=end)
        return await build_dashboard(transactions, services.store, date_filter)


async def _load_async(settings: Settings, *, use_cache: bool) -> list[Transaction]:
    async with DashboardServices.from_settings(settings) as services:
        return await services.load_transactions(use_cache=use_cache)


async def _rates_async(settings: Settings, currencies: Sequence[str]) -> ExchangeRateStore:
    store = ExchangeRateStore(
        target_currency=settings.target_currency,
        poll_interval=settings.poll_interval_seconds,
        timeout=settings.http_timeout_seconds,
    )
    async with store:
        await store.fetch_rates(currencies)
    return store


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Personal finance dashboard: import transactions, summarize income and "
        "expenses by period and category, and convert currencies. Loads "
        "DATABASE_URL and FD_* settings from a local .env before running."
    ),
)


# Module-level option object to satisfy ruff B008 (no calls in parameter
# defaults). Typer will inspect this when used as a default value below.
JSON_PATH_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--json-path",
    help="Path to the nested JSON accounting export to import.",
    dir_okay=False,
    file_okay=True,
    exists=False,  # allow non-existent here; the handler will report nice errors
)


@app.command("import-json")
def import_json_cmd(
    json_path: Path = JSON_PATH_OPTION,
    *,
    limit: int | None = typer.Option(
        None, min=1, help="Import only the first N transactions (for trial runs)."
    ),
    batch_size: int | None = typer.Option(
        None, min=1, help="Rows per insert batch (default FD_IMPORT_BATCH_SIZE or 500)."
    ),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Validate a JSON export and bulk insert its transactions."""

    from .persistence import insert_transactions
    from .transform import load_accounting_file

    settings = Settings.from_env()
    url = database_url or settings.database_url
    if not url:
        raise _fail("DATABASE_URL is not set (pass --database-url or set it in .env).")

    try:
        transactions = load_accounting_file(json_path)
    except FileNotFoundError:
        raise _fail(f"File not found: {json_path}") from None
    except PermissionError:
        raise _fail(f"Permission denied: {json_path}") from None
    except json.JSONDecodeError as e:
        raise _fail(f"Failed to parse JSON: {e}") from e
    except TransactionValidationError as e:
        for err in e.errors[:10]:
            loc = ".".join(str(p) for p in err.get("loc", ()))
            err_console.print(f"  {loc}: {err.get('msg', '')}")
        raise _fail(str(e)) from e

    if limit is not None:
        transactions = transactions[:limit]
    if not transactions:
        console.print("No transactions to import.")
        return

    console.print(f"Importing {len(transactions)} transactions…")
    result = insert_transactions(
        transactions,
        database_url=url,
        batch_size=batch_size or settings.import_batch_size,
    )

    console.print(
        f"[green]Imported {result.succeeded}/{result.total}[/green] "
        f"in {result.batches} batch(es); failed: {result.failed}"
    )
    for message in result.errors[:10]:
        err_console.print(f"  {message}")
    if len(result.errors) > 10:
        err_console.print(f"  … and {len(result.errors) - 10} more")
    if result.failed:
        raise typer.Exit(1)


@app.command("overview")
def overview_cmd(
    *,
    year: int | None = typer.Option(
        None, min=MINYEAR, max=MAXYEAR, help="Calendar year (default: latest with data)."
    ),
    month: int | None = typer.Option(None, min=1, max=12, help="Month 1-12 of --year."),
    start: str | None = typer.Option(
        None, "--from", help="Start of an inclusive range, with --to (YYYY-MM-DD[ HH:MM:SS])."
    ),
    end: str | None = typer.Option(
        None, "--to", help="End of an inclusive range, with --from (YYYY-MM-DD[ HH:MM:SS])."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the local cache."),
    transactions: bool = typer.Option(
        False, "--transactions", help="Also list the filtered transactions."
    ),
) -> None:
    """Summarize income, expense and categories for a period."""

    if (start is None) != (end is None):
        raise typer.BadParameter("--from and --to must be given together", param_hint="--from/--to")
    start_at = _parse_bound(start, "--from") if start else None
    end_at = _parse_bound(end, "--to") if end else None
    settings = Settings.from_env()

    try:
        dashboard = asyncio.run(
            _overview_async(
                settings,
                year=year,
                month=month,
                start=start_at,
                end=end_at,
                use_cache=not no_cache,
            )
        )
    except RemoteFetchError as e:
        raise _fail(f"could not load transactions: {e}") from e

    _render_dashboard(dashboard, show_transactions=transactions)


@app.command("years")
def years_cmd(
    *,
    year: int | None = typer.Option(
        None, min=MINYEAR, max=MAXYEAR, help="List the months with data in this year."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the local cache."),
) -> None:
    """List the years (or one year's months) that have transactions."""

    settings = Settings.from_env()
    try:
        loaded = asyncio.run(_load_async(settings, use_cache=not no_cache))
    except RemoteFetchError as e:
        raise _fail(f"could not load transactions: {e}") from e

    if year is None:
        found = available_years(loaded)
        if not found:
            console.print("No transactions.")
            return
        for y in found:
            console.print(str(y))
        return

    months = available_months(loaded, year)
    if not months:
        console.print(f"No transactions in {year}.")
        return
    for m in months:
        console.print(f"{m:02d} {MONTH_LABELS[m - 1]}")


@app.command("rates")
def rates_cmd(
    currencies: list[str] = typer.Argument(..., help="Currency codes, e.g. USD EUR TWD."),
) -> None:
    """Fetch the current rate of each currency into the target currency."""

    settings = Settings.from_env()
    store = asyncio.run(_rates_async(settings, currencies))

    table = Table(title=f"Rates to {store.target_currency}")
    table.add_column("Currency")
    table.add_column("Rate", justify="right")
    missing = 0
    for code in dict.fromkeys(c.strip().upper() for c in currencies):
        rate = store.get_rate(code)
        if rate is None:
            missing += 1
            table.add_row(code, "[red]unavailable[/red]")
        else:
            table.add_row(code, f"{rate:.6f}")
    console.print(table)
    if missing:
        raise typer.Exit(1)


@app.command("clear-cache")
def clear_cache_cmd() -> None:
    """Evict the locally cached transaction set."""

    cache = cache_from_settings(Settings.from_env())
    if not cache.clear():
        raise _fail("failed to clear the local cache (see logs).")
    console.print("Local cache cleared.")


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m finance_dashboard.cli`
    app()


__all__ = ["app"]
