"""Click-based CLI for quote-resolver.

Thin wrapper around library modules. Zero business logic — every operation
delegates to the classifier or to ``QuoteEngine``.
"""

from __future__ import annotations

import asyncio
import csv
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

console = Console(stderr=True)

_RANGES = ["1mo", "3mo", "6mo", "ytd", "1y", "5y", "max"]
_INTERVALS = ["1d", "1wk", "1mo"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from quote_resolver.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


def _create_engine(config):
    """Build a QuoteEngine from config."""
    from quote_resolver.engine import QuoteEngine

    return QuoteEngine(config)


def _setup_logging() -> None:
    """Route library logging through rich at DEBUG level."""
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _fmt(value: float | None, digits: int = 4) -> str:
    return "—" if value is None else f"{value:,.{digits}f}"


def _read_holdings(path: str) -> list[dict]:
    """Load ``[{symbol, shares}]`` from a JSON or CSV file."""
    p = Path(path)
    if p.suffix.lower() == ".csv":
        with open(p, newline="") as f:
            return [
                {
                    "id": row.get("id") or "",
                    "symbol": row.get("symbol") or "",
                    "shares": float(row.get("shares") or 0),
                }
                for row in csv.DictReader(f)
            ]
    data = json.loads(p.read_text())
    if not isinstance(data, list):
        raise click.UsageError(f"{path} must contain a JSON list of holdings")
    return data


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="QUOTE_RESOLVER_CONFIG",
    default=None,
    help="Path to quote-resolver.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output.",
)
@click.version_option(package_name="quote-resolver")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Quote Resolver: multi-provider quotes and histories settled in PLN."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    if verbose:
        _setup_logging()


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbols", nargs=-1, required=True)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
def classify(symbols: tuple[str, ...], output_format: str) -> None:
    """Show how tickers are classified and which provider codes they map to."""
    from quote_resolver.symbols import classify as classify_symbol
    from quote_resolver.symbols import domestic_codes, global_codes

    rows = []
    for raw in symbols:
        sym = classify_symbol(raw)
        rows.append(
            {
                **sym.model_dump(mode="json"),
                "domestic_codes": domestic_codes(sym),
                "global_codes": global_codes(sym),
            }
        )

    if output_format == "json":
        click.echo(json.dumps(rows, indent=2))
        return

    table = Table(title="Symbols")
    table.add_column("Raw")
    table.add_column("Canonical", style="bold")
    table.add_column("Segment")
    table.add_column("Currency")
    table.add_column("Domestic codes")
    table.add_column("Global codes")
    for row in rows:
        table.add_row(
            row["raw"],
            row["canonical"],
            row["segment"],
            row["native_currency_guess"] or "?",
            ", ".join(row["domestic_codes"]),
            ", ".join(row["global_codes"]),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# quote
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbols", nargs=-1, required=True)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def quote(ctx: click.Context, symbols: tuple[str, ...], output_format: str) -> None:
    """Fetch current prices in PLN."""
    async def _run():
        config = _load_config(ctx)
        async with _create_engine(config) as engine:
            return await engine.get_quote_batch(list(symbols))

    quotes = _run_async(_run())

    if output_format == "json":
        output = {k: q.model_dump(mode="json", by_alias=True) for k, q in quotes.items()}
        click.echo(json.dumps(output, indent=2))
        return

    table = Table(title="Quotes (PLN)")
    table.add_column("Symbol", style="bold")
    table.add_column("Price PLN", justify="right")
    table.add_column("Prev close PLN", justify="right")
    table.add_column("Currency")
    table.add_column("FX", justify="right")
    table.add_column("Source")
    for symbol, q in quotes.items():
        table.add_row(
            symbol,
            _fmt(q.price_pln),
            _fmt(q.prev_close_pln),
            q.currency or "—",
            _fmt(q.fx_rate),
            q.source or "—",
        )
    console.print(table)

    if quotes and all(q.is_empty for q in quotes.values()):
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbol")
@click.option(
    "--range",
    "-r",
    "range_",
    type=click.Choice(_RANGES, case_sensitive=False),
    default="1y",
    help="History window.",
)
@click.option(
    "--interval",
    "-i",
    type=click.Choice(_INTERVALS, case_sensitive=False),
    default="1d",
    help="Bar interval.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "csv"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def history(
    ctx: click.Context,
    symbol: str,
    range_: str,
    interval: str,
    output_format: str,
) -> None:
    """Fetch a close series in PLN."""
    async def _run():
        config = _load_config(ctx)
        async with _create_engine(config) as engine:
            return await engine.get_history(symbol, range_, interval)

    points = _run_async(_run())
    if not points:
        console.print(f"[yellow]No history for {symbol}.[/yellow]")
        raise SystemExit(1)

    if output_format == "json":
        click.echo(json.dumps([p.model_dump(mode="json") for p in points], indent=2))
    elif output_format == "csv":
        writer = csv.writer(sys.stdout)
        writer.writerow(["date", "close"])
        for p in points:
            writer.writerow([p.date.isoformat(), f"{p.close:.6f}"])
    else:
        table = Table(title=f"{symbol.upper()} — {range_} / {interval} (PLN)")
        table.add_column("Date")
        table.add_column("Close PLN", justify="right")
        for p in points:
            table.add_row(p.date.isoformat(), _fmt(p.close))
        console.print(table)


# ---------------------------------------------------------------------------
# batch
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("holdings", type=click.Path(exists=True))
@click.option(
    "--mode",
    type=click.Choice(["history", "quotes", "value"], case_sensitive=False),
    default="value",
    help="Resolve histories, quotes, or the portfolio value series.",
)
@click.option(
    "--range",
    "-r",
    "range_",
    type=click.Choice(_RANGES, case_sensitive=False),
    default="1y",
    help="History window.",
)
@click.option(
    "--interval",
    "-i",
    type=click.Choice(_INTERVALS, case_sensitive=False),
    default="1d",
    help="Bar interval.",
)
@click.pass_context
def batch(
    ctx: click.Context,
    holdings: str,
    mode: str,
    range_: str,
    interval: str,
) -> None:
    """Resolve a holdings file (JSON list or CSV of symbol, shares)."""
    items = _read_holdings(holdings)

    async def _run():
        config = _load_config(ctx)
        async with _create_engine(config) as engine:
            if mode == "quotes":
                quotes = await engine.get_quote_batch(items)
                return {k: q.model_dump(mode="json", by_alias=True) for k, q in quotes.items()}
            if mode == "history":
                histories = await engine.get_history_batch(items, range_, interval)
                return {
                    k: [p.model_dump(mode="json") for p in pts]
                    for k, pts in histories.items()
                }
            series = await engine.get_portfolio_value(items, range_, interval)
            return [p.model_dump(mode="json") for p in series]

    output = _run_async(_run())
    click.echo(json.dumps(output, indent=2))

    if mode == "history":
        empty = [k for k, pts in output.items() if not pts]
        if empty:
            console.print(f"[yellow]No history for: {', '.join(empty)}[/yellow]")


# ---------------------------------------------------------------------------
# fx
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("currency")
@click.option(
    "--date",
    "-d",
    "as_of",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Rate in force on this date (YYYY-MM-DD). Defaults to today.",
)
@click.pass_context
def fx(ctx: click.Context, currency: str, as_of: datetime | None) -> None:
    """Show the <CURRENCY>/PLN rate."""
    async def _run():
        config = _load_config(ctx)
        async with _create_engine(config) as engine:
            return await engine.get_fx_rate(currency, as_of.date() if as_of else None)

    rate = _run_async(_run())
    if rate is None:
        console.print(f"[red]No {currency.upper()}/PLN rate found.[/red]")
        raise SystemExit(1)
    click.echo(f"{rate:.6f}")


if __name__ == "__main__":
    cli()
