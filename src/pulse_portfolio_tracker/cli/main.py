"""CLI for the PulseChain portfolio tracker."""

import json
import logging
from enum import StrEnum

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.traceback import install

from pulse_portfolio_tracker.core.models import SnapshotStatus, TransactionHistory, WalletSnapshot
from pulse_portfolio_tracker.core.registry import ProtocolRegistry
from pulse_portfolio_tracker.core.service import TrackerSettings, WalletService, build_service

# Install rich traceback handler
install(show_locals=False)

app = typer.Typer(
    name="pulse-portfolio-tracker",
    help="Aggregate PulseChain wallet balances, prices and classified transactions",
    add_completion=False,
)

console = Console()


class OutputFormat(StrEnum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=debug)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)


def _build(debug: bool) -> WalletService:
    _configure_logging(debug)
    settings = TrackerSettings.from_env(start_sweeper=False)
    if debug:
        console.print(f"[dim]RPC endpoints: {', '.join(settings.rpc_endpoints) or 'none'}[/dim]")
        if not settings.moralis_api_key:
            console.print("[dim]MORALIS_API_KEY not set, using chain scan and DexScreener only[/dim]")
    return build_service(settings)


@app.command()
def wallet(
    address: str = typer.Argument(..., help="Wallet address to query"),
    page: int = typer.Option(1, "--page", "-p", help="Page number (1-based)"),
    limit: int = typer.Option(100, "--limit", "-l", help="Tokens per page, 0 for all"),
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Bypass the snapshot cache"),
    format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """
    Show priced token holdings of a wallet.

    Examples:

        # All holdings, first page
        pulse-portfolio-tracker wallet 0xABC...

        # Second page of 20 tokens as JSON
        pulse-portfolio-tracker wallet 0xABC... --page 2 --limit 20 --format json
    """
    console.print(f"\n[bold cyan]Fetching balances for:[/bold cyan] {address}")

    with _build(debug) as service:
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
            task = progress.add_task("Aggregating balances...", total=None)
            snapshot = service.get_wallet_snapshot(address, page=page, limit=limit, force_refresh=refresh)
            progress.update(task, description=f"✓ Loaded {snapshot.token_count} tokens")

    if format == OutputFormat.JSON:
        _output_json(snapshot)
    else:
        _output_snapshot_table(snapshot)

    if snapshot.status == SnapshotStatus.ERROR:
        raise typer.Exit(1)


@app.command()
def transactions(
    address: str = typer.Argument(..., help="Wallet address to query"),
    limit: int = typer.Option(25, "--limit", "-l", help="Transactions per page"),
    cursor: str | None = typer.Option(None, "--cursor", "-c", help="Cursor returned by a previous page"),
    format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """
    Show classified transactions of a wallet.

    Examples:

        pulse-portfolio-tracker transactions 0xABC... --limit 50
    """
    console.print(f"\n[bold cyan]Fetching transactions for:[/bold cyan] {address}")

    with _build(debug) as service:
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
            task = progress.add_task("Classifying transactions...", total=None)
            history = service.get_transaction_history(address, limit=limit, cursor=cursor)
            progress.update(task, description=f"✓ Classified {len(history.transactions)} transactions")

    if format == OutputFormat.JSON:
        _output_json(history)
    else:
        _output_history_table(history)

    if history.status == SnapshotStatus.ERROR:
        raise typer.Exit(1)


@app.command()
def price(
    tokens: list[str] = typer.Argument(..., help="Token contract addresses"),
    format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """Show USD prices for one or more tokens."""
    with _build(debug) as service:
        quotes = service.get_batch_token_prices(tokens)

    if format == OutputFormat.JSON:
        data = {address: quote.model_dump(mode="json") for address, quote in quotes.items()}
        console.print(json.dumps(data, indent=2))
        return

    table = Table(title="Token Prices", show_header=True, header_style="bold magenta")
    table.add_column("Token", style="cyan")
    table.add_column("Price (USD)", style="bold green", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("Source", style="dim")

    for token in tokens:
        quote = quotes.get(token.lower())
        if quote is None:
            table.add_row(token, "-", "-", "unpriced")
            continue
        table.add_row(token, f"${quote.usd_price:,.8f}", _format_change(quote.price_change_24h), quote.source or "-")

    console.print(table)


@app.command()
def list_protocols() -> None:
    """List known routers and staking contracts."""
    table = Table(title="Known Protocols", show_header=True, header_style="bold magenta")
    table.add_column("Protocol", style="cyan")
    table.add_column("Kind", style="yellow")
    table.add_column("Contracts", style="green")

    for handler_class in ProtocolRegistry.get_all_handlers():
        handler = handler_class()
        contracts = "\n".join(handler.get_contract_addresses().values())
        table.add_row(handler.display_name, handler.kind.value, contracts)

    console.print(table)


def _format_change(change) -> str:
    if change is None:
        return "-"
    style = "green" if change >= 0 else "red"
    return f"[{style}]{change:+.2f}%[/{style}]"


def _output_snapshot_table(snapshot: WalletSnapshot) -> None:
    """Output a wallet snapshot page as rich tables."""
    if snapshot.error:
        console.print(f"[bold red]Error:[/bold red] {snapshot.error}")
    if not snapshot.tokens:
        console.print("\n[yellow]No tokens found[/yellow]")
        return

    table = Table(
        title=f"Holdings for {snapshot.address[:10]}...{snapshot.address[-8:]}",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Token", style="cyan")
    table.add_column("Balance", style="white", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("USD Value", style="bold green", justify="right")

    for token in snapshot.tokens:
        symbol = token.symbol + (" [dim](LP)[/dim]" if token.is_liquidity_pool else "")
        table.add_row(
            symbol,
            f"{token.balance_formatted:,.4f}",
            f"${token.price:,.8f}" if token.price is not None else "-",
            _format_change(token.price_change_24h),
            f"${token.value:,.2f}" if token.value is not None else "-",
        )

    console.print("\n")
    console.print(table)

    summary_table = Table(show_header=False, box=None)
    summary_table.add_column("Label", style="bold")
    summary_table.add_column("Value", style="bold green")
    summary_table.add_row("Total Value:", f"${snapshot.total_value:,.2f}")
    summary_table.add_row("Total Tokens:", str(snapshot.token_count))
    summary_table.add_row("PLS Balance:", f"{snapshot.native_balance or 0:,.4f}")
    if snapshot.pagination is not None:
        summary_table.add_row(
            "Page:",
            f"{snapshot.pagination.page} of {max(snapshot.pagination.total_pages, 1)}",
        )

    console.print("\n")
    console.print(summary_table)
    console.print("\n")


def _output_history_table(history: TransactionHistory) -> None:
    """Output a classified transaction page as a rich table."""
    if history.error:
        console.print(f"[bold red]Error:[/bold red] {history.error}")
    if not history.transactions:
        console.print("\n[yellow]No transactions found[/yellow]")
        return

    table = Table(title=f"Transactions for {history.address[:10]}...", show_header=True, header_style="bold magenta")
    table.add_column("Time", style="dim")
    table.add_column("Category", style="yellow")
    table.add_column("Label", style="cyan")
    table.add_column("Sent", style="red")
    table.add_column("Received", style="green")
    table.add_column("Hash", style="dim")

    for item in history.transactions:
        table.add_row(
            item.transaction.block_timestamp or "-",
            item.category.value,
            item.method_label,
            "\n".join(f"{leg.amount_formatted} {leg.symbol}" for leg in item.sent),
            "\n".join(f"{leg.amount_formatted} {leg.symbol}" for leg in item.received),
            item.transaction.hash[:12],
        )

    console.print("\n")
    console.print(table)
    if history.cursor:
        console.print(f"[dim]Next page: --cursor '{history.cursor}'[/dim]")
    console.print("\n")


def _output_json(result: WalletSnapshot | TransactionHistory) -> None:
    """Output a result model as JSON."""
    data = result.model_dump(mode="json")
    console.print(json.dumps(data, indent=2))


if __name__ == "__main__":
    app()
