"""Rich console formatter for treasury snapshots."""

from __future__ import annotations

from decimal import Decimal

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table

from ..domain import AssetSymbol, TreasurySnapshot
from ..processors.token_enumerator import is_net_worth


def _format_usd(value: Decimal) -> str:
    return f"${value:,.2f}"


def _format_amount(value: Decimal, places: int = 8) -> str:
    return f"{value:,.{places}f}"


def _status(snapshot: TreasurySnapshot) -> str:
    if snapshot.is_fetching:
        return "[yellow]refreshing[/]"
    if snapshot.is_from_cache:
        return "[yellow]cached / fallback[/]"
    return "[green]live[/]"


def build_snapshot_panel(snapshot: TreasurySnapshot, title: str = "Treasury") -> Panel:
    """Build the dashboard renderable for one snapshot."""
    summary_table = Table(show_header=False, box=None, padding=(0, 1))
    summary_table.add_column("Key", style="dim")
    summary_table.add_column("Value", style="green")
    summary_table.add_row("Total", _format_usd(snapshot.total_usd))
    summary_table.add_row(
        "Updated",
        snapshot.last_updated.strftime("%Y-%m-%d %H:%M:%S %Z")
        if snapshot.last_updated
        else "never",
    )
    summary_table.add_row("Status", _status(snapshot))
    if snapshot.net_worth_usd is not None:
        summary_table.add_row("SOL net worth", _format_usd(snapshot.net_worth_usd))
    summary_panel = Panel(summary_table, title="[bold]Summary[/]", border_style="green")

    asset_table = Table(expand=True, show_lines=False)
    asset_table.add_column("Asset", style="cyan", no_wrap=True)
    asset_table.add_column("Balance", justify="right")
    asset_table.add_column("Price", justify="right", style="yellow")
    asset_table.add_column("Value", justify="right", style="green")
    for asset in AssetSymbol:
        asset_table.add_row(
            asset.value.upper(),
            _format_amount(snapshot.balances.get(asset)),
            _format_usd(snapshot.prices.get(asset)),
            _format_usd(snapshot.usd_values.get(asset)),
        )
    asset_panel = Panel(asset_table, title="[bold]Assets[/]", border_style="cyan")

    token_table = Table(expand=True, show_lines=False)
    token_table.add_column("Token", style="cyan", no_wrap=True)
    token_table.add_column("Name", style="dim")
    token_table.add_column("Amount", justify="right")
    token_table.add_column("Value", justify="right", style="green")
    for token in snapshot.tokens:
        if is_net_worth(token):
            continue
        token_table.add_row(
            token.symbol,
            token.name,
            _format_amount(token.ui_amount, min(token.decimals, 9)),
            _format_usd(token.usd_value) if token.usd_value > 0 else "[dim]<N/A>[/]",
        )
    token_table.add_row(
        "[bold]TOTAL[/]", "", "", f"[bold]{_format_usd(snapshot.tokens_usd_value)}[/]"
    )
    token_panel = Panel(token_table, title="[bold]Tokens[/]", border_style="blue")

    return Panel(
        Group(summary_panel, "", asset_panel, "", token_panel),
        title=f"[bold white]{title}[/]",
        border_style="white",
        padding=(1, 2),
    )


def format_snapshot_table(snapshot: TreasurySnapshot, console: Console | None = None) -> None:
    """Print a rich formatted dashboard to stdout."""
    console = console or Console()
    console.print()
    console.print(build_snapshot_panel(snapshot))
    console.print()
