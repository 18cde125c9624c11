"""
Trade Ledger Viewer
View and summarize the CSV trade ledger.
"""
from collections import Counter
from pathlib import Path
from typing import Dict, List

import typer
from rich.console import Console
from rich.table import Table

import config as cfg
from monitoring.trade_ledger import TradeLedger

app = typer.Typer()
console = Console()

STATUS_STYLES = {
    "STOP_LOSS_EXECUTED": "yellow",
    "STOP_LOSS_FAILED": "bold red",
    "HELD_TO_CLOSE": "green",
    "MARKET_ABORTED": "magenta",
    "NO_POSITION": "dim",
}


def summarize(rows: List[Dict[str, str]]) -> Counter:
    return Counter(row.get("Final_Status", "-") for row in rows)


def build_table(rows: List[Dict[str, str]]) -> Table:
    table = Table(title="Trade Ledger")
    table.add_column("#", justify="right")
    table.add_column("Market")
    table.add_column("Status")
    table.add_column("Side")
    table.add_column("Entry", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("SL Price", justify="right")
    table.add_column("Final")
    table.add_column("Notes")

    for i, row in enumerate(rows, 1):
        final = row.get("Final_Status", "-")
        style = STATUS_STYLES.get(final, "")
        table.add_row(
            str(i),
            row.get("Market Title", "-"),
            row.get("Status", "-"),
            row.get("entry_Side", "-"),
            row.get("entry_Price", "-"),
            row.get("position_size", "-"),
            row.get("sl_Price", "-"),
            f"[{style}]{final}[/{style}]" if style else final,
            row.get("Notes", "-"),
        )
    return table


@app.command()
def main(path: Path = typer.Option(Path(cfg.LEDGER_FILE), "--ledger", help="Ledger CSV file")):
    """Print the ledger as a table followed by a final-status summary."""
    rows = TradeLedger(path).read()
    if not rows:
        console.print(f"[yellow]No trades recorded yet in {path}[/yellow]")
        raise typer.Exit()

    console.print(build_table(rows))

    counts = summarize(rows)
    console.print(f"\nTotal markets: {len(rows)}")
    for status, count in counts.most_common():
        console.print(f"  {status}: {count}")

    if counts.get("STOP_LOSS_FAILED"):
        console.print("\n[bold red]Some stop-losses failed - check for open positions![/bold red]")


if __name__ == "__main__":
    app()
