"""
CLI interface for Bloodkeeper.

Operator access to the blood ledger and the bot process.
"""

import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bloodkeeper.config.loader import BotConfig, load_config
from bloodkeeper.config.log_setup import configure_logging
from bloodkeeper.core.commands import CommandResponder
from bloodkeeper.core.errors import BloodkeeperError
from bloodkeeper.core.ledger import BloodLedger
from bloodkeeper.core.scheduler import run_monthly_check
from bloodkeeper.storage.repository import LedgerRepository

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

STATUS_STYLES = {
    "healthy": "green",
    "moderate": "yellow",
    "critical": "red",
}


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML configuration file"
    )
):
    """Bloodkeeper CLI."""
    try:
        ctx.obj = load_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Configuration error:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)
    configure_logging(ctx.obj.log_level, ctx.obj.log_file)
    if ctx.invoked_subcommand is None:
        console.print("Bloodkeeper - Use --help to see available commands")


@contextmanager
def _open_ledger(config: BotConfig) -> Iterator[BloodLedger]:
    """Open, seed and eventually close the ledger; errors exit with code 1."""
    try:
        with LedgerRepository(config.db_path) as repository:
            ledger = BloodLedger(
                repository,
                cap=config.cap,
                roll_bot_id=config.roll_bot_id,
                channel_id=config.channel_id
            )
            ledger.initialize()
            yield ledger
    except BloodkeeperError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def init(ctx: typer.Context):
    """Initialize the ledger database."""
    config: BotConfig = ctx.obj
    with _open_ledger(config) as ledger:
        current = ledger.get_current_level()
    console.print(f"[green]✓[/] Database ready at {config.db_path} (level {current}/{config.cap})")


@app.command()
def level(ctx: typer.Context):
    """Show the current blood level."""
    with _open_ledger(ctx.obj) as ledger:
        report = CommandResponder(ledger).query_level()
        last_reset = ledger.get_last_reset()

    style = STATUS_STYLES[report.status.value]
    console.print(
        f"Blood level: [bold]{report.level}/{report.cap}[/] ({report.percentage}%) "
        f"[{style}]{report.status.value}[/]"
    )
    console.print(f"Last reset: {last_reset:%Y-%m-%d %H:%M}")


@app.command("set")
def set_level(
    ctx: typer.Context,
    amount: int = typer.Argument(..., help="New blood level")
):
    """Set the blood level (operator override)."""
    with _open_ledger(ctx.obj) as ledger:
        stored = CommandResponder(ledger).set_level(amount, is_admin=True)
    console.print(f"[green]✓[/] Blood level set to {stored}")


@app.command()
def history(
    ctx: typer.Context,
    limit: int = typer.Option(
        10,
        "--limit",
        "-n",
        help="Number of entries to show"
    )
):
    """Show recent blood consumption."""
    with _open_ledger(ctx.obj) as ledger:
        entries = ledger.get_history(limit)

    if not entries:
        console.print("No blood consumption history yet.")
        return

    table = Table(title="Recent Blood Consumption")
    table.add_column("When")
    table.add_column("Consumed", justify="right")
    table.add_column("Level", justify="right")
    table.add_column("Message")
    for entry in entries:
        table.add_row(
            f"{entry.timestamp:%Y-%m-%d %H:%M}",
            str(entry.successes),
            str(entry.resulting_level),
            (entry.source_text or "")[:60]
        )
    console.print(table)


@app.command("reset-check")
def reset_check(ctx: typer.Context):
    """Apply the monthly reset if a new month has started."""
    config: BotConfig = ctx.obj
    with _open_ledger(config) as ledger:
        was_reset = run_monthly_check(
            ledger,
            notify=lambda: console.print(f"[green]✓[/] Monthly reset: level restored to {config.cap}")
        )
    if not was_reset:
        console.print("No reset needed this month")


@app.command()
def run(ctx: typer.Context):
    """Connect to Discord and start tracking rolls."""
    from bloodkeeper.bot.client import run_bot

    try:
        run_bot(ctx.obj)
    except ValueError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


if __name__ == "__main__":
    app()
