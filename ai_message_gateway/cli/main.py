"""
CLI interface for AI Message Gateway.

Provides command-line access to the gateway, the dispatcher and the stores.
"""

import sys
from typing import List, Optional

import typer
from openai import OpenAIError
from rich.console import Console
from rich.table import Table

from ai_message_gateway.config.loader import GatewayConfig, default_config, load_gateway_config
from ai_message_gateway.core.admission import InvalidRequest
from ai_message_gateway.entrypoints import (
    AuthContext,
    build_budget_guard,
    build_dispatcher,
    build_gateway,
    build_generator,
    build_store,
    build_transport,
    handle_generate_call,
)
from ai_message_gateway.log import set_level
from ai_message_gateway.storage.models import Subject

app = typer.Typer()
subjects_app = typer.Typer(help="Manage notification subjects.")
app.add_typer(subjects_app, name="subjects")
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

ConfigOption = typer.Option(
    None, "--config", "-c", help="Path to YAML configuration file"
)


def _load_config(path: Optional[str]) -> GatewayConfig:
    """Load configuration from a file, or defaults when no path is given."""
    config = load_gateway_config(path) if path else default_config()
    set_level(config.log_level)
    return config


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """AI Message Gateway CLI."""
    if ctx.invoked_subcommand is None:
        console.print("AI Message Gateway - Use --help to see available commands")


@app.command()
def status(config_path: Optional[str] = ConfigOption):
    """Show the effective configuration."""
    try:
        config = _load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title="AI Message Gateway")
    table.add_column("Setting")
    table.add_column("Value", justify="right")
    table.add_row("Database", config.db_path)
    table.add_row("Model", config.generator.model)
    table.add_row("Daily quota", str(config.quota.daily_limit))
    table.add_row("Monthly cap", _format_currency(config.budget.monthly_cap))
    table.add_row("Cost per request", f"${config.cost_per_request:.8f}")
    console.print(table)


@app.command()
def init(config_path: Optional[str] = ConfigOption):
    """Initialize the gateway database."""
    try:
        config = _load_config(config_path)
        build_store(config)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def generate(
    subject: str = typer.Option(..., "--subject", "-s", help="Authenticated subject id"),
    long_term_state: Optional[str] = typer.Option(None, "--long-term-state"),
    yesterday_mood: Optional[str] = typer.Option(None, "--yesterday-mood"),
    yesterday_notes: Optional[str] = typer.Option(None, "--yesterday-notes"),
    quote: bool = typer.Option(False, "--quote", help="Request a quote instead of a message"),
    mood: Optional[str] = typer.Option(None, "--mood", help="Current mood (quotes)"),
    tags: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Focus tag (quotes)"),
    config_path: Optional[str] = ConfigOption,
):
    """Request a personalized message or quote through the gateway."""
    data = {
        "kind": "quote" if quote else "message",
        "long_term_state": long_term_state,
        "yesterday_mood": yesterday_mood,
        "yesterday_notes": yesterday_notes,
        "mood": mood,
        "focus_tags": tags or [],
    }
    try:
        config = _load_config(config_path)
        store = build_store(config)
        gateway = build_gateway(config, store, build_generator(config))
        response = handle_generate_call(gateway, AuthContext(subject_id=subject), data)
    except InvalidRequest as e:
        console.print(f"[red]Invalid request ({e.code}):[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    except (FileNotFoundError, ValueError, OpenAIError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    _display_response(response)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def dispatch(
    serve: bool = typer.Option(
        False, "--serve", help="Keep running, one tick at the start of every minute"
    ),
    config_path: Optional[str] = ConfigOption,
):
    """Send notifications to subjects due at the current minute."""
    try:
        config = _load_config(config_path)
        store = build_store(config)
        dispatcher = build_dispatcher(
            config, store, build_generator(config), build_transport(config)
        )
    except (FileNotFoundError, ValueError, OpenAIError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if serve:
        dispatcher.serve()
        return

    report = dispatcher.run_tick()
    console.print(
        f"Tick {report.hour}:{report.minute:02d} - matched {report.matched}, "
        f"sent {report.sent}, failed {report.failed}, skipped {report.skipped}"
    )
    sys.exit(EXIT_CODE_PASS)


@app.command()
def budget(config_path: Optional[str] = ConfigOption):
    """Show this month's budget ledger."""
    try:
        config = _load_config(config_path)
        guard = build_budget_guard(config, build_store(config))
        ledger = guard.snapshot()
        is_open = guard.is_open()
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"\n[bold]Budget for {ledger.month}[/bold]")
    console.print("-" * 40)
    console.print(f"Requests: {ledger.requests:,}")
    console.print(f"Estimated spend: {_format_currency(ledger.estimated_cost)}")
    console.print(f"Monthly cap: {_format_currency(config.budget.monthly_cap)}")
    state = "[green]OPEN[/]" if is_open else "[red]CLOSED[/]"
    console.print(f"Status: {state}")
    sys.exit(EXIT_CODE_PASS)


@subjects_app.command("add")
def subjects_add(
    subject_id: str = typer.Argument(..., help="Subject id"),
    hour: int = typer.Option(..., "--hour", min=0, max=23),
    minute: int = typer.Option(..., "--minute", min=0, max=59),
    token: Optional[str] = typer.Option(None, "--token", help="Push device token"),
    tags: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Focus tag"),
    config_path: Optional[str] = ConfigOption,
):
    """Register or update a subject's notification preference."""
    try:
        config = _load_config(config_path)
        store = build_store(config)
        store.upsert_subject(Subject(
            subject_id=subject_id,
            push_token=token,
            notification_hour=hour,
            notification_minute=minute,
            focus_tags=tuple(tags or ()),
        ))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[green]✓[/] Subject {subject_id} notifies at {hour:02d}:{minute:02d}")
    sys.exit(EXIT_CODE_PASS)


def _format_currency(amount: float) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${abs(amount):,.2f}"


def _display_response(response: dict):
    """Display a gateway response."""
    if not response["success"]:
        console.print(f"[yellow]No personalized content ({response['error']}):[/] {response['message']}")
        return

    message = response["message"]
    console.print(f"\n[bold]Source:[/bold] {response['source']}")
    console.print(message["text"])
    if message.get("author"):
        console.print(f"[dim]— {message['author']}[/]")


if __name__ == "__main__":
    app()
