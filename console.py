"""Rich console output for command-line chain runs."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel

from chain import ActionTimeoutError, AutomationError, Chain

console = Console()


def _format_value(value: Any) -> str:
    """Render a chain result for display."""
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"
    try:
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(value)


def run_header(url: str, chain: Chain) -> None:
    """Print the target URL and queued actions."""
    console.print(f"[bold]URL:[/bold] {url}")
    steps = " → ".join(action.kind.value for action in chain.actions)
    console.print(f"[bold]Actions:[/bold] [white]{steps}[/white]")


def result_success(value: Any, elapsed: float) -> None:
    """Print the chain's final value."""
    console.print()
    console.print(Panel(
        _format_value(value),
        title="[bold green]✓ Done[/bold green]",
        subtitle=f"[dim]{elapsed:.1f}s[/dim]",
        border_style="green",
    ))


def result_fail(error: AutomationError, elapsed: float) -> None:
    """Print the failure that stopped the chain."""
    if isinstance(error, ActionTimeoutError):
        title = "[bold yellow]⏱ Timed out[/bold yellow]"
        border = "yellow"
    else:
        title = "[bold red]✗ Failed[/bold red]"
        border = "red"
    console.print()
    console.print(Panel(
        str(error),
        title=title,
        subtitle=f"[dim]{type(error).__name__} · {elapsed:.1f}s[/dim]",
        border_style=border,
    ))
