from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from toolchat.session import TurnResult
from toolchat.tools import ToolRegistry

console = Console()


def render_turn(result: TurnResult) -> None:
    """Print the outcome of one turn: the answer, or the error that ended it."""
    if not result.ok:
        console.print(f"[red]Error making request: {escape(result.error or 'unknown error')}[/red]")
        return

    for tr in result.tool_results:
        if not tr.ok:
            console.print(f"[yellow]  {escape(tr.tool_name)} failed: {escape(tr.outcome.message)}[/yellow]")

    console.print("\n[bold]Claude:[/bold]")
    if result.reply:
        console.print(Markdown(result.reply))
    else:
        console.print("[dim](no text in reply)[/dim]")
    console.print(
        f"[dim](Tokens: in {result.usage.input_tokens}, out {result.usage.output_tokens})[/dim]\n"
    )


def render_tools(registry: ToolRegistry, bound: set[str] | None = None) -> None:
    """Show loaded tool declarations as a Rich table."""
    if not len(registry):
        console.print("[yellow]No tools loaded.[/yellow]")
        return

    table = Table(title="Tools", show_lines=True)
    table.add_column("Name", style="bold cyan")
    table.add_column("Description")
    table.add_column("Required", style="green")
    table.add_column("Properties", style="dim")
    if bound is not None:
        table.add_column("Executor")

    for tool in registry:
        row = [
            escape(tool.name),
            escape(tool.description),
            escape(", ".join(tool.input_schema.required) or "—"),
            escape(json.dumps(tool.input_schema.properties, indent=1)),
        ]
        if bound is not None:
            row.append("[green]bound[/green]" if tool.name in bound else "[red]none[/red]")
        table.add_row(*row)

    console.print(table)


def render_session_summary(summary: dict[str, Any]) -> None:
    """Render a session summary panel before exit."""
    lines = [
        f"model: [bold]{summary['model']}[/bold]   duration: [bold]{summary['duration']}[/bold]",
        "",
        f"[bold]{summary['turns']}[/bold] turn(s) · [bold]{summary['messages']}[/bold] message(s)",
    ]
    if summary.get("failed_turns"):
        lines.append(f"  [red]✗[/red] {summary['failed_turns']} turn(s) failed")
    if summary.get("tool_calls"):
        lines.append(f"  [cyan]◆[/cyan] {summary['tool_calls']} tool call(s)")
    lines.append(
        f"  tokens: in [bold]{summary['input_tokens']}[/bold], out [bold]{summary['output_tokens']}[/bold]"
    )

    console.print(Panel("\n".join(lines), title="[bold]session summary[/bold]", border_style="dim"))
