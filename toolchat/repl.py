from __future__ import annotations

from typing import Callable

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from rich.console import Console
from rich.markup import escape

from toolchat.errors import ToolchatError
from toolchat.renderer import render_session_summary, render_turn
from toolchat.session import ChatSession

console = Console()

EXIT_COMMAND = "exit"


def is_exit(text: str) -> bool:
    return text.lower() == EXIT_COMMAND


def _make_toolbar(model: str, tools: int) -> HTML:
    return HTML(
        f"<i>[{model}]</i>  <b>[{tools} tool(s)]</b>  "
        "<dim>Enter to send | exit or Ctrl+D to quit</dim>"
    )


def run_repl(
    session: ChatSession,
    model_label: str,
    prompt: Callable[[str], str] | None = None,
) -> None:
    """
    Run the line-oriented REPL until the user types exit or sends EOF.
    `prompt` reads one line; it defaults to a prompt_toolkit session.
    """
    if prompt is None:
        prompt_session: PromptSession = PromptSession(
            bottom_toolbar=lambda: _make_toolbar(model_label, len(session.registry)),
        )
        prompt = prompt_session.prompt

    console.print(
        f"[bold cyan]toolchat[/bold cyan] — model: [bold]{escape(model_label)}[/bold]\n"
        "[dim]Type exit or press Ctrl+D to quit[/dim]\n"
    )

    while True:
        try:
            text = prompt("You: ")
        except KeyboardInterrupt:
            continue
        except EOFError:
            # Ctrl+D
            break

        if is_exit(text):
            break
        if not text.strip():
            continue

        try:
            result = session.send(text)
        except ToolchatError as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            continue
        render_turn(result)

    _do_exit(session)


def _do_exit(session: ChatSession) -> None:
    console.print("\n[dim]Ending session...[/dim]")
    render_session_summary(session.get_summary())
    console.print("[bold cyan]Goodbye![/bold cyan]")
