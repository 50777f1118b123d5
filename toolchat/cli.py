from __future__ import annotations

import logging
import sys
from contextlib import ExitStack

import click
import questionary
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

import toolchat.config as config_mod
from toolchat.connectors import get_connector
from toolchat.errors import ConfigError, ToolSchemaError
from toolchat.executors import build_executors, close_executors
from toolchat.models import MODELS
from toolchat.renderer import render_tools
from toolchat.repl import run_repl
from toolchat.session import ChatSession
from toolchat.tools import ToolRegistry, load_registry

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _fatal(message: str) -> None:
    console.print(f"[red]FATAL: {escape(message)}[/red]")
    sys.exit(1)


def _load_registry(cfg: dict, tool_files: tuple[str, ...]) -> ToolRegistry:
    return load_registry(tool_files or cfg["tools"]["files"])


@click.group(invoke_without_command=True)
@click.option(
    "--tools", "-t", "tool_files", multiple=True, type=click.Path(),
    help="Tool declaration JSON file (repeatable). Overrides [tools] files.",
)
@click.option("--model", "-m", default=None, help="Model alias or identifier.")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging to stderr.")
@click.pass_context
def main(ctx: click.Context, tool_files: tuple[str, ...], model: str | None, verbose: bool) -> None:
    """toolchat: talk to Claude with tools."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["tool_files"] = tool_files
    if ctx.invoked_subcommand is not None:
        return

    try:
        cfg = config_mod.load()
        if model:
            cfg["llm"]["model"] = model
        api_key = config_mod.load_api_key()
        params = config_mod.call_parameters(cfg)
        limits = config_mod.session_limits(cfg)
        registry = _load_registry(cfg, tool_files)
        executors = build_executors(cfg.get("executors", {}), registry)
    except (ConfigError, ToolSchemaError) as e:
        _fatal(str(e))
        return

    with ExitStack() as stack:
        stack.callback(close_executors, executors)
        try:
            connector = get_connector(
                cfg["llm"]["connector"],
                api_key=api_key,
                timeout=limits.timeout,
            )
        except ConfigError as e:
            _fatal(str(e))
            return
        stack.enter_context(connector)
        session = ChatSession(
            connector=connector,
            registry=registry,
            params=params,
            executors=executors,
            max_tool_rounds=limits.max_tool_rounds,
        )
        run_repl(session, f"{cfg['llm']['connector']}/{params.model}")


@main.command("tools")
@click.pass_context
def cmd_tools(ctx: click.Context) -> None:
    """List the tool declarations that would be sent to the model."""
    try:
        cfg = config_mod.load()
        registry = _load_registry(cfg, ctx.obj["tool_files"])
        bound = {name for name in cfg.get("executors", {}) if name in registry}
    except (ConfigError, ToolSchemaError) as e:
        _fatal(str(e))
        return
    render_tools(registry, bound)


@main.command("config")
def cmd_config() -> None:
    """Interactive configuration wizard."""
    try:
        cfg = config_mod.load()
    except ConfigError as e:
        _fatal(str(e))
        return

    console.print("[bold cyan]toolchat configuration[/bold cyan]\n")

    model = questionary.select(
        "Model:",
        choices=list(MODELS),
        default=cfg["llm"]["model"] if cfg["llm"]["model"] in MODELS else "opus",
    ).ask()

    max_tokens = questionary.text(
        "Max output tokens:",
        default=str(cfg["llm"]["max_tokens"]),
        validate=lambda s: s.isdigit() and int(s) > 0,
    ).ask()

    tool_files = questionary.text(
        "Tool files (comma-separated):",
        default=", ".join(cfg["tools"]["files"]),
    ).ask()

    if model is None or max_tokens is None or tool_files is None:
        console.print("[yellow]Configuration cancelled.[/yellow]")
        return

    cfg["llm"]["model"] = model
    cfg["llm"]["max_tokens"] = int(max_tokens)
    cfg["tools"]["files"] = [f.strip() for f in tool_files.split(",") if f.strip()]

    config_mod.save(cfg)
    console.print(f"\n[green]Config saved to {config_mod.config_file()}[/green]")
    console.print(
        f"\n[dim]Put your key in .env or the environment:[/dim]\n"
        f"  {config_mod.API_KEY_ENV}=sk-ant-...\n"
    )
