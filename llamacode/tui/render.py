"""Rich renderables for the chat front end."""

from __future__ import annotations

from typing import Any, Iterable

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

BANNER = "llamacode"

COMMANDS = [
    ("/help", "Show this help"),
    ("/clear", "Clear conversation history"),
    ("/stats", "Show message, tool and token counters"),
    ("/save <name>", "Save the conversation"),
    ("/load <name>", "Load a saved conversation"),
    ("/list", "List saved conversations"),
    ("/export [markdown|html] [name]", "Export the conversation to the working directory"),
    ("/plugins", "List loaded plugins"),
    ("/reload", "Re-read plugins and rebuild the tool list"),
    ("/model [name]", "Show available models or switch model"),
    ("/exit, /quit", "Leave the chat"),
]


def show_welcome(console: Console, version: str, model: str, working_directory: Any) -> None:
    body = Text()
    body.append(BANNER + "\n\n", style="bold cyan")
    body.append(f"v{version}  ", style="dim")
    body.append("Local coding assistant over Ollama\n", style="bold")
    body.append("Model: ", style="dim")
    body.append(f"{model}\n", style="yellow")
    body.append("Working directory: ", style="dim")
    body.append(f"{working_directory}\n", style="green")
    body.append("Type /help for commands, /exit to quit.", style="dim")
    console.print(Panel(body, border_style="cyan", expand=False))


def show_connection(console: Console, url: str, online: bool) -> None:
    if online:
        console.print(f"[green]●[/green] Connected to Ollama at {url}")
    else:
        console.print(f"[red]●[/red] Cannot reach Ollama at {url}. Is `ollama serve` running?")


def show_help(console: Console) -> None:
    table = Table(title="Commands", show_header=False, box=None, padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column()
    for command, description in COMMANDS:
        table.add_row(command, description)
    console.print(table)


def show_stats(console: Console, stats: dict[str, int]) -> None:
    table = Table(title="Conversation", show_header=False, box=None, padding=(0, 2))
    table.add_column(style="blue")
    table.add_column()
    table.add_row("Messages", str(stats["message_count"]))
    table.add_row("Tool uses", str(stats["tool_use_count"]))
    table.add_row("Estimated tokens", str(stats["estimated_tokens"]))

    limit = stats.get("token_limit") or 0
    if limit:
        used = stats["estimated_tokens"]
        ratio = used / limit
        color = "red" if ratio > 0.9 else "yellow" if ratio > 0.7 else "green"
        table.add_row("Token limit", f"[{color}]{used}/{limit} ({ratio * 100:.1f}%)[/{color}]")
    console.print(table)


def show_tool_start(console: Console, name: str, arguments: dict[str, Any]) -> None:
    summary = ", ".join(f"{k}={str(v)[:60]!r}" for k, v in arguments.items())
    console.print(f"[cyan]⚙ {name}[/cyan] [dim]{escape(summary)}[/dim]")


def show_tool_end(console: Console, name: str, success: bool, preview: str) -> None:
    mark = "[green]✓[/green]" if success else "[red]✗[/red]"
    line = Text.from_markup(f"  {mark} ")
    line.append(preview or name, style="dim")
    console.print(line)


def show_answer(console: Console, text: str) -> None:
    if text.strip():
        console.print(Markdown(text))


def show_outcome(console: Console, outcome: dict[str, Any]) -> None:
    style = "green" if outcome.get("success") else "red"
    console.print(f"[{style}]{escape(str(outcome.get('message', '')))}[/{style}]", highlight=False)


def show_list(console: Console, title: str, items: Iterable[str], empty: str) -> None:
    items = list(items)
    if not items:
        console.print(f"[dim]{empty}[/dim]")
        return
    console.print(f"[bold]{title}[/bold]")
    for item in items:
        console.print(f"  • {escape(item)}", highlight=False)


def show_error(console: Console, message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}", highlight=False)
