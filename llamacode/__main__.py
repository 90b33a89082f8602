"""llamacode CLI entry point."""

from __future__ import annotations

import argparse
import sys
import logging


def _get_version() -> str:
    import importlib.metadata

    try:
        return importlib.metadata.version("llamacode")
    except importlib.metadata.PackageNotFoundError:
        return "0.1.0"


def build_parser(version: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llamacode",
        description="llamacode - local coding assistant powered by Ollama",
    )
    # Global arguments
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {version}")
    parser.add_argument("--config", default=None, help="Path to custom configuration file (default: ~/.llamacode/config.json)")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("chat", help="Start an interactive chat session (default)")
    subparsers.add_parser("models", help="List models available on the Ollama server")

    set_model = subparsers.add_parser("set-model", help="Set the default model")
    set_model.add_argument("model", help="Model name, e.g. qwen2.5-coder:14b")

    set_url = subparsers.add_parser("set-url", help="Set the Ollama server URL")
    set_url.add_argument("url", help="Server URL, e.g. http://localhost:11434")

    set_prompt = subparsers.add_parser("set-prompt", help="Replace the default assistant introduction")
    set_prompt.add_argument("prompt", help="Custom system prompt text")

    subparsers.add_parser("clear-prompt", help="Restore the default system prompt")
    subparsers.add_parser("config", help="Show the current configuration")
    subparsers.add_parser("status", help="Check the Ollama connection")
    return parser


def main(argv: list[str] | None = None) -> None:
    version = _get_version()
    parser = build_parser(version)
    args = parser.parse_args(argv)

    from llamacode.core.config import Config
    from llamacode.logger import setup_logging

    cfg = Config.load(args.config)
    command = args.command or "chat"
    setup_logging(cfg.resolved_log_file(), interactive=command == "chat")
    logging.getLogger("llamacode").debug(f"Running command: {command}")

    if command == "chat":
        _run_chat(args, cfg, version)
    elif command == "models":
        _run_models(cfg)
    elif command == "set-model":
        _update_config(args, cfg, f"Model set to {args.model}", ollama_model=args.model)
    elif command == "set-url":
        _update_config(args, cfg, f"Ollama URL set to {args.url}", ollama_url=args.url)
    elif command == "set-prompt":
        _update_config(args, cfg, "Custom system prompt saved", custom_system_prompt=args.prompt)
    elif command == "clear-prompt":
        _update_config(args, cfg, "Custom system prompt cleared", custom_system_prompt="")
    elif command == "config":
        _run_show_config(cfg)
    elif command == "status":
        _run_status(cfg, version)
    else:
        parser.print_help()
        sys.exit(1)


def _run_chat(args, cfg, version: str) -> None:
    """Start the interactive session."""
    from llamacode.tui.app import run_chat

    run_chat(cfg, version=version, config_path=args.config)


def _update_config(args, cfg, message: str, **changes) -> None:
    from rich.console import Console

    path = cfg.update(**changes).save(args.config)
    Console().print(f"[green]✓[/green] {message} ({path})", highlight=False)


def _run_models(cfg) -> None:
    """List installed models, marking the active one."""
    import asyncio
    from rich.console import Console
    from llamacode.core.ollama import OllamaClient, UpstreamError

    console = Console()

    async def fetch() -> list[str]:
        client = OllamaClient.from_config(cfg)
        try:
            return await client.list_models()
        finally:
            await client.close()

    try:
        models = asyncio.run(fetch())
    except UpstreamError as e:
        console.print(f"[red]{e}[/red]", highlight=False)
        sys.exit(1)

    if not models:
        console.print("[yellow]No models installed. Try `ollama pull qwen2.5-coder:14b`.[/yellow]")
        return
    for name in models:
        marker = "[green]●[/green]" if name == cfg.ollama_model else " "
        console.print(f" {marker} {name}", highlight=False)


def _run_show_config(cfg) -> None:
    from rich.console import Console
    from rich.table import Table

    table = Table(title="llamacode configuration", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in cfg.to_dict().items():
        table.add_row(key, repr(value) if value == "" else str(value))
    Console().print(table)


def _run_status(cfg, version: str) -> None:
    """Check that Ollama answers and the configured model is installed."""
    import asyncio
    from rich.console import Console
    from rich.panel import Panel
    from llamacode.core.ollama import OllamaClient, UpstreamError

    async def check() -> tuple[bool, list[str]]:
        client = OllamaClient.from_config(cfg)
        try:
            online = await client.health_check()
            models: list[str] = []
            if online:
                try:
                    models = await client.list_models()
                except UpstreamError:
                    pass
            return online, models
        finally:
            await client.close()

    online, models = asyncio.run(check())

    lines = [f"[bold]llamacode[/bold] [dim]v{version}[/dim]", ""]
    lines.append(f"Ollama        {'[green]● online[/green]' if online else '[red]● offline[/red]'}")
    lines.append(f"[dim]Endpoint:[/dim]     {cfg.ollama_url}")
    lines.append(f"[dim]Active model:[/dim] [yellow]{cfg.ollama_model}[/yellow]")
    if online:
        installed = cfg.ollama_model in models
        lines.append(
            f"[dim]Installed:[/dim]    {'[green]yes[/green]' if installed else '[red]no[/red] (run ollama pull ' + cfg.ollama_model + ')'}"
        )
    lines.append(f"[dim]Working dir:[/dim]  {cfg.resolved_working_directory()}")
    Console().print(Panel("\n".join(lines), border_style="cyan", expand=False))
    if not online:
        sys.exit(1)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(0)
