"""Interactive chat front end built on rich."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm

from llamacode.core.agent import AgentEvent, AgentLoop
from llamacode.core.browser import BrowserSession
from llamacode.core.config import Config
from llamacode.core.ollama import OllamaClient, UpstreamError
from llamacode.core.plugins import PluginManager
from llamacode.core.rag import DocumentIndex

from . import render

logger = logging.getLogger("llamacode.tui")

EXIT_COMMANDS = ("/exit", "/quit")


class ChatApp:
    """Read-eval-print loop around one AgentLoop."""

    def __init__(
        self,
        config: Config,
        version: str = "",
        config_path: str | Path | None = None,
        console: Console | None = None,
    ) -> None:
        self.config = config
        self.version = version
        self.config_path = config_path
        self.console = console or Console()
        self.plugin_manager = PluginManager(
            config.resolved_plugins_dir(),
            tool_prefix=config.plugin_tool_prefix,
            timeout=config.plugin_timeout,
        )
        self.plugin_manager.ensure_plugins_directory()
        self.document_index = DocumentIndex(config.resolved_rag_index_path())
        self.browser = BrowserSession(config.browser_timeout) if config.enable_browser else None
        self.ollama = OllamaClient.from_config(config)
        self.agent = self._build_agent()
        self._streamed = False

    def _build_agent(self) -> AgentLoop:
        return AgentLoop(
            self.ollama,
            self.config,
            plugin_manager=self.plugin_manager,
            document_index=self.document_index,
            browser=self.browser,
            on_event=self._on_event,
        )

    # ── Agent callbacks ──

    def _on_event(self, event: AgentEvent) -> None:
        data = event.data
        if event.type == "thinking":
            self.console.print("[dim]Thinking...[/dim]")
        elif event.type == "text" and not data.get("final"):
            self._streamed = True
            self.console.print(data.get("content", ""), end="", markup=False, highlight=False)
        elif event.type == "tool_start":
            self._end_stream()
            render.show_tool_start(self.console, data["tool"], data.get("arguments", {}))
        elif event.type == "tool_end":
            self._end_stream()
            render.show_tool_end(self.console, data["tool"], data.get("success", False), data.get("preview", ""))
        elif event.type == "limit":
            self._end_stream()
            self.console.print(
                f"[yellow]Stopped after {data.get('iterations')} tool rounds; showing the last response.[/yellow]"
            )

    def _end_stream(self) -> None:
        if self._streamed:
            self.console.print()
            self._streamed = False

    async def _confirm(self, description: str) -> bool:
        self._end_stream()
        self.console.print(f"[bold yellow]⚠ The assistant wants to:[/bold yellow] {escape(description)}", highlight=False)
        return await asyncio.to_thread(Confirm.ask, "Allow?", console=self.console, default=False)

    # ── Commands ──

    async def _switch_model(self, name: str) -> None:
        previous = self.agent
        await self.ollama.close()
        self.config = self.config.update(ollama_model=name)
        self.config.save(self.config_path)
        self.ollama = OllamaClient.from_config(self.config)
        self.agent = self._build_agent()
        self.agent.state.restore(previous.history, previous.state.tool_use_count)
        logger.info(f"Switched model to {name}")
        self.console.print(f"[green]Model switched to {name}[/green]")

    async def _model_command(self, arg: str) -> None:
        if arg:
            await self._switch_model(arg)
            return
        try:
            models = await self.ollama.list_models()
        except UpstreamError as e:
            render.show_error(self.console, str(e))
            return
        self.console.print(f"Current model: [yellow]{self.config.ollama_model}[/yellow]")
        render.show_list(self.console, "Available models:", models, "No models installed.")

    async def handle_command(self, line: str) -> bool:
        """Run a slash command; return False when the session should end."""
        command, _, arg = line.partition(" ")
        command = command.lower()
        arg = arg.strip()

        if command in EXIT_COMMANDS:
            return False
        if command == "/help":
            render.show_help(self.console)
        elif command == "/clear":
            self.agent.reset()
            self.console.print("[green]Conversation history cleared.[/green]")
        elif command == "/stats":
            render.show_stats(self.console, self.agent.get_stats())
        elif command == "/save":
            if not arg:
                render.show_error(self.console, "Usage: /save <name>")
            else:
                render.show_outcome(self.console, self.agent.save_conversation(arg))
        elif command == "/load":
            if not arg:
                render.show_error(self.console, "Usage: /load <name>")
            else:
                render.show_outcome(self.console, self.agent.load_conversation(arg))
        elif command == "/list":
            render.show_list(
                self.console, "Saved conversations:", self.agent.list_conversations(), "No saved conversations."
            )
        elif command == "/export":
            parts = arg.split()
            fmt = parts[0] if parts else "markdown"
            name = parts[1] if len(parts) > 1 else "conversation"
            render.show_outcome(self.console, self.agent.export_conversation(name, fmt))
        elif command == "/plugins":
            plugins = [
                f"{p.name} v{p.version} - {p.description} ({len(p.tools)} tools)"
                for p in self.plugin_manager.get_loaded_plugins()
            ]
            render.show_list(self.console, "Loaded plugins:", plugins, "No plugins loaded.")
        elif command == "/reload":
            count = self.agent.reload_tools()
            self.console.print(f"[green]Reloaded tools: {count} available.[/green]")
        elif command == "/model":
            await self._model_command(arg)
        else:
            render.show_error(self.console, f"Unknown command: {command}. Type /help for commands.")
        return True

    async def handle_message(self, text: str) -> None:
        try:
            answer = await self.agent.chat(text, confirm=self._confirm)
        except UpstreamError as e:
            self._end_stream()
            logger.error(f"Model request failed: {e}")
            render.show_error(self.console, str(e))
            return
        except Exception as e:
            self._end_stream()
            logger.exception(f"Unexpected error while handling message: {e}")
            render.show_error(self.console, str(e) or type(e).__name__)
            return

        if self._streamed:
            self._end_stream()
        else:
            render.show_answer(self.console, answer)

    # ── Main loop ──

    async def run(self) -> None:
        render.show_welcome(
            self.console, self.version, self.config.ollama_model, self.config.resolved_working_directory()
        )
        render.show_connection(self.console, self.config.ollama_url, await self.ollama.health_check())

        try:
            while True:
                try:
                    line = await asyncio.to_thread(self.console.input, "[bold green]> [/bold green]")
                except (EOFError, KeyboardInterrupt):
                    break
                line = line.strip()
                if not line:
                    continue
                if line.startswith("/"):
                    try:
                        keep_going = await self.handle_command(line)
                    except Exception as e:
                        logger.exception(f"Command {line.split()[0]} failed: {e}")
                        render.show_error(self.console, str(e) or type(e).__name__)
                        continue
                    if not keep_going:
                        break
                    continue
                await self.handle_message(line)
        finally:
            await self.close()
        self.console.print("[dim]Goodbye![/dim]")

    async def close(self) -> None:
        await self.ollama.close()
        if self.browser is not None:
            await self.browser.close()


def run_chat(config: Config, version: str = "", config_path: Any = None) -> None:
    app = ChatApp(config, version=version, config_path=config_path)
    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        pass
