from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from ..config import Config
from ..ollama import OllamaClient
from ..system import build_system_prompt
from .formatters import _FormatterMixin
from .models import MAX_TOOL_ITERATIONS, AgentEvent, AgentState, ToolInvocation
from .parser import parse_tool_calls, strip_tool_calls
from .safety import describe_action, is_dangerous
from .session import _PersistenceMixin
from .tool_defs import ToolRegistry, build_registry

if TYPE_CHECKING:
    from ..browser import BrowserSession
    from ..plugins import PluginManager
    from ..rag import DocumentIndex

logger = logging.getLogger("llamacode.agent")

EventCallback = Callable[[AgentEvent], Union[None, Awaitable[None]]]
ConfirmCallback = Callable[[str], Union[bool, Awaitable[bool]]]


class AgentLoop(_FormatterMixin, _PersistenceMixin):

    def __init__(
        self,
        ollama: OllamaClient,
        config: Config,
        registry: ToolRegistry | None = None,
        plugin_manager: PluginManager | None = None,
        document_index: DocumentIndex | None = None,
        browser: BrowserSession | None = None,
        on_event: EventCallback | None = None,
    ) -> None:
        self.ollama = ollama
        self.config = config
        self.plugin_manager = plugin_manager
        self.document_index = document_index
        self.browser = browser
        self.on_event = on_event
        self.registry = registry if registry is not None else self._build_registry()
        self.state = AgentState()
        self.state.reset(self._system_prompt())

    def _build_registry(self) -> ToolRegistry:
        return build_registry(
            self.config,
            plugin_manager=self.plugin_manager,
            document_index=self.document_index,
            browser=self.browser,
        )

    def _system_prompt(self) -> str:
        return build_system_prompt(
            self.registry,
            self.config.resolved_working_directory(),
            self.config.custom_system_prompt,
        )

    async def _emit(self, event_type: str, **data: Any) -> None:
        if self.on_event is None:
            return
        result = self.on_event(AgentEvent(type=event_type, data=data))
        if inspect.isawaitable(result):
            await result

    # ── Public API ───────────────────────────────────────────────────────────

    @property
    def history(self) -> list[dict[str, Any]]:
        return [dict(msg) for msg in self.state.conversation]

    def reset(self) -> None:
        self.state.reset(self._system_prompt())
        logger.info("Conversation history cleared")

    clear_history = reset

    def reload_tools(self) -> int:
        """Rebuild the registry (re-reading plugin manifests) and refresh the system message."""
        self.registry = self._build_registry()
        self.state.replace_system_prompt(self._system_prompt())
        return len(self.registry)

    def get_stats(self) -> dict[str, int]:
        return {
            "message_count": self.state.message_count,
            "tool_use_count": self.state.tool_use_count,
            "estimated_tokens": self.state.estimated_tokens,
            "token_limit": self.config.token_limit,
        }

    async def chat(self, user_text: str, confirm: ConfirmCallback | None = None) -> str:
        """Run one user turn: model call, tool batch, repeat until a tool-free answer.

        Returns the final assistant text with tool markup removed. When the
        iteration ceiling is hit, the last iteration's stripped text is
        returned as-is. ``UpstreamError`` from the model client propagates.
        """
        self.state.add_message("user", user_text)

        limit = self.config.token_limit
        if limit > 0 and self.state.estimated_tokens >= limit:
            logger.warning(f"Token limit reached: {self.state.estimated_tokens}/{limit}")
            return (
                f"Token limit reached ({self.state.estimated_tokens}/{limit} estimated tokens). "
                "Use /clear to start a new conversation or /save to keep this one."
            )

        response = ""
        for iteration in range(MAX_TOOL_ITERATIONS):
            raw = await self._request_completion()
            self.state.add_message("assistant", raw)

            calls = parse_tool_calls(raw)
            response = strip_tool_calls(raw)
            if not calls:
                return response

            logger.info(f"Iteration {iteration + 1}: {len(calls)} tool call(s)")
            results = []
            for call in calls:
                results.append(await self._run_tool_call(call, confirm))
            self.state.add_message("user", self._format_tool_batch(results))

        logger.warning(f"Tool iteration limit ({MAX_TOOL_ITERATIONS}) reached; returning last response")
        await self._emit("limit", iterations=MAX_TOOL_ITERATIONS)
        return response

    # ── Internals ────────────────────────────────────────────────────────────

    async def _request_completion(self) -> str:
        messages = self.history
        await self._emit("thinking")
        if not self.config.streaming:
            text = await self.ollama.complete(messages)
            await self._emit("text", content=text, final=True)
            return text

        chunks: list[str] = []
        async for chunk in self.ollama.complete_stream(messages):
            chunks.append(chunk)
            await self._emit("text", content=chunk, final=False)
        return "".join(chunks)

    async def _confirm(self, confirm: ConfirmCallback, description: str) -> bool:
        timeout = self.config.confirmation_timeout
        try:
            answer = confirm(description)
            if inspect.isawaitable(answer):
                if timeout > 0:
                    answer = await asyncio.wait_for(answer, timeout=timeout)
                else:
                    answer = await answer
        except asyncio.TimeoutError:
            logger.warning(f"Confirmation timed out after {timeout}s, denying: {description}")
            return False
        return bool(answer)

    async def _run_tool_call(self, call: ToolInvocation, confirm: ConfirmCallback | None) -> str:
        tool = self.registry.find(call.name)
        if tool is None:
            logger.warning(f"Model requested unknown tool: {call.name}")
            return self._format_missing_tool(call.name)

        if confirm is not None and is_dangerous(call.name, call.parameters, self.config.require_confirmation):
            description = describe_action(call.name, call.parameters)
            if not await self._confirm(confirm, description):
                logger.info(f"User denied tool call: {description}")
                await self._emit("tool_end", tool=call.name, success=False, preview="Cancelled by user")
                return f"Tool '{call.name}' failed:\nCancelled by user"

        await self._emit("tool_start", tool=call.name, arguments=call.parameters)
        self.state.tool_use_count += 1
        try:
            result = await tool.execute(call.parameters)
        except Exception as e:
            logger.error(f"Tool {call.name} raised: {e}")
            await self._emit("tool_end", tool=call.name, success=False, preview=str(e))
            return self._format_tool_exception(call.name, e)

        logger.debug(f"Tool {call.name} finished: success={result.success}")
        await self._emit("tool_end", tool=call.name, success=result.success, preview=self._preview(result))
        return self._format_tool_result(call.name, result)
