from __future__ import annotations

import logging

from .models import ToolResult

logger = logging.getLogger("llamacode.agent")

MAX_RESULT_CHARS = 20_000


class _FormatterMixin:

    def _format_tool_result(self, tool_name: str, result: ToolResult) -> str:
        if result.success:
            output = result.output or ""
            if len(output) > MAX_RESULT_CHARS:
                output = output[:MAX_RESULT_CHARS] + f"\n... [truncated {len(output) - MAX_RESULT_CHARS} chars]"
            return f"Tool '{tool_name}' executed successfully:\n{output}"
        return f"Tool '{tool_name}' failed:\n{result.error or 'Unknown error'}"

    def _format_tool_exception(self, tool_name: str, error: BaseException) -> str:
        return f"Tool '{tool_name}' error: {str(error) or type(error).__name__}"

    def _format_missing_tool(self, tool_name: str) -> str:
        return f"Error: Tool '{tool_name}' not found"

    def _format_tool_batch(self, results: list[str]) -> str:
        return "Tool results:\n" + "\n\n".join(results)

    def _preview(self, result: ToolResult, limit: int = 200) -> str:
        text = (result.output if result.success else result.error) or ""
        text = text.strip().replace("\n", " ")
        return text if len(text) <= limit else text[:limit] + "..."
