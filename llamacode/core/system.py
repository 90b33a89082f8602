"""System prompt for the llamacode coding assistant."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .agent.models import ToolDefinition

DEFAULT_INTRO = """\
You are a helpful coding assistant running locally via Ollama. You help users with software development tasks directly from their terminal."""

TOOL_PROTOCOL = """\
When you need to use a tool, format your response like this:
<tool_use>
<tool_name>tool_name_here</tool_name>
<parameters>
{
  "param1": "value1",
  "param2": "value2"
}
</parameters>
</tool_use>

The parameters block must be a single valid JSON object. You can use several tools in one response; they run in the order written, and each one sees the effects of the ones before it. Tool results come back in the next message, starting with "Tool results:". After using tools, give the user a natural language answer explaining what you did.

Be concise and helpful. Focus on solving the user's problem efficiently."""


def format_tool_descriptions(tools: Iterable[ToolDefinition]) -> str:
    blocks = []
    for tool in tools:
        params = "\n".join(f"  - {key}: {hint}" for key, hint in tool.parameters.items()) or "  (none)"
        blocks.append(f"### {tool.name}\n{tool.description}\nParameters:\n{params}")
    return "\n\n".join(blocks)


def build_system_prompt(
    tools: Iterable[ToolDefinition],
    working_directory: str | Path,
    custom_prompt: str = "",
) -> str:
    """Assemble the system message; a custom prompt replaces the default intro."""
    intro = custom_prompt.strip() or DEFAULT_INTRO
    return (
        f"{intro}\n\n"
        "You have access to the following tools to help users:\n\n"
        f"{format_tool_descriptions(tools)}\n\n"
        f"{TOOL_PROTOCOL}\n\n"
        f"Current working directory: {working_directory}\n"
    )
