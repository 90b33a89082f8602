from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

logger = logging.getLogger("llamacode.agent")

MAX_TOOL_ITERATIONS = 5

ROLES = ("system", "user", "assistant")


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, rounded up."""
    return math.ceil(len(text) / 4)


@dataclass
class ToolResult:
    success: bool
    output: str | None = None
    error: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> ToolResult:
        """Coerce a ``{success, output|error}`` dict (built-in helper or plugin) into a result."""
        if isinstance(data, ToolResult):
            return data
        if not isinstance(data, dict):
            return cls(success=False, error=f"Tool returned {type(data).__name__}, expected an object")
        output = data.get("output")
        error = data.get("error")
        return cls(
            success=bool(data.get("success", False)),
            output=None if output is None else str(output),
            error=None if error is None else str(error),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "output": self.output, "error": self.error}


ToolHandler = Callable[[dict[str, Any]], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    parameters: dict[str, str]
    execute: ToolHandler = field(compare=False, repr=False)


@dataclass
class ToolInvocation:
    name: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentEvent:
    type: str  # "text", "thinking", "tool_start", "tool_end", "limit"
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentState:
    conversation: list[dict[str, Any]] = field(default_factory=list)
    tool_use_count: int = 0
    estimated_tokens: int = 0

    def add_message(self, role: str, content: str) -> None:
        if role not in ROLES:
            raise ValueError(f"Unknown message role: {role!r}")
        self.conversation.append({"role": role, "content": content})
        self.estimated_tokens += estimate_tokens(content)

    def recompute_tokens(self) -> int:
        self.estimated_tokens = sum(
            estimate_tokens(msg.get("content", "")) for msg in self.conversation
        )
        return self.estimated_tokens

    def reset(self, system_prompt: str) -> None:
        self.conversation = [{"role": "system", "content": system_prompt}]
        self.tool_use_count = 0
        self.recompute_tokens()

    def replace_system_prompt(self, system_prompt: str) -> None:
        """Swap in a fresh system message; earlier dicts are left untouched."""
        message = {"role": "system", "content": system_prompt}
        if self.conversation and self.conversation[0].get("role") == "system":
            self.conversation = [message] + self.conversation[1:]
        else:
            self.conversation = [message] + self.conversation
        self.recompute_tokens()

    def restore(self, history: list[dict[str, Any]], tool_use_count: int) -> None:
        self.conversation = [
            {"role": msg["role"], "content": msg["content"]} for msg in history
        ]
        self.tool_use_count = tool_use_count
        self.recompute_tokens()

    @property
    def message_count(self) -> int:
        return sum(1 for msg in self.conversation if msg.get("role") != "system")
