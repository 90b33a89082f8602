"""Agent package.

Public API:
    from llamacode.core.agent import AgentLoop
    from llamacode.core.agent import AgentEvent, AgentState, ToolDefinition, ToolInvocation, ToolResult

Internal layout:
    models.py     - ToolResult, ToolDefinition, ToolInvocation, AgentEvent, AgentState
    parser.py     - parse_tool_calls(), strip_tool_calls() (tool-call markup)
    safety.py     - is_dangerous(), describe_action() (confirmation gate)
    tool_defs.py  - ToolRegistry, get_builtin_tools(), build_registry()
    formatters.py - _FormatterMixin (tool result texts fed back to the model)
    session.py    - save/load/list/export of conversations, _PersistenceMixin
    loop.py       - AgentLoop (main loop, combines the mixins)
"""

from .loop import AgentLoop
from .models import AgentEvent, AgentState, ToolDefinition, ToolInvocation, ToolResult

__all__ = ["AgentLoop", "AgentEvent", "AgentState", "ToolDefinition", "ToolInvocation", "ToolResult"]
