"""Tool-call markup parser.

Models request tools by embedding blocks like::

    <tool_use>
    <tool_name>read_file</tool_name>
    <parameters>
    {"file_path": "README.md"}
    </parameters>
    </tool_use>

anywhere in their free-form answer. The scanner below walks the text once
with ``str.find``; it never backtracks, so adversarial output cannot make it
blow up. Each opening tag pairs with the nearest closing tag after it, which
gives the same non-overlapping, shortest-match blocks a lazy regex would.
"""

from __future__ import annotations

import json
import logging
from typing import Iterator

from .models import ToolInvocation

logger = logging.getLogger("llamacode.agent.parser")

BLOCK_OPEN = "<tool_use>"
BLOCK_CLOSE = "</tool_use>"
NAME_OPEN = "<tool_name>"
NAME_CLOSE = "</tool_name>"
PARAMS_OPEN = "<parameters>"
PARAMS_CLOSE = "</parameters>"


def _iter_blocks(text: str) -> Iterator[tuple[int, int, str]]:
    """Yield ``(start, end, body)`` for every complete block, left to right."""
    pos = 0
    while True:
        start = text.find(BLOCK_OPEN, pos)
        if start == -1:
            return
        body_start = start + len(BLOCK_OPEN)
        close = text.find(BLOCK_CLOSE, body_start)
        if close == -1:
            return
        end = close + len(BLOCK_CLOSE)
        yield start, end, text[body_start:close]
        pos = end


def _extract_field(body: str, open_tag: str, close_tag: str) -> str | None:
    start = body.find(open_tag)
    if start == -1:
        return None
    value_start = start + len(open_tag)
    end = body.find(close_tag, value_start)
    if end == -1:
        return None
    return body[value_start:end]


def _parse_block(body: str) -> ToolInvocation | None:
    name = _extract_field(body, NAME_OPEN, NAME_CLOSE)
    params_raw = _extract_field(body, PARAMS_OPEN, PARAMS_CLOSE)
    if name is None or params_raw is None:
        logger.debug("Dropping tool block without name or parameters")
        return None

    name = name.strip()
    if not name or "\n" in name:
        logger.debug(f"Dropping tool block with invalid name: {name!r}")
        return None

    try:
        parameters = json.loads(params_raw.strip())
    except json.JSONDecodeError as e:
        logger.debug(f"Dropping tool block '{name}' with invalid JSON parameters: {e}")
        return None
    if not isinstance(parameters, dict):
        logger.debug(f"Dropping tool block '{name}': parameters are not a JSON object")
        return None

    return ToolInvocation(name=name, parameters=parameters)


def parse_tool_calls(text: str) -> list[ToolInvocation]:
    """Return every well-formed tool invocation in source order."""
    calls: list[ToolInvocation] = []
    for _, _, body in _iter_blocks(text):
        call = _parse_block(body)
        if call is not None:
            calls.append(call)
    return calls


def strip_tool_calls(text: str) -> str:
    """Remove all tool blocks, valid or not, and trim what is left."""
    pieces: list[str] = []
    pos = 0
    for start, end, _ in _iter_blocks(text):
        pieces.append(text[pos:start])
        pos = end
    pieces.append(text[pos:])
    return "".join(pieces).strip()
