"""Conversation persistence: save, load, list and export named transcripts.

Each conversation lives in ``<sessions_dir>/<name>.json`` as
``{"timestamp": ISO-8601, "history": [...], "toolUseCount": int}``.
"""

from __future__ import annotations

import html
import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from .models import AgentState

logger = logging.getLogger("llamacode.agent.session")

EXPORT_FORMATS = ("markdown", "html")

_ROLE_TITLES = {"user": "User", "assistant": "Assistant", "system": "System"}


def _name_to_filename(name: str) -> str:
    """Sanitize a conversation name for use as a filename."""
    return re.sub(r"[^a-zA-Z0-9.\-_]", "_", name.strip()) or "conversation"


def _outcome(success: bool, message: str) -> dict[str, Any]:
    return {"success": success, "message": message}


def save_session(name: str, state: AgentState, sessions_dir: str | Path) -> dict[str, Any]:
    """Write the full history and tool counter; an existing entry is overwritten."""
    directory = Path(sessions_dir)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        filepath = directory / f"{_name_to_filename(name)}.json"
        snapshot = {
            "timestamp": datetime.now().isoformat(),
            "history": state.conversation,
            "toolUseCount": state.tool_use_count,
        }
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(snapshot, f, indent=2)
    except OSError as e:
        logger.error(f"Failed to save conversation {name}: {e}")
        return _outcome(False, f"Failed to save conversation: {e}")

    logger.info(f"Saved conversation '{name}' to {filepath}")
    return _outcome(True, f"Conversation saved as '{name}'")


def read_session(name: str, sessions_dir: str | Path) -> dict[str, Any] | None:
    """Return the raw snapshot dict, or None when no entry matches."""
    filepath = Path(sessions_dir) / f"{_name_to_filename(name)}.json"
    if not filepath.is_file():
        return None
    with open(filepath, "r", encoding="utf-8") as f:
        return json.load(f)


def load_session(name: str, state: AgentState, sessions_dir: str | Path) -> dict[str, Any]:
    """Replace history and tool counter with the snapshot; tokens are recomputed."""
    try:
        snapshot = read_session(name, sessions_dir)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to load conversation {name}: {e}")
        return _outcome(False, f"Failed to load conversation '{name}': {e}")

    if snapshot is None:
        return _outcome(False, f"Conversation '{name}' not found")

    history = snapshot.get("history")
    if not isinstance(history, list) or not all(
        isinstance(m, dict) and "role" in m and "content" in m for m in history
    ):
        return _outcome(False, f"Conversation '{name}' is corrupted: invalid history")

    state.restore(history, int(snapshot.get("toolUseCount", 0)))
    logger.info(f"Loaded conversation '{name}': {len(history)} messages")
    return _outcome(True, f"Conversation '{name}' loaded ({state.message_count} messages)")


def list_sessions(sessions_dir: str | Path) -> list[str]:
    directory = Path(sessions_dir)
    if not directory.is_dir():
        return []
    return sorted(p.stem for p in directory.glob("*.json"))


def render_markdown(history: list[dict[str, Any]], title: str) -> str:
    parts = [f"# {title}", "", f"_Exported {datetime.now().isoformat(timespec='seconds')}_", ""]
    for msg in history:
        if msg.get("role") == "system":
            continue
        parts.append(f"## {_ROLE_TITLES.get(msg.get('role', ''), msg.get('role', ''))}")
        parts.append("")
        parts.append(msg.get("content", ""))
        parts.append("")
    return "\n".join(parts)


def render_html(history: list[dict[str, Any]], title: str) -> str:
    body = []
    for msg in history:
        role = msg.get("role", "")
        if role == "system":
            continue
        body.append(
            f'<div class="message {html.escape(role)}">\n'
            f"<h2>{html.escape(_ROLE_TITLES.get(role, role))}</h2>\n"
            f"<pre>{html.escape(msg.get('content', ''))}</pre>\n"
            "</div>"
        )
    return (
        "<!DOCTYPE html>\n"
        '<html>\n<head>\n<meta charset="utf-8">\n'
        f"<title>{html.escape(title)}</title>\n"
        "<style>\n"
        "body { font-family: sans-serif; max-width: 50em; margin: 2em auto; }\n"
        ".message { border-left: 4px solid #ccc; padding: 0 1em; margin-bottom: 1.5em; }\n"
        ".user { border-color: #3b82f6; }\n"
        ".assistant { border-color: #10b981; }\n"
        "pre { white-space: pre-wrap; }\n"
        "</style>\n</head>\n<body>\n"
        f"<h1>{html.escape(title)}</h1>\n"
        + "\n".join(body)
        + "\n</body>\n</html>\n"
    )


def export_session(
    name: str, history: list[dict[str, Any]], fmt: str, directory: str | Path
) -> dict[str, Any]:
    """Render the history (system message excluded) to ``<directory>/<name>.md|.html``."""
    fmt = (fmt or "").lower()
    if fmt == "md":
        fmt = "markdown"
    if fmt not in EXPORT_FORMATS:
        return _outcome(False, f"Unsupported export format '{fmt}'. Use one of: {', '.join(EXPORT_FORMATS)}")

    if fmt == "markdown":
        content, suffix = render_markdown(history, name), ".md"
    else:
        content, suffix = render_html(history, name), ".html"

    filepath = Path(directory) / f"{_name_to_filename(name)}{suffix}"
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        filepath.write_text(content, encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to export conversation {name}: {e}")
        return _outcome(False, f"Failed to export conversation: {e}")
    return _outcome(True, f"Conversation exported to {filepath}")


class _PersistenceMixin:

    def save_conversation(self, name: str) -> dict[str, Any]:
        return save_session(name, self.state, self.config.resolved_sessions_dir())  # type: ignore[attr-defined]

    def load_conversation(self, name: str) -> dict[str, Any]:
        return load_session(name, self.state, self.config.resolved_sessions_dir())  # type: ignore[attr-defined]

    def list_conversations(self) -> list[str]:
        return list_sessions(self.config.resolved_sessions_dir())  # type: ignore[attr-defined]

    def export_conversation(self, name: str, fmt: str = "markdown") -> dict[str, Any]:
        return export_session(
            name,
            self.state.conversation,  # type: ignore[attr-defined]
            fmt,
            self.config.resolved_working_directory(),  # type: ignore[attr-defined]
        )
