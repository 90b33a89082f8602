"""Confirmation gate for side-effecting tool calls.

The risk patterns are a best-effort denylist meant to catch obvious
foot-guns before they run; they are not a sandbox.
"""

from __future__ import annotations

import re
from typing import Any

CONFIRM_TOOLS = frozenset({"execute_command", "write_file", "edit_file", "git_commit"})

_RISKY_COMMAND_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # recursive force delete: rm -rf, rm -fr, rm -r -f, rm --recursive --force
    (re.compile(r"\brm\s+(?:-\S*\s+)*-[a-zA-Z]*(?:r[a-zA-Z]*f|f[a-zA-Z]*r)", re.IGNORECASE), "recursive delete"),
    (re.compile(r"\brm\s+(?:-\S+\s+)*-[a-zA-Z]*r[a-zA-Z]*\s+(?:-\S+\s+)*-[a-zA-Z]*f", re.IGNORECASE), "recursive delete"),
    (re.compile(r"\brm\s+.*--recursive.*--force|\brm\s+.*--force.*--recursive"), "recursive delete"),
    # privilege escalation
    (re.compile(r"(?:^|[;&|]\s*|\s)(?:sudo|doas|su)(?:\s|$)"), "privilege escalation"),
    # permission / ownership changes
    (re.compile(r"\b(?:chmod|chown|chgrp)\b"), "permission change"),
    # raw device writes
    (re.compile(r"\bdd\s+.*\bof=/dev/"), "raw device write"),
    (re.compile(r">\s*/dev/(?:sd|hd|nvme|vd|xvd|disk|mmcblk)"), "raw device write"),
    # disk formatting
    (re.compile(r"\b(?:mkfs(?:\.\w+)?|fdisk|parted|wipefs)\b"), "disk format"),
    # pipe-to-shell downloads
    (re.compile(r"\b(?:curl|wget)\b[^|]*\|\s*(?:sudo\s+)?(?:ba|z|da|k)?sh\b"), "pipe to shell"),
]


def risky_command_reason(command: str) -> str | None:
    """Return a short label for the first risk pattern a command matches."""
    for pattern, label in _RISKY_COMMAND_PATTERNS:
        if pattern.search(command):
            return label
    return None


def is_dangerous(name: str, params: dict[str, Any], require_confirmation: bool) -> bool:
    if not require_confirmation:
        return False
    if name not in CONFIRM_TOOLS:
        return False
    if name == "execute_command":
        command = params.get("command", "")
        if not isinstance(command, str):
            command = str(command)
        return risky_command_reason(command) is not None
    return True


def describe_action(name: str, params: dict[str, Any]) -> str:
    """Human-readable prompt for the confirmation dialog."""
    if name == "execute_command":
        return f"Execute command: {params.get('command', '')}"
    if name == "write_file":
        return f"Write file: {params.get('file_path', '')}"
    if name == "edit_file":
        return f"Edit file: {params.get('file_path', '')}"
    if name == "git_commit":
        return f"Git commit: {params.get('message', '')}"
    return f"Execute tool: {name}"
