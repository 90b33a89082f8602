"""Git tools for the working directory."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .shell import run_git


async def git_status(working_directory: str | Path) -> dict[str, Any]:
    return await run_git(["status", "--short", "--branch"], working_directory)


async def git_diff(working_directory: str | Path, file_path: str = "", staged: bool = False) -> dict[str, Any]:
    args = ["diff"]
    if staged:
        args.append("--cached")
    if file_path:
        args += ["--", file_path]
    return await run_git(args, working_directory)


async def git_log(working_directory: str | Path, limit: int = 10) -> dict[str, Any]:
    try:
        limit = max(1, min(int(limit), 100))
    except (TypeError, ValueError):
        limit = 10
    return await run_git(["log", f"-{limit}", "--oneline", "--decorate"], working_directory)


async def git_commit(working_directory: str | Path, message: str, add_all: bool = False) -> dict[str, Any]:
    """Commit staged changes (optionally staging everything first)."""
    if not isinstance(message, str) or not message.strip():
        return {"success": False, "error": "'message' must be a non-empty string."}

    if add_all:
        staged = await run_git(["add", "-A"], working_directory)
        if not staged["success"]:
            return staged
    return await run_git(["commit", "-m", message], working_directory)
