"""Local shell and git command execution."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger("llamacode.shell")

MAX_OUTPUT_CHARS = 10 * 1024 * 1024


async def _communicate(proc: asyncio.subprocess.Process, timeout: float) -> tuple[str, str] | None:
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            proc.kill()
            await proc.wait()
        except ProcessLookupError:
            pass
        return None
    return (
        stdout.decode(errors="replace")[:MAX_OUTPUT_CHARS],
        stderr.decode(errors="replace")[:MAX_OUTPUT_CHARS],
    )


async def execute_command(
    command: str, working_directory: str | Path, timeout: float = 120.0
) -> dict[str, Any]:
    """Run ``command`` through the shell in ``working_directory``.

    Returns: {"success": bool, "output": str, "error": str | None, "exit_code": int}
    """
    if not isinstance(command, str) or not command.strip():
        return {"success": False, "error": "'command' must be a non-empty string."}

    try:
        proc = await asyncio.create_subprocess_shell(
            command,
            cwd=str(working_directory),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        return {"success": False, "error": str(e), "exit_code": -1}

    streams = await _communicate(proc, timeout)
    if streams is None:
        logger.warning(f"Command timed out after {timeout}s: {command[:100]}")
        return {
            "success": False,
            "error": f"Command timed out after {timeout}s: {command[:100]}",
            "exit_code": -1,
        }

    stdout, stderr = streams
    output = stdout + ("\n" + stderr if stderr else "")
    if proc.returncode == 0:
        return {"success": True, "output": output, "exit_code": 0}

    return {
        "success": False,
        "error": f"Command failed with exit code {proc.returncode}: {stderr.strip() or stdout.strip()}",
        "output": output,
        "exit_code": proc.returncode,
    }


async def run_git(
    args: list[str], working_directory: str | Path, timeout: float = 60.0
) -> dict[str, Any]:
    """Run ``git <args>`` without a shell."""
    try:
        proc = await asyncio.create_subprocess_exec(
            "git", *args,
            cwd=str(working_directory),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        return {"success": False, "error": f"git is not available: {e}"}

    streams = await _communicate(proc, timeout)
    if streams is None:
        return {"success": False, "error": f"git {' '.join(args)} timed out after {timeout}s"}

    stdout, stderr = streams
    if proc.returncode != 0:
        return {"success": False, "error": stderr.strip() or stdout.strip() or f"git exited with {proc.returncode}"}
    return {"success": True, "output": stdout.strip() or "(no output)"}
