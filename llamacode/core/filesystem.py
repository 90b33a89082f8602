import fnmatch
import os
import re
from pathlib import Path
from typing import Any

SKIP_DIRS = frozenset({".git", "node_modules", "__pycache__", ".venv", "venv", "dist", "build"})
MAX_GREP_MATCHES = 200
MAX_GLOB_RESULTS = 500


def resolve_path(working_directory: str | Path, path: str) -> Path:
    """Resolve ``path`` against the working directory (absolute paths pass through)."""
    return (Path(working_directory) / os.path.expanduser(str(path))).resolve()


def read_file(working_directory: str | Path, file_path: str) -> dict[str, Any]:
    """
    Read a text file and return it with 1-based line numbers.

    Args:
        working_directory: Base directory for relative paths.
        file_path: File to read.

    Returns:
        dict: ``success`` plus ``output`` (numbered content) or ``error``.
    """
    try:
        full_path = resolve_path(working_directory, file_path)
        content = full_path.read_text(encoding="utf-8", errors="replace")
        numbered = "\n".join(
            f"{idx}\t{line}" for idx, line in enumerate(content.split("\n"), 1)
        )
        return {"success": True, "output": numbered}
    except Exception as e:
        return {"success": False, "error": str(e)}


def write_file(working_directory: str | Path, file_path: str, content: str) -> dict[str, Any]:
    """Write ``content`` to a file, creating parent directories as needed."""
    try:
        full_path = resolve_path(working_directory, file_path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        with open(full_path, "w", encoding="utf-8") as f:
            f.write(content)
        return {"success": True, "output": f"File written successfully: {file_path}"}
    except Exception as e:
        return {"success": False, "error": str(e)}


def edit_file(
    working_directory: str | Path, file_path: str, old_string: str, new_string: str
) -> dict[str, Any]:
    """Replace the first occurrence of ``old_string`` with ``new_string``."""
    try:
        full_path = resolve_path(working_directory, file_path)
        content = full_path.read_text(encoding="utf-8")
        if old_string not in content:
            return {"success": False, "error": "Old string not found in file"}
        full_path.write_text(content.replace(old_string, new_string, 1), encoding="utf-8")
        return {"success": True, "output": f"File edited successfully: {file_path}"}
    except Exception as e:
        return {"success": False, "error": str(e)}


def list_files(working_directory: str | Path, directory: str = ".") -> dict[str, Any]:
    """List a directory, one entry per line, prefixed with ``d`` or ``-``."""
    try:
        full_path = resolve_path(working_directory, directory)
        entries = sorted(full_path.iterdir(), key=lambda p: p.name)
        output = "\n".join(
            f"{'d' if entry.is_dir() else '-'} {entry.name}" for entry in entries
        )
        return {"success": True, "output": output}
    except Exception as e:
        return {"success": False, "error": str(e)}


def _walk_files(root: Path):
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
        for filename in sorted(filenames):
            yield Path(dirpath) / filename


def glob_files(working_directory: str | Path, pattern: str) -> dict[str, Any]:
    """Find files under the working directory whose name or relative path matches ``pattern``."""
    try:
        root = Path(working_directory).resolve()
        matches: list[str] = []
        for path in _walk_files(root):
            rel = path.relative_to(root).as_posix()
            if fnmatch.fnmatch(path.name, pattern) or fnmatch.fnmatch(rel, pattern):
                matches.append(f"./{rel}")
                if len(matches) >= MAX_GLOB_RESULTS:
                    break
        return {"success": True, "output": "\n".join(matches)}
    except Exception as e:
        return {"success": False, "error": str(e)}


def grep_files(working_directory: str | Path, pattern: str, directory: str = ".") -> dict[str, Any]:
    """Search text files for a regular expression; output is ``path:line:text``."""
    try:
        regex = re.compile(pattern)
    except re.error:
        regex = re.compile(re.escape(pattern))

    try:
        base = Path(working_directory).resolve()
        root = resolve_path(base, directory)
        paths = [root] if root.is_file() else _walk_files(root)
        lines: list[str] = []
        for path in paths:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    for lineno, line in enumerate(f, 1):
                        if regex.search(line):
                            try:
                                shown = path.relative_to(base).as_posix()
                            except ValueError:
                                shown = str(path)
                            lines.append(f"{shown}:{lineno}:{line.rstrip()}")
                            if len(lines) >= MAX_GREP_MATCHES:
                                return {"success": True, "output": "\n".join(lines) + "\n... [truncated]"}
            except (UnicodeDecodeError, OSError):
                continue
        return {"success": True, "output": "\n".join(lines)}
    except Exception as e:
        return {"success": False, "error": str(e)}
