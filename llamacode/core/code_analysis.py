"""Lightweight static summary of a source file."""

from __future__ import annotations

import ast
from pathlib import Path
from typing import Any

from .filesystem import resolve_path

_COMMENT_PREFIXES = {
    ".py": ("#",), ".sh": ("#",), ".rb": ("#",), ".yaml": ("#",), ".yml": ("#",), ".toml": ("#",),
    ".js": ("//", "/*", "*"), ".ts": ("//", "/*", "*"), ".tsx": ("//", "/*", "*"), ".jsx": ("//", "/*", "*"),
    ".java": ("//", "/*", "*"), ".c": ("//", "/*", "*"), ".h": ("//", "/*", "*"), ".cpp": ("//", "/*", "*"),
    ".go": ("//", "/*", "*"), ".rs": ("//", "/*", "*"), ".swift": ("//", "/*", "*"), ".kt": ("//", "/*", "*"),
    ".sql": ("--",), ".lua": ("--",), ".hs": ("--",),
}


def _line_stats(source: str, suffix: str) -> dict[str, int]:
    prefixes = _COMMENT_PREFIXES.get(suffix, ())
    lines = source.splitlines()
    blank = sum(1 for line in lines if not line.strip())
    comments = sum(1 for line in lines if prefixes and line.strip().startswith(prefixes))
    todos = sum(1 for line in lines if "TODO" in line or "FIXME" in line)
    return {
        "lines": len(lines),
        "blank": blank,
        "comment": comments,
        "code": len(lines) - blank - comments,
        "todo": todos,
    }


def _python_summary(source: str) -> list[str]:
    tree = ast.parse(source)
    imports: list[str] = []
    classes: list[str] = []
    functions: list[str] = []

    for node in tree.body:
        if isinstance(node, ast.Import):
            imports.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            imports.append("." * node.level + (node.module or ""))
        elif isinstance(node, ast.ClassDef):
            methods = [
                n.name for n in node.body
                if isinstance(n, (ast.FunctionDef, ast.AsyncFunctionDef))
            ]
            classes.append(f"{node.name} (line {node.lineno}): {', '.join(methods) or 'no methods'}")
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            prefix = "async " if isinstance(node, ast.AsyncFunctionDef) else ""
            args = ", ".join(a.arg for a in node.args.args)
            functions.append(f"{prefix}{node.name}({args}) (line {node.lineno})")

    parts = [f"Imports ({len(imports)}): {', '.join(imports) or 'none'}"]
    parts.append(f"Classes ({len(classes)}):")
    parts.extend(f"  - {c}" for c in classes)
    parts.append(f"Functions ({len(functions)}):")
    parts.extend(f"  - {f}" for f in functions)
    return parts


def analyze_code(working_directory: str | Path, file_path: str) -> dict[str, Any]:
    """Summarize structure (Python) and line statistics (any language)."""
    try:
        full_path = resolve_path(working_directory, file_path)
        source = full_path.read_text(encoding="utf-8", errors="replace")
    except Exception as e:
        return {"success": False, "error": str(e)}

    suffix = Path(full_path).suffix.lower()
    stats = _line_stats(source, suffix)
    parts = [
        f"File: {file_path}",
        f"Lines: {stats['lines']} (code {stats['code']}, comment {stats['comment']}, blank {stats['blank']})",
        f"TODO/FIXME markers: {stats['todo']}",
    ]

    if suffix == ".py":
        try:
            parts.extend(_python_summary(source))
        except SyntaxError as e:
            parts.append(f"Syntax error at line {e.lineno}: {e.msg}")

    return {"success": True, "output": "\n".join(parts)}
