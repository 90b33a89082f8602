"""Plugin tools discovered from ``<plugins_dir>/<plugin>/manifest.json``.

Each manifest declares tools whose ``handler`` is a file inside the plugin
directory. Handlers never run inside this process: every call starts the
handler as a subprocess (``python handler.py`` for ``.py`` files, the file
itself otherwise), writes the argument object to its stdin as JSON and reads
a single ``{"success": ..., "output" | "error": ...}`` JSON object from its
stdout. A hung or crashing handler therefore costs one failed tool result,
not the session.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .agent.models import ToolDefinition, ToolResult

logger = logging.getLogger("llamacode.plugins")

MANIFEST_FILENAME = "manifest.json"

EXAMPLE_MANIFEST = {
    "name": "example-plugin",
    "version": "1.0.0",
    "description": "An example plugin demonstrating custom tool creation",
    "author": "llamacode",
    "tools": [
        {
            "name": "hello_world",
            "description": "A simple hello world tool",
            "parameters": {"name": "string - name to greet (optional)"},
            "handler": "handler.py",
        }
    ],
}

EXAMPLE_HANDLER = '''\
import json
import sys

args = json.load(sys.stdin)
name = args.get("name") or "World"
print(json.dumps({"success": True, "output": f"Hello, {name}! This is from a custom plugin."}))
'''

EXAMPLE_README = """\
# Example Plugin

- `manifest.json` - plugin metadata and tool definitions
- `handler.py` - tool implementation

## Creating your own plugin

1. Create a new directory next to this one.
2. Add a `manifest.json` with `name`, `version`, `description` and `tools`.
3. Add one handler file per tool.
4. Run `/reload` in a chat session (or restart) to pick it up.

## Handler format

A handler is started as a separate process for every call. It receives the
tool arguments as a JSON object on stdin and must print one JSON object to
stdout: `{"success": true, "output": "..."}` or
`{"success": false, "error": "..."}`. Python handlers (`*.py`) run with the
same interpreter as llamacode; anything else must be executable.
"""


@dataclass
class PluginManifest:
    name: str
    version: str
    description: str
    path: Path
    author: str = ""
    tools: list[dict[str, Any]] = field(default_factory=list)


async def run_handler(handler_path: Path, args: dict[str, Any], timeout: float) -> dict[str, Any]:
    """Execute one handler subprocess and return its decoded result dict."""
    if handler_path.suffix == ".py":
        cmd = [sys.executable, str(handler_path)]
    else:
        cmd = [str(handler_path)]

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(handler_path.parent),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        return {"success": False, "error": f"Could not start plugin handler {handler_path.name}: {e}"}

    payload = json.dumps(args, default=str).encode()
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(payload), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            proc.kill()
            await proc.wait()
        except ProcessLookupError:
            pass
        return {"success": False, "error": f"Plugin handler timed out after {timeout}s"}

    if proc.returncode != 0:
        detail = stderr.decode(errors="replace").strip() or f"exit code {proc.returncode}"
        return {"success": False, "error": f"Plugin execution failed: {detail[-2000:]}"}

    text = stdout.decode(errors="replace").strip()
    try:
        return json.loads(text.splitlines()[-1] if text else "")
    except json.JSONDecodeError:
        return {"success": False, "error": f"Plugin returned invalid JSON: {text[:500]}"}


class PluginManager:
    def __init__(self, plugins_dir: str | Path, tool_prefix: str = "plugin_", timeout: float = 60.0) -> None:
        self.plugins_dir = Path(plugins_dir)
        self.tool_prefix = tool_prefix
        self.timeout = timeout
        self.loaded_plugins: dict[str, PluginManifest] = {}

    def ensure_plugins_directory(self) -> None:
        """Create the plugins directory, seeded with an example plugin on first use."""
        if self.plugins_dir.exists():
            return
        example_dir = self.plugins_dir / "example-plugin"
        example_dir.mkdir(parents=True, exist_ok=True)
        (example_dir / MANIFEST_FILENAME).write_text(json.dumps(EXAMPLE_MANIFEST, indent=2), encoding="utf-8")
        (example_dir / "handler.py").write_text(EXAMPLE_HANDLER, encoding="utf-8")
        (example_dir / "README.md").write_text(EXAMPLE_README, encoding="utf-8")
        logger.info(f"Created plugins directory with example plugin at {self.plugins_dir}")

    def _read_manifest(self, plugin_dir: Path) -> PluginManifest | None:
        manifest_path = plugin_dir / MANIFEST_FILENAME
        if not manifest_path.is_file():
            return None
        with open(manifest_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict) or not isinstance(data.get("tools", []), list):
            raise ValueError("manifest must be an object with a 'tools' list")
        return PluginManifest(
            name=str(data.get("name") or plugin_dir.name),
            version=str(data.get("version", "0.0.0")),
            description=str(data.get("description", "")),
            author=str(data.get("author", "")),
            tools=data.get("tools", []),
            path=plugin_dir,
        )

    def _make_tool(self, manifest: PluginManifest, entry: dict[str, Any]) -> ToolDefinition | None:
        tool_name = entry.get("name")
        handler = entry.get("handler")
        if not isinstance(tool_name, str) or not tool_name or not isinstance(handler, str) or not handler:
            logger.error(f"Plugin {manifest.name}: tool entry needs string 'name' and 'handler': {entry}")
            return None

        parameters = entry.get("parameters") or {}
        if not isinstance(parameters, dict):
            logger.error(f"Plugin {manifest.name}: 'parameters' of tool {tool_name} must be an object")
            return None

        handler_path = (manifest.path / handler).resolve()
        if not handler_path.is_file():
            logger.error(f"Handler not found for tool {tool_name}: {handler_path}")
            return None

        timeout = self.timeout

        async def _execute(args: dict[str, Any]) -> ToolResult:
            try:
                return ToolResult.from_dict(await run_handler(handler_path, args, timeout))
            except Exception as e:
                logger.error(f"Plugin tool {tool_name} failed: {e}")
                return ToolResult(success=False, error=str(e) or "Plugin execution failed")

        return ToolDefinition(
            name=f"{self.tool_prefix}{tool_name}",
            description=f"{entry.get('description', '')} [Plugin: {manifest.name}]",
            parameters={str(k): str(v) for k, v in parameters.items()},
            execute=_execute,
        )

    def load_plugins(self) -> list[ToolDefinition]:
        """Read every manifest fresh and return the declared tools in discovery order."""
        self.loaded_plugins = {}
        tools: list[ToolDefinition] = []
        if not self.plugins_dir.is_dir():
            return tools

        for plugin_dir in sorted(p for p in self.plugins_dir.iterdir() if p.is_dir()):
            try:
                manifest = self._read_manifest(plugin_dir)
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load plugin from {plugin_dir.name}: {e}")
                continue
            if manifest is None:
                continue

            self.loaded_plugins[manifest.name] = manifest
            for entry in manifest.tools:
                if not isinstance(entry, dict):
                    continue
                try:
                    tool = self._make_tool(manifest, entry)
                except (OSError, ValueError, TypeError) as e:
                    logger.error(f"Skipping tool entry in plugin {manifest.name}: {e}")
                    continue
                if tool is not None:
                    tools.append(tool)

        logger.info(f"Loaded {len(tools)} plugin tools from {len(self.loaded_plugins)} plugins")
        return tools

    def get_loaded_plugins(self) -> list[PluginManifest]:
        return list(self.loaded_plugins.values())
