"""Built-in tool definitions and the name-keyed tool registry."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterator

from .. import filesystem, git
from ..code_analysis import analyze_code
from ..rag import DocumentIndex, index_documents, search_documents
from ..shell import execute_command
from ..web_search import DEFAULT_REGION, web_search
from .models import ToolDefinition, ToolResult

if TYPE_CHECKING:
    from ..browser import BrowserSession
    from ..config import Config
    from ..plugins import PluginManager

logger = logging.getLogger("llamacode.agent.tools")


class ToolRegistry:
    """Tools keyed by name; iteration follows registration order."""

    def __init__(self, tools: list[ToolDefinition] | None = None) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            logger.warning(f"Tool '{tool.name}' registered twice; the later definition replaces the earlier one")
        self._tools[tool.name] = tool

    def find(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools


def _wrap(fn: Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]) -> Callable[[dict[str, Any]], Awaitable[ToolResult]]:
    """Adapt a dict-returning helper so it always yields a ToolResult and never raises."""

    async def _execute(args: dict[str, Any]) -> ToolResult:
        try:
            return ToolResult.from_dict(await fn(args))
        except KeyError as e:
            return ToolResult(success=False, error=f"Missing required parameter: {e.args[0]}")
        except Exception as e:
            logger.error(f"Tool exec error: {e}")
            return ToolResult(success=False, error=str(e) or type(e).__name__)

    return _execute


def _in_thread(fn: Callable[..., dict[str, Any]], *args: Any) -> Awaitable[dict[str, Any]]:
    return asyncio.to_thread(fn, *args)


def _bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def get_builtin_tools(
    working_directory: str | Path,
    command_timeout: float = 120.0,
    document_index: DocumentIndex | None = None,
    browser: BrowserSession | None = None,
) -> list[ToolDefinition]:
    cwd = str(working_directory)

    tools = [
        ToolDefinition(
            name="read_file",
            description="Read the contents of a file (returned with line numbers)",
            parameters={"file_path": "string - path to the file to read"},
            execute=_wrap(lambda a: _in_thread(filesystem.read_file, cwd, a["file_path"])),
        ),
        ToolDefinition(
            name="write_file",
            description="Write content to a file, creating parent directories as needed",
            parameters={
                "file_path": "string - path to the file",
                "content": "string - content to write",
            },
            execute=_wrap(lambda a: _in_thread(filesystem.write_file, cwd, a["file_path"], a["content"])),
        ),
        ToolDefinition(
            name="edit_file",
            description="Edit a file by replacing the first occurrence of old_string with new_string",
            parameters={
                "file_path": "string - path to the file",
                "old_string": "string - text to replace",
                "new_string": "string - replacement text",
            },
            execute=_wrap(lambda a: _in_thread(
                filesystem.edit_file, cwd, a["file_path"], a["old_string"], a["new_string"]
            )),
        ),
        ToolDefinition(
            name="list_files",
            description="List files in a directory",
            parameters={"directory": "string - directory path (optional, defaults to current)"},
            execute=_wrap(lambda a: _in_thread(filesystem.list_files, cwd, a.get("directory") or ".")),
        ),
        ToolDefinition(
            name="glob",
            description="Find files matching a glob pattern",
            parameters={"pattern": "string - glob pattern to match, e.g. *.py or src/**/*.ts"},
            execute=_wrap(lambda a: _in_thread(filesystem.glob_files, cwd, a["pattern"])),
        ),
        ToolDefinition(
            name="grep",
            description="Search for a regular expression in files",
            parameters={
                "pattern": "string - text or regex pattern to search",
                "directory": "string - directory to search (optional)",
            },
            execute=_wrap(lambda a: _in_thread(filesystem.grep_files, cwd, a["pattern"], a.get("directory") or ".")),
        ),
        ToolDefinition(
            name="execute_command",
            description="Execute a shell command in the working directory",
            parameters={
                "command": "string - the command to execute",
                "timeout": "number - timeout in seconds (optional)",
            },
            execute=_wrap(lambda a: execute_command(
                a["command"], cwd, float(a.get("timeout") or command_timeout)
            )),
        ),
        ToolDefinition(
            name="git_status",
            description="Show the git status of the working directory",
            parameters={},
            execute=_wrap(lambda a: git.git_status(cwd)),
        ),
        ToolDefinition(
            name="git_diff",
            description="Show uncommitted changes",
            parameters={
                "file_path": "string - limit the diff to one path (optional)",
                "staged": "boolean - show staged changes instead (optional)",
            },
            execute=_wrap(lambda a: git.git_diff(cwd, a.get("file_path") or "", _bool(a.get("staged", False)))),
        ),
        ToolDefinition(
            name="git_log",
            description="Show recent commits",
            parameters={"limit": "number - how many commits to show (optional, default 10)"},
            execute=_wrap(lambda a: git.git_log(cwd, a.get("limit", 10))),
        ),
        ToolDefinition(
            name="git_commit",
            description="Commit staged changes",
            parameters={
                "message": "string - commit message",
                "add_all": "boolean - stage all changes before committing (optional)",
            },
            execute=_wrap(lambda a: git.git_commit(cwd, a["message"], _bool(a.get("add_all", False)))),
        ),
        ToolDefinition(
            name="analyze_code",
            description="Summarize a source file: line statistics, and imports/classes/functions for Python",
            parameters={"file_path": "string - path to the source file"},
            execute=_wrap(lambda a: _in_thread(analyze_code, cwd, a["file_path"])),
        ),
        ToolDefinition(
            name="web_search",
            description="Search the web with DuckDuckGo",
            parameters={
                "query": "string - search query",
                "max_results": "number - maximum results (optional, default 5, max 10)",
                "region": "string - DuckDuckGo region code such as us-en (optional)",
            },
            execute=_wrap(
                lambda a: web_search(a["query"], a.get("max_results", 5), a.get("region") or DEFAULT_REGION)
            ),
        ),
    ]

    if document_index is not None:
        tools += [
            ToolDefinition(
                name="index_documents",
                description="Add a file or directory of documentation (.md, .txt, .rst) to the local document index",
                parameters={
                    "path": "string - file or directory to index",
                    "extensions": "array - file extensions to include for directories (optional)",
                },
                execute=_wrap(lambda a: _in_thread(
                    index_documents, document_index, cwd, a["path"], a.get("extensions")
                )),
            ),
            ToolDefinition(
                name="search_documents",
                description="Search the local document index",
                parameters={
                    "query": "string - search terms",
                    "limit": "number - maximum results (optional, default 5)",
                },
                execute=_wrap(lambda a: _in_thread(
                    search_documents, document_index, a["query"], a.get("limit", 5)
                )),
            ),
        ]

    if browser is not None:
        tools.append(
            ToolDefinition(
                name="browse_url",
                description="Open a web page in a headless browser and return its visible text",
                parameters={
                    "url": "string - page to open",
                    "selector": "string - CSS selector to extract (optional, default body)",
                    "include_links": "boolean - also list links on the page (optional)",
                },
                execute=_wrap(lambda a: browser.browse(
                    a["url"], a.get("selector") or "body", _bool(a.get("include_links", False))
                )),
            )
        )

    return tools


def build_registry(
    config: Config,
    plugin_manager: PluginManager | None = None,
    document_index: DocumentIndex | None = None,
    browser: BrowserSession | None = None,
) -> ToolRegistry:
    """Built-ins first in fixed order, then plugin tools in discovery order."""
    if document_index is None:
        document_index = DocumentIndex(config.resolved_rag_index_path())
    registry = ToolRegistry(
        get_builtin_tools(
            config.resolved_working_directory(),
            command_timeout=config.command_timeout,
            document_index=document_index,
            browser=browser,
        )
    )
    if plugin_manager is not None:
        for tool in plugin_manager.load_plugins():
            registry.register(tool)
    logger.info(f"Tool registry built with {len(registry)} tools")
    return registry
