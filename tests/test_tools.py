"""Tests for tool helpers, plugins, configuration and the Ollama client."""

import asyncio
import json
import shutil
import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from llamacode.core import filesystem, git
from llamacode.core.code_analysis import analyze_code
from llamacode.core.config import DEFAULT_CONFIG, Config
from llamacode.core.ollama import OllamaClient, UpstreamError
from llamacode.core.plugins import EXAMPLE_HANDLER, PluginManager, run_handler
from llamacode.core.rag import DocumentIndex, index_documents, search_documents, split_into_chunks
from llamacode.core.shell import execute_command
from llamacode.core.web_search import web_search


def write_plugin(root, name, tools, handlers):
    plugin_dir = root / name
    plugin_dir.mkdir(parents=True)
    manifest = {"name": name, "version": "0.1.0", "description": f"{name} plugin", "tools": tools}
    (plugin_dir / "manifest.json").write_text(json.dumps(manifest))
    for filename, source in handlers.items():
        (plugin_dir / filename).write_text(source)
    return plugin_dir


# ═══════════════════════════════════════════════════════════════
# Filesystem Tools
# ═══════════════════════════════════════════════════════════════

class TestFilesystemTools:

    def test_write_creates_parents(self, tmp_path):
        result = filesystem.write_file(tmp_path, "a/b/c.txt", "hi")
        assert result["success"]
        assert (tmp_path / "a/b/c.txt").read_text() == "hi"

    def test_read_numbers_lines(self, tmp_path):
        (tmp_path / "f.txt").write_text("x\ny")
        assert filesystem.read_file(tmp_path, "f.txt") == {"success": True, "output": "1\tx\n2\ty"}

    def test_read_missing(self, tmp_path):
        result = filesystem.read_file(tmp_path, "nope.txt")
        assert result["success"] is False
        assert result["error"]

    def test_edit_first_occurrence_only(self, tmp_path):
        (tmp_path / "f.txt").write_text("a a a")
        assert filesystem.edit_file(tmp_path, "f.txt", "a", "b")["success"]
        assert (tmp_path / "f.txt").read_text() == "b a a"

    def test_edit_old_string_absent(self, tmp_path):
        (tmp_path / "f.txt").write_text("abc")
        result = filesystem.edit_file(tmp_path, "f.txt", "zzz", "y")
        assert result == {"success": False, "error": "Old string not found in file"}

    def test_list_files_prefixes(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "file.py").write_text("")
        assert filesystem.list_files(tmp_path)["output"] == "- file.py\nd sub"

    def test_glob_skips_vendor_dirs(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src/main.py").write_text("")
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules/dep.py").write_text("")
        assert filesystem.glob_files(tmp_path, "*.py")["output"] == "./src/main.py"

    def test_grep_regex_and_literal_fallback(self, tmp_path):
        (tmp_path / "a.txt").write_text("alpha\nbeta(\ngamma\n")
        assert filesystem.grep_files(tmp_path, "^g")["output"] == "a.txt:3:gamma"
        assert filesystem.grep_files(tmp_path, "beta(")["output"] == "a.txt:2:beta("


# ═══════════════════════════════════════════════════════════════
# Shell & Git
# ═══════════════════════════════════════════════════════════════

class TestShell:

    def test_success_output(self, tmp_path):
        result = asyncio.run(execute_command("echo hello", tmp_path))
        assert result["success"] is True
        assert result["output"].strip() == "hello"
        assert result["exit_code"] == 0

    def test_runs_in_working_directory(self, tmp_path):
        (tmp_path / "marker.txt").write_text("")
        result = asyncio.run(execute_command("ls", tmp_path))
        assert "marker.txt" in result["output"]

    def test_nonzero_exit(self, tmp_path):
        result = asyncio.run(execute_command("echo oops >&2; exit 3", tmp_path))
        assert result["success"] is False
        assert result["exit_code"] == 3
        assert result["error"] == "Command failed with exit code 3: oops"

    def test_timeout(self, tmp_path):
        result = asyncio.run(execute_command("sleep 5", tmp_path, timeout=0.2))
        assert result["success"] is False
        assert "timed out" in result["error"]

    def test_empty_command(self, tmp_path):
        assert asyncio.run(execute_command("  ", tmp_path))["success"] is False


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestGit:

    def _repo(self, tmp_path):
        asyncio.run(git.run_git(["init", "-q"], tmp_path))
        asyncio.run(git.run_git(["config", "user.email", "dev@example.org"], tmp_path))
        asyncio.run(git.run_git(["config", "user.name", "Dev"], tmp_path))
        (tmp_path / "a.txt").write_text("one\n")

    def test_commit_and_log(self, tmp_path):
        self._repo(tmp_path)
        commit = asyncio.run(git.git_commit(tmp_path, "first commit", add_all=True))
        assert commit["success"], commit
        log = asyncio.run(git.git_log(tmp_path, 5))
        assert "first commit" in log["output"]

    def test_status_and_diff(self, tmp_path):
        self._repo(tmp_path)
        asyncio.run(git.git_commit(tmp_path, "init", add_all=True))
        (tmp_path / "a.txt").write_text("two\n")
        assert "a.txt" in asyncio.run(git.git_status(tmp_path))["output"]
        assert "+two" in asyncio.run(git.git_diff(tmp_path))["output"]

    def test_commit_requires_message(self, tmp_path):
        assert asyncio.run(git.git_commit(tmp_path, ""))["success"] is False

    def test_not_a_repository(self, tmp_path):
        assert asyncio.run(git.git_status(tmp_path))["success"] is False


# ═══════════════════════════════════════════════════════════════
# Code Analysis, Web Search, Document Index
# ═══════════════════════════════════════════════════════════════

class TestCodeAnalysis:

    def test_python_summary(self, tmp_path):
        (tmp_path / "m.py").write_text(
            "import os\n\n# TODO: tidy\nclass A:\n    def run(self):\n        pass\n\n"
            "async def main(x, y):\n    pass\n"
        )
        output = analyze_code(tmp_path, "m.py")["output"]
        assert "Imports (1): os" in output
        assert "A (line 4): run" in output
        assert "async main(x, y) (line 8)" in output
        assert "TODO/FIXME markers: 1" in output

    def test_syntax_error_reported(self, tmp_path):
        (tmp_path / "bad.py").write_text("def (:\n")
        result = analyze_code(tmp_path, "bad.py")
        assert result["success"] is True
        assert "Syntax error at line 1" in result["output"]

    def test_other_language_line_stats(self, tmp_path):
        (tmp_path / "x.js").write_text("// hi\nconst a = 1;\n\n")
        assert "Lines: 3 (code 1, comment 1, blank 1)" in analyze_code(tmp_path, "x.js")["output"]


class TestWebSearch:

    def test_formats_results(self):
        ddgs = MagicMock()
        ddgs.__enter__.return_value.text.return_value = [
            {"title": "Python", "href": "https://python.org", "body": "Official site"},
        ]
        with patch("llamacode.core.web_search.DDGS", return_value=ddgs):
            result = asyncio.run(web_search("python", max_results=50))

        assert result["output"] == "1. Python\n   URL: https://python.org\n   Official site"
        ddgs.__enter__.return_value.text.assert_called_once_with("python", max_results=10)

    def test_empty_query(self):
        assert asyncio.run(web_search("   "))["success"] is False

    def test_search_failure(self):
        with patch("llamacode.core.web_search.DDGS", side_effect=RuntimeError("rate limited")):
            result = asyncio.run(web_search("python"))
        assert result == {"success": False, "error": "rate limited"}

    def test_duplicate_urls_and_region(self):
        ddgs = MagicMock()
        ddgs.__enter__.return_value.text.return_value = [
            {"title": "A", "href": "https://a.example", "body": "first"},
            {"title": "A again", "href": "https://a.example", "body": "copy"},
            {"title": "", "href": "https://b.example", "body": ""},
        ]
        with patch("llamacode.core.web_search.DDGS", return_value=ddgs):
            result = asyncio.run(web_search("a", region="de-de"))

        assert result["output"] == "1. A\n   URL: https://a.example\n   first\n\n2. No title\n   URL: https://b.example"
        ddgs.__enter__.return_value.text.assert_called_once_with("a", max_results=5, region="de-de")

    def test_no_results(self):
        ddgs = MagicMock()
        ddgs.__enter__.return_value.text.return_value = []
        with patch("llamacode.core.web_search.DDGS", return_value=ddgs):
            result = asyncio.run(web_search("zzz"))
        assert result == {"success": True, "output": "No results found for: zzz"}


class TestDocumentIndex:

    def test_chunks_split_on_lines(self):
        text = "\n".join("x" * 100 for _ in range(50))
        chunks = split_into_chunks(text)
        assert len(chunks) > 1
        assert all(len(c) <= 2100 for c in chunks)

    def test_index_and_search_persisted(self, tmp_path):
        docs = tmp_path / "docs"
        docs.mkdir()
        (docs / "install.md").write_text("Install with pip install llamacode.")
        (docs / "usage.md").write_text("Run the chat command.")
        (docs / "skip.py").write_text("install install install")

        index = DocumentIndex(tmp_path / "index.json")
        result = index_documents(index, tmp_path, "docs")
        assert result["success"]
        assert index.document_count() == 2

        reloaded = DocumentIndex(tmp_path / "index.json")
        hits = reloaded.search("install")
        assert hits[0].document.metadata["title"] == "install.md"
        assert hits[0].score == 2 + 10

    def test_reindex_replaces_chunks(self, tmp_path):
        doc = tmp_path / "a.md"
        doc.write_text("first version")
        index = DocumentIndex(tmp_path / "index.json")
        index.index_file(doc)
        doc.write_text("second version")
        index.index_file(doc)
        assert index.document_count() == 1
        assert "second" in index.documents[0].content

    def test_search_tool_output(self, tmp_path):
        index = DocumentIndex(tmp_path / "index.json")
        assert "No indexed documents" in search_documents(index, "anything")["output"]
        assert search_documents(index, "")["success"] is False


# ═══════════════════════════════════════════════════════════════
# Plugins
# ═══════════════════════════════════════════════════════════════

class TestPlugins:

    def test_example_plugin_created_and_runs(self, tmp_path):
        manager = PluginManager(tmp_path / "plugins")
        manager.ensure_plugins_directory()
        tools = manager.load_plugins()

        assert [t.name for t in tools] == ["plugin_hello_world"]
        assert tools[0].description.endswith("[Plugin: example-plugin]")
        result = asyncio.run(tools[0].execute({"name": "Ada"}))
        assert result.success is True
        assert result.output == "Hello, Ada! This is from a custom plugin."

    def test_existing_directory_not_seeded(self, tmp_path):
        (tmp_path / "plugins").mkdir()
        manager = PluginManager(tmp_path / "plugins")
        manager.ensure_plugins_directory()
        assert manager.load_plugins() == []

    def test_custom_prefix(self, tmp_path):
        write_plugin(
            tmp_path, "p", [{"name": "t", "description": "d", "parameters": {}, "handler": "h.py"}],
            {"h.py": EXAMPLE_HANDLER},
        )
        tools = PluginManager(tmp_path, tool_prefix="ext_").load_plugins()
        assert [t.name for t in tools] == ["ext_t"]

    def test_broken_manifest_skipped(self, tmp_path):
        (tmp_path / "broken").mkdir()
        (tmp_path / "broken/manifest.json").write_text("{oops")
        write_plugin(
            tmp_path, "good", [{"name": "ok", "description": "", "parameters": {}, "handler": "h.py"}],
            {"h.py": EXAMPLE_HANDLER},
        )
        manager = PluginManager(tmp_path)
        assert [t.name for t in manager.load_plugins()] == ["plugin_ok"]
        assert [p.name for p in manager.get_loaded_plugins()] == ["good"]

    def test_missing_handler_skipped(self, tmp_path):
        write_plugin(tmp_path, "p", [{"name": "t", "description": "", "parameters": {}, "handler": "gone.py"}], {})
        assert PluginManager(tmp_path).load_plugins() == []

    def test_malformed_tool_entries_skipped(self, tmp_path):
        write_plugin(
            tmp_path, "bad",
            [
                {"name": "listy", "description": "", "parameters": ["x"], "handler": "h.py"},
                {"name": "numeric", "description": "", "parameters": {}, "handler": 5},
                {"name": 7, "description": "", "parameters": {}, "handler": "h.py"},
                "not an object",
            ],
            {"h.py": EXAMPLE_HANDLER},
        )
        write_plugin(
            tmp_path, "good", [{"name": "ok", "description": "", "parameters": {}, "handler": "h.py"}],
            {"h.py": EXAMPLE_HANDLER},
        )
        manager = PluginManager(tmp_path)
        assert [t.name for t in manager.load_plugins()] == ["plugin_ok"]
        assert [p.name for p in manager.get_loaded_plugins()] == ["bad", "good"]

    def test_handler_failure_is_a_result(self, tmp_path):
        plugin = write_plugin(tmp_path, "p", [], {"h.py": "import sys\nsys.exit('bad input')\n"})
        result = asyncio.run(run_handler(plugin / "h.py", {}, timeout=10))
        assert result["success"] is False
        assert "bad input" in result["error"]

    def test_handler_invalid_json(self, tmp_path):
        plugin = write_plugin(tmp_path, "p", [], {"h.py": "print('not json')\n"})
        result = asyncio.run(run_handler(plugin / "h.py", {}, timeout=10))
        assert result["success"] is False
        assert "invalid JSON" in result["error"]

    def test_handler_timeout(self, tmp_path):
        plugin = write_plugin(tmp_path, "p", [], {"h.py": "import time\ntime.sleep(10)\n"})
        result = asyncio.run(run_handler(plugin / "h.py", {}, timeout=0.5))
        assert result["success"] is False
        assert "timed out" in result["error"]

    def test_manifests_reread_each_load(self, tmp_path):
        manager = PluginManager(tmp_path)
        assert manager.load_plugins() == []
        write_plugin(
            tmp_path, "late", [{"name": "new", "description": "", "parameters": {}, "handler": "h.py"}],
            {"h.py": EXAMPLE_HANDLER},
        )
        assert [t.name for t in manager.load_plugins()] == ["plugin_new"]


# ═══════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════

class TestConfig:

    def test_missing_explicit_file_uses_defaults(self, tmp_path):
        cfg = Config.load(tmp_path / "absent.json")
        assert cfg.to_dict() == DEFAULT_CONFIG
        assert not (tmp_path / "absent.json").exists()

    def test_file_merged_over_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"ollama_model": "llama3", "token_limit": 8000, "unknown": 1}))
        cfg = Config.load(path)
        assert cfg.ollama_model == "llama3"
        assert cfg.token_limit == 8000
        assert cfg.streaming is True

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LLAMACODE_STREAMING", "false")
        monkeypatch.setenv("LLAMACODE_TOKEN_LIMIT", "123")
        monkeypatch.setenv("LLAMACODE_OLLAMA_TEMPERATURE", "0.1")
        monkeypatch.setenv("LLAMACODE_OLLAMA_URL", "http://gpu:11434")
        cfg = Config.load(tmp_path / "absent.json")
        assert cfg.streaming is False
        assert cfg.token_limit == 123
        assert cfg.ollama_temperature == 0.1
        assert cfg.ollama_url == "http://gpu:11434"

    def test_invalid_file_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{broken")
        assert Config.load(path).ollama_model == DEFAULT_CONFIG["ollama_model"]

    def test_update_and_save(self, tmp_path):
        path = tmp_path / "config.json"
        cfg = Config.load(path).update(ollama_model="codellama")
        cfg.save(path)
        assert Config.load(path).ollama_model == "codellama"

    def test_resolved_paths(self, tmp_path):
        cfg = Config.load(tmp_path / "absent.json").update(working_directory=str(tmp_path))
        assert cfg.resolved_working_directory() == tmp_path.resolve()
        assert cfg.resolved_sessions_dir().name == "conversations"
        assert cfg.update(plugins_dir=str(tmp_path / "p")).resolved_plugins_dir() == tmp_path / "p"


# ═══════════════════════════════════════════════════════════════
# Ollama Client
# ═══════════════════════════════════════════════════════════════

def client_with(handler):
    return OllamaClient(base_url="http://ollama.test", model="m", transport=httpx.MockTransport(handler))


class TestOllamaClient:

    def test_complete(self):
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={
                "model": "m",
                "created_at": "2024-01-01T00:00:00Z",
                "message": {"role": "assistant", "content": "Hi!"},
                "done": True,
            })

        result = asyncio.run(client_with(handler).complete([{"role": "user", "content": "hello"}]))
        assert result == "Hi!"
        assert seen["stream"] is False
        assert seen["options"]["temperature"] == 0.7

    def test_complete_error_raises_upstream(self):
        def handler(request):
            return httpx.Response(500, json={"error": "model not found"})

        with pytest.raises(UpstreamError, match="model not found"):
            asyncio.run(client_with(handler).complete([]))

    def test_stream_skips_malformed_lines(self):
        body = "\n".join([
            json.dumps({"message": {"content": "Hel"}, "done": False}),
            "{garbage",
            "",
            json.dumps({"message": {"content": ""}, "done": False}),
            json.dumps({"message": {"content": "lo"}, "done": True}),
        ])

        def handler(request):
            assert json.loads(request.content)["stream"] is True
            return httpx.Response(200, content=body.encode())

        async def collect():
            return [c async for c in client_with(handler).complete_stream([])]

        assert asyncio.run(collect()) == ["Hel", "lo"]

    def test_stream_error_line_raises(self):
        body = json.dumps({"message": {"content": "a"}}) + "\n" + json.dumps({"error": "out of memory"})

        def handler(request):
            return httpx.Response(200, content=body.encode())

        async def collect():
            return [c async for c in client_with(handler).complete_stream([])]

        with pytest.raises(UpstreamError, match="out of memory"):
            asyncio.run(collect())

    def test_stream_http_error_status(self):
        def handler(request):
            return httpx.Response(404, text="not found")

        async def collect():
            return [c async for c in client_with(handler).complete_stream([])]

        with pytest.raises(UpstreamError, match="404"):
            asyncio.run(collect())

    def test_list_models(self):
        def handler(request):
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"model": "llama3:latest"}, {"model": "qwen2.5-coder:14b"}]})

        assert asyncio.run(client_with(handler).list_models()) == ["llama3:latest", "qwen2.5-coder:14b"]

    def test_health_check(self):
        assert asyncio.run(client_with(lambda r: httpx.Response(200, text="Ollama is running")).health_check()) is True
        assert asyncio.run(client_with(lambda r: httpx.Response(503)).health_check()) is False

        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        assert asyncio.run(client_with(refuse).health_check()) is False

    def test_close_releases_both_clients(self):
        client = client_with(lambda request: httpx.Response(200, json={}))
        client._client = MagicMock(close=AsyncMock())
        asyncio.run(client.close())
        assert client._http.is_closed
        client._client.close.assert_awaited_once()

    def test_connection_failure_raises_upstream(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        async def collect():
            return [c async for c in client_with(refuse).complete_stream([])]

        with pytest.raises(UpstreamError):
            asyncio.run(collect())


# ═══════════════════════════════════════════════════════════════
# Logging & CLI
# ═══════════════════════════════════════════════════════════════

class TestLoggingAndCli:

    def test_setup_logging_writes_file(self, tmp_path):
        import logging
        from llamacode.logger import setup_logging

        log_file = tmp_path / "log" / "llamacode.log"
        setup_logging(log_file)
        logging.getLogger("llamacode.test").info("hello log")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello log" in log_file.read_text()
        logging.getLogger().handlers.clear()

    def test_set_model_persists(self, tmp_path, monkeypatch):
        from llamacode.__main__ import main

        monkeypatch.setenv("HOME", str(tmp_path))
        path = tmp_path / "config.json"
        main(["--config", str(path), "set-model", "llama3"])
        assert json.loads(path.read_text())["ollama_model"] == "llama3"
        import logging
        logging.getLogger().handlers.clear()

    def test_version_flag(self, capsys):
        from llamacode.__main__ import main

        with pytest.raises(SystemExit):
            main(["--version"])
        assert "llamacode" in capsys.readouterr().out
