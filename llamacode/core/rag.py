"""Naive term-frequency document index persisted as JSON.

Documents are split into ~2000 character chunks on line boundaries. A query
scores each chunk by how often its terms (longer than two characters) occur,
plus a flat boost when the whole query appears in the source file name.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger("llamacode.rag")

CHUNK_SIZE = 2000
TITLE_BOOST = 10
DEFAULT_EXTENSIONS = (".md", ".txt", ".rst")
SKIP_DIRS = frozenset({"node_modules", ".git", "dist", "build", "__pycache__", ".venv"})


@dataclass
class Document:
    id: str
    content: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class SearchResult:
    document: Document
    score: int


def split_into_chunks(text: str, chunk_size: int = CHUNK_SIZE) -> list[str]:
    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        if len(current) + len(line) > chunk_size and current:
            chunks.append(current.strip())
            current = line + "\n"
        else:
            current += line + "\n"
    if current.strip():
        chunks.append(current.strip())
    return chunks


class DocumentIndex:
    def __init__(self, index_path: str | Path) -> None:
        self.index_path = Path(index_path)
        self.documents: list[Document] = []
        self._load_index()

    def _load_index(self) -> None:
        if not self.index_path.exists():
            return
        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self.documents = [
                Document(id=d["id"], content=d["content"], metadata=d.get("metadata", {}))
                for d in data
            ]
        except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
            logger.error(f"Failed to load document index {self.index_path}: {e}")
            self.documents = []

    def _save_index(self) -> None:
        self.index_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.index_path, "w", encoding="utf-8") as f:
            json.dump([asdict(d) for d in self.documents], f, indent=2)

    def index_file(self, file_path: str | Path, doc_type: str = "documentation") -> int:
        """Index (or re-index) one file; returns the number of chunks stored."""
        path = Path(file_path).resolve()
        content = path.read_text(encoding="utf-8", errors="replace")
        source = str(path)

        # Drop every chunk of a previous version of this file
        self.documents = [d for d in self.documents if d.metadata.get("source") != source]
        chunks = split_into_chunks(content)
        for i, chunk in enumerate(chunks):
            self.documents.append(
                Document(
                    id=f"{source}:{i}",
                    content=chunk,
                    metadata={"source": source, "title": path.name, "type": doc_type},
                )
            )
        self._save_index()
        logger.info(f"Indexed {source}: {len(chunks)} chunks")
        return len(chunks)

    def index_directory(
        self, dir_path: str | Path, extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    ) -> int:
        """Index all matching files below ``dir_path``; returns the file count."""
        count = 0
        for dirpath, dirnames, filenames in os.walk(dir_path):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
            for filename in sorted(filenames):
                if os.path.splitext(filename)[1] in extensions:
                    self.index_file(Path(dirpath) / filename)
                    count += 1
        return count

    def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        query_lower = query.lower()
        terms = [t for t in query_lower.split() if len(t) > 2]

        results: list[SearchResult] = []
        for doc in self.documents:
            content_lower = doc.content.lower()
            score = sum(len(re.findall(re.escape(term), content_lower)) for term in terms)
            title = doc.metadata.get("title", "")
            if title and query_lower and query_lower in title.lower():
                score += TITLE_BOOST
            if score > 0:
                results.append(SearchResult(document=doc, score=score))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def clear(self) -> None:
        self.documents = []
        self._save_index()

    def document_count(self) -> int:
        return len(self.documents)

    def indexed_sources(self) -> list[str]:
        return sorted({d.metadata.get("source", "") for d in self.documents})


# ── Tool entry points ──

def index_documents(index: DocumentIndex, working_directory: str | Path, path: str, extensions: Any = None) -> dict[str, Any]:
    try:
        target = (Path(working_directory) / os.path.expanduser(path)).resolve()
        if target.is_dir():
            exts = tuple(extensions) if extensions else DEFAULT_EXTENSIONS
            count = index.index_directory(target, exts)
            return {"success": True, "output": f"Indexed {count} files from {path} ({index.document_count()} chunks total)"}
        chunks = index.index_file(target)
        return {"success": True, "output": f"Indexed {path} into {chunks} chunks"}
    except Exception as e:
        return {"success": False, "error": f"Failed to index {path}: {e}"}


def search_documents(index: DocumentIndex, query: str, limit: int = 5) -> dict[str, Any]:
    if not isinstance(query, str) or not query.strip():
        return {"success": False, "error": "'query' must be a non-empty string."}
    try:
        limit = max(1, int(limit))
    except (TypeError, ValueError):
        limit = 5

    results = index.search(query, limit)
    if not results:
        return {"success": True, "output": f"No indexed documents match: {query}"}

    blocks = []
    for i, r in enumerate(results, 1):
        source = r.document.metadata.get("source", r.document.id)
        blocks.append(f"{i}. {source} (score {r.score})\n{r.document.content[:800]}")
    return {"success": True, "output": "\n\n".join(blocks)}
