"""Markdown document corpora with heading-based chunking and keyword retrieval."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Tuple

from ..utils import normalize_text

logger = logging.getLogger("tesviksor.rag")

CORPUS_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")


class CorpusStore:
    """Load ``<knowledge_dir>/<corpus_id>/*.md`` and retrieve relevant chunks."""

    def __init__(self, knowledge_dir: Path) -> None:
        self._knowledge_dir = knowledge_dir
        self._cache: Dict[str, Tuple[Tuple[Tuple[str, float], ...], List[Dict[str, str]]]] = {}

    def corpus_dir(self, corpus_id: str) -> Path:
        if not CORPUS_ID_RE.match(corpus_id or ""):
            raise ValueError(f"invalid corpus id: {corpus_id!r}")
        return self._knowledge_dir / corpus_id

    def load_chunks(self, corpus_id: str) -> List[Dict[str, str]]:
        """Purpose: Build or reuse the chunk list for one corpus.
        Inputs/Outputs: Input is corpus_id; output is a list of chunk dicts.
        Side Effects / State: Caches chunks keyed by document mtimes.
        Dependencies: Uses chunk_markdown over every .md file in the corpus dir.
        Failure Modes: Unknown corpora return an empty list; invalid ids raise ValueError.
        If Removed: retrieve_topk must re-parse markdown on every turn.
        Testing Notes: Touch a document and confirm chunks are rebuilt.
        """
        directory = self.corpus_dir(corpus_id)
        if not directory.is_dir():
            logger.warning("corpus=%s missing directory %s", corpus_id, directory)
            return []

        documents = sorted(directory.glob("*.md"))
        signature = tuple((path.name, path.stat().st_mtime) for path in documents)
        cached = self._cache.get(corpus_id)
        if cached and cached[0] == signature:
            return cached[1]

        chunks: List[Dict[str, str]] = []
        for path in documents:
            chunks.extend(self.chunk_markdown(path.read_text(encoding="utf-8"), document=path.stem))
        self._cache[corpus_id] = (signature, chunks)
        logger.info("corpus=%s documents=%d chunks=%d", corpus_id, len(documents), len(chunks))
        return chunks

    def retrieve_topk(self, corpus_id: str, query: str, topk: int = 6) -> List[Dict[str, str]]:
        """Purpose: Retrieve the top-K chunks of a corpus for a query.
        Inputs/Outputs: Inputs are corpus_id, query and topk; output is chunk dicts.
        Side Effects / State: Loads or rebuilds the corpus chunk cache as needed.
        Dependencies: Uses normalize_text and load_chunks.
        Failure Modes: Empty query, empty corpus or topk <= 0 returns an empty list.
        If Removed: Generated answers are not grounded in the incentive documents.
        Testing Notes: Query "teşvik bölgesi" against a sample corpus.
        """
        if not query or topk <= 0:
            return []
        chunks = self.load_chunks(corpus_id)
        query_tokens = _tokenize(query)
        if not chunks or not query_tokens:
            return []

        scored = []
        for chunk in chunks:
            score = _score_chunk(query_tokens, chunk["content"], chunk["title"], chunk["section"])
            if score > 0:
                scored.append((score, chunk))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [chunk for _, chunk in scored[:topk]]

    def chunk_markdown(self, md_text: str, document: str) -> List[Dict[str, str]]:
        """Split markdown into chunks at ``##`` and ``###`` headings."""
        if not md_text:
            return []

        chunks: List[Dict[str, str]] = []
        section = ""
        title = ""
        buffer: List[str] = []

        def flush() -> None:
            nonlocal buffer
            content = "\n".join(buffer).strip()
            buffer = []
            if not content:
                return
            for part in _split_long_content(content):
                chunks.append(
                    {
                        "chunk_id": f"{document}-{len(chunks)}",
                        "document": document,
                        "section": section,
                        "title": title or section or document,
                        "content": part,
                    }
                )

        for line in md_text.splitlines():
            if line.startswith("# "):
                # Document title; the file name already identifies the document.
                continue
            if line.startswith("## "):
                flush()
                section = line[3:].strip()
                title = section
                continue
            if line.startswith("### "):
                flush()
                title = line[4:].strip()
                continue
            buffer.append(line)

        flush()
        return chunks


def format_chunk(chunk: Dict[str, str]) -> str:
    header_parts = [part for part in (chunk.get("section", ""), chunk.get("title", "")) if part]
    header = " / ".join(dict.fromkeys(header_parts))
    prefix = f"[{chunk.get('document', '')}] {header}".strip()
    return f"{prefix}\n{chunk.get('content', '')}".strip()


def _tokenize(text: str) -> List[str]:
    return [token for token in normalize_text(text).split() if len(token) > 1]


def _score_chunk(tokens: List[str], content: str, title: str, section: str) -> float:
    content_tokens = _tokenize(content)
    if not content_tokens:
        return 0.0
    content_counts: Dict[str, int] = {}
    for token in content_tokens:
        content_counts[token] = content_counts.get(token, 0) + 1

    title_tokens = set(_tokenize(title))
    section_tokens = set(_tokenize(section))

    score = 0.0
    for token in tokens:
        score += content_counts.get(token, 0)
        if token in title_tokens:
            score += 2.0
        if token in section_tokens:
            score += 1.0
    return score


def _split_long_content(content: str, max_words: int = 400) -> List[str]:
    words = content.split()
    if len(words) <= max_words:
        return [content]
    return [" ".join(words[idx : idx + max_words]) for idx in range(0, len(words), max_words)]
