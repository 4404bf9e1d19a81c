from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

from .gemini_client import GeminiClient, to_contents
from .knowledge.corpus_store import CorpusStore, format_chunk

logger = logging.getLogger("tesviksor.rag")

INFO_SENTENCE = (
    " Daha fazla bilgi ve detaylı destek için Yatırım Destek Ofisi Uzmanımız ile iletişime geçebilirsiniz."
)
BADGE_TAG = "[badge: Destek Almak İçin|https://tesviksor.com/qna]"
BADGE_TERMS = ("başvuru", "teşvik", "destek", "yatırım")


class GenerationError(Exception):
    """Raised when the generation service cannot produce an answer."""


@dataclass
class GenerationResult:
    text: str
    citations: List[Dict[str, str]] = field(default_factory=list)


def should_append_badge(answer: str) -> bool:
    lowered = answer.lower()
    return any(term in lowered for term in BADGE_TERMS)


def append_info_and_badge(answer: str) -> str:
    return answer + INFO_SENTENCE + " " + BADGE_TAG


class RagService:
    """Retrieval-augmented answering over a document corpus with Gemini."""

    def __init__(
        self,
        gemini: GeminiClient,
        corpus_store: CorpusStore,
        topk: int = 6,
        support_badge: bool = True,
    ) -> None:
        self._gemini = gemini
        self._corpus_store = corpus_store
        self._topk = topk
        self._support_badge = support_badge

    def generate(
        self,
        system_instruction: str,
        messages: Sequence[Mapping[str, str]],
        corpus_id: str,
    ) -> GenerationResult:
        """Purpose: Answer the conversation using corpus chunks as grounding.
        Inputs/Outputs: Inputs are the composed system instruction, the full ordered
            message history and the corpus id; output is a GenerationResult.
        Side Effects / State: Calls the Gemini API over the network.
        Dependencies: Uses CorpusStore.retrieve_topk and GeminiClient.generate_content.
        Failure Modes: Any retrieval or model failure is raised as GenerationError;
            an empty model answer is also a GenerationError.
        If Removed: Bypass and handoff turns cannot be answered.
        Testing Notes: Use a fake GeminiClient and a tmp corpus directory.
        """
        query = _latest_user_text(messages)
        try:
            chunks = self._corpus_store.retrieve_topk(corpus_id, query, topk=self._topk)
            instruction = system_instruction
            if chunks:
                knowledge = "\n\n---\n\n".join(format_chunk(chunk) for chunk in chunks)
                instruction = f"{system_instruction}\n\nBilgi Bankası İçeriği:\n{knowledge}"
            answer = self._gemini.generate_content(to_contents(messages), system_instruction=instruction)
        except Exception as exc:
            raise GenerationError(str(exc)) from exc
        if not answer:
            raise GenerationError("empty answer from model")

        logger.info("corpus=%s chunks=%d answer_chars=%d", corpus_id, len(chunks), len(answer))
        if self._support_badge and should_append_badge(answer):
            answer = append_info_and_badge(answer)
        return GenerationResult(text=answer, citations=[_citation(chunk) for chunk in chunks])


def _latest_user_text(messages: Sequence[Mapping[str, str]]) -> str:
    for message in reversed(messages):
        if message.get("role") == "user" and message.get("content"):
            return message["content"]
    return ""


def _citation(chunk: Mapping[str, str]) -> Dict[str, str]:
    content = chunk.get("content", "")
    snippet = content[:200] + ("…" if len(content) > 200 else "")
    return {
        "title": chunk.get("title", ""),
        "source": chunk.get("document", ""),
        "snippet": snippet,
    }
