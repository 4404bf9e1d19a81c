from __future__ import annotations

from typing import Dict, List, Sequence

import pytest

from tesviksor.chat_handler import ChatTurnHandler
from tesviksor.config import BASE_DIR
from tesviksor.intake.composer import InstructionComposer
from tesviksor.intake.controller import IntakeController
from tesviksor.rag_service import GenerationError, GenerationResult
from tesviksor.session_store import IntakeSessionStore

PROMPTS_DIR = BASE_DIR / "prompts"


class FakeGenerator:
    """Records generation calls and returns a canned answer."""

    def __init__(self, text: str = "Hangi ilde yatırım yapacaksınız?", fail: bool = False) -> None:
        self.text = text
        self.fail = fail
        self.calls: List[Dict[str, object]] = []

    def generate(self, system_instruction: str, messages: Sequence[Dict[str, str]], corpus_id: str) -> GenerationResult:
        self.calls.append(
            {"instruction": system_instruction, "messages": list(messages), "corpus_id": corpus_id}
        )
        if self.fail:
            raise GenerationError("model unavailable")
        return GenerationResult(
            text=self.text,
            citations=[{"title": "KDV İstisnası", "source": "yatirim_tesvik_sistemi", "snippet": "KDV"}],
        )


@pytest.fixture
def store() -> IntakeSessionStore:
    return IntakeSessionStore()


@pytest.fixture
def file_store(tmp_path) -> IntakeSessionStore:
    return IntakeSessionStore(tmp_path / "data" / "intake_sessions.json")


@pytest.fixture
def controller(store) -> IntakeController:
    return IntakeController(store)


@pytest.fixture
def composer() -> InstructionComposer:
    return InstructionComposer(PROMPTS_DIR)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def handler(controller, composer, generator) -> ChatTurnHandler:
    return ChatTurnHandler(controller, composer, generator)


@pytest.fixture
def failing_generator() -> FakeGenerator:
    return FakeGenerator(fail=True)
