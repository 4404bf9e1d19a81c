"""Chat turn orchestration for the incentive assistant.

Step contracts:
    decide:
        Runs the intake controller; sets decision. Reads the session store only.
    compose:
        Generated turns only; sets the system instruction from the decision.
    generate:
        Generated turns only; calls the generation service with the instruction,
        the full message history and the corpus id. Failures set an apologetic
        answer and mark the turn as failed.
    deterministic_reply:
        Deterministic turns only; copies the controller's fixed reply.
    commit:
        Applies the decision's session writes, after the reply exists. Skipped
        when generation failed so a failed turn leaves no trace.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

from .intake.composer import InstructionComposer
from .intake.controller import IntakeController
from .intake.schema import TurnDecision
from .rag_service import GenerationResult
from .turn_runtime import TurnRunner, TurnStep

logger = logging.getLogger("tesviksor.chat")

GENERATION_FAILED_REPLY = (
    "Üzgünüm, şu anda yanıt oluşturulamadı. Lütfen biraz sonra tekrar deneyin "
    "veya Yatırım Destek Ofisi Uzmanımız ile iletişime geçin."
)


class GenerationService(Protocol):
    def generate(self, system_instruction: str, messages: Sequence[Dict[str, str]], corpus_id: str) -> GenerationResult:
        ...


@dataclass
class TurnContext:
    """Mutable context passed through each turn step."""
    session_id: Optional[str]
    messages: List[Dict[str, str]]
    corpus_id: str
    user_message: str
    decision: Optional[TurnDecision] = None
    instruction: str = ""
    answer_text: str = ""
    citations: List[Dict[str, str]] = field(default_factory=list)
    generation_failed: bool = False
    steps_run: List[str] = field(default_factory=list)

    @property
    def is_deterministic(self) -> bool:
        return self.decision is not None and self.decision.is_deterministic


class ChatTurnHandler:
    def __init__(
        self,
        controller: IntakeController,
        composer: InstructionComposer,
        generator: GenerationService,
    ) -> None:
        """Purpose: Wire the controller, composer and generation service into a pipeline.
        Inputs/Outputs: Inputs are the three collaborators; no return value.
        Side Effects / State: Builds a TurnRunner with ordered steps.
        Dependencies: Uses TurnRunner/TurnStep and the step methods on this class.
        Failure Modes: None at init.
        If Removed: The chat endpoint has nothing to run.
        Testing Notes: Construct with a fake generator and an in-memory store.
        """
        self._controller = controller
        self._composer = composer
        self._generator = generator
        self._runner: TurnRunner[TurnContext] = TurnRunner(
            steps=[
                TurnStep("decide", self._step_decide),
                TurnStep("compose", self._step_compose, skip_if=lambda ctx: ctx.is_deterministic),
                TurnStep("generate", self._step_generate, skip_if=lambda ctx: ctx.is_deterministic),
                TurnStep(
                    "deterministic_reply",
                    self._step_deterministic_reply,
                    skip_if=lambda ctx: not ctx.is_deterministic,
                ),
                TurnStep("commit", self._step_commit, skip_if=lambda ctx: ctx.generation_failed),
            ]
        )

    def handle(self, session_id: Optional[str], messages: List[Dict[str, str]], corpus_id: str) -> TurnContext:
        """Purpose: Run one chat turn and return the populated context.
        Inputs/Outputs: Inputs are the session id, the full ordered message history and
            the corpus id; output is a TurnContext with answer_text and citations.
        Side Effects / State: May call the generation service and write session state.
        Dependencies: Uses TurnRunner.run.
        Failure Modes: Raises ValueError when the history has no user message.
        If Removed: Chat requests cannot be answered.
        Testing Notes: Drive a four-turn intake conversation through this method.
        """
        user_message = latest_user_message(messages)
        if user_message is None:
            raise ValueError("messages must contain at least one user message")
        context = TurnContext(
            session_id=session_id,
            messages=messages,
            corpus_id=corpus_id,
            user_message=user_message,
        )
        context.steps_run = self._runner.run(context)
        logger.info("session=%s steps=%s", session_id, ",".join(context.steps_run))
        return context

    def _step_decide(self, context: TurnContext) -> None:
        context.decision = self._controller.decide(context.session_id, context.user_message)

    def _step_compose(self, context: TurnContext) -> None:
        context.instruction = self._composer.compose(context.decision)

    def _step_generate(self, context: TurnContext) -> None:
        try:
            result = self._generator.generate(context.instruction, context.messages, context.corpus_id)
        except Exception:
            logger.warning("session=%s step=generate route=exception", context.session_id, exc_info=True)
            context.generation_failed = True
            context.answer_text = GENERATION_FAILED_REPLY
            return
        context.answer_text = result.text
        context.citations = list(result.citations)

    def _step_deterministic_reply(self, context: TurnContext) -> None:
        context.answer_text = context.decision.reply

    def _step_commit(self, context: TurnContext) -> None:
        self._controller.commit(context.decision)


def latest_user_message(messages: List[Dict[str, str]]) -> Optional[str]:
    for message in reversed(messages):
        if message.get("role") == "user" and (message.get("content") or "").strip():
            return message["content"]
    return None
