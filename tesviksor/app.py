from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException

from .chat_handler import ChatTurnHandler
from .config import load_settings
from .gemini_client import GeminiClient
from .intake.composer import InstructionComposer
from .intake.controller import IntakeController
from .knowledge.corpus_store import CorpusStore
from .models import ChatRequest, ChatResponse, Citation, IntakeProgress
from .rag_service import RagService
from .session_store import IntakeSessionStore, SessionStoreError

BASE_DIR = Path(__file__).resolve().parent

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("tesviksor").setLevel(log_level)
logger = logging.getLogger("tesviksor.chat")

app = FastAPI(title="Teşviksor Chat Assistant")


@lru_cache(maxsize=1)
def get_session_store() -> IntakeSessionStore:
    settings = load_settings()
    return IntakeSessionStore(settings.data_dir / "intake_sessions.json")


@lru_cache(maxsize=1)
def get_handler() -> ChatTurnHandler:
    """Purpose: Build the chat turn handler and its collaborators once per process.
    Inputs/Outputs: No inputs; returns a ChatTurnHandler.
    Side Effects / State: Configures the Gemini SDK and creates the data directory.
    Dependencies: Uses load_settings, GeminiClient, CorpusStore, RagService,
        IntakeController and InstructionComposer.
    Failure Modes: Missing GEMINI_API_KEY raises ValueError on the first request.
    If Removed: The chat endpoint has no handler to run.
    Testing Notes: Override with app.dependency_overrides in tests.
    """
    settings = load_settings()
    controller = IntakeController(get_session_store(), keywords=settings.intake_keywords)
    composer = InstructionComposer(settings.prompts_dir)
    rag = RagService(
        GeminiClient(settings),
        CorpusStore(settings.knowledge_dir),
        topk=settings.retrieval_topk,
        support_badge=settings.support_badge_enabled,
    )
    return ChatTurnHandler(controller, composer, rag)


@lru_cache(maxsize=1)
def get_default_corpus_id() -> str:
    return load_settings().default_corpus_id


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/api/chat", response_model=ChatResponse)
def chat(
    request: ChatRequest,
    handler: ChatTurnHandler = Depends(get_handler),
    default_corpus_id: str = Depends(get_default_corpus_id),
) -> ChatResponse:
    """Purpose: Handle one chat turn through the intake controller and RAG service.
    Inputs/Outputs: Input is ChatRequest; output is ChatResponse with text/citations.
    Side Effects / State: May write intake session state after the reply is computed.
    Dependencies: Uses ChatTurnHandler.
    Failure Modes: A history without a user message returns 400; generation errors
        come back as an apologetic text with status 200.
    If Removed: Core chat functionality is unavailable.
    Testing Notes: Send a trigger message and verify no slot is set in that turn.
    """
    messages = [message.model_dump() for message in request.messages]
    try:
        context = handler.handle(request.session_id, messages, request.corpus_id or default_corpus_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ChatResponse(
        text=context.answer_text,
        citations=[Citation(**citation) for citation in context.citations],
        session_id=request.session_id,
    )


@app.get("/api/sessions/{session_id}/incentive", response_model=IntakeProgress)
def get_incentive_progress(
    session_id: str,
    store: IntakeSessionStore = Depends(get_session_store),
) -> IntakeProgress:
    """Purpose: Return the latest intake progress for a chat session.
    Inputs/Outputs: Input is session_id; output is IntakeProgress.
    Side Effects / State: None.
    Dependencies: Uses IntakeSessionStore.load_latest_session.
    Failure Modes: Unknown sessions return 404; store read errors return 503.
    If Removed: The portal's progress badge cannot be shown.
    Testing Notes: Complete two slots and verify the payload.
    """
    try:
        session = store.load_latest_session(session_id)
    except SessionStoreError as exc:
        logger.warning("session=%s progress read failed: %s", session_id, exc)
        raise HTTPException(status_code=503, detail="session store unavailable") from exc
    if session is None:
        raise HTTPException(status_code=404, detail="no intake session")
    data = session.to_dict()
    return IntakeProgress(
        session_id=session_id,
        status=data["status"],
        sector=data["sector"],
        province=data["province"],
        district=data["district"],
        osb_status=data["osb_status"],
    )
