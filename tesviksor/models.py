from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """One message of the conversation history sent by the client."""
    role: Literal["user", "assistant", "model"]
    content: str


class ChatRequest(BaseModel):
    """Request payload for chat API."""
    session_id: Optional[str] = Field(default=None)
    messages: List[ChatMessage] = Field(min_length=1)
    corpus_id: Optional[str] = Field(default=None)


class Citation(BaseModel):
    """Corpus chunk used to ground a generated answer."""
    title: str
    source: str
    snippet: str = ""


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    text: str
    citations: List[Citation]
    session_id: Optional[str] = None


class IntakeProgress(BaseModel):
    """Slot-filling progress for the portal's progress badge."""
    session_id: str
    status: Literal["collecting", "completed"]
    sector: Optional[str] = None
    province: Optional[str] = None
    district: Optional[str] = None
    osb_status: Optional[Literal["INSIDE", "OUTSIDE"]] = None
