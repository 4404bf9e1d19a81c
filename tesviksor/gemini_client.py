from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

import google.generativeai as genai

try:  # Prefer typed enums when available
    from google.generativeai import types as genai_types

    DEFAULT_SAFETY_SETTINGS = [
        {
            "category": genai_types.HarmCategory.HARM_CATEGORY_HARASSMENT,
            "threshold": genai_types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
        },
        {
            "category": genai_types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
            "threshold": genai_types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
        },
        {
            "category": genai_types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
            "threshold": genai_types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
        },
        {
            "category": genai_types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
            "threshold": genai_types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
        },
    ]
except Exception:  # pragma: no cover - fallback for older SDKs
    DEFAULT_SAFETY_SETTINGS = [
        {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_ONLY_HIGH"},
        {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_ONLY_HIGH"},
        {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_ONLY_HIGH"},
        {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_ONLY_HIGH"},
    ]

from .config import Settings


class GeminiClient:
    """Thin wrapper around the Gemini SDK with model caching and safety settings."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK and initialize the model cache.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures the SDK global API key.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises ValueError if the API key or model name is missing.
        If Removed: Bypass and handoff turns cannot be answered.
        Testing Notes: Validate a missing key raises ValueError.
        """
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        genai.configure(api_key=settings.gemini_api_key)
        self._default_model = _normalize_model_name(settings.gemini_model)
        if not self._default_model:
            raise ValueError("Gemini model name is required")
        self._temperature = settings.generation_temperature
        self._models: Dict[str, genai.GenerativeModel] = {}

    def _model(self, name: str) -> genai.GenerativeModel:
        if name not in self._models:
            self._models[name] = genai.GenerativeModel(name)
        return self._models[name]

    def generate_content(
        self,
        contents: list,
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: int = 2000,
    ) -> str:
        """Purpose: Generate a response from structured chat contents.
        Inputs/Outputs: Input is a list of content entries and an optional system
            instruction; returns the stripped response text.
        Side Effects / State: May add an uninstructed model to the internal cache.
        Dependencies: Uses genai.GenerativeModel.generate_content and _flatten_contents.
        Failure Modes: SDK and network errors propagate; a TypeError from SDKs without
            system_instruction support falls back to a flattened prompt.
        If Removed: The RAG service has no model to call.
        Testing Notes: Test both structured contents and the flattened fallback path.
        """
        model_name = _normalize_model_name(model) if model else self._default_model
        generation_config = {
            "temperature": self._temperature if temperature is None else temperature,
            "max_output_tokens": max_output_tokens,
        }

        try:
            if system_instruction:
                # Instructions change per turn, so these models are not cached.
                instructed = genai.GenerativeModel(model_name, system_instruction=system_instruction)
            else:
                instructed = self._model(model_name)
            response = instructed.generate_content(
                contents,
                generation_config=generation_config,
                safety_settings=DEFAULT_SAFETY_SETTINGS,
            )
        except TypeError:
            combined = _flatten_contents(contents)
            if system_instruction:
                combined = f"{system_instruction}\n\n{combined}"
            response = self._model(model_name).generate_content(
                combined,
                generation_config=generation_config,
                safety_settings=DEFAULT_SAFETY_SETTINGS,
            )

        text: Optional[str] = getattr(response, "text", None)
        return (text or "").strip()


def to_contents(messages: Iterable[Mapping[str, str]]) -> List[dict]:
    """Convert chat messages into Gemini role/parts entries, skipping empty ones."""
    contents: List[dict] = []
    for message in messages:
        content = message.get("content", "")
        if not content:
            continue
        role = "user" if message.get("role") == "user" else "model"
        contents.append({"role": role, "parts": [{"text": content}]})
    return contents


def _normalize_model_name(name: Optional[str]) -> str:
    # "models/gemini-2.5-flash" -> "gemini-2.5-flash"
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned


def _flatten_contents(contents: list) -> str:
    """Purpose: Convert structured contents into a plain text prompt.
    Inputs/Outputs: Input is a list of content dicts; output is combined text.
    Side Effects / State: None.
    Dependencies: Used by GeminiClient when system_instruction is unsupported.
    Failure Modes: Non-dict entries are skipped; returns empty string if no text parts.
    If Removed: Fallback path for older SDKs fails and raises TypeError.
    Testing Notes: Verify roles are prefixed and parts are concatenated correctly.
    """
    parts: list[str] = []
    for entry in contents:
        if not isinstance(entry, dict):
            continue
        role = entry.get("role", "")
        texts = [
            str(segment["text"])
            for segment in entry.get("parts", []) or []
            if isinstance(segment, dict) and segment.get("text")
        ]
        if texts:
            prefix = f"{role.upper()}: " if role else ""
            parts.append(prefix + "\n".join(texts))
    return "\n\n".join(parts)
