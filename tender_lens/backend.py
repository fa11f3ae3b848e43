"""
backend.py — The Gemini client handle.

Every stage takes a backend object as an argument instead of reaching
for a module-level client. One GeminiBackend is built at process start
and passed around. Tests pass a fake that implements the same three
methods, so nothing here has to be monkeypatched.

No retries. A failed analysis is terminal for the run, and the context
stage substitutes a fallback instead of calling again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from google import genai
from google.genai import types

from tender_lens.config import config
from tender_lens.errors import BackendError
from tender_lens.ingestion import EncodedDocument
from tender_lens.schemas import ChatTurn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackendReply:
    """Text of a response plus any provenance the backend attached."""
    text: Optional[str]
    provenance: List[Dict[str, Any]] = field(default_factory=list)


class GenerativeBackend(Protocol):
    def grounded_search(self, prompt: str) -> BackendReply: ...

    def generate_structured(
        self,
        document: EncodedDocument,
        prompt: str,
        response_schema: Dict[str, Any],
    ) -> BackendReply: ...

    def chat(self, turns: Sequence[ChatTurn], system_instruction: str) -> BackendReply: ...


class GeminiBackend:
    """
    google-genai implementation of GenerativeBackend.

    Usage:
        backend = GeminiBackend.from_config()
        pipeline = TenderAnalysisPipeline(backend)
    """

    def __init__(self, client: genai.Client):
        self._client = client

    @classmethod
    def from_config(cls, api_key: Optional[str] = None) -> "GeminiBackend":
        key = api_key or config.backend.api_key
        if not key:
            raise BackendError(
                "No Gemini API key configured. Set GEMINI_API_KEY (or GOOGLE_API_KEY)."
            )
        logger.info("Creating Gemini client")
        return cls(genai.Client(api_key=key))

    def grounded_search(self, prompt: str) -> BackendReply:
        response = self._client.models.generate_content(
            model=config.backend.context_model,
            contents=prompt,
            config=types.GenerateContentConfig(
                tools=[types.Tool(google_search=types.GoogleSearch())],
            ),
        )
        return BackendReply(text=response.text, provenance=_grounding_chunks(response))

    def generate_structured(
        self,
        document: EncodedDocument,
        prompt: str,
        response_schema: Dict[str, Any],
    ) -> BackendReply:
        response = self._client.models.generate_content(
            model=config.backend.analysis_model,
            contents=[
                types.Content(
                    role="user",
                    parts=[
                        types.Part.from_bytes(
                            data=document.raw_bytes(),
                            mime_type=document.mime_type,
                        ),
                        types.Part.from_text(text=prompt),
                    ],
                )
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=response_schema,
                temperature=config.backend.analysis_temperature,
            ),
        )
        return BackendReply(text=response.text)

    def chat(self, turns: Sequence[ChatTurn], system_instruction: str) -> BackendReply:
        contents = [
            types.Content(role=turn.role, parts=[types.Part.from_text(text=turn.text)])
            for turn in turns
        ]
        response = self._client.models.generate_content(
            model=config.backend.assistant_model,
            contents=contents,
            config=types.GenerateContentConfig(system_instruction=system_instruction),
        )
        return BackendReply(text=response.text)


def _grounding_chunks(response: Any) -> List[Dict[str, Any]]:
    """Pull {title, uri} out of the search grounding metadata, in rank order."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []

    refs: List[Dict[str, Any]] = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        if web is None:
            continue
        refs.append({"title": getattr(web, "title", None), "uri": getattr(web, "uri", None)})
    return refs
