"""Document categorization through a local LLM, with a keyword fallback."""

from __future__ import annotations

import json
import logging
from typing import List, Protocol

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from docshelf.errors import ClassificationError
from docshelf.models import Classification

LOGGER = logging.getLogger(__name__)

CATEGORIES = {
    "Scientific Paper": "📚",
    "Receipt": "🧾",
    "Invoice": "💵",
    "Contract": "📋",
    "Manual": "📘",
    "Book": "📕",
    "Slides": "📊",
    "Financial": "💰",
    "Medical": "🏥",
    "Other": "📄",
}

PROMPT = """Analyze the following document text and provide the metadata as JSON with the keys
"category", "title", "emoji", "tags" and "confidence".

TEXT PREVIEW:
{text}

INSTRUCTIONS:
1. Detect scientific papers: look for "Abstract", "Introduction", "References", "DOI".
2. Infer a descriptive title of at most 6 words. Never use "Document" or "Scan".
   For receipts use "Store - Amount".
3. category must be one of: {categories}.
4. emoji is a single emoji for the category.
5. tags is a list of 5 topic tags.
6. confidence is a number between 0.0 and 1.0.
"""


class Classifier(Protocol):
    def classify(self, text: str) -> Classification: ...


class _ModelReply(BaseModel):
    category: str = "Other"
    title: str
    emoji: str = ""
    tags: List[str] = Field(default_factory=list)
    confidence: float = 0.5

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("empty title")
        return value

    @field_validator("confidence")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return min(max(value, 0.0), 1.0)


def _normalize_category(name: str) -> str:
    for category in CATEGORIES:
        if category.lower() == name.strip().lower():
            return category
    return "Other"


class OllamaClassifier:
    """Asks an Ollama ``/api/generate`` endpoint for structured metadata."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.2:3b",
        *,
        timeout: float = 120.0,
        max_chars: int = 3000,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_chars = max_chars
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def classify(self, text: str) -> Classification:
        prompt = PROMPT.format(text=text[: self.max_chars], categories=", ".join(CATEGORIES))
        try:
            resp = self._client.post(
                f"{self.base_url}/api/generate",
                json={
                    "model": self.model,
                    "prompt": prompt,
                    "format": "json",
                    "stream": False,
                    "options": {"temperature": 0.2},
                },
            )
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ClassificationError(f"model request failed: {exc}") from exc

        raw = body.get("response") if isinstance(body, dict) else None
        if not isinstance(raw, str):
            raise ClassificationError(f"unexpected model reply: {body!r:.200}")

        try:
            reply = _ModelReply.model_validate(json.loads(raw))
        except (json.JSONDecodeError, TypeError, ValidationError) as exc:
            raise ClassificationError(f"unusable model reply: {exc}") from exc

        category = _normalize_category(reply.category)
        LOGGER.debug("Model classified document as %s: %s", category, reply.title)
        return Classification(
            title=reply.title,
            category=category,
            emoji=reply.emoji.strip() or CATEGORIES[category],
            tags=[tag.strip() for tag in reply.tags if tag.strip()][:5],
            confidence=reply.confidence,
        )


def heuristic_classification(text: str) -> Classification:
    """Keyword-based fallback used when no model answer is available."""
    lowered = text.lower()
    if "abstract" in lowered and "introduction" in lowered:
        return Classification("Scientific Paper", "Scientific Paper", "📚", ["research", "academic"], 0.7)
    if "receipt" in lowered or "total" in lowered:
        return Classification("Receipt", "Receipt", "🧾", ["purchase"], 0.6)
    first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
    return Classification(first_line[:30] or "Document", "Document", "📄", ["general"], 0.5)
