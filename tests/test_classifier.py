"""Tests for the model-backed and heuristic classifiers."""

from __future__ import annotations

import json

import httpx
import pytest

from docshelf.errors import ClassificationError
from docshelf.ingestion.classifier import OllamaClassifier, heuristic_classification


def _classifier(handler) -> OllamaClassifier:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return OllamaClassifier("http://ollama.test/", "tiny-model", client=client)


def _reply(payload: dict) -> httpx.Response:
    return httpx.Response(200, json={"response": json.dumps(payload), "done": True})


class TestOllamaClassifier:
    def test_parses_model_reply(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return _reply(
                {
                    "category": "invoice",
                    "title": "  ACME Hosting March  ",
                    "emoji": "",
                    "tags": ["hosting", " ", "cloud", "billing", "monthly", "acme", "extra"],
                    "confidence": 1.7,
                }
            )

        result = _classifier(handler).classify("Invoice #42 from ACME")

        assert result.title == "ACME Hosting March"
        assert result.category == "Invoice"
        assert result.emoji == "💵"
        assert result.tags == ["hosting", "cloud", "billing", "monthly", "acme"]
        assert result.confidence == 1.0

        body = json.loads(requests[0].content)
        assert str(requests[0].url) == "http://ollama.test/api/generate"
        assert body["model"] == "tiny-model"
        assert body["format"] == "json"
        assert body["stream"] is False
        assert "Invoice #42 from ACME" in body["prompt"]

    def test_unknown_category_becomes_other(self) -> None:
        classifier = _classifier(lambda request: _reply({"category": "Poem", "title": "Ode"}))

        result = classifier.classify("text")

        assert result.category == "Other"
        assert result.emoji == "📄"

    def test_truncates_prompt_text(self) -> None:
        prompts = []

        def handler(request: httpx.Request) -> httpx.Response:
            prompts.append(json.loads(request.content)["prompt"])
            return _reply({"title": "Long"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        OllamaClassifier(max_chars=10, client=client).classify("0123456789ABCDEF")

        assert "0123456789" in prompts[0]
        assert "ABCDEF" not in prompts[0]

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="model crashed"),
            httpx.Response(200, json={"response": "not json"}),
            httpx.Response(200, json={"response": json.dumps({"title": "   "})}),
            httpx.Response(200, json={"response": json.dumps({"category": "Receipt"})}),
            httpx.Response(200, text="<html>"),
            httpx.Response(200, json=["oops"]),
            httpx.Response(200, json={"response": {"title": "Nested"}}),
        ],
    )
    def test_bad_replies_raise(self, response: httpx.Response) -> None:
        classifier = _classifier(lambda request: response)

        with pytest.raises(ClassificationError):
            classifier.classify("text")

    def test_connection_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ClassificationError):
            _classifier(handler).classify("text")


class TestHeuristicClassification:
    def test_scientific_paper(self) -> None:
        result = heuristic_classification("ABSTRACT\nSomething\nINTRODUCTION\n")

        assert (result.category, result.emoji, result.confidence) == ("Scientific Paper", "📚", 0.7)
        assert result.tags == ["research", "academic"]

    @pytest.mark.parametrize("text", ["Cash receipt", "Subtotal 4.00"])
    def test_receipt(self, text: str) -> None:
        result = heuristic_classification(text)

        assert (result.title, result.category, result.emoji) == ("Receipt", "Receipt", "🧾")
        assert result.confidence == 0.6

    def test_abstract_alone_is_not_a_paper(self) -> None:
        assert heuristic_classification("Abstract art catalogue").category == "Document"

    def test_generic_document_uses_first_line(self) -> None:
        result = heuristic_classification("\n\n  Meeting notes for the quarterly planning session\nbody")

        assert result.title == "Meeting notes for the quarterl"
        assert result.category == "Document"
        assert result.emoji == "📄"
        assert result.tags == ["general"]
        assert result.confidence == 0.5

    def test_blank_text(self) -> None:
        assert heuristic_classification("").title == "Document"
