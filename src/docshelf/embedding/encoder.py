"""Embedding model management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Literal, Protocol, Sequence

import numpy as np

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Anything that turns text into a fixed-length vector.

    ``embed`` returns ``None`` when no vector can be produced; callers treat
    that as "embeddings unavailable" and degrade instead of failing.
    """

    @property
    def available(self) -> bool: ...

    def embed(self, text: str) -> np.ndarray | None: ...

@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_MODEL
    batch_size: int = 16
    normalize: bool = True
    backend: Literal["torch", "onnx", "openvino"] = "torch"
    device: str | None = None


class EmbeddingModel:
    """Thin wrapper around `SentenceTransformer` for query and document embeddings."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        from sentence_transformers import SentenceTransformer

        self.config = config or EmbeddingConfig()
        self._model = SentenceTransformer(
            self.config.model_name,
            backend=self.config.backend,
            device=self.config.device,
        )
        self.dimension = int(self._model.get_sentence_embedding_dimension())
        logger.info(
            "Loaded embedding model %s (backend: %s, dimension: %d)",
            self.config.model_name,
            self.config.backend,
            self.dimension,
        )

    def embed(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        """Return float32 embeddings for input texts."""
        sentences = list(texts)
        embeddings = self._model.encode(
            sentences,
            batch_size=self.config.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=self.config.normalize,
        )
        return embeddings.astype("float32", copy=False)

    def embed_query(self, text: str) -> np.ndarray:
        """Convenience wrapper for single-query embedding."""
        return self.embed([text])[0]


class SentenceEmbeddingProvider:
    """`EmbeddingProvider` backed by a lazily loaded `EmbeddingModel`.

    A model that fails to load marks the provider unavailable for the rest
    of the session rather than retrying on every call.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self._model: EmbeddingModel | None = None
        self._unavailable = False

    @property
    def available(self) -> bool:
        return self._load() is not None

    def _load(self) -> EmbeddingModel | None:
        if self._model is None and not self._unavailable:
            try:
                self._model = EmbeddingModel(self.config)
            except Exception as exc:
                logger.warning("Embedding model unavailable (%s): %s", self.config.model_name, exc)
                self._unavailable = True
        return self._model

    def embed(self, text: str) -> np.ndarray | None:
        model = self._load()
        if model is None or not text.strip():
            return None
        try:
            return model.embed_query(text)
        except Exception as exc:
            logger.warning("Embedding failed: %s", exc)
            return None
