"""Embedding service for turning product effects and user profiles into vectors.

Uses sentence-transformers when the configured model can be loaded, and a
deterministic SHA-256 based fallback otherwise.  The model is loaded lazily on
first use and the outcome (loaded or failed) is kept for the lifetime of the
service, so a failed load is never retried.

This module is intentionally synchronous (CPU-bound).  Callers should use
``asyncio.to_thread(embedder.embed, text)`` to avoid blocking the event loop.
"""

from __future__ import annotations

import hashlib
import logging
import math
import threading
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np
import torch

from app.models.domain import EmbeddingResult

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_DIMENSION = 384


def fallback_embedding(text: str, dimension: int = DEFAULT_DIMENSION) -> list[float]:
    """Hash-based embedding used when the model is unavailable.

    Coordinate ``i`` is ``sin(digest[i % 32] + i) * 0.5 + 0.5`` where *digest*
    is the SHA-256 of the lower-cased text, so every value lies in [0, 1] and
    identical text always produces identical float32 values.
    """
    digest = hashlib.sha256(text.lower().encode("utf-8")).digest()
    values = np.array(
        [math.sin(digest[i % len(digest)] + i) * 0.5 + 0.5 for i in range(dimension)],
        dtype=np.float32,
    )
    return values.tolist()


def _load_sentence_transformer(model_name: str, device: str) -> Any:
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name, device=device)


class EmbeddingService:
    """Owns the primary model lifecycle and the deterministic fallback.

    One instance is created at process start and shared by the ingestion
    pipeline and the query service.  ``model_loader`` is injectable so tests
    can supply a fake model or a loader that fails.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        dimension: int = DEFAULT_DIMENSION,
        device: str = "cpu",
        model_loader: Callable[[str, str], Any] | None = None,
    ) -> None:
        self.model_name = model_name
        self.dimension = dimension
        self.device = device
        self.load_error: str | None = None
        self._loader = model_loader or _load_sentence_transformer
        self._model: Any = None
        self._load_attempted = False
        self._lock = threading.Lock()

    @property
    def is_model_loaded(self) -> bool:
        return self._model is not None

    @property
    def source(self) -> str:
        """``"model"``, ``"fallback"``, or ``"unloaded"`` before first use."""
        if not self._load_attempted:
            return "unloaded"
        return "model" if self._model is not None else "fallback"

    def _get_model(self) -> Any:
        if self._load_attempted:
            return self._model

        with self._lock:
            if self._load_attempted:
                return self._model
            try:
                model = self._loader(self.model_name, self.device)
                model_dim = model.get_sentence_embedding_dimension()
                if model_dim != self.dimension:
                    raise ValueError(
                        f"model produces {model_dim}-d vectors, index expects {self.dimension}"
                    )
                self._model = model
                logger.info("Embedding model '%s' loaded.", self.model_name)
            except Exception as e:
                self.load_error = str(e)
                logger.warning(
                    "Could not load embedding model '%s', using fallback: %s",
                    self.model_name,
                    e,
                )
            finally:
                self._load_attempted = True
        return self._model

    def _fallback(self, text: str, error: str | None) -> EmbeddingResult:
        return EmbeddingResult(
            vector=fallback_embedding(text, self.dimension),
            source="fallback",
            error=error,
        )

    def _to_vector(self, raw: Any) -> list[float]:
        values = np.asarray(raw, dtype=np.float32).reshape(-1)
        if values.shape[0] != self.dimension:
            raise ValueError(f"expected {self.dimension} values, got {values.shape[0]}")
        return values.tolist()

    def embed_with_source(self, text: str) -> EmbeddingResult:
        """Embed *text* and report which path produced the vector."""
        model = self._get_model()
        if model is None:
            return self._fallback(text, self.load_error)

        try:
            with torch.no_grad():
                raw = model.encode(text, normalize_embeddings=True, show_progress_bar=False)
            return EmbeddingResult(vector=self._to_vector(raw), source="model")
        except Exception as e:
            logger.error("Embedding generation failed, using fallback: %s", e)
            return self._fallback(text, str(e))

    def embed(self, text: str) -> list[float]:
        """Embed a single text string.

        Returns ``self.dimension`` floats regardless of which path was taken.
        """
        return self.embed_with_source(text).vector

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed multiple texts, one vector per input text."""
        model = self._get_model()
        if model is None:
            return [fallback_embedding(t, self.dimension) for t in texts]

        try:
            with torch.no_grad():
                raw = model.encode(
                    texts,
                    batch_size=32,
                    normalize_embeddings=True,
                    show_progress_bar=False,
                )
            return [self._to_vector(row) for row in raw]
        except Exception as e:
            logger.error("Batch embedding failed, using fallback: %s", e)
            return [fallback_embedding(t, self.dimension) for t in texts]

    def embed_effects(self, effects: Sequence[str] | str) -> list[float]:
        """Embed a product's effect tags joined by single spaces.

        An empty list embeds the empty string.
        """
        text = effects if isinstance(effects, str) else " ".join(effects)
        return self.embed(text)

    def embed_profile(
        self,
        goals: Sequence[str] = (),
        conditions: Sequence[str] = (),
        skin_type: str = "",
    ) -> list[float]:
        """Embed a questionnaire profile as ``"<skin_type> <goals...> <conditions...>"``."""
        text = " ".join([skin_type, *goals, *conditions])
        return self.embed(text)
