# clausewise/memory/embedder.py

"""
Gemini embedding wrapper with batching.

Guarantees:
• Output order matches input order
• One vector per input text
• Every request is tagged with its retrieval intent
• Every request carries a timeout
• A failed batch raises EmbeddingError with its offset
"""

import logging
import os
from enum import Enum
from typing import List, Optional

import google.generativeai as genai

from clausewise.config import (
    EMBEDDING_MODEL,
    EMBEDDING_DIMENSION,
    EMBED_BATCH_SIZE,
    EMBEDDING_TIMEOUT_SECONDS,
)
from clausewise.errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingTaskType(str, Enum):
    """Intent tag sent with every embedding request."""

    RETRIEVAL_DOCUMENT = "RETRIEVAL_DOCUMENT"
    RETRIEVAL_QUERY = "RETRIEVAL_QUERY"


class Embedder:
    """
    Embedding generator backed by the Gemini API.

    Responsibilities:
    • Call the Gemini embedding endpoint
    • Split large requests into bounded batches
    • Map returned vectors back by position
    """

    # ============================================================
    # INITIALIZATION
    # ============================================================

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = EMBEDDING_MODEL,
        dimension: int = EMBEDDING_DIMENSION,
        batch_size: int = EMBED_BATCH_SIZE,
        timeout: float = EMBEDDING_TIMEOUT_SECONDS,
    ):

        if dimension <= 0:
            raise ValueError("Embedding dimension must be positive")

        if batch_size <= 0:
            raise ValueError("Embedding batch size must be positive")

        self._model = model
        self._dimension = dimension
        self._batch_size = batch_size
        self._timeout = timeout

        key = api_key or os.getenv("GEMINI_API_KEY")

        if key:
            genai.configure(api_key=key)
            self._configured = True
        else:
            self._configured = False
            logger.warning(
                "GEMINI_API_KEY not set; embedding requests will fail",
                extra={"model": model},
            )

        logger.info(
            "Embedding model initialized",
            extra={
                "model": model,
                "dimension": dimension,
                "batch_size": batch_size,
            },
        )

    # ============================================================
    # PUBLIC API
    # ============================================================

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def embed(
        self,
        texts: List[str],
        task_type: EmbeddingTaskType = EmbeddingTaskType.RETRIEVAL_DOCUMENT,
        batch_size: Optional[int] = None,
    ) -> List[List[float]]:
        """
        Embed texts in sequential batches.

        Raises EmbeddingError on the first failed batch. Vectors from
        earlier batches are discarded with it; callers that want partial
        results call embed() once per batch.
        """

        if not texts:
            return []

        size = batch_size or self._batch_size

        total = len(texts)

        vectors: List[List[float]] = []

        for start in range(0, total, size):

            batch = texts[start:start + size]

            vectors.extend(self._embed_batch(batch, task_type, start))

        logger.info(
            "Embedding completed",
            extra={
                "texts": total,
                "task_type": task_type.value,
                "dimension": self._dimension,
            },
        )

        return vectors

    def embed_query(self, question: str) -> List[float]:

        return self._embed_batch(
            [question],
            EmbeddingTaskType.RETRIEVAL_QUERY,
            0,
        )[0]

    # ============================================================
    # INTERNAL
    # ============================================================

    def _embed_batch(
        self,
        batch: List[str],
        task_type: EmbeddingTaskType,
        start: int,
    ) -> List[List[float]]:

        try:

            response = genai.embed_content(
                model=self._model,
                content=batch,
                task_type=task_type.value,
                output_dimensionality=self._dimension,
                request_options={"timeout": self._timeout},
            )

        except Exception as e:

            logger.error(
                "Embedding batch failed",
                extra={
                    "batch_start": start,
                    "batch_size": len(batch),
                    "task_type": task_type.value,
                    "error": str(e),
                },
            )

            raise EmbeddingError(
                f"Embedding batch at offset {start} failed: {e}",
                batch_start=start,
                batch_size=len(batch),
            ) from e

        vectors = response["embedding"]

        if len(vectors) != len(batch):

            raise EmbeddingError(
                f"Embedding batch at offset {start} returned "
                f"{len(vectors)} vectors for {len(batch)} texts",
                batch_start=start,
                batch_size=len(batch),
            )

        return [list(map(float, vector)) for vector in vectors]

    # ============================================================
    # ACCESSORS
    # ============================================================

    def get_dimension(self) -> int:
        return self._dimension

    def health_check(self) -> dict:

        return {
            "model": self._model,
            "dimension": self._dimension,
            "provider": "gemini",
            "status": "healthy" if self._configured else "unconfigured",
        }
