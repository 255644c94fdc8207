# clausewise/memory/embedding_cache.py

"""
Stored-vector reuse and backfill.

A chunk's stored embedding is reused when its length matches the configured
dimensionality; anything else counts as missing and is requested again.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from clausewise.errors import EmbeddingError
from clausewise.memory.embedder import Embedder, EmbeddingTaskType
from clausewise.memory.store import ChunkRecord, ChunkStore

logger = logging.getLogger(__name__)


def is_valid_embedding(vector: Optional[Sequence[float]], dimension: int) -> bool:

    return vector is not None and len(vector) == dimension


@dataclass
class EmbeddingResolution:
    # One entry per input chunk; None when the vector could not be obtained.
    vectors: List[Optional[List[float]]] = field(default_factory=list)
    # Newly computed vectors for persisted chunks, keyed by chunk id.
    fresh: Dict[str, List[float]] = field(default_factory=dict)
    cache_hits: int = 0
    requested: int = 0
    failed_chunk_ids: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failed_chunk_ids)


class EmbeddingCache:

    def __init__(self, embedder: Embedder, store: ChunkStore):

        self._embedder = embedder
        self._store = store

    @property
    def dimension(self) -> int:
        return self._embedder.get_dimension()

    def resolve(self, chunks: Sequence[ChunkRecord]) -> EmbeddingResolution:

        dimension = self.dimension

        result = EmbeddingResolution(vectors=[None] * len(chunks))

        missing = []

        for position, chunk in enumerate(chunks):

            if is_valid_embedding(chunk.embedding, dimension):
                result.vectors[position] = list(chunk.embedding)
                result.cache_hits += 1
            else:
                missing.append(position)

        if not missing:
            return result

        batch_size = self._embedder.batch_size

        # One request per batch so a failure only loses its own members
        for start in range(0, len(missing), batch_size):

            positions = missing[start:start + batch_size]

            texts = [chunks[p].text for p in positions]

            result.requested += len(positions)

            try:

                vectors = self._embedder.embed(
                    texts,
                    task_type=EmbeddingTaskType.RETRIEVAL_DOCUMENT,
                    batch_size=batch_size,
                )

            except EmbeddingError as e:

                failed = [chunks[p].chunk_id for p in positions]

                result.failed_chunk_ids.extend(failed)

                logger.warning(
                    "Embedding batch failed; continuing without vectors",
                    extra={
                        "chunks": len(failed),
                        "error": str(e),
                    },
                )

                continue

            for position, vector in zip(positions, vectors):

                chunk = chunks[position]

                if not is_valid_embedding(vector, dimension):
                    result.failed_chunk_ids.append(chunk.chunk_id)
                    logger.warning(
                        "Embedding has wrong dimensionality; not cached",
                        extra={
                            "chunk_id": chunk.chunk_id,
                            "expected": dimension,
                            "received": len(vector) if vector is not None else None,
                        },
                    )
                    continue

                result.vectors[position] = vector

                if not chunk.is_fallback:
                    result.fresh[chunk.chunk_id] = vector

        logger.info(
            "Embeddings resolved",
            extra={
                "chunks": len(chunks),
                "cache_hits": result.cache_hits,
                "requested": result.requested,
                "failed": len(result.failed_chunk_ids),
            },
        )

        return result

    def backfill(self, document_id: str, fresh: Dict[str, List[float]]) -> int:
        """
        Best-effort write of fresh vectors onto their chunks.

        Never raises. Returns the number of vectors persisted.
        """

        if not fresh:
            return 0

        try:

            written = self._store.update_embeddings(document_id, fresh)

        except Exception as e:

            logger.warning(
                "Failed to backfill embeddings; continuing without persistence",
                extra={
                    "doc_id": document_id,
                    "chunks": len(fresh),
                    "error": str(e),
                },
            )

            return 0

        logger.info(
            "Embeddings backfilled",
            extra={"doc_id": document_id, "chunks": written},
        )

        return written
