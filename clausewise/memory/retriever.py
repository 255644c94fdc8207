# clausewise/memory/retriever.py

"""
Retrieval orchestrator.

load chunks → prefilter → resolve embeddings → query embedding
→ backfill → rank → dynamic top-K evidence

Only a missing, unready or empty document is a hard failure. Every later stage
degrades: a chunk without a vector simply scores 0.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from clausewise.config import (
    PREFILTER_CAP,
    CHUNK_TARGET_WORDS,
    CHUNK_OVERLAP_WORDS,
)
from clausewise.errors import (
    DocumentNotFoundError,
    DocumentNotReadyError,
    EmbeddingError,
)
from clausewise.memory.chunker import chunk_text
from clausewise.memory.documents import DocumentRecord, DocumentRepository, DocumentStatus
from clausewise.memory.embedder import Embedder
from clausewise.memory.embedding_cache import EmbeddingCache
from clausewise.memory.prefilter import prefilter_chunks
from clausewise.memory.similarity import rank
from clausewise.memory.store import ChunkRecord, ChunkStore, make_fallback_chunks

logger = logging.getLogger(__name__)


@dataclass
class Evidence:
    chunk_id: str
    index: int
    text: str
    similarity: float


@dataclass
class RetrievalDiagnostics:
    total_chunks: int = 0
    candidates: int = 0
    used_fallback_chunks: bool = False
    cache_hits: int = 0
    embeddings_requested: int = 0
    embedding_failures: int = 0
    query_embedding_failed: bool = False
    backfilled: int = 0
    max_similarity: float = 0.0
    k: int = 0
    scores: List[float] = field(default_factory=list)
    timings_ms: Dict[str, float] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        return self.embedding_failures > 0 or self.query_embedding_failed


@dataclass
class RetrievalResult:
    document_id: str
    evidence: List[Evidence] = field(default_factory=list)
    diagnostics: RetrievalDiagnostics = field(default_factory=RetrievalDiagnostics)

    @property
    def top_chunk_ids(self) -> List[str]:
        return [e.chunk_id for e in self.evidence]


class _StageTimer:

    def __init__(self, timings: Dict[str, float]):
        self._timings = timings
        self._last = time.perf_counter()

    def mark(self, stage: str):
        now = time.perf_counter()
        self._timings[stage] = round((now - self._last) * 1000, 2)
        self._last = now


class Retriever:

    def __init__(
        self,
        documents: DocumentRepository,
        store: ChunkStore,
        embedder: Embedder,
        cache: Optional[EmbeddingCache] = None,
        prefilter_cap: int = PREFILTER_CAP,
        target_words: int = CHUNK_TARGET_WORDS,
        overlap_words: int = CHUNK_OVERLAP_WORDS,
    ):

        self._documents = documents
        self._store = store
        self._embedder = embedder
        self._cache = cache or EmbeddingCache(embedder, store)
        self._prefilter_cap = prefilter_cap
        self._target_words = target_words
        self._overlap_words = overlap_words

    # ============================================================
    # PUBLIC API
    # ============================================================

    def retrieve(
        self,
        document_id: str,
        question: str,
        prefilter_cap: Optional[int] = None,
    ) -> RetrievalResult:
        """
        Evidence for one question. `prefilter_cap` overrides the configured
        candidate cap for this call only.
        """

        start = time.perf_counter()

        diagnostics = RetrievalDiagnostics()

        timer = _StageTimer(diagnostics.timings_ms)

        # 1. Chunks (stored, else fallback from extracted text)
        chunks, used_fallback = self._load_chunks(document_id)

        diagnostics.total_chunks = len(chunks)
        diagnostics.used_fallback_chunks = used_fallback

        timer.mark("load")

        # 2. Lexical prefilter
        candidate_idx = prefilter_chunks(
            question,
            [c.text for c in chunks],
            self._prefilter_cap if prefilter_cap is None else prefilter_cap,
        )

        candidates = [chunks[i] for i in candidate_idx]

        diagnostics.candidates = len(candidates)

        timer.mark("prefilter")

        # 3. Candidate embeddings
        resolution = self._cache.resolve(candidates)

        diagnostics.cache_hits = resolution.cache_hits
        diagnostics.embeddings_requested = resolution.requested
        diagnostics.embedding_failures = len(resolution.failed_chunk_ids)

        timer.mark("embed_chunks")

        # 4. Query embedding, always fresh
        query_vector = self._embed_question(question)

        diagnostics.query_embedding_failed = query_vector is None

        timer.mark("embed_query")

        # 5. Best-effort backfill
        diagnostics.backfilled = self._cache.backfill(document_id, resolution.fresh)

        timer.mark("backfill")

        # 6. Rank + dynamic K
        ranking = rank(query_vector, resolution.vectors)

        diagnostics.scores = [round(s, 6) for s in ranking.scores]
        diagnostics.max_similarity = ranking.max_similarity
        diagnostics.k = ranking.k

        evidence = [
            Evidence(
                chunk_id=candidates[i].chunk_id,
                index=candidates[i].index,
                text=candidates[i].text,
                similarity=ranking.scores[i],
            )
            for i in ranking.selected
        ]

        timer.mark("rank")

        diagnostics.timings_ms["total"] = round((time.perf_counter() - start) * 1000, 2)

        log = logger.warning if diagnostics.degraded else logger.info

        log(
            "Retrieval completed" + (" (degraded)" if diagnostics.degraded else ""),
            extra={
                "doc_id": document_id,
                "total_chunks": diagnostics.total_chunks,
                "candidates": diagnostics.candidates,
                "cache_hits": diagnostics.cache_hits,
                "embeddings_requested": diagnostics.embeddings_requested,
                "embedding_failures": diagnostics.embedding_failures,
                "backfilled": diagnostics.backfilled,
                "max_similarity": round(diagnostics.max_similarity, 4),
                "k": diagnostics.k,
                "latency_ms": diagnostics.timings_ms["total"],
            },
        )

        return RetrievalResult(
            document_id=document_id,
            evidence=evidence,
            diagnostics=diagnostics,
        )

    # ============================================================
    # STAGES
    # ============================================================

    def _load_chunks(self, document_id: str) -> Tuple[List[ChunkRecord], bool]:

        document: Optional[DocumentRecord] = self._documents.get(document_id)

        if document is None:
            raise DocumentNotFoundError()

        # Chunks of a document still processing, or one whose write failed, may be partial
        if document.status != DocumentStatus.READY:
            raise DocumentNotReadyError()

        chunks = self._store.list_chunks(document_id)

        if chunks:
            return chunks, False

        if not document.has_text:
            raise DocumentNotReadyError()

        texts = chunk_text(
            document.extracted_text,
            self._target_words,
            self._overlap_words,
        )

        logger.info(
            "Using fallback chunks from extracted text",
            extra={"doc_id": document_id, "chunks": len(texts)},
        )

        return make_fallback_chunks(document_id, texts), True

    def _embed_question(self, question: str) -> Optional[List[float]]:

        try:
            return self._embedder.embed_query(question)

        except EmbeddingError as e:

            logger.warning(
                "Query embedding failed; similarities default to 0",
                extra={"error": str(e)},
            )

            return None
