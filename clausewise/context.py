# clausewise/context.py

"""
Process-wide collaborators, built once at startup and handed to every
route through a FastAPI dependency.
"""

import logging
import os
from dataclasses import dataclass

from clausewise.config import (
    STORAGE_DIR,
    CHUNK_STORE_BACKEND,
    STORE_WRITE_BATCH_SIZE,
)
from clausewise.llm.multi_model_client import MultiModelLLMClient
from clausewise.memory.documents import DocumentRepository
from clausewise.memory.embedder import Embedder
from clausewise.memory.embedding_cache import EmbeddingCache
from clausewise.memory.qdrant_client import QdrantVectorDB
from clausewise.memory.retriever import Retriever
from clausewise.memory.store import ChunkStore, LocalChunkStore, QdrantChunkStore
from clausewise.observability.metrics import MetricsTracker
from clausewise.observability.posthog_client import PostHogClient
from clausewise.workflow.conversation import ConversationMemory

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    documents: DocumentRepository
    store: ChunkStore
    embedder: Embedder
    cache: EmbeddingCache
    retriever: Retriever
    llm_client: MultiModelLLMClient
    memory: ConversationMemory
    metrics: MetricsTracker
    analytics: PostHogClient
    upload_dir: str


def build_chunk_store(backend: str, storage_dir: str, dimension: int) -> ChunkStore:

    if backend == "qdrant":
        return QdrantChunkStore(
            QdrantVectorDB(dimension),
            write_batch_size=STORE_WRITE_BATCH_SIZE,
        )

    if backend == "local":
        return LocalChunkStore(
            path=os.path.join(storage_dir, "chunks.json"),
            write_batch_size=STORE_WRITE_BATCH_SIZE,
        )

    raise ValueError(f"Unknown chunk store backend: {backend}")


def build_context(
    storage_dir: str = STORAGE_DIR,
    backend: str = CHUNK_STORE_BACKEND,
) -> AppContext:

    upload_dir = os.path.join(storage_dir, "uploads")

    os.makedirs(upload_dir, exist_ok=True)

    embedder = Embedder()

    documents = DocumentRepository(os.path.join(storage_dir, "document_registry.json"))

    store = build_chunk_store(backend, storage_dir, embedder.get_dimension())

    cache = EmbeddingCache(embedder, store)

    context = AppContext(
        documents=documents,
        store=store,
        embedder=embedder,
        cache=cache,
        retriever=Retriever(documents, store, embedder, cache),
        llm_client=MultiModelLLMClient(),
        memory=ConversationMemory(),
        metrics=MetricsTracker(os.path.join(storage_dir, "metrics.json")),
        analytics=PostHogClient(),
        upload_dir=upload_dir,
    )

    logger.info(
        "Application context built",
        extra={
            "storage_dir": storage_dir,
            "chunk_store": backend,
            "documents": len(documents),
        },
    )

    return context
