import json
import logging
import os
import threading
import uuid

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, replace
from typing import Dict, Iterator, List, Optional, Sequence

from qdrant_client.http.models import (
    PointStruct,
    PointVectors,
    Filter,
    FieldCondition,
    MatchValue,
    FilterSelector,
)

from clausewise.config import (
    FALLBACK_CHUNK_PREFIX,
    STORE_WRITE_BATCH_SIZE,
)

from clausewise.memory.qdrant_client import QdrantVectorDB, EMBEDDING_VECTOR_NAME


logger = logging.getLogger(__name__)


@dataclass
class ChunkRecord:
    """One chunk of one document. Only `embedding` may change after creation."""

    chunk_id: str
    document_id: str
    index: int
    text: str
    embedding: Optional[List[float]] = None

    @property
    def is_fallback(self) -> bool:
        return self.chunk_id.startswith(FALLBACK_CHUNK_PREFIX)

    def copy(self) -> "ChunkRecord":
        return replace(
            self,
            embedding=list(self.embedding) if self.embedding is not None else None,
        )


def make_chunk_id(document_id: str, index: int) -> str:
    """Stable id, so re-processing a document rewrites the same records."""

    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"clausewise:{document_id}:{index}"))


def make_fallback_chunks(document_id: str, texts: Sequence[str]) -> List[ChunkRecord]:

    return [
        ChunkRecord(
            chunk_id=f"{FALLBACK_CHUNK_PREFIX}{i}",
            document_id=document_id,
            index=i,
            text=text,
        )
        for i, text in enumerate(texts)
    ]


def iter_batches(items: Sequence, size: int) -> Iterator[Sequence]:

    if size <= 0:
        raise ValueError("Batch size must be positive")

    for start in range(0, len(items), size):
        yield items[start:start + size]


class ChunkStore(ABC):
    """
    Persistent chunk records keyed by document.

    Writes go out in batches of at most `write_batch_size`. Each batch is
    applied on its own: a failure leaves earlier batches committed.
    """

    def __init__(self, write_batch_size: int = STORE_WRITE_BATCH_SIZE):

        if write_batch_size <= 0:
            raise ValueError("Write batch size must be positive")

        self._write_batch_size = write_batch_size

    # ============================================================
    # PUBLIC API
    # ============================================================

    @abstractmethod
    def list_chunks(self, document_id: str) -> List[ChunkRecord]:
        """All chunks of a document, ordered by index."""

    @abstractmethod
    def delete_document(self, document_id: str) -> int:
        """Delete every chunk of a document. Returns the number deleted."""

    @abstractmethod
    def count_chunks(self, document_id: Optional[str] = None) -> int:
        ...

    @abstractmethod
    def get_stats(self) -> dict:
        ...

    def add_chunks(
        self,
        document_id: str,
        texts: Sequence[str],
        embeddings: Optional[Sequence[Optional[List[float]]]] = None,
        start_index: int = 0,
    ) -> List[ChunkRecord]:

        if embeddings is not None and len(embeddings) != len(texts):
            raise ValueError("texts and embeddings must have the same length")

        records = []

        for offset, text in enumerate(texts):

            index = start_index + offset

            records.append(
                ChunkRecord(
                    chunk_id=make_chunk_id(document_id, index),
                    document_id=document_id,
                    index=index,
                    text=text,
                    embedding=embeddings[offset] if embeddings is not None else None,
                )
            )

        for batch in iter_batches(records, self._write_batch_size):
            self._write_batch(document_id, list(batch))

        logger.info(
            "Chunks written",
            extra={
                "doc_id": document_id,
                "chunks": len(records),
                "with_embeddings": sum(1 for r in records if r.embedding),
            },
        )

        return records

    def update_embeddings(
        self,
        document_id: str,
        embeddings: Dict[str, List[float]],
    ) -> int:
        """Set embeddings on existing chunks. Returns the number updated."""

        items = list(embeddings.items())

        for batch in iter_batches(items, self._write_batch_size):
            self._update_batch(document_id, dict(batch))

        return len(items)

    # ============================================================
    # BACKEND HOOKS
    # ============================================================

    @abstractmethod
    def _write_batch(self, document_id: str, records: List[ChunkRecord]):
        ...

    @abstractmethod
    def _update_batch(self, document_id: str, embeddings: Dict[str, List[float]]):
        ...


class LocalChunkStore(ChunkStore):
    """
    Process-local chunk store, optionally persisted to a JSON file.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        write_batch_size: int = STORE_WRITE_BATCH_SIZE,
    ):

        super().__init__(write_batch_size)

        self._path = path
        self._lock = threading.Lock()
        self._chunks: Dict[str, Dict[str, ChunkRecord]] = {}

        self._load_from_disk()

        logger.info(
            "LocalChunkStore initialized",
            extra={
                "path": path,
                "documents": len(self._chunks),
            },
        )

    def list_chunks(self, document_id: str) -> List[ChunkRecord]:

        with self._lock:
            records = list(self._chunks.get(document_id, {}).values())

        return sorted((r.copy() for r in records), key=lambda r: r.index)

    def delete_document(self, document_id: str) -> int:

        with self._lock:
            removed = self._chunks.pop(document_id, {})
            self._save_to_disk()

        return len(removed)

    def count_chunks(self, document_id: Optional[str] = None) -> int:

        with self._lock:

            if document_id is not None:
                return len(self._chunks.get(document_id, {}))

            return sum(len(chunks) for chunks in self._chunks.values())

    def get_stats(self) -> dict:

        with self._lock:

            return {
                "backend": "local",
                "total_chunks": sum(len(c) for c in self._chunks.values()),
                "total_embedded": sum(
                    1
                    for chunks in self._chunks.values()
                    for r in chunks.values()
                    if r.embedding
                ),
                "documents": {
                    doc_id: len(chunks)
                    for doc_id, chunks in self._chunks.items()
                },
            }

    def _write_batch(self, document_id: str, records: List[ChunkRecord]):

        with self._lock:

            doc_chunks = self._chunks.setdefault(document_id, {})

            for record in records:
                doc_chunks[record.chunk_id] = record.copy()

            self._save_to_disk()

    def _update_batch(self, document_id: str, embeddings: Dict[str, List[float]]):

        with self._lock:

            doc_chunks = self._chunks.get(document_id, {})

            missing = [cid for cid in embeddings if cid not in doc_chunks]

            # All-or-nothing per batch
            if missing:
                raise KeyError(f"Unknown chunk ids for {document_id}: {missing}")

            for chunk_id, vector in embeddings.items():
                doc_chunks[chunk_id].embedding = list(vector)

            self._save_to_disk()

    # ============================================================
    # DISK PERSISTENCE
    # ============================================================

    def _load_from_disk(self):

        if not self._path or not os.path.exists(self._path):
            return

        try:

            with open(self._path, "r") as f:
                data = json.load(f)

        except (OSError, ValueError) as e:

            logger.error(
                "Chunk store load failed",
                extra={"path": self._path, "error": str(e)},
            )
            return

        for doc_id, chunks in data.items():

            self._chunks[doc_id] = {
                item["chunk_id"]: ChunkRecord(**item)
                for item in chunks
            }

    def _save_to_disk(self):

        if not self._path:
            return

        directory = os.path.dirname(self._path)

        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(self._path, "w") as f:

            json.dump(
                {
                    doc_id: [asdict(r) for r in chunks.values()]
                    for doc_id, chunks in self._chunks.items()
                },
                f,
            )


class QdrantChunkStore(ChunkStore):
    """
    Chunk store backed by a Qdrant collection.

    One point per chunk: id = chunk id, payload = doc_id / index / text,
    named vector `embedding` present once computed.
    """

    _SCROLL_LIMIT = 256

    def __init__(
        self,
        db: QdrantVectorDB,
        write_batch_size: int = STORE_WRITE_BATCH_SIZE,
    ):

        super().__init__(write_batch_size)

        self._db = db

    @staticmethod
    def _doc_filter(document_id: str) -> Filter:

        return Filter(
            must=[
                FieldCondition(
                    key="doc_id",
                    match=MatchValue(value=document_id),
                )
            ]
        )

    def list_chunks(self, document_id: str) -> List[ChunkRecord]:

        records = []

        scroll_offset = None

        while True:

            points, scroll_offset = self._db.client.scroll(
                collection_name=self._db.collection,
                scroll_filter=self._doc_filter(document_id),
                limit=self._SCROLL_LIMIT,
                offset=scroll_offset,
                with_payload=True,
                with_vectors=True,
            )

            for point in points:

                payload = point.payload or {}

                vectors = point.vector if isinstance(point.vector, dict) else {}

                embedding = vectors.get(EMBEDDING_VECTOR_NAME)

                records.append(
                    ChunkRecord(
                        chunk_id=str(point.id),
                        document_id=document_id,
                        index=int(payload.get("index", 0)),
                        text=payload.get("text") or "",
                        embedding=list(embedding) if embedding else None,
                    )
                )

            if scroll_offset is None:
                break

        records.sort(key=lambda r: r.index)

        return records

    def delete_document(self, document_id: str) -> int:

        removed = self.count_chunks(document_id)

        self._db.client.delete(
            collection_name=self._db.collection,
            points_selector=FilterSelector(
                filter=self._doc_filter(document_id)
            ),
            wait=True,
        )

        logger.info(
            "Deleted chunks from Qdrant",
            extra={"doc_id": document_id, "chunks": removed},
        )

        return removed

    def count_chunks(self, document_id: Optional[str] = None) -> int:

        result = self._db.client.count(
            collection_name=self._db.collection,
            count_filter=self._doc_filter(document_id) if document_id else None,
            exact=True,
        )

        return result.count

    def get_stats(self) -> dict:

        return {
            "backend": "qdrant",
            "collection": self._db.collection,
            "total_chunks": self.count_chunks(),
        }

    def _write_batch(self, document_id: str, records: List[ChunkRecord]):

        points = [
            PointStruct(
                id=record.chunk_id,
                vector=(
                    {EMBEDDING_VECTOR_NAME: record.embedding}
                    if record.embedding
                    else {}
                ),
                payload={
                    "doc_id": document_id,
                    "index": record.index,
                    "text": record.text,
                },
            )
            for record in records
        ]

        self._db.client.upsert(
            collection_name=self._db.collection,
            points=points,
            wait=True,
        )

    def _update_batch(self, document_id: str, embeddings: Dict[str, List[float]]):

        self._db.client.update_vectors(
            collection_name=self._db.collection,
            points=[
                PointVectors(
                    id=chunk_id,
                    vector={EMBEDDING_VECTOR_NAME: vector},
                )
                for chunk_id, vector in embeddings.items()
            ],
            wait=True,
        )
