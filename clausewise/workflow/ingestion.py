# clausewise/workflow/ingestion.py

"""
Upload processing: extract → chunk → embed → write chunk records.

Unsupported or unreadable files do not fail the upload; the document is
marked `failed` with a message the user can act on. Embedding failures
only mean chunks are stored without vectors; retrieval backfills them.
A chunk write that fails partway is rolled back, and retrieval then
chunks the extracted text on the fly.
"""

import logging
from typing import List, Optional

from clausewise.config import (
    CHUNK_TARGET_WORDS,
    CHUNK_OVERLAP_WORDS,
    STORE_WRITE_BATCH_SIZE,
)
from clausewise.errors import (
    EmbeddingError,
    TextExtractionError,
    UnsupportedFileTypeError,
)
from clausewise.memory.chunker import chunk_text
from clausewise.memory.documents import DocumentRecord, DocumentRepository, DocumentStatus
from clausewise.memory.embedder import Embedder, EmbeddingTaskType
from clausewise.memory.loader import load_text
from clausewise.memory.store import ChunkStore

logger = logging.getLogger(__name__)

NO_TEXT_MESSAGE = "No text could be extracted from this file."
CHUNK_WRITE_FAILED_MESSAGE = "Processing failed. Please upload the file again."


def ingest_document(
    document_id: str,
    file_path: str,
    filename: str,
    owner_id: Optional[str],
    documents: DocumentRepository,
    store: ChunkStore,
    embedder: Optional[Embedder],
    target_words: int = CHUNK_TARGET_WORDS,
    overlap_words: int = CHUNK_OVERLAP_WORDS,
    write_batch_size: int = STORE_WRITE_BATCH_SIZE,
) -> DocumentRecord:

    record = DocumentRecord(
        document_id=document_id,
        owner_id=owner_id,
        filename=filename,
        storage_path=file_path,
        status=DocumentStatus.PROCESSING,
    )

    # Visible as processing right away
    documents.save(record)

    status_message = None

    try:

        text = load_text(file_path, filename)

    except UnsupportedFileTypeError as e:

        text = ""
        status_message = e.message

    except TextExtractionError as e:

        text = ""
        status_message = e.user_message

    record.extracted_text = text

    if not text.strip():

        record.status = DocumentStatus.FAILED
        record.status_message = status_message or NO_TEXT_MESSAGE

        documents.save(record)

        logger.warning(
            "Document has no usable text",
            extra={
                "doc_id": document_id,
                "filename": filename,
                "status_message": record.status_message,
            },
        )

        return record

    # Stays `processing` until every chunk batch has committed
    try:

        record.chunks_count = write_chunks(
            document_id,
            chunk_text(text, target_words, overlap_words),
            store,
            embedder,
            write_batch_size,
        )

    except Exception as e:

        logger.error(
            "Chunk write failed; discarding partial chunks",
            extra={"doc_id": document_id, "error": str(e)},
            exc_info=True,
        )

        record.chunks_count = 0

        try:

            store.delete_document(document_id)

        except Exception as cleanup_error:

            logger.error(
                "Partial chunk cleanup failed",
                extra={"doc_id": document_id, "error": str(cleanup_error)},
            )

            record.status = DocumentStatus.FAILED
            record.status_message = CHUNK_WRITE_FAILED_MESSAGE

            documents.save(record)

            return record

    # Without stored chunks, retrieval chunks the extracted text on the fly
    record.status = DocumentStatus.READY

    documents.save(record)

    logger.info(
        "Document ingestion complete",
        extra={
            "doc_id": document_id,
            "chunks": record.chunks_count,
            "characters": len(text),
        },
    )

    return record


def write_chunks(
    document_id: str,
    chunks: List[str],
    store: ChunkStore,
    embedder: Optional[Embedder],
    write_batch_size: int = STORE_WRITE_BATCH_SIZE,
) -> int:
    """
    Write chunks one store batch at a time, embedding each batch first.

    Returns the number of chunks written.
    """

    for start in range(0, len(chunks), write_batch_size):

        batch = chunks[start:start + write_batch_size]

        embeddings = None

        if embedder is not None:

            try:

                embeddings = embedder.embed(
                    batch,
                    task_type=EmbeddingTaskType.RETRIEVAL_DOCUMENT,
                )

            except EmbeddingError as e:

                logger.warning(
                    "Embedding computation failed for slice; continuing without embeddings",
                    extra={
                        "doc_id": document_id,
                        "slice_start": start,
                        "slice_size": len(batch),
                        "error": str(e),
                    },
                )

        store.add_chunks(
            document_id,
            batch,
            embeddings=embeddings,
            start_index=start,
        )

    return len(chunks)
