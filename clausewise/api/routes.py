import asyncio
import logging
import os
import time
import uuid
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, File, Header, Request, UploadFile
from fastapi.concurrency import run_in_threadpool

from clausewise.config import (
    MAX_FILE_SIZE_MB,
    PREFILTER_CAP_STANDALONE,
    REQUEST_TIMEOUT_SECONDS,
)
from clausewise.context import AppContext
from clausewise.errors import (
    DocumentNotFoundError,
    FileTooLargeError,
    InvalidArgumentError,
    PermissionDeniedError,
    RequestTimeoutError,
    UnauthenticatedError,
)
from clausewise.memory.documents import DocumentRecord
from clausewise.memory.loader import file_extension
from clausewise.models import (
    AskRequest,
    AskResponse,
    DeleteDocumentResponse,
    DocumentInfo,
    HealthResponse,
    ListDocumentsResponse,
    RetrieveRequest,
    RetrieveResponse,
    UploadResponse,
)
from clausewise.workflow.document_qa import answer_question, remember_turn
from clausewise.workflow.ingestion import ingest_document


logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================
# DEPENDENCIES
# ============================================================

def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:

    if not x_user_id or not x_user_id.strip():
        raise UnauthenticatedError()

    return x_user_id.strip()


# ============================================================
# HELPERS
# ============================================================

def generate_document_id() -> str:
    return f"doc_{uuid.uuid4().hex[:12]}"


def validate_file_size(content: bytes):

    size_mb = len(content) / (1024 * 1024)

    if size_mb > MAX_FILE_SIZE_MB:
        raise FileTooLargeError(f"File too large: {size_mb:.2f}MB")


def require_owned_document(
    context: AppContext,
    document_id: str,
    user_id: str,
) -> DocumentRecord:

    record = context.documents.get(document_id)

    if record is None:
        raise DocumentNotFoundError()

    if record.owner_id and record.owner_id != user_id:
        raise PermissionDeniedError()

    return record


def to_document_info(record: DocumentRecord) -> DocumentInfo:

    timestamp = record.upload_timestamp

    return DocumentInfo(
        document_id=record.document_id,
        filename=record.filename,
        status=record.status.value,
        status_message=record.status_message,
        chunks_count=record.chunks_count,
        upload_timestamp=timestamp.isoformat() if timestamp else None,
    )


def request_id_of(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


# ============================================================
# HEALTH
# ============================================================

@router.get("/health", response_model=HealthResponse)
def health_check(context: AppContext = Depends(get_context)):

    stats = context.store.get_stats()

    return HealthResponse(
        status="healthy",
        total_documents=len(context.documents),
        total_chunks=stats["total_chunks"],
        chunk_store=stats["backend"],
        embedder=context.embedder.health_check(),
    )


# ============================================================
# UPLOAD DOCUMENT
# ============================================================

@router.post("/upload", response_model=UploadResponse)
async def upload_document(
    request: Request,
    file: UploadFile = File(None),
    user_id: str = Depends(get_user_id),
    context: AppContext = Depends(get_context),
):

    if file is None:
        raise InvalidArgumentError("Provide a file")

    start_time = time.time()

    try:

        file_bytes = await file.read()

        validate_file_size(file_bytes)

        if not file_bytes:
            raise InvalidArgumentError("Uploaded file is empty.")

        document_id = generate_document_id()

        filename = file.filename or document_id

        file_path = os.path.join(
            context.upload_dir,
            f"{document_id}{file_extension(filename)}",
        )

        with open(file_path, "wb") as buffer:
            buffer.write(file_bytes)

        record = await run_in_threadpool(
            ingest_document,
            document_id,
            file_path,
            filename,
            user_id,
            context.documents,
            context.store,
            context.embedder,
        )

        context.analytics.track_document_upload(
            distinct_id=user_id,
            document_id=document_id,
            filename=filename,
            status=record.status.value,
            chunks=record.chunks_count,
            latency=time.time() - start_time,
        )

        return UploadResponse(
            document_id=document_id,
            filename=filename,
            status=record.status.value,
            status_message=record.status_message,
            chunks_created=record.chunks_count,
        )

    except Exception as e:

        context.analytics.track_error(
            distinct_id=request_id_of(request),
            error_type=type(e).__name__,
            error_message=str(e),
            endpoint="/upload",
        )

        raise


# ============================================================
# ASK QUESTION
# ============================================================

@router.post("/ask", response_model=AskResponse)
async def ask_question(
    payload: AskRequest,
    request: Request,
    user_id: str = Depends(get_user_id),
    context: AppContext = Depends(get_context),
):

    start_time = time.time()

    try:

        try:

            result = await asyncio.wait_for(
                run_in_threadpool(
                    answer_question,
                    payload.question,
                    payload.document_id,
                    user_id,
                    context,
                    payload.session_id,
                    payload.remember,
                ),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )

        except asyncio.TimeoutError:

            logger.error(
                "Question deadline exceeded",
                extra={
                    "doc_id": payload.document_id,
                    "timeout_seconds": REQUEST_TIMEOUT_SECONDS,
                },
            )

            raise RequestTimeoutError()

        if payload.remember:
            remember_turn(
                context,
                user_id,
                payload.session_id,
                payload.question,
                result["answer"],
            )

        retrieval = result["meta"]["retrieval"]

        context.analytics.track_retrieval(
            distinct_id=user_id,
            document_id=payload.document_id,
            chunks_retrieved=len(result["citations"]),
            top_score=retrieval["max_similarity"],
            degraded=retrieval["embedding_failures"] > 0 or retrieval["query_embedding_failed"],
            used_fallback_chunks=retrieval["used_fallback_chunks"],
        )

        context.analytics.track_question(
            distinct_id=user_id,
            document_id=payload.document_id,
            question=payload.question,
            latency=time.time() - start_time,
            success=True,
        )

        return AskResponse(**result)

    except Exception as e:

        context.analytics.track_error(
            distinct_id=request_id_of(request),
            error_type=type(e).__name__,
            error_message=str(e),
            endpoint="/ask",
        )

        raise


# ============================================================
# RETRIEVE EVIDENCE
# ============================================================

@router.post("/retrieve", response_model=RetrieveResponse)
def retrieve_evidence(
    payload: RetrieveRequest,
    user_id: str = Depends(get_user_id),
    context: AppContext = Depends(get_context),
):

    if not payload.question:
        raise InvalidArgumentError("Question is required.")

    if not payload.document_id:
        raise InvalidArgumentError("documentId is required.")

    require_owned_document(context, payload.document_id, user_id)

    result = context.retriever.retrieve(
        payload.document_id,
        payload.question,
        prefilter_cap=PREFILTER_CAP_STANDALONE,
    )

    context.metrics.record_retrieval(result.diagnostics)

    return RetrieveResponse(
        document_id=result.document_id,
        evidence=[
            {
                "chunk_id": e.chunk_id,
                "index": e.index,
                "text": e.text,
                "similarity": e.similarity,
            }
            for e in result.evidence
        ],
        diagnostics=asdict(result.diagnostics),
    )


# ============================================================
# LIST / GET DOCUMENTS
# ============================================================

@router.get("/documents", response_model=ListDocumentsResponse)
def list_documents(
    user_id: str = Depends(get_user_id),
    context: AppContext = Depends(get_context),
):

    documents = [
        to_document_info(record)
        for record in context.documents.list_for_owner(user_id)
    ]

    return ListDocumentsResponse(
        documents=documents,
        total_documents=len(documents),
        total_chunks=sum(d.chunks_count for d in documents),
    )


@router.get("/documents/{document_id}", response_model=DocumentInfo)
def get_document(
    document_id: str,
    user_id: str = Depends(get_user_id),
    context: AppContext = Depends(get_context),
):

    return to_document_info(require_owned_document(context, document_id, user_id))


# ============================================================
# DELETE DOCUMENT
# ============================================================

@router.delete("/documents/{document_id}", response_model=DeleteDocumentResponse)
def delete_document(
    document_id: str,
    user_id: str = Depends(get_user_id),
    context: AppContext = Depends(get_context),
):

    record = require_owned_document(context, document_id, user_id)

    if record.storage_path:

        try:

            if os.path.exists(record.storage_path):
                os.remove(record.storage_path)

        except OSError as e:

            logger.warning(
                "Stored file delete failed (continuing)",
                extra={"doc_id": document_id, "error": str(e)},
            )

    chunks_deleted = 0

    try:

        chunks_deleted = context.store.delete_document(document_id)

    except Exception as e:

        logger.warning(
            "Failed deleting chunks; continuing",
            extra={"doc_id": document_id, "error": str(e)},
        )

    context.documents.delete(document_id)

    context.analytics.track_document_deleted(user_id, document_id, chunks_deleted)

    logger.info(
        "Document deleted",
        extra={"doc_id": document_id, "chunks": chunks_deleted},
    )

    return DeleteDocumentResponse(
        document_id=document_id,
        success=True,
        chunks_deleted=chunks_deleted,
    )


# ============================================================
# METRICS ENDPOINT
# ============================================================

@router.get("/metrics")
def get_metrics(context: AppContext = Depends(get_context)):

    return context.metrics.get_metrics()
