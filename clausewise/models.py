# clausewise/models.py
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional


class AskRequest(BaseModel):
    """Request to ask a question about a document."""
    document_id: Optional[str] = Field(None, max_length=100)
    question: Optional[str] = Field(None, max_length=2000)
    session_id: Optional[str] = Field(None, max_length=100)
    remember: bool = False

    @field_validator('question', 'document_id', 'session_id')
    @classmethod
    def strip_whitespace(cls, v):
        """Blank values are rejected later with a 400, not here."""
        return v.strip() if isinstance(v, str) else v


class RetrieveRequest(BaseModel):
    """Request for the raw evidence set of a question."""
    document_id: Optional[str] = Field(None, max_length=100)
    question: Optional[str] = Field(None, max_length=2000)

    @field_validator('question', 'document_id')
    @classmethod
    def strip_whitespace(cls, v):
        return v.strip() if isinstance(v, str) else v


class Citation(BaseModel):
    chunk_id: str
    snippet: str


class FlaggedClause(BaseModel):
    chunk_id: str
    text: str
    risk: str
    symbol: str


class AskResponse(BaseModel):
    """Answer with citation-stable chunk ids."""
    answer: str
    citations: List[Citation]
    flagged_clauses: List[FlaggedClause]
    follow_ups: List[str]
    meta: Dict[str, Any]


class EvidenceItem(BaseModel):
    chunk_id: str
    index: int
    text: str
    similarity: float


class RetrieveResponse(BaseModel):
    document_id: str
    evidence: List[EvidenceItem]
    diagnostics: Dict[str, Any]


class UploadResponse(BaseModel):
    """Response after uploading a document."""
    document_id: str
    filename: str
    status: str
    status_message: Optional[str] = None
    chunks_created: int
    message: str = "Document uploaded and processed"


class DocumentInfo(BaseModel):
    """Information about a stored document."""
    document_id: str
    filename: Optional[str] = None
    status: str
    status_message: Optional[str] = None
    chunks_count: int
    upload_timestamp: Optional[str] = None


class ListDocumentsResponse(BaseModel):
    """Response listing the caller's documents."""
    documents: List[DocumentInfo]
    total_documents: int
    total_chunks: int


class DeleteDocumentResponse(BaseModel):
    """Response after deleting a document."""
    document_id: str
    success: bool
    chunks_deleted: int
    message: str = "Deleted"


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    total_documents: int
    total_chunks: int
    chunk_store: str
    embedder: Dict[str, Any]
