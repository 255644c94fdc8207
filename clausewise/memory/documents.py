# clausewise/memory/documents.py

import json
import logging
import os
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class DocumentStatus(str, Enum):
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class DocumentRecord(BaseModel):
    """An uploaded document. The retrieval pipeline only reads it."""

    document_id: str
    owner_id: Optional[str] = None
    filename: Optional[str] = None
    storage_path: Optional[str] = None
    status: DocumentStatus = DocumentStatus.PROCESSING
    status_message: Optional[str] = None
    extracted_text: str = ""
    chunks_count: int = 0
    upload_timestamp: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_text(self) -> bool:
        return bool(self.extracted_text and self.extracted_text.strip())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentRepository:
    """
    Document records persisted to a JSON registry file.
    """

    def __init__(self, path: Optional[str] = None):

        self._path = path
        self._lock = threading.Lock()
        self._documents: Dict[str, DocumentRecord] = {}

        self._load()

    # ============================================================
    # PUBLIC API
    # ============================================================

    def get(self, document_id: str) -> Optional[DocumentRecord]:

        with self._lock:
            record = self._documents.get(document_id)
            return record.model_copy() if record else None

    def save(self, record: DocumentRecord) -> DocumentRecord:

        record.updated_at = utcnow()

        if record.upload_timestamp is None:
            record.upload_timestamp = record.updated_at

        with self._lock:
            self._documents[record.document_id] = record.model_copy()
            self._save()

        return record

    def delete(self, document_id: str) -> bool:

        with self._lock:

            if self._documents.pop(document_id, None) is None:
                return False

            self._save()

        return True

    def list_all(self) -> List[DocumentRecord]:

        with self._lock:
            return [r.model_copy() for r in self._documents.values()]

    def list_for_owner(self, owner_id: str) -> List[DocumentRecord]:

        return [
            r for r in self.list_all()
            if r.owner_id == owner_id
        ]

    def __len__(self) -> int:
        return len(self._documents)

    # ============================================================
    # PERSISTENCE
    # ============================================================

    def _load(self):

        if not self._path or not os.path.exists(self._path):
            logger.info("Document registry file not found. Starting fresh.")
            return

        try:

            with open(self._path, "r") as f:
                data = json.load(f)

            for doc_id, meta in data.items():
                self._documents[doc_id] = DocumentRecord(**meta)

            logger.info(
                "Document registry loaded",
                extra={"documents": len(self._documents)},
            )

        except (OSError, ValueError) as e:

            logger.error(
                "Document registry load failed",
                extra={"error": str(e)},
            )

    def _save(self):

        if not self._path:
            return

        directory = os.path.dirname(self._path)

        if directory:
            os.makedirs(directory, exist_ok=True)

        serializable = {}

        for doc_id, record in self._documents.items():
            serializable[doc_id] = record.model_dump(mode="json")

        with open(self._path, "w") as f:
            json.dump(serializable, f)
