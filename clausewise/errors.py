# clausewise/errors.py

"""
Error taxonomy.

Caller-visible errors carry an HTTP status and a message that is safe to
return. Internal errors (EmbeddingError, TextExtractionError) are caught
inside the pipeline and never reach the caller directly.
"""

from typing import Optional


class ClauseWiseError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "internal"
    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthenticatedError(ClauseWiseError):
    status_code = 401
    code = "unauthenticated"
    default_message = "You must be signed in."


class InvalidArgumentError(ClauseWiseError):
    status_code = 400
    code = "invalid-argument"
    default_message = "Invalid request."


class PermissionDeniedError(ClauseWiseError):
    status_code = 403
    code = "permission-denied"
    default_message = "Not your document."


class DocumentNotFoundError(ClauseWiseError):
    status_code = 404
    code = "not-found"
    default_message = "Document not found."


class DocumentNotReadyError(ClauseWiseError):
    """Document exists but has no usable text yet. Retry later."""

    status_code = 409
    code = "failed-precondition"
    default_message = "Document has no extracted text yet. Please try again later."


class FileTooLargeError(ClauseWiseError):
    status_code = 413
    code = "file-too-large"
    default_message = "File too large."


class UnsupportedFileTypeError(ClauseWiseError):
    status_code = 415
    code = "unsupported-file-type"
    default_message = "Unsupported file type. Please upload PDF, DOCX, or TXT."

    @classmethod
    def for_extension(cls, extension: str) -> "UnsupportedFileTypeError":
        return cls(
            f"Unsupported file type {extension or '(none)'}. "
            "Please upload PDF, DOCX, or TXT."
        )


class RequestTimeoutError(ClauseWiseError):
    status_code = 504
    code = "deadline-exceeded"
    default_message = "The request took too long. Please try again."


class InternalError(ClauseWiseError):
    status_code = 500
    code = "internal"
    default_message = "An unexpected error occurred while processing your question."


# ============================================================
# INTERNAL (never surfaced as-is)
# ============================================================

class EmbeddingError(RuntimeError):
    """An embedding batch failed."""

    def __init__(self, message: str, batch_start: int = 0, batch_size: int = 0):
        super().__init__(message)
        self.batch_start = batch_start
        self.batch_size = batch_size


class TextExtractionError(RuntimeError):
    """The parser could not read the uploaded file."""

    user_message = (
        "Parsing failed. Please try a different file or format "
        "(PDF, DOCX, or TXT)."
    )
