# clausewise/memory/loader.py

"""
Plain-text extraction for uploaded documents.

Supports:
- PDF files (pypdf)
- DOCX files (python-docx)
- TXT files

Legacy .doc and every other extension are rejected as unsupported.
"""

import logging
import os
from typing import Optional

import docx
from pypdf import PdfReader

from clausewise.config import MAX_DOCUMENT_CHARACTERS, SUPPORTED_FILE_EXTENSIONS
from clausewise.errors import TextExtractionError, UnsupportedFileTypeError

logger = logging.getLogger(__name__)


# ============================================================
# SAFETY: CHARACTER LIMIT
# ============================================================

def enforce_character_limit(text: str) -> str:

    if not text:
        return ""

    if len(text) > MAX_DOCUMENT_CHARACTERS:

        logger.warning(
            "Text exceeds max character limit, truncating",
            extra={
                "original_length": len(text),
                "max_allowed": MAX_DOCUMENT_CHARACTERS,
            },
        )

        return text[:MAX_DOCUMENT_CHARACTERS]

    return text


# ============================================================
# FORMAT LOADERS
# ============================================================

def load_pdf_text(file_path: str) -> str:

    reader = PdfReader(file_path)

    parts = []

    for page in reader.pages:

        text = page.extract_text()

        if text:
            parts.append(text)

    return "\n".join(parts)


def load_docx_text(file_path: str) -> str:

    document = docx.Document(file_path)

    return "\n".join(p.text for p in document.paragraphs if p.text)


def load_txt_text(file_path: str) -> str:

    with open(file_path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


_LOADERS = {
    ".pdf": load_pdf_text,
    ".docx": load_docx_text,
    ".txt": load_txt_text,
}


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


# ============================================================
# UNIFIED ENTRYPOINT
# ============================================================

def load_text(file_path: str, filename: Optional[str] = None) -> str:
    """
    Extract plain text by file extension.

    Raises UnsupportedFileTypeError for .doc and unknown types and
    TextExtractionError when the parser fails.
    """

    extension = file_extension(filename or file_path)

    loader = _LOADERS.get(extension) if extension in SUPPORTED_FILE_EXTENSIONS else None

    if loader is None:
        raise UnsupportedFileTypeError.for_extension(extension)

    try:

        text = loader(file_path)

    except Exception as e:

        logger.warning(
            "Parsing failed",
            extra={
                "file_path": file_path,
                "extension": extension,
                "error": str(e),
            },
        )

        raise TextExtractionError(str(e)) from e

    return enforce_character_limit(text)
