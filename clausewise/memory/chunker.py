# clausewise/memory/chunker.py

import logging
from typing import List

from clausewise.config import (
    CHUNK_TARGET_WORDS,
    CHUNK_OVERLAP_WORDS,
)

logger = logging.getLogger(__name__)


def chunk_step(target_words: int, overlap_words: int) -> int:
    return max(1, target_words - max(0, overlap_words))


def chunk_text(
    text: str,
    target_words: int = CHUNK_TARGET_WORDS,
    overlap_words: int = CHUNK_OVERLAP_WORDS,
) -> List[str]:
    """
    Split text into overlapping word windows.

    Guarantees:
    • deterministic chunk generation
    • every chunk has at most target_words words
    • the last window always ends at the last word
    • no empty chunks
    """

    if not text:
        return []

    if target_words <= 0:
        raise ValueError(f"Invalid chunk size: {target_words}")

    # ============================================================
    # TOKENIZATION
    # ============================================================

    words = text.split()

    if not words:
        logger.warning("Chunking skipped: no words found")
        return []

    total_words = len(words)

    step = chunk_step(target_words, overlap_words)

    chunks = []

    # ============================================================
    # CHUNK GENERATION LOOP
    # ============================================================

    for start in range(0, total_words, step):

        end = min(total_words, start + target_words)

        chunk = " ".join(words[start:end])

        if chunk.strip():
            chunks.append(chunk)

        if end == total_words:
            break

    logger.info(
        "Chunking completed",
        extra={
            "total_words": total_words,
            "target_words": target_words,
            "overlap_words": overlap_words,
            "chunks_created": len(chunks),
        },
    )

    return chunks
