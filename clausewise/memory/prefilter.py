# clausewise/memory/prefilter.py

import logging
import re
from typing import List, Sequence

from clausewise.config import (
    PREFILTER_CAP_STANDALONE,
    PREFILTER_MIN_TERM_LENGTH,
)

logger = logging.getLogger(__name__)

_TERM_SPLIT = re.compile(r"[^a-z0-9]+")


def query_terms(question: str) -> List[str]:
    """Distinct lowercase alphanumeric terms, first-seen order."""

    terms = []

    for term in _TERM_SPLIT.split((question or "").lower()):

        if len(term) >= PREFILTER_MIN_TERM_LENGTH and term not in terms:
            terms.append(term)

    return terms


def _first(cap: int, total: int) -> List[int]:
    return list(range(max(0, min(cap, total))))


def prefilter_chunks(
    question: str,
    chunk_texts: Sequence[str],
    cap: int = PREFILTER_CAP_STANDALONE,
) -> List[int]:
    """
    Cheap lexical pass that caps the candidate set before embedding.

    A chunk scores one point per distinct question term found anywhere in
    its lowercased text (substring match). Ties keep original order.
    Without any lexical signal the first `cap` chunks are returned.
    """

    try:

        terms = query_terms(question)

        total = len(chunk_texts)

        if not terms:
            return _first(cap, total)

        scores = []

        for text in chunk_texts:

            lowered = (text or "").lower()

            scores.append(sum(1 for term in terms if term in lowered))

        # sorted() is stable: equal scores stay in index order
        ranked = sorted(range(total), key=lambda i: -scores[i])

        if not ranked or scores[ranked[0]] == 0:
            return _first(cap, total)

        return ranked[:max(0, cap)]

    except Exception as e:

        logger.warning(
            "Prefilter failed; using first chunks",
            extra={"error": str(e), "cap": cap},
        )

        try:
            return _first(cap, len(chunk_texts))
        except TypeError:
            return []
