# clausewise/workflow/document_qa.py

import logging
import re
import time
from dataclasses import asdict
from typing import Dict, List, Optional

from clausewise.config import (
    CITATION_SNIPPET_CHARS,
    MAX_FOLLOW_UPS,
)
from clausewise.errors import (
    DocumentNotFoundError,
    InternalError,
    InvalidArgumentError,
    PermissionDeniedError,
)
from clausewise.memory.retriever import Evidence, RetrievalResult
from clausewise.prompts.prompt_builder import build_document_prompt, build_follow_up_prompt
from clausewise.workflow.conversation import MemoryContext
from clausewise.workflow.risk import detect_risky_clauses

logger = logging.getLogger(__name__)

_LIST_MARKER = re.compile(r"^[-*\d.\s]+")


def build_citations(evidence: List[Evidence]) -> List[Dict]:

    return [
        {
            "chunk_id": item.chunk_id,
            "snippet": (item.text or "")[:CITATION_SNIPPET_CHARS],
        }
        for item in evidence
    ]


def parse_follow_ups(text: str, limit: int = MAX_FOLLOW_UPS) -> List[str]:

    lines = (_LIST_MARKER.sub("", line).strip() for line in (text or "").splitlines())

    return [line for line in lines if line][:limit]


def generate_follow_ups(question: str, answer: str, llm_client) -> List[str]:
    """Optional extra; any failure yields no follow-ups."""

    try:

        return parse_follow_ups(
            llm_client.generate(build_follow_up_prompt(question, answer))
        )

    except Exception as e:

        logger.warning(
            "Follow-up generation failed",
            extra={"error": str(e)},
        )

        return []


def remember_turn(context, owner_id: str, session_id: Optional[str], question: str, answer: str):

    if session_id:
        context.memory.append(owner_id, session_id, question.strip(), answer)


def answer_question(
    question: str,
    document_id: str,
    owner_id: str,
    context,
    session_id: Optional[str] = None,
    remember: bool = False,
) -> Dict:
    """
    Answer a question about one document.

    Validation, lookup and ownership errors propagate unchanged. Retrieval
    degrades on its own. Summary and follow-ups are dropped on failure, and
    a failed generation is reported as InternalError.

    `remember` only reads the session. The caller stores the new turn with
    remember_turn() once the answer has actually been delivered.
    """

    if not question or not question.strip():
        raise InvalidArgumentError("Question is required.")

    if not document_id or not document_id.strip():
        raise InvalidArgumentError("documentId is required.")

    question = question.strip()

    document = context.documents.get(document_id)

    if document is None:
        raise DocumentNotFoundError()

    if document.owner_id and document.owner_id != owner_id:
        raise PermissionDeniedError()

    start = time.time()

    llm_client = context.llm_client

    memory = MemoryContext()

    if remember and session_id:
        memory = context.memory.build_context(owner_id, session_id, llm_client)

    retrieval: RetrievalResult = context.retriever.retrieve(document_id, question)

    context.metrics.record_retrieval(retrieval.diagnostics)

    prompt = build_document_prompt(
        question,
        retrieval.evidence,
        memory_summary=memory.summary,
        memory_recent=memory.recent,
    )

    try:

        answer = llm_client.generate(prompt)

    except Exception as e:

        logger.error(
            "Answer generation failed",
            extra={"doc_id": document_id, "error": str(e)},
            exc_info=True,
        )

        raise InternalError() from e

    citations = build_citations(retrieval.evidence)

    flagged_clauses = [asdict(c) for c in detect_risky_clauses(retrieval.evidence)]

    follow_ups = generate_follow_ups(question, answer, llm_client)

    time_ms = int((time.time() - start) * 1000)

    logger.info(
        "Question answered",
        extra={
            "doc_id": document_id,
            "evidence": len(retrieval.evidence),
            "flagged_clauses": len(flagged_clauses),
            "time_ms": time_ms,
        },
    )

    return {
        "answer": answer,
        "citations": citations,
        "flagged_clauses": flagged_clauses,
        "follow_ups": follow_ups,
        "meta": {
            "time_ms": time_ms,
            "top_chunk_ids": retrieval.top_chunk_ids,
            "retrieval": asdict(retrieval.diagnostics),
        },
    }
