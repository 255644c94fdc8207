# clausewise/prompts/prompt_builder.py

from typing import Iterable

from clausewise.prompts.system_prompts import (
    LEGAL_QA_SYSTEM_PROMPT,
    ANSWER_FORMAT_INSTRUCTIONS,
    SUMMARY_INSTRUCTIONS,
    FOLLOW_UP_INSTRUCTIONS,
)


def format_chunk_block(evidence: Iterable) -> str:
    """Evidence chunks tagged with the ids the model must cite."""

    return "\n\n".join(
        f"[[chunkId: {item.chunk_id}]]\n{item.text}"
        for item in evidence
    )


def build_document_prompt(
    question: str,
    evidence: Iterable,
    memory_summary: str = "",
    memory_recent: str = "",
) -> str:

    context_block = ""

    if memory_summary:
        context_block += f"\nSummary of earlier conversation:\n{memory_summary}\n"

    if memory_recent:
        context_block += f"\nRecent conversation (last 3 turns):\n{memory_recent}\n"

    prompt = f"""
{LEGAL_QA_SYSTEM_PROMPT.strip()}
{context_block}
Question: {question}

DOCUMENT CHUNKS:
{format_chunk_block(evidence)}

{ANSWER_FORMAT_INSTRUCTIONS.strip()}
"""

    return prompt.strip()


def build_summary_prompt(history: str) -> str:

    return f"{SUMMARY_INSTRUCTIONS}\n\n{history}"


def build_follow_up_prompt(question: str, answer: str) -> str:

    return (
        f"{FOLLOW_UP_INSTRUCTIONS}\n"
        f"Question: {question}\n"
        f"Answer: {answer}\n"
        "Return as a simple list."
    )
