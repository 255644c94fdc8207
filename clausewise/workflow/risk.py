# clausewise/workflow/risk.py

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from clausewise.config import (
    RISK_RULES,
    FLAGGED_CLAUSE_CHARS,
    MAX_FLAGGED_CLAUSES,
)

RiskRule = Tuple[str, str, Sequence[str]]


@dataclass
class FlaggedClause:
    chunk_id: str
    text: str
    risk: str
    symbol: str


def classify_risk(text: str, rules: Sequence[RiskRule] = RISK_RULES) -> Optional[Tuple[str, str]]:
    """(risk, symbol) of the first rule with a keyword in text, else None."""

    lowered = (text or "").lower()

    for risk, symbol, keywords in rules:

        if any(keyword in lowered for keyword in keywords):
            return risk, symbol

    return None


def detect_risky_clauses(
    chunks: Iterable,
    rules: Sequence[RiskRule] = RISK_RULES,
    limit: int = MAX_FLAGGED_CLAUSES,
) -> List[FlaggedClause]:
    """
    Tag evidence chunks by keyword category.

    Independent of retrieval ranking: chunks are tagged in the order given.
    """

    flagged = []

    for chunk in chunks:

        matched = classify_risk(chunk.text, rules)

        if matched is None:
            continue

        risk, symbol = matched

        flagged.append(
            FlaggedClause(
                chunk_id=chunk.chunk_id,
                text=(chunk.text or "")[:FLAGGED_CLAUSE_CHARS],
                risk=risk,
                symbol=symbol,
            )
        )

    return flagged[:limit]
