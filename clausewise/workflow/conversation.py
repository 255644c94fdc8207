# clausewise/workflow/conversation.py

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from clausewise.config import (
    MEMORY_RECENT_TURNS,
    MEMORY_SUMMARY_THRESHOLD,
)
from clausewise.prompts.prompt_builder import build_summary_prompt

logger = logging.getLogger(__name__)


@dataclass
class Turn:
    sender: str  # "user" or "assistant"
    text: str

    def render(self) -> str:
        speaker = "User" if self.sender == "user" else "Assistant"
        return f"{speaker}: {self.text}"


@dataclass
class MemoryContext:
    recent: str = ""
    summary: str = ""


class ConversationMemory:
    """
    Per-session conversation turns, kept in process.
    """

    def __init__(self):

        self._lock = threading.Lock()
        self._sessions: Dict[Tuple[str, str], List[Turn]] = {}

    def turns(self, owner_id: str, session_id: str) -> List[Turn]:

        with self._lock:
            return list(self._sessions.get((owner_id, session_id), []))

    def append(self, owner_id: str, session_id: str, question: str, answer: str):

        with self._lock:

            turns = self._sessions.setdefault((owner_id, session_id), [])

            turns.append(Turn("user", question))
            turns.append(Turn("assistant", answer))

    def clear(self, owner_id: str, session_id: str):

        with self._lock:
            self._sessions.pop((owner_id, session_id), None)

    def build_context(
        self,
        owner_id: str,
        session_id: Optional[str],
        llm_client=None,
    ) -> MemoryContext:
        """
        Recent turns verbatim plus, for long sessions, a summary of the
        older ones. A failed summary is dropped.
        """

        if not session_id:
            return MemoryContext()

        rendered = [t.render() for t in self.turns(owner_id, session_id)]

        if not rendered:
            return MemoryContext()

        context = MemoryContext(
            recent="\n".join(rendered[-MEMORY_RECENT_TURNS:]),
        )

        if len(rendered) > MEMORY_SUMMARY_THRESHOLD and llm_client is not None:

            history = "\n".join(rendered[:-MEMORY_RECENT_TURNS])

            try:

                context.summary = llm_client.generate(build_summary_prompt(history))

            except Exception as e:

                logger.warning(
                    "Summarization failed; continuing without summary",
                    extra={"session_id": session_id, "error": str(e)},
                )

        return context
