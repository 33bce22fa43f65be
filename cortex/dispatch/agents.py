"""
Built-in Agents

knowledge-search answers from the knowledge store; general-assistant is a
plain LLM conversation.
"""

import logging
import re
from typing import List, Optional

from ..common.llm_client import LLMClient
from ..knowledge.service import KnowledgeService
from ..knowledge.store import SearchHit
from .base import ChatMessage, SubAgent

logger = logging.getLogger("cortex.dispatch.agents")

KNOWLEDGE_KEYWORDS = (
    "find", "search", "look up", "note", "notes", "vault", "knowledge",
    "remember", "what did", "where did", "document", "docs", "meeting",
    "wrote", "written", "obsidian",
)

SYNTHESIS_PROMPT = """Answer the question using only the notes below.
If the notes do not contain the answer, say so. Cite note paths in brackets.

Question: {query}

Notes:
{notes}

Answer:"""

ASSISTANT_SYSTEM = "You are a concise, helpful assistant."

NO_RESULTS = "I couldn't find anything relevant in your notes."

EXCERPT_LENGTH = 300


def format_excerpts(hits: List[SearchHit]) -> str:
    """Ranked excerpt list used when no LLM is available"""
    lines = [f"Found {len(hits)} relevant note(s):"]
    for rank, hit in enumerate(hits, 1):
        item = hit.item
        title = item.metadata.get("title") or item.path or item.source_id
        excerpt = " ".join(item.content.split())[:EXCERPT_LENGTH]
        label = f" [{item.classification.primary}]" if item.classification else ""
        lines.append(f"{rank}. {title}{label} (similarity {hit.similarity:.2f})")
        if excerpt:
            lines.append(f"   {excerpt}")
    return "\n".join(lines)


class KnowledgeAgent(SubAgent):
    """Answers questions from synced notes"""

    name = "knowledge-search"
    description = (
        "Searches the user's synced notes and documents to answer questions "
        "about what they wrote, decided or recorded"
    )

    def __init__(
        self,
        service: KnowledgeService,
        llm_client: Optional[LLMClient] = None,
        limit: int = 5,
    ):
        self._service = service
        self._llm = llm_client
        self._limit = limit
        self._keyword_re = re.compile(
            r"\b(" + "|".join(re.escape(k) for k in KNOWLEDGE_KEYWORDS) + r")\b",
            re.IGNORECASE,
        )

    async def is_available(self) -> bool:
        return self._service.store.count() > 0

    async def can_handle(self, query: str, history: Optional[List[ChatMessage]] = None) -> bool:
        return bool(query and self._keyword_re.search(query))

    async def handle(self, query: str, history: Optional[List[ChatMessage]] = None) -> str:
        hits = await self._service.search_knowledge(query, limit=self._limit)
        if not hits:
            return NO_RESULTS

        if self._llm is not None and self._llm.is_available:
            try:
                return await self._llm.agenerate(
                    SYNTHESIS_PROMPT.format(query=query, notes=self._format_notes(hits)),
                    max_tokens=1024,
                )
            except Exception as e:
                logger.warning("LLM synthesis failed, returning excerpts: %s", e)

        return format_excerpts(hits)

    @staticmethod
    def _format_notes(hits: List[SearchHit]) -> str:
        blocks = []
        for hit in hits:
            item = hit.item
            blocks.append(f"[{item.path or item.source_id}]\n{item.content[:2000]}")
        return "\n\n".join(blocks)


class AssistantAgent(SubAgent):
    """General conversation through the configured LLM"""

    name = "general-assistant"
    description = "General conversation and questions that do not need the user's notes"

    def __init__(self, llm_client: LLMClient, history_window: int = 10):
        self._llm = llm_client
        self._history_window = history_window

    async def is_available(self) -> bool:
        return self._llm.is_available

    async def can_handle(self, query: str, history: Optional[List[ChatMessage]] = None) -> bool:
        return True

    async def handle(self, query: str, history: Optional[List[ChatMessage]] = None) -> str:
        recent = (history or [])[-self._history_window:]
        transcript = "\n".join(f"{m.role}: {m.content}" for m in recent)
        prompt = f"{transcript}\nuser: {query}" if transcript else query
        return await self._llm.agenerate(prompt, system=ASSISTANT_SYSTEM, max_tokens=1024)
