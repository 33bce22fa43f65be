"""
Agent Matcher

Asks an LLM to name the best agent for a query. Used by the dispatcher only
when more than one agent is available.
"""

import asyncio
import logging
from typing import List, Optional, Protocol, Sequence

from ..common.llm_client import LLMClient
from ..common.llm_utils import normalize_llm_answer
from .base import ChatMessage

logger = logging.getLogger("cortex.dispatch.matcher")

SELECTION_POLICY = """You pick the best agent to handle a user's request.

Rules:
1. Choose the agent whose description best matches the request
2. If several agents fit, choose the most specialized one
3. Answer with the agent name ONLY, no explanation"""

HISTORY_WINDOW = 3


class AgentMatcher(Protocol):
    """Names exactly one candidate for a query"""

    async def select_name(
        self,
        query: str,
        candidate_descriptions: Sequence[str],
        history: Optional[List[ChatMessage]] = None,
    ) -> str: ...


class LLMAgentMatcher:
    """AgentMatcher backed by LLMClient"""

    def __init__(self, llm_client: LLMClient, max_tokens: int = 50, timeout: float = 15.0):
        self._llm = llm_client
        self._max_tokens = max_tokens
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        return self._llm.is_available

    def build_prompt(
        self,
        query: str,
        candidate_descriptions: Sequence[str],
        history: Optional[List[ChatMessage]] = None,
    ) -> str:
        parts = ["Available agents:"]
        parts.extend(candidate_descriptions)

        recent = (history or [])[-HISTORY_WINDOW:]
        if recent:
            parts.append("")
            parts.append("Recent conversation:")
            parts.extend(f"{m.role}: {m.content[:200]}" for m in recent)

        parts.append("")
        parts.append(f"Request: {query}")
        parts.append("Agent name:")
        return "\n".join(parts)

    async def select_name(
        self,
        query: str,
        candidate_descriptions: Sequence[str],
        history: Optional[List[ChatMessage]] = None,
    ) -> str:
        """
        Raises:
            RuntimeError: LLM client unavailable
        """
        prompt = self.build_prompt(query, candidate_descriptions, history)
        raw = await asyncio.to_thread(
            self._llm.generate,
            prompt,
            system=SELECTION_POLICY,
            max_tokens=self._max_tokens,
            timeout=self._timeout,
        )
        answer = normalize_llm_answer(raw)
        logger.debug("Matcher answered %r (raw %r)", answer, raw)
        return answer
