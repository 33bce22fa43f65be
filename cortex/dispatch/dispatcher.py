"""
Agent Dispatcher

Selects one sub-agent for a query.

Algorithm:
1. Check availability of every agent concurrently; errors mean unavailable
2. No agents left -> no selection
3. One agent -> selected (1.0) if it can handle the query, else no selection
4. Several -> ask the matcher to name one:
   - known name -> that agent (0.9, "AI selection")
   - unknown or empty -> first agent (0.5, "Fallback to first available")
   - failure or timeout -> first agent (0.3, "Error fallback")
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from ..common.config import DispatchConfig, RetryConfig
from ..common.retry import with_retry
from .base import AgentSelection, AvailabilityResult, ChatMessage, SubAgent
from .matcher import AgentMatcher

logger = logging.getLogger("cortex.dispatch.dispatcher")

SINGLE_AGENT_CONFIDENCE = 1.0
AI_SELECTION_CONFIDENCE = 0.9
FALLBACK_CONFIDENCE = 0.5
ERROR_FALLBACK_CONFIDENCE = 0.3

REASON_SINGLE = "only available agent that can handle the query"
REASON_AI = "AI selection"
REASON_FALLBACK = "Fallback to first available"
REASON_ERROR = "Error fallback"


class AgentDispatcher:
    """Capability-based agent selection with an AI tie-break"""

    def __init__(
        self,
        agents: Sequence[SubAgent],
        matcher: AgentMatcher,
        config: Optional[DispatchConfig] = None,
        retry: Optional[RetryConfig] = None,
    ):
        self._agents = list(agents)
        self._matcher = matcher
        self._config = config or DispatchConfig()
        self._retry = retry or RetryConfig()
        logger.info(
            "AgentDispatcher initialized with %d agents: %s",
            len(self._agents), [a.name for a in self._agents],
        )

    @property
    def agents(self) -> List[SubAgent]:
        return list(self._agents)

    async def _check(self, agent: SubAgent) -> AvailabilityResult:
        try:
            return AvailabilityResult(agent=agent, available=bool(await agent.is_available()))
        except Exception as e:
            logger.warning("Agent %s availability check failed: %s", agent.name, e)
            return AvailabilityResult(agent=agent, available=False, error=str(e))

    async def available_agents(self) -> List[SubAgent]:
        """Agents passing their availability check, in original order"""
        results = await asyncio.gather(*(self._check(a) for a in self._agents))
        return [r.agent for r in results if r.available]

    async def select_agent(
        self,
        query: str,
        history: Optional[List[ChatMessage]] = None,
    ) -> Optional[AgentSelection]:
        """
        Pick an agent for the query.

        Returns:
            AgentSelection, or None when no agent can take the query
        """
        history = history or []
        logger.debug("Selecting agent for query: %r", query)

        available = await self.available_agents()
        if not available:
            logger.warning("No available sub-agents")
            return None

        if len(available) == 1:
            return await self._select_single(available[0], query, history)

        return await self._select_with_matcher(query, available, history)

    async def _select_single(
        self,
        agent: SubAgent,
        query: str,
        history: List[ChatMessage],
    ) -> Optional[AgentSelection]:
        try:
            can_handle = await agent.can_handle(query, history)
        except Exception as e:
            logger.warning("Agent %s applicability check failed: %s", agent.name, e)
            return None

        if not can_handle:
            logger.debug("Single agent %s cannot handle query", agent.name)
            return None

        logger.debug("Selected single agent %s", agent.name)
        return AgentSelection(agent, SINGLE_AGENT_CONFIDENCE, REASON_SINGLE)

    async def _select_with_matcher(
        self,
        query: str,
        agents: List[SubAgent],
        history: List[ChatMessage],
    ) -> AgentSelection:
        descriptions = [f"{a.name}: {a.description}" for a in agents]

        async def attempt():
            return await asyncio.wait_for(
                self._matcher.select_name(query, descriptions, history),
                timeout=self._config.matcher_timeout,
            )

        try:
            name = await with_retry(
                attempt,
                max_attempts=self._config.matcher_max_attempts,
                initial_delay=self._retry.initial_delay,
                max_delay=self._retry.max_delay,
                factor=self._retry.factor,
            )
        except Exception as e:
            logger.error("AI agent selection failed, using first available agent: %s", e)
            return AgentSelection(agents[0], ERROR_FALLBACK_CONFIDENCE, REASON_ERROR)

        selected = self._find(agents, name)
        if selected is None:
            logger.warning(
                "AI selected unknown agent %r, falling back to first available", name
            )
            return AgentSelection(agents[0], FALLBACK_CONFIDENCE, REASON_FALLBACK)

        logger.info("Selected agent %s for query", selected.name)
        return AgentSelection(selected, AI_SELECTION_CONFIDENCE, REASON_AI)

    @staticmethod
    def _find(agents: List[SubAgent], name: Optional[str]) -> Optional[SubAgent]:
        if not name or not name.strip():
            return None
        name = name.strip()
        for agent in agents:
            if agent.name == name:
                return agent
        lowered = name.lower()
        for agent in agents:
            if agent.name.lower() == lowered:
                return agent
        return None
