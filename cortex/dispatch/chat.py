"""
Chat Service

Per-session history around the dispatcher: record the query, route it,
record the answer.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional

from .base import ChatMessage
from .dispatcher import AgentDispatcher

logger = logging.getLogger("cortex.dispatch.chat")

NO_AGENT_REPLY = "Sorry, none of my agents can help with that right now."


@dataclass
class ChatReply:
    """Answer plus the dispatch decision behind it"""
    content: str
    agent: Optional[str] = None
    confidence: float = 0.0
    reason: Optional[str] = None


class ChatService:
    """In-memory chat sessions routed through an AgentDispatcher"""

    def __init__(self, dispatcher: AgentDispatcher, max_history_size: int = 20):
        self._dispatcher = dispatcher
        self._max_history_size = max_history_size
        self._sessions: Dict[str, Deque[ChatMessage]] = {}

    def history(self, session_id: str) -> List[ChatMessage]:
        return list(self._sessions.get(session_id, ()))

    def clear(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def chat(self, query: str, session_id: str = "default") -> ChatReply:
        session = self._sessions.setdefault(
            session_id, deque(maxlen=self._max_history_size)
        )
        prior = list(session)
        user_message = ChatMessage(role="user", content=query)

        selection = await self._dispatcher.select_agent(query, prior)
        if selection is None:
            logger.info("No agent selected for session %s", session_id)
            reply = ChatReply(content=NO_AGENT_REPLY)
        else:
            content = await selection.agent.handle(query, prior)
            reply = ChatReply(
                content=content,
                agent=selection.agent.name,
                confidence=selection.confidence,
                reason=selection.reason,
            )

        # Record the turn only once the agent has answered
        session.append(user_message)
        session.append(ChatMessage(
            role="assistant",
            content=reply.content,
            metadata={"agent": reply.agent, "reason": reply.reason},
        ))
        return reply
