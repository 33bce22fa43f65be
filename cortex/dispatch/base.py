"""
Sub-Agent Contract

Every agent has a name, a short description used for selection, and two
capability checks: availability (can it operate now) and applicability
(can it handle this query).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass
class ChatMessage:
    """One turn of a chat session"""
    role: str  # "user" or "assistant"
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SubAgent(ABC):
    """
    Abstract base class for query handlers.

    Each agent must implement:
    - can_handle: applicability to a specific query
    - handle: produce the answer text
    """

    name: str = ""
    description: str = ""

    @abstractmethod
    async def can_handle(self, query: str, history: Optional[List[ChatMessage]] = None) -> bool:
        pass

    @abstractmethod
    async def handle(self, query: str, history: Optional[List[ChatMessage]] = None) -> str:
        pass

    async def is_available(self) -> bool:
        return True


@dataclass
class AgentSelection:
    """Dispatcher outcome; confidence is a dispatch-quality tier"""
    agent: SubAgent
    confidence: float
    reason: str


@dataclass
class AvailabilityResult:
    """Availability check converted from exception to value"""
    agent: SubAgent
    available: bool
    error: Optional[str] = None
