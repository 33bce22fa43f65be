"""
Cortex Agent Dispatch

Routes queries to the most capable available sub-agent.
"""

from .agents import AssistantAgent, KnowledgeAgent
from .base import AgentSelection, AvailabilityResult, ChatMessage, SubAgent
from .chat import ChatReply, ChatService
from .dispatcher import AgentDispatcher
from .matcher import AgentMatcher, LLMAgentMatcher
from .vault import ParsedVaultQuery, VaultAction, VaultAgent, VaultOperations, VaultQueryParser

__all__ = [
    "AssistantAgent",
    "KnowledgeAgent",
    "AgentSelection",
    "AvailabilityResult",
    "ChatMessage",
    "SubAgent",
    "ChatReply",
    "ChatService",
    "AgentDispatcher",
    "AgentMatcher",
    "LLMAgentMatcher",
    "ParsedVaultQuery",
    "VaultAction",
    "VaultAgent",
    "VaultOperations",
    "VaultQueryParser",
]
