"""
Cortex

Hybrid memory classification, vector retrieval and agent dispatch for
personal knowledge sources.

Philosophy:
- Every note is classified by an ensemble, never by a single opinion
- Unchanged content is never re-embedded (content-addressed storage)
- Low-signal guesses become "unknown", not confident labels
- Routing degrades to a deterministic fallback instead of failing

Usage:
    from cortex.common import load_config, EmbeddingService
    from cortex.classifier import build_default_classifier
    from cortex.knowledge import KnowledgeStore, KnowledgeService
    from cortex.dispatch import AgentDispatcher, ChatService
"""

__version__ = "0.1.0"
