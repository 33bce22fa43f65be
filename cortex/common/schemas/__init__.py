"""
Cortex Memory Schemas

Classification results and knowledge items shared by the classifier,
the knowledge store and the dispatcher.
"""

from .memory import (
    MemoryClassification,
    KnowledgeItem,
    compute_content_hash,
    MEMORY_TYPES,
    UNKNOWN,
)

__all__ = [
    "MemoryClassification",
    "KnowledgeItem",
    "compute_content_hash",
    "MEMORY_TYPES",
    "UNKNOWN",
]
