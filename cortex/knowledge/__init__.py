"""
Cortex Knowledge Store

Content-addressed, vector-indexed storage of classified knowledge items,
the sources that feed it and the service that ties them together.
"""

from .index import InMemoryVectorIndex, VectorIndex
from .markdown import MarkdownParser, ParsedMarkdown
from .service import KnowledgeService, SyncReport
from .store import KnowledgeStore, SearchHit, UpsertResult
from .vault import MarkdownNote, NoteInfo, ObsidianVaultManager, VaultSearchHit

__all__ = [
    "InMemoryVectorIndex",
    "VectorIndex",
    "MarkdownParser",
    "ParsedMarkdown",
    "KnowledgeService",
    "SyncReport",
    "KnowledgeStore",
    "SearchHit",
    "UpsertResult",
    "MarkdownNote",
    "NoteInfo",
    "ObsidianVaultManager",
    "VaultSearchHit",
]
