"""
Memory Schemas

Classification results and stored knowledge items.

Core principle: an item's content hash is the only dedup signal. Content that
hashes the same is never re-embedded or re-classified.
"""

import hashlib
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


UNKNOWN = "unknown"

MEMORY_TYPES = (
    "meeting",
    "project",
    "task",
    "note",
    "code",
    "research",
    "documentation",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Classification
# ============================================================================

class MemoryClassification(BaseModel):
    """Result of a single classification strategy or of the ensemble"""
    model_config = ConfigDict(frozen=True)

    primary: str = Field(..., description="Winning category or 'unknown'")
    secondary: Optional[str] = Field(default=None, description="Producing strategy or 'ensemble'")
    confidence: float = Field(ge=0.0, le=1.0, default=0.0)
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def unknown(cls, secondary: Optional[str] = None, **attributes: Any) -> "MemoryClassification":
        """Degraded result: no category, zero confidence."""
        return cls(primary=UNKNOWN, secondary=secondary, confidence=0.0, attributes=attributes)

    @property
    def is_unknown(self) -> bool:
        return self.primary == UNKNOWN


# ============================================================================
# Knowledge items
# ============================================================================

class KnowledgeItem(BaseModel):
    """
    A stored unit of knowledge.

    Identity is (source, source_id). The embedding is generated from
    ``content`` and is absent for blank content.
    """
    source: str
    source_id: str
    path: str = ""
    content: str = ""
    content_hash: str = ""
    embedding: Optional[List[float]] = None
    classification: Optional[MemoryClassification] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source, self.source_id)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


def compute_content_hash(content: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoded content"""
    return hashlib.sha256((content or "").encode("utf-8")).hexdigest()
