"""
Knowledge Store

Upsert-with-dedup and similarity retrieval over a VectorIndex. Embedding and
classification are injected collaborators; unchanged content (same hash)
is never re-embedded or re-classified.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import numpy as np

from ..classifier.base import MemoryClassifier
from ..common.config import EMBEDDING_DIMENSION
from ..common.embedding_service import EmbeddingService
from ..common.retry import RetryPolicy
from ..common.schemas import KnowledgeItem, compute_content_hash
from .index import InMemoryVectorIndex, VectorIndex

logger = logging.getLogger("cortex.knowledge.store")

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"


@dataclass
class UpsertResult:
    """Outcome of a single upsert"""
    item: KnowledgeItem
    status: str  # "created", "updated", "unchanged"

    @property
    def changed(self) -> bool:
        return self.status != UNCHANGED


@dataclass
class SearchHit:
    """A single similarity search result"""
    item: KnowledgeItem
    distance: float

    @property
    def similarity(self) -> float:
        return 1.0 - self.distance


class KnowledgeStore:
    """
    Content-addressed, vector-indexed store of knowledge items.

    Safe for concurrent upserts of different items. Callers serialize
    writes to the same (source, source_id).
    """

    def __init__(
        self,
        index: Optional[VectorIndex] = None,
        embedding_service: Optional[EmbeddingService] = None,
        classifier: Optional[MemoryClassifier] = None,
        dimension: int = EMBEDDING_DIMENSION,
        retry: Optional[RetryPolicy] = None,
        embedding_timeout: float = 30.0,
        default_limit: int = 10,
        distance_threshold: Optional[float] = None,
    ):
        """
        Args:
            index: Persistence substrate (in-memory by default)
            embedding_service: Embeds item content
            classifier: Classifies changed items; None leaves classification empty
            dimension: Required embedding dimension
            retry: Backoff policy for embedding calls
            embedding_timeout: Upper bound for one embedding call (seconds)
            default_limit: Result count when search is called without a limit
            distance_threshold: Threshold applied when search gets none
        """
        self._index = index if index is not None else InMemoryVectorIndex()
        self._embedding = embedding_service
        self._classifier = classifier
        self._dimension = dimension
        self._retry = retry or RetryPolicy()
        self._embedding_timeout = embedding_timeout
        self._default_limit = default_limit
        self._distance_threshold = distance_threshold

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def index(self) -> VectorIndex:
        return self._index

    async def upsert(
        self,
        source: str,
        source_id: str,
        path: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> UpsertResult:
        """
        Insert or update an item keyed by (source, source_id).

        Raises:
            ValueError: embedding has the wrong dimension
            Exception: embedding failure after retries
        """
        content = content or ""
        metadata = dict(metadata or {})
        content_hash = compute_content_hash(content)
        existing = self._index.get((source, source_id))

        if existing is not None and existing.content_hash == content_hash:
            logger.debug("Unchanged %s/%s, skipping", source, source_id)
            return UpsertResult(item=existing, status=UNCHANGED)

        embedding = None
        if content.strip():
            embedding = await self._embed(content)

        classification = None
        if self._classifier is not None:
            classify_metadata = dict(metadata)
            classify_metadata.setdefault("path", path)
            classify_metadata.setdefault("source", source)
            classification = await self._classifier.classify(content, classify_metadata)

        now = datetime.now(timezone.utc)
        item = KnowledgeItem(
            source=source,
            source_id=source_id,
            path=path,
            content=content,
            content_hash=content_hash,
            embedding=embedding,
            classification=classification,
            metadata=metadata,
            created_at=existing.created_at if existing is not None else now,
            updated_at=now,
        )
        self._index.put(item)

        status = UPDATED if existing is not None else CREATED
        logger.debug(
            "%s %s/%s (%s)",
            status.capitalize(), source, source_id,
            classification.primary if classification else "unclassified",
        )
        return UpsertResult(item=item, status=status)

    async def _embed(self, content: str) -> List[float]:
        if self._embedding is None:
            raise RuntimeError("Embedding service not configured")

        async def attempt():
            return await asyncio.wait_for(
                asyncio.to_thread(self._embedding.embed_single, content),
                timeout=self._embedding_timeout,
            )

        vector = await self._retry.run(attempt)
        if len(vector) != self._dimension:
            raise ValueError(
                f"Embedding dimension {len(vector)} does not match expected {self._dimension}"
            )
        return [float(v) for v in vector]

    async def search(
        self,
        query_vector,
        limit: Optional[int] = None,
        source: Optional[str] = None,
        threshold: Optional[float] = None,
    ) -> List[SearchHit]:
        """
        Nearest items by cosine distance.

        Args:
            query_vector: Query embedding of the store dimension
            limit: Maximum results (store default when None)
            source: Only items from this source
            threshold: Keep only distance < threshold

        Returns:
            List of SearchHit in ascending distance, ties by insertion order
        """
        vector = np.asarray(query_vector, dtype=np.float64)
        if vector.ndim != 1 or vector.shape[0] != self._dimension:
            raise ValueError(
                f"Query dimension {vector.shape} does not match expected {self._dimension}"
            )

        limit = self._default_limit if limit is None else limit
        threshold = self._distance_threshold if threshold is None else threshold

        hits = self._index.nearest(vector, limit, source=source, threshold=threshold)
        return [SearchHit(item=item, distance=distance) for item, distance in hits]

    def get(self, source: str, source_id: str) -> Optional[KnowledgeItem]:
        return self._index.get((source, source_id))

    def remove(self, source: str, source_id: str) -> bool:
        return self._index.remove((source, source_id))

    def count(self, source: Optional[str] = None) -> int:
        return self._index.count(source)

    def stats(self) -> Dict[str, Any]:
        """Per-source counts and classification histogram"""
        sources: Dict[str, Dict[str, int]] = {}
        classifications: Dict[str, int] = {}

        for item in self._index.items():
            entry = sources.setdefault(item.source, {"items": 0, "embedded": 0})
            entry["items"] += 1
            if item.has_embedding:
                entry["embedded"] += 1
            label = item.classification.primary if item.classification else "unclassified"
            classifications[label] = classifications.get(label, 0) + 1

        return {
            "total": sum(s["items"] for s in sources.values()),
            "sources": sources,
            "classifications": classifications,
        }
