"""
Vector Index

Persistence substrate for knowledge items: upsert by (source, source_id)
and exact cosine nearest-neighbor search.
"""

import logging
import threading
from typing import Dict, List, Optional, Protocol, Set, Tuple

import numpy as np

from ..common.embedding_service import cosine_distances
from ..common.schemas import KnowledgeItem

logger = logging.getLogger("cortex.knowledge.index")

ItemKey = Tuple[str, str]


class VectorIndex(Protocol):
    """Any store offering keyed upsert and a nearest-neighbor query"""

    def get(self, key: ItemKey) -> Optional[KnowledgeItem]: ...

    def put(self, item: KnowledgeItem) -> None: ...

    def remove(self, key: ItemKey) -> bool: ...

    def items(self, source: Optional[str] = None) -> List[KnowledgeItem]: ...

    def count(self, source: Optional[str] = None) -> int: ...

    def sources(self) -> Set[str]: ...

    def nearest(
        self,
        query_vector,
        limit: int,
        source: Optional[str] = None,
        threshold: Optional[float] = None,
    ) -> List[Tuple[KnowledgeItem, float]]: ...


class InMemoryVectorIndex:
    """
    Process-local VectorIndex.

    Items keep their first insertion position across updates, which is the
    tie-break order for equal distances. Vectors are held as float32 and
    compared in float64.
    """

    def __init__(self):
        self._items: Dict[ItemKey, KnowledgeItem] = {}
        self._vectors: Dict[ItemKey, np.ndarray] = {}
        self._lock = threading.Lock()

    def get(self, key: ItemKey) -> Optional[KnowledgeItem]:
        return self._items.get(tuple(key))

    def put(self, item: KnowledgeItem) -> None:
        key = item.key
        with self._lock:
            # dict assignment to an existing key keeps its position
            self._items[key] = item
            if item.has_embedding:
                self._vectors[key] = np.asarray(item.embedding, dtype=np.float32)
            else:
                self._vectors.pop(key, None)

    def remove(self, key: ItemKey) -> bool:
        key = tuple(key)
        with self._lock:
            self._vectors.pop(key, None)
            return self._items.pop(key, None) is not None

    def items(self, source: Optional[str] = None) -> List[KnowledgeItem]:
        snapshot = list(self._items.values())
        if source is None:
            return snapshot
        return [item for item in snapshot if item.source == source]

    def count(self, source: Optional[str] = None) -> int:
        if source is None:
            return len(self._items)
        return sum(1 for item in self._items.values() if item.source == source)

    def sources(self) -> Set[str]:
        return {item.source for item in list(self._items.values())}

    def nearest(
        self,
        query_vector,
        limit: int,
        source: Optional[str] = None,
        threshold: Optional[float] = None,
    ) -> List[Tuple[KnowledgeItem, float]]:
        """
        Items ordered by ascending cosine distance to query_vector.

        Args:
            query_vector: Query embedding
            limit: Maximum results; <= 0 returns nothing
            source: Only consider items from this source
            threshold: Keep only distance < threshold (strict)
        """
        if limit <= 0:
            return []

        # Snapshot in insertion order
        with self._lock:
            items = list(self._items.items())
            vectors = dict(self._vectors)

        candidates = [
            (item, vectors[key])
            for key, item in items
            if key in vectors and (source is None or item.source == source)
        ]
        if not candidates:
            return []

        matrix = np.vstack([vec for _, vec in candidates])
        distances = cosine_distances(matrix, query_vector)
        order = np.argsort(distances, kind="stable")

        results = []
        for idx in order:
            distance = float(distances[idx])
            if threshold is not None and not distance < threshold:
                # Sorted ascending, nothing later can pass
                break
            results.append((candidates[idx][0], distance))
            if len(results) >= limit:
                break
        return results
