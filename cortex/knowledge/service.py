"""
Knowledge Service

Syncs sources into the knowledge store and answers text queries.
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..common.embedding_service import EmbeddingService
from ..common.retry import RetryPolicy
from ..common.schemas import compute_content_hash
from .sources.base import KnowledgeSource, SourceStatus
from .store import CREATED, UNCHANGED, UPDATED, KnowledgeStore, SearchHit

logger = logging.getLogger("cortex.knowledge.service")


@dataclass
class SyncReport:
    """Per-source sync outcome"""
    source_id: str
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: List[Tuple[str, str]] = field(default_factory=list)  # (item id, error)
    error: Optional[str] = None  # source-level failure

    @property
    def total(self) -> int:
        return self.created + self.updated + self.unchanged + len(self.failed)

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed

    def summary(self) -> str:
        if self.error:
            return f"{self.source_id}: failed ({self.error})"
        return (
            f"{self.source_id}: {self.created} created, {self.updated} updated, "
            f"{self.unchanged} unchanged, {len(self.failed)} failed"
        )


def _is_transient(error: BaseException) -> bool:
    # Missing vaults and bad config do not heal on retry
    return not isinstance(error, (FileNotFoundError, NotADirectoryError, ValueError, KeyError))


class KnowledgeService:
    """
    Coordinates knowledge sources, the store and query embedding.

    Syncs of the same source are serialized; different sources may sync
    concurrently.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        embedding_service: EmbeddingService,
        sources: Sequence[KnowledgeSource] = (),
        retry: Optional[RetryPolicy] = None,
        embedding_timeout: float = 30.0,
        query_cache_size: int = 256,
    ):
        self._store = store
        self._embedding = embedding_service
        self._sources: Dict[str, KnowledgeSource] = {s.source_id: s for s in sources}
        self._retry = retry or RetryPolicy()
        self._embedding_timeout = embedding_timeout
        self._query_cache: "OrderedDict[str, List[float]]" = OrderedDict()
        self._query_cache_size = query_cache_size
        self._sync_locks: Dict[str, asyncio.Lock] = {}

    @property
    def store(self) -> KnowledgeStore:
        return self._store

    @property
    def sources(self) -> List[KnowledgeSource]:
        return list(self._sources.values())

    def register_source(self, source: KnowledgeSource) -> None:
        self._sources[source.source_id] = source

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync_source(
        self,
        source_id: str,
        config: Optional[Dict[str, Any]] = None,
    ) -> SyncReport:
        """
        Fetch a source and upsert every item.

        Raises:
            KeyError: unknown source id
            Exception: source fetch failure after retries
        """
        if source_id not in self._sources:
            raise KeyError(f"Unknown knowledge source: {source_id}")
        source = self._sources[source_id]

        lock = self._sync_locks.setdefault(source_id, asyncio.Lock())
        async with lock:
            items = await self._retry.run(
                lambda: source.sync_data(config), retry_on=_is_transient
            )

            report = SyncReport(source_id=source_id)
            for item in items:
                try:
                    result = await self._store.upsert(
                        source=source_id,
                        source_id=item.id,
                        path=item.path,
                        content=item.content,
                        metadata=item.metadata,
                    )
                except Exception as e:
                    logger.error("Failed to store %s/%s: %s", source_id, item.id, e)
                    report.failed.append((item.id, str(e) or type(e).__name__))
                    continue

                if result.status == CREATED:
                    report.created += 1
                elif result.status == UPDATED:
                    report.updated += 1
                elif result.status == UNCHANGED:
                    report.unchanged += 1

        logger.info("Sync finished: %s", report.summary())
        return report

    async def _check_available(self, source: KnowledgeSource) -> bool:
        try:
            return bool(await source.is_available())
        except Exception as e:
            logger.warning("Availability check failed for %s: %s", source.source_id, e)
            return False

    async def sync_all_sources(
        self,
        config: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, SyncReport]:
        """Sync every available source; one failing source does not stop others."""
        sources = list(self._sources.values())
        availability = await asyncio.gather(*(self._check_available(s) for s in sources))

        reports: Dict[str, SyncReport] = {}
        for source, available in zip(sources, availability):
            if not available:
                logger.warning("Skipping unavailable source: %s", source.source_id)
                continue
            try:
                reports[source.source_id] = await self.sync_source(source.source_id, config)
            except Exception as e:
                logger.error("Sync failed for %s: %s", source.source_id, e, exc_info=True)
                reports[source.source_id] = SyncReport(
                    source_id=source.source_id, error=str(e) or type(e).__name__
                )
        return reports

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def embed_query(self, query: str) -> List[float]:
        """Embed query text, served from a bounded LRU cache when possible"""
        cache_key = compute_content_hash(query)
        cached = self._query_cache.get(cache_key)
        if cached is not None:
            self._query_cache.move_to_end(cache_key)
            return cached

        async def attempt():
            return await asyncio.wait_for(
                asyncio.to_thread(self._embedding.embed_single, query),
                timeout=self._embedding_timeout,
            )

        vector = await self._retry.run(attempt)
        self._query_cache[cache_key] = vector
        if len(self._query_cache) > self._query_cache_size:
            self._query_cache.popitem(last=False)
        return vector

    async def search_knowledge(
        self,
        query: str,
        limit: Optional[int] = None,
        source: Optional[str] = None,
        threshold: Optional[float] = None,
    ) -> List[SearchHit]:
        """
        Similarity search by query text.

        Args:
            query: Natural language query
            limit: Maximum results (store default when None)
            source: Restrict to one source
            threshold: Keep only distance < threshold
        """
        if not query or not query.strip():
            return []

        vector = await self.embed_query(query.strip())
        return await self._store.search(vector, limit=limit, source=source, threshold=threshold)

    async def get_source_statuses(self) -> List[SourceStatus]:
        statuses = []
        for source in self._sources.values():
            try:
                statuses.append(await source.get_status())
            except Exception as e:
                logger.warning("Status check failed for %s: %s", source.source_id, e)
                statuses.append(SourceStatus(
                    source_id=source.source_id,
                    is_active=False,
                    error_message=str(e),
                ))
        return statuses
