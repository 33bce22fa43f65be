"""Tests for KnowledgeStore upsert dedup and similarity search"""

import hashlib

import pytest
from unittest.mock import AsyncMock

from conftest import FakeEmbeddingService, at_distance, unit


@pytest.fixture
def classifier():
    from cortex.common.schemas import MemoryClassification
    mock = AsyncMock()
    mock.classify.return_value = MemoryClassification(
        primary="note", secondary="ensemble", confidence=0.6
    )
    return mock


@pytest.fixture
def store(fake_embedding, classifier):
    from cortex.knowledge.store import KnowledgeStore
    return KnowledgeStore(embedding_service=fake_embedding, classifier=classifier)


class TestUpsert:
    @pytest.mark.asyncio
    async def test_create(self, store, fake_embedding):
        result = await store.upsert("obsidian", "n1", "notes/n1.md", "hello world", {"tags": ["x"]})

        assert result.status == "created"
        assert result.changed
        item = result.item
        assert item.has_embedding
        assert len(item.embedding) == 384
        assert item.classification.primary == "note"
        assert item.content_hash == hashlib.sha256(b"hello world").hexdigest()
        assert fake_embedding.calls == ["hello world"]

    @pytest.mark.asyncio
    async def test_unchanged_content_is_skipped(self, store, fake_embedding, classifier):
        first = await store.upsert("obsidian", "n1", "n1.md", "same text")
        second = await store.upsert("obsidian", "n1", "n1.md", "same text")

        assert second.status == "unchanged"
        assert not second.changed
        assert second.item.updated_at == first.item.updated_at
        assert len(fake_embedding.calls) == 1
        assert classifier.classify.await_count == 1

    @pytest.mark.asyncio
    async def test_changed_content_updates_in_place(self, store):
        first = await store.upsert("obsidian", "n1", "n1.md", "version one")
        second = await store.upsert("obsidian", "n1", "n1.md", "version two")

        assert second.status == "updated"
        assert second.item.created_at == first.item.created_at
        assert second.item.updated_at >= first.item.updated_at
        assert second.item.content_hash != first.item.content_hash
        assert store.count() == 1

    @pytest.mark.asyncio
    async def test_classifier_receives_path_and_source(self, store, classifier):
        await store.upsert("obsidian", "n1", "meetings/a.md", "text", {"tags": ["meeting"]})

        content, metadata = classifier.classify.await_args.args
        assert content == "text"
        assert metadata == {"tags": ["meeting"], "path": "meetings/a.md", "source": "obsidian"}
        assert store.get("obsidian", "n1").metadata == {"tags": ["meeting"]}

    @pytest.mark.asyncio
    async def test_blank_content_stored_without_embedding(self, store, fake_embedding):
        result = await store.upsert("obsidian", "blank", "blank.md", "   ")

        assert result.status == "created"
        assert not result.item.has_embedding
        assert fake_embedding.calls == []
        assert await store.search(unit(0)) == []

    @pytest.mark.asyncio
    async def test_transient_embedding_failure_retried(self, store, fake_embedding, no_sleep):
        fake_embedding.fail_times = 2

        result = await store.upsert("obsidian", "n1", "n1.md", "eventually works")

        assert result.item.has_embedding
        assert len(fake_embedding.calls) == 3
        assert no_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self, store, fake_embedding, no_sleep):
        fake_embedding.fail_times = 10

        with pytest.raises(ConnectionError):
            await store.upsert("obsidian", "n1", "n1.md", "never works")

        assert store.get("obsidian", "n1") is None

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected(self, classifier):
        from cortex.knowledge.store import KnowledgeStore
        store = KnowledgeStore(embedding_service=FakeEmbeddingService(dim=10), classifier=classifier)

        with pytest.raises(ValueError, match="dimension"):
            await store.upsert("obsidian", "n1", "n1.md", "text")

    @pytest.mark.asyncio
    async def test_without_classifier(self, fake_embedding):
        from cortex.knowledge.store import KnowledgeStore
        store = KnowledgeStore(embedding_service=fake_embedding)

        result = await store.upsert("obsidian", "n1", "n1.md", "text")
        assert result.item.classification is None


class TestSearch:
    @pytest.fixture
    def vector_store(self, classifier):
        from cortex.knowledge.store import KnowledgeStore
        embedding = FakeEmbeddingService({
            "ten": at_distance(0.1),
            "thirty": at_distance(0.3),
            "five": at_distance(0.05),
        })
        return KnowledgeStore(embedding_service=embedding, classifier=classifier)

    @pytest.mark.asyncio
    async def test_ordering_and_limit(self, vector_store):
        for content in ("ten", "thirty", "five"):
            await vector_store.upsert("obsidian", content, f"{content}.md", content)

        hits = await vector_store.search(unit(0), limit=2)

        assert [h.item.source_id for h in hits] == ["five", "ten"]
        assert hits[0].similarity == pytest.approx(0.95, abs=1e-6)

    @pytest.mark.asyncio
    async def test_threshold(self, vector_store):
        for content in ("ten", "thirty", "five"):
            await vector_store.upsert("obsidian", content, f"{content}.md", content)

        hits = await vector_store.search(unit(0), threshold=0.2)

        assert [h.item.source_id for h in hits] == ["five", "ten"]

    @pytest.mark.asyncio
    async def test_source_filter(self, vector_store):
        await vector_store.upsert("obsidian", "a", "a.md", "ten")
        await vector_store.upsert("notion", "b", "b", "five")

        hits = await vector_store.search(unit(0), source="obsidian")

        assert [h.item.source for h in hits] == ["obsidian"]

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self, store):
        with pytest.raises(ValueError, match="dimension"):
            await store.search([1.0, 0.0, 0.0])


class TestStats:
    @pytest.mark.asyncio
    async def test_stats(self, store):
        await store.upsert("obsidian", "a", "a.md", "alpha")
        await store.upsert("obsidian", "b", "b.md", "")
        await store.upsert("notion", "c", "c", "gamma")

        stats = store.stats()

        assert stats["total"] == 3
        assert stats["sources"]["obsidian"] == {"items": 2, "embedded": 1}
        assert stats["sources"]["notion"] == {"items": 1, "embedded": 1}
        assert stats["classifications"] == {"note": 3}

    @pytest.mark.asyncio
    async def test_remove(self, store):
        await store.upsert("obsidian", "a", "a.md", "alpha")
        assert store.remove("obsidian", "a") is True
        assert store.count() == 0
