"""Tests for ContextMemoryClassifier"""

from datetime import datetime, timedelta, timezone

import pytest

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def classifier():
    from cortex.classifier.context import ContextMemoryClassifier
    return ContextMemoryClassifier(now=lambda: NOW)


class TestContextSignals:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("metadata", [None, {}, "not-a-dict"])
    async def test_missing_metadata(self, classifier, metadata):
        result = await classifier.classify("TODO: lots of content", metadata)

        assert result.primary == "unknown"
        assert result.secondary == "context"
        assert result.confidence == 0.0
        assert result.attributes["reason"] == "no_metadata"

    @pytest.mark.asyncio
    async def test_source_affinity(self, classifier):
        result = await classifier.classify("", {"source": "jira"})

        assert result.primary == "task"
        assert result.confidence == pytest.approx(0.45)

    @pytest.mark.asyncio
    async def test_path_patterns(self, classifier):
        result = await classifier.classify("", {"path": "/vault/meetings/standup/2024.md"})

        assert result.primary == "meeting"
        assert result.confidence == pytest.approx(2 / 4 * 0.9)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tags", [["bug", "todo"], "bug, todo", ["BUG", "Todo"]])
    async def test_tag_overlap(self, classifier, tags):
        result = await classifier.classify("", {"tags": tags})

        assert result.primary == "task"
        assert result.confidence == pytest.approx(2 / 6 * 0.8)

    @pytest.mark.asyncio
    async def test_recent_timestamp_leans_task(self, classifier):
        created = (NOW - timedelta(hours=2)).isoformat()
        result = await classifier.classify("", {"created": created})

        assert result.primary == "task"
        assert result.confidence == pytest.approx(0.3 * 0.3)

    @pytest.mark.asyncio
    async def test_epoch_millis_within_week_leans_note(self, classifier):
        three_days_ago = int((NOW - timedelta(days=3)).timestamp() * 1000)
        result = await classifier.classify("", {"lastModified": three_days_ago})

        assert result.primary == "note"
        assert result.confidence == pytest.approx(0.2 * 0.3)

    @pytest.mark.asyncio
    async def test_old_timestamp_leans_documentation(self, classifier):
        result = await classifier.classify("", {"modified": NOW - timedelta(days=60)})

        assert result.primary == "documentation"
        assert result.confidence == pytest.approx(0.1 * 0.3)

    @pytest.mark.asyncio
    async def test_unparseable_timestamp_no_match(self, classifier):
        result = await classifier.classify("", {"timestamp": "not a date", "author": "x"})

        assert result.is_unknown
        assert result.attributes["reason"] == "no_context_match"

    @pytest.mark.asyncio
    async def test_signals_accumulate(self, classifier):
        result = await classifier.classify("", {"path": "/work/projects/alpha.md", "source": "notion"})

        assert result.primary == "project"
        assert result.confidence == pytest.approx(0.9 / 4 + 0.7 * 0.5)
        assert set(result.attributes["analysis_details"]) == {"path", "source"}

    @pytest.mark.asyncio
    async def test_confidence_capped_at_one(self, classifier):
        metadata = {
            "path": "/meetings/standup/retrospective/meeting-2024-01-01",
            "tags": ["meeting", "standup", "retrospective", "sync", "review"],
            "source": "slack",
        }
        result = await classifier.classify("", metadata)

        assert result.primary == "meeting"
        assert result.confidence == 1.0
        assert result.attributes["context_scores"]["meeting"] > 1.0

    @pytest.mark.asyncio
    async def test_content_is_ignored(self, classifier):
        a = await classifier.classify("```python\nimport os\n```", {"source": "jira"})
        b = await classifier.classify("Meeting agenda", {"source": "jira"})

        assert a.primary == b.primary == "task"
        assert a.confidence == b.confidence


class TestParseTimestamp:
    def test_formats(self):
        from cortex.classifier.context import parse_timestamp

        assert parse_timestamp("2024-06-01T10:00:00Z") == datetime(2024, 6, 1, 10, tzinfo=timezone.utc)
        assert parse_timestamp(1717236000000) == datetime(2024, 6, 1, 10, tzinfo=timezone.utc)
        assert parse_timestamp(1717236000.0) == datetime(2024, 6, 1, 10, tzinfo=timezone.utc)
        assert parse_timestamp(True) is None
        assert parse_timestamp(["x"]) is None
        assert parse_timestamp("garbage") is None
