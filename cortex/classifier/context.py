"""
Context Memory Classifier

Classifies from metadata only, never content. Four signals accumulate per
category: path patterns, tags, recency and source affinity.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from ..common.schemas import MemoryClassification
from .base import MemoryClassifier

logger = logging.getLogger("cortex.classifier.context")

PATH_WEIGHT = 0.9
TAG_WEIGHT = 0.8
TEMPORAL_WEIGHT = 0.3
SOURCE_WEIGHT = 0.5

TEMPORAL_KEYS = ("created", "lastModified", "last_modified", "modified", "timestamp")


def _compile(*specs: str) -> List[re.Pattern]:
    return [re.compile(s, re.IGNORECASE) for s in specs]


PATH_PATTERNS: Dict[str, List[re.Pattern]] = {
    "meeting": _compile(
        r"/meetings?/", r"/standup/", r"/retrospective/", r"meeting-\d{4}-\d{2}-\d{2}"
    ),
    "project": _compile(r"/projects?/", r"/specs?/", r"/requirements/", r"/roadmap/"),
    "task": _compile(r"/tasks?/", r"/todos?/", r"/backlog/"),
    "code": _compile(
        r"/code/", r"/src/", r"/implementation/", r"\.(java|kt|js|py|cpp|cs|go|rs)$"
    ),
    "documentation": _compile(r"/docs?/", r"/documentation/", r"/wiki/", r"/guides?/"),
    "research": _compile(r"/research/", r"/studies/", r"/analysis/", r"/papers?/"),
}

TAG_KEYWORDS: Dict[str, List[str]] = {
    "meeting": ["meeting", "standup", "retrospective", "sync", "review"],
    "project": ["project", "epic", "milestone", "feature", "sprint"],
    "task": ["task", "todo", "action", "bug", "issue", "ticket"],
    "code": ["code", "implementation", "technical", "development", "programming"],
    "documentation": ["docs", "documentation", "guide", "tutorial", "manual", "wiki"],
    "research": ["research", "study", "analysis", "investigation", "findings"],
    "note": ["note", "memo", "reminder", "observation", "insight"],
}

SOURCE_AFFINITY: Dict[str, Dict[str, float]] = {
    "obsidian": {"note": 0.6, "project": 0.3, "research": 0.4},
    "notion": {"project": 0.7, "task": 0.5, "documentation": 0.4},
    "github": {"code": 0.8, "documentation": 0.6, "project": 0.4},
    "jira": {"task": 0.9, "project": 0.6},
    "confluence": {"documentation": 0.8, "project": 0.5},
    "slack": {"meeting": 0.6, "task": 0.4, "note": 0.3},
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Interpret a metadata timestamp.

    Ints are epoch milliseconds, floats epoch seconds, strings ISO-8601.
    Anything else (or unparseable) is None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        if isinstance(value, int):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        if isinstance(value, float):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        if isinstance(value, str):
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None
    return None


def _tag_list(tags: Any) -> List[str]:
    if isinstance(tags, str):
        return [t.strip().lower() for t in tags.split(",") if t.strip()]
    if isinstance(tags, (list, tuple, set)):
        return [str(t).strip().lower() for t in tags if t is not None]
    return []


class ContextMemoryClassifier(MemoryClassifier):
    """Metadata-driven classifier"""

    classifier_type = "context"

    def __init__(self, now: Callable[[], datetime] = _utcnow):
        """
        Args:
            now: Clock used for recency buckets
        """
        self._now = now

    def supported_types(self) -> Set[str]:
        return set(PATH_PATTERNS) | set(TAG_KEYWORDS)

    async def classify(
        self,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MemoryClassification:
        if not metadata or not isinstance(metadata, dict):
            return self.unknown(reason="no_metadata")

        scores: Dict[str, float] = {}
        details: Dict[str, Dict[str, float]] = {}

        def accumulate(signal: str, signal_scores: Dict[str, float], weight: float):
            if not signal_scores:
                return
            details[signal] = signal_scores
            for memory_type, score in signal_scores.items():
                scores[memory_type] = scores.get(memory_type, 0.0) + score * weight

        if metadata.get("path"):
            accumulate("path", self.analyze_path(str(metadata["path"])), 1.0)
        if metadata.get("tags"):
            accumulate("tags", self.analyze_tags(metadata["tags"]), TAG_WEIGHT)
        accumulate("temporal", self.analyze_temporal(metadata), TEMPORAL_WEIGHT)
        if metadata.get("source"):
            accumulate("source", self.analyze_source(str(metadata["source"])), SOURCE_WEIGHT)

        if not scores:
            return self.unknown(reason="no_context_match")

        best_type = max(scores, key=scores.get)
        confidence = min(scores[best_type], 1.0)

        logger.debug(
            "Context classification: %s with confidence %.3f from %d signals",
            best_type, confidence, len(details),
        )

        return MemoryClassification(
            primary=best_type,
            secondary=self.classifier_type,
            confidence=confidence,
            attributes={
                "context_scores": scores,
                "analysis_details": details,
                "metadata_keys": list(metadata.keys()),
            },
        )

    def analyze_path(self, path: str) -> Dict[str, float]:
        """Fraction of each category's path patterns found in path, pre-weighted"""
        scores = {}
        normalized = path.replace("\\", "/")
        for memory_type, patterns in PATH_PATTERNS.items():
            matched = sum(1 for p in patterns if p.search(normalized))
            if matched:
                scores[memory_type] = (matched / len(patterns)) * PATH_WEIGHT
        return scores

    def analyze_tags(self, tags: Any) -> Dict[str, float]:
        """Keyword overlap ratio per category"""
        tag_set = set(_tag_list(tags))
        scores = {}
        for memory_type, keywords in TAG_KEYWORDS.items():
            overlap = tag_set & set(keywords)
            if overlap:
                scores[memory_type] = min(len(overlap) / len(keywords), 1.0)
        return scores

    def analyze_temporal(self, metadata: Dict[str, Any]) -> Dict[str, float]:
        """Recency buckets summed over every timestamp key present"""
        scores: Dict[str, float] = {}
        now = self._now()
        for key in TEMPORAL_KEYS:
            instant = parse_timestamp(metadata.get(key))
            if instant is None:
                continue
            age_hours = (now - instant).total_seconds() / 3600
            if age_hours < 24:
                scores["task"] = scores.get("task", 0.0) + 0.3
            elif age_hours < 168:
                scores["note"] = scores.get("note", 0.0) + 0.2
            else:
                scores["documentation"] = scores.get("documentation", 0.0) + 0.1
        return scores

    def analyze_source(self, source: str) -> Dict[str, float]:
        return dict(SOURCE_AFFINITY.get(source.strip().lower(), {}))
