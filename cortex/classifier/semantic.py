"""
Semantic Memory Classifier

Scores content against per-category topic signatures. With an embedding
service the signatures are centroid vectors (the mean of three example
phrases per category) compared by cosine similarity. Without one, the same
example phrases act as a keyword vocabulary for lexical scoring.
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Set

import numpy as np

from ..common.embedding_service import EmbeddingService, cosine_similarity
from ..common.retry import RetryPolicy
from ..common.schemas import MemoryClassification
from .base import MemoryClassifier

logger = logging.getLogger("cortex.classifier.semantic")

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*")

# Typical content per category; embedded once and averaged into centroids
TYPE_EXAMPLES: Dict[str, List[str]] = {
    "meeting": [
        "Meeting agenda discussion participants action items",
        "Daily standup team progress blockers next steps",
        "Retrospective what went well improvements action points",
    ],
    "project": [
        "Project requirements specifications timeline deliverables",
        "Implementation plan architecture components modules",
        "Project status milestones progress roadmap goals",
    ],
    "task": [
        "TODO implement feature fix bug complete task",
        "Action item assign responsible deadline priority",
        "Checklist items complete pending review done",
    ],
    "note": [
        "Important information remember key points summary",
        "Research findings insights observations analysis",
        "Learning notes concepts ideas understanding knowledge",
    ],
    "code": [
        "Function method implementation algorithm logic code",
        "Class structure design pattern architecture component",
        "Bug fix issue solution implementation technical details",
    ],
    "research": [
        "Research study analysis findings conclusions references",
        "Investigation evidence data sources methodology results",
        "Academic paper literature review theoretical framework",
    ],
    "documentation": [
        "Documentation guide tutorial instructions how-to manual",
        "API reference specification parameters examples usage",
        "User guide setup configuration troubleshooting FAQ",
    ],
}


def _tokenize(text: str) -> Set[str]:
    return set(_TOKEN_RE.findall(text.lower()))


class SemanticMemoryClassifier(MemoryClassifier):
    """
    Embedding-similarity classifier with a lexical fallback.

    Centroids are computed on first use and never change afterwards.
    """

    classifier_type = "semantic"

    def __init__(
        self,
        embedding_service: Optional[EmbeddingService] = None,
        timeout: float = 30.0,
        retry: Optional[RetryPolicy] = None,
    ):
        """
        Args:
            embedding_service: Provider for content and example embeddings.
                None selects lexical scoring.
            timeout: Upper bound for one embedding call (seconds)
            retry: Backoff policy for embedding the example phrases
        """
        self._embedding = embedding_service
        self._timeout = timeout
        self._retry = retry or RetryPolicy()
        self._centroids: Optional[Dict[str, np.ndarray]] = None
        self._centroid_lock = asyncio.Lock()
        self._vocabulary: Dict[str, Set[str]] = {
            memory_type: set().union(*(_tokenize(e) for e in examples))
            for memory_type, examples in TYPE_EXAMPLES.items()
        }

    def supported_types(self) -> Set[str]:
        return set(TYPE_EXAMPLES)

    @property
    def uses_embeddings(self) -> bool:
        return self._embedding is not None and self._embedding.is_available

    async def _embed_examples(self, examples: List[str]) -> np.ndarray:
        async def attempt():
            return await asyncio.wait_for(
                asyncio.to_thread(self._embedding.embed, examples),
                timeout=self._timeout,
            )

        return np.asarray(await self._retry.run(attempt), dtype=np.float64)

    async def _ensure_centroids(self) -> Dict[str, np.ndarray]:
        """
        Centroid per category, computed once.

        A category that still fails after retries raises and nothing is
        cached, so the next call starts over.
        """
        if self._centroids is not None:
            return self._centroids

        async with self._centroid_lock:
            if self._centroids is not None:
                return self._centroids

            logger.info("Computing semantic centroids for %d types", len(TYPE_EXAMPLES))
            centroids = {}
            for memory_type, examples in TYPE_EXAMPLES.items():
                try:
                    vectors = await self._embed_examples(examples)
                except Exception as e:
                    logger.error("Failed to compute centroid for %s: %s", memory_type, e)
                    raise
                centroid = vectors.mean(axis=0)
                centroid.setflags(write=False)
                centroids[memory_type] = centroid

            self._centroids = centroids
            return centroids

    async def classify(
        self,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MemoryClassification:
        if not content or not content.strip():
            return self.unknown(reason="empty_content")

        if not self.uses_embeddings:
            return self._classify_lexical(content)

        try:
            centroids = await self._ensure_centroids()
            vector = await asyncio.wait_for(
                asyncio.to_thread(self._embedding.embed_single, content),
                timeout=self._timeout,
            )
            similarities = {
                memory_type: cosine_similarity(vector, centroid)
                for memory_type, centroid in centroids.items()
            }
        except Exception as e:
            logger.error(
                "Semantic classification failed for content length %d: %s",
                len(content), e, exc_info=True,
            )
            return self.unknown(error=str(e) or type(e).__name__)

        best_type = max(similarities, key=similarities.get)
        if similarities[best_type] <= 0:
            return self.unknown(reason="no_similarities", similarities=similarities)

        return MemoryClassification(
            primary=best_type,
            secondary=self.classifier_type,
            confidence=min(similarities[best_type], 1.0),
            attributes={
                "method": "embedding",
                "similarities": similarities,
                "content_length": len(content),
                "vector_dimension": len(vector),
            },
        )

    def _classify_lexical(self, content: str) -> MemoryClassification:
        tokens = _tokenize(content)
        scores = {
            memory_type: len(tokens & vocabulary) / len(vocabulary)
            for memory_type, vocabulary in self._vocabulary.items()
        }

        best_type = max(scores, key=scores.get)
        if scores[best_type] <= 0:
            return self.unknown(reason="no_similarities")

        logger.debug("Lexical classification: %s (%.3f)", best_type, scores[best_type])
        return MemoryClassification(
            primary=best_type,
            secondary=self.classifier_type,
            confidence=min(scores[best_type], 1.0),
            attributes={
                "method": "lexical",
                "scores": scores,
                "content_length": len(content),
            },
        )
