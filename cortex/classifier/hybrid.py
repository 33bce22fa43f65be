"""
Hybrid Memory Classifier

Runs every strategy concurrently and merges their results by weighted
voting. Each result is paired with the classifier_type of the strategy that
produced it, so weighting never depends on the free-text secondary field.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..common.config import ClassificationWeights
from ..common.schemas import MemoryClassification
from .base import MemoryClassifier

logger = logging.getLogger("cortex.classifier.hybrid")

ENSEMBLE = "ensemble"

Candidate = Tuple[str, MemoryClassification]


class HybridMemoryClassifier(MemoryClassifier):
    """
    Ensemble over a collection of MemoryClassifier strategies.

    Algorithm:
    1. Run all strategies concurrently (a failing strategy votes "unknown")
    2. Group results by primary category, skipping "unknown"
    3. Sum confidence * weight(strategy) per category
    4. Highest sum wins; first-seen category wins exact ties
    5. Clamp to 1.0 and apply the minimum_confidence floor
    """

    classifier_type = "hybrid"

    def __init__(
        self,
        classifiers: Sequence[MemoryClassifier],
        weights: Optional[ClassificationWeights] = None,
    ):
        if not classifiers:
            raise ValueError("HybridMemoryClassifier requires at least one classifier")
        self._classifiers = list(classifiers)
        self._weights = weights or ClassificationWeights()

    @property
    def weights(self) -> ClassificationWeights:
        return self._weights

    @property
    def classifiers(self) -> List[MemoryClassifier]:
        return list(self._classifiers)

    def supported_types(self) -> Set[str]:
        types: Set[str] = set()
        for classifier in self._classifiers:
            types |= classifier.supported_types()
        return types

    async def classify(
        self,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MemoryClassification:
        logger.debug("Classifying memory with %d characters", len(content or ""))

        if not self._weights.ensemble_enabled:
            semantic = self._find("semantic")
            if semantic is None:
                logger.warning("Ensemble disabled but no semantic classifier configured")
                return MemoryClassification.unknown(ENSEMBLE, reason="no_semantic_classifier")
            return await semantic.classify(content, metadata)

        candidates = await self.collect(content, metadata)
        logger.debug(
            "Classification candidates: %s",
            [f"{sid}:{c.primary}({c.confidence:.3f})" for sid, c in candidates],
        )
        return self.combine(candidates)

    async def collect(
        self,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Candidate]:
        """Run every strategy concurrently, pairing results with strategy ids"""
        results = await asyncio.gather(
            *(c.classify(content, metadata) for c in self._classifiers),
            return_exceptions=True,
        )

        candidates: List[Candidate] = []
        for classifier, result in zip(self._classifiers, results):
            strategy_id = classifier.classifier_type
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("%s classifier failed: %s", strategy_id, result)
                result = MemoryClassification.unknown(strategy_id, error=str(result))
            candidates.append((strategy_id, result))
        return candidates

    def combine(self, candidates: Sequence[Candidate]) -> MemoryClassification:
        """
        Weighted vote over (strategy_id, classification) pairs.

        Pure and deterministic for a given candidate sequence.
        """
        scores: Dict[str, float] = {}
        voters: Dict[str, List[str]] = {}
        first_attributes: Dict[str, Dict[str, Any]] = {}

        for strategy_id, candidate in candidates:
            if candidate.is_unknown:
                continue
            weight = self._weights.weight_for(strategy_id)
            if candidate.primary not in scores:
                scores[candidate.primary] = 0.0
                voters[candidate.primary] = []
                first_attributes[candidate.primary] = dict(candidate.attributes)
            scores[candidate.primary] += candidate.confidence * weight
            voters[candidate.primary].append(strategy_id)

        if not scores:
            return self._insufficient()

        # max() keeps the first maximal key, so first-seen wins ties
        best_type = max(scores, key=scores.get)
        best_score = scores[best_type]
        confidence = min(best_score, 1.0)

        if confidence < self._weights.minimum_confidence:
            logger.debug(
                "Best confidence %.3f below threshold %.3f",
                confidence, self._weights.minimum_confidence,
            )
            return self._insufficient()

        attributes = first_attributes[best_type]
        attributes.update({
            "ensemble_score": best_score,
            "candidate_count": len(candidates),
            "weights": self._weights.as_dict(),
            "votes": voters[best_type],
        })

        logger.debug("Selected type: %s with confidence %.3f", best_type, confidence)
        return MemoryClassification(
            primary=best_type,
            secondary=ENSEMBLE,
            confidence=confidence,
            attributes=attributes,
        )

    def _find(self, strategy_id: str) -> Optional[MemoryClassifier]:
        for classifier in self._classifiers:
            if classifier.classifier_type == strategy_id:
                return classifier
        return None

    @staticmethod
    def _insufficient() -> MemoryClassification:
        return MemoryClassification.unknown(ENSEMBLE, reason="insufficient_confidence")
