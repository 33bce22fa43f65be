"""
Cortex Memory Classifier

Three independent strategies (semantic, structural, context) and the
weighted ensemble that combines them.
"""

from typing import Optional

from ..common.config import ClassificationWeights
from ..common.embedding_service import EmbeddingService
from ..common.retry import RetryPolicy
from .base import MemoryClassifier
from .context import ContextMemoryClassifier
from .hybrid import HybridMemoryClassifier
from .semantic import SemanticMemoryClassifier
from .structural import StructuralMemoryClassifier


def build_default_classifier(
    embedding_service: Optional[EmbeddingService] = None,
    weights: Optional[ClassificationWeights] = None,
    timeout: float = 30.0,
    retry: Optional[RetryPolicy] = None,
) -> HybridMemoryClassifier:
    """Hybrid classifier over the three built-in strategies"""
    return HybridMemoryClassifier(
        [
            SemanticMemoryClassifier(embedding_service, timeout=timeout, retry=retry),
            StructuralMemoryClassifier(),
            ContextMemoryClassifier(),
        ],
        weights=weights,
    )


__all__ = [
    "MemoryClassifier",
    "SemanticMemoryClassifier",
    "StructuralMemoryClassifier",
    "ContextMemoryClassifier",
    "HybridMemoryClassifier",
    "build_default_classifier",
]
