"""
Cortex Common Module

Shared infrastructure for the classifier, knowledge store and dispatcher.
"""

from .config import CortexConfig, load_config
from .embedding_service import EmbeddingService, cosine_distances, cosine_similarity
from .llm_client import LLMClient
from .retry import RetryPolicy, with_retry, with_retry_for

__all__ = [
    "CortexConfig",
    "load_config",
    "EmbeddingService",
    "cosine_distances",
    "cosine_similarity",
    "LLMClient",
    "RetryPolicy",
    "with_retry",
    "with_retry_for",
]
