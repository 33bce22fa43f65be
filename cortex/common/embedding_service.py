"""
Embedding Service

On-device embedding generation using fastembed, plus the cosine helpers
shared by the semantic classifier and the vector index.
"""

import logging
from typing import List

import numpy as np

from .config import DEFAULT_EMBEDDING_MODEL, EMBEDDING_DIMENSION, EmbeddingConfig

logger = logging.getLogger("cortex.common.embedding_service")


class EmbeddingService:
    """
    Embedding provider for Cortex.

    Uses fastembed by default for on-device embedding generation.
    This avoids external API calls and keeps notes local. The model is
    loaded lazily on first use.
    """

    def __init__(
        self,
        mode: str = "femb",
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimension: int = EMBEDDING_DIMENSION,
    ):
        self._mode = mode
        self._model_name = model
        self._dimension = dimension
        self._model = None
        self._init_failed = False

    @classmethod
    def from_config(cls, config: EmbeddingConfig) -> "EmbeddingService":
        return cls(mode=config.mode, model=config.model, dimension=config.dimension)

    def _ensure_model(self):
        if self._model is not None or self._init_failed:
            return self._model

        if self._mode != "femb":
            logger.warning("Unsupported embedding mode: %s", self._mode)
            self._init_failed = True
            return None

        try:
            from fastembed import TextEmbedding

            self._model = TextEmbedding(model_name=self._model_name)
            logger.info("Initialized embedding model %s", self._model_name)
        except ImportError as e:
            logger.warning("fastembed not installed, embeddings unavailable: %s", e)
            self._init_failed = True
        except Exception as e:
            logger.warning("Failed to load embedding model %s: %s", self._model_name, e)
            self._init_failed = True
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._ensure_model() is not None

    def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors
        """
        model = self._ensure_model()
        if model is None:
            raise RuntimeError("Embedding model not initialized")

        if not texts:
            return []

        vectors = [np.asarray(v, dtype=np.float32) for v in model.embed(texts)]
        for vec in vectors:
            if vec.shape[0] != self._dimension:
                raise ValueError(
                    f"Embedding dimension {vec.shape[0]} does not match expected {self._dimension}"
                )
        return [vec.tolist() for vec in vectors]

    def embed_single(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Raises:
            ValueError: if text is blank
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        return self.embed([text])[0]


def cosine_similarity(vec1, vec2) -> float:
    """
    Cosine similarity between two vectors.

    Zero-norm vectors have similarity 0.0.
    """
    v1 = np.asarray(vec1, dtype=np.float64)
    v2 = np.asarray(vec2, dtype=np.float64)

    if v1.shape != v2.shape:
        raise ValueError(f"Vector dimension mismatch: {v1.shape} vs {v2.shape}")

    denominator = np.linalg.norm(v1) * np.linalg.norm(v2)
    if denominator == 0:
        return 0.0
    return float(np.dot(v1, v2) / denominator)


def cosine_distances(matrix, query) -> np.ndarray:
    """
    Cosine distance (1 - cosine similarity) of every row against a query.

    Computed in float64 so ordering is reproducible across runs. Rows or a
    query with zero norm get distance 1.0.
    """
    m = np.asarray(matrix, dtype=np.float64)
    q = np.asarray(query, dtype=np.float64)

    if m.size == 0:
        return np.zeros(0, dtype=np.float64)
    if m.ndim != 2 or m.shape[1] != q.shape[0]:
        raise ValueError(f"Vector dimension mismatch: {m.shape} vs {q.shape}")

    row_norms = np.linalg.norm(m, axis=1)
    query_norm = np.linalg.norm(q)
    denominators = row_norms * query_norm

    similarities = np.zeros(m.shape[0], dtype=np.float64)
    nonzero = denominators > 0
    similarities[nonzero] = (m[nonzero] @ q) / denominators[nonzero]
    return 1.0 - similarities

