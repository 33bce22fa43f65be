"""Shared fixtures for Cortex tests."""

import hashlib
import math
from typing import Dict, List

import pytest

DIM = 384


def unit(index: int, dim: int = DIM) -> List[float]:
    vec = [0.0] * dim
    vec[index] = 1.0
    return vec


def at_distance(d: float, dim: int = DIM) -> List[float]:
    """Unit vector at cosine distance d from unit(0)"""
    cos = 1.0 - d
    vec = [0.0] * dim
    vec[0] = cos
    vec[1] = math.sqrt(max(0.0, 1.0 - cos * cos))
    return vec


class FakeEmbeddingService:
    """Deterministic stand-in for EmbeddingService"""

    def __init__(self, vectors: Dict[str, List[float]] = None, dim: int = DIM):
        self.vectors = dict(vectors or {})
        self.dim = dim
        self.calls: List[str] = []
        self.fail_times = 0

    @property
    def dimension(self) -> int:
        return self.dim

    @property
    def is_available(self) -> bool:
        return True

    def _vector(self, text: str) -> List[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [((digest[i % len(digest)] / 255.0) - 0.5) for i in range(self.dim)]

    def embed_single(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        self.calls.append(text)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("embedding backend unavailable")
        return self._vector(text)

    def embed(self, texts: List[str]) -> List[List[float]]:
        return [self.embed_single(t) for t in texts]


@pytest.fixture
def fake_embedding():
    return FakeEmbeddingService()


@pytest.fixture
def no_sleep():
    """Skip retry backoff delays"""
    from unittest.mock import AsyncMock, patch
    with patch("cortex.common.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep
