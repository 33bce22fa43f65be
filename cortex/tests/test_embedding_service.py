"""Tests for EmbeddingService and the cosine helpers."""

import sys
import numpy as np
import pytest
from unittest.mock import MagicMock, patch


class TestCosineHelpers:
    def test_cosine_similarity_identical_and_orthogonal(self):
        from cortex.common.embedding_service import cosine_similarity
        assert cosine_similarity([1.0, 0.0], [2.0, 0.0]) == pytest.approx(1.0)
        assert cosine_similarity([1.0, 0.0], [0.0, 3.0]) == pytest.approx(0.0)

    def test_cosine_similarity_zero_vector(self):
        from cortex.common.embedding_service import cosine_similarity
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_cosine_similarity_dimension_mismatch(self):
        from cortex.common.embedding_service import cosine_similarity
        with pytest.raises(ValueError, match="mismatch"):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])

    def test_cosine_distances(self):
        from cortex.common.embedding_service import cosine_distances
        matrix = [[1.0, 0.0], [0.0, 1.0], [-1.0, 0.0], [0.0, 0.0]]
        distances = cosine_distances(matrix, [1.0, 0.0])
        assert distances.dtype == np.float64
        assert list(distances) == pytest.approx([0.0, 1.0, 2.0, 1.0])

    def test_cosine_distances_empty(self):
        from cortex.common.embedding_service import cosine_distances
        assert cosine_distances(np.zeros((0, 3)), [1.0, 0.0, 0.0]).size == 0


class TestEmbeddingService:
    def test_unsupported_mode_is_unavailable(self, caplog):
        import logging
        from cortex.common.embedding_service import EmbeddingService
        with caplog.at_level(logging.WARNING, logger="cortex.common.embedding_service"):
            service = EmbeddingService(mode="remote")
            assert not service.is_available
        assert "Unsupported embedding mode" in caplog.text

    def test_embed_raises_when_unavailable(self):
        from cortex.common.embedding_service import EmbeddingService
        service = EmbeddingService(mode="remote")
        with pytest.raises(RuntimeError, match="not initialized"):
            service.embed(["text"])

    def test_embed_single_rejects_blank(self):
        from cortex.common.embedding_service import EmbeddingService
        service = EmbeddingService()
        with pytest.raises(ValueError, match="empty"):
            service.embed_single("   ")

    def test_embed_uses_fastembed_model(self):
        from cortex.common.embedding_service import EmbeddingService

        model = MagicMock()
        model.embed.side_effect = lambda texts: (np.ones(4, dtype=np.float32) for _ in texts)
        fastembed = MagicMock()
        fastembed.TextEmbedding.return_value = model

        with patch.dict(sys.modules, {"fastembed": fastembed}):
            service = EmbeddingService(model="test-model", dimension=4)
            vectors = service.embed(["a", "b"])

        fastembed.TextEmbedding.assert_called_once_with(model_name="test-model")
        assert vectors == [[1.0] * 4, [1.0] * 4]

    def test_embed_dimension_mismatch(self):
        from cortex.common.embedding_service import EmbeddingService

        model = MagicMock()
        model.embed.side_effect = lambda texts: (np.ones(3, dtype=np.float32) for _ in texts)
        fastembed = MagicMock()
        fastembed.TextEmbedding.return_value = model

        with patch.dict(sys.modules, {"fastembed": fastembed}):
            service = EmbeddingService(dimension=4)
            with pytest.raises(ValueError, match="dimension"):
                service.embed_single("hello")
