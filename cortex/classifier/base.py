"""
Memory Classifier Contract

Every classification strategy maps (content, metadata) to a single
MemoryClassification. Strategies never raise for empty or malformed input;
they degrade to the "unknown" category with confidence 0.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set

from ..common.schemas import MemoryClassification


class MemoryClassifier(ABC):
    """Base class for classification strategies"""

    # Strategy id used for ensemble weighting
    classifier_type: str = ""

    @abstractmethod
    async def classify(
        self,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MemoryClassification:
        """
        Classify content into a memory type.

        Args:
            content: Raw text of the item
            metadata: Optional contextual metadata (path, tags, source, timestamps)

        Returns:
            MemoryClassification with confidence in [0, 1]
        """
        pass

    @abstractmethod
    def supported_types(self) -> Set[str]:
        """Categories this strategy can produce"""
        pass

    def unknown(self, **attributes: Any) -> MemoryClassification:
        """Degraded result tagged with this strategy's id"""
        return MemoryClassification.unknown(self.classifier_type, **attributes)
