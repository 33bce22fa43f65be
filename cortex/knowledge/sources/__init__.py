"""Knowledge sources"""

from .base import KnowledgeSource, SourceItem, SourceStatus
from .obsidian import ObsidianSource

__all__ = ["KnowledgeSource", "SourceItem", "SourceStatus", "ObsidianSource"]
