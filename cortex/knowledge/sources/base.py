"""
Knowledge Source Contract

Each source (an Obsidian vault, a wiki, a tracker) yields SourceItems for
the knowledge service to upsert.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class SourceItem:
    """A single document fetched from a source"""
    id: str  # unique within the source
    title: str
    content: str
    source_id: str
    path: str = ""
    last_modified: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SourceStatus:
    """Health of a source"""
    source_id: str
    is_active: bool
    item_count: int = 0
    last_sync_time: Optional[datetime] = None
    error_message: Optional[str] = None


class KnowledgeSource(ABC):
    """Base class for pluggable knowledge sources"""

    source_id: str = ""
    display_name: str = ""

    @abstractmethod
    async def is_available(self) -> bool:
        """Check if this source is configured and reachable"""
        pass

    @abstractmethod
    async def sync_data(self, config: Optional[Dict[str, Any]] = None) -> List[SourceItem]:
        """
        Fetch every item from the source.

        Args:
            config: Source-specific overrides (e.g. vault_path)
        """
        pass

    @abstractmethod
    async def get_status(self) -> SourceStatus:
        pass
