"""
Obsidian Source

Reads *.md files from a vault directory.
"""

import asyncio
import hashlib
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..markdown import MarkdownParser
from .base import KnowledgeSource, SourceItem, SourceStatus

logger = logging.getLogger("cortex.knowledge.sources.obsidian")


def file_id(relative_path: str) -> str:
    """Stable item id: SHA-256 of the vault-relative path"""
    return hashlib.sha256(relative_path.encode("utf-8")).hexdigest()


class ObsidianSource(KnowledgeSource):
    """Markdown vault on the local filesystem"""

    source_id = "obsidian"
    display_name = "Obsidian Vault"

    def __init__(self, vault_path: str = "", parser: Optional[MarkdownParser] = None):
        self._vault_path = vault_path
        self._parser = parser or MarkdownParser()
        self._last_sync: Optional[datetime] = None

    @property
    def vault_path(self) -> str:
        return self._vault_path

    async def is_available(self) -> bool:
        if not self._vault_path:
            return False
        return Path(self._vault_path).expanduser().is_dir()

    async def sync_data(self, config: Optional[Dict[str, Any]] = None) -> List[SourceItem]:
        """
        Parse every markdown file under the vault.

        Raises:
            FileNotFoundError: vault path missing or not a directory
        """
        vault = (config or {}).get("vault_path") or self._vault_path
        root = Path(vault).expanduser() if vault else None
        if root is None or not root.is_dir():
            raise FileNotFoundError(f"Vault path does not exist: {vault}")

        items = await asyncio.to_thread(self._read_vault, root)
        self._last_sync = datetime.now(timezone.utc)
        logger.info("Synced %d files from Obsidian vault %s", len(items), root)
        return items

    def _read_vault(self, root: Path) -> List[SourceItem]:
        items = []
        for file_path in sorted(root.rglob("*.md")):
            if not file_path.is_file():
                continue
            try:
                items.append(self._read_file(file_path, root))
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Error processing file %s: %s", file_path, e)
        return items

    def _read_file(self, file_path: Path, root: Path) -> SourceItem:
        raw = file_path.read_text(encoding="utf-8")
        relative = file_path.relative_to(root).as_posix()
        modified = datetime.fromtimestamp(file_path.stat().st_mtime, tz=timezone.utc)

        parsed = self._parser.parse(raw, relative)
        metadata = self._parser.to_metadata(parsed, "/" + relative, modified)

        return SourceItem(
            id=file_id(relative),
            title=parsed.title,
            content=self._parser.clean(parsed.content),
            source_id=self.source_id,
            path=relative,
            last_modified=modified,
            metadata=metadata,
        )

    async def get_status(self) -> SourceStatus:
        root = Path(self._vault_path).expanduser() if self._vault_path else None
        if root is None or not root.is_dir():
            return SourceStatus(
                source_id=self.source_id,
                is_active=False,
                last_sync_time=self._last_sync,
                error_message="Vault path does not exist",
            )

        count = await asyncio.to_thread(
            lambda: sum(1 for p in root.rglob("*.md") if p.is_file())
        )
        return SourceStatus(
            source_id=self.source_id,
            is_active=True,
            item_count=count,
            last_sync_time=self._last_sync,
        )
