"""
Obsidian Vault Manager

Read and write access to the notes of a markdown vault: CRUD, move,
listing, full-text search, tags, backlinks and folders.

Paths are vault-relative; a missing ".md" suffix is added and paths that
resolve outside the vault are rejected. Methods are blocking and raise:
    FileNotFoundError: note or folder does not exist
    FileExistsError: target of a create or move already exists
    ValueError: path escapes the vault or is empty
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .markdown import MarkdownParser

logger = logging.getLogger("cortex.knowledge.vault")

SHORT_NOTE_LENGTH = 1000
FRAGMENT_CONTEXT = 50
MAX_FRAGMENTS = 3


@dataclass
class NoteInfo:
    """Listing entry for a note"""
    path: str
    title: str
    tags: List[str]
    modified_at: datetime
    size: int


@dataclass
class MarkdownNote:
    """A note read from the vault"""
    path: str
    title: str
    content: str  # body without frontmatter
    raw_content: str
    frontmatter: Dict[str, Any]
    tags: List[str]
    wiki_links: List[str]
    modified_at: datetime
    size: int

    def info(self) -> NoteInfo:
        return NoteInfo(self.path, self.title, list(self.tags), self.modified_at, self.size)


@dataclass
class VaultSearchHit:
    """Full-text match with relevance score and matching fragments"""
    note: NoteInfo
    relevance: float
    fragments: List[str] = field(default_factory=list)


def _normalize_tags(tags: Iterable[Any]) -> List[str]:
    result = []
    for tag in tags:
        tag = str(tag).strip().lstrip("#")
        if tag and tag not in result:
            result.append(tag)
    return result


class ObsidianVaultManager:
    """Filesystem operations on an Obsidian vault"""

    def __init__(self, vault_path: str, parser: Optional[MarkdownParser] = None):
        self._root = Path(vault_path).expanduser() if vault_path else None
        self._parser = parser or MarkdownParser()

    @property
    def root(self) -> Optional[Path]:
        return self._root

    def is_available(self) -> bool:
        return self._root is not None and self._root.is_dir()

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def read_note(self, note_path: str) -> MarkdownNote:
        full_path = self._resolve_note(note_path)
        if not full_path.is_file():
            raise FileNotFoundError(f"Note not found: {note_path}")
        return self._load(full_path)

    def list_notes(self, folder: Optional[str] = None) -> List[NoteInfo]:
        """Notes under folder (whole vault when None), sorted by title"""
        base = self._resolve_folder(folder) if folder else self._require_root()
        if not base.is_dir():
            raise FileNotFoundError(f"Folder not found: {folder}")

        notes = [self._load(p).info() for p in self._markdown_files(base)]
        return sorted(notes, key=lambda n: n.title.lower())

    def search_notes(
        self,
        query: str,
        folder: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        limit: int = 10,
    ) -> List[VaultSearchHit]:
        """
        Substring search over titles and bodies.

        Every requested tag must be present on a note. A "#tag" query with
        tags given matches on tags alone.
        """
        query_lower = (query or "").strip().lower()
        required = set(_normalize_tags(tags or []))
        prefix = (folder or "").strip("/")

        hits = []
        for note in self._all_notes():
            if prefix and not (note.path == prefix or note.path.startswith(prefix + "/")):
                continue
            if required and not required.issubset(note.tags):
                continue
            tag_only = bool(required) and query_lower.startswith("#")
            if not tag_only and query_lower not in note.title.lower() \
                    and query_lower not in note.content.lower():
                continue
            hits.append(VaultSearchHit(
                note=note.info(),
                relevance=self._relevance(note, query_lower),
                fragments=self._fragments(note, query_lower),
            ))

        hits.sort(key=lambda h: h.relevance, reverse=True)
        logger.debug("Vault search %r matched %d notes", query, len(hits))
        return hits[:limit]

    def get_all_tags(self) -> List[str]:
        tags = set()
        for note in self._all_notes():
            tags.update(note.tags)
        return sorted(tags)

    def get_backlinks(self, note_path: str) -> List[str]:
        """Paths of notes whose wiki-links point at note_path (by title or path)"""
        relative = self._relative(self._resolve_note(note_path))
        targets = {relative.lower(), relative[:-3].lower(), Path(relative).stem.lower()}
        return [
            note.path
            for note in self._all_notes()
            if any(link.lower() in targets for link in note.wiki_links)
        ]

    def list_folders(self) -> List[str]:
        """Vault-relative folders, hidden ones (e.g. .obsidian) excluded"""
        root = self._require_root()
        folders = []
        for path in root.rglob("*"):
            relative = path.relative_to(root)
            if path.is_dir() and not any(part.startswith(".") for part in relative.parts):
                folders.append(relative.as_posix())
        return sorted(folders)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create_note(
        self,
        note_path: str,
        title: str,
        content: str = "",
        tags: Sequence[str] = (),
        frontmatter: Optional[Dict[str, Any]] = None,
    ) -> MarkdownNote:
        full_path = self._resolve_note(note_path)
        if full_path.exists():
            raise FileExistsError(f"Note already exists: {note_path}")

        header = dict(frontmatter or {})
        header["title"] = title
        tag_list = _normalize_tags(tags)
        if tag_list:
            header["tags"] = tag_list
        header["created"] = datetime.now(timezone.utc).isoformat()

        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_text(self._parser.render(content, header), encoding="utf-8")
        logger.info("Created note %s", self._relative(full_path))
        return self._load(full_path)

    def update_note(
        self,
        note_path: str,
        content: Optional[str] = None,
        title: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        frontmatter: Optional[Dict[str, Any]] = None,
    ) -> MarkdownNote:
        """Rewrite a note; arguments left as None keep their current value"""
        current = self.read_note(note_path)

        header = dict(current.frontmatter)
        if title is not None:
            header["title"] = title
        if tags is not None:
            header["tags"] = _normalize_tags(tags)
        if frontmatter:
            header.update(frontmatter)
        header["modified"] = datetime.now(timezone.utc).isoformat()

        body = current.content if content is None else content
        full_path = self._resolve_note(note_path)
        full_path.write_text(self._parser.render(body, header), encoding="utf-8")
        logger.info("Updated note %s", current.path)
        return self._load(full_path)

    def delete_note(self, note_path: str) -> str:
        full_path = self._resolve_note(note_path)
        if not full_path.is_file():
            raise FileNotFoundError(f"Note not found: {note_path}")

        full_path.unlink()
        relative = self._relative(full_path)
        logger.info("Deleted note %s", relative)
        return relative

    def move_note(self, old_path: str, new_path: str) -> MarkdownNote:
        source = self._resolve_note(old_path)
        target = self._resolve_note(new_path)
        if not source.is_file():
            raise FileNotFoundError(f"Source note not found: {old_path}")
        if target.exists():
            raise FileExistsError(f"Destination already exists: {new_path}")

        target.parent.mkdir(parents=True, exist_ok=True)
        source.rename(target)
        logger.info("Moved note %s -> %s", self._relative(source), self._relative(target))
        return self._load(target)

    def create_folder(self, folder: str) -> str:
        full_path = self._resolve_folder(folder)
        if full_path.exists():
            raise FileExistsError(f"Folder already exists: {folder}")

        full_path.mkdir(parents=True)
        relative = self._relative(full_path)
        logger.info("Created folder %s", relative)
        return relative

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_root(self) -> Path:
        if not self.is_available():
            raise FileNotFoundError(f"Vault path does not exist: {self._root}")
        return self._root

    def _inside(self, relative: str) -> Path:
        root = self._require_root()
        relative = relative.strip().lstrip("/")
        if not relative:
            raise ValueError("Empty vault path")

        full_path = (root / relative).resolve()
        try:
            full_path.relative_to(root.resolve())
        except ValueError:
            raise ValueError(f"Path escapes the vault: {relative}") from None
        return full_path

    def _resolve_note(self, note_path: str) -> Path:
        note_path = (note_path or "").strip()
        if note_path and not note_path.endswith(".md"):
            note_path += ".md"
        return self._inside(note_path)

    def _resolve_folder(self, folder: str) -> Path:
        return self._inside((folder or "").strip().rstrip("/"))

    def _relative(self, full_path: Path) -> str:
        return full_path.resolve().relative_to(self._root.resolve()).as_posix()

    @staticmethod
    def _markdown_files(base: Path) -> List[Path]:
        return [p for p in sorted(base.rglob("*.md")) if p.is_file()]

    def _all_notes(self) -> List[MarkdownNote]:
        notes = []
        for path in self._markdown_files(self._require_root()):
            try:
                notes.append(self._load(path))
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Error reading note %s: %s", path, e)
        return notes

    def _load(self, full_path: Path) -> MarkdownNote:
        raw = full_path.read_text(encoding="utf-8")
        relative = self._relative(full_path)
        stat = full_path.stat()
        parsed = self._parser.parse(raw, relative)

        return MarkdownNote(
            path=relative,
            title=parsed.title,
            content=parsed.content,
            raw_content=raw,
            frontmatter=parsed.frontmatter,
            tags=parsed.tags,
            wiki_links=parsed.wiki_links,
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            size=stat.st_size,
        )

    @staticmethod
    def _relevance(note: MarkdownNote, query: str) -> float:
        score = 0.0
        title = note.title.lower()
        if query and query in title:
            score += 10.0
            if title == query:
                score += 5.0
        if query:
            score += note.content.lower().count(query)
            score += 3.0 * sum(1 for tag in note.tags if query in tag.lower())
        if len(note.content) < SHORT_NOTE_LENGTH:
            score += 1.0
        return score

    @staticmethod
    def _fragments(note: MarkdownNote, query: str) -> List[str]:
        if not query:
            return []
        pattern = re.compile(
            r".{0,%d}%s.{0,%d}" % (FRAGMENT_CONTEXT, re.escape(query), FRAGMENT_CONTEXT),
            re.IGNORECASE,
        )
        return [f"...{m.group(0).strip()}..." for m in pattern.finditer(note.content)][:MAX_FRAGMENTS]
