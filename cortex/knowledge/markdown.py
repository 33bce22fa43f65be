"""
Markdown Parser

Turns raw Obsidian-style markdown into (content, metadata) pairs for
classification: YAML frontmatter, title, wiki-links and tags.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger("cortex.knowledge.markdown")

_FRONTMATTER_RE = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)
_H1_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$", re.MULTILINE)
_WIKI_LINK_RE = re.compile(r"(!?)\[\[([^\]]+)\]\]")
_INLINE_TAG_RE = re.compile(r"(?:^|(?<=\s))#([A-Za-z0-9_/-]+)")
_FENCED_CODE_RE = re.compile(r"```.*?```", re.DOTALL)


@dataclass
class ParsedMarkdown:
    """Normalized markdown document"""
    title: str
    content: str  # body without frontmatter
    raw_content: str
    frontmatter: Dict[str, Any] = field(default_factory=dict)
    wiki_links: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


def _dedupe(values: List[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


class MarkdownParser:
    """Parser for Obsidian-flavoured markdown"""

    def parse(self, raw_text: str, path: Union[str, Path] = "") -> ParsedMarkdown:
        raw_text = raw_text or ""
        frontmatter, body = self.split_frontmatter(raw_text)

        return ParsedMarkdown(
            title=self._extract_title(frontmatter, body, path),
            content=body,
            raw_content=raw_text,
            frontmatter=frontmatter,
            wiki_links=self.extract_wiki_links(body),
            tags=self.extract_tags(body, frontmatter),
        )

    def split_frontmatter(self, raw_text: str):
        """
        Separate YAML frontmatter from the body.

        Returns:
            Tuple of (frontmatter dict, body). Invalid YAML leaves the text
            untouched with an empty frontmatter.
        """
        match = _FRONTMATTER_RE.match(raw_text)
        if not match:
            return {}, raw_text

        try:
            data = yaml.safe_load(match.group(1))
        except yaml.YAMLError as e:
            logger.warning("Failed to parse frontmatter: %s", e)
            return {}, raw_text

        if data is None:
            data = {}
        if not isinstance(data, dict):
            logger.warning("Ignoring non-mapping frontmatter (%s)", type(data).__name__)
            data = {}

        return data, raw_text[match.end():]

    def _extract_title(self, frontmatter: Dict[str, Any], body: str, path) -> str:
        title = frontmatter.get("title")
        if title and str(title).strip():
            return str(title).strip()

        h1 = _H1_RE.search(body)
        if h1:
            return h1.group(1).strip()

        return Path(str(path)).stem if path else ""

    def extract_wiki_links(self, text: str) -> List[str]:
        """Link targets of [[target|alias]] / [[target#heading]], in order"""
        targets = []
        for match in _WIKI_LINK_RE.finditer(text):
            if match.group(1):
                continue  # embeds are not links
            target = match.group(2).split("|", 1)[0].split("#", 1)[0].strip()
            targets.append(target)
        return _dedupe(targets)

    def extract_tags(self, text: str, frontmatter: Optional[Dict[str, Any]] = None) -> List[str]:
        """Frontmatter tags (list or ',' / ';' separated string) plus inline #tags"""
        tags: List[str] = []

        fm_tags = (frontmatter or {}).get("tags")
        if isinstance(fm_tags, str):
            tags.extend(t.strip().lstrip("#") for t in re.split(r"[,;]", fm_tags))
        elif isinstance(fm_tags, (list, tuple)):
            tags.extend(str(t).strip().lstrip("#") for t in fm_tags if t is not None)

        searchable = _FENCED_CODE_RE.sub("", text)
        for match in _INLINE_TAG_RE.finditer(searchable):
            tag = match.group(1)
            if not tag.isdigit():
                tags.append(tag)

        return _dedupe(tags)

    def clean(self, content: str) -> str:
        """Replace Obsidian link syntax with readable text"""

        def _replace(match):
            inner = match.group(2)
            if match.group(1):
                return f"[{inner.split('|', 1)[0].strip()}]"
            return inner.split("|")[-1].split("#", 1)[0].strip()

        return _WIKI_LINK_RE.sub(_replace, content or "").strip()

    def render(self, content: str, frontmatter: Optional[Dict[str, Any]] = None) -> str:
        """Markdown text with a YAML frontmatter block, readable by split_frontmatter"""
        body = (content or "").lstrip("\n")
        if not frontmatter:
            return body

        header = yaml.safe_dump(dict(frontmatter), sort_keys=False, allow_unicode=True)
        return f"---\n{header}---\n\n{body}"

    def to_metadata(
        self,
        parsed: ParsedMarkdown,
        path: Union[str, Path],
        modified: Optional[Union[datetime, float, int]] = None,
    ) -> Dict[str, Any]:
        """
        Classification metadata for a parsed document.

        Frontmatter keys are carried over; path, title, tags, wiki_links and
        lastModified (epoch ms) take precedence over them.
        """
        metadata: Dict[str, Any] = dict(parsed.frontmatter)
        metadata.update({
            "path": str(path),
            "title": parsed.title,
            "tags": list(parsed.tags),
            "wiki_links": list(parsed.wiki_links),
        })

        if isinstance(modified, datetime):
            metadata["lastModified"] = int(modified.timestamp() * 1000)
        elif isinstance(modified, float):
            metadata["lastModified"] = int(modified * 1000)
        elif isinstance(modified, int):
            metadata["lastModified"] = modified

        return metadata
