"""
Structural Memory Classifier

Pattern matching over document shape and markers: headings, checkboxes,
code fences, citations and command prompts.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from ..common.schemas import MemoryClassification
from .base import MemoryClassifier

logger = logging.getLogger("cortex.classifier.structural")

_I = re.IGNORECASE
_LINK_RE = re.compile(r"https?://\S+|\[\[[^\]]+\]\]|\[[^\]]+\]\([^)]+\)")
_NUMBERED_RE = re.compile(r"\d+\.\s")


@dataclass(frozen=True)
class PatternSet:
    """Regex markers for one category and the weight of a full match"""
    patterns: tuple
    weight: float = 1.0


def _patterns(*specs, flags: int = 0) -> tuple:
    return tuple(re.compile(s, flags) for s in specs)


TYPE_PATTERNS: Dict[str, PatternSet] = {
    "meeting": PatternSet(
        _patterns(
            r"##\s*(Meeting|Standup|Sync|Retro)",
            r"(Agenda|Participants|Attendees):",
            r"Action\s+(items?|points?)",
            r"\b(discussed|decided|agreed)\b",
            flags=_I,
        ),
        weight=1.0,
    ),
    "task": PatternSet(
        _patterns(r"- \[ \]|\* \[ \]")
        + _patterns(
            r"\b(TODO|FIXME|HACK)\b",
            r"\b(task|tasks|assignee|blocked)\b",
            r"(due|deadline)\s*(date)?:?\s*\d",
            flags=_I,
        ),
        weight=1.2,
    ),
    "code": PatternSet(
        _patterns(
            r"```\w*",
            r"\b(function|class|interface|enum|struct)\s+\w+",
            r"\b(import|from|include|require)\s+",
            r"\w+\(.*\)\s*[{:]",
            r"\b(var|let|const|def|public|private)\b",
        ),
        weight=1.3,
    ),
    "research": PatternSet(
        _patterns(
            r"(sources?|references?|bibliography):",
            r"\[\d+\]|\(\d{4}\)|doi:",
            r"\b(study|research|analysis|survey)\b",
            r"\b(hypothesis|conclusion|findings)\b",
            flags=_I,
        ),
        weight=1.0,
    ),
    "documentation": PatternSet(
        _patterns(
            r"##?\s*(API|Usage|Installation|Configuration)",
            r"\b(example|tutorial|guide)\b",
            flags=_I,
        )
        + _patterns(
            r"```\s*(bash|shell|console|cmd)",
            r"\$\s+\w+|>\s+\w+",
        ),
        weight=1.0,
    ),
    "project": PatternSet(
        _patterns(
            r"##?\s*(Project|Requirements|Scope)",
            r"\b(milestone|roadmap|timeline|phase)\b",
            r"\b(deliverable|sprint|release)\b",
            r"##\s*(Status|Progress)",
            flags=_I,
        ),
        weight=1.0,
    ),
    "note": PatternSet(
        _patterns(r"^#\s+", flags=re.MULTILINE)
        + _patterns(
            r"\b(note|important|idea)\b",
            r"\b(remember|keep in mind)\b",
            flags=_I,
        ),
        weight=0.8,
    ),
}


def analyze_structure(content: str) -> Dict[str, Any]:
    """Shape fingerprint of a document"""
    lines = content.splitlines()
    stripped = [line.strip() for line in lines]
    words = content.split()
    link_count = len(_LINK_RE.findall(content))

    return {
        "has_headings": any(s.startswith("#") for s in stripped),
        "heading_count": sum(1 for s in stripped if s.startswith("#")),
        "has_lists": any(
            s.startswith(("-", "*")) or _NUMBERED_RE.match(s) for s in stripped
        ),
        "has_code_blocks": "```" in content,
        "code_block_count": content.count("```") // 2,
        "link_count": link_count,
        "link_density": link_count / len(words) if words else 0.0,
        "checkbox_count": sum(
            1 for s in stripped if "[ ]" in s or "[x]" in s.lower()
        ),
        "line_count": len(lines),
        "word_count": len(words),
        "avg_line_length": sum(len(line) for line in lines) // len(lines) if lines else 0,
        "has_yaml_frontmatter": content.lstrip().startswith("---"),
    }


class StructuralMemoryClassifier(MemoryClassifier):
    """
    Classifies by counting matched markers per category.

    score = matched / total * weight, confidence = min(score, 1).
    """

    classifier_type = "structural"

    def __init__(self, patterns: Optional[Dict[str, PatternSet]] = None):
        self._patterns = patterns if patterns is not None else TYPE_PATTERNS

    def supported_types(self) -> Set[str]:
        return set(self._patterns)

    async def classify(
        self,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MemoryClassification:
        if not content or not content.strip():
            return self.unknown(reason="empty_content")

        matches: Dict[str, int] = {}
        scores: Dict[str, float] = {}
        for memory_type, pattern_set in self._patterns.items():
            matched = sum(1 for p in pattern_set.patterns if p.search(content))
            matches[memory_type] = matched
            scores[memory_type] = (matched / len(pattern_set.patterns)) * pattern_set.weight

        if not scores or max(scores.values()) <= 0:
            return self.unknown(reason="no_patterns", all_matches=matches)

        best_type = max(scores, key=scores.get)
        best_set = self._patterns[best_type]

        logger.debug(
            "Structural classification: %s (%d/%d patterns)",
            best_type, matches[best_type], len(best_set.patterns),
        )

        return MemoryClassification(
            primary=best_type,
            secondary=self.classifier_type,
            confidence=min(scores[best_type], 1.0),
            attributes={
                "matched_patterns": matches[best_type],
                "total_patterns": len(best_set.patterns),
                "weight": best_set.weight,
                "all_matches": matches,
                "content_lines": len(content.splitlines()),
                "structure": analyze_structure(content),
            },
        )
