"""Shared utilities for cleaning LLM responses."""

from __future__ import annotations

import json

_QUOTES = "\"'`"
_TRAILING = ".,;:!"


def _strip_fences(text: str) -> str:
    if text.startswith("```"):
        lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
        text = "\n".join(lines)
    return text


def normalize_llm_answer(raw: str) -> str:
    """Reduce a one-word LLM answer to the bare token.

    Tries in order:
    1. Strip markdown code fences
    2. Keep the first non-empty line
    3. Strip surrounding quotes/backticks and trailing punctuation
    4. Return empty string when nothing is left
    """
    if not raw:
        return ""

    text = _strip_fences(raw.strip())

    lines = [l.strip() for l in text.split("\n") if l.strip()]
    if not lines:
        return ""

    answer = lines[0].strip(_QUOTES).rstrip(_TRAILING).strip().strip(_QUOTES)
    return answer


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads
    3. Return empty dict (also for valid JSON that is not an object)
    """
    if not raw:
        return {}

    text = _strip_fences(raw.strip())
    try:
        data = json.loads(text)
        return data if isinstance(data, dict) else {}
    except json.JSONDecodeError:
        pass

    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            data = json.loads(raw[start:end])
            return data if isinstance(data, dict) else {}
        except json.JSONDecodeError:
            pass

    return {}
