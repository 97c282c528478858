"""Normalize generator output into text that always parses as JSON.

Strategies, first success wins:

1. the text is already valid JSON: returned as-is (trimmed)
2. the text is a ``{"content": "..."}`` wrapper (parsed leniently, so raw
   newlines inside the string are accepted) whose content carries a
   ```` ```json ```` fenced block that parses on its own: the block
   is returned
3. the raw text carries such a fenced block: the block is returned
4. anything else is wrapped as ``{"content": <text>}``

If even the wrapper cannot be serialized, ``FAILED_REPORT`` is returned.
Blank input becomes ``"{}"``.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)

FAILED_REPORT = '{"content":"Report generation failed"}'
EMPTY_REPORT = "{}"

_FENCE = "```"
_JSON_FENCE = "```json"


def _parses(text: str, strict: bool = True) -> bool:
    try:
        json.loads(text, strict=strict)
    except ValueError:
        return False
    return True


def extract_fenced_json(text: Optional[str]) -> Optional[str]:
    """Return the body of the first ```` ```json ```` block, or None.

    The block starts after a line beginning with ```` ```json ```` and ends
    at the next line beginning with ```` ``` ```` (or at end of text).
    """
    if text is None:
        return None

    body: list[str] = []
    inside = False
    for line in text.split("\n"):
        stripped = line.strip()
        if stripped.startswith(_JSON_FENCE):
            inside = True
            continue
        if inside and stripped.startswith(_FENCE):
            break
        if inside:
            body.append(line)

    block = "\n".join(body).strip()
    return block or None


def _from_wrapper(text: str) -> Optional[str]:
    try:
        wrapper: Any = json.loads(text, strict=False)
    except ValueError:
        return None
    if not isinstance(wrapper, dict) or not isinstance(wrapper.get("content"), str):
        return None
    inner = extract_fenced_json(wrapper["content"])
    if inner is not None and _parses(inner):
        return inner
    return None


def normalize_report(text: Optional[str]) -> str:
    """Return ``text`` in a form that ``json.loads`` always accepts."""
    if text is None or not text.strip():
        return EMPTY_REPORT

    cleaned = text.strip()

    if _parses(cleaned):
        return cleaned

    inner = _from_wrapper(cleaned)
    if inner is not None:
        return inner

    block = extract_fenced_json(cleaned)
    if block is not None:
        if _parses(block):
            return block
        logger.warning("fenced_block_not_json", length=len(block))

    try:
        return json.dumps({"content": cleaned}, ensure_ascii=False)
    except (TypeError, ValueError):
        logger.error("report_wrap_failed", exc_info=True)
        return FAILED_REPORT
