"""
Generic utilities for parsing structured data from LLM responses.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json|JSON)?[ \t]*\r?\n?")
_FENCE_CLOSE = re.compile(r"\s*```$")


def strip_code_fences(raw: str) -> str:
    """
    Remove a markdown fence (```json ... ```) wrapping the whole response.

    Backticks inside the payload are left alone; a fence preceded by prose
    is handled by the brace slicing in ``parse_llm_json``.
    """
    cleaned = _FENCE_OPEN.sub("", raw.strip(), count=1)
    cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_llm_json(raw: Optional[str]) -> Optional[Union[Dict[str, Any], List[Any]]]:
    """
    Extract a JSON object or array from a (possibly messy) LLM response.

    Handles common issues:
      - Markdown code fences (```json ... ```)
      - Leading/trailing prose around the JSON payload
      - Nested structures

    Whichever of ``{`` or ``[`` appears first decides whether an object or
    an array is extracted, so an object holding arrays is never sliced
    into a broken array.

    Returns the parsed Python dict/list, or ``None`` if no valid JSON was
    found.
    """
    if not raw or not raw.strip():
        return None

    cleaned = strip_code_fences(raw)

    obj_start = cleaned.find("{")
    arr_start = cleaned.find("[")
    if arr_start != -1 and (obj_start == -1 or arr_start < obj_start):
        order = (("[", "]"), ("{", "}"))
    else:
        order = (("{", "}"), ("[", "]"))

    json_str = None
    for open_char, close_char in order:
        json_str = _extract_json_substring(cleaned, open_char, close_char)
        if json_str is not None:
            break
    if json_str is None:
        logger.warning(
            "LLM response did not contain a JSON object or array: %s",
            raw[:200],
        )
        return None

    try:
        return json.loads(json_str)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse LLM JSON: %s - %s", exc, json_str[:200])
        return None


def _extract_json_substring(
    text: str, open_char: str, close_char: str
) -> Optional[str]:
    """Find the outermost ``open_char … close_char`` substring."""
    start = text.find(open_char)
    end = text.rfind(close_char)
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]
