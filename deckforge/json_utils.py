"""
Tolerant JSON extraction from LLM replies.

Models often wrap the requested object in prose or Markdown fences. These
helpers locate the first balanced top-level object, honoring string literals
and escapes, and decode it.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

import json
from typing import Any, Dict, Optional

from deckforge.errors import ResponseContractError


def find_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` span of text that decodes as JSON, or None."""
    start = text.find("{")
    while start != -1:
        end = _match_brace(text, start)
        if end is None:
            return None
        candidate = text[start:end + 1]
        try:
            json.loads(candidate)
            return candidate
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
    return None


def _match_brace(text: str, start: int) -> Optional[int]:
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Decode the first top-level JSON object embedded in text.

    Raises:
        ResponseContractError: no decodable object was found
    """
    if not text:
        raise ResponseContractError("Empty response", ["empty response"])
    span = find_json_object(text)
    if span is None:
        raise ResponseContractError("No JSON object found in response", ["no JSON object"])
    return json.loads(span)
