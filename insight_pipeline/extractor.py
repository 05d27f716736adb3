"""
Structured extractor shared by every provider adapter.

The prompt contract is three literal section markers:

    SUMMARY:
    INSIGHTS:
    RECOMMENDATIONS:

`extract()` splits a raw reply on those markers; the JSON helpers turn a
section body into Python objects. Everything here is pure: same input, same
output, no logging of reply content.
"""

import json
import re
from typing import Any, Dict, List, Optional

from .schemas import ParsedSections


SUMMARY_MARKER = "SUMMARY:"
INSIGHTS_MARKER = "INSIGHTS:"
RECOMMENDATIONS_MARKER = "RECOMMENDATIONS:"
SECTION_MARKERS = (SUMMARY_MARKER, INSIGHTS_MARKER, RECOMMENDATIONS_MARKER)

# A marker anywhere in the reply, as a whole word, tolerating markdown decoration
# such as "## SUMMARY:" or "**SUMMARY:**".
_MARKER_NAMES = "|".join(re.escape(marker.rstrip(":")) for marker in SECTION_MARKERS)
_MARKER_RE = re.compile(rf"[ \t>#*_]*\b({_MARKER_NAMES})\b[ \t*_]*:[ \t*_]*")
_FENCED_RE = re.compile(r"```[a-zA-Z]*[ \t]*\n?([\s\S]*?)\n?[ \t]*```")
_FENCE_RE = re.compile(r"```[a-zA-Z]*")

_FIELDS = {
    "SUMMARY": "summary_text",
    "INSIGHTS": "insights_json_text",
    "RECOMMENDATIONS": "recommendations_json_text",
}


def strip_fences(text: str) -> str:
    """Return the body of the first fenced code block, or the text with stray fences removed."""
    text = text.strip()
    if "```" not in text:
        return text
    match = _FENCED_RE.search(text)
    if match:
        return match.group(1).strip()
    return _FENCE_RE.sub("", text).strip()


def extract(raw_text: Optional[str]) -> ParsedSections:
    """
    Split a provider reply into its three sections.

    Each section runs from its marker up to the next marker (or end of text).
    The first occurrence of a marker wins; a missing marker or an empty body
    leaves the corresponding field as None.
    """
    if not raw_text:
        return ParsedSections()

    matches = list(_MARKER_RE.finditer(raw_text))
    found: Dict[str, Optional[str]] = {}
    for idx, match in enumerate(matches):
        name = match.group(1)
        if _FIELDS[name] in found:
            continue
        end = matches[idx + 1].start() if idx + 1 < len(matches) else len(raw_text)
        body = raw_text[match.end():end].strip()
        if name == "SUMMARY":
            body = strip_fences(body)
        found[_FIELDS[name]] = body or None

    return ParsedSections(**found)


def _matching_bracket(text: str, start: int) -> int:
    """Index of the bracket closing text[start], skipping over JSON strings. -1 if unbalanced."""
    opener = text[start]
    closer = "]" if opener == "[" else "}"
    depth = 0
    in_string = False
    i = start

    while i < len(text):
        char = text[i]

        if in_string:
            if char == "\\" and i + 1 < len(text):
                i += 2
                continue
            elif char == '"':
                in_string = False
        else:
            if char == '"':
                in_string = True
            elif char == opener:
                depth += 1
            elif char == closer:
                depth -= 1
                if depth == 0:
                    return i
        i += 1

    return -1


def parse_json_block(text: Optional[str]) -> Any:
    """
    Parse the JSON value held in a section body.

    Handles fenced code blocks and prose around the JSON by locating the
    outermost array or object. Raises ValueError when nothing parses.
    """
    if text is None:
        raise ValueError("Section is missing")

    text = strip_fences(text)
    if not text:
        raise ValueError("Section is empty")

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    starts = [pos for pos in (text.find("["), text.find("{")) if pos != -1]
    if not starts:
        raise json.JSONDecodeError("No JSON array or object found", text, 0)

    start = min(starts)
    end = _matching_bracket(text, start)
    if end == -1:
        raise json.JSONDecodeError("Unmatched brackets in JSON", text, start)

    return json.loads(text[start:end + 1])


def as_item_list(value: Any, key: str) -> List[Dict[str, Any]]:
    """
    Coerce a parsed section into a list of JSON objects.

    A single object becomes a one-element list, and an object that wraps the
    list under `key` (e.g. {"insights": [...]}) is unwrapped. Non-object
    entries are dropped. Raises ValueError when nothing usable remains.
    """
    if isinstance(value, dict):
        inner = value.get(key)
        if isinstance(inner, (list, dict)):
            value = inner
        else:
            value = [value]
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        raise ValueError(f"Expected a JSON array of {key}, got {type(value).__name__}")

    items = [item for item in value if isinstance(item, dict)]
    if not items:
        raise ValueError(f"No {key} objects found")
    return items


def parse_items(text: Optional[str], key: str) -> List[Dict[str, Any]]:
    return as_item_list(parse_json_block(text), key)
