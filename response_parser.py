"""Extract and parse duplicate-group JSON from free-form model text.

Models sometimes wrap their JSON in a fenced block. The extraction grammar is:

* fence present: an opening fence (three backticks or three double quotes,
  optionally tagged ``json``) closed by the same fence. The enclosed text is
  returned.
* malformed fence: an opening fence that is never closed. Everything after
  the opening fence line is returned.
* fence absent: the whole text is returned.

In every case the result is stripped of surrounding whitespace.
"""

from __future__ import annotations

import json
import re
from json import JSONDecodeError
from typing import Any

from errors import ResponseParseError
from models import DuplicateGroup, ItemRecord

_FENCED = re.compile(r'(```|""")[ \t]*(?:json)?[ \t]*\r?\n?(.*?)\1', re.DOTALL | re.IGNORECASE)
_OPEN_FENCE = re.compile(r'(```|""")[ \t]*(?:json)?[ \t]*(?:\r?\n|$)', re.IGNORECASE)


def extract_json_payload(text: str) -> str:
    """Return the structured payload embedded in ``text`` (see module docstring)."""
    match = _FENCED.search(text)
    if match:
        return match.group(2).strip()

    opening = _OPEN_FENCE.search(text)
    if opening:
        return text[opening.end():].strip()

    return text.strip()


def parse_duplicate_groups(text: str) -> list[DuplicateGroup]:
    """Parse model text into duplicate groups, raising ResponseParseError on bad input."""
    payload = extract_json_payload(text or "")
    if not payload:
        raise ResponseParseError("Could not extract JSON from AI response", raw_text=text or "")

    try:
        data = json.loads(payload)
    except JSONDecodeError as exc:
        raise ResponseParseError(f"Failed to parse JSON from AI response: {exc}", raw_text=text) from exc

    if not isinstance(data, dict) or not isinstance(data.get("duplicates"), list):
        raise ResponseParseError("AI response JSON has no 'duplicates' list", raw_text=text)

    return [_parse_group(raw, text) for raw in data["duplicates"]]


def _parse_group(raw: Any, text: str) -> DuplicateGroup:
    if not isinstance(raw, dict) or not isinstance(raw.get("items"), list):
        raise ResponseParseError("Duplicate group is missing its 'items' list", raw_text=text)

    reason = raw.get("reason")
    score = raw.get("confidence_score")
    return DuplicateGroup(
        items=tuple(_parse_member(item, text) for item in raw["items"]),
        confidence_score=score if isinstance(score, (int, float)) else None,
        reason=reason if isinstance(reason, str) else "",
    )


def _parse_member(raw: Any, text: str) -> ItemRecord:
    if not isinstance(raw, dict):
        raise ResponseParseError("Duplicate group member is not an object", raw_text=text)

    item = ItemRecord.from_upstream(raw)
    for field, value, allowed in (
        ("item_name", item.item_name, (str,)),
        ("unit", item.unit, (str,)),
        ("rate", item.rate, (int, float, str)),
    ):
        if value is not None and not isinstance(value, allowed):
            raise ResponseParseError(f"Duplicate group member has an invalid {field!r}", raw_text=text)
    return item
