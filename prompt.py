"""Prompt text for the duplicate-detection model call."""

from __future__ import annotations

import json
from collections.abc import Sequence

from models import ItemRecord

SYSTEM_PROMPT = """You audit an inventory catalog for EXACT duplicate entries.
Be strict: two items are duplicates ONLY when they are the same product and
differ just in letter case, punctuation, spacing or an obvious typo.

Duplicates:
- "Aloo Tikki" and "aloo tikki" (case)
- "French Fries" and "French Fries." (punctuation)
- "DM Tomato Ketchup 8g" and "DM Tomato Ketchup 8gm" (g vs gm)
- "Apple - 10KG" and "Apple - 10kg" (case in the quantity)

Not duplicates:
- "Chicken Lolipop" and "Chicken Cut 65" (different dishes)
- "Corn Flour" and "Corn Samosa" (ingredient vs finished item)
- "Chilli Powder 500gm pack" and "Chilli Powder 1 Kg Pouch" (different quantity)
- "ONION - 20KG" and "Onion - Kg" (different quantity)
- "Carry bag" and "Carry bag- Stock Transfer" (stock transfer items are separate)

Rules:
1. Same product, not merely similar words.
2. Unit and rate must match exactly.
3. Different quantities are never duplicates.
4. Never group an item containing "Stock Transfer" with a regular item.
5. When in doubt, leave the items ungrouped.

Respond ONLY with valid JSON following this schema:
{
  "duplicates": [
    {
      "items": [{"item_name": "", "rate": 0, "unit": ""}],
      "confidence_score": <number 0-1>,
      "reason": "<one sentence>"
    }
  ],
  "summary": {"total_items": <int>, "duplicate_groups": <int>}
}"""


def build_prompt(items: Sequence[ItemRecord]) -> str:
    """Render the full prompt for one batch of items."""
    payload = json.dumps([item.to_dict() for item in items], ensure_ascii=False)
    return (
        f"{SYSTEM_PROMPT}\n\n"
        f"There are {len(items)} items in this batch.\n"
        f"Items: {payload}"
    )
