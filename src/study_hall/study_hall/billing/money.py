from __future__ import annotations

from typing import Optional

from ..core.constants import CURRENCY_PREFIX, NOT_APPLICABLE


def format_amount(value: Optional[int]) -> str:
    """Ledger text for an amount; None means not applicable."""
    if value is None:
        return NOT_APPLICABLE
    return f"{CURRENCY_PREFIX} {int(value)}"


def parse_amount(text) -> int:
    """Parse "Rs. 1,200" style text to 1200. Anything malformed is 0, never an error."""
    if text is None:
        return 0
    if isinstance(text, bool):
        return 0
    if isinstance(text, int):
        return text
    raw = str(text).strip()
    if raw.startswith(CURRENCY_PREFIX):
        raw = raw[len(CURRENCY_PREFIX):]
    raw = raw.replace(",", "").strip()
    try:
        return int(raw)
    except ValueError:
        return 0


def parse_amount_due(text) -> Optional[int]:
    """Stored amount-due text back to a value; N/A and empty mean None."""
    if text is None or str(text).strip() in ("", NOT_APPLICABLE):
        return None
    return parse_amount(text)
