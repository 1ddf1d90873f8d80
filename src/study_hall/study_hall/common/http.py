"""Request helpers shared by the JSON controllers."""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from flask import request

from ..core.exceptions import ValidationError
from .datetime_utils import parse_iso_date


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def date_arg(name: str) -> Optional[date]:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a date in YYYY-MM-DD format")
