"""
Helpers shared by the provider adapters: null-safe access into upstream
payloads, price parsing, and the synthetic stand-ins used when a provider
omits engagement numbers.
"""

import random
import re
import time
from datetime import date, timedelta
from typing import Any

DEFAULT_PRICE = 980
SALE_WINDOW_DAYS = 7

_MISSING = object()


def get_path(obj: Any, path: str, default: Any = None) -> Any:
    """
    Read a dotted path such as ``"iteminfo.actress.0.name"``.

    Mapping keys and list indexes are both supported. Any missing or
    mistyped step returns ``default``; this never raises.
    """
    current = obj
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        elif isinstance(current, list) and part.lstrip("-").isdigit():
            idx = int(part)
            current = current[idx] if -len(current) <= idx < len(current) else _MISSING
        else:
            return default
        if current is _MISSING or current is None:
            return default
    return current


def as_sequence(node: Any) -> list[Any]:
    """
    Normalize a node that may hold nothing, one record, or many.

    Markup payloads collapse a single child into a mapping and repeat
    children into a list; everything downstream only sees lists.
    """
    if node is None:
        return []
    if isinstance(node, list):
        return node
    return [node]


def text_of(node: Any, default: str = "") -> str:
    """Text value of a leaf, tolerating mappings, lists and blanks."""
    if node is None:
        return default
    if isinstance(node, list):
        return text_of(node[0], default) if node else default
    if isinstance(node, dict):
        return default
    value = str(node).strip()
    return value or default


def parse_price(value: Any, default: int = DEFAULT_PRICE) -> int:
    """
    Parse an upstream price such as ``"1,380円"`` or ``"400円〜"``.

    Every non-digit is stripped first; an empty result falls back to
    ``default``.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    digits = re.sub(r"\D", "", str(value))
    if not digits:
        return default
    try:
        return int(digits)
    except ValueError:
        return default


def parse_int(value: Any) -> int | None:
    """Integer from an upstream count field, ``None`` when absent or junk."""
    digits = re.sub(r"\D", "", text_of(value))
    return int(digits) if digits else None


def parse_rating(value: Any) -> float | None:
    try:
        rating = float(text_of(value))
    except ValueError:
        return None
    if 0 <= rating <= 5:
        return round(rating, 1)
    return None


def sale_end_date(today: date | None = None) -> date:
    return (today or date.today()) + timedelta(days=SALE_WINDOW_DAYS)


def synthetic_like_count() -> int:
    return random.randint(100, 5099)


def synthetic_view_count() -> int:
    return random.randint(1000, 50999)


def synthetic_rating() -> float:
    return round(random.uniform(3.0, 5.0), 1)


def synthetic_review_count() -> int:
    return random.randint(50, 549)


class EngagementBuilder:
    """
    Collects engagement fields and records where each one came from.

    Observed values are kept as-is; a missing value is replaced by its
    synthetic generator and flagged ``synthetic``.
    """

    _GENERATORS = {
        "like_count": synthetic_like_count,
        "view_count": synthetic_view_count,
        "rating_value": synthetic_rating,
        "review_count": synthetic_review_count,
    }

    def __init__(self):
        self.values: dict[str, Any] = {}
        self.provenance: dict[str, str] = {}

    def add(self, field: str, observed: Any | None) -> "EngagementBuilder":
        if observed is None:
            self.values[field] = self._GENERATORS[field]()
            self.provenance[field] = "synthetic"
        else:
            self.values[field] = observed
            self.provenance[field] = "observed"
        return self

    def build(self) -> dict[str, Any]:
        for field in self._GENERATORS:
            if field not in self.values:
                self.add(field, None)
        provenance = dict(self.provenance)
        provenance["sale_ends_at"] = "synthetic"
        return {
            **self.values,
            "sale_ends_at": sale_end_date(),
            "provenance": provenance,
        }


def synthetic_id(prefix: str, index: int) -> str:
    """Batch-unique id for a record the upstream sent without one."""
    return f"{prefix}-{int(time.time() * 1000)}-{index}"
