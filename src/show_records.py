"""
Show record normalization and ordering.

A show record is a plain dict with a fixed set of keys. Raw model objects are
decoded field by field: each field is optional, type-checked and defaulted,
so ``normalize_shows`` never fails whatever the model sends back.
"""

import math
import re
import time
import uuid
from urllib.parse import urlparse

DEFAULT_TITLE = "Unknown Title"
DEFAULT_YEAR = "N/A"
DEFAULT_SUMMARY = "No summary available."
DEFAULT_GENRE = "N/A"
MULTIPLE_SERVICES = "Multiple Services"

SHOW_FIELDS = (
    "id",
    "title",
    "year",
    "critic_score",
    "audience_score",
    "summary",
    "watch_link",
    "review_link",
    "genre",
    "source_catalog",
)

SORT_KEYS = {
    "critic": "critic_score",
    "audience": "audience_score",
}

def _first_present(item, *names):
    for name in names:
        value = item.get(name)
        if value is not None:
            return value
    return None

def _text_or(value, default):
    """Non-blank string (numbers rendered as text) or ``default``."""
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        return value.strip() or default
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(int(value)) if value.is_integer() else str(value)
    return default

def _plain_text_or(value, default):
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default

def coerce_score(value):
    """
    Decode a 0-100 score.

    Only real numbers count; bools, numeric strings and NaN are treated as
    absent. Out-of-range values are clamped.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return min(max(value, 0), 100)

def coerce_link(value):
    """Return ``value`` if it is an absolute http(s) URL, else None."""
    if not isinstance(value, str):
        return None
    link = value.strip()
    parsed = urlparse(link)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        return link
    return None

def make_show_id(context, index):
    """Id unique within one normalization call: context, position, time, random suffix."""
    slug = re.sub(r"[^a-z0-9]+", "-", str(context).lower()).strip("-") or "show"
    millis = int(time.time() * 1000)
    return f"{slug}-{index}-{millis}-{uuid.uuid4().hex[:9]}"

def normalize_show(item, context, index, source_catalog=None, use_item_service=False):
    """Normalize one raw object into a show record."""
    if not isinstance(item, dict):
        item = {}

    catalog = source_catalog
    if use_item_service:
        catalog = _plain_text_or(_first_present(item, "service", "sourceCatalog"),
                                 source_catalog or MULTIPLE_SERVICES)

    return {
        "id": make_show_id(context, index),
        "title": _text_or(item.get("title"), DEFAULT_TITLE),
        "year": _text_or(item.get("year"), DEFAULT_YEAR),
        "critic_score": coerce_score(_first_present(item, "criticScore", "critic_score")),
        "audience_score": coerce_score(_first_present(item, "audienceScore", "audience_score")),
        "summary": _plain_text_or(item.get("summary"), DEFAULT_SUMMARY),
        "watch_link": coerce_link(_first_present(item, "serviceLink", "watchLink", "watch_link")),
        "review_link": coerce_link(_first_present(item, "rtLink", "reviewLink", "review_link")),
        "genre": _plain_text_or(item.get("genre"), DEFAULT_GENRE),
        "source_catalog": catalog,
    }

def normalize_shows(raw_items, context, source_catalog=None, use_item_service=False):
    """
    Map raw parsed objects into show records.

    Args:
        raw_items: List returned by ``extract_show_array``
        context: Label for id generation (catalog name or "all")
        source_catalog: Catalog to stamp on every record, if any
        use_item_service: Read each item's own ``service`` field for
            ``source_catalog`` (cross-catalog search)

    Returns:
        List of show record dicts, one per raw item, in input order
    """
    if not isinstance(raw_items, (list, tuple)):
        return []
    return [
        normalize_show(item, context, index, source_catalog, use_item_service)
        for index, item in enumerate(raw_items)
    ]

def tag_catalog(records, catalog):
    """Copies of ``records`` with ``source_catalog`` set to ``catalog``."""
    return [dict(record, source_catalog=catalog) for record in records]

def sort_shows(records, by="critic"):
    """
    Order records by score, highest first. Missing scores count as 0.

    Args:
        records: Show records
        by: "critic" or "audience"
    """
    field = SORT_KEYS.get(by)
    if field is None:
        raise ValueError(f"Unknown sort option: {by}")
    return sorted(records, key=lambda r: r.get(field) or 0, reverse=True)
