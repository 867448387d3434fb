"""Heuristic extraction of product customization from order line-item metadata.

Storefront plugins name their option fields inconsistently ("Board Style",
"board-style", "_board_style", "Adding a theme? Let us know here..."), so each
target attribute is matched against a prioritized list of aliases after
normalizing both sides. Everything here is pure: the same metadata always yields
the same record, which is what lets the backfill re-run at any time.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from orderflow.schemas.customization import CustomizationRecord

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "style": ("Board Style", "Style", "Board Type"),
    "font": ("Font", "Font Style", "Font Type", "Font Choice"),
    "color": (
        "Back Base Colour of Board",
        "Board Colour",
        "Base Colour",
        "Board Color",
        "Color Choice",
        "Color",
        "Colour",
    ),
    "name_colors": ("Colours for Each Name", "Name Colours", "Name Colors", "Colors for Names"),
    "name_count": ("name", "Names", "Names max (4)", "Number of Names", "Name Count", "Name Quantity"),
    "names_text": (
        "Names max (4) price applies as above",
        "Names",
        "Customer Names",
        "Name List",
        "Names List",
        "Actual Names",
    ),
    "theme": (
        "Adding a theme? Let us know here & view images to select colour",
        "Theme",
        "Adding a theme?",
        "Theme Selection",
        "Add Theme",
        "Theme Option",
    ),
    "size": ("Size", "Height", "Board Size", "Dimensions"),
}

_NORMALIZE_RE = re.compile(r"[\s_\-]+")
_NAME_COUNT_RE = re.compile(r"(\d+)\s*names?\b", re.IGNORECASE)
_SUMMARY_SEPARATOR = " • "


def normalize_key(value: Any) -> str:
    """Lower-case and drop whitespace, hyphens and underscores."""
    return _NORMALIZE_RE.sub("", str(value).lower())


def _has_value(value: Any) -> bool:
    # Falsy values (0, False, empty containers) are treated as absent.
    if isinstance(value, str):
        return bool(value.strip())
    return bool(value)


def _candidates(meta_data: Iterable[Any]) -> list[tuple[str, Any]]:
    """(normalized key, value) pairs worth matching against."""
    pairs: list[tuple[str, Any]] = []
    for entry in meta_data:
        if not isinstance(entry, Mapping):
            continue
        key = normalize_key(entry.get("key") or "")
        value = entry.get("value")
        if key and _has_value(value):
            pairs.append((key, value))
    return pairs


def _exact_match(candidates: Sequence[tuple[str, Any]], aliases: Sequence[str]) -> tuple[str, Any] | None:
    for alias in aliases:
        for key, value in candidates:
            if key == alias:
                return key, value
    return None


def _partial_match(candidates: Sequence[tuple[str, Any]], aliases: Sequence[str]) -> tuple[str, Any] | None:
    for alias in aliases:
        for key, value in candidates:
            if alias in key or key in alias:
                return key, value
    return None


def match_fields(meta_data: Iterable[Any]) -> dict[str, Any]:
    """Map each target field to its raw matched value.

    Exact normalized matches are resolved for every field first. Substring
    containment is only tried for fields with no exact match, and only against keys
    no other field matched exactly, so an alias like ``name`` can't shadow a more
    specific key elsewhere in the metadata.
    """
    candidates = _candidates(meta_data)
    aliases = {field: [normalize_key(alias) for alias in names] for field, names in FIELD_ALIASES.items()}

    matched: dict[str, tuple[str, Any]] = {}
    for field, field_aliases in aliases.items():
        hit = _exact_match(candidates, field_aliases)
        if hit is not None:
            matched[field] = hit

    claimed = {key for key, _ in matched.values()}
    unclaimed = [(key, value) for key, value in candidates if key not in claimed]
    for field, field_aliases in aliases.items():
        if field in matched:
            continue
        hit = _partial_match(unclaimed, field_aliases)
        if hit is not None:
            matched[field] = hit

    return {field: value for field, (_, value) in matched.items()}


def parse_name_count(value: Any) -> int | None:
    """Parse "3 Names" / "1 Name" into an integer; anything else is None."""
    if not isinstance(value, str):
        return None
    match = _NAME_COUNT_RE.search(value)
    if match is None:
        return None
    return int(match.group(1))


def parse_names(value: Any) -> tuple[str, ...] | None:
    if not isinstance(value, str):
        return None
    names = tuple(part.strip() for part in value.split(",") if part.strip())
    return names or None


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else str(value)


def extract_customization(meta_data: Sequence[Mapping[str, Any]] | None) -> CustomizationRecord | None:
    """Extract a CustomizationRecord from ``{key, value}`` metadata entries.

    Returns None when no target attribute was found; callers treat that as a
    definitive "no customization".
    """
    if not meta_data:
        return None

    matches = match_fields(meta_data)
    fields: dict[str, Any] = {}
    for field in ("style", "font", "color", "name_colors", "theme", "size"):
        if field in matches:
            fields[field] = _as_text(matches[field])

    count_value = matches.get("name_count")
    if count_value is not None:
        name_count = parse_name_count(_as_text(count_value))
        if name_count is not None:
            fields["name_count"] = name_count

    names_value = matches.get("names_text")
    if names_value is not None:
        fields["names_text"] = _as_text(names_value)
        names = parse_names(fields["names_text"])
        if names is not None:
            fields["names"] = names

    if not fields:
        return None

    raw_meta = tuple(
        {"key": entry.get("key"), "value": entry.get("value")}
        for entry in meta_data
        if isinstance(entry, Mapping)
    )
    return CustomizationRecord(**fields, raw_meta=raw_meta)


def extract_from_line_items(line_items: Sequence[Mapping[str, Any]] | None) -> CustomizationRecord | None:
    """Extract from the first line item that carries metadata."""
    for item in line_items or ():
        if not isinstance(item, Mapping):
            continue
        meta_data = item.get("meta_data")
        if meta_data:
            return extract_customization(meta_data)
    return None


def format_customization_summary(record: CustomizationRecord | None) -> str | None:
    """Card summary such as "Large Board • Ballerina • Pink • 2 Names"."""
    if record is None:
        return None
    parts = [value for value in (record.style, record.font, record.color) if value]
    if record.name_count:
        parts.append(f"{record.name_count} {'Name' if record.name_count == 1 else 'Names'}")
    return _SUMMARY_SEPARATOR.join(parts) if parts else None
