"""Value normalization used to group claims that mean the same thing."""

from __future__ import annotations

import json
import math
import re
import unicodedata
from datetime import date, datetime
from typing import TYPE_CHECKING

from cinetrust.domain.errors import MalformedRecordError
from cinetrust.domain.model import FieldCategory

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cinetrust.domain.model import FieldValue

_WHITESPACE = re.compile(r"\s+")
_YEAR_PREFIX = re.compile(r"^\s*(\d{4})")

TEXT_CATEGORIES = frozenset(
    {
        FieldCategory.TEXT,
        FieldCategory.NAME,
        FieldCategory.BIOGRAPHY,
        FieldCategory.EDITORIAL,
        FieldCategory.CERTIFICATION,
    }
)
NUMERIC_CATEGORIES = frozenset(
    {FieldCategory.RATING, FieldCategory.DURATION, FieldCategory.BOX_OFFICE}
)


def normalize_text(value: str) -> str:
    """Case-fold, NFKC-normalize and collapse whitespace."""

    normalized = unicodedata.normalize("NFKC", value)
    return _WHITESPACE.sub(" ", normalized).strip().casefold()


def _resolve_alias(text: str, aliases: Mapping[str, str] | None) -> str:
    if not aliases:
        return text
    return aliases.get(text, text)


def coerce_number(value: FieldValue) -> float:
    if isinstance(value, bool):
        raise MalformedRecordError(f"Expected a number, got boolean {value!r}")
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.replace(",", "").strip()
        try:
            number = float(cleaned)
        except ValueError as exc:
            raise MalformedRecordError(f"Expected a number, got {value!r}") from exc
    else:
        raise MalformedRecordError(f"Expected a number, got {type(value).__name__}")
    if not math.isfinite(number):
        raise MalformedRecordError(f"Expected a finite number, got {value!r}")
    return number


def coerce_date(value: FieldValue) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError as exc:
            raise MalformedRecordError(f"Expected an ISO date, got {value!r}") from exc
    raise MalformedRecordError(f"Expected a date, got {type(value).__name__}")


def coerce_year(value: FieldValue) -> int:
    if isinstance(value, bool):
        raise MalformedRecordError(f"Expected a year, got boolean {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, date | datetime):
        return value.year
    if isinstance(value, str):
        match = _YEAR_PREFIX.match(value)
        if match:
            return int(match.group(1))
    raise MalformedRecordError(f"Expected a year, got {value!r}")


def _name_list(value: FieldValue, aliases: Mapping[str, str] | None) -> tuple[str, ...]:
    if isinstance(value, str):
        items: list[FieldValue] = list(value.split(","))
    elif isinstance(value, list | tuple):
        items = list(value)
    else:
        raise MalformedRecordError(f"Expected a list of names, got {type(value).__name__}")
    names: set[str] = set()
    for item in items:
        if not isinstance(item, str):
            raise MalformedRecordError(f"Expected a name, got {item!r}")
        text = normalize_text(item)
        if text:
            names.add(_resolve_alias(text, aliases))
    return tuple(sorted(names))


def canonical_value(
    value: FieldValue,
    category: FieldCategory,
    *,
    aliases: Mapping[str, str] | None = None,
) -> FieldValue:
    """Return the comparable form of ``value`` for ``category``.

    Raises ``MalformedRecordError`` when the value cannot be interpreted for the
    category (e.g. a non-numeric rating).
    """

    if category in NUMERIC_CATEGORIES:
        return round(coerce_number(value), 2)
    if category is FieldCategory.YEAR:
        return coerce_year(value)
    if category is FieldCategory.DATE:
        return coerce_date(value).isoformat()
    if category is FieldCategory.NAME_LIST:
        return _name_list(value, aliases)
    if isinstance(value, str):
        return _resolve_alias(normalize_text(value), aliases)
    if category in TEXT_CATEGORIES:
        raise MalformedRecordError(f"Expected text, got {type(value).__name__}")
    return value


def normalized_key(
    value: FieldValue,
    category: FieldCategory,
    *,
    aliases: Mapping[str, str] | None = None,
) -> str:
    """Stable string key used to group equivalent claims."""

    canonical = canonical_value(value, category, aliases=aliases)
    if isinstance(canonical, tuple):
        return "|".join(str(item) for item in canonical)
    if isinstance(canonical, float):
        return f"{canonical:.2f}"
    if isinstance(canonical, dict):
        return json.dumps(canonical, sort_keys=True, default=str)
    return str(canonical)


def display_value(value: FieldValue, category: FieldCategory) -> FieldValue:
    """Representation stored on a resolved value (numbers and dates canonical, text as given)."""

    if category in NUMERIC_CATEGORIES:
        number = round(coerce_number(value), 2)
        if category is FieldCategory.RATING:
            return number
        return int(number) if number.is_integer() else number
    if category is FieldCategory.YEAR:
        return coerce_year(value)
    if category is FieldCategory.DATE:
        return coerce_date(value).isoformat()
    if isinstance(value, str):
        return _WHITESPACE.sub(" ", unicodedata.normalize("NFKC", value)).strip()
    return value
