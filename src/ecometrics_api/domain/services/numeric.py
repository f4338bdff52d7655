# src/ecometrics_api/domain/services/numeric.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Numeric helpers shared by the import transform and the analytics functions.

Purpose:
    * Best-effort parsing of spreadsheet cell text into ``Decimal``.
    * Year extraction and ordering for free-form period labels.
    * Small statistics helpers (mean, population variance, clamping, rounding).

Layer:
    domain/services

Notes:
    - ``parse_numeric`` never raises. Anything it cannot interpret becomes
      ``None`` so one bad cell cannot abort an import.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Final

__all__ = [
    "ERROR_MARKERS",
    "parse_numeric",
    "extract_years",
    "first_year",
    "year_sort_key",
    "mean",
    "population_variance",
    "clamp",
    "round_score",
    "non_null",
]

#: Cell tokens that explicitly mean "no value" in exported spreadsheets.
ERROR_MARKERS: Final[frozenset[str]] = frozenset(
    {"#VALUE!", "#N/A", "#DIV/0!", "#REF!", "#NUM!", "#NAME?", "N/A", "NA", "-", "--"}
)

_LEADING_NUMBER: Final[re.Pattern[str]] = re.compile(r"^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_FOUR_DIGIT_YEAR: Final[re.Pattern[str]] = re.compile(r"(?<!\d)(\d{4})(?!\d)")
_STRIP_PREFIX: Final[str] = "~≈$€£ "

HUNDRED: Final[Decimal] = Decimal(100)
ZERO: Final[Decimal] = Decimal(0)


def parse_numeric(raw: object) -> Decimal | None:
    """Parse a cell into a Decimal, returning None when it carries no number.

    Thousands separators, surrounding whitespace, approximate/currency
    prefixes, and trailing units or percent signs are ignored, so
    ``"~1,250.5 t"`` parses as ``Decimal("1250.5")``.

    Args:
        raw: Cell content. Numbers pass through; anything else is read as text.

    Returns:
        The parsed value, or ``None`` for blanks, error markers, and text
        without a leading number.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, Decimal):
        return raw if raw.is_finite() else None
    if isinstance(raw, int):
        return Decimal(raw)
    if isinstance(raw, float):
        if raw != raw or raw in (float("inf"), float("-inf")):
            return None
        return Decimal(str(raw))

    text = str(raw).strip()
    if not text or text.upper() in ERROR_MARKERS:
        return None

    negative = text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1]

    cleaned = text.replace(",", "").lstrip(_STRIP_PREFIX)
    match = _LEADING_NUMBER.match(cleaned)
    if match is None:
        return None
    try:
        value = Decimal(match.group(0))
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return -value if negative else value


def extract_years(label: str | None) -> list[int]:
    """Return every standalone 4-digit year found in a period label.

    ``"2021"`` gives ``[2021]``, ``"FY2022"`` gives ``[2022]``, and
    ``"2020-2021"`` gives ``[2020, 2021]``. ``"2020/21"`` only yields 2020.
    """
    if not label:
        return []
    return [int(y) for y in _FOUR_DIGIT_YEAR.findall(label)]


def first_year(label: str | None) -> int | None:
    """Return the first 4-digit year in a label, if any."""
    years = extract_years(label)
    return years[0] if years else None


def year_sort_key(label: str) -> tuple[int, int, str]:
    """Sort key placing labels with a year chronologically before those without."""
    year = first_year(label)
    if year is None:
        return (1, 0, label)
    return (0, year, label)


def mean(values: Sequence[Decimal]) -> Decimal | None:
    """Arithmetic mean, or None for an empty sequence."""
    if not values:
        return None
    return sum(values, ZERO) / Decimal(len(values))


def population_variance(values: Sequence[Decimal]) -> Decimal | None:
    """Mean of squared deviations from the mean, or None for an empty sequence."""
    avg = mean(values)
    if avg is None:
        return None
    return sum(((v - avg) ** 2 for v in values), ZERO) / Decimal(len(values))


def clamp(value: Decimal, low: Decimal = ZERO, high: Decimal = HUNDRED) -> Decimal:
    """Clamp ``value`` into ``[low, high]``."""
    return max(low, min(high, value))


def round_score(value: Decimal) -> int:
    """Round half-up to an integer score."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def non_null(values: Iterable[Decimal | None]) -> list[Decimal]:
    """Drop ``None`` entries."""
    return [v for v in values if v is not None]
