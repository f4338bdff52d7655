# src/ecometrics_api/domain/services/trend_analysis.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Trend analysis over yearly series.

Purpose:
    Compute the percentage change of a series between two reference years and
    classify it as improving, stable, or declining.

Layer:
    domain/services

Notes:
    - The change is always relative to ``|first value|`` so a negative
      starting value does not invert the direction of the classification.
    - Classification uses strict comparisons: a change of exactly +/-5% is
      ``stable``.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from decimal import Decimal
from typing import Final

from ecometrics_api.domain.entities.analytics import TrendIndicator
from ecometrics_api.domain.entities.metric_record import Metric, YearlySeries
from ecometrics_api.domain.enums.analytics import TrendDirection
from ecometrics_api.domain.services.numeric import HUNDRED, ZERO, mean, year_sort_key

__all__ = [
    "TREND_THRESHOLD_PCT",
    "percentage_change",
    "classify_trend",
    "numeric_points",
    "compute_trend",
    "half_mean_trend",
]

TREND_THRESHOLD_PCT: Final[Decimal] = Decimal(5)


def percentage_change(initial: Decimal | None, final: Decimal | None) -> Decimal:
    """Return ``(final - initial) / |initial| * 100``.

    Returns 0 when either side is missing or ``initial`` is 0.
    """
    if initial is None or final is None or initial == 0:
        return ZERO
    return (final - initial) / abs(initial) * HUNDRED


def classify_trend(pct: Decimal, threshold: Decimal = TREND_THRESHOLD_PCT) -> TrendDirection:
    """Classify a percentage change against a symmetric threshold.

    Args:
        pct: Percentage change.
        threshold: Positive threshold; values strictly beyond it are a trend.

    Returns:
        ``IMPROVING`` if ``pct > threshold``, ``DECLINING`` if
        ``pct < -threshold``, otherwise ``STABLE``.
    """
    if pct > threshold:
        return TrendDirection.IMPROVING
    if pct < -threshold:
        return TrendDirection.DECLINING
    return TrendDirection.STABLE


def numeric_points(
    metric: Metric,
    reference_years: Collection[str] | None = None,
) -> list[tuple[str, Decimal]]:
    """Return the chronologically ordered ``(year, value)`` pairs with a numeric value.

    Args:
        metric: Metric to read. Non-series payloads yield no points.
        reference_years: Optional year labels to restrict the points to.

    Returns:
        Ordered list of ``(year_label, value)``.
    """
    if not isinstance(metric.payload, YearlySeries):
        return []
    wanted = set(reference_years) if reference_years else None
    points: list[tuple[str, Decimal]] = []
    for point in metric.payload.points:
        if point.numeric_value is None:
            continue
        if wanted is not None and point.year not in wanted:
            continue
        points.append((point.year, point.numeric_value))
    return sorted(points, key=lambda item: year_sort_key(item[0]))


def compute_trend(
    metric: Metric,
    reference_years: Collection[str] | None = None,
    *,
    threshold: Decimal = TREND_THRESHOLD_PCT,
) -> TrendIndicator:
    """Compute the trend of a yearly-series metric.

    The first and last numeric points (after optional restriction to
    ``reference_years``) are compared. With fewer than two numeric points the
    direction is ``UNKNOWN`` and the change is ``None``.
    """
    points = numeric_points(metric, reference_years)
    if len(points) < 2:
        return TrendIndicator(metric_name=metric.metric_name, direction=TrendDirection.UNKNOWN)

    (first_label, first_value), (last_label, last_value) = points[0], points[-1]
    pct = percentage_change(first_value, last_value)
    return TrendIndicator(
        metric_name=metric.metric_name,
        direction=classify_trend(pct, threshold),
        percentage_change=pct,
        first_year=first_label,
        last_year=last_label,
        first_value=first_value,
        last_value=last_value,
    )


def half_mean_trend(
    values: Sequence[Decimal],
    threshold: Decimal = TREND_THRESHOLD_PCT,
) -> TrendDirection:
    """Classify the change between the mean of the first and second half of a series.

    For an odd number of values the middle value belongs to the second half.
    Fewer than two values yield ``UNKNOWN``.
    """
    if len(values) < 2:
        return TrendDirection.UNKNOWN
    middle = len(values) // 2
    first = mean(values[:middle])
    second = mean(values[middle:])
    return classify_trend(percentage_change(first, second), threshold)
