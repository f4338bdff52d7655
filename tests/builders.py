# tests/builders.py
"""Small constructors for metric entities used across the test suite."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import uuid4

from ecometrics_api.domain.entities.metric_record import (
    ListData,
    ListItem,
    Metric,
    MonthlySample,
    SingleValue,
    YearlyDataPoint,
    YearlySeries,
)


def point(
    year: str,
    value: str | int | None,
    *,
    source: str = "esg.xlsx",
    months: Sequence[MonthlySample] = (),
) -> YearlyDataPoint:
    return YearlyDataPoint(
        year=year,
        numeric_value=None if value is None else Decimal(str(value)),
        source=source,
        monthly_samples=tuple(months),
    )


def series_metric(
    name: str,
    values: dict[str, str | int | None],
    *,
    category: str = "environmental",
) -> Metric:
    return Metric(
        id=uuid4(),
        category=category,
        metric_name=name,
        payload=YearlySeries(points=tuple(point(y, v) for y, v in values.items())),
    )


def single_metric(name: str, value: str | int | None, *, category: str = "social") -> Metric:
    return Metric(
        id=uuid4(),
        category=category,
        metric_name=name,
        payload=SingleValue(value=None if value is None else Decimal(str(value))),
    )


def list_metric(name: str, items: Sequence[str], *, category: str = "social") -> Metric:
    return Metric(
        id=uuid4(),
        category=category,
        metric_name=name,
        payload=ListData(items=tuple(ListItem(text=i) for i in items)),
    )


def monthly(number: int, **values: str | None) -> MonthlySample:
    months = (
        "January February March April May June July August September October November December"
    ).split()
    return MonthlySample(
        month=months[number - 1],
        month_number=number,
        values={k: None if v is None else Decimal(v) for k, v in values.items()},
    )
