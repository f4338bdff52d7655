# src/ecometrics_api/domain/services/confidence_scoring.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Data confidence scoring.

Purpose:
    Score how much trust analytics computed from a record deserve, based on
    data presence, assurance, breadth, temporal coverage, and monthly
    granularity.

Layer:
    domain/services

Scoring (additive, rounded half-up, capped at 100):
    * base: 50
    * source data present (record has active metrics): +20
    * yearly data points present: +10
    * verified/audited fraction of years: +15 x fraction
    * metric breadth: +10 for more than 5 metrics, +10 more for more than 10
    * temporal coverage: +15 for >=3 years, +10 for 2, +5 for 1
    * monthly granularity: +15 for >=6 months on any year, +10 for >=3
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Final

from ecometrics_api.domain.entities.analytics import ConfidenceScore
from ecometrics_api.domain.entities.metric_record import MetricRecord, YearlySeries
from ecometrics_api.domain.services.numeric import HUNDRED, ZERO, round_score

__all__ = ["ConfidenceInputs", "confidence_inputs_from_record", "score_confidence"]

_BASE: Final[Decimal] = Decimal(50)


@dataclass(frozen=True, slots=True)
class ConfidenceInputs:
    """Observable facts about a record that drive the confidence score."""

    has_source_data: bool = False
    has_yearly_points: bool = False
    assured_fraction: Decimal = ZERO
    metric_count: int = 0
    distinct_years: int = 0
    max_monthly_samples: int = 0


def confidence_inputs_from_record(record: MetricRecord | None) -> ConfidenceInputs:
    """Derive confidence inputs from a record's active metrics.

    A year counts as assured when any of its points is verified or audited;
    points without their own status inherit the record's status.
    """
    if record is None:
        return ConfidenceInputs()

    metrics = record.active_metrics
    years: set[str] = set()
    assured_years: set[str] = set()
    max_monthly = 0
    has_points = False
    for metric in metrics:
        if not isinstance(metric.payload, YearlySeries):
            continue
        for point in metric.payload.points:
            has_points = True
            years.add(point.year)
            status = point.verification_status or record.verification_status
            if status.is_assured:
                assured_years.add(point.year)
            max_monthly = max(max_monthly, len(point.monthly_samples))

    fraction = Decimal(len(assured_years)) / Decimal(len(years)) if years else ZERO
    return ConfidenceInputs(
        has_source_data=bool(metrics),
        has_yearly_points=has_points,
        assured_fraction=fraction,
        metric_count=len(metrics),
        distinct_years=len(years),
        max_monthly_samples=max_monthly,
    )


def score_confidence(inputs: ConfidenceInputs) -> ConfidenceScore:
    """Compute the confidence score and the points each factor contributed."""
    factors: dict[str, Decimal] = {"base": _BASE}
    factors["source_data"] = Decimal(20) if inputs.has_source_data else ZERO
    factors["yearly_points"] = Decimal(10) if inputs.has_yearly_points else ZERO
    factors["verification"] = Decimal(15) * inputs.assured_fraction

    breadth = ZERO
    if inputs.metric_count > 5:
        breadth += 10
    if inputs.metric_count > 10:
        breadth += 10
    factors["metric_breadth"] = breadth

    if inputs.distinct_years >= 3:
        factors["temporal_coverage"] = Decimal(15)
    elif inputs.distinct_years >= 2:
        factors["temporal_coverage"] = Decimal(10)
    elif inputs.distinct_years >= 1:
        factors["temporal_coverage"] = Decimal(5)
    else:
        factors["temporal_coverage"] = ZERO

    if inputs.max_monthly_samples >= 6:
        factors["monthly_granularity"] = Decimal(15)
    elif inputs.max_monthly_samples >= 3:
        factors["monthly_granularity"] = Decimal(10)
    else:
        factors["monthly_granularity"] = ZERO

    total = sum(factors.values(), ZERO)
    return ConfidenceScore(score=min(round_score(total), int(HUNDRED)), factors=factors)
