# src/ecometrics_api/domain/services/monthly_aggregation.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Monthly aggregation of sub-annual samples."""

from __future__ import annotations

from collections.abc import Sequence

from ecometrics_api.domain.entities.analytics import FieldAggregate, MonthlyAggregate
from ecometrics_api.domain.entities.metric_record import MonthlySample
from ecometrics_api.domain.services.numeric import mean, population_variance

__all__ = ["aggregate_monthly"]


def aggregate_monthly(year: str, samples: Sequence[MonthlySample]) -> MonthlyAggregate:
    """Compute mean/min/max/variance per field over one year's monthly samples.

    Months with a ``None`` value for a field are skipped for that field only.
    Variance is the population variance. Fields are reported in first-seen
    order; a field with no values anywhere has ``sample_count == 0`` and
    ``None`` statistics.

    Args:
        year: Year label the samples belong to.
        samples: Up to twelve monthly samples.

    Returns:
        The per-field aggregate.
    """
    field_names: list[str] = []
    for sample in samples:
        for name in sample.values:
            if name not in field_names:
                field_names.append(name)

    aggregates: list[FieldAggregate] = []
    for name in field_names:
        present = [v for s in samples if (v := s.values.get(name)) is not None]
        if not present:
            aggregates.append(FieldAggregate(field=name, sample_count=0))
            continue
        aggregates.append(
            FieldAggregate(
                field=name,
                sample_count=len(present),
                mean=mean(present),
                minimum=min(present),
                maximum=max(present),
                variance=population_variance(present),
            )
        )

    return MonthlyAggregate(year=year, month_count=len(samples), fields=tuple(aggregates))
