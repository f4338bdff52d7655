# src/ecometrics_api/application/schemas/dto/metric_import.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""DTOs for manual/API JSON imports.

Purpose:
    Validate a JSON body shaped ``{"metrics": [...], ...}`` and convert it into
    canonical domain metrics. The per-metric shape mirrors the exported record
    layout (``yearly_data``, ``single_value``, ``list_data``, ``summary_value``)
    so a previously exported snapshot can be re-imported as is.

Layer:
    application/schemas/dto
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from pydantic import ConfigDict, Field, ValidationError, model_validator

from ecometrics_api.application.schemas.dto.base import BaseDTO
from ecometrics_api.domain.entities.metric_record import (
    ListData,
    ListItem,
    Metric,
    MetricPayload,
    MonthlySample,
    SingleValue,
    Summary,
    YearlyDataPoint,
    YearlySeries,
)
from ecometrics_api.domain.enums.metric_record import MetricDataType, VerificationStatus
from ecometrics_api.domain.exceptions.metric_records import InvalidImportStructure
from ecometrics_api.domain.services.numeric import parse_numeric

RawValue = Decimal | int | float | str | None


def _as_text(value: RawValue) -> str | None:
    if value is None:
        return None
    return str(value)


class MonthlySampleDTO(BaseDTO):
    """One month of sub-annual readings."""

    month: str = Field(..., min_length=1)
    month_number: int = Field(..., ge=1, le=12)
    values: dict[str, RawValue] = Field(default_factory=dict)

    def to_domain(self) -> MonthlySample:
        return MonthlySample(
            month=self.month,
            month_number=self.month_number,
            values={name: parse_numeric(raw) for name, raw in self.values.items()},
        )


class YearlyDataPointDTO(BaseDTO):
    """A year-indexed observation as supplied in the body.

    ``numeric_value`` is parsed from ``value`` when it is not supplied, and a
    missing ``source`` falls back to the import's own citation.
    """

    year: str = Field(..., min_length=1)
    value: RawValue = None
    numeric_value: Decimal | None = None
    unit: str | None = None
    source: str | None = None
    notes: str | None = None
    verification_status: VerificationStatus | None = None
    monthly_samples: list[MonthlySampleDTO] = Field(default_factory=list, max_length=12)

    def to_domain(self, default_source: str) -> YearlyDataPoint:
        numeric = self.numeric_value
        if numeric is None:
            numeric = parse_numeric(self.value)
        return YearlyDataPoint(
            year=self.year,
            numeric_value=numeric,
            source=self.source or default_source,
            unit=self.unit,
            notes=self.notes,
            raw_value=_as_text(self.value),
            verification_status=self.verification_status,
            monthly_samples=tuple(s.to_domain() for s in self.monthly_samples),
        )


class SingleValueDTO(BaseDTO):
    value: RawValue = None
    unit: str | None = None
    source: str | None = None
    notes: str | None = None

    def to_domain(self) -> SingleValue:
        value: Decimal | str | None
        if isinstance(self.value, str):
            value = parse_numeric(self.value)
            if value is None:
                value = self.value
        elif self.value is None:
            value = None
        else:
            value = Decimal(str(self.value))
        return SingleValue(value=value, unit=self.unit, source=self.source, notes=self.notes)


class ListItemDTO(BaseDTO):
    item: str = Field(..., min_length=1)


class SummaryDTO(BaseDTO):
    key_metric: str = Field(..., min_length=1)
    latest_value: RawValue = None
    trend: str | None = None
    notes: str | None = None


class MetricDTO(BaseDTO):
    """One metric of the import body; exactly the payload matching ``data_type`` is used."""

    category: str = Field(..., min_length=1)
    metric_name: str = Field(..., min_length=1)
    subcategory: str | None = None
    description: str | None = None
    data_type: MetricDataType = MetricDataType.YEARLY_SERIES
    yearly_data: list[YearlyDataPointDTO] | None = None
    single_value: SingleValueDTO | None = None
    list_data: list[ListItemDTO | str] | None = None
    summary_value: SummaryDTO | None = None

    @model_validator(mode="after")
    def _payload_matches_data_type(self) -> MetricDTO:
        if self.data_type is MetricDataType.SINGLE_VALUE and self.single_value is None:
            raise ValueError("single_value metrics require a 'single_value' object")
        if self.data_type is MetricDataType.SUMMARY and self.summary_value is None:
            raise ValueError("summary metrics require a 'summary_value' object")
        return self

    def _payload(self, default_source: str) -> MetricPayload:
        match self.data_type:
            case MetricDataType.YEARLY_SERIES:
                return YearlySeries(
                    points=tuple(p.to_domain(default_source) for p in self.yearly_data or ())
                )
            case MetricDataType.SINGLE_VALUE:
                assert self.single_value is not None
                return self.single_value.to_domain()
            case MetricDataType.LIST:
                return ListData(
                    items=tuple(
                        ListItem(text=i if isinstance(i, str) else i.item)
                        for i in self.list_data or ()
                    )
                )
            case MetricDataType.SUMMARY:
                assert self.summary_value is not None
                s = self.summary_value
                return Summary(
                    key=s.key_metric,
                    latest_value=_as_text(s.latest_value),
                    trend=s.trend,
                    notes=s.notes,
                )

    def to_domain(self, *, default_source: str, id_factory: Callable[[], UUID]) -> Metric:
        return Metric(
            id=id_factory(),
            category=self.category,
            metric_name=self.metric_name,
            payload=self._payload(default_source),
            subcategory=self.subcategory,
            description=self.description,
        )


class MetricsImportDTO(BaseDTO):
    """Envelope of a JSON import. Keys other than ``metrics`` are ignored."""

    model_config = ConfigDict(extra="ignore")

    metrics: list[MetricDTO] = Field(..., min_length=1)

    def to_domain(
        self,
        *,
        default_source: str,
        id_factory: Callable[[], UUID] = uuid4,
    ) -> tuple[Metric, ...]:
        """Return canonical metrics in body order."""
        return tuple(
            m.to_domain(default_source=default_source, id_factory=id_factory)
            for m in self.metrics
        )


def _error_list(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]} for err in exc.errors()
    ]


def parse_metrics_import(body: Mapping[str, Any]) -> MetricsImportDTO:
    """Validate a JSON import body.

    Raises:
        InvalidImportStructure: If the body is not a mapping with a non-empty
            ``metrics`` array of well-formed metrics.
    """
    if not isinstance(body, Mapping):
        raise InvalidImportStructure("Import body must be a JSON object.")
    try:
        return MetricsImportDTO.model_validate(dict(body))
    except ValidationError as exc:
        raise InvalidImportStructure(
            "Invalid JSON import structure.",
            details={"errors": _error_list(exc)},
        ) from exc


def parse_metric(body: Mapping[str, Any]) -> MetricDTO:
    """Validate a single-metric JSON body (as used by upserts).

    Raises:
        InvalidImportStructure: If the body is not a well-formed metric.
    """
    if not isinstance(body, Mapping):
        raise InvalidImportStructure("Metric body must be a JSON object.")
    try:
        return MetricDTO.model_validate(dict(body))
    except ValidationError as exc:
        raise InvalidImportStructure(
            "Invalid metric structure.",
            details={"errors": _error_list(exc)},
        ) from exc
