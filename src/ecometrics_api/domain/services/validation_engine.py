# src/ecometrics_api/domain/services/validation_engine.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Metric record validation engine.

Purpose:
    Compute a deterministic data-quality score and finding list for a metric
    record. The engine is a pure function of the record's current content:
    identical input always yields an identical score and finding order.

Layer:
    domain/services

Rules (starting from 100, floored at 0; soft-deleted metrics are skipped):
    * missing metric name: -5, error
    * yearly series without data points: -3, warning
    * single value that is missing or blank: -5, error; marks the record as
      having critical errors
    * list without items: -2, warning

    The status is ``failed_validation`` when any critical error was found and
    ``validated`` otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass

from ecometrics_api.domain.entities.metric_record import (
    ListData,
    Metric,
    MetricRecord,
    SingleValue,
    Summary,
    ValidationIssue,
    YearlySeries,
)
from ecometrics_api.domain.enums.metric_record import IssueSeverity, ValidationStatus

__all__ = ["ValidationConfig", "ValidationResult", "ValidationEngine", "validate"]


@dataclass(frozen=True, slots=True)
class ValidationConfig:
    """Penalties applied per finding.

    Attributes:
        missing_name_penalty: Deduction for a metric without a name.
        empty_series_penalty: Deduction for a yearly series without points.
        missing_value_penalty: Deduction for a single value without a value.
        empty_list_penalty: Deduction for a list without items.
        starting_score: Score before deductions.
    """

    missing_name_penalty: int = 5
    empty_series_penalty: int = 3
    missing_value_penalty: int = 5
    empty_list_penalty: int = 2
    starting_score: int = 100


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of validating one record.

    Attributes:
        validation_status: ``validated`` or ``failed_validation``.
        data_quality_score: Score in 0-100.
        errors: Findings in metric order.
        has_critical_errors: True when any finding blocks validation.
    """

    validation_status: ValidationStatus
    data_quality_score: int
    errors: tuple[ValidationIssue, ...]
    has_critical_errors: bool

    @property
    def error_count(self) -> int:
        """Return the number of findings."""
        return len(self.errors)


class ValidationEngine:
    """Rule-based validation engine for metric records."""

    def __init__(self, config: ValidationConfig | None = None) -> None:
        """Initialize the engine.

        Args:
            config: Optional penalties. When omitted, defaults are used.
        """
        self._config = config or ValidationConfig()

    def evaluate(self, record: MetricRecord) -> ValidationResult:
        """Validate every active metric of ``record``.

        Args:
            record: Record to validate. It is not modified.

        Returns:
            The score, status, and findings.
        """
        score = self._config.starting_score
        issues: list[ValidationIssue] = []
        critical = False

        for metric in record.active_metrics:
            metric_issues, penalty, metric_critical = self._check_metric(metric)
            issues.extend(metric_issues)
            score -= penalty
            critical = critical or metric_critical

        return ValidationResult(
            validation_status=(
                ValidationStatus.FAILED_VALIDATION if critical else ValidationStatus.VALIDATED
            ),
            data_quality_score=max(0, score),
            errors=tuple(issues),
            has_critical_errors=critical,
        )

    def _check_metric(self, metric: Metric) -> tuple[list[ValidationIssue], int, bool]:
        cfg = self._config
        issues: list[ValidationIssue] = []
        penalty = 0
        critical = False

        def add(field: str, message: str, severity: IssueSeverity, deduction: int) -> None:
            nonlocal penalty
            issues.append(
                ValidationIssue(
                    field=field,
                    message=message,
                    severity=severity,
                    metric_id=metric.id,
                    metric_name=metric.metric_name or None,
                )
            )
            penalty += deduction

        if not metric.metric_name or not metric.metric_name.strip():
            add(
                "metric_name",
                "Metric name is required.",
                IssueSeverity.ERROR,
                cfg.missing_name_penalty,
            )

        match metric.payload:
            case YearlySeries(points=points) if not points:
                add(
                    "yearly_data",
                    "Yearly series has no data points.",
                    IssueSeverity.WARNING,
                    cfg.empty_series_penalty,
                )
            case SingleValue(value=value) if value is None or (
                isinstance(value, str) and not value.strip()
            ):
                add(
                    "single_value.value",
                    "Single value is missing.",
                    IssueSeverity.ERROR,
                    cfg.missing_value_penalty,
                )
                critical = True
            case ListData(items=items) if not items:
                add(
                    "list_data",
                    "List has no items.",
                    IssueSeverity.WARNING,
                    cfg.empty_list_penalty,
                )
            case YearlySeries() | SingleValue() | ListData() | Summary():
                pass

        return issues, penalty, critical


def validate(record: MetricRecord, config: ValidationConfig | None = None) -> ValidationResult:
    """Validate ``record`` with a default-configured engine."""
    return ValidationEngine(config).evaluate(record)
