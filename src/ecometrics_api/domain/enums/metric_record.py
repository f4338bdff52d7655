# src/ecometrics_api/domain/enums/metric_record.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Enums describing metric records and their lifecycle.

Purpose:
    Define the closed vocabularies used by metric snapshots: the ESG domain a
    record belongs to, the payload variant of a metric, validation and
    verification statuses, the source an import came from, and the severity
    of validation findings.

Layer:
    domain/enums

Notes:
    - Values are the lowercase wire strings persisted in storage.
"""

from __future__ import annotations

from enum import Enum

__all__ = [
    "MetricDomain",
    "MetricDataType",
    "ValidationStatus",
    "VerificationStatus",
    "ImportSource",
    "IssueSeverity",
]


class MetricDomain(str, Enum):
    """ESG domain a metric record is scoped to."""

    CROP_YIELD = "crop_yield"
    CARBON_ACCOUNTING = "carbon_accounting"
    COMMUNITY_ENGAGEMENT = "community_engagement"
    FARM_COMPLIANCE = "farm_compliance"
    WASTE_MANAGEMENT = "waste_management"
    BIODIVERSITY_LANDUSE = "biodiversity_landuse"


class MetricDataType(str, Enum):
    """Payload variant carried by a metric."""

    YEARLY_SERIES = "yearly_series"
    SINGLE_VALUE = "single_value"
    LIST = "list"
    SUMMARY = "summary"


class ValidationStatus(str, Enum):
    """Outcome of the most recent validation run on a record."""

    NOT_VALIDATED = "not_validated"
    VALIDATING = "validating"
    VALIDATED = "validated"
    FAILED_VALIDATION = "failed_validation"


class VerificationStatus(str, Enum):
    """Third-party verification state of a record or data point."""

    UNVERIFIED = "unverified"
    PENDING_REVIEW = "pending_review"
    VERIFIED = "verified"
    AUDITED = "audited"
    DISPUTED = "disputed"

    @property
    def is_assured(self) -> bool:
        """Return True for statuses that count as externally assured."""
        return self in (VerificationStatus.VERIFIED, VerificationStatus.AUDITED)


class ImportSource(str, Enum):
    """Origin of the data in a metric record."""

    CSV = "csv"
    EXCEL = "excel"
    MANUAL = "manual"
    API = "api"
    PDF_EXTRACTION = "pdf_extraction"


class IssueSeverity(str, Enum):
    """Severity of a validation finding."""

    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
