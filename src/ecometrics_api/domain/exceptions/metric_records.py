# src/ecometrics_api/domain/exceptions/metric_records.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Metric record exceptions.

Summary:
    Error taxonomy for the metric record store and import pipeline. Validation
    failures are deliberately absent: a failed validation is recorded on the
    record as ``ValidationStatus.FAILED_VALIDATION`` and never raised.

Layer:
    domain/exceptions
"""

from __future__ import annotations

from ecometrics_api.domain.exceptions.base import DomainError

__all__ = [
    "MetricRecordNotFound",
    "InvalidImportStructure",
    "InvalidMetricRecord",
    "UnsupportedImportType",
    "TransactionConflict",
]


class MetricRecordNotFound(DomainError):
    """A record, version, or metric is absent or belongs to another company."""

    code = "NOT_FOUND"


class InvalidImportStructure(DomainError):
    """An import payload is empty or malformed; nothing was written."""

    code = "INVALID_STRUCTURE"


class InvalidMetricRecord(InvalidImportStructure):
    """A metric record or metric was constructed in an inconsistent state."""


class UnsupportedImportType(DomainError):
    """The import source (file extension, source tag, or domain) is not recognized."""

    code = "UNSUPPORTED_TYPE"


class TransactionConflict(DomainError):
    """Concurrent writers contended for the same (company, domain) key.

    The transaction that raised this was rolled back in full; callers may
    retry the operation as a whole.
    """

    code = "TRANSACTION_CONFLICT"
    retryable = True
