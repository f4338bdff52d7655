# src/ecometrics_api/domain/enums/analytics.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Ordinal labels produced by the analytics functions.

Layer:
    domain/enums

Notes:
    - Every enum that can be produced from missing data carries an explicit
      sentinel member (``unknown`` / ``insufficient_data``) so analytics never
      have to raise.
"""

from __future__ import annotations

from enum import Enum

__all__ = [
    "TrendDirection",
    "ConfidenceLevel",
    "VegetationClass",
    "ComplianceRating",
    "DegradationStatus",
]


class TrendDirection(str, Enum):
    """Direction of change between the first and last value of a series."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    UNKNOWN = "unknown"


class ConfidenceLevel(str, Enum):
    """Three-step ordinal scale used for risk, permanence, and confidence."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    INSUFFICIENT_DATA = "insufficient_data"


class VegetationClass(str, Enum):
    """Vegetation condition derived from mean NDVI."""

    EXCELLENT = "Excellent"
    GOOD = "Good"
    MODERATE = "Moderate"
    POOR = "Poor"
    UNKNOWN = "unknown"


class ComplianceRating(str, Enum):
    """Rating band for a composite score."""

    EXCELLENT = "Excellent"
    GOOD = "Good"
    SATISFACTORY = "Satisfactory"
    FAIR = "Fair"
    NEEDS_IMPROVEMENT = "Needs Improvement"
    POOR = "Poor"


class DegradationStatus(str, Enum):
    """Land degradation status derived from the degradation score."""

    LOW_RISK = "low_risk"
    MODERATE_RISK = "moderate_risk"
    HIGH_RISK = "high_risk"
    INSUFFICIENT_DATA = "insufficient_data"
