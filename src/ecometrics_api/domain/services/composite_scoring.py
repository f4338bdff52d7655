# src/ecometrics_api/domain/services/composite_scoring.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Composite scoring engines.

Purpose:
    Combine independently computed, threshold-derived sub-scores into a single
    weighted 0-100 score with a rating band. Two composites are provided:

    * Farm compliance: training, suppliers, non-compliance, reporting
      framework alignment, and scope 3 carbon intensity.
    * Biodiversity: protected habitat coverage, species trend, trees planted,
      and human-wildlife conflicts.

Layer:
    domain/services

Design:
    - Each sub-score is clamped to [0, 100] before weighting.
    - The composite is rounded half-up and clamped to [0, 100].
    - Compliance is rated on 90/75/60/40 bands, biodiversity on 80/60/40.
    - Missing inputs fall back to the same defaults a blank spreadsheet cell
      would produce; engines never raise on missing data.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Final

from ecometrics_api.domain.entities.analytics import CompositeScore, ScoreComponent
from ecometrics_api.domain.enums.analytics import ComplianceRating, TrendDirection
from ecometrics_api.domain.services.domain_schemas import FRAMEWORK_ALIGNMENT_METRICS
from ecometrics_api.domain.services.numeric import HUNDRED, ZERO, clamp, non_null, round_score

__all__ = [
    "ComplianceInputs",
    "BiodiversityInputs",
    "ComplianceScoringConfig",
    "BiodiversityScoringConfig",
    "rate_score",
    "rate_biodiversity_score",
    "score_compliance",
    "score_biodiversity",
]

_RATING_BANDS: Final[tuple[tuple[int, ComplianceRating], ...]] = (
    (90, ComplianceRating.EXCELLENT),
    (75, ComplianceRating.GOOD),
    (60, ComplianceRating.SATISFACTORY),
    (40, ComplianceRating.NEEDS_IMPROVEMENT),
)


_BIODIVERSITY_BANDS: Final[tuple[tuple[int, ComplianceRating], ...]] = (
    (80, ComplianceRating.EXCELLENT),
    (60, ComplianceRating.GOOD),
    (40, ComplianceRating.FAIR),
)


def _band(score: int, bands: tuple[tuple[int, ComplianceRating], ...]) -> ComplianceRating:
    for floor, rating in bands:
        if score >= floor:
            return rating
    return ComplianceRating.POOR


def rate_score(score: int) -> ComplianceRating:
    """Map a 0-100 compliance score onto its rating band."""
    return _band(score, _RATING_BANDS)


def rate_biodiversity_score(score: int) -> ComplianceRating:
    """Map a 0-100 biodiversity score onto Excellent/Good/Fair/Poor."""
    return _band(score, _BIODIVERSITY_BANDS)


# --------------------------------------------------------------------------- #
# Farm compliance                                                             #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class ComplianceInputs:
    """Latest raw values feeding the compliance composite.

    Attributes:
        training_hours: Average training hours per employee.
        employees_trained: Number of employees trained.
        suppliers_code_of_conduct: Suppliers signed up to the code of conduct.
        suppliers_audited: Suppliers audited in the period.
        non_compliance_cases: Recorded non-compliance cases.
        framework_alignment: Framework name to alignment percentage.
        scope3_emissions: Scope 3 emissions (tCO2e).
    """

    training_hours: Decimal | None = None
    employees_trained: Decimal | None = None
    suppliers_code_of_conduct: Decimal | None = None
    suppliers_audited: Decimal | None = None
    non_compliance_cases: Decimal | None = None
    framework_alignment: Mapping[str, Decimal | None] = field(default_factory=dict)
    scope3_emissions: Decimal | None = None

    @property
    def is_empty(self) -> bool:
        """Return True when no input carries a value."""
        scalars = (
            self.training_hours,
            self.employees_trained,
            self.suppliers_code_of_conduct,
            self.suppliers_audited,
            self.non_compliance_cases,
            self.scope3_emissions,
        )
        return all(v is None for v in scalars) and not non_null(self.framework_alignment.values())


@dataclass(frozen=True, slots=True)
class ComplianceScoringConfig:
    """Targets and weights of the compliance composite."""

    training_hours_target: Decimal = Decimal(100)
    suppliers_audited_target: Decimal = Decimal(50)
    penalty_per_case: Decimal = Decimal(10)
    scope3_penalty_per_100t: Decimal = Decimal(10)
    baseline: Decimal = Decimal(10)
    frameworks: tuple[str, ...] = FRAMEWORK_ALIGNMENT_METRICS
    weights: Mapping[str, Decimal] = field(
        default_factory=lambda: {
            "training_hours": Decimal("0.10"),
            "employees_trained": Decimal("0.10"),
            "supplier_code_of_conduct": Decimal("0.15"),
            "suppliers_audited": Decimal("0.10"),
            "non_compliance": Decimal("0.10"),
            "framework_alignment": Decimal("0.20"),
            "carbon": Decimal("0.15"),
        }
    )


def score_compliance(
    inputs: ComplianceInputs,
    config: ComplianceScoringConfig | None = None,
) -> CompositeScore:
    """Compute the farm compliance composite score.

    Sub-scores:
        * training hours: ``hours / target * 100``
        * employees trained: the count itself, capped at 100
        * supplier code of conduct: the count itself, capped at 100
        * suppliers audited: ``audited / target * 100``
        * non-compliance: 100 with no cases, else ``100 - penalty * cases``
        * framework alignment: sum of the framework percentages over the number
          of tracked frameworks; unreported frameworks count as 0
        * carbon: 100 with no scope 3, else ``100 - scope3 / 100 * penalty``

    The weighted sum plus the baseline is rounded and capped at 100.
    """
    cfg = config or ComplianceScoringConfig()

    hours = inputs.training_hours or ZERO
    trained = inputs.employees_trained or ZERO
    code_of_conduct = inputs.suppliers_code_of_conduct or ZERO
    audited = inputs.suppliers_audited or ZERO
    cases = inputs.non_compliance_cases or ZERO
    scope3 = inputs.scope3_emissions or ZERO

    reported = non_null(inputs.framework_alignment.values())
    framework_count = Decimal(max(len(cfg.frameworks), len(inputs.framework_alignment)))
    framework_mean = sum(reported, ZERO) / framework_count if reported else None

    raw_scores: dict[str, tuple[Decimal | None, Decimal]] = {
        "training_hours": (inputs.training_hours, hours / cfg.training_hours_target * HUNDRED),
        "employees_trained": (inputs.employees_trained, trained),
        "supplier_code_of_conduct": (inputs.suppliers_code_of_conduct, code_of_conduct),
        "suppliers_audited": (
            inputs.suppliers_audited,
            audited / cfg.suppliers_audited_target * HUNDRED if audited > 0 else ZERO,
        ),
        "non_compliance": (
            inputs.non_compliance_cases,
            HUNDRED if cases <= 0 else HUNDRED - cfg.penalty_per_case * cases,
        ),
        "framework_alignment": (framework_mean, framework_mean or ZERO),
        "carbon": (
            inputs.scope3_emissions,
            HUNDRED - scope3 / HUNDRED * cfg.scope3_penalty_per_100t if scope3 > 0 else HUNDRED,
        ),
    }
    return _compose(raw_scores, cfg.weights, baseline=cfg.baseline)


# --------------------------------------------------------------------------- #
# Biodiversity                                                                #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class BiodiversityInputs:
    """Latest raw values feeding the biodiversity composite."""

    protected_habitat_percent: Decimal | None = None
    species_trend: TrendDirection = TrendDirection.UNKNOWN
    trees_planted: Decimal | None = None
    human_wildlife_conflicts: Decimal | None = None

    @property
    def is_empty(self) -> bool:
        """Return True when no input carries a value."""
        return (
            self.protected_habitat_percent is None
            and self.species_trend is TrendDirection.UNKNOWN
            and self.trees_planted is None
            and self.human_wildlife_conflicts is None
        )


@dataclass(frozen=True, slots=True)
class BiodiversityScoringConfig:
    """Weights of the biodiversity composite."""

    weights: Mapping[str, Decimal] = field(
        default_factory=lambda: {
            "protected_habitat": Decimal("0.35"),
            "species_trend": Decimal("0.25"),
            "trees_planted": Decimal("0.25"),
            "human_wildlife_conflicts": Decimal("0.15"),
        }
    )


_SPECIES_TREND_SCORES: Final[Mapping[TrendDirection, Decimal]] = {
    TrendDirection.IMPROVING: Decimal(100),
    TrendDirection.STABLE: Decimal(60),
    TrendDirection.DECLINING: Decimal(20),
    TrendDirection.UNKNOWN: ZERO,
}


def _habitat_score(pct: Decimal | None) -> Decimal:
    if pct is None or pct <= 0:
        return ZERO
    if pct >= 30:
        return Decimal(100)
    if pct >= 20:
        return Decimal(75)
    if pct >= 10:
        return Decimal(50)
    return Decimal(25)


def _trees_score(trees: Decimal | None) -> Decimal:
    if trees is None or trees <= 0:
        return ZERO
    if trees >= 10_000:
        return Decimal(100)
    if trees >= 1_000:
        return Decimal(70)
    return Decimal(40)


def _conflict_score(conflicts: Decimal | None) -> Decimal:
    if conflicts is None:
        return ZERO
    if conflicts <= 0:
        return Decimal(100)
    if conflicts <= 5:
        return Decimal(70)
    if conflicts <= 20:
        return Decimal(40)
    return Decimal(10)


def score_biodiversity(
    inputs: BiodiversityInputs,
    config: BiodiversityScoringConfig | None = None,
) -> CompositeScore:
    """Compute the biodiversity composite score.

    Sub-scores:
        * protected habitat %: >=30 -> 100, >=20 -> 75, >=10 -> 50, >0 -> 25, else 0
        * species trend: improving 100, stable 60, declining 20, unknown 0
        * trees planted: >=10,000 -> 100, >=1,000 -> 70, >0 -> 40, else 0
        * human-wildlife conflicts: 0 -> 100, <=5 -> 70, <=20 -> 40, else 10;
          unknown counts -> 0
    """
    cfg = config or BiodiversityScoringConfig()
    raw_scores: dict[str, tuple[Decimal | None, Decimal]] = {
        "protected_habitat": (
            inputs.protected_habitat_percent,
            _habitat_score(inputs.protected_habitat_percent),
        ),
        "species_trend": (None, _SPECIES_TREND_SCORES[inputs.species_trend]),
        "trees_planted": (inputs.trees_planted, _trees_score(inputs.trees_planted)),
        "human_wildlife_conflicts": (
            inputs.human_wildlife_conflicts,
            _conflict_score(inputs.human_wildlife_conflicts),
        ),
    }
    return _compose(raw_scores, cfg.weights, rate=rate_biodiversity_score)


def _compose(
    raw_scores: Mapping[str, tuple[Decimal | None, Decimal]],
    weights: Mapping[str, Decimal],
    *,
    baseline: Decimal = ZERO,
    rate: Callable[[int], ComplianceRating] = rate_score,
) -> CompositeScore:
    components = tuple(
        ScoreComponent(name=name, raw_value=raw, score=clamp(score), weight=weights[name])
        for name, (raw, score) in raw_scores.items()
    )
    total = sum((c.contribution for c in components), ZERO) + baseline
    final = round_score(clamp(total))
    return CompositeScore(
        score=final,
        rating=rate(final),
        components=components,
        baseline=baseline,
    )
