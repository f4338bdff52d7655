# tests/unit/domain/test_composite_scoring.py
from __future__ import annotations

from decimal import Decimal

import pytest

from ecometrics_api.domain.entities.analytics import CompositeScore, ScoreComponent
from ecometrics_api.domain.enums.analytics import ComplianceRating, TrendDirection
from ecometrics_api.domain.services.composite_scoring import (
    BiodiversityInputs,
    ComplianceInputs,
    rate_biodiversity_score,
    rate_score,
    score_biodiversity,
    score_compliance,
)
from ecometrics_api.domain.services.domain_schemas import FRAMEWORK_ALIGNMENT_METRICS


def _component(result: CompositeScore, name: str) -> ScoreComponent:
    return next(c for c in result.components if c.name == name)


@pytest.mark.parametrize(
    ("score", "rating"),
    [
        (100, ComplianceRating.EXCELLENT),
        (90, ComplianceRating.EXCELLENT),
        (89, ComplianceRating.GOOD),
        (75, ComplianceRating.GOOD),
        (74, ComplianceRating.SATISFACTORY),
        (60, ComplianceRating.SATISFACTORY),
        (59, ComplianceRating.NEEDS_IMPROVEMENT),
        (40, ComplianceRating.NEEDS_IMPROVEMENT),
        (39, ComplianceRating.POOR),
        (0, ComplianceRating.POOR),
    ],
)
def test_rate_score_bands(score: int, rating: ComplianceRating) -> None:
    assert rate_score(score) is rating


def test_compliance_score_weights_each_component() -> None:
    inputs = ComplianceInputs(
        training_hours=Decimal(50),
        employees_trained=Decimal(80),
        suppliers_code_of_conduct=Decimal(120),
        suppliers_audited=Decimal(25),
        non_compliance_cases=Decimal(2),
        framework_alignment={"GRI": Decimal(80), "TCFD": Decimal(60), "IFRS S1": None},
        scope3_emissions=Decimal(200),
    )

    result = score_compliance(inputs)

    # 5 + 8 + 15 + 5 + 8 + 7 + 12 = 60, plus the baseline of 10.
    assert result.score == 70
    assert result.rating is ComplianceRating.SATISFACTORY
    assert result.baseline == Decimal(10)
    assert _component(result, "supplier_code_of_conduct").score == Decimal(100)
    assert _component(result, "framework_alignment").score == Decimal(35)
    assert _component(result, "carbon").score == Decimal(80)


def test_compliance_score_without_data_keeps_default_credit() -> None:
    """No cases and no scope 3 emissions still earn their full sub-scores."""
    inputs = ComplianceInputs()

    result = score_compliance(inputs)

    assert inputs.is_empty
    assert result.score == 35
    assert result.rating is ComplianceRating.POOR


def test_compliance_score_is_capped_and_sub_scores_clamped() -> None:
    inputs = ComplianceInputs(
        training_hours=Decimal(400),
        employees_trained=Decimal(500),
        suppliers_code_of_conduct=Decimal(500),
        suppliers_audited=Decimal(90),
        non_compliance_cases=Decimal(0),
        framework_alignment={name: Decimal(100) for name in FRAMEWORK_ALIGNMENT_METRICS},
    )

    result = score_compliance(inputs)

    assert result.score == 100
    assert all(Decimal(0) <= c.score <= Decimal(100) for c in result.components)


def test_unreported_frameworks_count_as_zero() -> None:
    inputs = ComplianceInputs(
        framework_alignment={
            "GRI Alignment": Decimal(80),
            "IFRS S1 Alignment": None,
            "IFRS S2 Alignment": None,
            "TCFD Alignment": None,
        }
    )

    result = score_compliance(inputs)

    framework = _component(result, "framework_alignment")
    assert framework.score == Decimal(20)
    assert framework.raw_value == Decimal(20)
    # 10 + 15 (carbon) + 4 (frameworks) + the baseline of 10.
    assert result.score == 39
    assert result.rating is ComplianceRating.POOR


def test_a_single_framework_is_still_averaged_over_all_four() -> None:
    result = score_compliance(ComplianceInputs(framework_alignment={"GRI": Decimal(80)}))

    assert _component(result, "framework_alignment").score == Decimal(20)


def test_many_non_compliance_cases_floor_at_zero() -> None:
    result = score_compliance(ComplianceInputs(non_compliance_cases=Decimal(15)))

    assert _component(result, "non_compliance").score == Decimal(0)


def test_biodiversity_score() -> None:
    inputs = BiodiversityInputs(
        protected_habitat_percent=Decimal(25),
        species_trend=TrendDirection.IMPROVING,
        trees_planted=Decimal(5000),
        human_wildlife_conflicts=Decimal(3),
    )

    result = score_biodiversity(inputs)

    # 75*.35 + 100*.25 + 70*.25 + 70*.15 = 79.25
    assert result.score == 79
    assert result.rating is ComplianceRating.GOOD
    assert result.baseline == Decimal(0)


def test_biodiversity_score_without_data_is_zero() -> None:
    inputs = BiodiversityInputs()

    assert inputs.is_empty
    assert score_biodiversity(inputs).score == 0


@pytest.mark.parametrize(
    ("habitat", "expected"),
    [("30", 100), ("29.9", 75), ("20", 75), ("10", 50), ("0.5", 25), ("0", 0)],
)
def test_habitat_thresholds(habitat: str, expected: int) -> None:
    result = score_biodiversity(BiodiversityInputs(protected_habitat_percent=Decimal(habitat)))

    assert _component(result, "protected_habitat").score == Decimal(expected)


@pytest.mark.parametrize(
    ("trees", "expected"),
    [("10000", 100), ("9999", 70), ("1000", 70), ("999", 40), ("0", 0)],
)
def test_trees_thresholds(trees: str, expected: int) -> None:
    result = score_biodiversity(BiodiversityInputs(trees_planted=Decimal(trees)))

    assert _component(result, "trees_planted").score == Decimal(expected)


@pytest.mark.parametrize(
    ("conflicts", "expected"),
    [("0", 100), ("5", 70), ("6", 40), ("20", 40), ("21", 10), (None, 0)],
)
def test_conflict_thresholds(conflicts: str | None, expected: int) -> None:
    value = None if conflicts is None else Decimal(conflicts)
    result = score_biodiversity(BiodiversityInputs(human_wildlife_conflicts=value))

    assert _component(result, "human_wildlife_conflicts").score == Decimal(expected)


@pytest.mark.parametrize(
    ("trend", "expected"),
    [
        (TrendDirection.IMPROVING, 100),
        (TrendDirection.STABLE, 60),
        (TrendDirection.DECLINING, 20),
        (TrendDirection.UNKNOWN, 0),
    ],
)
def test_species_trend_scores(trend: TrendDirection, expected: int) -> None:
    result = score_biodiversity(BiodiversityInputs(species_trend=trend))

    assert _component(result, "species_trend").score == Decimal(expected)


@pytest.mark.parametrize(
    ("score", "rating"),
    [
        (80, ComplianceRating.EXCELLENT),
        (79, ComplianceRating.GOOD),
        (60, ComplianceRating.GOOD),
        (59, ComplianceRating.FAIR),
        (40, ComplianceRating.FAIR),
        (39, ComplianceRating.POOR),
    ],
)
def test_biodiversity_rating_bands(score: int, rating: ComplianceRating) -> None:
    assert rate_biodiversity_score(score) is rating


def test_biodiversity_score_uses_its_own_bands() -> None:
    inputs = BiodiversityInputs(
        protected_habitat_percent=Decimal(30),
        species_trend=TrendDirection.STABLE,
        trees_planted=Decimal(10_000),
        human_wildlife_conflicts=Decimal(3),
    )

    result = score_biodiversity(inputs)

    # 100*.35 + 60*.25 + 100*.25 + 70*.15 = 85.5
    assert result.score == 86
    assert result.rating is ComplianceRating.EXCELLENT
    assert rate_score(result.score) is ComplianceRating.GOOD
