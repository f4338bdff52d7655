# tests/unit/domain/test_import_transform.py
from __future__ import annotations

import re
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest

from ecometrics_api.domain.entities.metric_record import (
    ListData,
    Metric,
    SingleValue,
    Summary,
    YearlySeries,
)
from ecometrics_api.domain.enums.metric_record import ImportSource, MetricDataType
from ecometrics_api.domain.exceptions.metric_records import (
    InvalidImportStructure,
    UnsupportedImportType,
)
from ecometrics_api.domain.services import domain_schemas as names
from ecometrics_api.domain.services.domain_schemas import get_domain_schema
from ecometrics_api.domain.services.import_transform import (
    ImportResult,
    ImportTransform,
    import_source_from_file_name,
    infer_data_period,
    new_import_batch_id,
)


def _rows(*cells: tuple[Any, ...]) -> list[dict[str, Any]]:
    """Build rows keyed by spreadsheet column letters."""
    width = max(len(c) for c in cells)
    keys = "ABCDEFGH"[:width]
    return [{k: (row[i] if i < len(row) else "") for i, k in enumerate(keys)} for row in cells]


def _by_name(metrics: tuple[Metric, ...]) -> dict[str, Metric]:
    return {m.metric_name: m for m in metrics}


def _transform(domain: str, rows: list[dict[str, Any]]) -> ImportResult:
    return ImportTransform(get_domain_schema(domain), source="carbon.xlsx").transform_rows(rows)


def test_carbon_sheet_yields_series_and_monthly_samples() -> None:
    rows = _rows(
        ("Emissions and Sequestration (tCO2e)",),
        ("Year", "Scope 1 (tCO2e)", "SOC (tC/ha)"),
        ("2021", "1,200", "45.5"),
        ("2022", "#VALUE!", "47"),
        ("2023", "1,100", "(3)"),
        ("", "", ""),
        ("Monthly Monitoring",),
        ("Month", "Year", "NDVI", "Soil Moisture (%)"),
        ("January", "2023", "0.55", "30"),
        ("Feb", "2023", "0.60", ""),
    )

    result = _transform("carbon_accounting", rows)

    assert [m.metric_name for m in result.metrics] == [
        names.SCOPE1_EMISSIONS,
        names.SOIL_ORGANIC_CARBON,
        names.CARBON_MONTHLY_MONITORING,
    ]
    assert (result.data_period_start, result.data_period_end) == ("2021", "2023")
    assert result.rows_read == len(rows)
    assert result.skipped_cells == 1

    metrics = _by_name(result.metrics)
    scope1 = metrics[names.SCOPE1_EMISSIONS]
    assert scope1.category == names.ENVIRONMENTAL
    assert scope1.subcategory == "Emissions and Sequestration"
    assert isinstance(scope1.payload, YearlySeries)
    values = [(p.year, p.numeric_value) for p in scope1.payload.points]
    assert values == [("2021", Decimal(1200)), ("2022", None), ("2023", Decimal(1100))]
    assert scope1.payload.points[1].raw_value == "#VALUE!"
    assert {p.unit for p in scope1.payload.points} == {"tCO2e"}
    assert {p.source for p in scope1.payload.points} == {"carbon.xlsx"}

    soc = metrics[names.SOIL_ORGANIC_CARBON]
    assert isinstance(soc.payload, YearlySeries)
    assert soc.payload.points[-1].numeric_value == Decimal(-3)
    assert soc.payload.points[0].unit == "tC/ha"

    monitoring = metrics[names.CARBON_MONTHLY_MONITORING]
    assert isinstance(monitoring.payload, YearlySeries)
    (year_point,) = monitoring.payload.points
    assert year_point.year == "2023"
    assert year_point.numeric_value is None
    january, february = year_point.monthly_samples
    assert (january.month_number, february.month_number) == (1, 2)
    assert january.values == {"NDVI": Decimal("0.55"), "Soil Moisture": Decimal(30)}
    assert february.values["Soil Moisture"] is None


def test_rows_before_any_header_use_mapping_keys() -> None:
    rows = [{"Year": "2021", "Scope 3": "350"}, {"Year": "2022", "Scope 3": "300"}]

    result = _transform("carbon_accounting", rows)

    (metric,) = result.metrics
    assert metric.metric_name == names.SCOPE3_EMISSIONS
    assert isinstance(metric.payload, YearlySeries)
    assert [p.numeric_value for p in metric.payload.points] == [Decimal(350), Decimal(300)]


def test_unlisted_columns_are_imported_under_their_own_name() -> None:
    rows = _rows(("Year", "Biochar Applied (t)"), ("2022", "12"))

    result = _transform("carbon_accounting", rows)

    (metric,) = result.metrics
    assert metric.metric_name == "Biochar Applied"
    assert isinstance(metric.payload, YearlySeries)
    assert metric.payload.points[0].unit == "t"


def test_list_sections_extract_single_values() -> None:
    rows = _rows(
        ("Social Welfare Programs",),
        ("• Scholarship fund reaching ~1,250 households",),
        ("- Clinic outreach",),
        ("Environmental Sustainability Efforts",),
        ("* Planted 5,000 trees along the river",),
    )

    result = _transform("community_engagement", rows)

    assert [(m.metric_name, m.data_type) for m in result.metrics] == [
        (names.SOCIAL_WELFARE_PROGRAMS, MetricDataType.LIST),
        (names.PROGRAM_BENEFICIARIES, MetricDataType.SINGLE_VALUE),
        (names.SUSTAINABILITY_EFFORTS, MetricDataType.LIST),
        (names.TREES_PLANTED, MetricDataType.SINGLE_VALUE),
    ]
    metrics = _by_name(result.metrics)
    programs = metrics[names.SOCIAL_WELFARE_PROGRAMS].payload
    assert isinstance(programs, ListData)
    assert [i.text for i in programs.items] == [
        "Scholarship fund reaching ~1,250 households",
        "Clinic outreach",
    ]
    beneficiaries = metrics[names.PROGRAM_BENEFICIARIES].payload
    assert isinstance(beneficiaries, SingleValue)
    assert beneficiaries.value == Decimal(1250)
    trees = metrics[names.TREES_PLANTED]
    assert trees.category == names.ENVIRONMENTAL
    assert isinstance(trees.payload, SingleValue)
    assert trees.payload.value == Decimal(5000)
    assert result.data_period_start is None


def test_key_value_summary_rows() -> None:
    rows = _rows(
        ("Data Summary", "", "", ""),
        ("Key Metric", "Latest", "Trend", "Notes"),
        ("Species Count", "42", "Up", ""),
    )

    result = _transform("biodiversity_landuse", rows)

    (metric,) = result.metrics
    assert isinstance(metric.payload, Summary)
    assert metric.payload == Summary(key="Species Count", latest_value="42", trend="Up")


def test_sentinels_tolerate_dash_variants_and_case() -> None:
    rows = _rows(
        ("LAND USE – AGRICULTURAL LAND",),
        ("Year", "Protected Area (%)", "Trees"),
        ("2022", "18", "1,500"),
    )

    result = _transform("biodiversity_landuse", rows)

    metrics = _by_name(result.metrics)
    habitat = metrics[names.PROTECTED_HABITAT].payload
    trees = metrics[names.TREES_PLANTED].payload
    assert isinstance(habitat, YearlySeries) and isinstance(trees, YearlySeries)
    assert habitat.points[0].numeric_value == Decimal(18)
    assert habitat.points[0].unit == "%"
    assert trees.points[0].numeric_value == Decimal(1500)


def test_monthly_rows_without_year_column_attach_to_last_year() -> None:
    rows = _rows(
        ("Year", "Crop Yield (t/ha)"),
        ("2022", "3.1"),
        ("Monthly Yield Monitoring",),
        ("Month", "Rainfall (mm)"),
        ("3", "80"),
        ("Smarch", "1"),
    )

    result = _transform("crop_yield", rows)

    monitoring = _by_name(result.metrics)[names.CROP_MONTHLY_MONITORING].payload
    assert isinstance(monitoring, YearlySeries)
    (year_point,) = monitoring.points
    assert year_point.year == "2022"
    assert [s.month_number for s in year_point.monthly_samples] == [3]


def test_invalid_inputs_raise_invalid_structure() -> None:
    schema = get_domain_schema("carbon_accounting")

    with pytest.raises(InvalidImportStructure):
        ImportTransform(schema, source="  ")
    transform = ImportTransform(schema, source="x.csv")
    with pytest.raises(InvalidImportStructure):
        transform.transform_rows("Year,Scope 1")  # type: ignore[arg-type]
    with pytest.raises(InvalidImportStructure) as info:
        transform.transform_rows([["2021", "1"]])  # type: ignore[list-item]
    assert info.value.code == "INVALID_STRUCTURE"


def test_empty_rows_yield_no_metrics() -> None:
    result = _transform("waste_management", [])

    assert result.metrics == ()
    assert infer_data_period(result.metrics) == (None, None)


@pytest.mark.parametrize(
    ("file_name", "source"),
    [
        ("carbon.csv", ImportSource.CSV),
        ("Carbon.XLSX", ImportSource.EXCEL),
        ("legacy.xls", ImportSource.EXCEL),
        ("body.json", ImportSource.MANUAL),
        ("report.pdf", ImportSource.PDF_EXTRACTION),
    ],
)
def test_import_source_from_file_name(file_name: str, source: ImportSource) -> None:
    assert import_source_from_file_name(file_name) is source


@pytest.mark.parametrize("file_name", ["notes.txt", "no_extension"])
def test_unknown_extensions_are_unsupported(file_name: str) -> None:
    with pytest.raises(UnsupportedImportType) as info:
        import_source_from_file_name(file_name)

    assert info.value.code == "UNSUPPORTED_TYPE"


def test_batch_id_format() -> None:
    batch_id = new_import_batch_id(ImportSource.CSV, datetime(2024, 1, 1, tzinfo=UTC))

    assert re.fullmatch(r"csv_import_1704067200000_[0-9a-f]{6}", batch_id)
