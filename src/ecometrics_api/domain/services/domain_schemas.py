# src/ecometrics_api/domain/services/domain_schemas.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Per-domain import schemas.

Purpose:
    Describe, once per ESG domain, how an exported spreadsheet is laid out:
    which sentinel labels open which sections, how rows inside each section
    are read, which column headers map onto canonical metric names, and which
    free-text bullets carry extractable values.

    The import transform and the version store are generic; everything that
    differs between domains lives here.

Layer:
    domain/services

Notes:
    - Canonical metric names are exported as constants so the analytics
      functions look metrics up by the same names the importer writes.
    - Column headers of the form ``"Name (unit)"`` are split into a metric
      name and a unit. Headers not listed in a section's columns are still
      imported under their own name unless the section disables it.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Final

from ecometrics_api.domain.enums.metric_record import MetricDomain
from ecometrics_api.domain.exceptions.metric_records import UnsupportedImportType

__all__ = [
    "SectionMode",
    "ColumnSpec",
    "ExtractionRule",
    "SectionSpec",
    "DomainSchema",
    "normalize_label",
    "split_unit",
    "DOMAIN_SCHEMAS",
    "get_domain_schema",
]

# --------------------------------------------------------------------------- #
# Canonical metric names                                                      #
# --------------------------------------------------------------------------- #

ENVIRONMENTAL: Final[str] = "environmental"
SOCIAL: Final[str] = "social"
GOVERNANCE: Final[str] = "governance"
PRODUCTION: Final[str] = "production"

# Carbon accounting
SCOPE1_EMISSIONS: Final[str] = "Scope 1 Emissions"
SCOPE2_EMISSIONS: Final[str] = "Scope 2 Emissions"
SCOPE3_EMISSIONS: Final[str] = "Scope 3 Emissions"
SOIL_ORGANIC_CARBON: Final[str] = "Soil Organic Carbon"
SEQUESTRATION_RATE: Final[str] = "Sequestration Rate"
TOTAL_SEQUESTRATION: Final[str] = "Total Sequestration"
MONITORED_AREA: Final[str] = "Monitored Area"
NDVI: Final[str] = "NDVI"
EROSION_RATE: Final[str] = "Erosion Rate"
CARBON_MONTHLY_MONITORING: Final[str] = "Monthly Carbon Monitoring"

# Crop yield
CROP_YIELD: Final[str] = "Crop Yield"
CULTIVATED_AREA: Final[str] = "Cultivated Area"
TOTAL_PRODUCTION: Final[str] = "Total Production"
FERTILIZER_USE: Final[str] = "Fertilizer Use"
WATER_USE: Final[str] = "Water Use"
CROP_MONTHLY_MONITORING: Final[str] = "Monthly Yield Monitoring"

# Community engagement
COMMUNITY_INVESTMENT: Final[str] = "Community Investment"
BENEFICIARIES: Final[str] = "Beneficiaries"
SOCIAL_WELFARE_PROGRAMS: Final[str] = "Social Welfare Programs"
SUSTAINABILITY_EFFORTS: Final[str] = "Environmental Sustainability Efforts"
TREES_PLANTED: Final[str] = "Trees Planted"
PROGRAM_BENEFICIARIES: Final[str] = "Program Beneficiaries"

# Farm compliance
TRAINING_HOURS: Final[str] = "Average Training Hours"
EMPLOYEES_TRAINED: Final[str] = "Employees Trained"
SUPPLIERS_CODE_OF_CONDUCT: Final[str] = "Suppliers Signed Code of Conduct"
SUPPLIERS_AUDITED: Final[str] = "Suppliers Audited"
NON_COMPLIANCE_CASES: Final[str] = "Non-Compliance Cases"
GRI_ALIGNMENT: Final[str] = "GRI Alignment"
IFRS_S1_ALIGNMENT: Final[str] = "IFRS S1 Alignment"
IFRS_S2_ALIGNMENT: Final[str] = "IFRS S2 Alignment"
TCFD_ALIGNMENT: Final[str] = "TCFD Alignment"
FRAMEWORK_ALIGNMENT_METRICS: Final[tuple[str, ...]] = (
    GRI_ALIGNMENT,
    IFRS_S1_ALIGNMENT,
    IFRS_S2_ALIGNMENT,
    TCFD_ALIGNMENT,
)
TRAINING_FOCUS_AREAS: Final[str] = "Training Focus Areas"
TRAINING_DELIVERY_METHODS: Final[str] = "Training Delivery Methods"
COMPLIANCE_PROGRAMS: Final[str] = "Compliance Programs"

# Waste management
WASTE_GENERATED: Final[str] = "Total Waste Generated"
WASTE_RECYCLED: Final[str] = "Waste Recycled"
WASTE_LANDFILLED: Final[str] = "Waste to Landfill"
EFFLUENT_DISCHARGED: Final[str] = "Effluent Discharged"
EFFLUENT_TREATED: Final[str] = "Effluent Treated"
PACKAGING_MATERIAL: Final[str] = "Packaging Material"
WASTE_MEASURES: Final[str] = "Waste Management Measures"

# Biodiversity and land use
AGRICULTURAL_LAND: Final[str] = "Agricultural Land"
PROTECTED_HABITAT: Final[str] = "Protected Habitat Area"
SPECIES_COUNT: Final[str] = "Species Count"
HUMAN_WILDLIFE_CONFLICTS: Final[str] = "Human-Wildlife Conflicts"

# --------------------------------------------------------------------------- #
# Schema types                                                                #
# --------------------------------------------------------------------------- #

_DASHES: Final[re.Pattern[str]] = re.compile(r"[‒–—―]")
_WHITESPACE: Final[re.Pattern[str]] = re.compile(r"\s+")
_UNIT_SUFFIX: Final[re.Pattern[str]] = re.compile(r"^(?P<name>.*?)\s*\((?P<unit>[^()]*)\)\s*$")


def normalize_label(label: str) -> str:
    """Normalize a cell label for comparison (case, dashes, spacing, trailing colon)."""
    text = _DASHES.sub("-", label)
    text = _WHITESPACE.sub(" ", text).strip().rstrip(":").strip()
    return text.casefold()


def split_unit(header: str) -> tuple[str, str | None]:
    """Split ``"Name (unit)"`` into ``("Name", "unit")``."""
    match = _UNIT_SUFFIX.match(header.strip())
    if match is None or not match.group("name"):
        return header.strip(), None
    unit = match.group("unit").strip()
    return match.group("name").strip(), unit or None


class SectionMode(str, Enum):
    """How rows inside a section are interpreted."""

    YEARLY_COLUMNS = "yearly_columns"
    LIST = "list"
    KEY_VALUE = "key_value"
    MONTHLY = "monthly"


@dataclass(frozen=True, slots=True)
class ColumnSpec:
    """Maps one or more header spellings onto a canonical metric."""

    metric_name: str
    aliases: tuple[str, ...] = ()
    unit: str | None = None

    def matches(self, header_name: str) -> bool:
        """Return True if ``header_name`` (unit already stripped) names this column."""
        wanted = normalize_label(header_name)
        return wanted == normalize_label(self.metric_name) or any(
            wanted == normalize_label(alias) for alias in self.aliases
        )


@dataclass(frozen=True, slots=True)
class ExtractionRule:
    """Pulls a single numeric value out of a free-text list item.

    The first capture group of ``pattern`` is parsed as the value.
    """

    pattern: re.Pattern[str]
    metric_name: str
    unit: str | None = None
    category: str | None = None


@dataclass(frozen=True, slots=True)
class SectionSpec:
    """One section of an import layout.

    Attributes:
        name: Section name; also used as the subcategory of emitted metrics.
        mode: Row interpretation mode.
        category: Category of emitted metrics.
        sentinel: Label that opens the section. ``None`` only for the first
            section, which is active before any sentinel is seen.
        columns: Known columns for ``YEARLY_COLUMNS`` / ``MONTHLY`` sections.
        capture_unlisted_columns: Import unknown columns under their own name.
        metric_name: Metric receiving list items (``LIST``) or monthly
            samples (``MONTHLY``); defaults to ``name``.
        extraction_rules: Value extraction rules applied to list items.
        header_labels: First-cell labels that mark a column header row.
        bullet_prefixes: Prefixes stripped from list items.
    """

    name: str
    mode: SectionMode
    category: str
    sentinel: str | None = None
    columns: tuple[ColumnSpec, ...] = ()
    capture_unlisted_columns: bool = True
    metric_name: str | None = None
    extraction_rules: tuple[ExtractionRule, ...] = ()
    header_labels: tuple[str, ...] = ("year", "fiscal year", "period", "month")
    bullet_prefixes: tuple[str, ...] = ("•", "-", "*", "–")

    @property
    def target_metric_name(self) -> str:
        """Return the metric name list items or monthly samples are written to."""
        return self.metric_name or self.name

    def is_header_label(self, label: str) -> bool:
        """Return True if ``label`` marks a header row for this section."""
        return normalize_label(label) in {normalize_label(h) for h in self.header_labels}

    def opens_with(self, label: str) -> bool:
        """Return True if ``label`` is this section's sentinel."""
        if self.sentinel is None:
            return False
        return normalize_label(label).startswith(normalize_label(self.sentinel))

    def resolve_column(self, header: str) -> tuple[str, str | None] | None:
        """Resolve a column header to ``(metric_name, unit)``.

        Returns:
            The canonical name and unit, the header's own name and unit for
            unlisted columns, or ``None`` when the column is not imported.
        """
        if not header or not header.strip():
            return None
        name, unit = split_unit(header)
        for column in self.columns:
            if column.matches(name) or column.matches(header):
                return column.metric_name, column.unit or unit
        if self.capture_unlisted_columns:
            return name, unit
        return None


@dataclass(frozen=True, slots=True)
class DomainSchema:
    """Import layout for one ESG domain."""

    domain: MetricDomain
    sections: tuple[SectionSpec, ...]
    default_category: str = ENVIRONMENTAL

    def __post_init__(self) -> None:
        """Require at least one section and a sentinel on all but the first."""
        if not self.sections:
            raise ValueError(f"Domain schema {self.domain.value} has no sections.")
        for section in self.sections[1:]:
            if section.sentinel is None:
                raise ValueError(
                    f"Section {section.name!r} of {self.domain.value} needs a sentinel label."
                )

    @property
    def initial_section(self) -> SectionSpec:
        """Return the section active before any sentinel is seen."""
        return self.sections[0]

    def section_opened_by(self, label: str) -> SectionSpec | None:
        """Return the section whose sentinel matches ``label``, if any."""
        if not label or not label.strip():
            return None
        for section in self.sections:
            if section.opens_with(label):
                return section
        return None


# --------------------------------------------------------------------------- #
# Registry                                                                    #
# --------------------------------------------------------------------------- #

_YEAR_HEADERS: Final[tuple[str, ...]] = ("year", "fiscal year", "period")

_CROP_YIELD = DomainSchema(
    domain=MetricDomain.CROP_YIELD,
    default_category=PRODUCTION,
    sections=(
        SectionSpec(
            name="Crop Production",
            mode=SectionMode.YEARLY_COLUMNS,
            category=PRODUCTION,
            sentinel="Crop Production",
            columns=(
                ColumnSpec(CROP_YIELD, aliases=("Yield", "Average Yield"), unit="t/ha"),
                ColumnSpec(CULTIVATED_AREA, aliases=("Area", "Area Cultivated"), unit="ha"),
                ColumnSpec(TOTAL_PRODUCTION, aliases=("Production",), unit="t"),
                ColumnSpec(
                    FERTILIZER_USE,
                    aliases=("Fertiliser Use", "Fertilizer Application"),
                    unit="kg/ha",
                ),
                ColumnSpec(WATER_USE, aliases=("Irrigation Water Use",), unit="m3"),
            ),
            header_labels=_YEAR_HEADERS,
        ),
        SectionSpec(
            name="Monthly Yield Monitoring",
            mode=SectionMode.MONTHLY,
            category=PRODUCTION,
            sentinel="Monthly Yield Monitoring",
            metric_name=CROP_MONTHLY_MONITORING,
            header_labels=("month",),
        ),
    ),
)

_CARBON_ACCOUNTING = DomainSchema(
    domain=MetricDomain.CARBON_ACCOUNTING,
    sections=(
        SectionSpec(
            name="Emissions and Sequestration",
            mode=SectionMode.YEARLY_COLUMNS,
            category=ENVIRONMENTAL,
            sentinel="Emissions and Sequestration",
            columns=(
                ColumnSpec(SCOPE1_EMISSIONS, aliases=("Scope 1",), unit="tCO2e"),
                ColumnSpec(SCOPE2_EMISSIONS, aliases=("Scope 2",), unit="tCO2e"),
                ColumnSpec(SCOPE3_EMISSIONS, aliases=("Scope 3",), unit="tCO2e"),
                ColumnSpec(SOIL_ORGANIC_CARBON, aliases=("SOC",), unit="tC/ha"),
                ColumnSpec(
                    SEQUESTRATION_RATE,
                    aliases=("Sequestration per Hectare",),
                    unit="tCO2e/ha",
                ),
                ColumnSpec(
                    TOTAL_SEQUESTRATION,
                    aliases=("Sequestration Total", "Carbon Sequestered"),
                    unit="tCO2e",
                ),
                ColumnSpec(MONITORED_AREA, aliases=("Area", "SOC Area"), unit="ha"),
                ColumnSpec(NDVI, aliases=("Mean NDVI", "Average NDVI")),
                ColumnSpec(EROSION_RATE, aliases=("Soil Erosion",), unit="t/ha"),
            ),
            header_labels=_YEAR_HEADERS,
        ),
        SectionSpec(
            name="Monthly Monitoring",
            mode=SectionMode.MONTHLY,
            category=ENVIRONMENTAL,
            sentinel="Monthly Monitoring",
            metric_name=CARBON_MONTHLY_MONITORING,
            header_labels=("month",),
        ),
    ),
)

_COMMUNITY_ENGAGEMENT = DomainSchema(
    domain=MetricDomain.COMMUNITY_ENGAGEMENT,
    default_category=SOCIAL,
    sections=(
        SectionSpec(
            name="Community Development Initiatives",
            mode=SectionMode.YEARLY_COLUMNS,
            category=SOCIAL,
            sentinel="Community Development Initiatives",
            columns=(
                ColumnSpec(
                    COMMUNITY_INVESTMENT,
                    aliases=("Community Investment (USD)", "Investment"),
                    unit="USD",
                ),
                ColumnSpec(BENEFICIARIES, aliases=("Number of Beneficiaries",)),
            ),
            header_labels=_YEAR_HEADERS,
        ),
        SectionSpec(
            name=SOCIAL_WELFARE_PROGRAMS,
            mode=SectionMode.LIST,
            category=SOCIAL,
            sentinel="Social Welfare Programs",
            extraction_rules=(
                ExtractionRule(
                    pattern=re.compile(
                        r"~?([0-9][0-9,]*)\s*(?:beneficiaries|households|people)", re.IGNORECASE
                    ),
                    metric_name=PROGRAM_BENEFICIARIES,
                    unit="people",
                ),
            ),
        ),
        SectionSpec(
            name=SUSTAINABILITY_EFFORTS,
            mode=SectionMode.LIST,
            category=ENVIRONMENTAL,
            sentinel="Environmental Sustainability Efforts",
            extraction_rules=(
                ExtractionRule(
                    pattern=re.compile(r"~?([0-9][0-9,]*)\s*trees", re.IGNORECASE),
                    metric_name=TREES_PLANTED,
                    unit="trees",
                ),
            ),
        ),
    ),
)

_FARM_COMPLIANCE = DomainSchema(
    domain=MetricDomain.FARM_COMPLIANCE,
    default_category=GOVERNANCE,
    sections=(
        SectionSpec(
            name="Training and Compliance",
            mode=SectionMode.YEARLY_COLUMNS,
            category=GOVERNANCE,
            sentinel="Training and Compliance",
            columns=(
                ColumnSpec(
                    TRAINING_HOURS,
                    aliases=("Training Hours", "Average Training Hours per Employee"),
                    unit="hours",
                ),
                ColumnSpec(EMPLOYEES_TRAINED, aliases=("Number of Employees Trained",)),
                ColumnSpec(
                    SUPPLIERS_CODE_OF_CONDUCT,
                    aliases=("Supplier Code of Conduct", "Suppliers Code of Conduct"),
                ),
                ColumnSpec(SUPPLIERS_AUDITED, aliases=("Supplier Audits",)),
                ColumnSpec(
                    NON_COMPLIANCE_CASES,
                    aliases=("Non-compliance Incidents", "Non Compliance Cases"),
                ),
                ColumnSpec(GRI_ALIGNMENT, aliases=("GRI",), unit="%"),
                ColumnSpec(IFRS_S1_ALIGNMENT, aliases=("IFRS S1",), unit="%"),
                ColumnSpec(IFRS_S2_ALIGNMENT, aliases=("IFRS S2",), unit="%"),
                ColumnSpec(TCFD_ALIGNMENT, aliases=("TCFD",), unit="%"),
            ),
            header_labels=_YEAR_HEADERS,
        ),
        SectionSpec(
            name=TRAINING_FOCUS_AREAS,
            mode=SectionMode.LIST,
            category=GOVERNANCE,
            sentinel="Training Focus Areas",
        ),
        SectionSpec(
            name=TRAINING_DELIVERY_METHODS,
            mode=SectionMode.LIST,
            category=GOVERNANCE,
            sentinel="Training Delivery Methods",
        ),
        SectionSpec(
            name=COMPLIANCE_PROGRAMS,
            mode=SectionMode.LIST,
            category=GOVERNANCE,
            sentinel="Compliance Programs",
        ),
    ),
)

_WASTE_MANAGEMENT = DomainSchema(
    domain=MetricDomain.WASTE_MANAGEMENT,
    sections=(
        SectionSpec(
            name="Waste Generation",
            mode=SectionMode.YEARLY_COLUMNS,
            category=ENVIRONMENTAL,
            sentinel="Waste Generation",
            columns=(
                ColumnSpec(WASTE_GENERATED, aliases=("Waste Generated",), unit="tons"),
                ColumnSpec(WASTE_RECYCLED, aliases=("Recycled Waste",), unit="tons"),
                ColumnSpec(
                    WASTE_LANDFILLED,
                    aliases=("Landfilled Waste", "Waste Landfilled"),
                    unit="tons",
                ),
            ),
            header_labels=_YEAR_HEADERS,
        ),
        SectionSpec(
            name="Effluent Management",
            mode=SectionMode.YEARLY_COLUMNS,
            category=ENVIRONMENTAL,
            sentinel="Effluent Management",
            columns=(
                ColumnSpec(EFFLUENT_DISCHARGED, aliases=("Effluent Volume",), unit="m3"),
                ColumnSpec(EFFLUENT_TREATED, aliases=("Treated Effluent",), unit="m3"),
            ),
            header_labels=_YEAR_HEADERS,
        ),
        SectionSpec(
            name=PACKAGING_MATERIAL,
            mode=SectionMode.YEARLY_COLUMNS,
            category=ENVIRONMENTAL,
            sentinel="Packaging Material",
            header_labels=_YEAR_HEADERS,
        ),
        SectionSpec(
            name=WASTE_MEASURES,
            mode=SectionMode.LIST,
            category=ENVIRONMENTAL,
            sentinel="Waste Management Measures",
        ),
    ),
)

_BIODIVERSITY_LANDUSE = DomainSchema(
    domain=MetricDomain.BIODIVERSITY_LANDUSE,
    sections=(
        SectionSpec(
            name=AGRICULTURAL_LAND,
            mode=SectionMode.YEARLY_COLUMNS,
            category=ENVIRONMENTAL,
            sentinel="Land Use - Agricultural Land",
            columns=(
                ColumnSpec(
                    PROTECTED_HABITAT,
                    aliases=("Protected Habitat", "Protected Area", "Conservation Area"),
                    unit="%",
                ),
                ColumnSpec(SPECIES_COUNT, aliases=("Species Richness", "Number of Species")),
                ColumnSpec(
                    HUMAN_WILDLIFE_CONFLICTS,
                    aliases=("Human Wildlife Conflicts", "Human-Wildlife Conflict Incidents"),
                ),
                ColumnSpec(TREES_PLANTED, aliases=("Trees",), unit="trees"),
            ),
            header_labels=_YEAR_HEADERS,
        ),
        SectionSpec(
            name="Data Summary",
            mode=SectionMode.KEY_VALUE,
            category=ENVIRONMENTAL,
            sentinel="Data Summary",
            header_labels=("key metric", "metric"),
        ),
    ),
)

DOMAIN_SCHEMAS: Final[Mapping[MetricDomain, DomainSchema]] = {
    schema.domain: schema
    for schema in (
        _CROP_YIELD,
        _CARBON_ACCOUNTING,
        _COMMUNITY_ENGAGEMENT,
        _FARM_COMPLIANCE,
        _WASTE_MANAGEMENT,
        _BIODIVERSITY_LANDUSE,
    )
}


def get_domain_schema(domain: MetricDomain | str) -> DomainSchema:
    """Return the import schema for ``domain``.

    Raises:
        UnsupportedImportType: If ``domain`` is not a known ESG domain.
    """
    try:
        key = domain if isinstance(domain, MetricDomain) else MetricDomain(domain)
    except ValueError as exc:
        raise UnsupportedImportType(
            "Unknown metric domain.",
            details={"domain": str(domain)},
        ) from exc
    return DOMAIN_SCHEMAS[key]
