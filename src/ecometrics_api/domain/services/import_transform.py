# src/ecometrics_api/domain/services/import_transform.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Import transform: tokenized rows -> canonical metrics.

Purpose:
    Convert already-tokenized spreadsheet rows (ordered, string-keyed
    mappings) into an ordered collection of canonical :class:`Metric`
    objects plus the data period the import covers.

Layer:
    domain/services

Design:
    A small sequential state machine driven by a :class:`DomainSchema`:

    * A row whose leading label matches a section sentinel switches the
      active section (and therefore the parse mode).
    * A row whose leading label is one of the section's header labels
      (``Year``, ``Month``, ``Key Metric``) replaces the active column
      headers. Before any header row, the mapping keys of the rows are used.
    * Otherwise the row is interpreted according to the section mode:
      year-indexed numeric columns, bullet/list items, key/value summary
      rows, or monthly samples attached to a yearly point.

    Metrics are created on first sight, keyed by ``(category, metric_name)``,
    and keep first-seen order. A bad cell never aborts the import: blank
    cells are skipped and unparseable values become ``None``.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from pathlib import PurePath
from typing import Final
from uuid import UUID, uuid4

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
from ecometrics_api.domain.enums.metric_record import ImportSource, MetricDataType
from ecometrics_api.domain.exceptions.metric_records import (
    InvalidImportStructure,
    UnsupportedImportType,
)
from ecometrics_api.domain.services.domain_schemas import (
    DomainSchema,
    SectionMode,
    SectionSpec,
    normalize_label,
    split_unit,
)
from ecometrics_api.domain.services.numeric import extract_years, parse_numeric

__all__ = [
    "ImportResult",
    "ImportTransform",
    "infer_data_period",
    "import_source_from_file_name",
    "new_import_batch_id",
]

_MONTHS: Final[Mapping[str, int]] = {
    name: number
    for number, names in enumerate(
        (
            ("january", "jan"),
            ("february", "feb"),
            ("march", "mar"),
            ("april", "apr"),
            ("may",),
            ("june", "jun"),
            ("july", "jul"),
            ("august", "aug"),
            ("september", "sep", "sept"),
            ("october", "oct"),
            ("november", "nov"),
            ("december", "dec"),
        ),
        start=1,
    )
    for name in names
}

_YEAR_COLUMN_LABELS: Final[frozenset[str]] = frozenset({"year", "fiscal year", "period"})

_EXTENSION_SOURCES: Final[Mapping[str, ImportSource]] = {
    ".csv": ImportSource.CSV,
    ".xlsx": ImportSource.EXCEL,
    ".xls": ImportSource.EXCEL,
    ".json": ImportSource.MANUAL,
    ".pdf": ImportSource.PDF_EXTRACTION,
}


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Outcome of a transform run.

    Attributes:
        metrics: Canonical metrics in first-seen order.
        data_period_start: Earliest 4-digit year across all yearly points.
        data_period_end: Latest 4-digit year across all yearly points.
        rows_read: Number of rows scanned.
        skipped_cells: Non-blank cells that could not be parsed as numbers.
    """

    metrics: tuple[Metric, ...]
    data_period_start: str | None
    data_period_end: str | None
    rows_read: int = 0
    skipped_cells: int = 0


def infer_data_period(metrics: Iterable[Metric]) -> tuple[str | None, str | None]:
    """Return the min/max 4-digit year observed across all yearly data points."""
    years: list[int] = []
    for metric in metrics:
        if isinstance(metric.payload, YearlySeries):
            for point in metric.payload.points:
                years.extend(extract_years(point.year))
    if not years:
        return None, None
    return str(min(years)), str(max(years))


def import_source_from_file_name(file_name: str) -> ImportSource:
    """Infer the import source from a file extension.

    Raises:
        UnsupportedImportType: If the extension is not recognized.
    """
    suffix = PurePath(file_name).suffix.lower()
    try:
        return _EXTENSION_SOURCES[suffix]
    except KeyError as exc:
        raise UnsupportedImportType(
            "Unsupported import file type.",
            details={"file_name": file_name, "extension": suffix or None},
        ) from exc


def new_import_batch_id(source: ImportSource, at: datetime) -> str:
    """Return a batch id of the form ``{source}_import_{epoch_ms}_{random6}``."""
    epoch_ms = int(at.timestamp() * 1000)
    return f"{source.value}_import_{epoch_ms}_{secrets.token_hex(3)}"


# --------------------------------------------------------------------------- #
# Accumulation                                                                #
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class _MetricBuilder:
    category: str
    metric_name: str
    kind: MetricDataType
    subcategory: str | None
    points: list[YearlyDataPoint] = field(default_factory=list)
    monthly: dict[str, dict[int, MonthlySample]] = field(default_factory=dict)
    items: list[ListItem] = field(default_factory=list)
    single: SingleValue | None = None
    summary: Summary | None = None

    def payload(self, source: str) -> MetricPayload:
        match self.kind:
            case MetricDataType.YEARLY_SERIES:
                return YearlySeries(points=self._merged_points(source))
            case MetricDataType.LIST:
                return ListData(items=tuple(self.items))
            case MetricDataType.SINGLE_VALUE:
                return self.single or SingleValue(value=None, source=source)
            case MetricDataType.SUMMARY:
                return self.summary or Summary(key=self.metric_name)

    def _merged_points(self, source: str) -> tuple[YearlyDataPoint, ...]:
        points = list(self.points)
        for year, by_month in self.monthly.items():
            samples = tuple(by_month[m] for m in sorted(by_month))
            for index in range(len(points) - 1, -1, -1):
                if points[index].year == year:
                    points[index] = replace(points[index], monthly_samples=samples)
                    break
            else:
                points.append(
                    YearlyDataPoint(
                        year=year,
                        numeric_value=None,
                        source=source,
                        notes="Monthly samples",
                        monthly_samples=samples,
                    )
                )
        return tuple(points)


class _Accumulator:
    def __init__(self) -> None:
        self._builders: dict[tuple[str, str], _MetricBuilder] = {}

    def get(
        self,
        category: str,
        metric_name: str,
        kind: MetricDataType,
        subcategory: str | None,
    ) -> _MetricBuilder | None:
        key = (category, metric_name)
        builder = self._builders.get(key)
        if builder is None:
            builder = _MetricBuilder(category, metric_name, kind, subcategory)
            self._builders[key] = builder
        if builder.kind is not kind:
            # First payload variant wins for a given identity.
            return None
        return builder

    def build(self, source: str, id_factory: Callable[[], UUID]) -> tuple[Metric, ...]:
        return tuple(
            Metric(
                id=id_factory(),
                category=b.category,
                metric_name=b.metric_name,
                subcategory=b.subcategory,
                payload=b.payload(source),
            )
            for b in self._builders.values()
        )


# --------------------------------------------------------------------------- #
# Transform                                                                   #
# --------------------------------------------------------------------------- #


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal | int | float) and not isinstance(value, bool):
        return str(value)
    return str(value).strip()


def _month_number(label: str) -> int | None:
    text = normalize_label(label)
    if text.isdigit():
        number = int(text)
        return number if 1 <= number <= 12 else None
    return _MONTHS.get(text) or _MONTHS.get(text[:3])


class ImportTransform:
    """Schema-driven state machine turning tokenized rows into canonical metrics.

    Example:
        transform = ImportTransform(get_domain_schema("carbon_accounting"), source="esg.csv")
        result = transform.transform_rows(rows)
    """

    def __init__(
        self,
        schema: DomainSchema,
        *,
        source: str,
        id_factory: Callable[[], UUID] = uuid4,
    ) -> None:
        """Initialize the transform.

        Args:
            schema: Import layout for the target domain.
            source: Citation written onto every emitted data point.
            id_factory: Factory for metric identifiers.

        Raises:
            InvalidImportStructure: If ``source`` is blank.
        """
        if not source or not source.strip():
            raise InvalidImportStructure("An import source citation is required.")
        self._schema = schema
        self._source = source.strip()
        self._id_factory = id_factory

    def transform_rows(self, rows: Sequence[Mapping[str, object]]) -> ImportResult:
        """Scan ``rows`` and emit canonical metrics.

        Args:
            rows: Tokenized rows in file order.

        Returns:
            The emitted metrics with the inferred data period.

        Raises:
            InvalidImportStructure: If ``rows`` is not a sequence of mappings.
        """
        if isinstance(rows, str | bytes) or not isinstance(rows, Sequence):
            raise InvalidImportStructure(
                "Import rows must be a sequence of mappings.",
                details={"type": type(rows).__name__},
            )

        acc = _Accumulator()
        section: SectionSpec = self._schema.initial_section
        key_headers: list[str] = []
        headers: list[str] | None = None
        section_unit: str | None = None
        last_year: str | None = None
        skipped = 0

        for index, row in enumerate(rows):
            if not isinstance(row, Mapping):
                raise InvalidImportStructure(
                    "Import row is not a mapping.",
                    details={"row_index": index, "type": type(row).__name__},
                )
            if not key_headers:
                key_headers = [str(k) for k in row]
            cells = [_cell_text(v) for v in row.values()]
            if not any(cells):
                continue
            label = cells[0]
            lead = next((c for c in cells if c), "")

            opened = self._schema.section_opened_by(lead)
            if opened is not None:
                section = opened
                headers = None
                section_unit = split_unit(lead)[1]
                continue

            if section.mode is not SectionMode.LIST and section.is_header_label(label):
                headers = cells
                continue

            active_headers = headers if headers is not None else key_headers
            match section.mode:
                case SectionMode.YEARLY_COLUMNS:
                    skipped += self._read_yearly_row(
                        acc, section, label, cells, active_headers, section_unit
                    )
                    if any(ch.isdigit() for ch in label):
                        last_year = label
                case SectionMode.MONTHLY:
                    skipped += self._read_monthly_row(
                        acc, section, label, cells, active_headers, last_year
                    )
                case SectionMode.LIST:
                    self._read_list_item(acc, section, lead)
                case SectionMode.KEY_VALUE:
                    self._read_summary_row(acc, section, cells)

        metrics = acc.build(self._source, self._id_factory)
        start, end = infer_data_period(metrics)
        return ImportResult(
            metrics=metrics,
            data_period_start=start,
            data_period_end=end,
            rows_read=len(rows),
            skipped_cells=skipped,
        )

    # ------------------------------------------------------------------
    # Section readers
    # ------------------------------------------------------------------

    def _read_yearly_row(
        self,
        acc: _Accumulator,
        section: SectionSpec,
        year: str,
        cells: Sequence[str],
        headers: Sequence[str],
        section_unit: str | None,
    ) -> int:
        """Append one data point per imported column; return unparseable cell count."""
        if not any(ch.isdigit() for ch in year):
            return 0
        skipped = 0
        for position in range(1, min(len(headers), len(cells))):
            raw = cells[position]
            if not raw:
                continue
            resolved = section.resolve_column(headers[position])
            if resolved is None:
                continue
            metric_name, unit = resolved
            value = parse_numeric(raw)
            if value is None:
                skipped += 1
            builder = acc.get(
                section.category, metric_name, MetricDataType.YEARLY_SERIES, section.name
            )
            if builder is None:
                continue
            builder.points.append(
                YearlyDataPoint(
                    year=year,
                    numeric_value=value,
                    source=self._source,
                    unit=unit or section_unit,
                    raw_value=raw,
                )
            )
        return skipped

    def _read_monthly_row(
        self,
        acc: _Accumulator,
        section: SectionSpec,
        month_label: str,
        cells: Sequence[str],
        headers: Sequence[str],
        last_year: str | None,
    ) -> int:
        """Record one monthly sample; return unparseable cell count."""
        month_number = _month_number(month_label)
        if month_number is None:
            return 0

        year_position = next(
            (
                i
                for i, h in enumerate(headers)
                if i > 0 and normalize_label(split_unit(h)[0]) in _YEAR_COLUMN_LABELS
            ),
            None,
        )
        year = last_year
        if year_position is not None and year_position < len(cells) and cells[year_position]:
            year = cells[year_position]
        if not year:
            return 0

        skipped = 0
        values: dict[str, Decimal | None] = {}
        for position in range(1, min(len(headers), len(cells))):
            if position == year_position:
                continue
            name, _unit = split_unit(headers[position])
            if not name:
                continue
            raw = cells[position]
            value = parse_numeric(raw)
            if raw and value is None:
                skipped += 1
            values[name] = value

        builder = acc.get(
            section.category,
            section.target_metric_name,
            MetricDataType.YEARLY_SERIES,
            section.name,
        )
        if builder is None:
            return skipped
        by_month = builder.monthly.setdefault(year, {})
        by_month[month_number] = MonthlySample(
            month=month_label, month_number=month_number, values=values
        )
        return skipped

    def _read_list_item(self, acc: _Accumulator, section: SectionSpec, text: str) -> None:
        item = text
        for prefix in section.bullet_prefixes:
            if item.startswith(prefix):
                item = item[len(prefix) :].strip()
                break
        if not item:
            return

        builder = acc.get(
            section.category, section.target_metric_name, MetricDataType.LIST, section.name
        )
        if builder is not None:
            builder.items.append(ListItem(text=item))

        for rule in section.extraction_rules:
            found = rule.pattern.search(item)
            if found is None:
                continue
            value = parse_numeric(found.group(1))
            if value is None:
                continue
            single = acc.get(
                rule.category or section.category,
                rule.metric_name,
                MetricDataType.SINGLE_VALUE,
                section.name,
            )
            if single is not None and single.single is None:
                single.single = SingleValue(
                    value=value, unit=rule.unit, source=self._source, notes=item
                )

    def _read_summary_row(
        self, acc: _Accumulator, section: SectionSpec, cells: Sequence[str]
    ) -> None:
        key = cells[0]
        if not key:
            return

        def cell(position: int) -> str | None:
            return (cells[position] or None) if position < len(cells) else None

        builder = acc.get(section.category, key, MetricDataType.SUMMARY, section.name)
        if builder is not None:
            builder.summary = Summary(
                key=key, latest_value=cell(1), trend=cell(2), notes=cell(3)
            )
