# tests/unit/application/test_version_store.py
from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable
from decimal import Decimal
from uuid import uuid4

import pytest
from builders import list_metric, series_metric, single_metric
from fakes import InMemoryDatabase, InMemoryUnitOfWork, StepClock

from ecometrics_api.application.resilience.retry import RetryPolicy
from ecometrics_api.application.services.version_store import VersionStore
from ecometrics_api.domain.entities.metric_record import Metric, SingleValue, YearlySeries
from ecometrics_api.domain.enums.metric_record import (
    ImportSource,
    MetricDomain,
    ValidationStatus,
    VerificationStatus,
)
from ecometrics_api.domain.exceptions.metric_records import (
    InvalidImportStructure,
    MetricRecordNotFound,
    TransactionConflict,
    UnsupportedImportType,
)

CARBON = MetricDomain.CARBON_ACCOUNTING

_CARBON_ROWS = [
    {"A": "Emissions and Sequestration", "B": "", "C": ""},
    {"A": "Year", "B": "Scope 1 (tCO2e)", "C": "SOC (tC/ha)"},
    {"A": "2021", "B": "1,200", "C": "40"},
    {"A": "2022", "B": "1,150", "C": "41"},
    {"A": "2023", "B": "1,100", "C": "43"},
]


class RecordingObserver:
    def __init__(self) -> None:
        self.finished: list[tuple[str, MetricDomain, str]] = []
        self.retried: list[tuple[str, MetricDomain]] = []

    def operation_finished(self, operation: str, domain: MetricDomain, outcome: str) -> None:
        self.finished.append((operation, domain, outcome))

    def conflict_retried(self, operation: str, domain: MetricDomain) -> None:
        self.retried.append((operation, domain))


def _snapshot() -> list[Metric]:
    return [
        series_metric("Scope 1 Emissions", {"2021": 1200, "2022": 1150}),
        single_metric("Employees Trained", 40),
    ]


def _shape(metrics: tuple[Metric, ...]) -> list[tuple[str, str, object, bool]]:
    return [(m.category, m.metric_name, m.payload, m.is_active) for m in metrics]


# ---------------------------------------------------------------------------
# Imports and the version chain
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_first_import_creates_version_one_with_period(
    store: VersionStore, db: InMemoryDatabase
) -> None:
    record = await store.import_rows("acme", CARBON, _CARBON_ROWS, "u-1", file_name="carbon.csv")

    assert record.version == 1
    assert record.is_active
    assert record.previous_version_id is None
    assert record.validation_status is ValidationStatus.NOT_VALIDATED
    assert [m.metric_name for m in record.metrics] == ["Scope 1 Emissions", "Soil Organic Carbon"]

    meta = record.import_metadata
    assert meta.source is ImportSource.CSV
    assert meta.original_file_name == "carbon.csv"
    assert (meta.data_period_start, meta.data_period_end) == ("2021", "2023")
    assert meta.batch_id is not None and meta.batch_id.startswith("csv_import_")

    assert record.created_by == "u-1"
    assert all(m.created_by == "u-1" for m in record.metrics)
    series = record.metrics[0].payload
    assert isinstance(series, YearlySeries)
    assert all(p.added_by == "u-1" for p in series.points)
    assert db.locked_keys == [("acme", CARBON)]


@pytest.mark.anyio
async def test_second_import_supersedes_and_links_the_chain(
    store: VersionStore, db: InMemoryDatabase
) -> None:
    v1 = await store.import_rows("acme", CARBON, _CARBON_ROWS, "u-1", file_name="carbon.csv")
    v2 = await store.import_snapshot("acme", CARBON, _snapshot(), "u-2")

    assert v2.version == 2
    assert v2.previous_version_id == v1.id
    assert (v2.import_metadata.data_period_start, v2.import_metadata.data_period_end) == (
        "2021",
        "2022",
    )

    versions = await store.list_versions("acme", CARBON)
    assert [(r.version, r.is_active) for r in versions] == [(2, True), (1, False)]
    assert versions[1].last_updated_by == "u-2"
    assert (await store.get_active_record("acme", CARBON)) == v2
    assert len(db.active_for("acme", CARBON)) == 1


@pytest.mark.anyio
async def test_chains_are_scoped_by_company_and_domain(store: VersionStore) -> None:
    await store.import_snapshot("acme", CARBON, _snapshot(), "u-1")
    other_company = await store.import_snapshot("globex", CARBON, _snapshot(), "u-1")
    other_domain = await store.import_snapshot(
        "acme", MetricDomain.CROP_YIELD, _snapshot(), "u-1"
    )

    assert other_company.version == 1
    assert other_domain.version == 1
    assert (await store.get_active_record("acme", CARBON)).version == 1  # type: ignore[union-attr]


@pytest.mark.anyio
async def test_import_json_body(store: VersionStore) -> None:
    body = {
        "metrics": [
            {
                "category": "environmental",
                "metric_name": "Scope 3 Emissions",
                "yearly_data": [{"year": "2020", "value": "300"}, {"year": "2022", "value": "250"}],
            }
        ]
    }

    record = await store.import_json("acme", "carbon_accounting", body, "u-1")

    meta = record.import_metadata
    assert meta.source is ImportSource.MANUAL
    assert meta.original_file_name == "manual_import.json"
    assert (meta.data_period_start, meta.data_period_end) == ("2020", "2022")
    series = record.metrics[0].payload
    assert isinstance(series, YearlySeries)
    assert series.points[0].source == "manual_import.json"


@pytest.mark.anyio
async def test_create_record_refuses_an_existing_chain(
    store: VersionStore, db: InMemoryDatabase
) -> None:
    created = await store.create_record("acme", CARBON, _snapshot(), "u-1")

    with pytest.raises(TransactionConflict):
        await store.create_record("acme", CARBON, _snapshot(), "u-1")

    assert created.version == 1
    assert len(db.records) == 1


# ---------------------------------------------------------------------------
# Invalid input leaves no trace
# ---------------------------------------------------------------------------


@pytest.mark.anyio
@pytest.mark.parametrize("metrics", [[], None, "Scope 1", [object()]])
async def test_malformed_snapshots_write_nothing(
    store: VersionStore, db: InMemoryDatabase, metrics: object
) -> None:
    with pytest.raises(InvalidImportStructure) as info:
        await store.import_snapshot("acme", CARBON, metrics, "u-1")  # type: ignore[arg-type]

    assert info.value.code == "INVALID_STRUCTURE"
    assert db.records == {}
    assert db.commits == 0


@pytest.mark.anyio
async def test_duplicate_metric_identity_is_rejected(
    store: VersionStore, db: InMemoryDatabase
) -> None:
    metrics = [series_metric("SOC", {"2022": 1}), series_metric("SOC", {"2023": 2})]

    with pytest.raises(InvalidImportStructure):
        await store.import_snapshot("acme", CARBON, metrics, "u-1")

    assert db.records == {}


@pytest.mark.anyio
async def test_rows_without_metrics_and_bad_bodies_write_nothing(
    store: VersionStore, db: InMemoryDatabase
) -> None:
    with pytest.raises(InvalidImportStructure):
        await store.import_rows("acme", CARBON, [], "u-1", file_name="empty.csv")
    with pytest.raises(InvalidImportStructure):
        await store.import_json("acme", CARBON, {"metrics": []}, "u-1")
    with pytest.raises(InvalidImportStructure):
        await store.import_snapshot("acme", CARBON, _snapshot(), "   ")

    assert db.records == {}


@pytest.mark.anyio
async def test_unsupported_types_and_domains(store: VersionStore) -> None:
    with pytest.raises(UnsupportedImportType):
        await store.import_rows("acme", CARBON, _CARBON_ROWS, "u-1", file_name="carbon.txt")
    with pytest.raises(UnsupportedImportType):
        await store.import_snapshot("acme", "water", _snapshot(), "u-1")


# ---------------------------------------------------------------------------
# In-place edits
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_upsert_twice_keeps_identity_and_creator(store: VersionStore) -> None:
    first = await store.upsert_metric("acme", CARBON, single_metric("Employees", 10), "alice")
    second = await store.upsert_metric("acme", CARBON, single_metric("Employees", 12), "bob")

    assert first.version == second.version == 1
    (metric,) = second.metrics
    assert metric.id == first.metrics[0].id
    assert metric.created_by == "alice"
    assert metric.last_updated_by == "bob"
    assert isinstance(metric.payload, SingleValue)
    assert metric.payload.value == Decimal(12)
    assert second.id == first.id


@pytest.mark.anyio
async def test_upsert_accepts_a_json_body_and_appends(store: VersionStore) -> None:
    await store.import_snapshot("acme", CARBON, _snapshot(), "u-1")

    record = await store.upsert_metric(
        "acme",
        CARBON,
        {
            "category": "governance",
            "metric_name": "Compliance Programs",
            "data_type": "list",
            "list_data": ["ISO 14001"],
        },
        "u-2",
    )

    assert record.version == 1
    assert [m.metric_name for m in record.metrics] == [
        "Scope 1 Emissions",
        "Employees Trained",
        "Compliance Programs",
    ]
    assert record.metrics[-1].created_by == "u-2"


@pytest.mark.anyio
async def test_concurrent_upserts_of_different_metrics_both_land(
    store: VersionStore, db: InMemoryDatabase
) -> None:
    await asyncio.gather(
        store.upsert_metric("acme", CARBON, single_metric("A", 1), "alice"),
        store.upsert_metric("acme", CARBON, single_metric("B", 2), "bob"),
    )

    (active,) = db.active_for("acme", CARBON)
    assert {m.metric_name for m in active.metrics} == {"A", "B"}
    assert active.version == 1


@pytest.mark.anyio
async def test_concurrent_imports_leave_exactly_one_active(
    store: VersionStore, db: InMemoryDatabase
) -> None:
    await asyncio.gather(
        *(store.import_snapshot("acme", CARBON, _snapshot(), f"u-{i}") for i in range(5))
    )

    versions = await store.list_versions("acme", CARBON)
    assert sorted(r.version for r in versions) == [1, 2, 3, 4, 5]
    (active,) = db.active_for("acme", CARBON)
    assert active.version == 5
    by_version = {r.version: r for r in versions}
    for version in range(2, 6):
        assert by_version[version].previous_version_id == by_version[version - 1].id


@pytest.mark.anyio
@pytest.mark.parametrize("seed", [3, 17, 2024])
async def test_random_concurrent_writes_keep_the_chain_intact(
    store: VersionStore, db: InMemoryDatabase, seed: int
) -> None:
    rng = random.Random(seed)
    keys = [("acme", CARBON), ("acme", MetricDomain.CROP_YIELD)]
    first = {key: await store.import_snapshot(*key, _snapshot(), "seed") for key in keys}

    def operation(i: int) -> Awaitable[object]:
        key = rng.choice(keys)
        company, domain = key
        actor = f"u-{i}"
        match rng.choice(("import", "upsert", "delete", "restore")):
            case "import":
                return store.import_snapshot(company, domain, [single_metric(f"M{i}", i)], actor)
            case "upsert":
                metric = single_metric(rng.choice("ABC"), i)
                return store.upsert_metric(company, domain, metric, actor)
            case "delete":
                target = rng.choice(first[key].metrics)
                return store.delete_metric(company, domain, target.id, actor)
            case _:
                return store.restore_version(company, domain, first[key].id, actor)

    outcomes = await asyncio.gather(*(operation(i) for i in range(40)), return_exceptions=True)

    # Deletes may target a metric that a concurrent import already replaced.
    errors = [o for o in outcomes if isinstance(o, BaseException)]
    assert all(isinstance(e, MetricRecordNotFound) for e in errors)
    for company, domain in keys:
        assert len(db.active_for(company, domain)) == 1
        versions = await store.list_versions(company, domain)
        assert sorted(r.version for r in versions) == list(range(1, len(versions) + 1))
        by_id = {r.id: r for r in versions}
        for record in versions:
            current = record
            while current.previous_version_id is not None:
                previous = by_id[current.previous_version_id]
                assert previous.version == current.version - 1
                current = previous
            assert current.version == 1


@pytest.mark.anyio
async def test_delete_metric_soft_deletes_once(store: VersionStore) -> None:
    record = await store.import_snapshot("acme", CARBON, _snapshot(), "u-1")
    target = record.metrics[1]

    updated = await store.delete_metric("acme", CARBON, target.id, "u-2")

    assert updated.version == 1
    deleted = updated.metric_by_id(target.id)
    assert deleted is not None and not deleted.is_active
    assert deleted.last_updated_by == "u-2"
    assert [m.metric_name for m in updated.active_metrics] == ["Scope 1 Emissions"]
    assert await store.get_metrics_by_category("acme", CARBON, "social") == []

    with pytest.raises(MetricRecordNotFound):
        await store.delete_metric("acme", CARBON, target.id, "u-2")
    with pytest.raises(MetricRecordNotFound):
        await store.delete_metric("acme", CARBON, uuid4(), "u-2")


@pytest.mark.anyio
async def test_delete_without_active_record(store: VersionStore, db: InMemoryDatabase) -> None:
    with pytest.raises(MetricRecordNotFound) as info:
        await store.delete_metric("acme", CARBON, uuid4(), "u-1")

    assert info.value.code == "NOT_FOUND"
    assert db.rollbacks == 1
    assert db.commits == 0


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_restore_copies_metrics_into_a_new_version(store: VersionStore) -> None:
    v1 = await store.import_snapshot("acme", CARBON, _snapshot(), "u-1")
    await store.delete_metric("acme", CARBON, v1.metrics[0].id, "u-1")
    await store.import_snapshot("acme", CARBON, [list_metric("Other", ["x"])], "u-2")
    original = await store.get_record_by_id("acme", v1.id)

    restored = await store.restore_version("acme", CARBON, v1.id, "u-3")

    assert restored.version == 3
    assert restored.is_active
    assert restored.restored_from_id == v1.id
    assert restored.restore_notes is not None
    assert restored.restore_notes.startswith("Restored from version 1 on ")
    assert _shape(restored.metrics) == _shape(original.metrics)
    assert {m.id for m in restored.metrics}.isdisjoint({m.id for m in original.metrics})

    versions = await store.list_versions("acme", CARBON)
    assert [(r.version, r.is_active) for r in versions] == [(3, True), (2, False), (1, False)]


@pytest.mark.anyio
async def test_restore_of_another_company_version_is_not_found(
    store: VersionStore, db: InMemoryDatabase
) -> None:
    foreign = await store.import_snapshot("globex", CARBON, _snapshot(), "u-1")

    with pytest.raises(MetricRecordNotFound):
        await store.restore_version("acme", CARBON, foreign.id, "u-1")
    with pytest.raises(MetricRecordNotFound):
        await store.restore_version("globex", MetricDomain.CROP_YIELD, foreign.id, "u-1")
    with pytest.raises(MetricRecordNotFound):
        await store.get_record_by_id("acme", foreign.id)

    assert db.active_for("acme", CARBON) == []


# ---------------------------------------------------------------------------
# Validation and verification
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_validation_outcome_is_stored_on_the_active_version(store: VersionStore) -> None:
    metrics = [series_metric("Scope 1 Emissions", {"2022": 1}), single_metric("Employees", None)]
    await store.import_snapshot("acme", CARBON, metrics, "u-1")

    result = await store.validate_active_record("acme", CARBON, "auditor", notes="Q3 review")

    assert result.validation_status is ValidationStatus.FAILED_VALIDATION
    assert result.data_quality_score == 95
    active = await store.get_active_record("acme", CARBON)
    assert active is not None
    assert active.version == 1
    assert active.validation_status is ValidationStatus.FAILED_VALIDATION
    assert active.data_quality_score == 95
    assert active.validation_errors == result.errors
    assert active.validation_notes == "Q3 review"
    assert active.last_updated_by == "auditor"


@pytest.mark.anyio
async def test_validation_requires_an_active_record(store: VersionStore) -> None:
    with pytest.raises(MetricRecordNotFound):
        await store.validate_active_record("acme", CARBON, "auditor")


@pytest.mark.anyio
async def test_verification_status_update(store: VersionStore) -> None:
    await store.import_snapshot("acme", CARBON, _snapshot(), "u-1")

    record = await store.update_verification_status(
        "acme", CARBON, "verified", "auditor", notes="site visit"
    )

    assert record.verification_status is VerificationStatus.VERIFIED
    assert record.verified_by == "auditor"
    assert record.verified_at is not None
    assert record.verification_notes == "site visit"
    with pytest.raises(InvalidImportStructure):
        await store.update_verification_status("acme", CARBON, "approved", "auditor")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_time_series_is_ordered_by_year(store: VersionStore) -> None:
    metric = series_metric("Scope 1 Emissions", {"2023": 3, "FY2021": 1, "2022": 2})
    await store.import_snapshot("acme", CARBON, [metric], "u-1")

    points = await store.get_time_series("acme", CARBON, "Scope 1 Emissions")

    assert [p.year for p in points] == ["FY2021", "2022", "2023"]
    assert await store.get_time_series("acme", CARBON, "Missing") == []
    assert await store.get_time_series("acme", CARBON, "Scope 1 Emissions", "social") == []
    assert await store.get_time_series("globex", CARBON, "Scope 1 Emissions") == []


@pytest.mark.anyio
async def test_reads_on_an_empty_store(store: VersionStore) -> None:
    assert await store.get_active_record("acme", CARBON) is None
    assert await store.list_versions("acme", CARBON) == []
    assert await store.get_metrics_by_category("acme", CARBON, "environmental") == []
    with pytest.raises(MetricRecordNotFound):
        await store.get_record_by_id("acme", uuid4())


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


def _observed_store(db: InMemoryDatabase, observer: RecordingObserver) -> VersionStore:
    return VersionStore(
        lambda: InMemoryUnitOfWork(db),
        retry_policy=RetryPolicy(total=3, base=0.0, cap=0.0, jitter=False),
        observer=observer,
        clock=StepClock(),
    )


@pytest.mark.anyio
async def test_conflicts_are_retried_as_whole_attempts(db: InMemoryDatabase) -> None:
    observer = RecordingObserver()
    store = _observed_store(db, observer)
    db.fail_next_commits = 2

    record = await store.import_snapshot("acme", CARBON, _snapshot(), "u-1")

    assert record.version == 1
    assert len(db.records) == 1
    assert db.rollbacks == 2
    assert observer.retried == [("import_snapshot", CARBON), ("import_snapshot", CARBON)]
    assert observer.finished == [("import_snapshot", CARBON, "success")]


@pytest.mark.anyio
async def test_exhausted_retries_surface_the_conflict(db: InMemoryDatabase) -> None:
    observer = RecordingObserver()
    store = _observed_store(db, observer)
    db.fail_next_commits = 10

    with pytest.raises(TransactionConflict):
        await store.import_snapshot("acme", CARBON, _snapshot(), "u-1")

    assert db.records == {}
    assert len(observer.retried) == 3
    assert observer.finished == [("import_snapshot", CARBON, "conflict")]


@pytest.mark.anyio
async def test_failed_operations_are_reported_as_errors(db: InMemoryDatabase) -> None:
    observer = RecordingObserver()
    store = _observed_store(db, observer)

    with pytest.raises(MetricRecordNotFound):
        await store.delete_metric("acme", CARBON, uuid4(), "u-1")

    assert observer.retried == []
    assert observer.finished == [("delete_metric", CARBON, "error")]
