"""SchemaMigrationManager against the in-process backend, with fake collaborators."""

import asyncio
import json

import pytest
from packaging.version import Version

from qdrantkit.adapters.qdrant_vector_store import QdrantVectorStore
from qdrantkit.domain.migration_builder import MigrationBuilder
from qdrantkit.errors import (
    ChangeApplicationError,
    CollectionNotFoundError,
    ContractMismatchError,
    HistoryRecordError,
    MigrationConflictError,
    MigrationError,
    MigrationNotFoundError,
    MigrationRejectedError,
    MissingDependencyError,
    NotReversibleError,
    RollbackError,
    StorageError,
    UnsupportedChangeError,
)
from qdrantkit.models.collection import CollectionConfig, DistanceMetric, VectorRecord, placeholder_vector
from qdrantkit.models.migration import ChangeAction, Contract, IndexType
from qdrantkit.services.migration_manager import MIGRATION_TYPE, SchemaMigrationManager

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class RecordingValidator:
    """Accepts every contract except the consumer named in ``fail_for``."""

    def __init__(self, fail_for: str | None = None):
        self.fail_for = fail_for
        self.seen: list[str] = []

    async def validate(self, contract):
        self.seen.append(contract.consumer)
        if contract.consumer == self.fail_for:
            raise ContractMismatchError(contract.consumer, "probe", "success", "error")


class FlakyStore(QdrantVectorStore):
    """Real in-process store that fails chosen calls for chosen collections."""

    def __init__(
        self,
        settings,
        fail_create: str | None = None,
        fail_delete: str | None = None,
        fail_store_vector: str | None = None,
        fail_delete_vector: str | None = None,
    ):
        super().__init__(settings)
        self.fail_create = fail_create
        self.fail_delete = fail_delete
        self.fail_store_vector = fail_store_vector
        self.fail_delete_vector = fail_delete_vector

    async def create_collection(self, config):
        if config.name == self.fail_create:
            raise StorageError(f"create {config.name} failed")
        await super().create_collection(config)

    async def delete_collection(self, name):
        if name == self.fail_delete:
            raise StorageError(f"delete {name} failed")
        await super().delete_collection(name)

    async def store_vector(self, collection, record):
        if collection == self.fail_store_vector:
            raise StorageError(f"store in {collection} failed")
        await super().store_vector(collection, record)

    async def delete_vector(self, collection, record_id):
        if collection == self.fail_delete_vector:
            raise StorageError(f"delete from {collection} failed")
        await super().delete_vector(collection, record_id)


def _creates(version: str, *names: str, depends_on: tuple[str, ...] = ()) -> MigrationBuilder:
    builder = MigrationBuilder(version, f"create {', '.join(names)}").depends_on(*depends_on)
    for name in names:
        builder.create_collection(CollectionConfig(name=name, dimension=4))
    return builder


@pytest.fixture
def validator():
    return RecordingValidator()


@pytest.fixture
def manager(store, settings, validator):
    return SchemaMigrationManager(store, settings=settings, contract_validator=validator)


async def _versions(manager) -> list[str]:
    return [str(m.version) for m in await manager.get_migration_history()]


# ---------------------------------------------------------------------------
# Initialize / history
# ---------------------------------------------------------------------------


class TestInitialize:
    @pytest.mark.asyncio
    async def test_creates_history_collection_once(self, manager, store, settings):
        await manager.initialize()
        await manager.initialize()
        info = await store.get_collection_info(settings.migration_collection)
        assert info == CollectionConfig(
            name="_migrations",
            dimension=settings.history_vector_dimension,
            distance_metric=DistanceMetric.cosine,
        )

    @pytest.mark.asyncio
    async def test_empty_history(self, manager):
        await manager.initialize()
        assert await manager.get_migration_history() == []

    @pytest.mark.asyncio
    async def test_unreadable_records_are_skipped(self, manager, store, settings):
        await manager.initialize()
        await manager.apply_migration(_creates("1.0.0", "docs").build())
        await store.store_vector(
            settings.migration_collection,
            VectorRecord(
                id="garbage",
                embedding=placeholder_vector(settings.history_vector_dimension),
                metadata={"migration": {"version": "not-a-version"}, "type": MIGRATION_TYPE},
            ),
        )
        assert await _versions(manager) == ["1.0.0"]

    @pytest.mark.asyncio
    async def test_get_migration(self, manager):
        await manager.initialize()
        migration = _creates("1.0.0", "docs").author("ops").build()
        await manager.apply_migration(migration)
        assert await manager.get_migration("1.0.0") == migration
        assert await manager.get_migration(Version("1.0.0")) == migration
        with pytest.raises(MigrationNotFoundError):
            await manager.get_migration("9.9.9")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [2, 3, 5])
    async def test_history_reads_every_page(self, store, settings, validator, count):
        small = settings.model_copy(update={"history_scan_limit": 2})
        manager = SchemaMigrationManager(store, settings=small, contract_validator=validator)
        await manager.initialize()
        versions = [f"1.{minor}.0" for minor in range(count)]
        for minor, version in enumerate(versions):
            await manager.apply_migration(_creates(version, f"c{minor}").build())
        assert await _versions(manager) == versions

    @pytest.mark.asyncio
    async def test_gates_see_records_beyond_first_page(self, store, settings, validator):
        small = settings.model_copy(update={"history_scan_limit": 1})
        manager = SchemaMigrationManager(store, settings=small, contract_validator=validator)
        await manager.initialize()
        for minor in range(3):
            await manager.apply_migration(_creates(f"1.{minor}.0", f"c{minor}").build())

        await manager.apply_migration(_creates("2.0.0", "d", depends_on=("1.0.0",)).build())
        with pytest.raises(MigrationConflictError):
            await manager.apply_migration(_creates("1.0.0", "again").build())

    @pytest.mark.asyncio
    async def test_unreadable_record_fails_lookup(self, manager, store, settings):
        await manager.initialize()
        await store.store_vector(
            settings.migration_collection,
            VectorRecord(
                id="2.0.0",
                embedding=placeholder_vector(settings.history_vector_dimension),
                metadata={"migration": {"version": "2.0.0"}, "type": MIGRATION_TYPE},
            ),
        )
        with pytest.raises(StorageError) as exc:
            await manager.rollback_migration("2.0.0")
        assert not isinstance(exc.value, MigrationNotFoundError)


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------


class TestApply:
    @pytest.mark.asyncio
    async def test_docs_then_analytics(self, manager, store):
        await manager.initialize()
        v1 = (
            MigrationBuilder("1.0.0", "docs")
            .create_collection(CollectionConfig(name="docs", dimension=768, distance_metric=DistanceMetric.cosine))
            .build()
        )
        v2 = (
            MigrationBuilder("1.1.0", "analytics")
            .depends_on("1.0.0")
            .create_collection(
                CollectionConfig(name="analytics", dimension=512, distance_metric=DistanceMetric.dot_product)
            )
            .build()
        )

        r1 = await manager.apply_migration(v1)
        r2 = await manager.apply_migration(v2)

        assert r1.version == Version("1.0.0")
        assert r1.contract_validation_passed is True
        assert [(c.action, c.collection) for c in r2.applied_changes] == [
            (ChangeAction.collection_created, "analytics")
        ]
        assert await _versions(manager) == ["1.0.0", "1.1.0"]
        assert (await store.get_collection_info("analytics")).distance_metric == DistanceMetric.dot_product

    @pytest.mark.asyncio
    async def test_history_sorted_by_semantic_version(self, manager):
        await manager.initialize()
        for version, name in [("1.10.0", "c"), ("1.2.0", "b"), ("0.9.0", "a")]:
            await manager.apply_migration(_creates(version, name).build())
        assert await _versions(manager) == ["0.9.0", "1.2.0", "1.10.0"]

    @pytest.mark.asyncio
    async def test_missing_dependency_mutates_nothing(self, manager, store, settings):
        await manager.initialize()
        migration = _creates("1.1.0", "analytics", depends_on=("1.0.0",)).build()
        with pytest.raises(MissingDependencyError) as exc:
            await manager.apply_migration(migration)
        assert exc.value.dependency == "1.0.0"
        assert await store.list_collections() == [settings.migration_collection]
        assert await manager.get_migration_history() == []

    @pytest.mark.asyncio
    async def test_duplicate_version_rejected(self, manager, store):
        await manager.initialize()
        await manager.apply_migration(_creates("1.0.0", "docs").build())
        with pytest.raises(MigrationConflictError):
            await manager.apply_migration(_creates("1.0.0", "other").build())
        assert not await store.collection_exists("other")
        assert await _versions(manager) == ["1.0.0"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "add_change",
        [
            lambda b: b.update_collection("docs", dimension_change=1024),
            lambda b: b.rename_collection("docs", "documents"),
        ],
        ids=["update", "rename"],
    )
    async def test_update_and_rename_rejected_before_any_change(self, manager, store, add_change):
        await manager.initialize()
        builder = _creates("1.0.0", "docs")
        add_change(builder)
        with pytest.raises(UnsupportedChangeError) as exc:
            await manager.apply_migration(builder.build())
        assert isinstance(exc.value, NotImplementedError)
        assert isinstance(exc.value, MigrationRejectedError)
        assert not await store.collection_exists("docs")
        assert await manager.get_migration_history() == []

    @pytest.mark.asyncio
    async def test_index_changes_report_results(self, manager):
        await manager.initialize()
        migration = (
            _creates("1.0.0", "docs")
            .add_index("docs", "year", IndexType.numeric)
            .remove_index("docs", "draft")
            .build()
        )
        result = await manager.apply_migration(migration)
        actions = [c.action for c in result.applied_changes]
        assert actions == [ChangeAction.collection_created, ChangeAction.index_added, ChangeAction.index_removed]
        assert result.applied_changes[1].field == "year"
        assert result.applied_changes[1].index_type == IndexType.numeric

    @pytest.mark.asyncio
    async def test_delete_collection_change(self, manager, store):
        await manager.initialize()
        await manager.apply_migration(_creates("1.0.0", "old").build())
        result = await manager.apply_migration(
            MigrationBuilder("2.0.0", "drop old").delete_collection("old").build()
        )
        assert result.applied_changes[0].action == ChangeAction.collection_deleted
        assert not await store.collection_exists("old")

    @pytest.mark.asyncio
    async def test_partial_application_is_reported(self, settings, validator):
        store = FlakyStore(settings, fail_create="broken")
        manager = SchemaMigrationManager(store, settings=settings, contract_validator=validator)
        await manager.initialize()
        migration = _creates("1.0.0", "ok", "broken", "never").build()

        with pytest.raises(ChangeApplicationError) as exc:
            await manager.apply_migration(migration)

        err = exc.value
        assert err.partially_applied
        assert [c.collection for c in err.applied] == ["ok"]
        assert err.failed_change.config.name == "broken"
        assert isinstance(err.cause, StorageError)
        assert await store.collection_exists("ok")
        assert not await store.collection_exists("never")
        assert await manager.get_migration_history() == []

    @pytest.mark.asyncio
    async def test_history_write_failure_reports_applied_changes(self, settings, validator):
        store = FlakyStore(settings, fail_store_vector=settings.migration_collection)
        manager = SchemaMigrationManager(store, settings=settings, contract_validator=validator)
        await manager.initialize()

        with pytest.raises(HistoryRecordError) as exc:
            await manager.apply_migration(_creates("1.0.0", "docs", "analytics").build())

        err = exc.value
        assert isinstance(err, MigrationError)
        assert not isinstance(err, (StorageError, MigrationRejectedError))
        assert err.operation == "record"
        assert err.partially_applied
        assert [c.collection for c in err.changes] == ["docs", "analytics"]
        assert isinstance(err.cause, StorageError)
        assert await store.collection_exists("docs")
        assert await manager.get_migration_history() == []

    @pytest.mark.asyncio
    async def test_concurrent_applies_of_same_version(self, manager):
        await manager.initialize()
        results = await asyncio.gather(
            manager.apply_migration(_creates("1.0.0", "a").build()),
            manager.apply_migration(_creates("1.0.0", "b").build()),
            return_exceptions=True,
        )
        conflicts = [r for r in results if isinstance(r, MigrationConflictError)]
        assert len(conflicts) == 1
        assert await _versions(manager) == ["1.0.0"]


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


class TestContractGate:
    @pytest.mark.asyncio
    async def test_every_contract_validated(self, manager, validator):
        await manager.initialize()
        migration = (
            _creates("1.0.0", "docs")
            .add_contract(Contract(consumer="search-api"))
            .add_contract(Contract(consumer="indexer"))
            .build()
        )
        await manager.apply_migration(migration)
        assert validator.seen == ["search-api", "indexer"]

    @pytest.mark.asyncio
    async def test_mismatch_blocks_migration(self, store, settings):
        manager = SchemaMigrationManager(
            store, settings=settings, contract_validator=RecordingValidator(fail_for="indexer")
        )
        await manager.initialize()
        migration = _creates("1.0.0", "docs").add_contract(Contract(consumer="indexer")).build()
        with pytest.raises(ContractMismatchError) as exc:
            await manager.apply_migration(migration)
        assert exc.value.consumer == "indexer"
        assert not await store.collection_exists("docs")
        assert await manager.get_migration_history() == []

    @pytest.mark.asyncio
    async def test_pact_files_written_when_enabled(self, store, settings, validator, tmp_path):
        settings = settings.model_copy(update={"write_pact_files": True})
        manager = SchemaMigrationManager(store, settings=settings, contract_validator=validator)
        await manager.initialize()
        migration = (
            _creates("1.0.0", "docs")
            .add_contract(Contract(consumer="search-api", contract_path="contracts/search.json"))
            .build()
        )
        await manager.apply_migration(migration)
        pact = json.loads((tmp_path / "pacts" / "search.json").read_text())
        assert pact["consumer"] == {"name": "search-api"}


# ---------------------------------------------------------------------------
# Rollback
# ---------------------------------------------------------------------------


class TestRollback:
    @pytest.mark.asyncio
    async def test_removes_collections_and_record(self, manager, store):
        await manager.initialize()
        await manager.apply_migration(_creates("1.0.0", "docs", "logs").build())

        await manager.rollback_migration("1.0.0")

        assert not await store.collection_exists("docs")
        assert not await store.collection_exists("logs")
        assert await manager.get_migration_history() == []
        with pytest.raises(MigrationNotFoundError):
            await manager.rollback_migration("1.0.0")

    @pytest.mark.asyncio
    async def test_unknown_version(self, manager):
        await manager.initialize()
        with pytest.raises(MigrationNotFoundError) as exc:
            await manager.rollback_migration("2.0.0")
        assert exc.value.version == "2.0.0"

    @pytest.mark.asyncio
    async def test_delete_collection_is_not_reversible(self, manager, store):
        await manager.initialize()
        await manager.apply_migration(_creates("1.0.0", "old", "keep").build())
        await manager.apply_migration(
            MigrationBuilder("2.0.0", "drop")
            .create_collection(CollectionConfig(name="new", dimension=4))
            .delete_collection("old")
            .build()
        )

        with pytest.raises(NotReversibleError):
            await manager.rollback_migration("2.0.0")

        assert await store.collection_exists("new")
        assert await _versions(manager) == ["1.0.0", "2.0.0"]

    @pytest.mark.asyncio
    async def test_marked_non_reversible(self, manager, store):
        await manager.initialize()
        await manager.apply_migration(_creates("1.0.0", "docs").non_reversible().build())
        with pytest.raises(NotReversibleError):
            await manager.rollback_migration("1.0.0")
        assert await store.collection_exists("docs")
        assert await _versions(manager) == ["1.0.0"]

    @pytest.mark.asyncio
    async def test_already_missing_collection_is_tolerated(self, manager, store):
        await manager.initialize()
        await manager.apply_migration(_creates("1.0.0", "docs").build())
        await store.delete_collection("docs")

        await manager.rollback_migration("1.0.0")

        assert await manager.get_migration_history() == []

    @pytest.mark.asyncio
    async def test_failure_part_way_reports_reverted(self, settings, validator):
        store = FlakyStore(settings, fail_delete="first")
        manager = SchemaMigrationManager(store, settings=settings, contract_validator=validator)
        await manager.initialize()
        await manager.apply_migration(_creates("1.0.0", "first", "second").build())

        with pytest.raises(RollbackError) as exc:
            await manager.rollback_migration("1.0.0")

        # Reverse order: "second" goes first and succeeds.
        assert [c.config.name for c in exc.value.reverted] == ["second"]
        assert exc.value.failed_change.config.name == "first"
        assert not await store.collection_exists("second")
        assert await _versions(manager) == ["1.0.0"]

    @pytest.mark.asyncio
    async def test_history_removal_failure_reports_reverted(self, settings, validator):
        store = FlakyStore(settings, fail_delete_vector=settings.migration_collection)
        manager = SchemaMigrationManager(store, settings=settings, contract_validator=validator)
        await manager.initialize()
        await manager.apply_migration(_creates("1.0.0", "first", "second").build())

        with pytest.raises(HistoryRecordError) as exc:
            await manager.rollback_migration("1.0.0")

        assert exc.value.operation == "remove"
        assert [c.config.name for c in exc.value.changes] == ["second", "first"]
        assert not await store.collection_exists("first")
        assert await _versions(manager) == ["1.0.0"]


@pytest.mark.asyncio
async def test_apply_before_initialize_fails(manager):
    with pytest.raises(CollectionNotFoundError):
        await manager.apply_migration(_creates("1.0.0", "docs").build())
