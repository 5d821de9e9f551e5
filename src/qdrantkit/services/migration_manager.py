"""SchemaMigrationManager: gated apply, history and rollback of collection schema changes.

Apply runs these gates in order, stopping at the first failure:

1. contracts      - every contract passes the ContractValidator
2. dependencies   - every dependency version is already in history
3. history        - the version itself is not in history yet
4. changes        - collection changes applied in declared order
5. record         - the serialized migration is stored in history

Gates 1-3 (and the unsupported-change preflight) raise a
``MigrationRejectedError`` subclass with nothing mutated. A backend failure in
step 4 raises ``ChangeApplicationError`` carrying the changes already applied,
and one in step 5 raises ``HistoryRecordError`` carrying all of them. There is
no automatic compensation.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

from packaging.version import Version
from pydantic import ValidationError

from ..config.runtime import RuntimeSettings, get_settings
from ..domain.filter_compiler import compile_filter
from ..errors import (
    ChangeApplicationError,
    CollectionAlreadyExistsError,
    CollectionNotFoundError,
    HistoryRecordError,
    MigrationConflictError,
    MigrationNotFoundError,
    MigrationRejectedError,
    MissingDependencyError,
    NotReversibleError,
    RollbackError,
    StorageError,
    UnsupportedChangeError,
)
from ..models.collection import (
    CollectionConfig,
    DistanceMetric,
    SearchParams,
    VectorRecord,
    placeholder_vector,
)
from ..models.migration import (
    AddIndex,
    ChangeAction,
    ChangeResult,
    CollectionChange,
    CreateCollection,
    DeleteCollection,
    MigrationResult,
    RemoveIndex,
    RenameCollection,
    SchemaMigration,
    UpdateCollection,
    parse_version,
)
from ..observability import get_logger
from ..ports.contracts import ContractValidator
from ..ports.vector_store import VectorStorePort
from .contract_validator import BackendContractValidator, write_pact

logger = get_logger("migrations")

MIGRATION_TYPE = "schema_migration"


class SchemaMigrationManager:
    """Applies, records and rolls back schema migrations against one vector store."""

    def __init__(
        self,
        store: VectorStorePort,
        settings: RuntimeSettings | None = None,
        contract_validator: ContractValidator | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._contracts = contract_validator or BackendContractValidator(store)
        self._lock = asyncio.Lock()

    @property
    def history_collection(self) -> str:
        return self._settings.migration_collection

    @contextlib.asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        if not self._settings.serialize_migrations:
            yield
            return
        async with self._lock:
            yield

    # ------------------------------------------------------------------
    # History collection
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the history collection if missing. Safe to call repeatedly."""
        config = CollectionConfig(
            name=self.history_collection,
            dimension=self._settings.history_vector_dimension,
            distance_metric=DistanceMetric.cosine,
        )
        try:
            await self._store.create_collection(config)
        except CollectionAlreadyExistsError:
            logger.debug("history_collection_exists", extra={"collection": config.name})
            return
        logger.info("history_collection_created", extra={"collection": config.name})

    async def get_migration_history(self) -> list[SchemaMigration]:
        """All recorded migrations, ascending by version.

        Reads the history collection in pages of ``history_scan_limit`` until a
        short page. Records that no longer deserialize are logged and left out.
        """
        page_size = self._settings.history_scan_limit
        query_filter = compile_filter({"type": MIGRATION_TYPE})
        query_vector = placeholder_vector(self._settings.history_vector_dimension)
        history: list[SchemaMigration] = []
        seen: set[str] = set()
        offset = 0
        while True:
            hits = await self._store.search(
                self.history_collection,
                query_vector,
                SearchParams(limit=page_size, offset=offset, query_filter=query_filter),
            )
            for hit in hits:
                if hit.record.id in seen:
                    continue
                seen.add(hit.record.id)
                payload = hit.record.metadata.get("migration")
                try:
                    history.append(SchemaMigration.from_payload(payload))
                except ValidationError as e:
                    logger.warning(
                        "history_record_unreadable",
                        extra={"record_id": hit.record.id, "error": str(e)},
                    )
            if len(hits) < page_size:
                break
            offset += page_size
        history.sort(key=lambda m: m.version)
        return history

    async def get_migration(self, version: str | Version) -> SchemaMigration:
        """Return the recorded migration for ``version``.

        Raises:
            MigrationNotFoundError: no record for that version.
            StorageError: the record exists but no longer deserializes.
        """
        key = str(parse_version(version))
        record = await self._store.get_vector(self.history_collection, key)
        if record is None or "migration" not in record.metadata:
            raise MigrationNotFoundError(key)
        try:
            return SchemaMigration.from_payload(record.metadata["migration"])
        except ValidationError as e:
            raise StorageError(f"history record for {key} is unreadable: {e}") from e

    async def _record(self, migration: SchemaMigration) -> None:
        await self._store.store_vector(
            self.history_collection,
            VectorRecord(
                id=migration.version_key,
                embedding=placeholder_vector(self._settings.history_vector_dimension),
                metadata={"migration": migration.to_payload(), "type": MIGRATION_TYPE},
            ),
        )

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    async def apply_migration(self, migration: SchemaMigration) -> MigrationResult:
        """Validate and apply ``migration``, then record it in history."""
        version = migration.version_key
        async with self._exclusive():
            logger.info("migration_apply_start", extra={"version": version, "migration_name": migration.name})
            try:
                await self._run_gates(migration)
            except MigrationRejectedError as e:
                logger.warning("migration_rejected", extra={"version": version, "gate": e.gate, "error": str(e)})
                raise

            applied: list[ChangeResult] = []
            for change in migration.collection_changes:
                try:
                    applied.append(await self._apply_change(change))
                except StorageError as e:
                    logger.error(
                        "migration_change_failed",
                        extra={"version": version, "change": change.kind, "applied": len(applied), "error": str(e)},
                    )
                    raise ChangeApplicationError(version, applied, change, e) from e

            # 5. History
            try:
                await self._record(migration)
            except StorageError as e:
                logger.error(
                    "migration_record_failed",
                    extra={"version": version, "applied": len(applied), "error": str(e)},
                )
                raise HistoryRecordError(version, "record", applied, e) from e
            logger.info("migration_applied", extra={"version": version, "changes": len(applied)})
            return MigrationResult(
                version=migration.version,
                applied_changes=applied,
                contract_validation_passed=True,
            )

    async def _run_gates(self, migration: SchemaMigration) -> None:
        version = migration.version_key

        # 1. Contracts
        for contract in migration.contracts:
            await self._contracts.validate(contract)
        if migration.contracts:
            logger.info("migration_contracts_passed", extra={"version": version, "contracts": len(migration.contracts)})
            if self._settings.write_pact_files:
                for contract in migration.contracts:
                    path = write_pact(contract, self._settings.pact_dir)
                    logger.info("pact_written", extra={"version": version, "path": str(path)})

        # 2. Dependencies, 3. version conflict
        applied_versions = {m.version for m in await self.get_migration_history()}
        for dependency in migration.metadata.dependencies:
            if dependency not in applied_versions:
                raise MissingDependencyError(version, str(dependency))
        if migration.version in applied_versions:
            raise MigrationConflictError(version)

        # 4. Unsupported change kinds are rejected before anything is touched
        for change in migration.collection_changes:
            _ensure_supported(change)

    async def _apply_change(self, change: CollectionChange) -> ChangeResult:
        if isinstance(change, CreateCollection):
            await self._store.create_collection(change.config)
            return ChangeResult(action=ChangeAction.collection_created, collection=change.config.name)
        if isinstance(change, DeleteCollection):
            await self._store.delete_collection(change.name)
            return ChangeResult(action=ChangeAction.collection_deleted, collection=change.name)
        if isinstance(change, AddIndex):
            # Qdrant indexes payload fields on demand; nothing to create.
            return ChangeResult(
                action=ChangeAction.index_added,
                collection=change.collection,
                field=change.field,
                index_type=change.index_type,
            )
        if isinstance(change, RemoveIndex):
            return ChangeResult(action=ChangeAction.index_removed, collection=change.collection, field=change.field)
        _ensure_supported(change)
        raise TypeError(f"Unsupported change type: {type(change)!r}")

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    async def rollback_migration(self, version: str | Version) -> None:
        """Reverse a recorded migration and remove it from history.

        Raises:
            MigrationNotFoundError: ``version`` is not in history.
            NotReversibleError: the migration is marked non-reversible or
                contains a change with no inverse (delete_collection).
            RollbackError: a reverse change failed part way.
            HistoryRecordError: every change was reversed but the record remains.
        """
        async with self._exclusive():
            migration = await self.get_migration(version)
            key = migration.version_key
            logger.info("migration_rollback_start", extra={"version": key})

            try:
                _ensure_reversible(migration)
            except NotReversibleError as e:
                logger.warning("migration_rejected", extra={"version": key, "gate": e.gate, "error": str(e)})
                raise

            reverted: list[CollectionChange] = []
            for change in reversed(migration.collection_changes):
                try:
                    await self._reverse_change(change)
                except StorageError as e:
                    logger.error(
                        "migration_rollback_failed",
                        extra={"version": key, "change": change.kind, "reverted": len(reverted), "error": str(e)},
                    )
                    raise RollbackError(key, reverted, change, e) from e
                reverted.append(change)

            try:
                await self._store.delete_vector(self.history_collection, key)
            except StorageError as e:
                logger.error(
                    "migration_unrecord_failed",
                    extra={"version": key, "reverted": len(reverted), "error": str(e)},
                )
                raise HistoryRecordError(key, "remove", reverted, e) from e
            logger.info("migration_rolled_back", extra={"version": key, "changes": len(reverted)})

    async def _reverse_change(self, change: CollectionChange) -> None:
        if isinstance(change, CreateCollection):
            try:
                await self._store.delete_collection(change.config.name)
            except CollectionNotFoundError:
                logger.warning("rollback_collection_missing", extra={"collection": change.config.name})
        # Index and other changes have no backend state to undo.


def _ensure_supported(change: CollectionChange) -> None:
    if isinstance(change, UpdateCollection):
        raise UnsupportedChangeError(
            change.kind,
            f"Collection {change.name!r} cannot be updated in place; "
            "create a new collection and migrate its data",
        )
    if isinstance(change, RenameCollection):
        raise UnsupportedChangeError(
            change.kind,
            f"Collection {change.old_name!r} cannot be renamed to {change.new_name!r}; "
            "create a new collection and migrate its data",
        )


def _ensure_reversible(migration: SchemaMigration) -> None:
    key = migration.version_key
    if not migration.metadata.reversible:
        raise NotReversibleError(key, "marked non-reversible")
    for change in migration.collection_changes:
        if isinstance(change, DeleteCollection):
            raise NotReversibleError(key, f"deleted collection {change.name!r} cannot be restored")
