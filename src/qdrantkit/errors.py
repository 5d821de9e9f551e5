"""Typed errors for filter compilation, storage and schema migrations.

``MigrationRejectedError`` subclasses are raised before any collection is
touched; ``ChangeApplicationError``, ``RollbackError`` and ``HistoryRecordError``
mean the backend was partially mutated and carry what was already done.
"""

from __future__ import annotations

from typing import Any


class QdrantKitError(Exception):
    """Base exception for everything raised by this package."""


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class FilterError(QdrantKitError):
    """Base for filter compilation failures."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"filter on {field!r}: {message}")
        self.field = field


class FilterValidationError(FilterError, ValueError):
    """Operator object is malformed (bad bound type, empty $in, mixed operators...)."""


class FilterNotImplementedError(FilterError, NotImplementedError):
    """Operator is recognized but intentionally unsupported (``$ne``)."""

    def __init__(self, field: str, operator: str) -> None:
        super().__init__(field, f"operator {operator} is not implemented")
        self.operator = operator


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class StorageError(QdrantKitError):
    """The backend rejected or failed a call."""


class CollectionNotFoundError(StorageError):
    """Raised when a collection does not exist."""

    def __init__(self, collection: str) -> None:
        super().__init__(f"Collection {collection!r} not found")
        self.collection = collection


class CollectionAlreadyExistsError(StorageError):
    """Raised when creating a collection that already exists."""

    def __init__(self, collection: str) -> None:
        super().__init__(f"Collection {collection!r} already exists")
        self.collection = collection


class RecordNotFoundError(StorageError):
    """Raised when a record does not exist."""


class MigrationNotFoundError(RecordNotFoundError):
    """No history record exists for the requested version."""

    def __init__(self, version: str) -> None:
        super().__init__(f"Migration {version} not found in history")
        self.version = version


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------


class MigrationError(QdrantKitError):
    """Base for migration lifecycle failures."""


class MigrationRejectedError(MigrationError):
    """A gate failed before any collection change was applied."""

    gate: str = "validation"


class ContractMismatchError(MigrationRejectedError):
    """An interaction's actual outcome class differs from the expected one."""

    gate = "contracts"

    def __init__(
        self,
        consumer: str,
        interaction: str,
        expected: str,
        actual: str,
        detail: str | None = None,
    ) -> None:
        message = (
            f"Contract {consumer!r}, interaction {interaction!r}: "
            f"expected {expected} but got {actual}"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.consumer = consumer
        self.interaction = interaction
        self.expected = expected
        self.actual = actual


class MissingDependencyError(MigrationRejectedError):
    """A dependency version is not present in history."""

    gate = "dependencies"

    def __init__(self, version: str, dependency: str) -> None:
        super().__init__(f"Migration {version} requires {dependency}, which has not been applied")
        self.version = version
        self.dependency = dependency


class MigrationConflictError(MigrationRejectedError):
    """The version is already recorded in history."""

    gate = "history"

    def __init__(self, version: str) -> None:
        super().__init__(f"Migration {version} has already been applied")
        self.version = version


class UnsupportedChangeError(MigrationRejectedError, NotImplementedError):
    """The change kind cannot be applied by the backend (update, rename)."""

    gate = "changes"

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class NotReversibleError(MigrationRejectedError):
    """Rollback requested for a migration that has no well-defined inverse."""

    gate = "rollback"

    def __init__(self, version: str, reason: str) -> None:
        super().__init__(f"Migration {version} is not reversible: {reason}")
        self.version = version


class ChangeApplicationError(MigrationError):
    """A collection change failed after earlier changes were applied."""

    def __init__(
        self,
        version: str,
        applied: list[Any],
        failed_change: Any,
        cause: BaseException,
    ) -> None:
        super().__init__(
            f"Migration {version} failed on {failed_change.kind} after "
            f"{len(applied)} applied change(s): {cause}"
        )
        self.version = version
        self.applied = applied
        self.failed_change = failed_change
        self.cause = cause

    @property
    def partially_applied(self) -> bool:
        return bool(self.applied)


class RollbackError(MigrationError):
    """A reverse change failed after earlier reverse changes were applied."""

    def __init__(
        self,
        version: str,
        reverted: list[Any],
        failed_change: Any,
        cause: BaseException,
    ) -> None:
        super().__init__(
            f"Rollback of {version} failed on {failed_change.kind} after "
            f"{len(reverted)} reverted change(s): {cause}"
        )
        self.version = version
        self.reverted = reverted
        self.failed_change = failed_change
        self.cause = cause


class HistoryRecordError(MigrationError):
    """Collection changes went through but writing or removing the history record failed.

    ``operation`` is ``"record"`` after an apply and ``"remove"`` after a
    rollback; ``changes`` holds the applied ``ChangeResult``s or the reverted
    changes respectively.
    """

    def __init__(
        self,
        version: str,
        operation: str,
        changes: list[Any],
        cause: BaseException,
    ) -> None:
        super().__init__(
            f"Migration {version}: history {operation} failed after "
            f"{len(changes)} change(s): {cause}"
        )
        self.version = version
        self.operation = operation
        self.changes = changes
        self.cause = cause

    @property
    def partially_applied(self) -> bool:
        return bool(self.changes)
