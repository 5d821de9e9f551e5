"""Composition root: the single place where adapters are wired into services.

Call ``build_vector_store()`` or ``build_migration_manager()`` to get
fully-constructed objects with real adapters.
"""

from __future__ import annotations

from .adapters.qdrant_vector_store import QdrantVectorStore
from .config.runtime import RuntimeSettings, get_settings
from .ports.contracts import ContractValidator
from .ports.vector_store import VectorStorePort
from .services.contract_validator import BackendContractValidator
from .services.migration_manager import SchemaMigrationManager


def build_vector_store(settings: RuntimeSettings | None = None) -> QdrantVectorStore:
    """Construct the Qdrant adapter from settings."""
    return QdrantVectorStore(settings or get_settings())


def build_migration_manager(
    settings: RuntimeSettings | None = None,
    store: VectorStorePort | None = None,
    contract_validator: ContractValidator | None = None,
) -> SchemaMigrationManager:
    """Construct a SchemaMigrationManager; contracts are checked against the same store."""
    settings = settings or get_settings()
    store = store or build_vector_store(settings)
    return SchemaMigrationManager(
        store=store,
        settings=settings,
        contract_validator=contract_validator or BackendContractValidator(store),
    )
