"""Services: migration manager and contract validation."""

from .contract_validator import BackendContractValidator, render_pact, write_pact
from .migration_manager import SchemaMigrationManager

__all__ = [
    "BackendContractValidator",
    "SchemaMigrationManager",
    "render_pact",
    "write_pact",
]
