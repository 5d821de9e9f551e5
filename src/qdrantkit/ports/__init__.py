"""Port interfaces (Protocols).

Services depend only on these, never on concrete adapters.
"""

from .contracts import ContractValidator
from .vector_store import VectorStorePort

__all__ = [
    "ContractValidator",
    "VectorStorePort",
]
