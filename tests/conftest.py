"""Shared fixtures: settings and an in-process Qdrant store.

Each test gets its own ``:memory:`` backend, so no Qdrant server is needed.
"""

import pytest

from qdrantkit.adapters.qdrant_vector_store import QdrantVectorStore
from qdrantkit.config.runtime import RuntimeSettings


@pytest.fixture
def settings(tmp_path) -> RuntimeSettings:
    return RuntimeSettings(
        _env_file=None,
        qdrant_location=":memory:",
        history_vector_dimension=8,
        pact_dir=str(tmp_path / "pacts"),
    )


@pytest.fixture
def store(settings) -> QdrantVectorStore:
    return QdrantVectorStore(settings)
