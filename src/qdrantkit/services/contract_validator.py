"""Consumer contract validation against a live backend, plus Pact rendering.

``BackendContractValidator`` replays each interaction as a probe call and
compares the outcome class (success / error / not_found) with the expected
one. Destructive operations are never replayed.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from ..errors import (
    CollectionNotFoundError,
    ContractMismatchError,
    QdrantKitError,
    RecordNotFoundError,
)
from ..models.collection import (
    CollectionConfig,
    DistanceMetric,
    SearchParams,
    VectorRecord,
    placeholder_vector,
)
from ..models.migration import Contract, Interaction, ResponseStatus, VectorOperation
from ..observability import get_logger
from ..ports.vector_store import VectorStorePort

logger = get_logger("contracts")

PROBE_RECORD_ID = "__contract_probe__"
DEFAULT_PROBE_DIMENSION = 128
DEFAULT_PROBE_LIMIT = 5

_DESTRUCTIVE = frozenset({VectorOperation.delete_vector, VectorOperation.delete_collection})

_PACT_STATUS = {
    ResponseStatus.success: 200,
    ResponseStatus.error: 500,
    ResponseStatus.not_found: 404,
}


class BackendContractValidator:
    """ContractValidator that issues real calls through a VectorStorePort."""

    def __init__(self, store: VectorStorePort) -> None:
        self._store = store

    async def validate(self, contract: Contract) -> None:
        for interaction in contract.interactions:
            operation = interaction.request.operation
            if operation in _DESTRUCTIVE:
                logger.info(
                    "contract_interaction_skipped",
                    extra={
                        "consumer": contract.consumer,
                        "interaction": interaction.description,
                        "operation": operation.value,
                    },
                )
                continue

            actual, detail = await self._probe(interaction)
            expected = interaction.response.status
            if not _outcome_matches(expected, actual):
                raise ContractMismatchError(
                    consumer=contract.consumer,
                    interaction=interaction.description,
                    expected=expected.value,
                    actual=actual.value,
                    detail=detail,
                )
            logger.debug(
                "contract_interaction_passed",
                extra={
                    "consumer": contract.consumer,
                    "interaction": interaction.description,
                    "status": actual.value,
                },
            )

    async def _probe(self, interaction: Interaction) -> tuple[ResponseStatus, str | None]:
        """Run the probe and classify its outcome; returns (status, error detail)."""
        try:
            found = await self._run(interaction)
        except (CollectionNotFoundError, RecordNotFoundError) as e:
            return ResponseStatus.not_found, str(e)
        except (QdrantKitError, ValueError) as e:
            return ResponseStatus.error, str(e)
        if not found:
            return ResponseStatus.not_found, None
        return ResponseStatus.success, None

    async def _run(self, interaction: Interaction) -> bool:
        request = interaction.request
        params = request.parameters
        collection = request.collection
        operation = request.operation

        if operation == VectorOperation.list_collections:
            await self._store.list_collections()
            return True

        if operation == VectorOperation.create_collection:
            config = CollectionConfig(
                name=collection,
                dimension=params.get("dimension", DEFAULT_PROBE_DIMENSION),
                distance_metric=DistanceMetric.parse(params.get("distance_metric", DistanceMetric.cosine)),
            )
            await self._store.create_collection(config)
            await self._store.delete_collection(config.name)
            return True

        if operation == VectorOperation.get_vector:
            record_id = params.get("id")
            if not record_id:
                raise ValueError("get_vector interaction needs an 'id' parameter")
            return await self._store.get_vector(collection, str(record_id)) is not None

        info = await self._store.get_collection_info(collection)
        if info is None:
            raise CollectionNotFoundError(collection)

        if operation == VectorOperation.store_vector:
            record_id = str(params.get("id", PROBE_RECORD_ID))
            dimension = params.get("dimension", info.dimension)
            existing = await self._store.get_vector(collection, record_id)
            await self._store.store_vector(
                collection,
                VectorRecord(id=record_id, embedding=placeholder_vector(dimension)),
            )
            # Leave the collection as it was.
            if existing is not None:
                await self._store.store_vector(collection, existing)
            else:
                await self._store.delete_vector(collection, record_id)
            return True

        if operation == VectorOperation.search_similar:
            await self._store.search(
                collection,
                placeholder_vector(info.dimension),
                SearchParams(
                    limit=params.get("limit", DEFAULT_PROBE_LIMIT),
                    filters=params.get("filters") or {},
                ),
            )
            return True

        raise ValueError(f"no probe for operation {operation.value}")


def _outcome_matches(expected: ResponseStatus, actual: ResponseStatus) -> bool:
    if expected == ResponseStatus.success:
        return actual == ResponseStatus.success
    return actual != ResponseStatus.success


# ---------------------------------------------------------------------------
# Pact rendering
# ---------------------------------------------------------------------------


def render_pact(contract: Contract) -> dict[str, Any]:
    """Render a contract as a Pact v2 document."""
    return {
        "consumer": {"name": contract.consumer},
        "provider": {"name": contract.provider},
        "interactions": [
            {
                "description": interaction.description,
                "request": {
                    "method": "POST",
                    "path": "/vector-operation",
                    "body": interaction.request.model_dump(mode="json"),
                },
                "response": {
                    "status": _PACT_STATUS[interaction.response.status],
                    "body": interaction.response.data if interaction.response.data is not None else {},
                },
            }
            for interaction in contract.interactions
        ],
        "metadata": {"pactSpecification": {"version": "2.0.0"}},
    }


def write_pact(contract: Contract, pact_dir: str | Path) -> Path:
    """Write the rendered Pact into ``pact_dir``; returns the file path.

    The file name is the base name of ``contract_path``, falling back to
    ``<consumer>-<provider>.json``.
    """
    name = os.path.basename(contract.contract_path) or f"{contract.consumer}-{contract.provider}.json"
    target = Path(pact_dir) / name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(render_pact(contract), indent=2), encoding="utf-8")
    return target
