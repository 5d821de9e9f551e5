"""Port: consumer contract validation run before a migration is applied."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..models.migration import Contract


@runtime_checkable
class ContractValidator(Protocol):
    """Check that the backend still behaves the way a consumer expects.

    Raises ``ContractMismatchError`` on the first interaction whose outcome
    class differs from the expected one.
    """

    async def validate(self, contract: Contract) -> None: ...
