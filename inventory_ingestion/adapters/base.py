"""
Source adapter protocol, fetch result DTO and adapter registry.

Contract:
    ``SourceAdapter.fetch(session, agencies)`` returns every record of its
    origin that belongs to one of ``agencies``, translated into
    SourceRecords with a stable ``external_id``.  Adapters never write; the
    orchestrator owns dedup, matching and the ledger append.

    ``records_fetched`` counts raw rows read before agency filtering so the
    run summary can report fetched vs. matched-to-agency records.

Failure modes:
    - Connectivity/IO failures surface as SourceUnavailableError (fatal for
      that adapter's run only).
    - Malformed lines are reported inside SourceRecord.malformed_lines.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from sqlalchemy.orm import Session

from inventory_kernel.domain.types import SourceRecord, TransactionType
from inventory_kernel.exceptions import UnknownSourceError


@dataclass(frozen=True)
class AgencyRef:
    """Agency identifier plus the display name the ERP uses as partner name."""

    agency_id: str
    display_name: str


@dataclass(frozen=True)
class FetchResult:
    records: tuple[SourceRecord, ...]
    records_fetched: int


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for translating one origin's records into SourceRecords."""

    @property
    def source_system(self) -> str:
        """Tag stored on every ledger row; part of the dedup key."""
        ...

    @property
    def transaction_type(self) -> TransactionType:
        """Fixes the sign applied to every line this adapter yields."""
        ...

    def fetch(self, session: Session, agencies: Sequence[AgencyRef]) -> FetchResult:
        ...


class AdapterRegistry:
    """Registry mapping source tags to adapters.

    Contract:
        - ``register()`` adds an adapter; raises ValueError on a duplicate tag.
        - ``get()`` raises UnknownSourceError for an unregistered tag.
    """

    def __init__(self) -> None:
        self._adapters: dict[str, SourceAdapter] = {}

    def register(self, adapter: SourceAdapter) -> None:
        if adapter.source_system in self._adapters:
            raise ValueError(
                f"Source system '{adapter.source_system}' is already registered"
            )
        self._adapters[adapter.source_system] = adapter

    def get(self, source_system: str) -> SourceAdapter:
        try:
            return self._adapters[source_system]
        except KeyError:
            raise UnknownSourceError(source_system, list(self._adapters)) from None

    def list_sources(self) -> tuple[str, ...]:
        return tuple(sorted(self._adapters))

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, source_system: str) -> bool:
        return source_system in self._adapters
