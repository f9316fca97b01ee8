"""
MultiSourceRunner -- runs several source adapters with bounded parallelism.

Contract:
    ``run_sources(sources, agency_scope)`` runs each source in its own
    session and transaction, at most ``max_concurrent_fetches`` at a time,
    and returns one RunSummary per source in the order requested.  A source
    that fails (unavailable or crashed) is rolled back and reported FAILED;
    the other sources still run and commit.

Non-goals:
    - NOT a scheduler.  Deciding when to run is the caller's job.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy.orm import Session

from inventory_ingestion.adapters.base import AdapterRegistry, SourceAdapter
from inventory_ingestion.services.orchestrator import IngestionOrchestrator
from inventory_kernel.domain.types import RunStatus, RunSummary
from inventory_kernel.logging_config import LogContext, get_logger

logger = get_logger("ingestion.runner")


class MultiSourceRunner:
    """Fans sources out over a thread pool, one session per source."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: AdapterRegistry,
        orchestrator_factory: Callable[[Session], IngestionOrchestrator],
        max_concurrent_fetches: int = 5,
    ):
        if max_concurrent_fetches < 1:
            raise ValueError("max_concurrent_fetches must be at least 1")
        self._session_factory = session_factory
        self._registry = registry
        self._orchestrator_factory = orchestrator_factory
        self._max_concurrent = max_concurrent_fetches

    def run_sources(
        self,
        sources: Sequence[str],
        agency_scope: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[RunSummary]:
        """Run ``sources`` and return their summaries in request order.

        Raises:
            UnknownSourceError: a source tag is not registered (before any run).
        """
        adapters = [self._registry.get(source) for source in sources]
        correlation_id = LogContext.get_all().get("correlation_id")

        logger.info(
            "multi_source_run_started",
            extra={"sources": list(sources), "max_concurrent": self._max_concurrent},
        )

        if self._max_concurrent == 1 or len(adapters) <= 1:
            summaries = [
                self._run_one(adapter, agency_scope, cancel_event, correlation_id)
                for adapter in adapters
            ]
        else:
            with ThreadPoolExecutor(max_workers=self._max_concurrent) as executor:
                futures = [
                    executor.submit(
                        self._run_one, adapter, agency_scope, cancel_event, correlation_id,
                    )
                    for adapter in adapters
                ]
                summaries = [future.result() for future in futures]

        logger.info(
            "multi_source_run_completed",
            extra={
                "statuses": {s.source_system: s.status.value for s in summaries},
                "transactions_created": sum(s.transactions_created for s in summaries),
            },
        )
        return summaries

    def _run_one(
        self,
        adapter: SourceAdapter,
        agency_scope: str | None,
        cancel_event: threading.Event | None,
        correlation_id: str | None,
    ) -> RunSummary:
        session = self._session_factory()
        try:
            with LogContext.bind(correlation_id=correlation_id):
                orchestrator = self._orchestrator_factory(session)
                summary = orchestrator.run(
                    adapter, agency_scope=agency_scope, cancel_event=cancel_event,
                )
            session.commit()
            return summary
        except Exception as exc:
            session.rollback()
            logger.exception(
                "source_run_crashed",
                extra={"source_system": adapter.source_system, "error": str(exc)},
            )
            return RunSummary(
                source_system=adapter.source_system,
                status=RunStatus.FAILED,
                errors=(f"{type(exc).__name__}: {exc}",),
            )
        finally:
            session.close()
