"""
IngestionOrchestrator -- one source adapter's run into the stock ledger.

Contract:
    ``run(adapter, agencies)`` fetches the adapter's records, skips records
    already in the ledger, matches each line against the agency's catalog
    snapshot, signs the quantity from the adapter's transaction type and
    appends one ledger transaction per distinct (product, color, size).
    Returns a RunSummary and persists it as an IngestionRunModel row.

Architecture: inventory_ingestion/services.  Imports kernel domain and
    services; never imported by the kernel.

Invariants enforced:
    - Idempotence: a record is skipped whole when any transaction for
      (agency, source, external_id) exists; the UNIQUE dedup key with
      insert-or-ignore is the storage-level guard under concurrency.
    - SAVEPOINT per record: one failing record never aborts the run and
      leaves nothing half-written.
    - Lines of one record that resolve to the same (product, color, size)
      are merged into one transaction (quantities summed).
    - The catalog snapshot is read once per run per agency.
    - Cancellation is checked between records only.

Failure modes:
    - Adapter fetch failure -> run recorded FAILED with the reason; the
      summary is returned, nothing is raised.
    - Malformed lines are counted and logged; a record whose lines are all
      malformed counts as a malformed record.
    - Unreadable catalog -> logged and reported in the summary errors; that
      agency's lines are recorded unmatched under the fallback category.
    - Any other per-record error rolls back that record's SAVEPOINT and is
      aggregated into the summary errors; the next record still runs.

Non-goals:
    - Does NOT call ``session.commit()``; the caller owns the transaction.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from inventory_ingestion.adapters.base import AgencyRef, SourceAdapter
from inventory_ingestion.adapters.decoding import to_json_safe
from inventory_ingestion.catalog import CatalogReader, TableCatalogReader, load_agencies
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.matcher import ProductMatcher
from inventory_kernel.domain.normalizer import extract_product_code, normalize_product_name
from inventory_kernel.domain.scoring import MatchingPolicy
from inventory_kernel.domain.types import (
    CatalogProduct,
    LedgerTransaction,
    LineItem,
    MatchResult,
    RunStatus,
    RunSummary,
    SourceRecord,
    signed_quantity,
)
from inventory_kernel.exceptions import SourceUnavailableError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.ingestion_run import IngestionRunModel
from inventory_kernel.services.stock_ledger import StockLedgerService

logger = get_logger("ingestion.orchestrator")

SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


@dataclass
class _RunCounters:
    records_fetched: int = 0
    records_matched_agency: int = 0
    records_skipped_duplicate: int = 0
    records_malformed: int = 0
    records_failed: int = 0
    lines_malformed: int = 0
    transactions_created: int = 0
    transactions_suppressed: int = 0
    products_matched: int = 0
    products_unmatched: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class _MergedLine:
    product_name: str
    color: str
    size: str
    match: MatchResult
    first: LineItem
    quantity: int = 0
    raw_names: list[str] = field(default_factory=list)


def canonical_variant(value: str, declared: tuple[str, ...]) -> str:
    """``value`` spelled as the catalog declares it (case-insensitive), else trimmed."""
    wanted = value.strip()
    for variant in declared:
        if variant.lower() == wanted.lower():
            return variant
    return wanted


class IngestionOrchestrator:
    """Runs one source adapter into the stock ledger."""

    def __init__(
        self,
        session: Session,
        ledger: StockLedgerService | None = None,
        catalog: CatalogReader | None = None,
        policy: MatchingPolicy | None = None,
        clock: Clock | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ):
        self._session = session
        self._ledger = ledger or StockLedgerService(session)
        self._catalog = catalog or TableCatalogReader()
        self._policy = policy or MatchingPolicy()
        self._clock = clock or SystemClock()
        self._actor_id = actor_id

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(
        self,
        adapter: SourceAdapter,
        agencies: Sequence[AgencyRef] | None = None,
        agency_scope: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RunSummary:
        """Ingest every record of ``adapter`` for ``agencies``.

        When ``agencies`` is None the active agency directory is read,
        narrowed to ``agency_scope`` when given.
        """
        start_time = time.monotonic()
        started_at = self._clock.now()
        run_id = uuid4()
        source = adapter.source_system

        run_model = IngestionRunModel(
            id=run_id,
            source_system=source,
            agency_scope=agency_scope,
            status=RunStatus.RUNNING.value,
            started_at=started_at,
            created_by_id=self._actor_id,
        )
        self._session.add(run_model)
        self._session.flush()

        with LogContext.bind(
            run_id=str(run_id), source_system=source, actor_id=str(self._actor_id),
        ):
            if agencies is None:
                agencies = load_agencies(self._session, agency_scope)
            elif agency_scope is not None:
                agencies = [a for a in agencies if a.agency_id == agency_scope]

            logger.info(
                "ingestion_run_started",
                extra={
                    "agency_scope": agency_scope,
                    "agency_count": len(agencies),
                    "transaction_type": adapter.transaction_type.value,
                },
            )

            counters = _RunCounters()
            try:
                fetched = adapter.fetch(self._session, agencies)
            except SourceUnavailableError as exc:
                logger.warning("source_unavailable", extra={"reason": exc.reason})
                counters.errors.append(str(exc))
                return self._finish(
                    run_model, counters, RunStatus.FAILED, started_at, start_time,
                    message=str(exc),
                )

            counters.records_fetched = fetched.records_fetched
            counters.records_matched_agency = len(fetched.records)

            matchers: dict[str, ProductMatcher] = {}
            status = RunStatus.COMPLETED
            for record in fetched.records:
                if cancel_event is not None and cancel_event.is_set():
                    status = RunStatus.CANCELLED
                    logger.warning(
                        "ingestion_run_cancelled",
                        extra={"next_external_id": record.external_id},
                    )
                    break

                matcher = matchers.get(record.agency_id)
                if matcher is None:
                    matcher = self._load_matcher(record.agency_id, counters)
                    matchers[record.agency_id] = matcher

                with LogContext.bind(agency_id=record.agency_id):
                    self._process_record(adapter, record, matcher, started_at, counters)

            if status is RunStatus.CANCELLED:
                message = "cancelled between records; rerun to resume"
            else:
                message = (
                    f"{counters.transactions_created} transactions created from "
                    f"{counters.records_matched_agency} records"
                )
            return self._finish(
                run_model, counters, status, started_at, start_time, message=message,
            )

    # -------------------------------------------------------------------------
    # Per-record
    # -------------------------------------------------------------------------

    def _process_record(
        self,
        adapter: SourceAdapter,
        record: SourceRecord,
        matcher: ProductMatcher,
        run_started_at: datetime,
        counters: _RunCounters,
    ) -> None:
        source = adapter.source_system

        for reason in record.malformed_lines:
            counters.lines_malformed += 1
            logger.warning(
                "line_item_malformed",
                extra={"external_id": record.external_id, "reason": reason},
            )

        if not record.lines:
            counters.records_malformed += 1
            logger.warning(
                "record_malformed",
                extra={
                    "external_id": record.external_id,
                    "malformed_lines": len(record.malformed_lines),
                },
            )
            return

        transactions: list[LedgerTransaction] = []
        savepoint = self._session.begin_nested()
        try:
            if self._ledger.record_exists(record.agency_id, source, record.external_id):
                savepoint.commit()
                counters.records_skipped_duplicate += 1
                logger.info(
                    "record_skipped_duplicate",
                    extra={"external_id": record.external_id},
                )
                return
            transactions = self._build_transactions(adapter, record, matcher, run_started_at)
            created = [tx for tx in transactions if self._ledger.append(tx, self._actor_id)]
            savepoint.commit()
        except Exception as exc:
            savepoint.rollback()
            if transactions:
                self._ledger.invalidate([tx.stock_key for tx in transactions])
            counters.records_failed += 1
            counters.errors.append(f"{record.external_id}: {exc}")
            logger.exception(
                "record_failed",
                extra={"external_id": record.external_id, "error": str(exc)},
            )
            return

        counters.transactions_created += len(created)
        counters.transactions_suppressed += len(transactions) - len(created)
        if not created:
            counters.records_skipped_duplicate += 1
            logger.info(
                "record_skipped_duplicate",
                extra={"external_id": record.external_id, "suppressed": len(transactions)},
            )
            return

        for tx in created:
            if tx.matched_product_id is not None:
                counters.products_matched += 1
            else:
                counters.products_unmatched += 1
                logger.info(
                    "product_unmatched",
                    extra={
                        "external_id": record.external_id,
                        "product_name": tx.product_name,
                        "confidence": tx.match_confidence,
                    },
                )

        logger.debug(
            "record_ingested",
            extra={"external_id": record.external_id, "transactions": len(created)},
        )

    def _load_matcher(self, agency_id: str, counters: _RunCounters) -> ProductMatcher:
        """Matcher over the agency's catalog; an unreadable catalog matches nothing."""
        savepoint = self._session.begin_nested()
        try:
            snapshot = self._catalog.snapshot(self._session, agency_id)
            savepoint.commit()
        except Exception as exc:
            savepoint.rollback()
            counters.errors.append(f"catalog {agency_id}: {exc}")
            logger.warning(
                "catalog_unavailable",
                extra={"agency_id": agency_id, "error": str(exc)},
            )
            snapshot = ()
        return ProductMatcher(snapshot, self._policy)

    def _resolve(
        self, line: LineItem, matcher: ProductMatcher, by_id: dict[str, CatalogProduct],
    ) -> tuple[str, str, str, MatchResult]:
        """(product_name, color, size, match) identifying the ledger row for ``line``."""
        match = matcher.match(line)
        product = by_id.get(match.matched_product_id) if match.is_matched else None
        default = self._policy.default_variant

        if product is not None:
            name = product.name
        else:
            name = normalize_product_name(line.raw_product_name) or line.raw_product_name.strip()

        if line.color:
            color = canonical_variant(line.color, product.colors if product else ())
        else:
            color = match.matched_color or default
        if line.size:
            size = canonical_variant(line.size, product.sizes if product else ())
        else:
            size = match.matched_size or default
        return name, color, size, match

    def _build_transactions(
        self,
        adapter: SourceAdapter,
        record: SourceRecord,
        matcher: ProductMatcher,
        run_started_at: datetime,
    ) -> list[LedgerTransaction]:
        by_id = {p.id: p for p in matcher.products}
        merged: dict[tuple[str, str, str], _MergedLine] = {}
        for line in record.lines:
            name, color, size, match = self._resolve(line, matcher, by_id)
            entry = merged.get((name, color, size))
            if entry is None:
                entry = _MergedLine(name, color, size, match, first=line)
                merged[(name, color, size)] = entry
            entry.quantity += line.quantity
            entry.raw_names.append(line.raw_product_name)

        tx_date = record.transaction_date or run_started_at
        transactions = []
        for entry in merged.values():
            line = entry.first
            notes = {
                "raw_product_names": entry.raw_names,
                "raw_category": line.raw_category,
                "external_product_id": line.external_product_id,
                "merged_lines": len(entry.raw_names),
            }
            transactions.append(LedgerTransaction(
                transaction_id=uuid4(),
                product_name=entry.product_name,
                color=entry.color,
                size=entry.size,
                category=entry.match.category,
                sub_category=entry.match.sub_category,
                unit_price=line.unit_price,
                transaction_type=adapter.transaction_type,
                signed_quantity=signed_quantity(adapter.transaction_type, entry.quantity),
                agency_id=record.agency_id,
                source_system=adapter.source_system,
                external_id=record.external_id,
                reference_name=record.reference_name,
                transaction_date=tx_date,
                product_code=extract_product_code(line.raw_product_name),
                matched_product_id=entry.match.matched_product_id,
                match_confidence=entry.match.confidence,
                notes=to_json_safe(notes),
            ))
        return transactions

    # -------------------------------------------------------------------------
    # Finish
    # -------------------------------------------------------------------------

    def _finish(
        self,
        run_model: IngestionRunModel,
        counters: _RunCounters,
        status: RunStatus,
        started_at: datetime,
        start_time: float,
        message: str,
    ) -> RunSummary:
        summary = RunSummary(
            source_system=run_model.source_system,
            status=status,
            records_fetched=counters.records_fetched,
            records_matched_agency=counters.records_matched_agency,
            records_skipped_duplicate=counters.records_skipped_duplicate,
            records_malformed=counters.records_malformed,
            records_failed=counters.records_failed,
            lines_malformed=counters.lines_malformed,
            transactions_created=counters.transactions_created,
            transactions_suppressed=counters.transactions_suppressed,
            products_matched=counters.products_matched,
            products_unmatched=counters.products_unmatched,
            errors=tuple(counters.errors),
            run_id=run_model.id,
            started_at=started_at,
            completed_at=self._clock.now(),
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
        run_model.apply_summary(summary, message=message)
        self._session.flush()

        log = logger.warning if status is RunStatus.FAILED else logger.info
        log("ingestion_run_completed", extra=summary.to_dict())
        return summary
