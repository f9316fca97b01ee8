"""
inventory_services.engine -- DI container and facade for reconciliation.

Responsibility:
    Builds every kernel and ingestion service exactly once per session from
    a ReconciliationConfig and exposes the entry points callers (scheduler,
    CLI, UI backends) use:

        run_ingestion(source_system, agency_scope=None) -> RunSummary
        approve_adjustment(id, reviewer) -> bool
        reject_adjustment(id, reviewer, reason=None) -> bool
        get_current_stock(agency_id, product_name, color, size) -> int
        compute_achievement(customer_name, months_spec, year, categories)

    plus the read views (stock levels, stock summary, unmatched summary,
    latest run status) and adjustment requests.

Non-goals:
    - Does NOT commit.  Wrap calls in ``session_scope()`` or commit yourself.

Usage:
    with session_scope() as session:
        engine = ReconciliationEngine.from_session(session)
        summary = engine.run_ingestion("external_erp", agency_scope="AG-1")
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config import get_active_config
from inventory_config.bridges import (
    build_adapter_registry,
    external_invoice_reader,
    matching_policy_from_config,
    reviewer_policy_from_config,
)
from inventory_config.schema import ReconciliationConfig
from inventory_ingestion.adapters.base import AdapterRegistry
from inventory_ingestion.catalog import CatalogReader
from inventory_ingestion.services.achievement_source import InvoiceAchievementSource
from inventory_ingestion.services.orchestrator import IngestionOrchestrator
from inventory_ingestion.services.runner import MultiSourceRunner
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.types import (
    DEFAULT_VARIANT,
    GENERAL_CATEGORY,
    AchievementBreakdownRow,
    AdjustmentRequest,
    CategoryAchievement,
    IngestionRunStatus,
    RunSummary,
    StockKey,
    StockLevel,
    StockSummaryRow,
    TargetPeriod,
    UnmatchedSummary,
)
from inventory_kernel.exceptions import AdjustmentLedgerWriteError, ApprovalConflictError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.selectors.run_selector import IngestionRunSelector
from inventory_kernel.services.achievement_service import AchievementCalculator
from inventory_kernel.services.adjustment_service import AdjustmentService
from inventory_kernel.services.stock_ledger import StockLedgerService, StockLevelCache

logger = get_logger("services.engine")


class ReconciliationEngine:
    """Facade over ingestion, ledger, adjustments and achievement."""

    def __init__(
        self,
        session: Session,
        config: ReconciliationConfig,
        clock: Clock | None = None,
        registry: AdapterRegistry | None = None,
        catalog: CatalogReader | None = None,
        cache: StockLevelCache | None = None,
    ):
        self._session = session
        self._config = config
        self._clock = clock or SystemClock()
        self._registry = registry or build_adapter_registry(config)

        self._ledger = StockLedgerService(session, cache)
        self._orchestrator = IngestionOrchestrator(
            session,
            ledger=self._ledger,
            catalog=catalog,
            policy=matching_policy_from_config(config),
            clock=self._clock,
            actor_id=config.ingestion.system_actor_id,
        )
        self._adjustments = AdjustmentService(
            session,
            self._ledger,
            clock=self._clock,
            reviewer_policy=reviewer_policy_from_config(config),
            allow_positive_adjustments=config.adjustments.allow_positive_adjustments,
            source_system=config.sources.adjustment,
        )
        self._achievement = AchievementCalculator(
            InvoiceAchievementSource(session, external_invoice_reader(config)),
        )
        self._runs = IngestionRunSelector(session)

    @classmethod
    def from_session(
        cls,
        session: Session,
        config: ReconciliationConfig | None = None,
        clock: Clock | None = None,
        registry: AdapterRegistry | None = None,
    ) -> ReconciliationEngine:
        return cls(session, config or get_active_config(), clock=clock, registry=registry)

    @property
    def config(self) -> ReconciliationConfig:
        return self._config

    @property
    def registry(self) -> AdapterRegistry:
        return self._registry

    @property
    def ledger(self) -> StockLedgerService:
        return self._ledger

    @property
    def orchestrator(self) -> IngestionOrchestrator:
        return self._orchestrator

    @property
    def adjustments(self) -> AdjustmentService:
        return self._adjustments

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def run_ingestion(
        self,
        source_system: str,
        agency_scope: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RunSummary:
        """Run one registered source.

        Raises:
            UnknownSourceError: ``source_system`` is not registered.
        """
        adapter = self._registry.get(source_system)
        return self._orchestrator.run(
            adapter, agency_scope=agency_scope, cancel_event=cancel_event,
        )

    def latest_run_status(self, source_system: str) -> IngestionRunStatus | None:
        return self._runs.latest_run_status(source_system)

    # -------------------------------------------------------------------------
    # Adjustments
    # -------------------------------------------------------------------------

    def request_adjustment(
        self,
        *,
        agency_id: str,
        product_name: str,
        adjustment_quantity: int,
        reason: str,
        requested_by: UUID,
        color: str = DEFAULT_VARIANT,
        size: str = DEFAULT_VARIANT,
        category: str = GENERAL_CATEGORY,
        sub_category: str = "",
        unit_price: Decimal = Decimal("0"),
        product_code: str | None = None,
    ) -> AdjustmentRequest:
        return self._adjustments.request_adjustment(
            agency_id=agency_id,
            product_name=product_name,
            color=color,
            size=size,
            adjustment_quantity=adjustment_quantity,
            reason=reason,
            requested_by=requested_by,
            category=category,
            sub_category=sub_category,
            unit_price=unit_price,
            product_code=product_code,
        )

    def approve_adjustment(self, adjustment_id: UUID, reviewer: UUID) -> bool:
        """True when approved; False when nothing changed.

        False covers an already reviewed request and a ledger append that
        was rolled back (the request is still pending).

        Raises:
            AdjustmentNotFoundError: unknown request.
            UnauthorizedReviewerError: reviewer policy refused.
        """
        try:
            self._adjustments.approve(adjustment_id, reviewer)
        except (ApprovalConflictError, AdjustmentLedgerWriteError) as exc:
            logger.warning(
                "adjustment_approval_refused",
                extra={"adjustment_id": str(adjustment_id), "code": exc.code},
            )
            return False
        return True

    def reject_adjustment(
        self, adjustment_id: UUID, reviewer: UUID, reason: str | None = None,
    ) -> bool:
        """True when rejected; False when the request was already reviewed."""
        try:
            self._adjustments.reject(adjustment_id, reviewer, reason)
        except ApprovalConflictError as exc:
            logger.warning(
                "adjustment_rejection_refused",
                extra={"adjustment_id": str(adjustment_id), "code": exc.code},
            )
            return False
        return True

    # -------------------------------------------------------------------------
    # Stock views
    # -------------------------------------------------------------------------

    def get_current_stock(
        self,
        agency_id: str,
        product_name: str,
        color: str = DEFAULT_VARIANT,
        size: str = DEFAULT_VARIANT,
    ) -> int:
        return self._ledger.current_stock(
            StockKey(agency_id=agency_id, product_name=product_name, color=color, size=size)
        )

    def stock_levels(self, agency_id: str, include_zero: bool = True) -> list[StockLevel]:
        return self._ledger.selector.stock_levels(agency_id, include_zero=include_zero)

    def stock_summary(self, agency_id: str | None = None) -> list[StockSummaryRow]:
        return self._ledger.selector.stock_summary(agency_id)

    def unmatched_summary(self, agency_id: str | None = None) -> UnmatchedSummary:
        return self._ledger.selector.unmatched_summary(agency_id)

    # -------------------------------------------------------------------------
    # Achievement
    # -------------------------------------------------------------------------

    def compute_achievement(
        self,
        customer_name: str,
        months_spec: str | None,
        year: int,
        categories: list[str],
    ) -> list[CategoryAchievement]:
        return self._achievement.compute_achievement(customer_name, months_spec, year, categories)

    def compute_breakdown(self, target: TargetPeriod) -> list[AchievementBreakdownRow]:
        return self._achievement.compute_breakdown(target)


def build_runner(
    session_factory: Callable[[], Session],
    config: ReconciliationConfig,
    clock: Clock | None = None,
    registry: AdapterRegistry | None = None,
) -> MultiSourceRunner:
    """Multi-source runner whose workers each get an orchestrator on their own session."""
    policy = matching_policy_from_config(config)
    clock = clock or SystemClock()

    def orchestrator_factory(session: Session) -> IngestionOrchestrator:
        return IngestionOrchestrator(
            session,
            ledger=StockLedgerService(session),
            policy=policy,
            clock=clock,
            actor_id=config.ingestion.system_actor_id,
        )

    return MultiSourceRunner(
        session_factory,
        registry or build_adapter_registry(config),
        orchestrator_factory,
        max_concurrent_fetches=config.ingestion.max_concurrent_fetches,
    )
