"""
Ingestion run log ORM model.

One row per ``run_ingestion`` invocation: counters, error list and status.
Status views read the most recent row per source system.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from inventory_kernel.domain.types import IngestionRunStatus, RunSummary


class IngestionRunModel(TrackedBase):
    """Persistent record of one ingestion run."""

    __tablename__ = "stock_ingestion_runs"

    __table_args__ = (
        Index("ix_stock_ingestion_runs_source_started", "source_system", "started_at"),
    )

    source_system: Mapped[str] = mapped_column(String(100), nullable=False)
    agency_scope: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    records_fetched: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_matched_agency: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_skipped_duplicate: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_malformed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lines_malformed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    transactions_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    transactions_suppressed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    products_matched: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    products_unmatched: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors: Mapped[list | None] = mapped_column(JSON, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def apply_summary(self, summary: RunSummary, message: str | None = None) -> None:
        """Copy the final counters of ``summary`` onto this row."""
        self.status = summary.status.value
        self.completed_at = summary.completed_at
        self.records_fetched = summary.records_fetched
        self.records_matched_agency = summary.records_matched_agency
        self.records_skipped_duplicate = summary.records_skipped_duplicate
        self.records_malformed = summary.records_malformed
        self.records_failed = summary.records_failed
        self.lines_malformed = summary.lines_malformed
        self.transactions_created = summary.transactions_created
        self.transactions_suppressed = summary.transactions_suppressed
        self.products_matched = summary.products_matched
        self.products_unmatched = summary.products_unmatched
        self.errors = list(summary.errors) or None
        self.duration_ms = summary.duration_ms
        self.message = message

    def to_status(self) -> IngestionRunStatus:
        from inventory_kernel.domain.types import IngestionRunStatus, RunStatus

        return IngestionRunStatus(
            source_system=self.source_system,
            status=RunStatus(self.status),
            started_at=self.started_at,
            completed_at=self.completed_at,
            transactions_created=self.transactions_created,
            message=self.message or "",
        )
