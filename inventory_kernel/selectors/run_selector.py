"""Read-only queries over the ingestion run log."""

from __future__ import annotations

from sqlalchemy import select

from inventory_kernel.domain.types import IngestionRunStatus
from inventory_kernel.models.ingestion_run import IngestionRunModel
from inventory_kernel.selectors.base import BaseSelector


class IngestionRunSelector(BaseSelector[IngestionRunModel]):

    def latest_run_status(self, source_system: str) -> IngestionRunStatus | None:
        """Most recent run of ``source_system`` (None if it never ran)."""
        row = self.session.execute(
            select(IngestionRunModel)
            .where(IngestionRunModel.source_system == source_system)
            .order_by(IngestionRunModel.started_at.desc(), IngestionRunModel.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return row.to_status() if row is not None else None

    def recent_runs(self, limit: int = 20) -> list[IngestionRunStatus]:
        rows = self.session.execute(
            select(IngestionRunModel)
            .order_by(IngestionRunModel.started_at.desc())
            .limit(limit)
        ).scalars()
        return [row.to_status() for row in rows]
