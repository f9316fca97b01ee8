"""Ingestion services: per-source orchestrator and multi-source runner."""

from inventory_ingestion.services.orchestrator import IngestionOrchestrator
from inventory_ingestion.services.runner import MultiSourceRunner

__all__ = ["IngestionOrchestrator", "MultiSourceRunner"]
