"""Service layer: the ReconciliationEngine facade and the command-line tool."""

from inventory_services.engine import ReconciliationEngine, build_runner

__all__ = ["ReconciliationEngine", "build_runner"]
