"""Tests for MultiSourceRunner: bounded parallelism and failure isolation."""

import threading
import time
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from inventory_ingestion.adapters.base import AdapterRegistry
from inventory_ingestion.models.sources import AgencyModel, ExternalInvoiceModel
from inventory_ingestion.services.runner import MultiSourceRunner
from inventory_kernel.domain.types import RunStatus, RunSummary, StockKey, TransactionType
from inventory_kernel.exceptions import UnknownSourceError
from inventory_kernel.services.stock_ledger import StockLedgerService
from inventory_services.engine import build_runner


class _FakeAdapter:
    transaction_type = TransactionType.EXTERNAL_INVOICE

    def __init__(self, source_system):
        self.source_system = source_system

    def fetch(self, session, agencies):
        raise AssertionError("the stub orchestrator never fetches")


class _FakeSession:
    def __init__(self):
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


class _ConcurrencyTracker:
    """Orchestrator stand-in that records how many runs overlap."""

    def __init__(self, delay=0.05, failing=()):
        self._delay = delay
        self._failing = set(failing)
        self._lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def factory(self, session):
        return self

    def run(self, adapter, agency_scope=None, cancel_event=None):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self._delay)
            if adapter.source_system in self._failing:
                raise RuntimeError(f"{adapter.source_system} exploded")
            return RunSummary(source_system=adapter.source_system, status=RunStatus.COMPLETED)
        finally:
            with self._lock:
                self.active -= 1


def _registry(*sources):
    registry = AdapterRegistry()
    for source in sources:
        registry.register(_FakeAdapter(source))
    return registry


class TestMultiSourceRunner:

    def test_bounded_parallelism_and_order(self):
        tracker = _ConcurrencyTracker()
        sources = ["a", "b", "c", "d", "e"]
        runner = MultiSourceRunner(_FakeSession, _registry(*sources), tracker.factory, max_concurrent_fetches=2)

        summaries = runner.run_sources(sources)

        assert [s.source_system for s in summaries] == sources
        assert all(s.status is RunStatus.COMPLETED for s in summaries)
        assert tracker.peak <= 2

    def test_sequential_when_limit_is_one(self):
        tracker = _ConcurrencyTracker(delay=0.01)
        runner = MultiSourceRunner(_FakeSession, _registry("a", "b", "c"), tracker.factory, max_concurrent_fetches=1)
        runner.run_sources(["a", "b", "c"])
        assert tracker.peak == 1

    def test_failed_source_is_isolated(self):
        tracker = _ConcurrencyTracker(delay=0.01, failing={"b"})
        sessions = []

        def session_factory():
            session = _FakeSession()
            sessions.append(session)
            return session

        runner = MultiSourceRunner(session_factory, _registry("a", "b", "c"), tracker.factory, max_concurrent_fetches=3)
        summaries = runner.run_sources(["a", "b", "c"])

        by_source = {s.source_system: s for s in summaries}
        assert by_source["b"].status is RunStatus.FAILED
        assert by_source["b"].errors == ("RuntimeError: b exploded",)
        assert by_source["a"].status is RunStatus.COMPLETED
        assert by_source["c"].status is RunStatus.COMPLETED
        assert sum(s.committed for s in sessions) == 2
        assert sum(s.rolled_back for s in sessions) == 1
        assert all(s.closed for s in sessions)

    def test_unknown_source_raises_before_any_run(self):
        opened = []
        runner = MultiSourceRunner(lambda: opened.append(1), _registry("a"), _ConcurrencyTracker().factory)
        with pytest.raises(UnknownSourceError):
            runner.run_sources(["a", "missing"])
        assert opened == []

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            MultiSourceRunner(_FakeSession, AdapterRegistry(), _ConcurrencyTracker().factory, max_concurrent_fetches=0)


class TestRunnerAgainstDatabase:

    def test_each_source_commits_its_own_session(self, session_factory, config, clock):
        with session_factory() as seed:
            seed.add(AgencyModel(id="AG-1", display_name="Lagos Outlet"))
            seed.add(ExternalInvoiceModel(
                invoice_number="INV-1",
                partner_name="Lagos Outlet",
                date_order=datetime(2024, 9, 1, tzinfo=timezone.utc),
                order_lines=[{"name": "Canvas Tote", "qty": 4}],
            ))
            seed.commit()

        sequential = replace(config, ingestion=replace(config.ingestion, max_concurrent_fetches=1))
        runner = build_runner(session_factory, sequential, clock=clock)

        summaries = runner.run_sources(["external_erp", "local_sales"])

        assert [s.status for s in summaries] == [RunStatus.COMPLETED, RunStatus.COMPLETED]
        assert summaries[0].transactions_created == 1
        with session_factory() as check:
            stock = StockLedgerService(check).current_stock(StockKey("AG-1", "Canvas Tote"))
        assert stock == 4
