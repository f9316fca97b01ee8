"""
Tests for IngestionOrchestrator.

Covers the ERP invoice walkthrough (stock +3 for the Solace line),
idempotent re-runs, malformed lines, cancellation between records,
unavailable sources and unmatched products.
"""

import threading

import pytest

from inventory_ingestion.adapters.erp_invoices import ExternalInvoiceAdapter
from inventory_ingestion.adapters.local_sales import LocalSalesAdapter
from inventory_ingestion.adapters.readers import JsonExportReader
from inventory_ingestion.catalog import StaticCatalog
from inventory_ingestion.services.orchestrator import IngestionOrchestrator, canonical_variant
from inventory_kernel.domain.types import CatalogProduct, RunStatus, StockKey, TransactionType
from inventory_kernel.exceptions import SourceUnavailableError
from inventory_kernel.selectors.run_selector import IngestionRunSelector
from inventory_kernel.services.stock_ledger import StockLedgerService

SOLACE_LINE = {"product_id": [1, "[SB42] SOLACE-BLACK 42"], "qty_delivered": 3, "price_unit": 45}


@pytest.fixture
def solace_catalog(create_product):
    create_product("P-1", "SOLACE-BLACK 42", category="Shoes", colors=["Black"], sizes=["42"])


@pytest.fixture
def orchestrator(session, clock, actor_id):
    return IngestionOrchestrator(session, clock=clock, actor_id=actor_id)


class _UnreachableCatalog:
    def snapshot(self, session, agency_id):
        raise SourceUnavailableError("catalog", "catalog table unreachable")


class _FlakyLedger(StockLedgerService):
    def __init__(self, session, failing_external_id):
        super().__init__(session)
        self._failing_external_id = failing_external_id

    def record_exists(self, agency_id, source_system, external_id):
        if external_id == self._failing_external_id:
            raise RuntimeError("existence check lost the connection")
        return super().record_exists(agency_id, source_system, external_id)


def _stock(session, name, color="Default", size="Default", agency_id="AG-1"):
    return StockLedgerService(session).current_stock(StockKey(agency_id, name, color, size))


class TestErpInvoiceRun:

    def test_solace_invoice_adds_stock(
        self, session, orchestrator, create_agency, solace_catalog, create_erp_invoice,
    ):
        create_agency()
        create_erp_invoice("INV/2024/001", "Lagos Outlet", [SOLACE_LINE])

        summary = orchestrator.run(ExternalInvoiceAdapter())

        assert summary.status is RunStatus.COMPLETED
        assert summary.records_fetched == 1
        assert summary.records_matched_agency == 1
        assert summary.transactions_created == 1
        assert summary.products_matched == 1
        assert _stock(session, "SOLACE-BLACK 42", "Black", "42") == 3

        [tx] = StockLedgerService(session).selector.transactions_for_record(
            "AG-1", "external_erp", "INV/2024/001",
        )
        assert tx.transaction_type is TransactionType.EXTERNAL_INVOICE
        assert tx.category == "Shoes"
        assert tx.matched_product_id == "P-1"
        assert tx.match_confidence == 65
        assert tx.product_code == "SB42"
        assert tx.reference_name == "External Invoice - Lagos Outlet"

    def test_second_run_is_a_no_op(
        self, session, orchestrator, create_agency, solace_catalog, create_erp_invoice,
    ):
        create_agency()
        create_erp_invoice("INV/2024/001", "Lagos Outlet", [SOLACE_LINE])
        orchestrator.run(ExternalInvoiceAdapter())

        again = orchestrator.run(ExternalInvoiceAdapter())

        assert again.status is RunStatus.COMPLETED
        assert again.records_skipped_duplicate == 1
        assert again.transactions_created == 0
        assert _stock(session, "SOLACE-BLACK 42", "Black", "42") == 3

    def test_sale_reduces_stock(
        self, session, orchestrator, create_agency, solace_catalog,
        create_erp_invoice, create_sales_invoice,
    ):
        create_agency()
        create_erp_invoice("INV/2024/001", "Lagos Outlet", [SOLACE_LINE])
        create_sales_invoice("S1", "AG-1", [
            {"product_name": "SOLACE-BLACK 42", "quantity": 1, "color": "black", "size": "42"},
        ])

        orchestrator.run(ExternalInvoiceAdapter())
        summary = orchestrator.run(LocalSalesAdapter())

        assert summary.transactions_created == 1
        assert _stock(session, "SOLACE-BLACK 42", "Black", "42") == 2

    def test_lines_for_the_same_product_are_merged(
        self, session, orchestrator, create_agency, solace_catalog, create_erp_invoice,
    ):
        create_agency()
        create_erp_invoice("INV-1", "Lagos Outlet", [
            {"name": "[SB42] SOLACE-BLACK 42", "qty": 1},
            {"name": "SOLACE-BLACK 42", "qty": 2},
        ])

        summary = orchestrator.run(ExternalInvoiceAdapter())

        assert summary.transactions_created == 1
        [tx] = StockLedgerService(session).selector.transactions_for_record(
            "AG-1", "external_erp", "INV-1",
        )
        assert tx.signed_quantity == 3
        assert tx.notes["merged_lines"] == 2


class TestLineAndRecordFailures:

    def test_malformed_lines_are_counted_not_raised(
        self, orchestrator, create_agency, solace_catalog, create_erp_invoice, captured_logs,
    ):
        create_agency()
        create_erp_invoice("INV-1", "Lagos Outlet", [SOLACE_LINE, {"name": "Broken", "qty": 0}])
        create_erp_invoice("INV-2", "Lagos Outlet", [{"name": "Broken"}])

        summary = orchestrator.run(ExternalInvoiceAdapter())

        assert summary.status is RunStatus.COMPLETED
        assert summary.lines_malformed == 2
        assert summary.records_malformed == 1
        assert summary.transactions_created == 1
        messages = [r["message"] for r in captured_logs()]
        assert "line_item_malformed" in messages
        assert "record_malformed" in messages

    def test_unmatched_product_lands_in_general(
        self, session, orchestrator, create_agency, solace_catalog, create_erp_invoice,
    ):
        create_agency()
        create_erp_invoice("INV-1", "Lagos Outlet", [{"name": "(MW1) Mystery Widget", "qty": 4}])

        summary = orchestrator.run(ExternalInvoiceAdapter())

        assert summary.products_unmatched == 1
        [tx] = StockLedgerService(session).selector.transactions_for_record(
            "AG-1", "external_erp", "INV-1",
        )
        assert tx.product_name == "Mystery Widget"
        assert tx.category == "General"
        assert tx.matched_product_id is None
        assert (tx.color, tx.size) == ("Default", "Default")

    def test_source_unavailable_records_failed_run(
        self, session, orchestrator, create_agency, tmp_path, captured_logs,
    ):
        create_agency()
        adapter = ExternalInvoiceAdapter(
            reader=JsonExportReader(tmp_path / "missing.json", "external_erp"),
        )

        summary = orchestrator.run(adapter)

        assert summary.status is RunStatus.FAILED
        assert summary.errors
        status = IngestionRunSelector(session).latest_run_status("external_erp")
        assert status.status is RunStatus.FAILED
        assert "unavailable" in status.message
        assert any(r["message"] == "source_unavailable" for r in captured_logs())

    def test_unreadable_catalog_still_records_lines(
        self, session, clock, actor_id, create_agency, create_erp_invoice, captured_logs,
    ):
        create_agency()
        create_erp_invoice("INV-1", "Lagos Outlet", [SOLACE_LINE])
        orch = IngestionOrchestrator(
            session, catalog=_UnreachableCatalog(), clock=clock, actor_id=actor_id,
        )

        summary = orch.run(ExternalInvoiceAdapter())

        assert summary.status is RunStatus.COMPLETED
        assert summary.transactions_created == 1
        assert summary.products_unmatched == 1
        assert any("catalog table unreachable" in e for e in summary.errors)
        [tx] = StockLedgerService(session).selector.transactions_for_record(
            "AG-1", "external_erp", "INV-1",
        )
        assert tx.category == "General"
        assert tx.matched_product_id is None
        assert any(r["message"] == "catalog_unavailable" for r in captured_logs())

    def test_failing_record_does_not_stop_the_next(
        self, session, clock, actor_id, create_agency, solace_catalog, create_erp_invoice,
    ):
        create_agency()
        create_erp_invoice("INV-1", "Lagos Outlet", [SOLACE_LINE])
        create_erp_invoice("INV-2", "Lagos Outlet", [SOLACE_LINE])
        ledger = _FlakyLedger(session, failing_external_id="INV-1")
        orch = IngestionOrchestrator(session, ledger=ledger, clock=clock, actor_id=actor_id)

        summary = orch.run(ExternalInvoiceAdapter())

        assert summary.status is RunStatus.COMPLETED
        assert summary.records_failed == 1
        assert summary.transactions_created == 1
        assert summary.errors == ("INV-1: existence check lost the connection",)
        assert _stock(session, "SOLACE-BLACK 42", "Black", "42") == 3
        status = IngestionRunSelector(session).latest_run_status("external_erp")
        assert status.status is RunStatus.COMPLETED


class TestScopeAndCancellation:

    def test_cancel_between_records(
        self, session, orchestrator, create_agency, solace_catalog, create_erp_invoice,
    ):
        create_agency()
        create_erp_invoice("INV-1", "Lagos Outlet", [SOLACE_LINE])
        cancel = threading.Event()
        cancel.set()

        summary = orchestrator.run(ExternalInvoiceAdapter(), cancel_event=cancel)

        assert summary.status is RunStatus.CANCELLED
        assert summary.transactions_created == 0
        status = IngestionRunSelector(session).latest_run_status("external_erp")
        assert status.status is RunStatus.CANCELLED

        resumed = orchestrator.run(ExternalInvoiceAdapter())
        assert resumed.transactions_created == 1

    def test_agency_scope(
        self, session, orchestrator, create_agency, solace_catalog, create_erp_invoice,
    ):
        create_agency()
        create_agency("AG-2", "Abuja Hub")
        create_erp_invoice("INV-1", "Lagos Outlet", [SOLACE_LINE])
        create_erp_invoice("INV-2", "Abuja Hub", [SOLACE_LINE])

        summary = orchestrator.run(ExternalInvoiceAdapter(), agency_scope="AG-2")

        assert summary.records_matched_agency == 1
        assert _stock(session, "SOLACE-BLACK 42", "Black", "42", agency_id="AG-2") == 3
        assert _stock(session, "SOLACE-BLACK 42", "Black", "42", agency_id="AG-1") == 0

    def test_static_catalog(self, session, clock, actor_id, create_agency, create_erp_invoice):
        create_agency()
        create_erp_invoice("INV-1", "Lagos Outlet", [{"name": "Canvas Tote", "qty": 1}])
        catalog = StaticCatalog([CatalogProduct(id="T-1", name="Canvas Tote", category="Bags")])

        orch = IngestionOrchestrator(session, catalog=catalog, clock=clock, actor_id=actor_id)
        orch.run(ExternalInvoiceAdapter())

        [tx] = StockLedgerService(session).selector.transactions_for_record(
            "AG-1", "external_erp", "INV-1",
        )
        assert tx.category == "Bags"


def test_canonical_variant():
    assert canonical_variant(" black ", ("Black", "White")) == "Black"
    assert canonical_variant("Teal", ("Black",)) == "Teal"
