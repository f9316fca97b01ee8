"""Tests for the per-origin source adapters and the adapter registry."""

import pytest

from inventory_ingestion.adapters.base import AdapterRegistry, AgencyRef
from inventory_ingestion.adapters.erp_invoices import (
    ExternalInvoiceAdapter,
    MirroredInvoiceAdapter,
    partner_key,
)
from inventory_ingestion.adapters.local_sales import LocalSalesAdapter
from inventory_ingestion.adapters.returns import CompanyReturnAdapter, CustomerReturnAdapter
from inventory_ingestion.models.sources import MirroredInvoiceModel
from inventory_kernel.domain.types import TransactionType
from inventory_kernel.exceptions import UnknownSourceError


class TestErpInvoiceAdapter:

    def test_partner_key(self):
        assert partner_key("  Lagos OUTLET ") == "lagos outlet"
        assert partner_key(None) == ""

    def test_filters_by_partner_name(self, session, create_agency, create_erp_invoice):
        agency = create_agency()
        create_erp_invoice("INV-1", "LAGOS OUTLET", [{"name": "Solace", "qty": 2}])
        create_erp_invoice("INV-2", "Lagos Outlet Annex", [{"name": "Solace", "qty": 2}])
        create_erp_invoice("INV-3", "Abuja Hub", [{"name": "Solace", "qty": 2}])

        result = ExternalInvoiceAdapter().fetch(session, [agency])

        assert result.records_fetched == 3
        assert [r.external_id for r in result.records] == ["INV-1"]
        record = result.records[0]
        assert record.agency_id == "AG-1"
        assert record.reference_name == "External Invoice - LAGOS OUTLET"
        assert record.lines[0].quantity == 2

    def test_malformed_lines_reported(self, session, create_agency, create_erp_invoice):
        agency = create_agency()
        create_erp_invoice("INV-1", "Lagos Outlet", [{"name": "Solace", "qty": 1}, {"name": "Bad"}])
        record = ExternalInvoiceAdapter().fetch(session, [agency]).records[0]
        assert len(record.lines) == 1
        assert len(record.malformed_lines) == 1

    def test_mirror_reads_its_own_table_and_tag(self, session, create_agency, create_erp_invoice):
        agency = create_agency()
        create_erp_invoice("INV-1", "Lagos Outlet", [{"name": "Solace", "qty": 1}])
        create_erp_invoice("INV-M", "Lagos Outlet", [{"name": "Solace", "qty": 1}], model=MirroredInvoiceModel)

        adapter = MirroredInvoiceAdapter()
        result = adapter.fetch(session, [agency])

        assert adapter.source_system == "mirrored_erp"
        assert adapter.transaction_type is TransactionType.EXTERNAL_INVOICE
        assert [r.external_id for r in result.records] == ["INV-M"]


class TestLocalSalesAdapter:

    def test_fetches_agency_invoices(self, session, create_agency, create_sales_invoice):
        agency = create_agency()
        create_agency("AG-2", "Abuja Hub")
        create_sales_invoice("S1", "AG-1", [
            {"product_name": "Solace", "quantity": 2, "color": "Black", "size": "42"},
            {"product_name": "", "quantity": 1},
        ])
        create_sales_invoice("S2", "AG-2", [{"product_name": "Tote", "quantity": 1}])

        result = LocalSalesAdapter().fetch(session, [agency])

        assert [r.external_id for r in result.records] == ["S1"]
        record = result.records[0]
        assert record.reference_name == "Sales Invoice - INV-S1"
        assert [(l.raw_product_name, l.color, l.size) for l in record.lines] == [("Solace", "Black", "42")]
        assert len(record.malformed_lines) == 1

    def test_no_agencies(self, session):
        assert LocalSalesAdapter().fetch(session, []).records == ()


class TestReturnAdapters:

    def test_customer_returns_only_processed(self, session, create_agency, create_return):
        agency = create_agency()
        create_return("R1", "AG-1", items=[{"product_name": "Solace", "quantity": 1}])
        create_return("R2", "AG-1", status="pending", items=[{"product_name": "Solace", "quantity": 1}])
        create_return(
            "R3", "AG-1", customer_id=None, customer_name="Company Return",
            items=[{"product_name": "Solace", "quantity": 5}],
        )

        adapter = CustomerReturnAdapter()
        result = adapter.fetch(session, [agency])

        assert adapter.transaction_type is TransactionType.CUSTOMER_RETURN
        assert [r.external_id for r in result.records] == ["R1"]
        assert result.records[0].reference_name == "Customer Return - damaged"

    def test_company_returns(self, session, create_agency, create_return):
        agency = create_agency()
        create_return("R1", "AG-1", items=[{"product_name": "Solace", "quantity": 1}])
        create_return(
            "R3", "AG-1", status="pending", customer_id=None, customer_name="Company Return",
            items=[{"product_name": "Solace", "quantity": 5}],
        )
        # Named like a company return but tied to a customer
        create_return("R4", "AG-1", customer_id="CUST-9", customer_name="Company Return")

        adapter = CompanyReturnAdapter()
        result = adapter.fetch(session, [agency])

        assert adapter.transaction_type is TransactionType.COMPANY_RETURN
        assert [r.external_id for r in result.records] == ["R3"]
        assert result.records[0].lines[0].quantity == 5

    def test_lines_fall_back_to_invoice_items(
        self, session, create_agency, create_sales_invoice, create_return,
    ):
        agency = create_agency()
        create_sales_invoice("S1", "AG-1", [{"product_name": "Canvas Tote", "quantity": 2}])
        create_return("R1", "AG-1", invoice_id="S1")

        record = CustomerReturnAdapter().fetch(session, [agency]).records[0]
        assert [l.raw_product_name for l in record.lines] == ["Canvas Tote"]


class TestAdapterRegistry:

    def test_register_and_get(self):
        registry = AdapterRegistry()
        adapter = LocalSalesAdapter()
        registry.register(adapter)
        assert registry.get("local_sales") is adapter
        assert "local_sales" in registry
        assert len(registry) == 1

    def test_duplicate_tag(self):
        registry = AdapterRegistry()
        registry.register(LocalSalesAdapter())
        with pytest.raises(ValueError):
            registry.register(LocalSalesAdapter())

    def test_unknown_tag(self):
        with pytest.raises(UnknownSourceError) as exc_info:
            AdapterRegistry().get("nope")
        assert exc_info.value.source_system == "nope"


def test_agency_ref_is_hashable():
    assert len({AgencyRef("AG-1", "x"), AgencyRef("AG-1", "x")}) == 1
