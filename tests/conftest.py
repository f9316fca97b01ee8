"""
Pytest fixtures for the inventory reconciliation test suite.

Provides:
- In-memory SQLite engine and session per test (tables created fresh)
- Deterministic clock and the default configuration
- Factories for agencies, catalog products and source documents
- Captured structured logs

SQLite runs through a single StaticPool connection with SQLAlchemy owning
BEGIN, so SAVEPOINTs nest the same way they do on PostgreSQL.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from inventory_config.loader import load_config
from inventory_ingestion.adapters.base import AgencyRef
from inventory_ingestion.models.sources import (
    AgencyModel,
    CatalogProductModel,
    ExternalInvoiceModel,
    SalesInvoiceItemModel,
    SalesInvoiceModel,
    SalesReturnItemModel,
    SalesReturnModel,
)
from inventory_kernel.db.base import Base
from inventory_kernel.db.engine import enable_sqlite_savepoints, import_all_models
from inventory_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

TEST_ACTOR_ID = uuid4()
FIXED_NOW = datetime(2024, 10, 1, 9, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.run(...)
            logs = captured_logs()
            assert any(r["message"] == "ingestion_run_started" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(eng)
    import_all_models()
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Session:
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def clock():
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def actor_id():
    return TEST_ACTOR_ID


# =============================================================================
# Source data factories
# =============================================================================


@pytest.fixture
def create_agency(session):
    def _create(agency_id: str = "AG-1", display_name: str = "Lagos Outlet", is_active: bool = True):
        session.add(AgencyModel(id=agency_id, display_name=display_name, is_active=is_active))
        session.flush()
        return AgencyRef(agency_id=agency_id, display_name=display_name)

    return _create


@pytest.fixture
def create_product(session):
    def _create(
        product_id: str,
        name: str,
        category: str = "Shoes",
        sub_category: str = "",
        colors=None,
        sizes=None,
        agency_id: str | None = None,
        is_active: bool = True,
    ):
        model = CatalogProductModel(
            id=product_id,
            name=name,
            category=category,
            sub_category=sub_category,
            colors=colors,
            sizes=sizes,
            agency_id=agency_id,
            is_active=is_active,
        )
        session.add(model)
        session.flush()
        return model

    return _create


@pytest.fixture
def create_erp_invoice(session):
    def _create(
        invoice_number: str,
        partner_name: str,
        order_lines,
        date_order: datetime = FIXED_NOW,
        model=ExternalInvoiceModel,
    ):
        row = model(
            invoice_number=invoice_number,
            partner_name=partner_name,
            date_order=date_order,
            order_lines=order_lines,
            state="posted",
        )
        session.add(row)
        session.flush()
        return row

    return _create


@pytest.fixture
def create_sales_invoice(session):
    def _create(invoice_id: str, agency_id: str, items: list[dict], customer_name: str = "Walk-in"):
        invoice = SalesInvoiceModel(
            id=invoice_id,
            agency_id=agency_id,
            invoice_number=f"INV-{invoice_id}",
            customer_id=str(uuid4()),
            customer_name=customer_name,
            invoice_date=FIXED_NOW,
            status="paid",
        )
        session.add(invoice)
        for i, item in enumerate(items):
            session.add(SalesInvoiceItemModel(
                invoice_id=invoice_id,
                line_no=i,
                product_name=item["product_name"],
                category=item.get("category"),
                color=item.get("color"),
                size=item.get("size"),
                quantity=Decimal(str(item["quantity"])),
                unit_price=Decimal(str(item.get("unit_price", 0))),
            ))
        session.flush()
        return invoice

    return _create


@pytest.fixture
def create_return(session):
    def _create(
        return_id: str,
        agency_id: str,
        status: str = "processed",
        customer_id: str | None = "CUST-1",
        customer_name: str = "Ada",
        invoice_id: str | None = None,
        items: list[dict] | None = None,
    ):
        ret = SalesReturnModel(
            id=return_id,
            agency_id=agency_id,
            invoice_id=invoice_id,
            customer_id=customer_id,
            customer_name=customer_name,
            reason="damaged",
            status=status,
            return_date=FIXED_NOW,
        )
        session.add(ret)
        for i, item in enumerate(items or []):
            session.add(SalesReturnItemModel(
                return_id=return_id,
                line_no=i,
                product_name=item["product_name"],
                quantity=Decimal(str(item["quantity"])),
                unit_price=Decimal(str(item.get("unit_price", 0))),
            ))
        session.flush()
        return ret

    return _create
