"""
ORM models for source data (read by adapters, written by other subsystems).

Contract:
    These tables belong to external collaborators: the catalog UI, the
    invoicing and returns screens, and the job that mirrors the third-party
    ERP's invoice export.  The reconciliation engine only reads them.  They
    keep the identifiers of their origin system, so each declares its own
    string ``id`` instead of the kernel's UUID key.

    ERP invoice ``order_lines`` is stored exactly as received: a JSON array,
    a single JSON object, or a JSON-encoded string.  Decoding (and tolerating
    the shapes) is the adapters' job.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base


def _new_id() -> str:
    return str(uuid4())


class AgencyModel(Base):
    """Tenant with the display name used as partner name in the ERP."""

    __tablename__ = "agencies"

    id: Mapped[str] = mapped_column(String(100), primary_key=True, default=_new_id)
    display_name: Mapped[str] = mapped_column(String(300), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class CatalogProductModel(Base):
    """Canonical catalog product; ``agency_id`` NULL means shared by all agencies."""

    __tablename__ = "catalog_products"

    __table_args__ = (Index("ix_catalog_products_agency", "agency_id"),)

    id: Mapped[str] = mapped_column(String(100), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    category: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    sub_category: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    colors: Mapped[list | None] = mapped_column(JSON, nullable=True)
    sizes: Mapped[list | None] = mapped_column(JSON, nullable=True)
    agency_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class _ErpInvoiceColumns:
    """Columns shared by the ERP export and its local mirror."""

    id: Mapped[str] = mapped_column(String(100), primary_key=True, default=_new_id)
    invoice_number: Mapped[str] = mapped_column(String(200), nullable=False)
    partner_name: Mapped[str] = mapped_column(String(300), nullable=False)
    date_order: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    amount_total: Mapped[Decimal | None] = mapped_column(nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    order_lines: Mapped[object | None] = mapped_column(JSON, nullable=True)


class ExternalInvoiceModel(_ErpInvoiceColumns, Base):
    """Invoice rows as exported by the third-party ERP."""

    __tablename__ = "erp_invoices"

    __table_args__ = (Index("ix_erp_invoices_partner", "partner_name"),)


class MirroredInvoiceModel(_ErpInvoiceColumns, Base):
    """Locally replicated copy of the ERP invoice export."""

    __tablename__ = "erp_invoices_mirror"

    __table_args__ = (Index("ix_erp_invoices_mirror_partner", "partner_name"),)


class SalesInvoiceModel(Base):
    """Invoice created locally by an agency (stock OUT)."""

    __tablename__ = "sales_invoices"

    __table_args__ = (Index("ix_sales_invoices_agency", "agency_id"),)

    id: Mapped[str] = mapped_column(String(100), primary_key=True, default=_new_id)
    agency_id: Mapped[str] = mapped_column(String(100), nullable=False)
    invoice_number: Mapped[str | None] = mapped_column(String(200), nullable=True)
    customer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    customer_name: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    invoice_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)

    items: Mapped[list["SalesInvoiceItemModel"]] = relationship(
        "SalesInvoiceItemModel",
        back_populates="invoice",
        order_by="SalesInvoiceItemModel.line_no",
    )


class SalesInvoiceItemModel(Base):
    __tablename__ = "sales_invoice_items"

    id: Mapped[str] = mapped_column(String(100), primary_key=True, default=_new_id)
    invoice_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("sales_invoices.id", ondelete="CASCADE"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    product_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    category: Mapped[str | None] = mapped_column(String(200), nullable=True)
    color: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    total: Mapped[Decimal | None] = mapped_column(nullable=True)

    invoice: Mapped[SalesInvoiceModel] = relationship(
        "SalesInvoiceModel", back_populates="items",
    )


class SalesReturnModel(Base):
    """Return header.  Company returns carry no customer id and the company name."""

    __tablename__ = "sales_returns"

    __table_args__ = (Index("ix_sales_returns_agency_status", "agency_id", "status"),)

    id: Mapped[str] = mapped_column(String(100), primary_key=True, default=_new_id)
    agency_id: Mapped[str] = mapped_column(String(100), nullable=False)
    invoice_id: Mapped[str | None] = mapped_column(
        String(100), ForeignKey("sales_invoices.id"), nullable=True,
    )
    customer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    customer_name: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    return_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    items: Mapped[list["SalesReturnItemModel"]] = relationship(
        "SalesReturnItemModel",
        back_populates="sales_return",
        order_by="SalesReturnItemModel.line_no",
    )
    invoice: Mapped[SalesInvoiceModel | None] = relationship("SalesInvoiceModel")


class SalesReturnItemModel(Base):
    """Explicit return line; when a return has none, the invoice's items apply."""

    __tablename__ = "sales_return_items"

    id: Mapped[str] = mapped_column(String(100), primary_key=True, default=_new_id)
    return_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("sales_returns.id", ondelete="CASCADE"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    product_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    category: Mapped[str | None] = mapped_column(String(200), nullable=True)
    color: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    sales_return: Mapped[SalesReturnModel] = relationship(
        "SalesReturnModel", back_populates="items",
    )
