"""
Catalog snapshot and agency directory readers.

The catalog is owned by the catalog UI; ingestion reads it once per run and
agency and hands the matcher an immutable, id-ordered tuple.  An agency sees
the shared products (``agency_id`` NULL) plus its own.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from inventory_ingestion.adapters.base import AgencyRef
from inventory_ingestion.models.sources import AgencyModel, CatalogProductModel
from inventory_kernel.domain.types import CatalogProduct


@runtime_checkable
class CatalogReader(Protocol):
    def snapshot(self, session: Session, agency_id: str) -> tuple[CatalogProduct, ...]: ...


def _variants(value: object) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(str(v).strip() for v in value if str(v).strip())


def catalog_product_from_model(model: CatalogProductModel) -> CatalogProduct:
    return CatalogProduct(
        id=model.id,
        name=model.name,
        category=model.category or "",
        sub_category=model.sub_category or "",
        colors=_variants(model.colors),
        sizes=_variants(model.sizes),
    )


class TableCatalogReader:
    """Active catalog products visible to one agency."""

    def snapshot(self, session: Session, agency_id: str) -> tuple[CatalogProduct, ...]:
        rows = session.execute(
            select(CatalogProductModel)
            .where(
                CatalogProductModel.is_active.is_(True),
                or_(
                    CatalogProductModel.agency_id.is_(None),
                    CatalogProductModel.agency_id == agency_id,
                ),
            )
            .order_by(CatalogProductModel.id)
        ).scalars().all()
        return tuple(catalog_product_from_model(row) for row in rows)


class StaticCatalog:
    """Fixed in-memory catalog shared by every agency."""

    def __init__(self, products: Iterable[CatalogProduct]):
        self._products = tuple(sorted(products, key=lambda p: p.id))

    def snapshot(self, session: Session, agency_id: str) -> tuple[CatalogProduct, ...]:
        return self._products


def load_agencies(session: Session, agency_scope: str | None = None) -> list[AgencyRef]:
    """Active agencies, optionally narrowed to one agency id."""
    stmt = select(AgencyModel).where(AgencyModel.is_active.is_(True))
    if agency_scope is not None:
        stmt = stmt.where(AgencyModel.id == agency_scope)
    rows = session.execute(stmt.order_by(AgencyModel.id)).scalars().all()
    return [AgencyRef(agency_id=row.id, display_name=row.display_name) for row in rows]
