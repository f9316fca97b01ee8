"""
Return adapters.

    CustomerReturnAdapter   processed returns from customers   stock IN
    CompanyReturnAdapter    agency returning goods to company  stock OUT

A company return has no customer id and the configured company customer
name ("Company Return" by default).  Every other return is a customer
return and is only picked up once it reaches the processed status.  Lines
come from the return's own items when it has any, otherwise from the
original sale's items.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import and_, not_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from inventory_ingestion.adapters.base import AgencyRef, FetchResult
from inventory_ingestion.adapters.local_sales import decode_items
from inventory_ingestion.models.sources import SalesInvoiceModel, SalesReturnModel
from inventory_kernel.domain.types import SourceRecord, TransactionType
from inventory_kernel.exceptions import SourceUnavailableError
from inventory_kernel.logging_config import get_logger

logger = get_logger("ingestion.adapters.returns")

CUSTOMER_RETURNS_SOURCE = "customer_returns"
COMPANY_RETURNS_SOURCE = "company_returns"
DEFAULT_COMPANY_RETURN_NAME = "Company Return"
DEFAULT_PROCESSED_STATUS = "processed"


class _ReturnAdapter:
    """Shared fetch loop; subclasses supply the filter and labels."""

    _transaction_type: TransactionType
    _reference_label: str

    def __init__(
        self,
        source_system: str,
        company_return_name: str = DEFAULT_COMPANY_RETURN_NAME,
        processed_status: str = DEFAULT_PROCESSED_STATUS,
    ):
        self._source_system = source_system
        self._company_return_name = company_return_name
        self._processed_status = processed_status

    @property
    def source_system(self) -> str:
        return self._source_system

    @property
    def transaction_type(self) -> TransactionType:
        return self._transaction_type

    def _is_company_return(self):
        return and_(
            SalesReturnModel.customer_id.is_(None),
            SalesReturnModel.customer_name == self._company_return_name,
        )

    def _filter(self):
        raise NotImplementedError

    def fetch(self, session: Session, agencies: Sequence[AgencyRef]) -> FetchResult:
        agency_ids = [a.agency_id for a in agencies]
        if not agency_ids:
            return FetchResult(records=(), records_fetched=0)

        stmt = (
            select(SalesReturnModel)
            .where(SalesReturnModel.agency_id.in_(agency_ids), self._filter())
            .options(
                selectinload(SalesReturnModel.items),
                selectinload(SalesReturnModel.invoice).selectinload(SalesInvoiceModel.items),
            )
            .order_by(SalesReturnModel.return_date, SalesReturnModel.id)
        )
        try:
            with session.begin_nested():
                returns = session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise SourceUnavailableError(self._source_system, str(exc)) from exc

        records = []
        for ret in returns:
            items = ret.items
            if not items and ret.invoice is not None:
                items = ret.invoice.items
            lines, malformed = decode_items(items, ret.id)
            records.append(SourceRecord(
                external_id=ret.id,
                agency_id=ret.agency_id,
                reference_name=f"{self._reference_label} - {ret.reason or ret.customer_name}",
                transaction_date=ret.return_date,
                lines=lines,
                malformed_lines=malformed,
            ))

        logger.info(
            "returns_fetched",
            extra={"source_system": self._source_system, "returns": len(records)},
        )
        return FetchResult(records=tuple(records), records_fetched=len(records))


class CustomerReturnAdapter(_ReturnAdapter):
    _transaction_type = TransactionType.CUSTOMER_RETURN
    _reference_label = "Customer Return"

    def __init__(
        self,
        source_system: str = CUSTOMER_RETURNS_SOURCE,
        company_return_name: str = DEFAULT_COMPANY_RETURN_NAME,
        processed_status: str = DEFAULT_PROCESSED_STATUS,
    ):
        super().__init__(source_system, company_return_name, processed_status)

    def _filter(self):
        return and_(
            SalesReturnModel.status == self._processed_status,
            not_(self._is_company_return()),
        )


class CompanyReturnAdapter(_ReturnAdapter):
    _transaction_type = TransactionType.COMPANY_RETURN
    _reference_label = "Company Return"

    def __init__(
        self,
        source_system: str = COMPANY_RETURNS_SOURCE,
        company_return_name: str = DEFAULT_COMPANY_RETURN_NAME,
        processed_status: str = DEFAULT_PROCESSED_STATUS,
    ):
        super().__init__(source_system, company_return_name, processed_status)

    def _filter(self):
        return self._is_company_return()
