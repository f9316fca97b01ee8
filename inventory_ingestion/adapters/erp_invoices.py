"""
ERP invoice adapters (stock IN for the agency being invoiced).

Contract:
    An invoice belongs to an agency when its partner name equals the
    agency's display name after trimming and case-folding.  There is no
    fuzzy matching at this level; fuzzy matching is only for products.

    ``ExternalInvoiceAdapter`` and ``MirroredInvoiceAdapter`` read the same
    shape but carry different source tags, so running both over the same
    underlying invoice during a migration never collides on the dedup key.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from inventory_ingestion.adapters.base import AgencyRef, FetchResult
from inventory_ingestion.adapters.decoding import decode_lines
from inventory_ingestion.adapters.readers import InvoiceRowReader, TableInvoiceReader
from inventory_ingestion.models.sources import ExternalInvoiceModel, MirroredInvoiceModel
from inventory_kernel.domain.types import SourceRecord, TransactionType
from inventory_kernel.logging_config import get_logger

logger = get_logger("ingestion.adapters.erp")

EXTERNAL_ERP_SOURCE = "external_erp"
MIRRORED_ERP_SOURCE = "mirrored_erp"


def partner_key(name: str | None) -> str:
    return (name or "").strip().casefold()


class ExternalInvoiceAdapter:
    """Invoices from the third-party ERP export."""

    def __init__(
        self,
        reader: InvoiceRowReader | None = None,
        source_system: str = EXTERNAL_ERP_SOURCE,
    ):
        self._source_system = source_system
        self._reader = reader or TableInvoiceReader(ExternalInvoiceModel, source_system)

    @property
    def source_system(self) -> str:
        return self._source_system

    @property
    def transaction_type(self) -> TransactionType:
        return TransactionType.EXTERNAL_INVOICE

    @property
    def reader(self) -> InvoiceRowReader:
        return self._reader

    def fetch(self, session: Session, agencies: Sequence[AgencyRef]) -> FetchResult:
        by_partner = {partner_key(a.display_name): a for a in agencies if partner_key(a.display_name)}
        rows = self._reader.read_rows(session)

        records: list[SourceRecord] = []
        for row in rows:
            agency = by_partner.get(partner_key(row.partner_name))
            if agency is None:
                continue
            lines, malformed = decode_lines(row.lines, row.external_id)
            records.append(SourceRecord(
                external_id=row.external_id,
                agency_id=agency.agency_id,
                reference_name=f"External Invoice - {row.partner_name.strip()}",
                transaction_date=row.date_order,
                lines=lines,
                malformed_lines=malformed,
            ))

        logger.info(
            "erp_invoices_fetched",
            extra={
                "source_system": self._source_system,
                "location": self._reader.location,
                "rows_read": len(rows),
                "records_for_agencies": len(records),
            },
        )
        return FetchResult(records=tuple(records), records_fetched=len(rows))


class MirroredInvoiceAdapter(ExternalInvoiceAdapter):
    """Invoices from the locally replicated copy of the ERP export."""

    def __init__(
        self,
        reader: InvoiceRowReader | None = None,
        source_system: str = MIRRORED_ERP_SOURCE,
    ):
        super().__init__(
            reader=reader or TableInvoiceReader(MirroredInvoiceModel, source_system),
            source_system=source_system,
        )
