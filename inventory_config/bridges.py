"""
Config -> Kernel/Ingestion bridges.

Functions that turn a ReconciliationConfig into the inputs the kernel and
ingestion layers take.  They live here because neither of those layers may
import inventory_config.

Usage:
    from inventory_config.bridges import build_adapter_registry, matching_policy_from_config

    config = get_active_config()
    policy = matching_policy_from_config(config)
    registry = build_adapter_registry(config)
"""

from __future__ import annotations

from pathlib import Path

from inventory_config.schema import ReconciliationConfig
from inventory_ingestion.adapters.base import AdapterRegistry
from inventory_ingestion.adapters.erp_invoices import (
    ExternalInvoiceAdapter,
    MirroredInvoiceAdapter,
)
from inventory_ingestion.adapters.local_sales import LocalSalesAdapter
from inventory_ingestion.adapters.readers import (
    InvoiceRowReader,
    JsonExportReader,
    TableInvoiceReader,
)
from inventory_ingestion.adapters.returns import CompanyReturnAdapter, CustomerReturnAdapter
from inventory_ingestion.models.sources import ExternalInvoiceModel
from inventory_kernel.domain.scoring import MatchingPolicy
from inventory_kernel.services.adjustment_service import (
    AllowAllReviewers,
    ReviewerPolicy,
    SeparationOfDutiesPolicy,
)


def matching_policy_from_config(config: ReconciliationConfig) -> MatchingPolicy:
    m = config.matching
    return MatchingPolicy(
        min_confidence=m.min_confidence,
        category_weight=m.category_weight,
        exact_name_weight=m.exact_name_weight,
        contains_weight=m.contains_weight,
        token_weight=m.token_weight,
        token_cap=m.token_cap,
        min_token_length=m.min_token_length,
        color_weight=m.color_weight,
        size_weight=m.size_weight,
        default_variant=m.default_variant,
        fallback_category=m.fallback_category,
        code_variant_prefixes=dict(m.code_variant_prefixes),
    )


def reviewer_policy_from_config(config: ReconciliationConfig) -> ReviewerPolicy:
    if config.adjustments.forbid_self_review:
        return SeparationOfDutiesPolicy()
    return AllowAllReviewers()


def external_invoice_reader(config: ReconciliationConfig) -> InvoiceRowReader:
    """The ERP export file when one is configured, otherwise the ERP table."""
    export = config.ingestion.erp_export
    tag = config.sources.external_erp
    if export.path:
        return JsonExportReader(
            Path(export.path), tag, fmt=export.format, json_path=export.json_path,
        )
    return TableInvoiceReader(ExternalInvoiceModel, tag)


def build_adapter_registry(config: ReconciliationConfig) -> AdapterRegistry:
    """One adapter per configured source tag (adjustments are not an adapter)."""
    tags = config.sources
    ingestion = config.ingestion
    registry = AdapterRegistry()
    registry.register(ExternalInvoiceAdapter(
        reader=external_invoice_reader(config), source_system=tags.external_erp,
    ))
    registry.register(MirroredInvoiceAdapter(source_system=tags.mirrored_erp))
    registry.register(LocalSalesAdapter(source_system=tags.local_sales))
    registry.register(CustomerReturnAdapter(
        source_system=tags.customer_returns,
        company_return_name=ingestion.company_return_customer_name,
        processed_status=ingestion.processed_return_status,
    ))
    registry.register(CompanyReturnAdapter(
        source_system=tags.company_returns,
        company_return_name=ingestion.company_return_customer_name,
        processed_status=ingestion.processed_return_status,
    ))
    return registry
