"""
Reconciliation configuration schema.

Frozen dataclasses produced by ``inventory_config.loader`` from YAML.  The
kernel never sees these types; ``inventory_config.bridges`` translates them
into kernel inputs (MatchingPolicy, ReviewerPolicy, adapters).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///inventory.db"
    echo: bool = False


@dataclass(frozen=True)
class MatchingConfig:
    """Product matching weights and thresholds."""

    min_confidence: int = 30
    category_weight: int = 30
    exact_name_weight: int = 50
    contains_weight: int = 35
    token_weight: int = 8
    token_cap: int = 25
    min_token_length: int = 3
    color_weight: int = 10
    size_weight: int = 5
    default_variant: str = "Default"
    fallback_category: str = "General"
    similarity_threshold: float = 0.8
    code_variant_prefixes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ErpExportConfig:
    """Optional JSON export file used instead of the ERP invoice table."""

    path: str | None = None
    format: str = "array"  # array | jsonl
    json_path: str | None = None


@dataclass(frozen=True)
class IngestionConfig:
    max_concurrent_fetches: int = 5
    company_return_customer_name: str = "Company Return"
    processed_return_status: str = "processed"
    system_actor_id: UUID = UUID("00000000-0000-0000-0000-000000000001")
    erp_export: ErpExportConfig = field(default_factory=ErpExportConfig)


@dataclass(frozen=True)
class SourceTags:
    """Source tag stored on ledger rows for each origin."""

    external_erp: str = "external_erp"
    mirrored_erp: str = "mirrored_erp"
    local_sales: str = "local_sales"
    customer_returns: str = "customer_returns"
    company_returns: str = "company_returns"
    adjustment: str = "adjustment"


@dataclass(frozen=True)
class AdjustmentConfig:
    allow_positive_adjustments: bool = True
    forbid_self_review: bool = False


@dataclass(frozen=True)
class ReconciliationConfig:
    """Root configuration object returned by ``get_active_config()``."""

    config_id: str
    version: int
    checksum: str
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    sources: SourceTags = field(default_factory=SourceTags)
    adjustments: AdjustmentConfig = field(default_factory=AdjustmentConfig)
