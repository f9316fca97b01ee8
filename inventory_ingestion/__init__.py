"""
inventory_ingestion -- source adapters and the ingestion orchestrator.

    models/     ORM mirrors of the tables the adapters read (agencies, catalog,
                ERP invoices and their local mirror, sales invoices, returns)
    adapters/   one adapter per origin, translating native rows into SourceRecords
    services/   orchestrator (dedup + match + append), multi-source runner,
                achievement line source, cross-source comparison
"""
