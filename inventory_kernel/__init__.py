"""
inventory_kernel -- stock ledger core for the inventory reconciliation engine.

Layers (inner to outer):
    domain/     pure types, text normalization, scoring, period parsing (ZERO I/O)
    db/         declarative base, engine/session management, immutability listeners
    models/     ORM models for the ledger, adjustment requests and run log
    selectors/  read-only queries (derived stock, summaries, run status)
    services/   ledger writer, adjustment workflow, achievement calculator
"""
