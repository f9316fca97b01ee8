"""
inventory-recon -- command-line entry point.

Usage:
    inventory-recon init-db
    inventory-recon ingest --source external_erp [--source local_sales] [--agency AG-1]
    inventory-recon stock --agency AG-1 [--summary]
    inventory-recon unmatched [--agency AG-1]
    inventory-recon approve ADJUSTMENT_ID --reviewer REVIEWER_ID
    inventory-recon reject ADJUSTMENT_ID --reviewer REVIEWER_ID [--reason TEXT]
    inventory-recon achievement --customer NAME --months Q1 --year 2024 --category Shoes
    inventory-recon status --source external_erp

Every command prints JSON on stdout.  Exit status is 0 on success, 1 when
a source run failed or a review changed nothing, 2 on usage/config errors.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any
from uuid import UUID

from inventory_config import get_active_config
from inventory_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.domain.types import RunStatus
from inventory_kernel.exceptions import InventoryKernelError
from inventory_kernel.logging_config import configure_logging
from inventory_services.engine import ReconciliationEngine, build_runner


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {k: _jsonable(v) for k, v in dataclasses.asdict(value).items()}
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _print(payload: Any) -> None:
    print(json.dumps(_jsonable(payload), indent=2, sort_keys=True, default=str))


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="inventory-recon", description="Inventory reconciliation")
    p.add_argument("--config", type=Path, default=None, help="YAML override for defaults.yaml")
    p.add_argument("--database-url", default=None, help="Overrides database.url from config")
    p.add_argument("--log-level", default="WARNING", help="Log level for JSON logs on stderr")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables")

    ingest = sub.add_parser("ingest", help="Run one or more sources")
    ingest.add_argument("--source", action="append", required=True, dest="sources")
    ingest.add_argument("--agency", default=None)

    stock = sub.add_parser("stock", help="Current stock for an agency")
    stock.add_argument("--agency", required=True)
    stock.add_argument("--summary", action="store_true", help="Include in/out totals and dates")
    stock.add_argument("--hide-zero", action="store_true")

    unmatched = sub.add_parser("unmatched", help="Unmatched products by category")
    unmatched.add_argument("--agency", default=None)

    for name in ("approve", "reject"):
        review = sub.add_parser(name, help=f"{name.capitalize()} an adjustment request")
        review.add_argument("adjustment_id", type=UUID)
        review.add_argument("--reviewer", type=UUID, required=True)
        if name == "reject":
            review.add_argument("--reason", default=None)

    ach = sub.add_parser("achievement", help="Sales per category for a customer")
    ach.add_argument("--customer", required=True)
    ach.add_argument("--months", default=None, help="e.g. '07,08,09', 'Q3', 'July August'")
    ach.add_argument("--year", type=int, required=True)
    ach.add_argument("--category", action="append", required=True, dest="categories")

    status = sub.add_parser("status", help="Latest run of a source")
    status.add_argument("--source", required=True)

    return p.parse_args(argv)


def _run(args: argparse.Namespace) -> int:
    config = get_active_config(args.config)
    init_engine_from_url(args.database_url or config.database.url, echo=config.database.echo)
    register_immutability_listeners()

    if args.command == "init-db":
        create_tables()
        _print({"status": "ok"})
        return 0

    if args.command == "ingest":
        runner = build_runner(get_session_factory(), config)
        summaries = runner.run_sources(args.sources, agency_scope=args.agency)
        _print([s.to_dict() for s in summaries])
        return 1 if any(s.status is RunStatus.FAILED for s in summaries) else 0

    with session_scope() as session:
        engine = ReconciliationEngine.from_session(session, config=config)

        if args.command == "stock":
            if args.summary:
                rows = engine.stock_summary(args.agency)
                if args.hide_zero:
                    rows = [r for r in rows if r.current_stock != 0]
                _print(rows)
            else:
                levels = engine.stock_levels(args.agency, include_zero=not args.hide_zero)
                _print([
                    {
                        "product_name": s.product_name,
                        "color": s.color,
                        "size": s.size,
                        "current_stock": s.current_stock,
                    }
                    for s in levels
                ])
            return 0

        if args.command == "unmatched":
            _print(engine.unmatched_summary(args.agency))
            return 0

        if args.command == "approve":
            ok = engine.approve_adjustment(args.adjustment_id, args.reviewer)
            _print({"adjustment_id": args.adjustment_id, "approved": ok})
            return 0 if ok else 1

        if args.command == "reject":
            ok = engine.reject_adjustment(args.adjustment_id, args.reviewer, args.reason)
            _print({"adjustment_id": args.adjustment_id, "rejected": ok})
            return 0 if ok else 1

        if args.command == "achievement":
            rows = engine.compute_achievement(
                args.customer, args.months, args.year, args.categories,
            )
            _print(rows)
            return 0

        # status
        _print(engine.latest_run_status(args.source))
        return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(level=getattr(logging, str(args.log_level).upper(), logging.WARNING))
    try:
        return _run(args)
    except InventoryKernelError as exc:
        _print({"error": exc.code, "message": str(exc)})
        return 2


if __name__ == "__main__":
    sys.exit(main())
