"""
Worker reconciliation: batch run
================================

Builds the four output relations of one run from a staging snapshot and
publishes them together:

  freelancer_master       eligible workers + portal/ERP status flags
  enriched_profile        canonical bank account, billing address, doc flags
  reconciled_invoices     portal invoices matched to the ERP ledger
  reconciliation_checks   audit rows (pass / warn / fail)

A run is all-or-nothing: any exception or a failing check aborts before
anything is written.

Usage
-----
    # From staging files under DATA_RAW
    python -m workerrecon.compute.pipeline

    # Straight from the warehouse
    python -m workerrecon.compute.pipeline --from-db

    # Dry run: compute and report, write nothing
    python -m workerrecon.compute.pipeline --dry-run

    # Also COPY the published outputs into Postgres
    python -m workerrecon.compute.pipeline --load-postgres
"""
from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

import polars as pl

from workerrecon import config
from workerrecon.compute import invoice_reconciliation, profile_assembly
from workerrecon.load.publish import publish


class ReconciliationCheckFailed(RuntimeError):
    pass


def run_from_frames(
    relations: dict[str, pl.DataFrame],
    out_dir: Path = config.OUTPUT_DIR,
    dry_run: bool = False,
) -> dict[str, pl.DataFrame]:
    """
    Run the full pipeline on pre-loaded relations and return the outputs.
    Publishes to *out_dir* unless *dry_run*.
    """
    print(f"[pipeline] Starting reconciliation run — {datetime.now(timezone.utc).isoformat()}")

    master, profile = profile_assembly.run(relations)
    reconciled, checks = invoice_reconciliation.run(relations)

    outputs = {
        "freelancer_master": master,
        "enriched_profile": profile,
        "reconciled_invoices": reconciled,
        "reconciliation_checks": checks,
    }

    failed = checks.filter(pl.col("status") == "fail")
    if not failed.is_empty():
        msgs = "; ".join(f"{r['check']}: {r['message']}" for r in failed.iter_rows(named=True))
        raise ReconciliationCheckFailed(f"Reconciliation checks failed, nothing published ({msgs})")

    if dry_run:
        print("[pipeline] Dry run — skipping publish.")
        for name, df in outputs.items():
            print(f"  {name}: {len(df):,} rows")
    else:
        publish(outputs, out_dir)

    print(f"[pipeline] Done — {datetime.now(timezone.utc).isoformat()}")
    return outputs


def run(
    raw_dir: Path = config.RAW,
    out_dir: Path = config.OUTPUT_DIR,
    from_db: bool = False,
    dry_run: bool = False,
) -> dict[str, pl.DataFrame]:
    if from_db:
        from workerrecon.ingest.pg_source import get_pg_conn, load_relations_from_pg

        conn = get_pg_conn()
        try:
            relations = load_relations_from_pg(conn)
        finally:
            conn.close()
    else:
        from workerrecon.ingest.staging_ingest import load_relations

        relations = load_relations(raw_dir)
    return run_from_frames(relations, out_dir=out_dir, dry_run=dry_run)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Build the worker profile and ERP invoice reconciliation outputs."
    )
    parser.add_argument("--raw-dir", type=Path, default=config.RAW,
                        help="Directory holding <relation>.parquet/.csv staging files.")
    parser.add_argument("--out-dir", type=Path, default=config.OUTPUT_DIR,
                        help="Directory the outputs are published to.")
    parser.add_argument("--from-db", action="store_true",
                        help="Read staging relations from Postgres instead of files.")
    parser.add_argument("--dry-run", action="store_true",
                        help="Compute and report but do not publish.")
    parser.add_argument("--load-postgres", action="store_true",
                        help="COPY the published outputs into Postgres afterwards.")
    args = parser.parse_args()

    try:
        run(raw_dir=args.raw_dir, out_dir=args.out_dir, from_db=args.from_db, dry_run=args.dry_run)
    except ReconciliationCheckFailed as exc:
        print(f"[pipeline] {exc}", file=sys.stderr)
        sys.exit(1)

    if args.load_postgres and not args.dry_run:
        from workerrecon.load.postgres_loader import load_all

        load_all(out_dir=args.out_dir)


if __name__ == "__main__":
    main()
