"""
Postgres loader: bulk-loads the published reconciliation Parquets into
Postgres using COPY (fast path).

Target tables are owned by the warehouse (created outside this project);
each load truncates the table and copies the full snapshot.

Tables loaded:
  recon_freelancer_master   (from freelancer_master.parquet)
  recon_enriched_profile    (from enriched_profile.parquet)
  recon_invoices            (from reconciled_invoices.parquet)
  recon_checks              (from reconciliation_checks.parquet)

Usage:
  python -m workerrecon.load.postgres_loader [table ...]
"""
import io
import sys
from pathlib import Path

import polars as pl
import psycopg2

from workerrecon import config
from workerrecon.ingest.pg_source import get_pg_conn

# checked in order; falls back to the POSTGRES_* parts
TARGET_URL_VARS = ("TARGET_POSTGRES_URL", "POSTGRES_URL", "DATABASE_URL")

# table name → parquet file under OUTPUT_DIR
TABLE_CONFIG: dict[str, str] = {
    "recon_freelancer_master": "freelancer_master.parquet",
    "recon_enriched_profile": "enriched_profile.parquet",
    "recon_invoices": "reconciled_invoices.parquet",
    "recon_checks": "reconciliation_checks.parquet",
}


def to_csv_buffer(df: pl.DataFrame) -> io.BytesIO:
    """CSV with header, nulls as empty fields, ready for COPY ... FROM STDIN."""
    buf = io.BytesIO()
    df.write_csv(buf, null_value="")
    buf.seek(0)
    return buf


def copy_sql(table: str, columns: list[str]) -> str:
    return f"COPY {table} ({', '.join(columns)}) FROM STDIN WITH (FORMAT CSV, HEADER TRUE, NULL '')"


def load_table(table: str, out_dir: Path = config.OUTPUT_DIR) -> None:
    parquet_path = out_dir / TABLE_CONFIG[table]
    if not parquet_path.exists():
        print(f"[postgres] SKIP {table}: {parquet_path} not found")
        return

    df = pl.read_parquet(parquet_path)
    print(f"[postgres] Loading {table}: {len(df):,} rows, {len(df.columns)} cols")
    buf = to_csv_buffer(df)

    conn = get_pg_conn(TARGET_URL_VARS)
    try:
        with conn:
            with conn.cursor() as cur:
                cur.execute(f"TRUNCATE TABLE {table}")
                cur.copy_expert(copy_sql(table, df.columns), buf)
                print(f"[postgres] ✓ {table}")
    finally:
        conn.close()


def load_all(tables: list[str] | None = None, out_dir: Path = config.OUTPUT_DIR) -> None:
    targets = tables or list(TABLE_CONFIG)
    for table in targets:
        if table not in TABLE_CONFIG:
            print(f"[postgres] Unknown table: {table}  (known: {list(TABLE_CONFIG)})")
            continue
        try:
            load_table(table, out_dir)
        except psycopg2.Error as e:
            # keep going so the remaining tables still load
            print(f"[postgres] ⚠ {table}: {e}", file=sys.stderr)


if __name__ == "__main__":
    args = sys.argv[1:]
    load_all(args if args else None)
