"""
Postgres staging source: pulls the staging relations straight from the
warehouse instead of from files.

Each relation is one SELECT that aliases warehouse columns to the relation's
logical column names. Override a query per relation by passing *queries*.

Usage
-----
    python -m workerrecon.ingest.pg_source --out data/raw/reconciliation
"""
from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path

import polars as pl
import psycopg2
import psycopg2.extras

from workerrecon import config
from workerrecon.transform.relations import (
    REQUIRED_COLUMNS,
    REQUIRED_RELATIONS,
    normalize_flags,
    require_columns,
)

STAGING_QUERIES: dict[str, str] = {
    "entities": """
        SELECT system_key, freelancer_id AS entity_id, internal_profile_id,
               primary_email, first_name, last_name, approver_id,
               profile_created_date, active_start_time, active_end_time,
               is_active, business_unit, worker_type, engagement_status,
               agreement_type, employed_by
        FROM core.dim_worker_profile_current
    """,
    "agreement_history": """
        SELECT freelancer_id AS entity_id, agreement_type, active_end_time
        FROM core.dim_worker_profile
    """,
    "business_units": """
        SELECT business_unit_code AS business_unit, is_active_entity,
               country_code, country_name, region
        FROM core.dim_business_unit
    """,
    "bank_accounts": """
        SELECT rec.freelancer_id AS entity_id, info.bank_information_id AS record_id,
               typ.label AS sub_type_label, info.is_disabled, info.label AS bank_name,
               info.bic, info.iban, sys.label AS banking_system_label
        FROM finance.bank_information_link link
        JOIN hr.internal_record rec ON link.internal_record_id = rec.internal_record_id
        JOIN finance.bank_details info ON link.bank_information_id = info.bank_information_id
        JOIN finance.bank_account_type typ ON link.bank_information_type_id = typ.bank_information_type_id
        JOIN finance.banking_system sys ON info.bank_information_system_id = sys.bank_information_system_id
    """,
    "addresses": """
        SELECT rec.freelancer_id AS entity_id, addr.address_id AS record_id,
               typ.label AS address_type_label, addr.street_line, addr.zip_code,
               city.city_name, country.country_name
        FROM hr.internal_record rec
        JOIN geography.record_address link ON rec.internal_record_id = link.internal_record_id
        JOIN geography.address_master addr ON link.address_id = addr.address_id
        JOIN geography.address_type typ ON link.address_type_id = typ.address_type_id
        JOIN geography.city city ON addr.city_id = city.city_id
        JOIN geography.country country ON addr.country_id = country.country_id
    """,
    "compliance_docs": """
        SELECT doc.freelancer_id AS entity_id, cat.label AS category_label,
               cat.category_id, doc.is_disabled
        FROM compliance.document_info doc
        JOIN compliance.document_category cat ON doc.category_id = cat.category_id
    """,
    "transactions": """
        SELECT portal_invoice_id AS transaction_id, freelancer_id AS entity_id,
               erp_invoice_number AS cross_system_ref_code, erp_technical_invoice_id,
               status_id, invoice_date, created_date, is_draft
        FROM freelancer_app.log_invoice
    """,
    "ledger": """
        SELECT invoice_id AS ledger_invoice_id, supplier_invoice_number AS external_ref_code,
               supplier_id AS external_supplier_key, invoice_code, status_code,
               rejection_reason, total_amount_excl_tax AS amount_net,
               total_amount_incl_tax AS amount_gross, currency_id AS currency,
               received_date, due_date, payment_date, active
        FROM erp.dim_historized_invoices
    """,
    "supplier_links": """
        SELECT freelancer_id AS entity_id, erp_supplier_id AS external_supplier_key,
               created_date, updated_date
        FROM freelancer_app.log_erp_supplier
    """,
    "status_dictionary": """
        SELECT tdesc_name AS domain, status AS status_code, label
        FROM erp.status_lookup
    """,
    "corporate_info": "SELECT freelancer_id AS entity_id FROM freelancer_app.log_corporate_info",
    "timesheets": "SELECT freelancer_id AS entity_id FROM freelancer_app.log_timesheets",
    "supplier_requests": "SELECT freelancer_id AS entity_id FROM freelancer_app.log_supplier_request",
    "experience": "SELECT freelancer_id AS entity_id FROM freelancer_app.log_experience",
    "portal_documents": "SELECT freelancer_id AS entity_id FROM freelancer_app.log_documents",
    "notifications": """
        SELECT freelancer_id AS entity_id, is_deleted FROM freelancer_app.log_notifications
    """,
    "terms_of_service": """
        SELECT freelancer_id AS entity_id, is_accepted, created_date
        FROM freelancer_app.log_terms_of_service
    """,
}


def get_pg_conn(
    url_vars: tuple[str, ...] = ("DATABASE_URL", "POSTGRES_URL"),
    retries: int = 5,
    wait: float = 3.0,
) -> psycopg2.extensions.connection:
    """
    Connect with the first URL set among *url_vars*, else the POSTGRES_* parts.
    OperationalError is retried *retries* times, *wait* seconds apart.
    """
    url = next((os.environ[v] for v in url_vars if os.environ.get(v)), None)
    if url:
        params = {"dsn": url, "sslmode": "require" if "neon.tech" in url else "prefer"}
    else:
        params = {
            "host": os.environ.get("POSTGRES_HOST", "localhost"),
            "port": int(os.environ.get("POSTGRES_PORT", "5432")),
            "dbname": os.environ.get("POSTGRES_DB", "warehouse"),
            "user": os.environ.get("POSTGRES_USER", "warehouse"),
            "password": os.environ.get("POSTGRES_PASSWORD", ""),
        }

    last_err = None
    for attempt in range(1, retries + 1):
        try:
            return psycopg2.connect(connect_timeout=10, **params)
        except psycopg2.OperationalError as exc:
            last_err = exc
            print(f"[pg_source] connect attempt {attempt}/{retries} failed: {exc}", file=sys.stderr)
            if attempt < retries:
                time.sleep(wait)
    raise last_err


def load_relation_from_pg(conn, name: str, sql: str) -> pl.DataFrame:
    with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
        cur.execute(sql)
        rows = cur.fetchall()
        columns = [d.name for d in cur.description]

    if not rows:
        df = pl.DataFrame(schema={c: pl.Utf8 for c in columns})
    else:
        df = pl.DataFrame([dict(r) for r in rows], infer_schema_length=None)
    df = normalize_flags(df)
    require_columns(df, REQUIRED_COLUMNS[name], name)
    print(f"[pg_source] {name}: {len(df):,} rows")
    return df


def load_relations_from_pg(
    conn,
    queries: dict[str, str] | None = None,
) -> dict[str, pl.DataFrame]:
    queries = {**STAGING_QUERIES, **(queries or {})}
    missing = [r for r in REQUIRED_RELATIONS if r not in queries]
    if missing:
        raise ValueError(f"No staging query for required relation(s): {', '.join(missing)}")
    return {name: load_relation_from_pg(conn, name, sql) for name, sql in queries.items()}


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Extract the reconciliation staging relations from Postgres to Parquet."
    )
    parser.add_argument("--out", type=Path, default=config.RAW,
                        help="Directory for <relation>.parquet files.")
    args = parser.parse_args()

    args.out.mkdir(parents=True, exist_ok=True)
    conn = get_pg_conn()
    try:
        relations = load_relations_from_pg(conn)
    finally:
        conn.close()
    for name, df in relations.items():
        df.write_parquet(args.out / f"{name}.parquet", compression="zstd")
        print(f"[pg_source] → {args.out}/{name}.parquet")


if __name__ == "__main__":
    main()
