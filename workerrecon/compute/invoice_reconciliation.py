"""
Portal ↔ ERP invoice reconciliation
===================================

Matches every portal invoice (transactions) with the historized ERP invoice
records (ledger) and attaches the translated ERP status.

Stages
------
  1. attach_supplier_keys   portal entity_id → mapped ERP supplier key (left)
  2. join_ledger            (ref code, supplier key) → ledger rows (left)
  3. apply_retention_filter keep unmatched rows and rows whose ledger record
                            is active; drop superseded-only matches
  4. translate_status       ERP status code → label (null when unknown)

The matching key is expected to be unique per active ledger record. When it
is not, the affected transaction fans out; the rows are kept, flagged with
ledger_match_count > 1 and reported, never collapsed silently.

Usage
-----
    python -m workerrecon.compute.invoice_reconciliation
"""
import sys

import polars as pl

from workerrecon import config
from workerrecon.transform.relations import REQUIRED_COLUMNS, as_flag, require_columns
from workerrecon.transform.status_dictionary import status_lookup, translate_status
from workerrecon.transform.supplier_mapping import map_supplier_keys

# ledger column → reconciled column
LEDGER_COLUMNS = {
    "ledger_invoice_id": "erp_invoice_id",
    "external_supplier_key": "erp_actual_supplier_key",
    "invoice_code": "erp_invoice_code",
    "status_code": "erp_status_code",
    "rejection_reason": "rejection_reason",
    "amount_net": "amount_net",
    "amount_gross": "amount_gross",
    "currency": "currency",
    "received_date": "erp_received_date",
    "due_date": "erp_due_date",
    "payment_date": "erp_payment_date",
}

# portal column → reconciled column
PORTAL_COLUMNS = {
    "erp_technical_invoice_id": "erp_technical_invoice_id",
    "status_id": "portal_status_id",
    "invoice_date": "portal_invoice_date",
    "created_date": "portal_created_date",
}

OUTPUT_COLUMNS = [
    "transaction_id", "entity_id", "cross_system_ref_code", "erp_technical_invoice_id",
    "mapped_supplier_key", "erp_actual_supplier_key",
    "supplier_sync_date", "supplier_last_update",
    "erp_invoice_id", "erp_invoice_code",
    "portal_status_id", "erp_status_code", "erp_status_label", "rejection_reason",
    "amount_net", "amount_gross", "currency",
    "portal_invoice_date", "portal_created_date",
    "erp_received_date", "erp_due_date", "erp_payment_date",
    "is_draft", "is_erp_record_active", "ledger_matched", "ledger_match_count",
]

CHECK_SCHEMA = {"check": pl.Utf8, "status": pl.Utf8, "message": pl.Utf8}


def _with_null_columns(df: pl.DataFrame, columns) -> pl.DataFrame:
    missing = [c for c in columns if c not in df.columns]
    return df.with_columns([pl.lit(None).alias(c) for c in missing]) if missing else df


# ---------------------------------------------------------------------------
# Stage 1: supplier key
# ---------------------------------------------------------------------------

def attach_supplier_keys(transactions: pl.DataFrame, supplier_map: pl.DataFrame) -> pl.DataFrame:
    require_columns(transactions, REQUIRED_COLUMNS["transactions"], "transactions")
    if transactions["transaction_id"].is_duplicated().any():
        raise ValueError("Relation 'transactions' has duplicated transaction_id values")

    portal = _with_null_columns(transactions, PORTAL_COLUMNS).select(
        "transaction_id", "entity_id", "cross_system_ref_code",
        *[pl.col(src).alias(dst) for src, dst in PORTAL_COLUMNS.items()],
        as_flag("is_draft").alias("is_draft"),
    )
    sup = supplier_map.select(
        "entity_id", "mapped_supplier_key", "supplier_sync_date", "supplier_last_update",
    )
    return portal.join(sup, on="entity_id", how="left")


# ---------------------------------------------------------------------------
# Stage 2: ledger match
# ---------------------------------------------------------------------------

def join_ledger(tx: pl.DataFrame, ledger: pl.DataFrame) -> pl.DataFrame:
    """
    Left join on (cross_system_ref_code, mapped_supplier_key) =
    (external_ref_code, external_supplier_key), compared as strings.

    Adds ledger_matched (bool) and _ledger_row (ledger input position, used
    only to order fanned-out rows deterministically).
    """
    require_columns(ledger, REQUIRED_COLUMNS["ledger"], "ledger")

    erp = (
        _with_null_columns(ledger, LEDGER_COLUMNS)
        .with_row_index("_ledger_row")
        .select(
            pl.col("external_ref_code").cast(pl.Utf8).alias("_ref_key"),
            pl.col("external_supplier_key").cast(pl.Utf8).alias("_supplier_key"),
            "_ledger_row",
            *[pl.col(src).alias(dst) for src, dst in LEDGER_COLUMNS.items()],
            as_flag("active").alias("is_erp_record_active"),
            pl.lit(True).alias("ledger_matched"),
        )
    )
    keyed = tx.with_columns(
        pl.col("cross_system_ref_code").cast(pl.Utf8).alias("_ref_key"),
        pl.col("mapped_supplier_key").cast(pl.Utf8).alias("_supplier_key"),
    )
    joined = keyed.join(erp, on=["_ref_key", "_supplier_key"], how="left")
    return joined.drop(["_ref_key", "_supplier_key"]).with_columns(
        pl.col("ledger_matched").fill_null(False)
    )


# ---------------------------------------------------------------------------
# Stage 3: retention filter
# ---------------------------------------------------------------------------

def apply_retention_filter(joined: pl.DataFrame) -> pl.DataFrame:
    """Keep a row when nothing matched OR the matched ledger record is active."""
    return joined.filter(
        ~pl.col("ledger_matched") | pl.col("is_erp_record_active").fill_null(False)
    )


# ---------------------------------------------------------------------------
# Full matcher
# ---------------------------------------------------------------------------

def reconcile_invoices(
    transactions: pl.DataFrame,
    ledger: pl.DataFrame,
    supplier_map: pl.DataFrame,
    status_labels: pl.DataFrame,
) -> tuple[pl.DataFrame, pl.DataFrame]:
    """
    Return (reconciled, joined): the reconciled view ordered by transaction_id,
    and the pre-filter join that reconciliation_checks audits against.

    *supplier_map* comes from map_supplier_keys, *status_labels* from
    status_lookup.
    """
    tx = attach_supplier_keys(transactions, supplier_map)
    joined = join_ledger(tx, ledger)
    retained = apply_retention_filter(joined)

    retained = retained.with_columns(
        pl.col("ledger_matched").cast(pl.UInt32).sum().over("transaction_id").alias("ledger_match_count")
    )
    retained = translate_status(retained, status_labels, "erp_status_code", "erp_status_label")

    reconciled = (
        retained.sort(["transaction_id", "_ledger_row"], nulls_last=True, maintain_order=True)
        .select(OUTPUT_COLUMNS)
    )

    fanned = reconciled.filter(pl.col("ledger_match_count") > 1)
    if not fanned.is_empty():
        print(
            f"[invoices] WARNING: {fanned['transaction_id'].n_unique():,} transactions match "
            f"more than one active ledger record ({len(fanned):,} rows); "
            "check ledger uniqueness on (ref code, supplier key)",
            file=sys.stderr,
        )
    print(f"[invoices] {len(transactions):,} portal invoices → {len(reconciled):,} reconciled rows")
    return reconciled, joined


def reconciliation_checks(
    transactions: pl.DataFrame,
    joined: pl.DataFrame,
    reconciled: pl.DataFrame,
) -> pl.DataFrame:
    """Audit rows (check, status: pass|warn|fail, message) for one run."""
    n_tx = transactions["transaction_id"].n_unique()
    dropped = (
        joined.group_by("transaction_id")
        .agg(
            pl.col("ledger_matched").all().alias("all_matched"),
            pl.col("is_erp_record_active").fill_null(False).any().alias("any_active"),
        )
        .filter(pl.col("all_matched") & ~pl.col("any_active"))
        .height
    )
    n_out = reconciled["transaction_id"].n_unique()
    rows = []

    expected = n_tx - dropped
    rows.append({
        "check": "transaction_retention",
        "status": "pass" if n_out == expected else "fail",
        "message": f"{n_out:,} reconciled transactions; expected {n_tx:,} - {dropped:,} "
                   f"superseded-only = {expected:,}",
    })

    fanned = reconciled.filter(pl.col("ledger_match_count") > 1)
    rows.append({
        "check": "ledger_fan_out",
        "status": "warn" if not fanned.is_empty() else "pass",
        "message": f"{fanned['transaction_id'].n_unique():,} transactions with more than one "
                   f"active ledger match ({len(fanned):,} rows)",
    })

    untranslated = reconciled.filter(
        pl.col("erp_status_code").is_not_null() & pl.col("erp_status_label").is_null()
    )
    codes = sorted(untranslated["erp_status_code"].cast(pl.Utf8).unique().to_list())
    rows.append({
        "check": "untranslated_status",
        "status": "warn" if codes else "pass",
        "message": f"{len(untranslated):,} rows with a status code missing from the dictionary"
                   + (f": {', '.join(codes[:20])}" if codes else ""),
    })

    unmapped = reconciled.filter(pl.col("mapped_supplier_key").is_null())["transaction_id"].n_unique()
    rows.append({
        "check": "unmapped_supplier",
        "status": "pass",
        "message": f"{unmapped:,} transactions whose entity has no ERP supplier mapping",
    })

    unmatched = reconciled.filter(~pl.col("ledger_matched"))["transaction_id"].n_unique()
    rows.append({
        "check": "no_ledger_match",
        "status": "pass",
        "message": f"{unmatched:,} transactions without an ERP ledger record yet",
    })

    return pl.DataFrame(rows, schema=CHECK_SCHEMA)


def run(relations: dict[str, pl.DataFrame]) -> tuple[pl.DataFrame, pl.DataFrame]:
    """Reconcile from loaded relations; returns (reconciled, checks)."""
    supplier_map = map_supplier_keys(relations["supplier_links"], config.SUPPLIER_KEY_POLICY)
    labels = status_lookup(relations["status_dictionary"], config.STATUS_DOMAIN)
    reconciled, joined = reconcile_invoices(
        relations["transactions"], relations["ledger"], supplier_map, labels,
    )
    checks = reconciliation_checks(relations["transactions"], joined, reconciled)
    for row in checks.iter_rows(named=True):
        print(f"[invoices]   {row['status'].upper():4}  {row['check']}: {row['message']}")
    return reconciled, checks


if __name__ == "__main__":
    from workerrecon.ingest.staging_ingest import load_relations

    run(load_relations())
