"""
Source-of-truth resolution: collapses 1:N child relations (bank accounts,
billing addresses, agreement history) into one feature row per entity_id.

Candidates are pre-filtered to the relevant sub-type and to enabled records,
then ranked per entity with pick_canonical. Entities without a qualifying
candidate get no row; ProfileAssembler null-fills them.

Recency: when every candidate of an entity carries created_date the ranking
is (created_date desc, record_id desc). Otherwise (no created_date column, or
an undated candidate in the group) it is record_id desc alone, which assumes
ids are issued in insertion order.
"""
import polars as pl

from workerrecon import config
from workerrecon.transform.ranking import pick_canonical
from workerrecon.transform.relations import REQUIRED_COLUMNS, as_flag, require_columns

RECENCY_COLUMN = "created_date"


def _rank_by_recency(candidates: pl.DataFrame) -> pl.DataFrame:
    if RECENCY_COLUMN not in candidates.columns:
        return pick_canonical(candidates, by="entity_id", order="record_id")
    # dates only decide within a fully dated group
    fully_dated = pl.col(RECENCY_COLUMN).is_not_null().all().over("entity_id")
    ranked = candidates.with_columns(
        pl.when(fully_dated).then(pl.col(RECENCY_COLUMN)).alias("_recency")
    )
    return pick_canonical(ranked, by="entity_id", order=["_recency", "record_id"]).drop("_recency")


def resolve_bank_account(
    bank_accounts: pl.DataFrame,
    account_purpose: str = config.BANK_ACCOUNT_PURPOSE,
) -> pl.DataFrame:
    """Most recent enabled bank account of the invoicing purpose, per entity."""
    require_columns(bank_accounts, REQUIRED_COLUMNS["bank_accounts"], "bank_accounts")

    candidates = bank_accounts.filter(
        pl.col("entity_id").is_not_null()
        & (pl.col("sub_type_label") == account_purpose)
        & ~as_flag("is_disabled")
    )
    canonical = _rank_by_recency(candidates)
    print(f"[source_of_truth] bank accounts: {len(candidates):,} candidates → "
          f"{len(canonical):,} entities")

    return canonical.select(
        "entity_id",
        pl.col("record_id").alias("bank_record_id"),
        pl.col("sub_type_label").alias("account_purpose"),
        "bank_name",
        "bic",
        "iban",
        pl.col("banking_system_label").alias("banking_system"),
    )


def resolve_billing_address(
    addresses: pl.DataFrame,
    address_type: str = config.ADDRESS_TYPE,
) -> pl.DataFrame:
    """Most recent address of the billing type, per entity."""
    require_columns(addresses, REQUIRED_COLUMNS["addresses"], "addresses")

    keep = pl.col("entity_id").is_not_null() & (pl.col("address_type_label") == address_type)
    if "is_disabled" in addresses.columns:
        keep = keep & ~as_flag("is_disabled")
    candidates = addresses.filter(keep)
    canonical = _rank_by_recency(candidates)
    print(f"[source_of_truth] addresses: {len(candidates):,} candidates → "
          f"{len(canonical):,} entities")

    return canonical.select(
        "entity_id",
        pl.col("record_id").alias("address_record_id"),
        pl.col("address_type_label").alias("address_type"),
        pl.col("street_line").alias("address_line"),
        "zip_code",
        pl.col("city_name").alias("city"),
        pl.col("country_name").alias("country"),
    )


def resolve_latest_agreement(
    history: pl.DataFrame,
    undefined: str = config.UNDEFINED_AGREEMENT,
) -> pl.DataFrame:
    """Latest defined agreement type per entity, by active_end_time."""
    require_columns(history, REQUIRED_COLUMNS["agreement_history"], "agreement_history")

    candidates = history.filter(
        pl.col("entity_id").is_not_null()
        & pl.col("agreement_type").is_not_null()
        & (pl.col("agreement_type") != undefined)
    )
    # agreement_type breaks ties between rows ending at the same time
    canonical = pick_canonical(
        candidates,
        by="entity_id",
        order=["active_end_time", "agreement_type"],
        descending=[True, False],
    )
    return canonical.select(
        "entity_id",
        pl.col("agreement_type").alias("latest_agreement_type"),
    )
