"""
Logical input relations: required columns per relation and the boolean
normalization applied to flag-like columns at ingest.
"""
import polars as pl

REQUIRED_COLUMNS: dict[str, list[str]] = {
    "entities": [
        "entity_id", "business_unit", "worker_type", "engagement_status",
        "agreement_type", "is_active",
    ],
    "agreement_history": ["entity_id", "agreement_type", "active_end_time"],
    "business_units": ["business_unit", "is_active_entity"],
    "bank_accounts": [
        "entity_id", "record_id", "sub_type_label", "is_disabled",
        "bank_name", "bic", "iban", "banking_system_label",
    ],
    "addresses": [
        "entity_id", "record_id", "address_type_label", "street_line",
        "zip_code", "city_name", "country_name",
    ],
    "compliance_docs": ["entity_id", "category_label", "category_id", "is_disabled"],
    "transactions": ["transaction_id", "entity_id", "cross_system_ref_code", "is_draft"],
    "ledger": ["external_ref_code", "external_supplier_key", "status_code", "active"],
    "supplier_links": ["entity_id", "external_supplier_key", "created_date", "updated_date"],
    "status_dictionary": ["domain", "status_code", "label"],
    # portal activity logs
    "corporate_info": ["entity_id"],
    "timesheets": ["entity_id"],
    "supplier_requests": ["entity_id"],
    "experience": ["entity_id"],
    "portal_documents": ["entity_id"],
    "notifications": ["entity_id", "is_deleted"],
    "terms_of_service": ["entity_id", "is_accepted", "created_date"],
}

# Relations a run cannot do without; everything else is optional.
REQUIRED_RELATIONS = [
    "entities", "bank_accounts", "addresses", "compliance_docs",
    "transactions", "ledger", "supplier_links", "status_dictionary",
]

FLAG_COLUMNS = {
    "is_active", "is_disabled", "active", "is_draft",
    "is_active_entity", "is_accepted", "is_deleted",
}

_TRUE_STRINGS = ["1", "true", "t", "yes", "y"]


def require_columns(df: pl.DataFrame, columns: list[str], relation: str) -> None:
    """Raise ValueError when *df* lacks any of *columns*."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(
            f"Relation '{relation}' is missing required column(s): "
            f"{', '.join(missing)}. Actual columns: {', '.join(df.columns)}"
        )


def as_flag(column: str) -> pl.Expr:
    """Boolean view of a flag column where null means False."""
    return pl.col(column).cast(pl.Boolean).fill_null(False)


def _normalize_flag(df: pl.DataFrame, column: str) -> pl.Expr:
    dtype = df.schema[column]
    if dtype == pl.Boolean:
        return pl.col(column)
    if dtype in (pl.Utf8, pl.Categorical):
        lowered = pl.col(column).cast(pl.Utf8).str.strip_chars().str.to_lowercase()
        return (
            pl.when(lowered.is_null() | (lowered == ""))
            .then(None)
            .otherwise(lowered.is_in(_TRUE_STRINGS))
            .alias(column)
        )
    if dtype == pl.Null:
        return pl.col(column).cast(pl.Boolean)
    return (pl.col(column).cast(pl.Float64) != 0).alias(column)


def normalize_flags(df: pl.DataFrame) -> pl.DataFrame:
    """Cast 0/1 integers and true/false strings in known flag columns to Boolean."""
    exprs = [_normalize_flag(df, c) for c in df.columns if c in FLAG_COLUMNS]
    return df.with_columns(exprs) if exprs else df
