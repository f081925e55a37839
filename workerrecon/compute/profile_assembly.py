"""
Profile assembly
================

Merges entity-grain feature tables onto the eligible master entity set:

  build_freelancer_master  master data + geography + approver + portal/ERP
                           status flags and dates
  build_enriched_profile   canonical bank account + billing address +
                           compliance document flags

Every feature frame must already hold at most one row per entity_id; assemble
refuses a frame that does not rather than deduplicating it. Defaults are
applied once, by with_defaults, after all joins.

Usage
-----
    python -m workerrecon.compute.profile_assembly
"""
import polars as pl

from workerrecon import config
from workerrecon.transform.flags import compliance_doc_flags, presence_flags, terms_acceptance
from workerrecon.transform.relations import REQUIRED_COLUMNS, as_flag, require_columns
from workerrecon.transform.source_of_truth import (
    resolve_bank_account,
    resolve_billing_address,
    resolve_latest_agreement,
)
from workerrecon.transform.supplier_mapping import map_supplier_keys

PROFILE_COLUMNS = [
    "entity_id",
    "bank_name", "bic", "iban", "banking_system",
    "address_line", "zip_code", "city", "country",
]

# flag column → (relation, optional row filter)
ACTIVITY_FLAGS: dict[str, tuple[str, pl.Expr | None]] = {
    "is_corporate_entity_registered": ("corporate_info", None),
    "is_activity_logged": ("timesheets", None),
    "is_invoiced": ("transactions", None),
    "is_erp_requested": ("supplier_requests", None),
    "is_experience_verified": ("experience", None),
    "are_compliance_docs_submitted": ("portal_documents", None),
    "has_active_alerts": ("notifications", ~as_flag("is_deleted")),
}

MASTER_COLUMNS = [
    "system_key", "entity_id", "internal_profile_id", "primary_email",
    "first_name", "last_name", "approver_id", "approver_email", "approver_name",
    "profile_created_date", "active_start_time", "active_end_time", "is_active",
    "business_unit", "worker_type", "engagement_status", "agreement_type",
    "latest_agreement_type", "country_code", "country_name", "region",
    "is_corporate_entity_registered", "is_activity_logged", "is_invoiced",
    "is_erp_synced", "erp_last_created_date", "erp_updated_date",
    "is_erp_requested", "is_experience_verified", "are_compliance_docs_submitted",
    "is_tos_accepted", "tos_acceptance_date", "has_active_alerts",
]

MASTER_FLAGS = [
    "is_corporate_entity_registered", "is_activity_logged", "is_invoiced",
    "is_erp_synced", "is_erp_requested", "is_experience_verified",
    "are_compliance_docs_submitted", "is_tos_accepted", "has_active_alerts",
]


# ---------------------------------------------------------------------------
# Generic merge
# ---------------------------------------------------------------------------

def with_defaults(df: pl.DataFrame, defaults: dict[str, object]) -> pl.DataFrame:
    """Fill nulls with the column default; absent columns are created."""
    exprs = []
    for col, value in defaults.items():
        if col in df.columns:
            exprs.append(pl.col(col).fill_null(value) if value is not None else pl.col(col))
        else:
            exprs.append(pl.lit(value).alias(col))
    return df.with_columns(exprs) if exprs else df


def assemble(
    master: pl.DataFrame,
    features: dict[str, pl.DataFrame],
    defaults: dict[str, object] | None = None,
) -> pl.DataFrame:
    """
    Left-join each feature frame onto *master* by entity_id, then apply
    *defaults*. Raises ValueError when a feature holds more than one row for
    an entity_id, since joining it would change the master grain.
    """
    result = master
    for name, feature in features.items():
        require_columns(feature, ["entity_id"], name)
        dupes = feature.filter(pl.col("entity_id").is_duplicated())
        if not dupes.is_empty():
            raise ValueError(
                f"Feature '{name}' has {dupes['entity_id'].n_unique():,} entity_id value(s) "
                "with more than one row; reduce it to one row per entity before assembly"
            )
        common_cols = set(result.columns) & set(feature.columns) - {"entity_id"}
        if common_cols:
            feature = feature.drop(sorted(common_cols))
        result = result.join(feature, on="entity_id", how="left")

    return with_defaults(result, defaults or {}).sort("entity_id")


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------

def eligible_entities(
    entities: pl.DataFrame,
    agreement_history: pl.DataFrame | None = None,
    business_units: pl.DataFrame | None = None,
    *,
    allowed_units: list[str] = config.BUSINESS_UNITS,
    worker_type: str = config.WORKER_TYPE,
    engagement_statuses: list[str] = config.ENGAGEMENT_STATUSES,
    agreement_type: str = config.AGREEMENT_TYPE,
    undefined_agreement: str = config.UNDEFINED_AGREEMENT,
    excluded_employer: str = config.EXCLUDED_EMPLOYER,
) -> pl.DataFrame:
    """
    The in-scope master set, one row per entity_id, with latest_agreement_type
    and (when business_units is given) the unit's geography attached.
    """
    require_columns(entities, REQUIRED_COLUMNS["entities"], "entities")
    if entities["entity_id"].is_duplicated().any():
        raise ValueError("Relation 'entities' has duplicated entity_id values")

    if agreement_history is None and "active_end_time" in entities.columns:
        agreement_history = entities.select("entity_id", "agreement_type", "active_end_time")
    if agreement_history is not None:
        latest = resolve_latest_agreement(agreement_history, undefined_agreement)
    else:
        latest = pl.DataFrame(schema={
            "entity_id": entities.schema["entity_id"], "latest_agreement_type": pl.Utf8,
        })
    master = entities.join(latest, on="entity_id", how="left")

    keep = (
        as_flag("is_active")
        & (pl.col("worker_type") == worker_type)
        & pl.col("engagement_status").is_in(engagement_statuses)
        & pl.col("business_unit").is_in(allowed_units)
        & (
            (pl.col("agreement_type") == agreement_type)
            | (
                (pl.col("agreement_type") == undefined_agreement)
                & (pl.col("latest_agreement_type") == agreement_type)
            )
        ).fill_null(False)
    )
    if "employed_by" in master.columns:
        keep = keep & (pl.col("employed_by") != excluded_employer).fill_null(True)

    if business_units is not None:
        require_columns(business_units, REQUIRED_COLUMNS["business_units"], "business_units")
        if business_units["business_unit"].is_duplicated().any():
            raise ValueError("Relation 'business_units' has duplicated business_unit codes")
        geo_cols = [c for c in ("country_code", "country_name", "region") if c in business_units.columns]
        geo = business_units.select(
            "business_unit", as_flag("is_active_entity").alias("_unit_active"), *geo_cols,
        )
        master = master.join(geo.drop([c for c in geo_cols if c in master.columns]),
                             on="business_unit", how="left")
        keep = keep & pl.col("_unit_active").fill_null(False)

    eligible = master.filter(keep)
    if "_unit_active" in eligible.columns:
        eligible = eligible.drop("_unit_active")
    print(f"[profile] {len(entities):,} entities → {len(eligible):,} eligible")
    return eligible.sort("entity_id")


def _eligible_from(relations: dict[str, pl.DataFrame]) -> pl.DataFrame:
    return eligible_entities(
        relations["entities"],
        relations.get("agreement_history"),
        relations.get("business_units"),
    )


# ---------------------------------------------------------------------------
# Enriched profile (bank / address / compliance)
# ---------------------------------------------------------------------------

def build_enriched_profile(
    relations: dict[str, pl.DataFrame],
    eligible: pl.DataFrame | None = None,
    compliance_rules: dict[str, dict] = config.COMPLIANCE_FLAG_RULES,
) -> pl.DataFrame:
    if eligible is None:
        eligible = _eligible_from(relations)

    features = {
        "bank_account": resolve_bank_account(relations["bank_accounts"]).drop(
            ["bank_record_id", "account_purpose"]),
        "billing_address": resolve_billing_address(relations["addresses"]).drop(
            ["address_record_id", "address_type"]),
        "compliance_docs": compliance_doc_flags(relations["compliance_docs"], compliance_rules),
    }
    defaults = {col: None for col in PROFILE_COLUMNS[1:]}
    defaults.update({flag: False for flag in compliance_rules})

    profile = assemble(eligible.select("entity_id"), features, defaults)
    profile = profile.select(PROFILE_COLUMNS + list(compliance_rules))
    print(f"[profile] enriched profile: {len(profile):,} rows")
    return profile


# ---------------------------------------------------------------------------
# Freelancer master (status flags)
# ---------------------------------------------------------------------------

def _approvers(entities: pl.DataFrame) -> pl.DataFrame | None:
    if "approver_id" not in entities.columns:
        return None
    cols = entities.columns
    last = pl.col("last_name") if "last_name" in cols else pl.lit(None, dtype=pl.Utf8)
    first = pl.col("first_name") if "first_name" in cols else pl.lit(None, dtype=pl.Utf8)
    email = pl.col("primary_email") if "primary_email" in cols else pl.lit(None, dtype=pl.Utf8)
    approvers = entities.select(
        pl.col("entity_id").alias("approver_id"),
        email.alias("approver_email"),
        pl.concat_str([last, first], separator=" ").alias("approver_name"),
    )
    return approvers


def build_freelancer_master(
    relations: dict[str, pl.DataFrame],
    eligible: pl.DataFrame | None = None,
) -> pl.DataFrame:
    if eligible is None:
        eligible = _eligible_from(relations)

    master = eligible
    approvers = _approvers(relations["entities"])
    if approvers is not None:
        master = master.join(approvers, on="approver_id", how="left")

    features: dict[str, pl.DataFrame] = {}
    for flag, (relation, where) in ACTIVITY_FLAGS.items():
        log = relations.get(relation)
        if log is None:
            print(f"[profile] SKIP {flag}: relation '{relation}' not provided")
            continue
        require_columns(log, REQUIRED_COLUMNS[relation], relation)
        features[flag] = presence_flags(log, flag, where)

    sup = map_supplier_keys(relations["supplier_links"])
    features["erp_supplier"] = sup.select(
        "entity_id",
        pl.lit(True).alias("is_erp_synced"),
        pl.col("supplier_sync_date").alias("erp_last_created_date"),
        pl.col("supplier_last_update").alias("erp_updated_date"),
    )

    tos = relations.get("terms_of_service")
    if tos is not None:
        features["terms_of_service"] = terms_acceptance(tos)
    else:
        print("[profile] SKIP is_tos_accepted: relation 'terms_of_service' not provided")

    defaults: dict[str, object] = {flag: False for flag in MASTER_FLAGS}
    defaults.update({c: None for c in MASTER_COLUMNS if c not in defaults})

    result = assemble(master, features, defaults).select(MASTER_COLUMNS)
    print(f"[profile] freelancer master: {len(result):,} rows")
    return result


def run(relations: dict[str, pl.DataFrame]) -> tuple[pl.DataFrame, pl.DataFrame]:
    """Returns (freelancer_master, enriched_profile)."""
    eligible = _eligible_from(relations)
    return (
        build_freelancer_master(relations, eligible),
        build_enriched_profile(relations, eligible),
    )


if __name__ == "__main__":
    from workerrecon.ingest.staging_ingest import load_relations

    run(load_relations())
