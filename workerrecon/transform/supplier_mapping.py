"""
Supplier key mapping: derives the single ERP supplier key per entity_id from
the log of supplier-link events.

Policies
--------
  latest_event     key of the most recent event, ordered by
                   (coalesce(updated_date, created_date) desc,
                    created_date desc, key desc); a never-updated link
                   counts from its creation date
  independent_max  MAX(key) per entity, aggregated independently of the
                   dates; the key need not come from the latest event

Both policies report supplier_sync_date = MAX(created_date) and
supplier_last_update = MAX(updated_date). Entities without events are absent
("not yet synced").
"""
import sys

import polars as pl

from workerrecon import config
from workerrecon.transform.ranking import pick_canonical
from workerrecon.transform.relations import REQUIRED_COLUMNS, require_columns

POLICIES = ("latest_event", "independent_max")


def map_supplier_keys(
    links: pl.DataFrame,
    policy: str = config.SUPPLIER_KEY_POLICY,
) -> pl.DataFrame:
    if policy not in POLICIES:
        raise ValueError(f"Unknown supplier key policy '{policy}' (known: {', '.join(POLICIES)})")
    require_columns(links, REQUIRED_COLUMNS["supplier_links"], "supplier_links")

    events = links.filter(
        pl.col("entity_id").is_not_null() & pl.col("external_supplier_key").is_not_null()
    )

    summary = (
        events.group_by("entity_id")
        .agg(
            pl.col("created_date").max().alias("supplier_sync_date"),
            pl.col("updated_date").max().alias("supplier_last_update"),
            pl.col("external_supplier_key").n_unique().alias("supplier_key_count"),
        )
    )

    if policy == "independent_max":
        keys = events.group_by("entity_id").agg(
            pl.col("external_supplier_key").max().alias("mapped_supplier_key")
        )
    else:
        keys = pick_canonical(
            events.with_columns(
                pl.coalesce("updated_date", "created_date").alias("_recency")
            ),
            by="entity_id",
            order=["_recency", "created_date", "external_supplier_key"],
        ).select("entity_id", pl.col("external_supplier_key").alias("mapped_supplier_key"))

    mapping = keys.join(summary, on="entity_id", how="inner").sort("entity_id").select(
        "entity_id", "mapped_supplier_key", "supplier_sync_date",
        "supplier_last_update", "supplier_key_count",
    )

    n_conflicting = mapping.filter(pl.col("supplier_key_count") > 1).height
    if n_conflicting:
        print(
            f"[supplier_mapping] WARNING: {n_conflicting:,} entities have more than one "
            f"supplier key in their history; resolved with policy '{policy}'",
            file=sys.stderr,
        )
    print(f"[supplier_mapping] {len(events):,} link events → {len(mapping):,} mapped entities")
    return mapping
