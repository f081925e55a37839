"""
ERP status dictionary: translates opaque status codes into display labels,
scoped to one record-type domain.

The dictionary is external reference data and may lag behind new codes, so an
unknown code yields a null label rather than an error.
"""
import sys

import polars as pl

from workerrecon import config
from workerrecon.transform.relations import REQUIRED_COLUMNS, require_columns


def status_lookup(
    dictionary: pl.DataFrame,
    domain: str = config.STATUS_DOMAIN,
) -> pl.DataFrame:
    """Return (status_code: str, status_label) with one row per code in *domain*."""
    require_columns(dictionary, REQUIRED_COLUMNS["status_dictionary"], "status_dictionary")

    entries = (
        dictionary.filter((pl.col("domain") == domain) & pl.col("status_code").is_not_null())
        .select(
            pl.col("status_code").cast(pl.Utf8),
            pl.col("label").alias("status_label"),
        )
        .sort(["status_code", "status_label"], nulls_last=True, maintain_order=True)
    )
    lookup = entries.unique(subset=["status_code"], keep="first", maintain_order=True)
    if len(lookup) < len(entries):
        print(
            f"[status_dictionary] WARNING: {len(entries) - len(lookup):,} duplicate code(s) "
            f"in domain '{domain}'; kept the first label in label order",
            file=sys.stderr,
        )
    return lookup


def translate_status(
    df: pl.DataFrame,
    lookup: pl.DataFrame,
    code_column: str = "status_code",
    label_column: str = "status_label",
) -> pl.DataFrame:
    """Left-attach *label_column* for *code_column*; untranslated codes stay null."""
    keyed = df.with_row_index("_status_row").with_columns(
        pl.col(code_column).cast(pl.Utf8).alias("_status_key")
    )
    labels = lookup.select(
        pl.col("status_code").alias("_status_key"),
        pl.col("status_label").alias(label_column),
    )
    return (
        keyed.join(labels, on="_status_key", how="left")
        .sort("_status_row")
        .drop("_status_row", "_status_key")
    )
