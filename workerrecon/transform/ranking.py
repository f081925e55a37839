"""
Canonical-row selection: partition a relation, order each partition and keep
the top row, the DataFrame equivalent of ROW_NUMBER() ... = 1.
"""
import sys

import polars as pl


def pick_canonical(
    df: pl.DataFrame,
    by: str | list[str],
    order: str | list[str],
    descending: bool | list[bool] = True,
) -> pl.DataFrame:
    """
    Return exactly one row per *by* group: the first row under *order*.

    Nulls in ordering columns always sort last, i.e. they never win. Rows that
    tie on every ordering column keep their input order (stable sort), so an
    identical snapshot always resolves to the same row; such ties are counted
    and reported on stderr.
    """
    by = [by] if isinstance(by, str) else list(by)
    order = [order] if isinstance(order, str) else list(order)
    if isinstance(descending, bool):
        descending = [descending] * len(order)
    if len(descending) != len(order):
        raise ValueError("descending must have one entry per ordering column")

    if df.is_empty():
        return df

    ranked = df.with_columns(pl.len().over(by + order).alias("_tie_size")).sort(
        by + order,
        descending=[False] * len(by) + list(descending),
        nulls_last=True,
        maintain_order=True,
    )
    top = ranked.unique(subset=by, keep="first", maintain_order=True)

    n_tied = top.filter(pl.col("_tie_size") > 1).height
    if n_tied:
        print(
            f"[ranking] WARNING: {n_tied:,} group(s) tie on ({', '.join(order)}); "
            "kept the first row in input order",
            file=sys.stderr,
        )
    return top.drop("_tie_size")
