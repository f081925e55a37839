"""
Existence flags: pivots the presence of qualifying child rows into boolean
columns at entity grain.

A flag is a (name, predicate) pair; aggregate_flags folds every pair over each
entity's rows with logical OR. Predicates may overlap. Only entities with at
least one child row get a row, so callers default-fill the rest to False.
"""
import polars as pl

from workerrecon import config
from workerrecon.transform.relations import REQUIRED_COLUMNS, as_flag, require_columns


def rule_predicate(rule: dict) -> pl.Expr:
    """
    Build a predicate from a configured rule.

    {"column": "category_label", "equals": "Incorporation"}
    {"column": "category_id", "in": [20, 21]}

    A null cell never matches.
    """
    if "column" not in rule:
        raise ValueError(f"Flag rule needs a 'column': {rule}")
    col = pl.col(rule["column"])
    if "equals" in rule:
        pred = col == rule["equals"]
    elif "in" in rule:
        pred = col.is_in(list(rule["in"]))
    else:
        raise ValueError(f"Flag rule needs 'equals' or 'in': {rule}")
    return pred.fill_null(False)


def aggregate_flags(
    children: pl.DataFrame,
    rules: dict[str, pl.Expr],
    key: str = "entity_id",
) -> pl.DataFrame:
    """One row per *key* with a never-null boolean column per rule."""
    if children.is_empty():
        return pl.DataFrame(
            schema={key: children.schema.get(key, pl.Utf8), **{name: pl.Boolean for name in rules}}
        )
    return (
        children.filter(pl.col(key).is_not_null())
        .group_by(key)
        .agg([pred.fill_null(False).any().alias(name) for name, pred in rules.items()])
        .sort(key)
    )


def compliance_doc_flags(
    docs: pl.DataFrame,
    rules: dict[str, dict] = config.COMPLIANCE_FLAG_RULES,
) -> pl.DataFrame:
    """Legal-document flags (incorporation, bank verification, ...) per entity."""
    require_columns(docs, REQUIRED_COLUMNS["compliance_docs"], "compliance_docs")
    enabled = docs.filter(~as_flag("is_disabled"))
    flags = aggregate_flags(enabled, {name: rule_predicate(rule) for name, rule in rules.items()})
    print(f"[flags] compliance docs: {len(enabled):,} enabled rows → {len(flags):,} entities")
    return flags


def presence_flags(
    log: pl.DataFrame,
    flag_name: str,
    where: pl.Expr | None = None,
) -> pl.DataFrame:
    """Single existence flag: True for every entity with a (matching) log row."""
    require_columns(log, ["entity_id"], flag_name)
    rows = log.filter(where) if where is not None else log
    return aggregate_flags(rows, {flag_name: pl.col("entity_id").is_not_null()})


def terms_acceptance(tos: pl.DataFrame) -> pl.DataFrame:
    """Accepted terms of service: flag plus the latest acceptance date."""
    require_columns(tos, REQUIRED_COLUMNS["terms_of_service"], "terms_of_service")
    return (
        tos.filter(pl.col("entity_id").is_not_null() & as_flag("is_accepted"))
        .group_by("entity_id")
        .agg(
            (pl.len() > 0).alias("is_tos_accepted"),
            pl.col("created_date").max().alias("tos_acceptance_date"),
        )
        .sort("entity_id")
    )
