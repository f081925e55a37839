"""
Staging ingest: reads the staging snapshot for one reconciliation run.

Each relation is one file under DATA_RAW named <relation>.parquet or
<relation>.csv (Parquet wins when both exist). Flag-like columns are
normalized to Boolean and required columns are checked up front, so a
malformed snapshot aborts the run before any output is produced.

Relations: see workerrecon.transform.relations.REQUIRED_COLUMNS
"""
from pathlib import Path

import polars as pl

from workerrecon import config
from workerrecon.transform.relations import (
    REQUIRED_COLUMNS,
    REQUIRED_RELATIONS,
    normalize_flags,
    require_columns,
)


def _read_file(path: Path) -> pl.DataFrame:
    if path.suffix == ".parquet":
        return pl.read_parquet(path)
    df = pl.read_csv(
        path,
        try_parse_dates=True,
        null_values=["", " ", "NULL"],
        infer_schema_length=10000,
    )
    return df.rename({c: c.strip() for c in df.columns})


def read_relation(name: str, raw_dir: Path = config.RAW) -> pl.DataFrame | None:
    """Load one relation, or None when no file exists for it."""
    for suffix in (".parquet", ".csv"):
        path = raw_dir / f"{name}{suffix}"
        if path.exists():
            df = normalize_flags(_read_file(path))
            require_columns(df, REQUIRED_COLUMNS[name], name)
            print(f"[ingest] {name}: {len(df):,} rows ({path.name})")
            return df
    return None


def load_relations(raw_dir: Path = config.RAW) -> dict[str, pl.DataFrame]:
    relations: dict[str, pl.DataFrame] = {}
    for name in REQUIRED_COLUMNS:
        df = read_relation(name, raw_dir)
        if df is not None:
            relations[name] = df
        elif name in REQUIRED_RELATIONS:
            raise FileNotFoundError(
                f"Provide the staging extract for '{name}' first: "
                f"{raw_dir}/{name}.parquet or {raw_dir}/{name}.csv"
            )
    return relations
