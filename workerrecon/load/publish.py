"""
All-or-nothing publish of a run's output relations as Parquet.

Every frame is first written next to its target as <name>.parquet.tmp; only
when all writes succeeded are the temp files renamed into place. A failed
write leaves the previously published outputs untouched and removes the temp
files.

Each rename is atomic on its own, but the set of renames is not: if one fails
(e.g. permissions changed mid-run), the outputs renamed before it are already
live. The remaining temp files are still removed and the error propagates.
"""
import os
from pathlib import Path

import polars as pl

from workerrecon import config


def publish(frames: dict[str, pl.DataFrame], out_dir: Path = config.OUTPUT_DIR) -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    staged: list[tuple[str, Path, Path]] = []
    try:
        for name, df in frames.items():
            tmp = out_dir / f"{name}.parquet.tmp"
            staged.append((name, tmp, out_dir / f"{name}.parquet"))
            df.write_parquet(tmp, compression="zstd")
    except Exception:
        for _, tmp, _ in staged:
            tmp.unlink(missing_ok=True)
        raise

    published = []
    try:
        for name, tmp, final in staged:
            os.replace(tmp, final)
            print(f"[publish] → {final}  ({len(frames[name]):,} rows)")
            published.append(final)
    finally:
        for _, tmp, _ in staged:
            tmp.unlink(missing_ok=True)
    return published
