"""
retailstar.warehouse

Persist model and report tables into a DuckDB database file. Every table is
replaced on each run.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List

import duckdb
import pandas as pd
from loguru import logger

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _flat(df: pd.DataFrame) -> pd.DataFrame:
    # DuckDB needs plain string column names and no meaningful index
    out = df.reset_index() if df.index.name is not None else df
    out = out.copy()
    out.columns = [str(c) for c in out.columns]
    for c in out.select_dtypes(include=["object", "string"]).columns:
        out[c] = out[c].astype(object).where(out[c].notna(), None)
    return out


def write_tables(path: str | Path, tables: Dict[str, pd.DataFrame]) -> List[str]:
    """
    CREATE OR REPLACE one table per entry of `tables` in the DuckDB file at
    `path`. Returns the written table names.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    con = duckdb.connect(str(path))
    try:
        for name, df in tables.items():
            if not _IDENTIFIER_RE.match(name):
                raise ValueError(f"Invalid table name: {name!r}")
            view = f"_{name}_df"
            con.register(view, _flat(df))
            con.execute(f'CREATE OR REPLACE TABLE "{name}" AS SELECT * FROM {view}')
            con.unregister(view)
    finally:
        con.close()

    logger.info(f"Wrote {len(tables)} tables to DuckDB warehouse {path}")
    return list(tables)


def read_table(path: str | Path, name: str) -> pd.DataFrame:
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid table name: {name!r}")
    con = duckdb.connect(str(path), read_only=True)
    try:
        return con.execute(f'SELECT * FROM "{name}"').df()
    finally:
        con.close()
