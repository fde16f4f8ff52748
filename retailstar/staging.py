"""
retailstar.staging

Reading and typing the raw transactions staging table (one row per invoice
line). Column names are matched loosely and renamed to canonical snake_case.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Tuple

import pandas as pd
from loguru import logger

from .errors import StagingSchemaError
from .utils import as_identifier, coerce_datetimes_inplace, match_columns, numericize, trim_strings


# canonical name -> accepted source names (matched ignoring case and punctuation)
STAGING_ALIASES: Dict[str, Tuple[str, ...]] = {
    "customer_id": ("CustomerID", "Customer ID", "customer"),
    "country": ("Country",),
    "invoice_no": ("InvoiceNo", "Invoice", "invoice_id"),
    "invoice_date": ("InvoiceDate", "invoice_datetime"),
    "stock_code": ("StockCode", "product_id"),
    "description": ("Description", "product_name"),
    "quantity": ("Quantity", "qty"),
    "unit_price": ("UnitPrice", "Price"),
}

STAGING_COLUMNS = list(STAGING_ALIASES)

_STRING_COLUMNS = ["country", "invoice_no", "stock_code", "description"]


def resolve_staging_columns(raw: pd.DataFrame) -> Dict[str, str]:
    """
    Return {canonical_name: source_column} for every staging column.

    Raises StagingSchemaError listing the canonical names that could not be
    found.
    """
    found = match_columns(raw, STAGING_ALIASES)
    missing = [c for c in STAGING_COLUMNS if c not in found]
    if missing:
        raise StagingSchemaError(
            f"Staging table is missing required columns: {missing} "
            f"(available: {list(raw.columns)})"
        )
    return found


def prepare_staging(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Rename and type a raw staging frame.

    Returns a new frame with exactly the canonical columns:
    customer_id, country, invoice_no, invoice_date, stock_code, description,
    quantity, unit_price.
    """
    mapping = resolve_staging_columns(raw)
    df = raw[[mapping[c] for c in STAGING_COLUMNS]].copy()
    df.columns = STAGING_COLUMNS

    df = trim_strings(df, _STRING_COLUMNS)
    coerce_datetimes_inplace(df, ["invoice_date"])
    numericize(df, ["quantity", "unit_price"])
    df["customer_id"] = as_identifier(df["customer_id"])

    n_bad_dates = int(df["invoice_date"].isna().sum())
    if n_bad_dates:
        logger.warning(f"{n_bad_dates:,} staging rows have a missing or unparseable invoice date")

    return df.reset_index(drop=True)


def read_staging(path: str | Path) -> pd.DataFrame:
    """
    Read the raw staging file as-is. CSV and Excel workbooks are supported.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in (".csv", ".txt"):
        raw = pd.read_csv(path, dtype=str, low_memory=False)
    elif suffix in (".xlsx", ".xls"):
        raw = pd.read_excel(path, dtype=str)
    else:
        raise StagingSchemaError(f"Unsupported staging file type: {path.name}")

    logger.info(f"Read {len(raw):,} staging rows from {path}")
    return raw


def load_staging(path: str | Path) -> pd.DataFrame:
    return prepare_staging(read_staging(path))
