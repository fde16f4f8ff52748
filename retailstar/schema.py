"""
retailstar.schema

Star schema built from the typed staging table:

    customers(customer_id, country)
    products(product_id, product_name)
    orders(order_id, order_date, customer_id)
    order_items(order_id, product_id, quantity, unit_price)

`ingest_naive` is the straight projection of staging rows; `build_star_schema`
is the cleaned rebuild that replaces it, grouping on natural keys and taking
MIN of conflicting attributes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

import pandas as pd
from loguru import logger

from .errors import SchemaInvariantError


TABLE_NAMES = ("customers", "orders", "products", "order_items")


@dataclass
class StarSchema:
    customers: pd.DataFrame
    orders: pd.DataFrame
    products: pd.DataFrame
    order_items: pd.DataFrame

    def tables(self) -> Dict[str, pd.DataFrame]:
        return {name: getattr(self, name) for name in TABLE_NAMES}

    def row_counts(self) -> Dict[str, int]:
        return {name: len(df) for name, df in self.tables().items()}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _valid_items_mask(staging: pd.DataFrame) -> pd.Series:
    # NaN comparisons are False, so unparseable numbers drop out here too
    return (staging["quantity"] > 0) & (staging["unit_price"] > 0)


def _min_by_key(
    df: pd.DataFrame,
    keys: List[str],
    value_col: str,
) -> pd.DataFrame:
    """
    One row per distinct key with MIN(value_col) over non-null values,
    mirroring SQL MIN semantics (all-null groups yield a null).
    """
    key_rows = df[keys].drop_duplicates()
    values = (
        df.dropna(subset=[value_col])
        .groupby(keys, as_index=False)[value_col]
        .min()
    )
    out = key_rows.merge(values, on=keys, how="left")
    return out.sort_values(keys, kind="mergesort").reset_index(drop=True)


# ---------------------------------------------------------------------------
# Naive first pass
# ---------------------------------------------------------------------------

def ingest_naive(staging: pd.DataFrame) -> StarSchema:
    """
    Project staging rows into the four tables without any deduplication.
    """
    with_customer = staging[staging["customer_id"].notna()]

    customers = with_customer[["customer_id", "country"]].reset_index(drop=True)
    orders = (
        with_customer[["invoice_no", "invoice_date", "customer_id"]]
        .rename(columns={"invoice_no": "order_id", "invoice_date": "order_date"})
        .reset_index(drop=True)
    )
    products = (
        staging[["stock_code", "description"]]
        .rename(columns={"stock_code": "product_id", "description": "product_name"})
        .reset_index(drop=True)
    )
    order_items = (
        staging.loc[_valid_items_mask(staging), ["invoice_no", "stock_code", "quantity", "unit_price"]]
        .rename(columns={"invoice_no": "order_id", "stock_code": "product_id"})
        .reset_index(drop=True)
    )
    return StarSchema(customers, orders, products, order_items)


# ---------------------------------------------------------------------------
# Cleaned rebuild
# ---------------------------------------------------------------------------

def build_customers(staging: pd.DataFrame) -> pd.DataFrame:
    rows = staging[staging["customer_id"].notna()]
    return _min_by_key(rows, ["customer_id"], "country")


def build_products(staging: pd.DataFrame) -> pd.DataFrame:
    rows = staging[staging["stock_code"].notna()]
    out = _min_by_key(rows, ["stock_code"], "description")
    return out.rename(columns={"stock_code": "product_id", "description": "product_name"})


def build_orders(staging: pd.DataFrame) -> pd.DataFrame:
    """
    One row per (invoice, customer) with the earliest observed invoice date.
    """
    rows = staging[staging["customer_id"].notna() & staging["invoice_no"].notna()]
    out = _min_by_key(rows, ["invoice_no", "customer_id"], "invoice_date")
    out = out.rename(columns={"invoice_no": "order_id", "invoice_date": "order_date"})
    return out[["order_id", "order_date", "customer_id"]]


def build_order_items(staging: pd.DataFrame) -> pd.DataFrame:
    """
    Positive-quantity, positive-price lines with exact duplicates collapsed.

    Lines without a customer are kept (guest purchases still count toward
    product and item analytics).
    """
    keep = (
        _valid_items_mask(staging)
        & staging["invoice_no"].notna()
        & staging["stock_code"].notna()
    )
    cols = ["invoice_no", "stock_code", "quantity", "unit_price"]
    out = (
        staging.loc[keep, cols]
        .drop_duplicates()
        .rename(columns={"invoice_no": "order_id", "stock_code": "product_id"})
        .sort_values(["order_id", "product_id", "quantity", "unit_price"], kind="mergesort")
        .reset_index(drop=True)
    )
    return out


def build_star_schema(staging: pd.DataFrame) -> StarSchema:
    schema = StarSchema(
        customers=build_customers(staging),
        orders=build_orders(staging),
        products=build_products(staging),
        order_items=build_order_items(staging),
    )
    logger.info(f"Built star schema: {schema.row_counts()}")
    return schema


def log_cleaning_effect(naive: StarSchema, clean: StarSchema) -> Dict[str, int]:
    """
    Log and return how many rows the cleaning stage collapsed per table.
    """
    before = naive.row_counts()
    after = clean.row_counts()
    removed = {name: before[name] - after[name] for name in TABLE_NAMES}
    for name in TABLE_NAMES:
        logger.info(f"{name}: {before[name]:,} naive rows -> {after[name]:,} clean rows ({removed[name]:,} collapsed)")
    return removed


# ---------------------------------------------------------------------------
# Invariant checks
# ---------------------------------------------------------------------------

def _check_key(df: pd.DataFrame, table: str, keys: Sequence[str]) -> None:
    keys = list(keys)
    nulls = df[keys].isna().any(axis=1)
    if nulls.any():
        raise SchemaInvariantError(table, f"{int(nulls.sum())} rows with a null key in {keys}")
    dupes = df.duplicated(subset=keys)
    if dupes.any():
        raise SchemaInvariantError(table, f"{int(dupes.sum())} duplicate rows for key {keys}")


def validate_star_schema(schema: StarSchema) -> None:
    """
    Raise SchemaInvariantError if a cleaned table breaks its invariants.
    """
    _check_key(schema.customers, "customers", ["customer_id"])
    _check_key(schema.products, "products", ["product_id"])
    _check_key(schema.orders, "orders", ["order_id", "customer_id"])
    _check_key(schema.order_items, "order_items", ["order_id", "product_id", "quantity", "unit_price"])

    items = schema.order_items
    non_positive = ~((items["quantity"] > 0) & (items["unit_price"] > 0))
    if non_positive.any():
        raise SchemaInvariantError("order_items", f"{int(non_positive.sum())} rows with non-positive quantity or price")

    unknown = ~items["product_id"].isin(schema.products["product_id"])
    if unknown.any():
        raise SchemaInvariantError("order_items", f"{int(unknown.sum())} rows reference unknown products")
