"""
retailstar.analytics

Read-only revenue aggregations over the cleaned star schema.
"""

from __future__ import annotations

import pandas as pd

from .schema import StarSchema
from .utils import line_revenue


def _items_with_revenue(order_items: pd.DataFrame) -> pd.DataFrame:
    oi = order_items.copy()
    oi["revenue"] = line_revenue(oi["quantity"], oi["unit_price"])
    return oi


def _items_with_customers(schema: StarSchema) -> pd.DataFrame:
    """
    order_items -> orders -> customers inner join. Guest lines drop out.
    """
    oi = _items_with_revenue(schema.order_items)
    return (
        oi.merge(schema.orders[["order_id", "customer_id"]], on="order_id", how="inner")
        .merge(schema.customers[["customer_id", "country"]], on="customer_id", how="inner")
    )


def total_revenue(order_items: pd.DataFrame) -> float:
    """Sum of quantity * unit_price across all order items."""
    if order_items.empty:
        return 0.0
    return float(line_revenue(order_items["quantity"], order_items["unit_price"]).sum())


def revenue_by_country(schema: StarSchema) -> pd.DataFrame:
    joined = _items_with_customers(schema)
    out = joined.groupby("country", as_index=False, dropna=False)["revenue"].sum()
    return out.sort_values(["revenue", "country"], ascending=[False, True], kind="mergesort").reset_index(drop=True)


def top_products(schema: StarSchema, n: int = 5) -> pd.DataFrame:
    """
    Top `n` product names by revenue. Products sharing a name are summed
    together; ties are broken by name. Products without a description form
    one row with a missing name.
    """
    oi = _items_with_revenue(schema.order_items)
    joined = schema.products.merge(oi, on="product_id", how="inner")
    out = joined.groupby("product_name", as_index=False, dropna=False)["revenue"].sum()
    out = out.sort_values(
        ["revenue", "product_name"], ascending=[False, True], kind="mergesort", na_position="last"
    )
    return out.head(n).reset_index(drop=True)


def top_customers(schema: StarSchema, n: int = 5) -> pd.DataFrame:
    joined = _items_with_customers(schema)
    out = joined.groupby(["customer_id", "country"], as_index=False, dropna=False)["revenue"].sum()
    out = out.sort_values(["revenue", "customer_id"], ascending=[False, True], kind="mergesort")
    return out.head(n).reset_index(drop=True)
