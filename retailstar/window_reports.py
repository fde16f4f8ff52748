"""
retailstar.window_reports

Time-series and ranking reports computed straight from the typed staging
table (not the cleaned star schema), so duplicate invoice lines are still
counted here and totals can differ slightly from retailstar.analytics.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from .utils import line_revenue


def _sold_lines(staging: pd.DataFrame) -> pd.DataFrame:
    """Lines with a positive quantity, with a `revenue` column."""
    lines = staging[staging["quantity"] > 0].copy()
    lines["revenue"] = line_revenue(lines["quantity"], lines["unit_price"])
    return lines.dropna(subset=["revenue"])


def _month(s: pd.Series) -> pd.Series:
    return s.dt.strftime("%Y-%m")


def cumulative_revenue(staging: pd.DataFrame) -> pd.DataFrame:
    """
    Daily revenue and its running total, ordered by date.
    """
    lines = _sold_lines(staging)
    lines["order_date"] = lines["invoice_date"].dt.normalize()

    daily = (
        lines.dropna(subset=["order_date"])
        .groupby("order_date", as_index=False)["revenue"]
        .sum()
        .rename(columns={"revenue": "daily_revenue"})
        .sort_values("order_date")
        .reset_index(drop=True)
    )
    daily["cumulative_revenue"] = daily["daily_revenue"].cumsum()
    return daily


def cohort_retention(staging: pd.DataFrame) -> pd.DataFrame:
    """
    Distinct active customers per (cohort_month, order_month).

    A customer's cohort is the month of their earliest staging row, returns
    included.
    """
    rows = staging.dropna(subset=["customer_id", "invoice_date"])
    if rows.empty:
        return pd.DataFrame(columns=["cohort_month", "order_month", "active_customers"])
    first = rows.groupby("customer_id")["invoice_date"].min().rename("first_order_date")

    cohort = rows[["customer_id", "invoice_date"]].merge(first, left_on="customer_id", right_index=True)
    cohort["cohort_month"] = _month(cohort["first_order_date"])
    cohort["order_month"] = _month(cohort["invoice_date"])

    out = (
        cohort.groupby(["cohort_month", "order_month"], as_index=False)["customer_id"]
        .nunique()
        .rename(columns={"customer_id": "active_customers"})
    )
    return out.sort_values(["cohort_month", "order_month"]).reset_index(drop=True)


def cohort_matrix(retention: pd.DataFrame) -> pd.DataFrame:
    """Cross-tab of cohort_retention: one row per cohort, one column per order month."""
    if retention.empty:
        return pd.DataFrame(index=pd.Index([], name="cohort_month"), dtype=int)
    matrix = retention.pivot_table(
        index="cohort_month",
        columns="order_month",
        values="active_customers",
        aggfunc="sum",
        fill_value=0,
    )
    matrix.columns.name = None
    return matrix.astype(int)


def retention_rates(matrix: pd.DataFrame) -> pd.DataFrame:
    """
    Divide each cohort row by its cohort size (active customers in the cohort
    month itself).
    """
    sizes = pd.Series(
        [matrix.at[cohort, cohort] if cohort in matrix.columns else 0 for cohort in matrix.index],
        index=matrix.index,
    )
    return matrix.div(sizes.replace(0, np.nan), axis=0).astype(float).round(4)


def monthly_top_products(staging: pd.DataFrame, n: int = 5) -> pd.DataFrame:
    """
    Top `n` stock codes by revenue within each month, with a 1-based rank.
    """
    lines = _sold_lines(staging).dropna(subset=["invoice_date", "stock_code"])
    lines["month"] = _month(lines["invoice_date"])

    sales = lines.groupby(["stock_code", "month"], as_index=False)["revenue"].sum()
    sales = sales.sort_values(["month", "revenue", "stock_code"], ascending=[True, False, True], kind="mergesort")
    sales["rank"] = sales.groupby("month").cumcount() + 1

    return sales[sales["rank"] <= n].reset_index(drop=True)


def pareto_analysis(staging: pd.DataFrame) -> pd.DataFrame:
    """
    Revenue concentration curve across customers.

    Guest lines (no customer id) are pooled into a single row with a missing
    customer_id. Rows are ordered by revenue descending, then customer_id.

    Only quantity > 0 filters the lines, so adjustment lines with a negative
    unit price pull the total down. The share can then run past 1.0 before
    settling on 1.0 at the last row.
    """
    lines = _sold_lines(staging)
    per_customer = lines.groupby("customer_id", as_index=False, dropna=False)["revenue"].sum()
    per_customer = per_customer.sort_values(
        ["revenue", "customer_id"], ascending=[False, True], kind="mergesort", na_position="last"
    ).reset_index(drop=True)

    total = per_customer["revenue"].sum()
    per_customer["total_revenue"] = total
    per_customer["running_revenue"] = per_customer["revenue"].cumsum()
    if total:
        per_customer["revenue_share"] = (per_customer["running_revenue"] / total).round(4)
    else:
        per_customer["revenue_share"] = float("nan")
    return per_customer


def top_share_of_customers(pareto: pd.DataFrame, share: float = 0.8) -> float:
    """
    Fraction of customers (rows of `pareto`) needed to reach `share` of revenue.
    """
    if pareto.empty:
        return 0.0
    reached = int((pareto["revenue_share"] < share).sum()) + 1
    return min(reached, len(pareto)) / len(pareto)
