"""
retailstar.rfm

Rule-based RFM segmentation over the cleaned star schema:

    customer_rfm         -> last purchase date, distinct orders, revenue
    customer_rfm_scored  -> + recency/frequency/monetary scores (1-5)
    customer_segments    -> + rfm_score string and segment label

Recency is measured against an explicit reference date so that two runs over
the same data always agree.
"""

from __future__ import annotations

import datetime as dt
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from loguru import logger

from .errors import RetailStarError
from .schema import StarSchema
from .utils import line_revenue

DateLike = Union[str, dt.date, dt.datetime, pd.Timestamp]

# (upper bound on days since last purchase, score)
RECENCY_THRESHOLDS: Sequence[Tuple[int, int]] = ((30, 5), (60, 4), (90, 3), (120, 2))
# (lower bound, score)
FREQUENCY_THRESHOLDS: Sequence[Tuple[int, int]] = ((20, 5), (15, 4), (10, 3), (5, 2))
MONETARY_THRESHOLDS: Sequence[Tuple[float, int]] = ((1000, 5), (500, 4), (200, 3), (100, 2))

CHAMPION = "Champion"
LOYAL = "Loyal"
AT_RISK = "At Risk"
LOST = "Lost"
NEED_ATTENTION = "Need Attention"
SEGMENTS = (CHAMPION, LOYAL, AT_RISK, LOST, NEED_ATTENTION)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

def build_customer_rfm(schema: StarSchema) -> pd.DataFrame:
    """
    Per-customer RFM metrics.

    Returns
    -------
    pd.DataFrame
        customer_id, country, last_purchase_date, frequency, monetary.
        Customers without any order are left out. Customers whose items were
        all filtered out (returns only) get monetary = 0.0.
    """
    orders = schema.orders
    if orders.empty:
        return pd.DataFrame(
            {
                "customer_id": pd.Series(dtype="Int64"),
                "country": pd.Series(dtype=object),
                "last_purchase_date": pd.Series(dtype="datetime64[ns]"),
                "frequency": pd.Series(dtype="int64"),
                "monetary": pd.Series(dtype="float64"),
            }
        )

    per_customer = orders.groupby("customer_id", as_index=False).agg(
        last_purchase_date=("order_date", "max"),
        frequency=("order_id", "nunique"),
    )

    oi = schema.order_items
    per_order = (
        line_revenue(oi["quantity"], oi["unit_price"])
        .groupby(oi["order_id"])
        .sum()
        .rename("monetary")
        .reset_index()
    )
    spend = (
        orders[["order_id", "customer_id"]]
        .merge(per_order, on="order_id", how="inner")
        .groupby("customer_id", as_index=False)["monetary"]
        .sum()
    )

    rfm = schema.customers.merge(per_customer, on="customer_id", how="inner")
    rfm = rfm.merge(spend, on="customer_id", how="left")
    rfm["monetary"] = rfm["monetary"].fillna(0.0).astype(float)
    rfm["frequency"] = rfm["frequency"].astype(int)

    n_without_orders = len(schema.customers) - len(rfm)
    if n_without_orders:
        logger.info(f"Excluded {n_without_orders:,} customers with no orders from RFM")

    cols = ["customer_id", "country", "last_purchase_date", "frequency", "monetary"]
    return rfm[cols].sort_values("customer_id", kind="mergesort").reset_index(drop=True)


def resolve_reference_date(orders: pd.DataFrame, reference_date: Optional[DateLike] = None) -> pd.Timestamp:
    """
    Day against which recency is measured.

    An explicit `reference_date` wins. Otherwise the day after the latest
    order date in `orders` is used.
    """
    if reference_date is not None:
        return pd.Timestamp(reference_date).normalize()

    latest = orders["order_date"].max() if not orders.empty else pd.NaT
    if pd.isna(latest):
        raise RetailStarError("Cannot derive a reference date from orders without dates; pass one explicitly")
    return pd.Timestamp(latest).normalize() + pd.Timedelta(days=1)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def recency_score(days: Optional[float]) -> int:
    if days is None or pd.isna(days):
        return 1
    for limit, score in RECENCY_THRESHOLDS:
        if days <= limit:
            return score
    return 1


def frequency_score(n: float) -> int:
    for floor, score in FREQUENCY_THRESHOLDS:
        if n >= floor:
            return score
    return 1


def monetary_score(value: float) -> int:
    for floor, score in MONETARY_THRESHOLDS:
        if value >= floor:
            return score
    return 1


def _step_scores(values: pd.Series, thresholds, upper: bool) -> np.ndarray:
    # NaN fails every comparison and falls through to the default score
    if upper:
        conditions = [values <= bound for bound, _ in thresholds]
    else:
        conditions = [values >= bound for bound, _ in thresholds]
    return np.select(conditions, [score for _, score in thresholds], default=1).astype(int)


def score_rfm(rfm: pd.DataFrame, reference_date: Optional[DateLike]) -> pd.DataFrame:
    """
    Add recency_days and the three 1-5 scores to a customer_rfm frame.

    An empty frame gets the score columns without needing a reference date.
    """
    scored = rfm.copy()
    if scored.empty:
        for col in ("recency_days", "recency_score", "frequency_score", "monetary_score"):
            scored[col] = pd.Series(dtype="int64")
        return scored

    ref = pd.Timestamp(reference_date).normalize()
    last = pd.to_datetime(scored["last_purchase_date"]).dt.normalize()

    scored["recency_days"] = (ref - last).dt.days
    scored["recency_score"] = _step_scores(scored["recency_days"], RECENCY_THRESHOLDS, upper=True)
    scored["frequency_score"] = _step_scores(scored["frequency"], FREQUENCY_THRESHOLDS, upper=False)
    scored["monetary_score"] = _step_scores(scored["monetary"], MONETARY_THRESHOLDS, upper=False)
    return scored


# ---------------------------------------------------------------------------
# Segmentation
# ---------------------------------------------------------------------------

def assign_segment(r: int, f: int, m: int) -> str:
    """First matching rule wins."""
    if r >= 4 and f >= 4 and m >= 4:
        return CHAMPION
    if r >= 3 and f >= 3 and m >= 3:
        return LOYAL
    if r <= 2 and f >= 3:
        return AT_RISK
    if r <= 2 and f <= 2:
        return LOST
    return NEED_ATTENTION


def segment_customers(scored: pd.DataFrame) -> pd.DataFrame:
    seg = scored.copy()
    r, f, m = seg["recency_score"], seg["frequency_score"], seg["monetary_score"]

    seg["rfm_score"] = r.astype(str) + f.astype(str) + m.astype(str)
    conditions = [
        (r >= 4) & (f >= 4) & (m >= 4),
        (r >= 3) & (f >= 3) & (m >= 3),
        (r <= 2) & (f >= 3),
        (r <= 2) & (f <= 2),
    ]
    seg["segment"] = np.select(conditions, [CHAMPION, LOYAL, AT_RISK, LOST], default=NEED_ATTENTION)
    return seg


def segment_summary(segments: pd.DataFrame) -> pd.DataFrame:
    """
    Customer count and revenue per segment, highest revenue first.
    """
    out = segments.groupby("segment", as_index=False).agg(
        customers=("customer_id", "count"),
        revenue=("monetary", "sum"),
    )
    return out.sort_values(["revenue", "segment"], ascending=[False, True], kind="mergesort").reset_index(drop=True)


def build_rfm(
    schema: StarSchema,
    reference_date: Optional[DateLike] = None,
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """
    Run the three RFM stages.

    Returns
    -------
    customer_rfm, customer_rfm_scored, customer_segments
    """
    rfm = build_customer_rfm(schema)
    if rfm.empty:
        logger.warning("No customer orders in the schema; RFM tables are empty")
        ref = None
    else:
        ref = resolve_reference_date(schema.orders, reference_date)
        logger.info(f"Scoring recency against reference date {ref.date()}")

    scored = score_rfm(rfm, ref)
    segments = segment_customers(scored)
    return rfm, scored, segments
