"""
Cumulative revenue, cohort retention, monthly product ranking and Pareto
reports over the staging rows.
"""
import numpy as np
import pandas as pd
import pytest

from retailstar.window_reports import (
    cohort_matrix,
    cohort_retention,
    cumulative_revenue,
    monthly_top_products,
    pareto_analysis,
    retention_rates,
    top_share_of_customers,
)


# ---------------------------------------------------------------------------
# Cumulative revenue
# ---------------------------------------------------------------------------

def test_cumulative_revenue(staging):
    daily = cumulative_revenue(staging)
    assert daily["order_date"].tolist() == list(
        pd.to_datetime(["2010-12-01", "2011-01-05", "2011-01-10", "2011-02-15"])
    )
    assert daily["daily_revenue"].tolist() == pytest.approx([62.04, 135.0, 3.7, 13.56])
    assert daily["cumulative_revenue"].tolist() == pytest.approx([62.04, 197.04, 200.74, 214.3])


def test_cumulative_revenue_skips_dedup(staging, schema):
    # the duplicated 536365 line is counted twice here
    daily = cumulative_revenue(staging)
    assert daily["cumulative_revenue"].iloc[-1] == pytest.approx(199.0 + 15.3)


# ---------------------------------------------------------------------------
# Cohorts
# ---------------------------------------------------------------------------

def test_cohort_retention(staging):
    retention = cohort_retention(staging)
    assert list(map(tuple, retention.to_numpy())) == [
        ("2010-12", "2010-12", 1),
        ("2010-12", "2011-02", 1),
        ("2011-01", "2011-01", 1),
    ]


def test_every_cohort_is_active_in_its_own_month(make_staging):
    staging = make_staging(
        [
            ("1", "A", 1, "2011-01-03", 1.0, 10.0),
            ("2", "A", 1, "2011-02-03", 1.0, 10.0),
            ("3", "A", 1, "2011-02-04", 1.0, 11.0),
            ("4", "A", -1, "2011-03-04", 1.0, 12.0),
            ("5", "A", 1, "2011-03-05", 1.0, 11.0),
        ]
    )
    retention = cohort_retention(staging)
    own_month = retention[retention["cohort_month"] == retention["order_month"]]
    assert set(own_month["cohort_month"]) == set(retention["cohort_month"])
    assert (own_month["active_customers"] >= 1).all()


def test_cohort_matrix_and_rates(staging):
    matrix = cohort_matrix(cohort_retention(staging))
    assert matrix.index.tolist() == ["2010-12", "2011-01"]
    assert matrix.columns.tolist() == ["2010-12", "2011-01", "2011-02"]
    assert matrix.to_numpy().tolist() == [[1, 0, 1], [0, 1, 0]]

    rates = retention_rates(matrix)
    assert rates.loc["2010-12", "2011-02"] == pytest.approx(1.0)
    assert rates.loc["2011-01", "2011-02"] == pytest.approx(0.0)


# ---------------------------------------------------------------------------
# Monthly product ranking
# ---------------------------------------------------------------------------

def test_monthly_top_products(staging):
    top = monthly_top_products(staging)
    december = top[top["month"] == "2010-12"]
    assert december["stock_code"].tolist() == ["85123A", "71053", "22633"]
    assert december["rank"].tolist() == [1, 2, 3]
    assert december["revenue"].tolist() == pytest.approx([30.6, 20.34, 11.1])

    january = top[top["month"] == "2011-01"]
    assert january["stock_code"].tolist() == ["22728", "22633", "POST"]


def test_monthly_top_products_truncates_and_breaks_ties(make_staging):
    rows = [(f"{i}", code, 1, "2011-04-01", 5.0, 1.0) for i, code in enumerate("FEDCBA")]
    top = monthly_top_products(make_staging(rows), n=5)
    assert top["stock_code"].tolist() == ["A", "B", "C", "D", "E"]
    assert top["rank"].max() == 5


# ---------------------------------------------------------------------------
# Pareto
# ---------------------------------------------------------------------------

def test_pareto_analysis(staging):
    pareto = pareto_analysis(staging)
    assert pareto["customer_id"].iloc[:2].tolist() == [12583, 17850]
    assert pd.isna(pareto["customer_id"].iloc[2])
    assert pareto["revenue"].tolist() == pytest.approx([135.0, 75.6, 3.7])
    assert pareto["running_revenue"].tolist() == pytest.approx([135.0, 210.6, 214.3])
    assert pareto["revenue_share"].tolist() == pytest.approx([0.63, 0.9827, 1.0])
    assert (pareto["total_revenue"] == pareto["total_revenue"].iloc[0]).all()


def test_pareto_share_is_monotone_and_ends_at_one(make_staging):
    rng = np.random.default_rng(3)
    rows = [
        (f"{i}", "A", int(q), "2011-05-01", float(p), float(c))
        for i, (q, p, c) in enumerate(
            zip(rng.integers(1, 20, 200), rng.uniform(0.5, 50, 200).round(2), rng.integers(1, 60, 200))
        )
    ]
    pareto = pareto_analysis(make_staging(rows))
    assert pareto["revenue_share"].is_monotonic_increasing
    assert pareto["revenue_share"].iloc[-1] == pytest.approx(1.0)


def test_pareto_negative_price_lines_lower_the_total(make_staging):
    # adjustment line: positive quantity, negative unit price
    staging = make_staging([("1", "A", 1, "2011-05-01", 100.0, 1.0), ("2", "B", 1, "2011-05-01", -20.0, 2.0)])
    pareto = pareto_analysis(staging)

    assert pareto["customer_id"].tolist() == [1, 2]
    assert pareto["total_revenue"].iloc[0] == pytest.approx(80.0)
    assert pareto["revenue_share"].tolist() == pytest.approx([1.25, 1.0])


def test_top_share_of_customers(staging):
    pareto = pareto_analysis(staging)
    assert top_share_of_customers(pareto, 0.8) == pytest.approx(2 / 3)
    assert top_share_of_customers(pareto, 0.5) == pytest.approx(1 / 3)
