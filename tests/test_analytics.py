"""
Core revenue analytics over the cleaned star schema.
"""
import pandas as pd
import pytest

from retailstar.analytics import revenue_by_country, top_customers, top_products, total_revenue
from retailstar.schema import StarSchema, build_star_schema


def test_single_item_total_revenue():
    items = pd.DataFrame({"order_id": ["A1"], "product_id": ["P1"], "quantity": [2], "unit_price": [5.0]})
    assert total_revenue(items) == pytest.approx(10.0)


def test_total_revenue_empty():
    items = pd.DataFrame(columns=["order_id", "product_id", "quantity", "unit_price"])
    assert total_revenue(items) == 0.0


def test_total_revenue_includes_guest_lines(schema):
    assert total_revenue(schema.order_items) == pytest.approx(199.0)


def test_revenue_by_country(schema):
    by_country = revenue_by_country(schema)
    assert by_country["country"].tolist() == ["EIRE", "United Kingdom"]
    assert by_country["revenue"].tolist() == pytest.approx([135.0, 60.3])


def test_country_sum_matches_total_without_guests(staging):
    schema = build_star_schema(staging[staging["customer_id"].notna()])
    by_country = revenue_by_country(schema)
    assert by_country["revenue"].sum() == pytest.approx(total_revenue(schema.order_items))


def test_top_products(schema):
    top = top_products(schema)
    assert top["product_name"].tolist() == [
        "ALARM CLOCK BAKELIKE PINK",
        "WHITE METAL LANTERN",
        "WHITE HANGING HEART",
        "HAND WARMER UNION JACK",
    ]
    assert top["revenue"].tolist() == pytest.approx([135.0, 33.9, 15.3, 14.8])


def test_top_products_truncates(schema):
    assert len(top_products(schema, n=2)) == 2


def test_top_customers(schema):
    top = top_customers(schema)
    assert top["customer_id"].tolist() == [12583, 17850]
    assert top["country"].tolist() == ["EIRE", "United Kingdom"]
    assert top["revenue"].tolist() == pytest.approx([135.0, 60.3])


def test_rankings_break_ties_by_identifier():
    customers = pd.DataFrame({"customer_id": [3, 1, 2], "country": ["X", "X", "X"]})
    orders = pd.DataFrame(
        {"order_id": ["o3", "o1", "o2"], "order_date": pd.to_datetime(["2011-01-01"] * 3), "customer_id": [3, 1, 2]}
    )
    products = pd.DataFrame({"product_id": ["p3", "p1", "p2"], "product_name": ["C", "A", "B"]})
    items = pd.DataFrame(
        {"order_id": ["o3", "o1", "o2"], "product_id": ["p3", "p1", "p2"], "quantity": [1, 1, 1], "unit_price": [10.0] * 3}
    )
    schema = StarSchema(customers, orders, products, items)

    assert top_customers(schema, n=2)["customer_id"].tolist() == [1, 2]
    assert top_products(schema, n=2)["product_name"].tolist() == ["A", "B"]


def test_top_products_keeps_unnamed_products():
    customers = pd.DataFrame({"customer_id": [1], "country": ["X"]})
    orders = pd.DataFrame({"order_id": ["o1"], "order_date": pd.to_datetime(["2011-01-01"]), "customer_id": [1]})
    products = pd.DataFrame({"product_id": ["p1", "p2"], "product_name": ["A", None]})
    items = pd.DataFrame(
        {"order_id": ["o1", "o1"], "product_id": ["p1", "p2"], "quantity": [1, 1], "unit_price": [5.0, 20.0]}
    )
    top = top_products(StarSchema(customers, orders, products, items))

    assert pd.isna(top["product_name"].iloc[0])
    assert top["revenue"].tolist() == pytest.approx([20.0, 5.0])
    assert top["revenue"].sum() == pytest.approx(total_revenue(items))
