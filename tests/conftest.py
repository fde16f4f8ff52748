import pandas as pd
import pytest

from retailstar.schema import build_star_schema
from retailstar.staging import prepare_staging


RAW_ROWS = [
    # InvoiceNo, StockCode, Description, Quantity, InvoiceDate, UnitPrice, CustomerID, Country
    ("536365", "85123A", "WHITE HANGING HEART", 6, "2010-12-01 08:26:00", 2.55, 17850.0, "United Kingdom"),
    ("536365", "71053", "WHITE METAL LANTERN", 6, "2010-12-01 08:26:00", 3.39, 17850.0, "United Kingdom"),
    ("536365", "85123A", "WHITE HANGING HEART", 6, "2010-12-01 08:26:00", 2.55, 17850.0, "United Kingdom"),
    ("536366", "22633", "HAND WARMER UNION JACK", 6, "2010-12-01 08:28:00", 1.85, 17850.0, "United Kingdom"),
    ("C536379", "85123A", "WHITE HANGING HEART", -1, "2010-12-01 09:41:00", 2.55, 17850.0, "United Kingdom"),
    ("536370", "22728", "ALARM CLOCK BAKELIKE PINK", 24, "2011-01-05 08:45:00", 3.75, 12583.0, "France"),
    ("536370", "22728", "alarm clock pink", 12, "2011-01-05 08:45:00", 3.75, 12583.0, "EIRE"),
    ("536371", "22633", "HAND WARMER UNION JACK", 2, "2011-01-10 10:00:00", 1.85, None, "United Kingdom"),
    ("536372", "POST", "POSTAGE", 1, "2011-01-10 11:00:00", 0.0, 12583.0, "France"),
    ("536400", "71053", "WHITE METAL LANTERN", 4, "2011-02-15 12:00:00", 3.39, 17850.0, "United Kingdom"),
]

RAW_COLUMNS = ["InvoiceNo", "StockCode", "Description", "Quantity", "InvoiceDate", "UnitPrice", "CustomerID", "Country"]


@pytest.fixture
def raw_staging():
    return pd.DataFrame(RAW_ROWS, columns=RAW_COLUMNS)


@pytest.fixture
def staging(raw_staging):
    return prepare_staging(raw_staging)


@pytest.fixture
def schema(staging):
    return build_star_schema(staging)


@pytest.fixture
def staging_csv(raw_staging, tmp_path):
    path = tmp_path / "online_retail.csv"
    raw_staging.to_csv(path, index=False)
    return path


def _make_staging(rows):
    raw = pd.DataFrame(
        [
            {
                "InvoiceNo": inv,
                "StockCode": code,
                "Description": f"ITEM {code}",
                "Quantity": qty,
                "InvoiceDate": date,
                "UnitPrice": price,
                "CustomerID": cust,
                "Country": "United Kingdom",
            }
            for inv, code, qty, date, price, cust in rows
        ]
    )
    return prepare_staging(raw)


@pytest.fixture
def make_staging():
    """Build a typed staging frame from (invoice, stock_code, qty, date, price, customer) tuples."""
    return _make_staging
