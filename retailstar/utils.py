from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence

import pandas as pd
import matplotlib.pyplot as plt


# -----------------------------
# Name normalization & picking
# -----------------------------
def _norm_name(s: str) -> str:
    """Lowercase, remove non-alphanumerics, collapse to a-z0-9."""
    return re.sub(r"[^a-z0-9]", "", str(s).lower())


def match_columns(df: pd.DataFrame, aliases: Mapping[str, Sequence[str]]) -> Dict[str, str]:
    """
    Map canonical names to ORIGINAL column names of `df`.

    A column matches a canonical name when its normalized form equals the
    normalized form of one of the aliases. Canonical names with no matching
    column are left out of the result.
    """
    norm_map = {}
    for c in df.columns:
        norm_map.setdefault(_norm_name(c), c)

    out: Dict[str, str] = {}
    for canonical, names in aliases.items():
        for name in (canonical, *names):
            orig = norm_map.get(_norm_name(name))
            if orig is not None:
                out[canonical] = orig
                break
    return out


# -----------------------------
# DataFrame cleaning helpers
# -----------------------------
def trim_strings(df: pd.DataFrame, cols: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Trim whitespace in object columns and coerce common empties to NaN.
    Converts '', 'nan', 'none', 'null' (any case) to NaN.
    """
    out = df.copy()
    if cols is None:
        cols = out.select_dtypes(include=["object", "string"]).columns
    empties = re.compile(r"^(?:nan|none|null)?$", flags=re.IGNORECASE)
    for c in cols:
        mask = out[c].isna()
        s = out[c].astype(str).str.strip()
        out[c] = s.mask(mask | s.map(lambda x: bool(empties.match(x))).astype(bool))
    return out


def coerce_datetimes_inplace(df: pd.DataFrame, dt_cols: Iterable[str]) -> None:
    """
    Parse columns to naive datetimes. Unparseable values become NaT.
    """
    for c in dt_cols:
        s = pd.to_datetime(df[c], errors="coerce")
        if getattr(s.dt, "tz", None) is not None:
            s = s.dt.tz_convert("UTC").dt.tz_localize(None)
        df[c] = s


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> None:
    """Inplace: coerce listed columns to numeric with NaN on errors."""
    for c in cols:
        if c and c in df.columns:
            df[c] = pd.to_numeric(df[c], errors="coerce")


def as_identifier(s: pd.Series) -> pd.Series:
    """
    Coerce an id column to a nullable integer when every present value is
    integral (e.g. 17850.0 -> 17850); otherwise return it unchanged.
    """
    num = pd.to_numeric(s, errors="coerce")
    present = s.notna()
    if present.any() and num[present].notna().all() and (num[present] % 1 == 0).all():
        return num.astype("Int64")
    return s


def line_revenue(quantity: pd.Series, unit_price: pd.Series) -> pd.Series:
    return quantity.astype(float) * unit_price.astype(float)


# -----------------------------
# Plot helper
# -----------------------------
def finish_fig(
    fig: plt.Figure,
    filename: Optional[str] = None,
    *,
    out_dir: Optional[str | Path] = None,
    show: bool = False,
    save: bool = True,
    dpi: int = 150
) -> Optional[Path]:
    """
    Save &/or show a Matplotlib figure, then close it.
    Returns the written path, if any.
    """
    path = None
    if save and filename:
        path = Path(out_dir if out_dir is not None else ".") / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(path, bbox_inches="tight", dpi=dpi)

    if show:
        plt.show()

    plt.close(fig)
    return path
