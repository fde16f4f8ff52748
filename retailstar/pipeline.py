"""
retailstar.pipeline

End-to-end run over a retail transactions staging file.

Main entrypoint:
    from retailstar import run_all, ProjectConfig
    run_all(ProjectConfig(staging_path="data/online_retail.csv", out_dir="out"))

This will:
    - load & type the staging table
    - build the naive tables, then the cleaned star schema
    - compute core revenue analytics
    - build customer_rfm, customer_rfm_scored and customer_segments
    - compute cumulative revenue, cohort retention, monthly product ranking
      and Pareto reports from the staging rows
    - write all outputs to <out_dir> as CSVs and PNGs (and optionally DuckDB)
"""

from __future__ import annotations

import argparse
import datetime as dt
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from loguru import logger

from .analytics import revenue_by_country, top_customers, top_products, total_revenue
from .logger import setup_logger
from .rfm import build_rfm, segment_summary
from .schema import StarSchema, build_star_schema, ingest_naive, log_cleaning_effect, validate_star_schema
from .staging import load_staging
from .utils import finish_fig
from .warehouse import write_tables
from .window_reports import (
    cohort_matrix,
    cohort_retention,
    cumulative_revenue,
    monthly_top_products,
    pareto_analysis,
    retention_rates,
    top_share_of_customers,
)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@dataclass
class ProjectConfig:
    """
    Configuration for the pipeline.

    Attributes
    ----------
    staging_path : Path
        CSV or Excel file with the raw transactions staging table.
    out_dir : Path
        Directory where all derived CSVs and plots will be written.
    reference_date : date, optional
        Day recency is measured against. Defaults to the day after the
        latest order in the data.
    top_n : int
        Size of the top-N product and customer rankings.
    show_plots : bool
        Whether to display plots (useful in notebooks).
    save_plots : bool
        Whether to save plots as PNGs under out_dir.
    warehouse_path : Path, optional
        DuckDB file to (re)write all tables into.
    log_level : str
        Console log level.
    log_to_file : bool
        Also write a daily log file under out_dir/logs.
    """
    staging_path: Path = Path("data/online_retail.csv")
    out_dir: Path = Path("out")
    reference_date: Optional[dt.date] = None
    top_n: int = 5
    show_plots: bool = False
    save_plots: bool = True
    warehouse_path: Optional[Path] = None
    log_level: str = "INFO"
    log_to_file: bool = False

    def __post_init__(self):
        self.staging_path = Path(self.staging_path)
        self.out_dir = Path(self.out_dir)
        if self.warehouse_path is not None:
            self.warehouse_path = Path(self.warehouse_path)
        if isinstance(self.reference_date, str):
            self.reference_date = dt.date.fromisoformat(self.reference_date)
        if self.top_n < 1:
            raise ValueError(f"top_n must be positive, got {self.top_n}")

    @property
    def log_dir(self) -> Path:
        return self.out_dir / "logs"

    def output_path(self, table: str) -> Path:
        return self.out_dir / f"{table}.csv"


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

MODEL_TABLES = (
    "customers",
    "orders",
    "products",
    "order_items",
    "customer_rfm",
    "customer_rfm_scored",
    "customer_segments",
)

REPORT_TABLES = (
    "revenue_summary",
    "revenue_by_country",
    "top_products",
    "top_customers",
    "segment_summary",
    "cumulative_revenue",
    "cohort_retention",
    "cohort_matrix",
    "monthly_top_products",
    "pareto",
)


def write_outputs(tables: Dict[str, pd.DataFrame], config: ProjectConfig) -> List[Path]:
    """
    Overwrite one CSV per table under config.out_dir.
    """
    config.out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, df in tables.items():
        path = config.output_path(name)
        # the cohort cross-tab carries its cohort labels in the index
        df.to_csv(path, index=df.index.name is not None)
        written.append(path)
    logger.info(f"Wrote {len(written)} CSV files to {config.out_dir}")
    return written


# ---------------------------------------------------------------------------
# Plots
# ---------------------------------------------------------------------------

def plot_cumulative_revenue(daily: pd.DataFrame, config: ProjectConfig) -> None:
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(daily["order_date"], daily["cumulative_revenue"])
    ax.set_title("Cumulative Revenue")
    ax.set_xlabel("Date")
    ax.set_ylabel("Revenue")
    fig.autofmt_xdate()
    finish_fig(fig, "cumulative_revenue.png", out_dir=config.out_dir, show=config.show_plots, save=config.save_plots)


def plot_segments(summary: pd.DataFrame, config: ProjectConfig) -> None:
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(12, 4))
    ax1.bar(summary["segment"], summary["customers"])
    ax1.set_title("Customers by Segment")
    ax1.set_ylabel("Customers")
    ax2.bar(summary["segment"], summary["revenue"])
    ax2.set_title("Revenue by Segment")
    ax2.set_ylabel("Revenue")
    for ax in (ax1, ax2):
        ax.tick_params(axis="x", rotation=45)
    finish_fig(fig, "segments.png", out_dir=config.out_dir, show=config.show_plots, save=config.save_plots)


def plot_pareto(pareto: pd.DataFrame, config: ProjectConfig) -> None:
    fig, ax = plt.subplots(figsize=(6, 4))
    x = np.arange(1, len(pareto) + 1) / max(len(pareto), 1) * 100
    ax.plot(x, pareto["revenue_share"] * 100)
    ax.axhline(80, color="grey", linestyle="--", linewidth=0.8)
    ax.set_xlabel("Customers (%)")
    ax.set_ylabel("Cumulative revenue (%)")
    ax.set_title("Revenue Concentration (Pareto)")
    finish_fig(fig, "pareto.png", out_dir=config.out_dir, show=config.show_plots, save=config.save_plots)


def plot_cohort_heatmap(rates: pd.DataFrame, config: ProjectConfig) -> None:
    fig, ax = plt.subplots(figsize=(10, 6))
    im = ax.imshow(rates.to_numpy(dtype=float), aspect="auto", cmap="Blues", vmin=0, vmax=1)
    ax.set_yticks(range(len(rates.index)))
    ax.set_yticklabels(rates.index)
    ax.set_xticks(range(len(rates.columns)))
    ax.set_xticklabels(rates.columns, rotation=90)
    ax.set_xlabel("Order month")
    ax.set_ylabel("Cohort month")
    ax.set_title("Cohort Retention")
    fig.colorbar(im, ax=ax)
    finish_fig(fig, "cohort_retention.png", out_dir=config.out_dir, show=config.show_plots, save=config.save_plots)


# ---------------------------------------------------------------------------
# Main entrypoint
# ---------------------------------------------------------------------------

def build_reports(staging: pd.DataFrame, schema: StarSchema, config: ProjectConfig) -> Dict[str, pd.DataFrame]:
    """
    Compute every model and report table from an already-typed staging frame.
    """
    validate_star_schema(schema)

    # Core analytics
    revenue = total_revenue(schema.order_items)
    logger.info(f"Total revenue (cleaned order items): {revenue:,.2f}")
    tables: Dict[str, pd.DataFrame] = schema.tables()

    # RFM
    rfm, scored, segments = build_rfm(schema, config.reference_date)
    tables.update(
        customer_rfm=rfm,
        customer_rfm_scored=scored,
        customer_segments=segments,
        revenue_summary=pd.DataFrame({"total_revenue": [revenue]}),
        revenue_by_country=revenue_by_country(schema),
        top_products=top_products(schema, config.top_n),
        top_customers=top_customers(schema, config.top_n),
        segment_summary=segment_summary(segments),
    )

    # Window reports
    retention = cohort_retention(staging)
    tables.update(
        cumulative_revenue=cumulative_revenue(staging),
        cohort_retention=retention,
        cohort_matrix=cohort_matrix(retention),
        monthly_top_products=monthly_top_products(staging, config.top_n),
        pareto=pareto_analysis(staging),
    )

    daily = tables["cumulative_revenue"]
    staging_revenue = float(daily["daily_revenue"].sum()) if not daily.empty else 0.0
    if not np.isclose(staging_revenue, revenue):
        logger.warning(
            f"Staging-based reports total {staging_revenue:,.2f} vs {revenue:,.2f} in the cleaned schema; "
            "window reports are not deduplicated"
        )

    if not tables["pareto"].empty:
        logger.info(f"{top_share_of_customers(tables['pareto']):.1%} of customers account for 80% of revenue")

    return tables


def run_all(config: ProjectConfig) -> Dict[str, pd.DataFrame]:
    """
    Run the full pipeline with the given configuration.
    """
    setup_logger(config.log_level, config.log_dir if config.log_to_file else None)
    config.out_dir.mkdir(parents=True, exist_ok=True)

    # 1) Load staging
    staging = load_staging(config.staging_path)

    # 2) Naive ingestion, replaced by the cleaned star schema
    naive = ingest_naive(staging)
    schema = build_star_schema(staging)
    log_cleaning_effect(naive, schema)

    # 3) Model and report tables
    tables = build_reports(staging, schema, config)
    write_outputs(tables, config)

    # 4) Plots
    if config.save_plots or config.show_plots:
        plot_cumulative_revenue(tables["cumulative_revenue"], config)
        plot_segments(tables["segment_summary"], config)
        plot_pareto(tables["pareto"], config)
        if not tables["cohort_matrix"].empty:
            plot_cohort_heatmap(retention_rates(tables["cohort_matrix"]), config)

    # 5) Warehouse
    if config.warehouse_path is not None:
        write_tables(config.warehouse_path, tables)

    logger.info(f"Pipeline completed. Outputs written to: {config.out_dir}")
    return tables


def parse_args(argv: Optional[Sequence[str]] = None) -> ProjectConfig:
    parser = argparse.ArgumentParser(prog="retailstar", description="Build the retail star schema and analytics reports.")
    parser.add_argument("--staging", required=True, help="Staging CSV or Excel file")
    parser.add_argument("--out-dir", default="out", help="Output directory (default: out)")
    parser.add_argument("--reference-date", default=None, help="Recency reference day, YYYY-MM-DD")
    parser.add_argument("--top-n", type=int, default=5)
    parser.add_argument("--warehouse", default=None, help="DuckDB file to write all tables into")
    parser.add_argument("--no-plots", action="store_true", help="Skip writing PNG plots")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", action="store_true", help="Also log to <out-dir>/logs")
    args = parser.parse_args(argv)

    return ProjectConfig(
        staging_path=args.staging,
        out_dir=args.out_dir,
        reference_date=args.reference_date,
        top_n=args.top_n,
        save_plots=not args.no_plots,
        warehouse_path=args.warehouse,
        log_level=args.log_level,
        log_to_file=args.log_file,
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    run_all(parse_args(argv))


if __name__ == "__main__":
    main()
