# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for CEO FinSight.

The CLI is intentionally thin: it reads CSV inputs, builds a
ReportRequest and renders the resulting FinancialReport. All financial
logic lives in the library modules.

Pipeline
--------

1) Load business assumptions from a TOML file (``--config``) or use the
   built-in defaults.
2) Determine the reporting window:

   - ``--month YYYY-MM`` selects one calendar month,
   - ``--from-date`` / ``--to-date`` select a custom window (end exclusive),
   - otherwise the current calendar month is used.

3) Read transactions (and optional product lines), expense postings and
   dimension catalogs from CSV files. Malformed rows are skipped and
   reported as warnings.
4) Compute the report. All transactions read are used as history for
   growth, seasonality and forecast.
5) Render tables on stdout and/or write timestamped CSV files.

Examples
--------

    python -m ceo_finsight.cli --transactions data/sales.csv --month 2025-03

    python -m ceo_finsight.cli \\
        --transactions data/sales.csv --products data/sale_items.csv \\
        --expenses data/expenses.csv \\
        --catalog cost_center=data/cost_centers.csv \\
        --catalog store=data/stores.csv \\
        --from-date 2025-01-01 --to-date 2025-04-01 \\
        --as-of 2025-04-01 --mode both --output-dir data/output
"""

import argparse
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from . import __version__
from .config import load_engine_config
from .exceptions import FinsightError
from .io import read_catalog, read_expenses, read_transactions
from .models import DIMENSIONS, CatalogEntry
from .periods import determine_window_from_args
from .report import FinancialReport, ReportRequest, build_report
from .views import (
    aging_to_dataframe,
    dre_to_dataframe,
    forecast_to_dataframe,
    goals_to_dataframe,
    indicators_to_dataframe,
    monthly_to_dataframe,
    rentability_to_dataframe,
    warnings_to_dataframe,
)


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="python -m ceo_finsight.cli",
        description=(
            "CEO FinSight - Financial computation core for executive dashboards. "
            "Reads sales and expense records, consolidates the DRE, computes "
            "rentability, indicators, growth and forecast, and renders them."
        ),
    )

    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of ceo_finsight and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help="Path to a TOML file with business assumptions and thresholds.",
    )

    # Inputs
    ap.add_argument(
        "--transactions",
        dest="transactions_path",
        metavar="CSV_PATH",
        help="CSV file of sales transactions (required unless --version).",
    )
    ap.add_argument(
        "--products",
        dest="products_path",
        metavar="CSV_PATH",
        help="Optional CSV file of product lines (transaction_id, product_id, amount).",
    )
    ap.add_argument(
        "--expenses",
        dest="expenses_path",
        metavar="CSV_PATH",
        help="Optional CSV file of expense postings.",
    )
    ap.add_argument(
        "--catalog",
        dest="catalogs",
        action="append",
        default=[],
        metavar="DIMENSION=CSV_PATH",
        help=(
            "Dimension catalog (id, name), repeatable. "
            f"DIMENSION is one of: {', '.join(DIMENSIONS)}."
        ),
    )
    ap.add_argument(
        "--unit",
        dest="units",
        action="append",
        default=[],
        help="Unit id for a per-unit DRE, repeatable.",
    )

    # Window selection
    ap.add_argument("--month", help="Reporting month (YYYY-MM).")
    ap.add_argument(
        "--from-date",
        "--from",
        dest="from_date",
        help="Custom window start date (YYYY-MM-DD), inclusive.",
    )
    ap.add_argument(
        "--to-date",
        "--to",
        dest="to_date",
        help="Custom window end date (YYYY-MM-DD), exclusive.",
    )
    ap.add_argument(
        "--as-of",
        dest="as_of",
        help="Reference date for delinquency (YYYY-MM-DD). Defaults to today.",
    )
    ap.add_argument(
        "--financial-income",
        dest="financial_income",
        type=float,
        default=0.0,
        help="Financial income of the window, added to the DRE.",
    )

    # Display options
    ap.add_argument(
        "--mode",
        dest="display_mode",
        choices=["table", "csv", "both"],
        default="table",
        help=(
            "'table' prints results to stdout, "
            "'csv' writes CSV files only, "
            "'both' does both."
        ),
    )
    ap.add_argument(
        "--output-dir",
        dest="output_dir",
        help=(
            "Output directory where CSV files will be written when display "
            "mode includes 'csv'. If omitted, 'data/output' is used."
        ),
    )
    ap.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING).",
    )
    return ap


def _parse_optional_date(value: Optional[str]) -> Optional[date]:
    """Parse an optional YYYY-MM-DD string; None stays None."""
    if value is None:
        return None
    return date.fromisoformat(value)


def _parse_catalog_arg(raw: str) -> tuple[str, Path]:
    """
    Split a DIMENSION=CSV_PATH argument.

    Raises:
        ValueError: if the argument is malformed or the dimension unknown.
    """
    dimension, sep, path = raw.partition("=")
    dimension = dimension.strip()
    if not sep or not path.strip():
        raise ValueError(f"Invalid --catalog value {raw!r}, expected DIMENSION=CSV_PATH.")
    if dimension not in DIMENSIONS:
        raise ValueError(
            f"Unknown catalog dimension {dimension!r}. Expected one of: {', '.join(DIMENSIONS)}."
        )
    return dimension, Path(path.strip())


def _report_tables(report: FinancialReport) -> dict[str, pd.DataFrame]:
    """Named tables to render, in display order."""
    decimals = report.decimals
    tables: dict[str, pd.DataFrame] = {
        "dre": dre_to_dataframe(report.dre, decimals),
    }
    for unit, unit_dre in report.unit_dres.items():
        tables[f"dre_{unit}"] = dre_to_dataframe(unit_dre, decimals)
    for dimension, entries in report.rentability.items():
        if entries:
            tables[f"rentability_{dimension}"] = rentability_to_dataframe(entries, decimals)
    tables["indicators"] = indicators_to_dataframe(report.indicators.snapshots(), decimals)
    tables["aging"] = aging_to_dataframe(report.indicators.delinquency, decimals)
    tables["monthly"] = monthly_to_dataframe(report.monthly, decimals)
    tables["forecast"] = forecast_to_dataframe(report.forecast, decimals)
    tables["goals"] = goals_to_dataframe(report.goals, decimals)
    if report.warnings:
        tables["warnings"] = warnings_to_dataframe(report.warnings)
    return tables


def _print_summary(report: FinancialReport) -> None:
    growth = report.growth
    season = report.seasonality
    print()
    print("=== Growth & seasonality ===")
    print(f"MoM: {growth.mom.percent:.2f}% ({growth.mom.status})")
    print(f"YoY: {growth.yoy.percent:.2f}% ({growth.yoy.status})")
    print(f"CAGR: {growth.cagr:.2f}% | pace: {growth.pace}")
    print(f"Average monthly growth: {growth.average_monthly_growth:.2f}%")
    print(
        f"Coefficient of variation: {season.coefficient_of_variation:.2f}% "
        f"({season.volatility_tier}, {season.stability_class})"
    )
    if season.outlier_months:
        print(f"Atypical months: {', '.join(season.outlier_months)}")
    print(f"Expected revenue across scenarios: {report.expected_revenue:.2f}")
    print(
        f"Recurring revenue share: {report.recurrence.recurring_share_pct:.2f}% "
        f"({report.recurrence.recurring_customers} recurring customer(s))"
    )
    print(f"Financial health: {report.indicators.sustainability.health}")
    for alert in report.alerts:
        print(f"[{alert.level}] {alert.message}")


def main() -> None:
    """
    Entry point for the CEO FinSight CLI.

    Parses arguments, reads the CSV inputs, computes the report for the
    selected window and renders it as console tables and/or CSV files.
    """
    parser = _build_parser()
    args = parser.parse_args()

    # --version: short-circuit and exit early.
    if args.version:
        print(f"ceo_finsight version {__version__}")
        return

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.transactions_path:
        parser.error("--transactions is required.")

    # 1) Configuration
    try:
        config = load_engine_config(args.config_path)
    except (FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))

    # 2) Reporting window
    try:
        window = determine_window_from_args(args)
        as_of = _parse_optional_date(args.as_of)
    except ValueError as exc:
        parser.error(str(exc))

    # 3) Inputs
    for path in (args.transactions_path, args.products_path, args.expenses_path):
        if path is not None and not Path(path).is_file():
            parser.error(f"CSV file not found: {path}")

    transactions, warnings = read_transactions(args.transactions_path, args.products_path)
    expenses = []
    if args.expenses_path:
        expenses, expense_warnings = read_expenses(args.expenses_path)
        warnings = warnings + expense_warnings

    catalogs: dict[str, list[CatalogEntry]] = {}
    for raw in args.catalogs:
        try:
            dimension, path = _parse_catalog_arg(raw)
        except ValueError as exc:
            parser.error(str(exc))
        if not path.is_file():
            parser.error(f"Catalog file not found: {path}")
        catalogs[dimension] = read_catalog(path)

    print(f"Applied window: {window.label} ({window.start.isoformat()} → {window.end.isoformat()})")
    print(f"Transactions read: {len(transactions)} | Expenses read: {len(expenses)}")
    if warnings:
        print(f"Warning: {len(warnings)} row(s) were skipped or normalized while reading.")

    # 4) Report
    request = ReportRequest(
        window_start=window.start,
        window_end=window.end,
        transactions=transactions,
        expenses=expenses,
        catalogs=catalogs,
        config=config,
        history=transactions,
        as_of=as_of,
        units=args.units or None,
        financial_income=args.financial_income,
        input_warnings=warnings,
    )
    try:
        report = build_report(request)
    except FinsightError as exc:
        parser.exit(2, f"error: {exc}\n")

    tables = _report_tables(report)

    # 5) Render to console (table mode).
    if args.display_mode in {"table", "both"}:
        for name, df in tables.items():
            print()
            print(f"=== {name.replace('_', ' ').title()} ===")
            print(df.to_string(index=False))
        _print_summary(report)

    # 6) Render to CSV files (csv mode).
    if args.display_mode in {"csv", "both"}:
        output_dir = Path(args.output_dir) if args.output_dir else Path("data/output")
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
        for name, df in tables.items():
            path = output_dir / f"{name}_{timestamp}.csv"
            df.to_csv(path, index=False)
            print(f"Wrote {path} ({len(df)} rows)")


if __name__ == "__main__":
    main()
