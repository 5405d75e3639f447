# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Tabular views of report results.

Each helper turns computation results into a pandas DataFrame ready for
console display (``DataFrame.to_string``) or CSV export. This is, with
FinancialReport.to_dict(), the only place where numbers are rounded.

Undefined indicator values are shown as NaN rather than 0.0 so that a
table never suggests a measured zero.
"""

import math

import pandas as pd

from .dre import ConsolidatedDRE, dre_waterfall
from .financial import round_currency
from .growth import ForecastPoint, MonthlyPoint
from .indicators import DelinquencyIndicators, GoalResult, IndicatorSnapshot
from .models import RecordWarning
from .rentability import RentabilityEntry

DRE_COLUMNS = ["line", "kind", "amount", "pct_of_net_revenue"]
RENTABILITY_COLUMNS = [
    "key",
    "name",
    "revenue",
    "cost",
    "expense",
    "profit",
    "margin_pct",
    "participation_pct",
    "roi_pct",
    "status",
    "transactions",
]
INDICATOR_COLUMNS = ["family", "key", "value", "unit", "classification", "flags"]


def _round(value: float, decimals: int) -> float:
    if math.isnan(value):
        return value
    return round_currency(value, decimals)


def dre_to_dataframe(dre: ConsolidatedDRE, decimals: int = 2) -> pd.DataFrame:
    """
    Convert a DRE into its waterfall table.

    Columns:
        - line: Human-readable line label.
        - kind: "total" for cascade subtotals, "delta" for movements.
        - amount: Signed amount (deductions are negative).
        - pct_of_net_revenue: abs(amount) / net revenue * 100.
    """
    rows = [
        {
            "line": step.label,
            "kind": step.kind,
            "amount": _round(step.value, decimals),
            "pct_of_net_revenue": _round(dre.pct(abs(step.value)), decimals),
        }
        for step in dre_waterfall(dre)
    ]
    return pd.DataFrame(rows, columns=DRE_COLUMNS)


def rentability_to_dataframe(
    entries: list[RentabilityEntry], decimals: int = 2
) -> pd.DataFrame:
    """Convert rentability entries into a DataFrame, preserving their order."""
    if not entries:
        return pd.DataFrame(columns=RENTABILITY_COLUMNS)

    rows = [
        {
            "key": e.key,
            "name": e.name,
            "revenue": _round(e.revenue, decimals),
            "cost": _round(e.cost, decimals),
            "expense": _round(e.expense, decimals),
            "profit": _round(e.profit, decimals),
            "margin_pct": _round(e.margin_pct, decimals),
            "participation_pct": _round(e.participation_pct, decimals),
            "roi_pct": _round(e.roi_pct, decimals),
            "status": e.status,
            "transactions": e.transaction_count,
        }
        for e in entries
    ]
    return pd.DataFrame(rows, columns=RENTABILITY_COLUMNS)


def indicators_to_dataframe(
    snapshots: dict[str, list[IndicatorSnapshot]], decimals: int = 2
) -> pd.DataFrame:
    """
    Flatten indicator snapshots grouped by family into one DataFrame.

    Args:
        snapshots:
            Family name -> snapshots, e.g. {"liquidity": [...], ...}.
        decimals:
            Number of decimal places to use when rounding values.

    Returns:
        One row per snapshot, families in the given order. Undefined
        ratios have a NaN value.
    """
    rows: list[dict[str, object]] = []
    for family, items in snapshots.items():
        for s in items:
            value = float("nan") if s.not_applicable else _round(s.value, decimals)
            rows.append(
                {
                    "family": family,
                    "key": s.name,
                    "value": value,
                    "unit": s.unit,
                    "classification": s.classification,
                    "flags": ",".join(s.flags),
                }
            )
    if not rows:
        return pd.DataFrame(columns=INDICATOR_COLUMNS)
    return pd.DataFrame(rows, columns=INDICATOR_COLUMNS)


def aging_to_dataframe(
    delinquency: DelinquencyIndicators, decimals: int = 2
) -> pd.DataFrame:
    rows = [
        {
            "bucket": b.label,
            "count": b.count,
            "value": _round(b.value, decimals),
            "pct": _round(b.pct, decimals),
        }
        for b in delinquency.aging
    ]
    return pd.DataFrame(rows, columns=["bucket", "count", "value", "pct"])


def monthly_to_dataframe(series: list[MonthlyPoint], decimals: int = 2) -> pd.DataFrame:
    columns = ["month", "revenue", "expense", "profit", "margin_pct", "transactions"]
    rows = [
        {
            "month": p.month,
            "revenue": _round(p.revenue, decimals),
            "expense": _round(p.expense, decimals),
            "profit": _round(p.profit, decimals),
            "margin_pct": _round(p.margin_pct, decimals),
            "transactions": p.transaction_count,
        }
        for p in series
    ]
    return pd.DataFrame(rows, columns=columns)


def forecast_to_dataframe(points: list[ForecastPoint], decimals: int = 2) -> pd.DataFrame:
    rows = [
        {"month": p.month, "index": p.index, "forecast": _round(p.value, decimals)}
        for p in points
    ]
    return pd.DataFrame(rows, columns=["month", "index", "forecast"])


def goals_to_dataframe(goals: list[GoalResult], decimals: int = 2) -> pd.DataFrame:
    columns = ["metric", "target", "actual", "attainment_pct", "gap", "status"]
    rows = [
        {
            "metric": g.metric,
            "target": _round(g.target, decimals),
            "actual": _round(g.actual, decimals),
            "attainment_pct": _round(g.attainment_pct, decimals),
            "gap": _round(g.gap, decimals),
            "status": g.status,
        }
        for g in goals
    ]
    return pd.DataFrame(rows, columns=columns)


def warnings_to_dataframe(warnings: tuple[RecordWarning, ...]) -> pd.DataFrame:
    rows = [{"record_id": w.record_id, "code": w.code, "message": w.message} for w in warnings]
    return pd.DataFrame(rows, columns=["record_id", "code", "message"])
