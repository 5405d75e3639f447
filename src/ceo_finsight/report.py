# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Report orchestration for CEO FinSight.

build_report() is the single entry point used by collaborators (the CLI,
a web layer, a scheduler...). It takes a ReportRequest, runs every
computation layer in data-flow order and returns a FinancialReport:

1) window validation (InvalidWindowError for end <= start),
2) record validation (malformed records become warnings),
3) DRE, with optional per-unit DREs,
4) rentability for every dimension and payment-method shares,
5) indicator families (liquidity, delinquency, efficiency, sustainability),
6) growth, seasonality and forecast over the monthly history,
7) recurrence, scenarios (with their expected revenue) and goal attainment.

Everything inside FinancialReport is unrounded. FinancialReport.to_dict()
is the output boundary where monetary values and percentages are rounded.

The pipeline is synchronous and side-effect free. Only `as_of` has an
implicit input: when the request does not carry one, today's date is used.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields, is_dataclass
from datetime import date, timedelta
from typing import Any, Optional

from .config import EngineConfig
from .dre import ConsolidatedDRE, DREAlert, consolidate, consolidate_units, dre_alerts, dre_as_dict
from .financial import round_currency
from .growth import (
    ForecastPoint,
    GrowthResult,
    MonthlyPoint,
    RecurrenceResult,
    Scenario,
    SeasonalityStats,
    cagr,
    expected_revenue,
    forecast_revenue,
    growth_pace,
    month_over_month,
    monthly_series,
    recurrence,
    scenarios,
    seasonality,
    year_over_year,
)
from .indicators import (
    BalanceInputs,
    DelinquencyIndicators,
    EfficiencyIndicators,
    GoalResult,
    IndicatorSnapshot,
    LiquidityIndicators,
    SustainabilityIndicators,
    default_goals,
    delinquency_indicators,
    efficiency_indicators,
    goal_attainment,
    liquidity_indicators,
    sustainability_indicators,
)
from .models import (
    CatalogEntry,
    ExpenseRecord,
    RecordWarning,
    TransactionRecord,
    partition_expenses,
    partition_transactions,
)
from .periods import Period, _today, make_window, month_key, month_start, next_month_start
from .rentability import (
    PaymentMethodShare,
    RentabilityEntry,
    aggregate_all_dimensions,
    payment_method_breakdown,
)
from .stats import average_growth_rate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportRequest:
    """
    Inputs of one report computation.

    Attributes:
        window_start, window_end: Half-open reporting window.
        transactions: Transaction records; those outside the window are
            ignored by the window computations.
        expenses: Expense postings.
        catalogs: Dimension -> catalog entries (cost_center, store, ...).
        config: Business assumptions; defaults to EngineConfig().
        history: Transactions used for new-customer detection, growth,
            seasonality and forecast. Always merged with `transactions`
            (first record wins for a given id).
        balance: Optional balance-sheet figures.
        goals: Metric -> target. Defaults to targets derived from history.
        as_of: Reference date for delinquency; defaults to today.
        units: Unit ids for per-unit DREs.
        forecast_horizon: Number of months to forecast.
        financial_income: Financial income for the DRE, supplied by the
            caller since transactions carry none. Unit DREs receive it
            in proportion to their gross revenue.
        input_warnings: Warnings already produced while reading the
            inputs; they are carried into the report.
    """

    window_start: date
    window_end: date
    transactions: Sequence[TransactionRecord]
    expenses: Sequence[ExpenseRecord] = ()
    catalogs: Optional[Mapping[str, Sequence[CatalogEntry]]] = None
    config: Optional[EngineConfig] = None
    history: Optional[Sequence[TransactionRecord]] = None
    balance: Optional[BalanceInputs] = None
    goals: Optional[Mapping[str, float]] = None
    as_of: Optional[date] = None
    units: Optional[Sequence[str]] = None
    forecast_horizon: int = 3
    financial_income: float = 0.0
    input_warnings: Sequence[RecordWarning] = ()


@dataclass(frozen=True)
class IndicatorSet:
    liquidity: LiquidityIndicators
    delinquency: DelinquencyIndicators
    efficiency: EfficiencyIndicators
    sustainability: SustainabilityIndicators

    def snapshots(self) -> dict[str, list[IndicatorSnapshot]]:
        """Every IndicatorSnapshot, grouped by family, in declaration order."""
        grouped: dict[str, list[IndicatorSnapshot]] = {}
        for f in fields(self):
            family = getattr(self, f.name)
            grouped[f.name] = [
                getattr(family, g.name)
                for g in fields(family)
                if isinstance(getattr(family, g.name), IndicatorSnapshot)
            ]
        return grouped


@dataclass(frozen=True)
class GrowthSummary:
    mom: GrowthResult
    yoy: GrowthResult
    cagr: float
    average_monthly_growth: float
    pace: str


@dataclass(frozen=True)
class FinancialReport:
    window: Period
    as_of: date
    dre: ConsolidatedDRE
    unit_dres: Mapping[str, ConsolidatedDRE]
    rentability: Mapping[str, list[RentabilityEntry]]
    payment_methods: list[PaymentMethodShare]
    indicators: IndicatorSet
    growth: GrowthSummary
    monthly: list[MonthlyPoint]
    seasonality: SeasonalityStats
    forecast: list[ForecastPoint]
    recurrence: RecurrenceResult
    scenarios: list[Scenario]
    expected_revenue: float
    goals: list[GoalResult]
    alerts: list[DREAlert]
    warnings: tuple[RecordWarning, ...]
    currency: str = "BRL"
    decimals: int = 2

    def to_dict(self) -> dict[str, Any]:
        """
        Plain, JSON-friendly representation rounded to `decimals` places.

        Dates become ISO strings and DREs include their percentages.
        """
        places = self.decimals
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "dre":
                value = dre_as_dict(value)
            elif f.name == "unit_dres":
                value = {unit: dre_as_dict(d) for unit, d in value.items()}
            data[f.name] = _plain(value, places)
        return data


def _plain(value: Any, places: int) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return round_currency(value, places)
    if isinstance(value, date):
        return value.isoformat()
    if is_dataclass(value):
        data = {f.name: _plain(getattr(value, f.name), places) for f in fields(value)}
        # Derived flags of snapshots and entries are useful in exports.
        for name in ("not_applicable", "estimated", "is_active"):
            if isinstance(getattr(type(value), name, None), property):
                data[name] = getattr(value, name)
        return data
    if isinstance(value, Mapping):
        return {k: _plain(v, places) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v, places) for v in value]
    return value


def _window_label(start: date, end: date) -> str:
    if start == month_start(start) and end == next_month_start(start):
        return month_key(start)
    return f"{start} → {end}"


def _merge_history(
    history: Sequence[TransactionRecord], transactions: Sequence[TransactionRecord]
) -> list[TransactionRecord]:
    """History plus transactions, keeping the first record seen for each id."""
    seen: set[str] = set()
    merged: list[TransactionRecord] = []
    for t in list(history) + list(transactions):
        if t.id in seen:
            continue
        seen.add(t.id)
        merged.append(t)
    return merged


def _dedupe_warnings(warnings: Sequence[RecordWarning]) -> tuple[RecordWarning, ...]:
    return tuple(dict.fromkeys(warnings))


def build_report(request: ReportRequest) -> FinancialReport:
    """
    Compute a full FinancialReport for the requested window.

    Raises:
        InvalidWindowError: if window_end <= window_start.
        ConfigMissingError: if a tax estimate is needed but none is configured.
    """
    window = make_window(
        request.window_start,
        request.window_end,
        label=_window_label(request.window_start, request.window_end),
    )
    cfg = request.config or EngineConfig()
    catalogs = request.catalogs or {}

    transactions, tx_warnings = partition_transactions(request.transactions)
    expenses, exp_warnings = partition_expenses(request.expenses)
    if request.history is not None:
        history, history_warnings = partition_transactions(request.history)
    else:
        history, history_warnings = [], []

    window_tx = [t for t in transactions if window.contains(t.occurrence_date)]
    window_exp = [e for e in expenses if window.contains(e.date)]
    logger.info(
        "Window %s: %d of %d transaction(s), %d of %d expense(s).",
        window.label,
        len(window_tx),
        len(transactions),
        len(window_exp),
        len(expenses),
    )

    # 1) DRE
    dre = consolidate(
        window_tx,
        window_exp,
        config=cfg,
        period_label=window.label,
        cost_centers=catalogs.get("cost_center"),
        financial_income=request.financial_income,
    )
    unit_dres: dict[str, ConsolidatedDRE] = {}
    if request.units:
        _, unit_dres = consolidate_units(
            window_tx,
            window_exp,
            request.units,
            config=cfg,
            period_label=window.label,
            cost_centers=catalogs.get("cost_center"),
            financial_income=request.financial_income,
        )

    # 2) Rentability
    rentability = aggregate_all_dimensions(window_tx, window_exp, catalogs, config=cfg)
    payment_methods = payment_method_breakdown(window_tx)

    # 3) Indicators
    as_of = request.as_of if request.as_of is not None else _today()
    history_tx = _merge_history(history, transactions)
    efficiency = efficiency_indicators(
        window_tx, window_exp, window=window, config=cfg, history=history_tx, dre=dre
    )
    indicators = IndicatorSet(
        liquidity=liquidity_indicators(
            window_tx, window_exp, window=window, config=cfg, balance=request.balance
        ),
        delinquency=delinquency_indicators(window_tx, as_of=as_of, config=cfg),
        efficiency=efficiency,
        sustainability=sustainability_indicators(
            window_tx, window_exp, config=cfg, balance=request.balance, dre=dre
        ),
    )

    # 4) Growth, seasonality, forecast
    dated = [t.occurrence_date for t in history_tx if t.occurrence_date < window.end]
    series_start = month_start(min(dated)) if dated else window.start
    series_start = min(series_start, window.start)
    series_window = make_window(series_start, window.end)
    monthly = monthly_series(history_tx, expenses, series_window)

    last_month = month_start(window.end - timedelta(days=1))
    revenues = [p.revenue for p in monthly]
    mom = month_over_month(monthly, cfg)
    growth = GrowthSummary(
        mom=mom,
        yoy=year_over_year(history_tx, last_month, cfg),
        cagr=cagr(revenues),
        average_monthly_growth=average_growth_rate(revenues),
        pace=growth_pace(mom.percent),
    )
    season = seasonality(monthly, cfg)
    forecast = forecast_revenue(monthly, request.forecast_horizon)

    # 5) Recurrence, scenarios, goals
    goals = request.goals
    if goals is None:
        goals = default_goals(season.mean, efficiency.average_ticket.value, cfg)
    actuals = {
        "revenue": dre.gross_revenue,
        "net_margin_pct": dre.net_result_pct,
        "average_ticket": efficiency.average_ticket.value,
    }

    projections = scenarios(dre.gross_revenue)

    warnings = _dedupe_warnings(
        [*request.input_warnings, *tx_warnings, *exp_warnings, *history_warnings]
    )
    if warnings:
        logger.warning("%d record(s) skipped or normalized; see report warnings.", len(warnings))

    return FinancialReport(
        window=window,
        as_of=as_of,
        dre=dre,
        unit_dres=unit_dres,
        rentability=rentability,
        payment_methods=payment_methods,
        indicators=indicators,
        growth=growth,
        monthly=monthly,
        seasonality=season,
        forecast=forecast,
        recurrence=recurrence(window_tx),
        scenarios=projections,
        expected_revenue=expected_revenue(projections),
        goals=goal_attainment(actuals, goals, cfg),
        alerts=dre_alerts(dre, cfg),
        warnings=warnings,
        currency=cfg.currency,
        decimals=cfg.decimals,
    )
