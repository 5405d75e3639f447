# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Growth, seasonality, forecast and recurrence analysis.

Growth comparisons (MoM, YoY) use a fixed policy when the previous value
is zero: 0 when the current value is also zero, +100 when it is positive
and -100 when it is negative. CAGR is reported in percent over the number
of monthly steps and is 0 when the base is not positive.

The revenue forecast is an ordinary least-squares line fitted on
(month index, revenue). It has no seasonal component: a business with a
strong December peak will see that peak flattened into the trend.

Recurrence only looks at the transactions it is given (normally those of
the reporting window). A customer whose first in-window purchase is not
their first ever is still counted as a first purchase.
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from . import stats
from .config import EngineConfig
from .financial import classify_at_least, classify_at_most, participation_pct, percent_change
from .models import ExpenseRecord, TransactionRecord
from .periods import (
    Period,
    add_months,
    iter_month_windows,
    month_key,
    month_window_of,
    parse_month_key,
    same_month_previous_year,
)

# (minimum growth %, label), best first; below the last one is "negative".
GROWTH_PACE_TIERS = (
    (20.0, "accelerated"),
    (10.0, "moderate"),
    (0.0, "slow"),
)

# (maximum coefficient of variation %, label), most stable first.
STABILITY_TIERS = (
    (5.0, "very_stable"),
    (10.0, "stable"),
    (20.0, "moderate"),
    (30.0, "unstable"),
)

# (name, growth %, probability %)
SCENARIOS = (
    ("optimistic", 20.0, 20.0),
    ("realistic", 10.0, 60.0),
    ("pessimistic", 5.0, 20.0),
)


@dataclass(frozen=True)
class GrowthResult:
    name: str
    current: float
    previous: float
    absolute_change: float
    percent: float
    status: str


@dataclass(frozen=True)
class MonthlyPoint:
    """Revenue, settled expenses and profit of one calendar month."""

    month: str
    revenue: float
    expense: float
    profit: float
    margin_pct: float
    transaction_count: int


@dataclass(frozen=True)
class SeasonalityStats:
    months: int
    mean: float
    std_dev: float
    coefficient_of_variation: float
    median: float
    quartiles: stats.Quartiles
    minimum: float
    maximum: float
    amplitude: float
    iqr: float
    best_month: Optional[str]
    worst_month: Optional[str]
    volatility_tier: str
    stability_class: str
    outlier_months: tuple[str, ...] = ()
    z_scores: Mapping[str, float] = field(default_factory=dict)
    moving_average: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ForecastPoint:
    month: str
    index: int
    value: float


@dataclass(frozen=True)
class RecurrenceResult:
    customers: int
    recurring_customers: int
    total_revenue: float
    recurring_revenue: float
    one_off_revenue: float
    recurring_share_pct: float
    recurring_customer_pct: float


@dataclass(frozen=True)
class Scenario:
    name: str
    growth_pct: float
    probability_pct: float
    projected_revenue: float


# ---------------------------------------------------------------------------
# Growth
# ---------------------------------------------------------------------------


def growth_pct(current: float, previous: float) -> float:
    """
    Percentage change with the zero-base policy applied.

    Examples:
        >>> growth_pct(50, 0)
        100.0
    """
    change = percent_change(current, previous)
    if change is not None:
        return change
    if current > 0:
        return 100.0
    if current < 0:
        return -100.0
    return 0.0


def growth_status(percent: float, tolerance: float) -> str:
    if percent > tolerance:
        return "growth"
    if percent < -tolerance:
        return "decline"
    return "stable"


def growth_between(
    name: str, current: float, previous: float, tolerance: float = 0.5
) -> GrowthResult:
    percent = growth_pct(current, previous)
    return GrowthResult(
        name=name,
        current=current,
        previous=previous,
        absolute_change=current - previous,
        percent=percent,
        status=growth_status(percent, tolerance),
    )


def growth_pace(percent: float) -> str:
    return classify_at_least(percent, GROWTH_PACE_TIERS, "negative")


def cagr(values: Sequence[float]) -> float:
    """
    Compound growth rate in percent over len(values) - 1 monthly steps.

    N here is the number of steps between the first and the last point,
    not the number of points: ((final / initial) ** (1 / (len - 1)) - 1) * 100.
    A literal ** (1 / len) would understate the rate by treating N monthly
    values as N periods of growth. [100, 110, 121] gives 10 %, not 6.6 %.

    Returns 0.0 with fewer than two points, a non-positive initial value
    or a negative final value.
    """
    if len(values) < 2:
        return 0.0
    initial = float(values[0])
    final = float(values[-1])
    if initial <= 0 or final < 0:
        return 0.0
    steps = len(values) - 1
    return ((final / initial) ** (1 / steps) - 1) * 100


def _revenue_in(transactions: Iterable[TransactionRecord], window: Period) -> float:
    return math.fsum(
        t.amount
        for t in transactions
        if t.occurrence_date is not None and window.contains(t.occurrence_date)
    )


def month_over_month(
    series: Sequence[MonthlyPoint], config: Optional[EngineConfig] = None
) -> GrowthResult:
    """
    Revenue growth of the last month of the series against the one before.

    With a single month the previous revenue is taken as 0.
    """
    cfg = config or EngineConfig()
    current = series[-1].revenue if series else 0.0
    previous = series[-2].revenue if len(series) >= 2 else 0.0
    return growth_between("mom", current, previous, cfg.growth_tolerance_pct)


def year_over_year(
    transactions: Sequence[TransactionRecord],
    month: date,
    config: Optional[EngineConfig] = None,
) -> GrowthResult:
    """Revenue of `month` against the same calendar month one year before."""
    cfg = config or EngineConfig()
    current = _revenue_in(transactions, month_window_of(month))
    previous = _revenue_in(transactions, same_month_previous_year(month))
    return growth_between("yoy", current, previous, cfg.growth_tolerance_pct)


# ---------------------------------------------------------------------------
# Monthly series and seasonality
# ---------------------------------------------------------------------------


def monthly_series(
    transactions: Iterable[TransactionRecord],
    expenses: Iterable[ExpenseRecord],
    window: Period,
) -> list[MonthlyPoint]:
    """
    One point per calendar month overlapping the window, oldest first.

    Only records dated inside the window are counted. Months without any
    activity are present with zero values. Expenses are settled ones only.
    """
    revenue: dict[str, list[float]] = {}
    expense: dict[str, list[float]] = {}
    counts: dict[str, int] = {}

    for t in transactions:
        if t.occurrence_date is None or not window.contains(t.occurrence_date):
            continue
        key = month_key(t.occurrence_date)
        revenue.setdefault(key, []).append(t.amount)
        counts[key] = counts.get(key, 0) + 1

    for e in expenses:
        if not e.is_settled or not window.contains(e.date):
            continue
        expense.setdefault(month_key(e.date), []).append(e.amount)

    points: list[MonthlyPoint] = []
    for month in iter_month_windows(window):
        rev = math.fsum(revenue.get(month.label, ()))
        exp = math.fsum(expense.get(month.label, ()))
        profit = rev - exp
        points.append(
            MonthlyPoint(
                month=month.label,
                revenue=rev,
                expense=exp,
                profit=profit,
                margin_pct=participation_pct(profit, rev),
                transaction_count=counts.get(month.label, 0),
            )
        )
    return points


def volatility_tier(cv: float, config: Optional[EngineConfig] = None) -> str:
    cfg = config or EngineConfig()
    low, high = cfg.volatility_thresholds
    if cv < low:
        return "low"
    if cv <= high:
        return "moderate"
    return "high"


def stability_class(cv: float) -> str:
    return classify_at_most(cv, STABILITY_TIERS, "very_unstable")


def seasonality(
    series: Sequence[MonthlyPoint], config: Optional[EngineConfig] = None
) -> SeasonalityStats:
    """
    Descriptive statistics of monthly revenue.

    The best and worst months are the highest and lowest revenue; on ties
    the earliest month wins. Outlier months fall outside the 1.5 x IQR
    fences. The moving average (EngineConfig.moving_average_window months)
    is keyed by the last month of each full window.
    """
    revenues = [p.revenue for p in series]
    cv = stats.coefficient_of_variation(revenues)
    cfg = config or EngineConfig()
    months = [p.month for p in series]
    window = cfg.moving_average_window
    smoothed = stats.simple_moving_average(revenues, window)

    best = worst = None
    if series:
        best = min(series, key=lambda p: (-p.revenue, p.month)).month
        worst = min(series, key=lambda p: (p.revenue, p.month)).month

    return SeasonalityStats(
        months=len(series),
        mean=stats.mean(revenues),
        std_dev=stats.std_dev(revenues),
        coefficient_of_variation=cv,
        median=stats.median(revenues),
        quartiles=stats.quartiles(revenues),
        minimum=stats.minimum(revenues),
        maximum=stats.maximum(revenues),
        amplitude=stats.value_range(revenues),
        iqr=stats.iqr(revenues),
        best_month=best,
        worst_month=worst,
        volatility_tier=volatility_tier(cv, cfg),
        stability_class=stability_class(cv),
        outlier_months=tuple(months[i] for i, _, _ in stats.find_outliers(revenues).indices),
        z_scores=dict(zip(months, stats.z_scores(revenues))),
        moving_average=dict(zip(months[window - 1 :], smoothed)),
    )


# ---------------------------------------------------------------------------
# Forecast
# ---------------------------------------------------------------------------


def revenue_trend(series: Sequence[MonthlyPoint]) -> stats.LinearFit:
    """OLS fit of revenue against the month index 0..n-1."""
    return stats.linear_regression(
        list(range(len(series))), [p.revenue for p in series]
    )


def forecast_revenue(
    series: Sequence[MonthlyPoint], horizon: int = 3
) -> list[ForecastPoint]:
    """
    Extrapolate the revenue trend over the next `horizon` months.

    Negative extrapolations are returned as computed. An empty series
    yields no forecast.
    """
    if not series or horizon <= 0:
        return []

    fit = revenue_trend(series)
    last = parse_month_key(series[-1].month)
    n = len(series)
    return [
        ForecastPoint(
            month=month_key(add_months(last, step)),
            index=n + step - 1,
            value=fit.predict(n + step - 1),
        )
        for step in range(1, horizon + 1)
    ]


# ---------------------------------------------------------------------------
# Recurrence and scenarios
# ---------------------------------------------------------------------------


def recurrence(transactions: Iterable[TransactionRecord]) -> RecurrenceResult:
    """
    Recurring customers and the revenue they bring back.

    A customer is recurring with two or more of the given transactions.
    Recurring revenue is the revenue of their second and later
    transactions (ordered by date, then id). Transactions without a
    customer are never recurring.
    """
    ordered = sorted(
        transactions,
        key=lambda t: (t.occurrence_date or date.min, t.id),
    )
    seen: dict[str, int] = {}
    recurring: list[float] = []
    amounts: list[float] = []

    for t in ordered:
        amounts.append(t.amount)
        if t.customer_id is None:
            continue
        count = seen.get(t.customer_id, 0)
        if count >= 1:
            recurring.append(t.amount)
        seen[t.customer_id] = count + 1

    total = math.fsum(amounts)
    recurring_revenue = math.fsum(recurring)
    recurring_customers = sum(1 for c in seen.values() if c >= 2)

    return RecurrenceResult(
        customers=len(seen),
        recurring_customers=recurring_customers,
        total_revenue=total,
        recurring_revenue=recurring_revenue,
        one_off_revenue=total - recurring_revenue,
        recurring_share_pct=participation_pct(recurring_revenue, total),
        recurring_customer_pct=participation_pct(recurring_customers, len(seen)),
    )


def scenarios(base_revenue: float) -> list[Scenario]:
    """Optimistic, realistic and pessimistic projections of base_revenue."""
    return [
        Scenario(
            name=name,
            growth_pct=growth,
            probability_pct=probability,
            projected_revenue=base_revenue * (1 + growth / 100),
        )
        for name, growth, probability in SCENARIOS
    ]


def expected_revenue(projections: Sequence[Scenario]) -> float:
    """Probability-weighted revenue across scenarios."""
    return math.fsum(s.projected_revenue * s.probability_pct / 100 for s in projections)
