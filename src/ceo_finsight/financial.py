# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Financial primitives for CEO FinSight.

Pure functions over scalars: margins, liquidity and debt ratios, working
capital, delinquency, customer economics, break-even, plus the generic
tier classifiers used by the indicator engine.

Undefined ratios
----------------
Any ratio whose denominator is zero has no financial meaning. Following
the same convention as the ratios engine of the original FinSight tool,
such ratios are returned as ``None`` rather than raising. Callers that need
a number (the indicator engine) convert ``None`` into an explicit 0.0 and
attach an ``"undefined_ratio"`` flag, so a missing value can never be
mistaken for a real zero.

Rounding
--------
Nothing in this module rounds except ``round_currency``. Computations keep
full precision; rounding happens once, at the presentation boundary.
"""

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

# Tier tables are (threshold, label) pairs ordered from best to worst.
Tiers = Sequence[tuple[float, str]]


def safe_ratio(
    numerator: float, denominator: float, scale: float = 1.0
) -> Optional[float]:
    """Return numerator / denominator * scale, or None when denominator is 0."""
    if denominator == 0:
        return None
    return numerator / denominator * scale


def _pct(numerator: float, denominator: float) -> Optional[float]:
    return safe_ratio(numerator, denominator, 100.0)


# ---------------------------------------------------------------------------
# Margins and returns
# ---------------------------------------------------------------------------


def gross_margin_pct(revenue: float, cost: float) -> Optional[float]:
    """(revenue - cost) / revenue * 100."""
    return _pct(revenue - cost, revenue)


def operating_margin_pct(net_revenue: float, operating_result: float) -> Optional[float]:
    return _pct(operating_result, net_revenue)


def net_margin_pct(net_revenue: float, net_result: float) -> Optional[float]:
    return _pct(net_result, net_revenue)


def roi_pct(profit: float, investment: float) -> Optional[float]:
    """Return on investment in percent."""
    return _pct(profit, investment)


def roe_pct(net_result: float, equity: float) -> Optional[float]:
    return _pct(net_result, equity)


def roa_pct(net_result: float, total_assets: float) -> Optional[float]:
    return _pct(net_result, total_assets)


def markup_pct(selling_price: float, cost: float) -> Optional[float]:
    """Markup over cost in percent."""
    return _pct(selling_price - cost, cost)


# ---------------------------------------------------------------------------
# Liquidity
# ---------------------------------------------------------------------------


def current_ratio(current_assets: float, current_liabilities: float) -> Optional[float]:
    return safe_ratio(current_assets, current_liabilities)


def quick_ratio(
    current_assets: float, inventory: float, current_liabilities: float
) -> Optional[float]:
    """Current ratio excluding inventory (acid test)."""
    return safe_ratio(current_assets - inventory, current_liabilities)


def immediate_liquidity(cash: float, current_liabilities: float) -> Optional[float]:
    return safe_ratio(cash, current_liabilities)


def receivables_days(receivables: float, daily_revenue: float) -> Optional[float]:
    """Average collection period (DSO)."""
    return safe_ratio(receivables, daily_revenue)


def payables_days(payables: float, daily_purchases: float) -> Optional[float]:
    """Average payment period (DPO)."""
    return safe_ratio(payables, daily_purchases)


def inventory_days(inventory: float, daily_cost_of_sales: float) -> Optional[float]:
    """Average inventory period (DIO)."""
    return safe_ratio(inventory, daily_cost_of_sales)


def cash_conversion_cycle(
    receivable_days: float, inventory_days_: float, payable_days: float
) -> float:
    """Cash conversion cycle in days: DSO + DIO - DPO."""
    return receivable_days + inventory_days_ - payable_days


def net_working_capital(current_assets: float, current_liabilities: float) -> float:
    return current_assets - current_liabilities


def working_capital_need(
    receivables: float, inventory: float, payables: float
) -> float:
    """Operating working capital requirement."""
    return receivables + inventory - payables


def working_capital_status(working_capital: float) -> str:
    if working_capital > 0:
        return "healthy"
    if working_capital == 0:
        return "attention"
    return "critical"


# ---------------------------------------------------------------------------
# Debt and sustainability
# ---------------------------------------------------------------------------


def debt_ratio_pct(total_liabilities: float, total_assets: float) -> Optional[float]:
    """Share of assets financed by third parties, in percent."""
    return _pct(total_liabilities, total_assets)


def debt_composition_pct(
    short_term_liabilities: float, total_liabilities: float
) -> Optional[float]:
    return _pct(short_term_liabilities, total_liabilities)


def equity_to_debt(equity: float, total_liabilities: float) -> Optional[float]:
    """Own capital per unit of third-party capital."""
    return safe_ratio(equity, total_liabilities)


def reserve_coverage_months(
    reserves: float, monthly_fixed_expenses: float
) -> Optional[float]:
    """How many months of fixed expenses the reserves can cover."""
    return safe_ratio(reserves, monthly_fixed_expenses)


# ---------------------------------------------------------------------------
# Delinquency
# ---------------------------------------------------------------------------


def delinquency_rate_pct(overdue_value: float, total_value: float) -> Optional[float]:
    return _pct(overdue_value, total_value)


def doubtful_debt_provision(receivables: float, provision_rate_pct: float = 5.0) -> float:
    """Provision for doubtful debts as a flat share of receivables."""
    return receivables * provision_rate_pct / 100


def recovery_rate_pct(recovered_value: float, overdue_value: float) -> Optional[float]:
    return _pct(recovered_value, overdue_value)


# ---------------------------------------------------------------------------
# Customer economics and efficiency
# ---------------------------------------------------------------------------


def cost_to_revenue_pct(total_cost: float, revenue: float) -> Optional[float]:
    return _pct(total_cost, revenue)


def customer_acquisition_cost(
    acquisition_spend: float, new_customers: int
) -> Optional[float]:
    return safe_ratio(acquisition_spend, new_customers)


def lifetime_value(
    average_ticket_: float,
    purchase_frequency: float,
    lifespan_months: float,
    margin_fraction: float,
) -> float:
    """
    Customer lifetime value.

    Frequency (purchases per month), lifespan (months) and margin fraction
    are assumptions supplied by configuration, not measured quantities.
    """
    return average_ticket_ * purchase_frequency * lifespan_months * margin_fraction


def ltv_cac_ratio(ltv: float, cac: float) -> Optional[float]:
    return safe_ratio(ltv, cac)


def average_ticket(revenue: float, sales_count: int) -> Optional[float]:
    return safe_ratio(revenue, sales_count)


# ---------------------------------------------------------------------------
# Break-even
# ---------------------------------------------------------------------------


def breakeven_revenue(
    fixed_costs: float, contribution_margin_pct: float
) -> Optional[float]:
    """Revenue at which contribution margin covers fixed costs."""
    return safe_ratio(fixed_costs, contribution_margin_pct / 100)


def safety_margin_pct(revenue: float, breakeven: float) -> Optional[float]:
    return _pct(revenue - breakeven, revenue)


# ---------------------------------------------------------------------------
# Shares, changes and rounding
# ---------------------------------------------------------------------------


def participation_pct(part: float, whole: float) -> float:
    """Share of part in whole, in percent (0.0 when whole is 0)."""
    value = _pct(part, whole)
    return 0.0 if value is None else value


def absolute_change(current: float, previous: float) -> float:
    return current - previous


def percent_change(current: float, previous: float) -> Optional[float]:
    return _pct(current - previous, previous)


def round_currency(value: float, places: int = 2) -> float:
    """
    Round a monetary value half away from zero.

    Uses Decimal on the repr of the float so that 2.675 rounds to 2.68
    instead of the binary-float artefact 2.67.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_at_least(value: float, tiers: Tiers, fallback: str) -> str:
    """
    Classify a value where higher is better.

    Tiers are (minimum, label) pairs from best to worst; the first tier
    whose minimum is reached wins.

    Example:
        >>> classify_at_least(1.2, [(1.5, "excellent"), (1.0, "adequate")], "critical")
        'adequate'
    """
    for threshold, label in tiers:
        if value >= threshold:
            return label
    return fallback


def classify_at_most(value: float, tiers: Tiers, fallback: str) -> str:
    """Classify a value where lower is better (tiers are (maximum, label))."""
    for threshold, label in tiers:
        if value <= threshold:
            return label
    return fallback


def profitability_status(profit: float) -> str:
    if profit > 0:
        return "profitable"
    if profit == 0:
        return "breakeven"
    return "loss"
