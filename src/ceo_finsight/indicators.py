# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Indicator engine for CEO FinSight.

Four indicator families are computed from transactions, expense postings
and (where relevant) the DRE:

1. Liquidity
   Current ratio, quick ratio, immediate liquidity, working capital, the
   working capital need and the cash conversion cycle. When balance-sheet
   inputs are not supplied, documented heuristics are used instead (cash
   ~ receipts minus settled outflows, receivables ~ unpaid sales, payables
   ~ unsettled expenses) and every affected snapshot carries an
   "estimated" flag plus an audit note. These figures are estimates, not
   balance-sheet grade numbers.

2. Delinquency / aging
   A transaction is overdue when its due date is before `as_of` and it is
   not paid. Missing due dates are inferred as occurrence date + grace
   period (EngineConfig.due_date_grace_days). The delinquency rate is
   overdue value / total value. Overdue receivables are split into
   mutually exclusive aging buckets, and debtors are ranked by
   outstanding value. Open receivables get a flat doubtful-debt
   provision (EngineConfig.doubtful_provision_pct). Paid sales settled
   after their due date count as recovered.

3. Efficiency
   Cost-to-revenue, customer acquisition cost, lifetime value and the
   LTV:CAC ratio. LTV relies on three configured assumptions (purchase
   frequency, customer lifespan, margin fraction) and is flagged as such.
   Margins (contribution, operating, markup) and the break-even revenue:
   fixed expenses divided by the contribution margin.

4. Sustainability
   Reserve coverage (months of fixed expenses), debt ratio, equity to
   debt, solvency index, debt composition, ROE, ROA and a combined health
   tier.

Every ratio goes through financial.safe_ratio. An undefined ratio never
raises: the snapshot holds 0.0, classification "not_applicable" and the
"undefined_ratio" flag.
"""

import logging
import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from . import financial as fin
from .config import EngineConfig
from .dre import ConsolidatedDRE, categorize_expense, matches_keyword
from .models import UNASSIGNED, ExpenseRecord, TransactionRecord
from .periods import Period, aging_bucket_labels, classify_aging, days_between, month_key

logger = logging.getLogger(__name__)

UNDEFINED_RATIO = "undefined_ratio"
ESTIMATED = "estimated"
ASSUMPTION = "assumption"
NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class IndicatorSnapshot:
    """
    A named metric with its classification and the inputs used.

    Attributes:
        name: Metric identifier (e.g. 'current_ratio').
        value: Numeric value; 0.0 when the ratio is undefined.
        classification: Qualitative tier, or 'not_applicable'.
        unit: 'ratio', 'percent', 'days', 'amount', 'months' or 'count'.
        inputs: Raw inputs used to compute the value, for auditability.
        flags: 'undefined_ratio', 'estimated' and/or 'assumption'.
    """

    name: str
    value: float
    classification: str
    unit: str
    inputs: Mapping[str, float] = field(default_factory=dict)
    flags: tuple[str, ...] = ()

    @property
    def not_applicable(self) -> bool:
        return UNDEFINED_RATIO in self.flags

    @property
    def estimated(self) -> bool:
        return ESTIMATED in self.flags


@dataclass(frozen=True)
class BalanceInputs:
    """Optional balance-sheet figures; None means 'estimate it'."""

    cash: Optional[float] = None
    receivables: Optional[float] = None
    inventory: Optional[float] = None
    payables: Optional[float] = None
    current_assets: Optional[float] = None
    current_liabilities: Optional[float] = None
    total_assets: Optional[float] = None
    total_liabilities: Optional[float] = None
    equity: Optional[float] = None
    reserves: Optional[float] = None


@dataclass(frozen=True)
class LiquidityIndicators:
    current_ratio: IndicatorSnapshot
    quick_ratio: IndicatorSnapshot
    immediate_liquidity: IndicatorSnapshot
    working_capital: IndicatorSnapshot
    working_capital_need: IndicatorSnapshot
    receivables_days: IndicatorSnapshot
    inventory_days: IndicatorSnapshot
    payables_days: IndicatorSnapshot
    cash_conversion_cycle: IndicatorSnapshot
    estimated: bool
    audit: tuple[str, ...] = ()


@dataclass(frozen=True)
class AgingBucket:
    """
    One delay range of overdue receivables.

    The label is the conventional dashboard name ("0-30", "31-60", ...).
    min_days and max_days give the exact inclusive day range, which is
    one day lower: the "31-60" bucket holds 30 to 59 days past due, since
    every boundary day opens the next bucket. max_days is None for the
    open-ended last bucket.
    """

    label: str
    min_days: int
    max_days: Optional[int]
    count: int
    value: float
    pct: float


@dataclass(frozen=True)
class DebtorSummary:
    customer_id: str
    outstanding: float
    count: int
    average_days_overdue: float
    max_days_overdue: int


@dataclass(frozen=True)
class DelinquencyIndicators:
    rate: IndicatorSnapshot
    doubtful_debt_provision: IndicatorSnapshot
    recovery_rate: IndicatorSnapshot
    total_value: float
    open_value: float
    overdue_value: float
    overdue_count: int
    recovered_value: float
    average_overdue_ticket: float
    aging: tuple[AgingBucket, ...]
    top_debtors: tuple[DebtorSummary, ...]
    inferred_due_dates: int


@dataclass(frozen=True)
class EfficiencyIndicators:
    cost_to_revenue: IndicatorSnapshot
    customer_acquisition_cost: IndicatorSnapshot
    lifetime_value: IndicatorSnapshot
    ltv_cac: IndicatorSnapshot
    average_ticket: IndicatorSnapshot
    contribution_margin: IndicatorSnapshot
    operating_margin: IndicatorSnapshot
    markup: IndicatorSnapshot
    breakeven_revenue: IndicatorSnapshot
    safety_margin: IndicatorSnapshot
    new_customers: int
    marketing_spend: float


@dataclass(frozen=True)
class SustainabilityIndicators:
    reserve_coverage: IndicatorSnapshot
    debt_ratio: IndicatorSnapshot
    equity_to_debt: IndicatorSnapshot
    solvency_index: IndicatorSnapshot
    debt_composition: IndicatorSnapshot
    return_on_equity: IndicatorSnapshot
    return_on_assets: IndicatorSnapshot
    reserves: float
    monthly_fixed_expenses: float
    health: str
    estimated: bool


@dataclass(frozen=True)
class GoalResult:
    metric: str
    target: float
    actual: float
    attainment_pct: float
    gap: float
    status: str


def _snapshot(
    name: str,
    raw: Optional[float],
    unit: str,
    inputs: Mapping[str, float],
    classify: Optional[Callable[[float], str]] = None,
    flags: Iterable[str] = (),
) -> IndicatorSnapshot:
    flag_list = list(dict.fromkeys(flags))
    if raw is None:
        flag_list.append(UNDEFINED_RATIO)
        return IndicatorSnapshot(
            name=name,
            value=0.0,
            classification=NOT_APPLICABLE,
            unit=unit,
            inputs=dict(inputs),
            flags=tuple(flag_list),
        )
    return IndicatorSnapshot(
        name=name,
        value=raw,
        classification=classify(raw) if classify else "",
        unit=unit,
        inputs=dict(inputs),
        flags=tuple(flag_list),
    )


def _sum(values: Iterable[float]) -> float:
    return math.fsum(values)


def _fixed_expenses(expenses: Iterable[ExpenseRecord], cfg: EngineConfig) -> float:
    """Settled expenses in the fixed buckets (EngineConfig.fixed_expense_buckets)."""
    return _sum(
        e.amount
        for e in expenses
        if e.is_settled
        and categorize_expense(e, cfg.expense_categories) in cfg.fixed_expense_buckets
    )


def _cash_estimate(
    transactions: Sequence[TransactionRecord], expenses: Sequence[ExpenseRecord]
) -> float:
    receipts = _sum(t.amount for t in transactions if t.is_paid)
    outflows = _sum(e.amount + e.fees for e in expenses if e.is_settled)
    return receipts - outflows


# ---------------------------------------------------------------------------
# Liquidity
# ---------------------------------------------------------------------------


def liquidity_indicators(
    transactions: Sequence[TransactionRecord],
    expenses: Sequence[ExpenseRecord],
    *,
    window: Period,
    config: Optional[EngineConfig] = None,
    balance: Optional[BalanceInputs] = None,
) -> LiquidityIndicators:
    """
    Compute liquidity indicators for the window.

    Balance inputs take priority; every missing one is estimated from the
    transaction and expense streams and recorded in `audit`.
    """
    cfg = config or EngineConfig()
    bal = balance or BalanceInputs()
    audit: list[str] = []

    def pick(supplied: Optional[float], estimate: Callable[[], float], note: str):
        if supplied is not None:
            return supplied, False
        audit.append(note)
        return estimate(), True

    cash, cash_est = pick(
        bal.cash,
        lambda: _cash_estimate(transactions, expenses),
        "cash estimated as paid receipts minus settled expenses",
    )
    receivables, rec_est = pick(
        bal.receivables,
        lambda: _sum(t.amount for t in transactions if not t.is_paid),
        "receivables estimated as unpaid transactions",
    )
    payables, pay_est = pick(
        bal.payables,
        lambda: _sum(e.amount for e in expenses if not e.is_settled),
        "payables estimated as unsettled expenses",
    )
    inventory = bal.inventory if bal.inventory is not None else 0.0

    current_assets, ca_est = pick(
        bal.current_assets,
        lambda: cash + receivables + inventory,
        "current assets estimated as cash + receivables + inventory",
    )
    current_liabilities, cl_est = pick(
        bal.current_liabilities,
        lambda: payables,
        "current liabilities estimated as payables",
    )
    ca_flags = [ESTIMATED] if (ca_est and (cash_est or rec_est)) else []
    cl_flags = [ESTIMATED] if (cl_est and pay_est) else []

    def liquidity_tier(v: float) -> str:
        return fin.classify_at_least(v, cfg.liquidity_thresholds, "critical")

    ratio_inputs = {
        "current_assets": current_assets,
        "current_liabilities": current_liabilities,
        "inventory": inventory,
        "cash": cash,
    }

    current = _snapshot(
        "current_ratio",
        fin.current_ratio(current_assets, current_liabilities),
        "ratio",
        ratio_inputs,
        liquidity_tier,
        ca_flags + cl_flags,
    )
    quick = _snapshot(
        "quick_ratio",
        fin.quick_ratio(current_assets, inventory, current_liabilities),
        "ratio",
        ratio_inputs,
        liquidity_tier,
        ca_flags + cl_flags,
    )
    immediate = _snapshot(
        "immediate_liquidity",
        fin.immediate_liquidity(cash, current_liabilities),
        "ratio",
        ratio_inputs,
        liquidity_tier,
        ([ESTIMATED] if cash_est else []) + cl_flags,
    )
    working_capital_value = fin.net_working_capital(current_assets, current_liabilities)
    working_capital = _snapshot(
        "working_capital",
        working_capital_value,
        "amount",
        ratio_inputs,
        fin.working_capital_status,
        ca_flags + cl_flags,
    )
    capital_need = _snapshot(
        "working_capital_need",
        fin.working_capital_need(receivables, inventory, payables),
        "amount",
        {"receivables": receivables, "inventory": inventory, "payables": payables},
        flags=[ESTIMATED] if (rec_est or pay_est) else [],
    )

    # Cycle components use average daily flows over the window.
    days = max(window.days, 1)
    daily_revenue = _sum(t.amount for t in transactions) / days
    daily_purchases = _sum(e.amount for e in expenses) / days
    daily_cogs = _sum(t.cost or 0.0 for t in transactions) / days

    dso = _snapshot(
        "receivables_days",
        fin.receivables_days(receivables, daily_revenue),
        "days",
        {"receivables": receivables, "daily_revenue": daily_revenue},
        flags=[ESTIMATED] if rec_est else [],
    )
    dpo = _snapshot(
        "payables_days",
        fin.payables_days(payables, daily_purchases),
        "days",
        {"payables": payables, "daily_purchases": daily_purchases},
        flags=[ESTIMATED] if pay_est else [],
    )
    if bal.inventory is not None:
        dio = _snapshot(
            "inventory_days",
            fin.inventory_days(bal.inventory, daily_cogs),
            "days",
            {"inventory": bal.inventory, "daily_cost_of_sales": daily_cogs},
        )
    else:
        audit.append("inventory days taken from the configured assumption")
        dio = _snapshot(
            "inventory_days",
            cfg.inventory_days_assumption,
            "days",
            {"inventory_days_assumption": cfg.inventory_days_assumption},
            flags=[ASSUMPTION],
        )

    ccc_flags = [f for s in (dso, dio, dpo) for f in s.flags]
    ccc = _snapshot(
        "cash_conversion_cycle",
        fin.cash_conversion_cycle(dso.value, dio.value, dpo.value),
        "days",
        {
            "receivables_days": dso.value,
            "inventory_days": dio.value,
            "payables_days": dpo.value,
        },
        lambda v: fin.classify_at_most(v, cfg.cash_cycle_thresholds, "critical"),
        # An undefined component is reported on the cycle as an estimate.
        [ESTIMATED if f == UNDEFINED_RATIO else f for f in ccc_flags],
    )

    estimated = bool(audit)
    if estimated:
        logger.info("Liquidity indicators use estimates: %s", "; ".join(audit))

    return LiquidityIndicators(
        current_ratio=current,
        quick_ratio=quick,
        immediate_liquidity=immediate,
        working_capital=working_capital,
        working_capital_need=capital_need,
        receivables_days=dso,
        inventory_days=dio,
        payables_days=dpo,
        cash_conversion_cycle=ccc,
        estimated=estimated,
        audit=tuple(audit),
    )


# ---------------------------------------------------------------------------
# Delinquency / aging
# ---------------------------------------------------------------------------


def delinquency_indicators(
    transactions: Sequence[TransactionRecord],
    *,
    as_of: date,
    config: Optional[EngineConfig] = None,
) -> DelinquencyIndicators:
    """
    Compute the delinquency rate, aging buckets and top debtors at `as_of`.

    Aging buckets are mutually exclusive and exhaustive over the overdue
    subset; a receivable exactly at a boundary (e.g. 30 days) belongs to
    the next bucket.

    A paid transaction whose settlement date is after its due date counts
    as recovered; the recovery rate is recovered / (recovered + overdue).
    """
    cfg = config or EngineConfig()
    boundaries = cfg.aging_bucket_boundaries
    labels = aging_bucket_labels(boundaries)

    bucket_values: list[list[float]] = [[] for _ in labels]
    debtors: dict[str, list[tuple[float, int]]] = {}
    inferred = 0
    overdue_values: list[float] = []
    recovered_values: list[float] = []

    for t in transactions:
        if t.due_date is None:
            inferred += 1
        due = t.effective_due_date(cfg.due_date_grace_days)
        if t.is_paid:
            if due is not None and t.settlement_date is not None and t.settlement_date > due:
                recovered_values.append(t.amount)
            continue
        if due is None or not due < as_of:
            continue

        days_overdue = days_between(due, as_of)
        bucket_values[classify_aging(days_overdue, boundaries)].append(t.amount)
        debtors.setdefault(t.customer_id or UNASSIGNED, []).append((t.amount, days_overdue))
        overdue_values.append(t.amount)

    if inferred:
        logger.info(
            "%d transaction(s) without due date; assumed %d days after occurrence.",
            inferred,
            cfg.due_date_grace_days,
        )

    total_value = _sum(t.amount for t in transactions)
    open_value = _sum(t.amount for t in transactions if not t.is_paid)
    overdue_value = _sum(overdue_values)

    aging: list[AgingBucket] = []
    lower = 0
    for index, label in enumerate(labels):
        upper = boundaries[index] - 1 if index < len(boundaries) else None
        value = _sum(bucket_values[index])
        aging.append(
            AgingBucket(
                label=label,
                min_days=lower,
                max_days=upper,
                count=len(bucket_values[index]),
                value=value,
                pct=fin.participation_pct(value, overdue_value),
            )
        )
        if upper is not None:
            lower = upper + 1

    ranking = [
        DebtorSummary(
            customer_id=customer,
            outstanding=_sum(v for v, _ in items),
            count=len(items),
            average_days_overdue=sum(d for _, d in items) / len(items),
            max_days_overdue=max(d for _, d in items),
        )
        for customer, items in debtors.items()
    ]
    ranking.sort(key=lambda d: (-d.outstanding, d.customer_id))
    if cfg.top_debtors > 0:
        ranking = ranking[: cfg.top_debtors]

    rate = _snapshot(
        "delinquency_rate",
        fin.delinquency_rate_pct(overdue_value, total_value),
        "percent",
        {"overdue_value": overdue_value, "total_value": total_value},
        lambda v: fin.classify_at_most(v, cfg.delinquency_thresholds, "critical"),
        [ESTIMATED] if inferred else [],
    )
    provision = _snapshot(
        "doubtful_debt_provision",
        fin.doubtful_debt_provision(open_value, cfg.doubtful_provision_pct),
        "amount",
        {"open_value": open_value, "provision_rate_pct": cfg.doubtful_provision_pct},
        flags=[ASSUMPTION],
    )
    recovered_value = _sum(recovered_values)
    recovery = _snapshot(
        "recovery_rate",
        fin.recovery_rate_pct(recovered_value, recovered_value + overdue_value),
        "percent",
        {"recovered_value": recovered_value, "overdue_value": overdue_value},
    )
    average_ticket = fin.average_ticket(overdue_value, len(overdue_values))

    return DelinquencyIndicators(
        rate=rate,
        doubtful_debt_provision=provision,
        recovery_rate=recovery,
        total_value=total_value,
        open_value=open_value,
        overdue_value=overdue_value,
        overdue_count=len(overdue_values),
        recovered_value=recovered_value,
        average_overdue_ticket=0.0 if average_ticket is None else average_ticket,
        aging=tuple(aging),
        top_debtors=tuple(ranking),
        inferred_due_dates=inferred,
    )


# ---------------------------------------------------------------------------
# Efficiency
# ---------------------------------------------------------------------------


def count_new_customers(
    transactions: Iterable[TransactionRecord],
    window: Period,
    history: Optional[Iterable[TransactionRecord]] = None,
) -> int:
    """
    Customers whose first observed transaction falls inside the window.

    The observed history is `history` plus the window's own transactions.
    """
    first_seen: dict[str, date] = {}
    for t in list(history or ()) + list(transactions):
        if t.customer_id is None or t.occurrence_date is None:
            continue
        seen = first_seen.get(t.customer_id)
        if seen is None or t.occurrence_date < seen:
            first_seen[t.customer_id] = t.occurrence_date
    return sum(1 for d in first_seen.values() if window.contains(d))


def efficiency_indicators(
    transactions: Sequence[TransactionRecord],
    expenses: Sequence[ExpenseRecord],
    *,
    window: Period,
    config: Optional[EngineConfig] = None,
    history: Optional[Sequence[TransactionRecord]] = None,
    dre: Optional[ConsolidatedDRE] = None,
) -> EfficiencyIndicators:
    """
    Cost-to-revenue, CAC, LTV, LTV:CAC, margins and break-even for the window.

    Break-even revenue is the fixed expenses of the window divided by the
    contribution margin. It is undefined when sales contribute no positive
    margin, and so is the safety margin.
    """
    cfg = config or EngineConfig()

    revenue = _sum(t.amount for t in transactions)
    cost = _sum(t.cost or 0.0 for t in transactions)
    if dre is not None:
        operating_expenses = dre.operating_expenses
    else:
        operating_expenses = _sum(e.amount for e in expenses if e.is_settled)

    cost_to_revenue = _snapshot(
        "cost_to_revenue",
        fin.cost_to_revenue_pct(cost + operating_expenses, revenue),
        "percent",
        {"cost_of_goods_sold": cost, "operating_expenses": operating_expenses, "revenue": revenue},
    )

    marketing_spend = _sum(
        e.amount
        for e in expenses
        if e.is_settled
        and matches_keyword(f"{e.category} {e.description}", cfg.marketing_keywords)
    )
    new_customers = count_new_customers(transactions, window, history)
    cac_value = fin.customer_acquisition_cost(marketing_spend, new_customers)
    cac = _snapshot(
        "customer_acquisition_cost",
        cac_value,
        "amount",
        {"marketing_spend": marketing_spend, "new_customers": float(new_customers)},
    )

    ticket_value = fin.average_ticket(revenue, len(transactions))
    ticket = _snapshot(
        "average_ticket",
        ticket_value,
        "amount",
        {"revenue": revenue, "sales_count": float(len(transactions))},
    )

    ltv_value = fin.lifetime_value(
        ticket.value,
        cfg.purchase_frequency_assumption,
        cfg.customer_lifespan_months_assumption,
        cfg.margin_fraction_assumption,
    )
    ltv = _snapshot(
        "lifetime_value",
        ltv_value,
        "amount",
        {
            "average_ticket": ticket.value,
            "purchase_frequency_assumption": cfg.purchase_frequency_assumption,
            "customer_lifespan_months_assumption": cfg.customer_lifespan_months_assumption,
            "margin_fraction_assumption": cfg.margin_fraction_assumption,
        },
        flags=[ASSUMPTION],
    )
    ltv_cac = _snapshot(
        "ltv_cac_ratio",
        None if cac_value is None else fin.ltv_cac_ratio(ltv_value, cac_value),
        "ratio",
        {"lifetime_value": ltv_value, "customer_acquisition_cost": cac.value},
        lambda v: fin.classify_at_least(v, cfg.ltv_cac_thresholds, "critical"),
        [ASSUMPTION],
    )
    contribution_value = fin.gross_margin_pct(revenue, cost)
    contribution = _snapshot(
        "contribution_margin",
        contribution_value,
        "percent",
        {"revenue": revenue, "cost_of_goods_sold": cost},
    )

    if dre is not None:
        net_revenue, operating_result = dre.net_revenue, dre.operating_result
    else:
        net_revenue, operating_result = revenue, revenue - cost - operating_expenses
    operating_margin = _snapshot(
        "operating_margin",
        fin.operating_margin_pct(net_revenue, operating_result),
        "percent",
        {"net_revenue": net_revenue, "operating_result": operating_result},
        fin.profitability_status,
    )
    markup = _snapshot(
        "markup",
        fin.markup_pct(revenue, cost),
        "percent",
        {"revenue": revenue, "cost_of_goods_sold": cost},
    )

    fixed_costs = _fixed_expenses(expenses, cfg)
    breakeven_value = None
    if contribution_value is not None and contribution_value > 0:
        breakeven_value = fin.breakeven_revenue(fixed_costs, contribution_value)
    breakeven = _snapshot(
        "breakeven_revenue",
        breakeven_value,
        "amount",
        {"fixed_expenses": fixed_costs, "contribution_margin_pct": contribution.value},
    )
    safety = _snapshot(
        "safety_margin",
        None if breakeven_value is None else fin.safety_margin_pct(revenue, breakeven_value),
        "percent",
        {"revenue": revenue, "breakeven_revenue": breakeven.value},
        fin.profitability_status,
    )

    return EfficiencyIndicators(
        cost_to_revenue=cost_to_revenue,
        customer_acquisition_cost=cac,
        lifetime_value=ltv,
        ltv_cac=ltv_cac,
        average_ticket=ticket,
        contribution_margin=contribution,
        operating_margin=operating_margin,
        markup=markup,
        breakeven_revenue=breakeven,
        safety_margin=safety,
        new_customers=new_customers,
        marketing_spend=marketing_spend,
    )


# ---------------------------------------------------------------------------
# Sustainability
# ---------------------------------------------------------------------------


def _health_tier(coverage: float, debt_ratio: float, cfg: EngineConfig) -> str:
    for min_coverage, max_debt, label in cfg.health_tiers:
        if coverage >= min_coverage and debt_ratio < max_debt:
            return label
    return "critical"


def sustainability_indicators(
    transactions: Sequence[TransactionRecord],
    expenses: Sequence[ExpenseRecord],
    *,
    config: Optional[EngineConfig] = None,
    balance: Optional[BalanceInputs] = None,
    dre: Optional[ConsolidatedDRE] = None,
) -> SustainabilityIndicators:
    """
    Reserve coverage, debt ratios, returns and overall financial health.

    Average monthly fixed expenses are the settled expenses in the fixed
    buckets (EngineConfig.fixed_expense_buckets) divided by the number of
    distinct months with settled expenses.

    ROE and ROA use the DRE net result. Without a DRE the result is
    estimated as revenue minus cost of sales minus settled expenses.
    Debt composition is the short-term share of total liabilities;
    without balance inputs, unsettled expenses stand in for both.
    """
    cfg = config or EngineConfig()
    bal = balance or BalanceInputs()
    estimated = False

    if bal.reserves is not None:
        reserves = bal.reserves
    elif bal.cash is not None:
        reserves = bal.cash
    else:
        reserves = _cash_estimate(transactions, expenses)
        estimated = True

    settled = [e for e in expenses if e.is_settled]
    months = {month_key(e.date) for e in settled}
    fixed_total = _fixed_expenses(settled, cfg)
    monthly_fixed = fixed_total / len(months) if months else 0.0

    if bal.total_liabilities is not None:
        liabilities = bal.total_liabilities
    else:
        liabilities = _sum(e.amount for e in expenses if not e.is_settled)
        estimated = True
    equity = bal.equity if bal.equity is not None else reserves
    total_assets = bal.total_assets if bal.total_assets is not None else equity + liabilities

    flags = [ESTIMATED] if estimated else []

    coverage = _snapshot(
        "reserve_coverage",
        fin.reserve_coverage_months(reserves, monthly_fixed),
        "months",
        {"reserves": reserves, "monthly_fixed_expenses": monthly_fixed},
        lambda v: fin.classify_at_least(v, cfg.coverage_thresholds, "critical"),
        flags,
    )
    debt = _snapshot(
        "debt_ratio",
        fin.debt_ratio_pct(liabilities, total_assets),
        "percent",
        {"total_liabilities": liabilities, "total_assets": total_assets},
        lambda v: fin.classify_at_most(v, cfg.debt_thresholds, "critical"),
        flags,
    )
    equity_debt = _snapshot(
        "equity_to_debt",
        fin.equity_to_debt(equity, liabilities),
        "ratio",
        {"equity": equity, "total_liabilities": liabilities},
        flags=flags,
    )
    solvency = _snapshot(
        "solvency_index",
        fin.safe_ratio(total_assets, liabilities),
        "ratio",
        {"total_assets": total_assets, "total_liabilities": liabilities},
        lambda v: fin.classify_at_least(v, cfg.liquidity_thresholds, "critical"),
        flags,
    )
    if bal.current_liabilities is not None:
        short_term, short_term_flags = bal.current_liabilities, list(flags)
    else:
        short_term = _sum(e.amount for e in expenses if not e.is_settled)
        short_term_flags = flags + [ESTIMATED]
    composition = _snapshot(
        "debt_composition",
        fin.debt_composition_pct(short_term, liabilities),
        "percent",
        {"short_term_liabilities": short_term, "total_liabilities": liabilities},
        flags=short_term_flags,
    )

    if dre is not None:
        net_result, result_flags = dre.net_result_before_tax, list(flags)
    else:
        net_result = (
            _sum(t.amount - (t.cost or 0.0) for t in transactions)
            - _sum(e.amount + e.fees for e in settled)
        )
        result_flags = flags + [ESTIMATED]
    roe = _snapshot(
        "return_on_equity",
        fin.roe_pct(net_result, equity),
        "percent",
        {"net_result": net_result, "equity": equity},
        fin.profitability_status,
        result_flags,
    )
    roa = _snapshot(
        "return_on_assets",
        fin.roa_pct(net_result, total_assets),
        "percent",
        {"net_result": net_result, "total_assets": total_assets},
        fin.profitability_status,
        result_flags,
    )

    return SustainabilityIndicators(
        reserve_coverage=coverage,
        debt_ratio=debt,
        equity_to_debt=equity_debt,
        solvency_index=solvency,
        debt_composition=composition,
        return_on_equity=roe,
        return_on_assets=roa,
        reserves=reserves,
        monthly_fixed_expenses=monthly_fixed,
        health=_health_tier(coverage.value, debt.value, cfg),
        estimated=estimated,
    )


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


def default_goals(
    average_monthly_revenue: float,
    average_ticket: float,
    config: Optional[EngineConfig] = None,
) -> dict[str, float]:
    """Targets derived from recent performance and the configured uplifts."""
    cfg = config or EngineConfig()
    return {
        "revenue": average_monthly_revenue * (1 + cfg.revenue_goal_uplift),
        "net_margin_pct": cfg.net_margin_goal_pct,
        "average_ticket": average_ticket * (1 + cfg.ticket_goal_uplift),
    }


def goal_attainment(
    actuals: Mapping[str, float],
    goals: Mapping[str, float],
    config: Optional[EngineConfig] = None,
) -> list[GoalResult]:
    """
    Compare actual values against targets, in the order of `goals`.

    Goals without a matching actual are skipped. A zero target yields an
    attainment of 0 and status 'not_applicable'.
    """
    cfg = config or EngineConfig()
    results: list[GoalResult] = []
    for metric, target in goals.items():
        if metric not in actuals:
            logger.warning("No actual value for goal %r; skipped.", metric)
            continue
        actual = actuals[metric]
        attainment = fin.safe_ratio(actual, target, 100.0)
        if attainment is None:
            status = NOT_APPLICABLE
            attainment = 0.0
        else:
            status = fin.classify_at_least(attainment, cfg.goal_thresholds, "far")
        results.append(
            GoalResult(
                metric=metric,
                target=target,
                actual=actual,
                attainment_pct=attainment,
                gap=max(0.0, target - actual),
                status=status,
            )
        )
    return results
