# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
DRE (income statement) consolidation for CEO FinSight.

This module folds a set of transactions and expense postings into a
ConsolidatedDRE, the cascading management income statement:

    gross revenue
      - taxes - discounts - returns            = net revenue
      - cost of goods sold                     = gross margin
      - operating expenses                     = operating result
      - financial expenses + financial income  = net result before tax

Key rules
---------
- Taxes: an explicit per-transaction tax always wins. Otherwise a flat
  estimate (EngineConfig.tax_rate_estimate) is applied to the amount.
  This is a best-effort approximation, flagged on the result
  (``tax_estimated``). When an estimate is needed but no rate is
  configured, ConfigMissingError is raised.
- Cost of goods sold is the sum of transaction costs. A missing cost
  counts as zero, which understates COGS; the number of such
  transactions is exposed as ``missing_cost_count``.
- Operating expenses come from settled expense postings, classified into
  administrative / commercial / personnel buckets by a keyword map.
  Unclassified expenses go to ``other`` and are never dropped.
  Postings classified as ``financial`` and all payment fees are reported
  as financial expenses.
- Percentages are always value / net revenue * 100 and are 0 when net
  revenue is 0. They are properties, so a DRE built by summing units
  gets percentages recomputed on the consolidated totals.
- Nothing is rounded here; rounding belongs to the presentation layer.

Multi-unit views
----------------
The consolidator itself is unit-agnostic. consolidate_units() runs it
once per unit (through filter predicates), allocates a consolidated
financial income by gross revenue and sums the unit DREs field by
field; compare_units() packages several filtered DREs side by side.
"""

import logging
import math
import re
import unicodedata
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, fields
from typing import Any, Optional

from .config import EXPENSE_BUCKETS, EngineConfig, require_tax_rate
from .financial import safe_ratio
from .models import CatalogEntry, ExpenseRecord, TransactionRecord

logger = logging.getLogger(__name__)

RecordFilter = Callable[[Any], bool]

OPERATING_BUCKETS: tuple[str, ...] = ("administrative", "commercial", "personnel", "other")


@dataclass(frozen=True)
class ConsolidatedDRE:
    """
    Immutable income-statement snapshot for one period and unit scope.

    Monetary fields are unrounded. Percentages are derived properties
    computed against net revenue.
    """

    scope: str
    period_label: Optional[str]
    gross_revenue: float
    taxes: float
    discounts: float
    returns: float
    net_revenue: float
    cost_of_goods_sold: float
    gross_margin: float
    administrative_expenses: float
    commercial_expenses: float
    personnel_expenses: float
    other_expenses: float
    operating_expenses: float
    operating_result: float
    financial_expenses: float
    financial_income: float
    net_result_before_tax: float
    transaction_count: int = 0
    expense_count: int = 0
    missing_cost_count: int = 0
    tax_estimated: bool = False

    def pct(self, value: float) -> float:
        """value / net revenue * 100, 0.0 when net revenue is 0."""
        ratio = safe_ratio(value, self.net_revenue, 100.0)
        return 0.0 if ratio is None else ratio

    @property
    def taxes_pct(self) -> float:
        return self.pct(self.taxes)

    @property
    def cost_of_goods_sold_pct(self) -> float:
        return self.pct(self.cost_of_goods_sold)

    @property
    def gross_margin_pct(self) -> float:
        return self.pct(self.gross_margin)

    @property
    def operating_expenses_pct(self) -> float:
        return self.pct(self.operating_expenses)

    @property
    def operating_result_pct(self) -> float:
        return self.pct(self.operating_result)

    @property
    def net_result_pct(self) -> float:
        return self.pct(self.net_result_before_tax)

    def expense_breakdown(self) -> dict[str, float]:
        return {
            "administrative": self.administrative_expenses,
            "commercial": self.commercial_expenses,
            "personnel": self.personnel_expenses,
            "other": self.other_expenses,
        }


@dataclass(frozen=True)
class WaterfallStep:
    """One bar of the DRE waterfall: a delta or a running subtotal."""

    label: str
    value: float
    kind: str  # 'delta' or 'total'


@dataclass(frozen=True)
class DREAlert:
    level: str  # 'info', 'warning', 'critical'
    code: str
    message: str


@dataclass(frozen=True)
class UnitComparison:
    """
    Side-by-side DREs for named unit filters.

    Attributes:
        units: DRE per unit name, in the order the filters were given.
        leader: Name of the unit with the highest net result (None if empty).
        net_result_spread: Highest minus lowest net result.
        gross_margin_pct_spread: Highest minus lowest gross margin percent.
    """

    units: Mapping[str, ConsolidatedDRE] = field(default_factory=dict)
    leader: Optional[str] = None
    net_result_spread: float = 0.0
    gross_margin_pct_spread: float = 0.0


# ---------------------------------------------------------------------------
# Expense classification
# ---------------------------------------------------------------------------


def fold_text(text: str) -> str:
    """Lower-case and strip accents so that 'Comissão' matches 'comissao'."""
    normalized = unicodedata.normalize("NFKD", text or "")
    return "".join(c for c in normalized if not unicodedata.combining(c)).lower().strip()


def matches_keyword(text: str, keywords: Iterable[str]) -> Optional[str]:
    """
    Return the first keyword found as a whole word in text, or None.

    Longer keywords are tried first so that 'tarifa bancaria' wins over a
    shorter keyword contained in it.
    """
    folded = fold_text(text)
    if not folded:
        return None
    for keyword in sorted(keywords, key=lambda k: (-len(k), k)):
        if re.search(rf"\b{re.escape(fold_text(keyword))}\b", folded):
            return keyword
    return None


def categorize_expense(
    expense: ExpenseRecord,
    categories: Mapping[str, str],
    cost_center_name: str = "",
) -> str:
    """
    Classify an expense into a DRE bucket.

    Resolution order: exact category match, then a keyword found in the
    category, the description, and finally the cost-center name.
    Falls back to "other".
    """
    # Unknown buckets fold into "other" so no expense ever leaves the DRE.
    folded_map = {
        fold_text(k): v if v in EXPENSE_BUCKETS else "other" for k, v in categories.items()
    }

    exact = folded_map.get(fold_text(expense.category))
    if exact is not None:
        return exact

    for text in (expense.category, expense.description, cost_center_name):
        keyword = matches_keyword(text, folded_map)
        if keyword is not None:
            return folded_map[keyword]

    return "other"


# ---------------------------------------------------------------------------
# Consolidation
# ---------------------------------------------------------------------------


def by_unit(unit_id: str) -> RecordFilter:
    """Filter predicate selecting transactions and expenses of one unit."""

    def _predicate(record: Any) -> bool:
        return getattr(record, "unit_id", None) == unit_id

    return _predicate


def _cascade(
    *,
    scope: str,
    period_label: Optional[str],
    gross_revenue: float,
    taxes: float,
    discounts: float,
    returns: float,
    cost_of_goods_sold: float,
    buckets: Mapping[str, float],
    financial_expenses: float,
    financial_income: float,
    transaction_count: int,
    expense_count: int,
    missing_cost_count: int,
    tax_estimated: bool,
) -> ConsolidatedDRE:
    net_revenue = gross_revenue - taxes - discounts - returns
    gross_margin = net_revenue - cost_of_goods_sold
    operating_expenses = math.fsum(buckets.get(b, 0.0) for b in OPERATING_BUCKETS)
    operating_result = gross_margin - operating_expenses
    net_result = operating_result - financial_expenses + financial_income

    return ConsolidatedDRE(
        scope=scope,
        period_label=period_label,
        gross_revenue=gross_revenue,
        taxes=taxes,
        discounts=discounts,
        returns=returns,
        net_revenue=net_revenue,
        cost_of_goods_sold=cost_of_goods_sold,
        gross_margin=gross_margin,
        administrative_expenses=buckets.get("administrative", 0.0),
        commercial_expenses=buckets.get("commercial", 0.0),
        personnel_expenses=buckets.get("personnel", 0.0),
        other_expenses=buckets.get("other", 0.0),
        operating_expenses=operating_expenses,
        operating_result=operating_result,
        financial_expenses=financial_expenses,
        financial_income=financial_income,
        net_result_before_tax=net_result,
        transaction_count=transaction_count,
        expense_count=expense_count,
        missing_cost_count=missing_cost_count,
        tax_estimated=tax_estimated,
    )


def consolidate(
    transactions: Iterable[TransactionRecord],
    expenses: Iterable[ExpenseRecord] = (),
    *,
    config: Optional[EngineConfig] = None,
    unit_filter: Optional[RecordFilter] = None,
    scope: str = "consolidated",
    period_label: Optional[str] = None,
    cost_centers: Optional[Sequence[CatalogEntry]] = None,
    financial_income: float = 0.0,
) -> ConsolidatedDRE:
    """
    Fold transactions and expenses into a ConsolidatedDRE.

    Parameters
    ----------
    transactions:
        Validated transactions already restricted to the period.
    expenses:
        Validated expense postings for the same period. Only settled
        postings are counted.
    config:
        Engine configuration (tax estimate, expense keyword map).
    unit_filter:
        Optional predicate applied to both transactions and expenses.
    scope, period_label:
        Labels carried on the result.
    cost_centers:
        Optional cost-center catalog, used as a last resort to classify
        expenses by the name of their cost center.
    financial_income:
        Financial income for the period, supplied by the caller.

    Raises
    ------
    ConfigMissingError
        If a transaction needs a tax estimate and none is configured.
    """
    cfg = config or EngineConfig()
    txs = [t for t in transactions if unit_filter is None or unit_filter(t)]
    exps = [e for e in expenses if unit_filter is None or unit_filter(e)]

    gross_revenue = math.fsum(t.amount for t in txs)

    tax_values: list[float] = []
    tax_estimated = False
    for t in txs:
        if t.tax is not None:
            tax_values.append(t.tax)
        else:
            tax_values.append(t.amount * require_tax_rate(cfg))
            tax_estimated = True
    taxes = math.fsum(tax_values)

    if tax_estimated:
        logger.info(
            "Taxes for %s estimated at a flat %.2f%% of gross revenue.",
            scope,
            (cfg.tax_rate_estimate or 0.0) * 100,
        )

    discounts = math.fsum(t.discount for t in txs)
    returns = math.fsum(t.returns for t in txs)
    cost_of_goods_sold = math.fsum(t.cost or 0.0 for t in txs)
    missing_cost_count = sum(1 for t in txs if t.cost is None)

    cc_names = {c.id: c.name for c in cost_centers or ()}
    bucket_values: dict[str, list[float]] = {}
    fees: list[float] = []
    settled = [e for e in exps if e.is_settled]
    for e in settled:
        bucket = categorize_expense(
            e, cfg.expense_categories, cc_names.get(e.cost_center_id or "", "")
        )
        bucket_values.setdefault(bucket, []).append(e.amount)
        fees.append(e.fees)

    buckets = {name: math.fsum(values) for name, values in bucket_values.items()}
    financial_expenses = buckets.pop("financial", 0.0) + math.fsum(fees)

    return _cascade(
        scope=scope,
        period_label=period_label,
        gross_revenue=gross_revenue,
        taxes=taxes,
        discounts=discounts,
        returns=returns,
        cost_of_goods_sold=cost_of_goods_sold,
        buckets=buckets,
        financial_expenses=financial_expenses,
        financial_income=financial_income,
        transaction_count=len(txs),
        expense_count=len(settled),
        missing_cost_count=missing_cost_count,
        tax_estimated=tax_estimated,
    )


def sum_dres(
    dres: Sequence[ConsolidatedDRE],
    scope: str = "consolidated",
    period_label: Optional[str] = None,
) -> ConsolidatedDRE:
    """
    Sum DREs field by field.

    The cascade is recomputed from the summed components and percentages
    follow from the consolidated totals; unit percentages are never
    averaged.
    """

    def total(attr: str) -> float:
        return math.fsum(getattr(d, attr) for d in dres)

    label = period_label
    if label is None and dres:
        label = dres[0].period_label

    return _cascade(
        scope=scope,
        period_label=label,
        gross_revenue=total("gross_revenue"),
        taxes=total("taxes"),
        discounts=total("discounts"),
        returns=total("returns"),
        cost_of_goods_sold=total("cost_of_goods_sold"),
        buckets={
            "administrative": total("administrative_expenses"),
            "commercial": total("commercial_expenses"),
            "personnel": total("personnel_expenses"),
            "other": total("other_expenses"),
        },
        financial_expenses=total("financial_expenses"),
        financial_income=total("financial_income"),
        transaction_count=sum(d.transaction_count for d in dres),
        expense_count=sum(d.expense_count for d in dres),
        missing_cost_count=sum(d.missing_cost_count for d in dres),
        tax_estimated=any(d.tax_estimated for d in dres),
    )


def allocate_financial_income(
    amount: float, weights: Mapping[str, float]
) -> dict[str, float]:
    """
    Split a financial income across units in proportion to their weights.

    Weights are normally the units' gross revenue. When they do not add up
    to a positive total the amount is split evenly. The last unit takes
    the floating-point residue, so the parts always add back to `amount`.
    """
    units = list(weights)
    if not units:
        return {}
    total_weight = math.fsum(max(w, 0.0) for w in weights.values())
    if total_weight > 0:
        parts = [amount * max(weights[u], 0.0) / total_weight for u in units[:-1]]
    else:
        parts = [amount / len(units) for _ in units[:-1]]
    parts.append(amount - math.fsum(parts))
    return dict(zip(units, parts))


def consolidate_units(
    transactions: Sequence[TransactionRecord],
    expenses: Sequence[ExpenseRecord],
    units: Sequence[str],
    *,
    config: Optional[EngineConfig] = None,
    period_label: Optional[str] = None,
    cost_centers: Optional[Sequence[CatalogEntry]] = None,
    financial_income: float = 0.0,
) -> tuple[ConsolidatedDRE, dict[str, ConsolidatedDRE]]:
    """
    Build one DRE per unit and their field-by-field consolidation.

    Records whose unit_id is not among `units` are outside the
    consolidated scope. A consolidated `financial_income` is allocated to
    the units by gross revenue (see allocate_financial_income), so the
    unit DREs still add up to the consolidated one.

    Returns:
        (consolidated DRE, {unit: unit DRE}).
    """
    unit_ids = list(dict.fromkeys(units))
    revenue = {
        unit: math.fsum(t.amount for t in transactions if t.unit_id == unit)
        for unit in unit_ids
    }
    income = allocate_financial_income(financial_income, revenue)

    per_unit: dict[str, ConsolidatedDRE] = {}
    for unit in unit_ids:
        per_unit[unit] = consolidate(
            transactions,
            expenses,
            config=config,
            unit_filter=by_unit(unit),
            scope=unit,
            period_label=period_label,
            cost_centers=cost_centers,
            financial_income=income[unit],
        )
    consolidated = sum_dres(list(per_unit.values()), period_label=period_label)
    return consolidated, per_unit


def compare_units(
    transactions: Sequence[TransactionRecord],
    expenses: Sequence[ExpenseRecord],
    filters: Mapping[str, RecordFilter],
    *,
    config: Optional[EngineConfig] = None,
    period_label: Optional[str] = None,
) -> UnitComparison:
    """Compute one DRE per named filter and package them side by side."""
    units = {
        name: consolidate(
            transactions,
            expenses,
            config=config,
            unit_filter=predicate,
            scope=name,
            period_label=period_label,
        )
        for name, predicate in filters.items()
    }
    if not units:
        return UnitComparison()

    results = [d.net_result_before_tax for d in units.values()]
    margins = [d.gross_margin_pct for d in units.values()]
    # max() keeps the first unit on ties, so the leader is deterministic.
    leader = max(units, key=lambda name: units[name].net_result_before_tax)

    return UnitComparison(
        units=units,
        leader=leader,
        net_result_spread=max(results) - min(results),
        gross_margin_pct_spread=max(margins) - min(margins),
    )


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------


def dre_waterfall(dre: ConsolidatedDRE) -> list[WaterfallStep]:
    """Ordered steps from gross revenue down to the net result."""
    return [
        WaterfallStep("Gross revenue", dre.gross_revenue, "total"),
        WaterfallStep("Taxes", -dre.taxes, "delta"),
        WaterfallStep("Discounts", -dre.discounts, "delta"),
        WaterfallStep("Returns", -dre.returns, "delta"),
        WaterfallStep("Net revenue", dre.net_revenue, "total"),
        WaterfallStep("Cost of goods sold", -dre.cost_of_goods_sold, "delta"),
        WaterfallStep("Gross margin", dre.gross_margin, "total"),
        WaterfallStep("Administrative expenses", -dre.administrative_expenses, "delta"),
        WaterfallStep("Commercial expenses", -dre.commercial_expenses, "delta"),
        WaterfallStep("Personnel expenses", -dre.personnel_expenses, "delta"),
        WaterfallStep("Other expenses", -dre.other_expenses, "delta"),
        WaterfallStep("Operating result", dre.operating_result, "total"),
        WaterfallStep("Financial expenses", -dre.financial_expenses, "delta"),
        WaterfallStep("Financial income", dre.financial_income, "delta"),
        WaterfallStep("Net result before tax", dre.net_result_before_tax, "total"),
    ]


def dre_alerts(dre: ConsolidatedDRE, config: Optional[EngineConfig] = None) -> list[DREAlert]:
    """Flag the situations a CEO dashboard should highlight."""
    cfg = config or EngineConfig()
    alerts: list[DREAlert] = []

    if dre.net_result_before_tax < 0:
        alerts.append(
            DREAlert("critical", "net_loss", "Net result before tax is negative.")
        )
    if dre.net_revenue > 0 and dre.gross_margin_pct < cfg.gross_margin_alert_pct:
        alerts.append(
            DREAlert(
                "warning",
                "low_gross_margin",
                f"Gross margin {dre.gross_margin_pct:.1f}% is below "
                f"{cfg.gross_margin_alert_pct:.1f}%.",
            )
        )
    if dre.net_revenue > 0 and dre.operating_expenses_pct > cfg.operating_expenses_alert_pct:
        alerts.append(
            DREAlert(
                "warning",
                "high_operating_expenses",
                f"Operating expenses take {dre.operating_expenses_pct:.1f}% of net revenue.",
            )
        )
    if dre.missing_cost_count:
        alerts.append(
            DREAlert(
                "info",
                "missing_costs",
                f"{dre.missing_cost_count} transaction(s) without cost; "
                "gross margin is overstated.",
            )
        )
    if dre.tax_estimated:
        alerts.append(
            DREAlert(
                "info",
                "estimated_taxes",
                "Taxes include a flat-rate estimate for transactions without "
                "an explicit tax amount.",
            )
        )
    return alerts


def dre_as_dict(dre: ConsolidatedDRE) -> dict[str, Any]:
    """Field values plus derived percentages, unrounded."""
    data = {f.name: getattr(dre, f.name) for f in fields(dre)}
    data.update(
        taxes_pct=dre.taxes_pct,
        cost_of_goods_sold_pct=dre.cost_of_goods_sold_pct,
        gross_margin_pct=dre.gross_margin_pct,
        operating_expenses_pct=dre.operating_expenses_pct,
        operating_result_pct=dre.operating_result_pct,
        net_result_pct=dre.net_result_pct,
    )
    return data
