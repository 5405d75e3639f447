# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Multi-dimensional rentability (profitability) aggregation.

Transactions are grouped by one of the DIMENSIONS (cost center, seller,
store, product, channel) and each group gets revenue, cost, expense,
profit, margin, participation share and ROI.

Rules:

- Revenue and cost come from the transaction (or, for the product
  dimension, from each product line).
- Expenses only count for the cost_center dimension, and only settled
  postings: unsettled expenses would distort realized profitability.
- Every catalog id is emitted, even without activity (status
  "breakeven", participation 0), so reports show full catalog coverage.
- Records without a key for the dimension are grouped under
  "unassigned" so that participation still sums to 100%.
- Rows with activity (revenue + expense > 0) come first, then by revenue
  descending; the key breaks remaining ties.
- Only the product dimension (unbounded cardinality) is truncated to
  the configured top-N.
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Optional

from .config import EngineConfig
from .financial import participation_pct, profitability_status, safe_ratio
from .models import (
    DIMENSIONS,
    UNASSIGNED,
    CatalogEntry,
    ExpenseRecord,
    TransactionRecord,
)


@dataclass(frozen=True)
class RentabilityEntry:
    """
    Profitability of one dimension value.

    Attributes:
        dimension: One of DIMENSIONS.
        key: Dimension id (or "unassigned").
        name: Display name from the catalog, defaulting to the key.
        revenue, cost, expense: Unrounded sums.
        profit: revenue - cost - expense.
        margin_pct: profit / revenue * 100 (0 without revenue).
        participation_pct: Share of the dimension's total revenue.
        roi_pct: profit / (cost + expense) * 100 (0 without investment).
        status: "profitable", "breakeven" or "loss".
        transaction_count: Number of transactions (or product lines).
    """

    dimension: str
    key: str
    name: str
    revenue: float
    cost: float
    expense: float
    profit: float
    margin_pct: float
    participation_pct: float
    roi_pct: float
    status: str
    transaction_count: int

    @property
    def is_active(self) -> bool:
        return self.revenue + self.expense > 0


@dataclass(frozen=True)
class PaymentMethodShare:
    method: str
    count: int
    value: float
    share_pct: float


@dataclass
class _Accumulator:
    revenue: list[float]
    cost: list[float]
    expense: list[float]
    count: int = 0


def _new_acc() -> _Accumulator:
    return _Accumulator(revenue=[], cost=[], expense=[])


def _sort_key(entry: RentabilityEntry) -> tuple:
    return (0 if entry.is_active else 1, -entry.revenue, entry.key)


def aggregate_by_dimension(
    transactions: Iterable[TransactionRecord],
    expenses: Iterable[ExpenseRecord],
    dimension: str,
    catalog: Optional[Sequence[CatalogEntry]] = None,
    *,
    config: Optional[EngineConfig] = None,
) -> list[RentabilityEntry]:
    """
    Aggregate transactions (and, for cost centers, settled expenses) by dimension.

    Raises:
        ValueError: if `dimension` is not one of DIMENSIONS.
    """
    if dimension not in DIMENSIONS:
        raise ValueError(
            f"Unknown dimension {dimension!r}. Expected one of: {', '.join(DIMENSIONS)}."
        )
    cfg = config or EngineConfig()

    names: dict[str, str] = {}
    groups: dict[str, _Accumulator] = {}
    for entry in catalog or ():
        names[entry.id] = entry.name
        groups[entry.id] = _new_acc()

    for t in transactions:
        if dimension == "product":
            lines = t.products
            if not lines:
                acc = groups.setdefault(UNASSIGNED, _new_acc())
                acc.revenue.append(t.amount)
                acc.cost.append(t.cost or 0.0)
                acc.count += 1
                continue
            for line in lines:
                acc = groups.setdefault(line.product_id, _new_acc())
                acc.revenue.append(line.amount)
                acc.cost.append(line.cost)
                acc.count += 1
                if line.name and line.product_id not in names:
                    names[line.product_id] = line.name
            continue

        key = t.dimension_key(dimension) or UNASSIGNED
        acc = groups.setdefault(key, _new_acc())
        acc.revenue.append(t.amount)
        acc.cost.append(t.cost or 0.0)
        acc.count += 1

    if dimension == "cost_center":
        for e in expenses:
            if not e.is_settled:
                continue
            acc = groups.setdefault(e.cost_center_id or UNASSIGNED, _new_acc())
            acc.expense.append(e.amount)

    totals = {key: math.fsum(acc.revenue) for key, acc in groups.items()}
    total_revenue = math.fsum(totals.values())

    entries: list[RentabilityEntry] = []
    for key, acc in groups.items():
        revenue = totals[key]
        cost = math.fsum(acc.cost)
        expense = math.fsum(acc.expense)
        profit = revenue - cost - expense
        margin = safe_ratio(profit, revenue, 100.0)
        roi = safe_ratio(profit, cost + expense, 100.0)
        entries.append(
            RentabilityEntry(
                dimension=dimension,
                key=key,
                name=names.get(key, key),
                revenue=revenue,
                cost=cost,
                expense=expense,
                profit=profit,
                margin_pct=0.0 if margin is None else margin,
                participation_pct=participation_pct(revenue, total_revenue),
                roi_pct=0.0 if roi is None else roi,
                status=profitability_status(profit),
                transaction_count=acc.count,
            )
        )

    entries.sort(key=_sort_key)

    if dimension == "product" and cfg.top_products > 0:
        entries = entries[: cfg.top_products]
    return entries


def aggregate_all_dimensions(
    transactions: Sequence[TransactionRecord],
    expenses: Sequence[ExpenseRecord],
    catalogs: Optional[Mapping[str, Sequence[CatalogEntry]]] = None,
    *,
    config: Optional[EngineConfig] = None,
) -> dict[str, list[RentabilityEntry]]:
    """Run aggregate_by_dimension for every dimension."""
    catalogs = catalogs or {}
    return {
        dimension: aggregate_by_dimension(
            transactions,
            expenses,
            dimension,
            catalogs.get(dimension),
            config=config,
        )
        for dimension in DIMENSIONS
    }


def payment_method_breakdown(
    transactions: Iterable[TransactionRecord],
) -> list[PaymentMethodShare]:
    """Revenue per payment method, sorted by value descending."""
    values: dict[str, list[float]] = {}
    for t in transactions:
        values.setdefault(t.payment_method or UNASSIGNED, []).append(t.amount)

    sums = {method: math.fsum(v) for method, v in values.items()}
    total = math.fsum(sums.values())
    shares = [
        PaymentMethodShare(
            method=method,
            count=len(values[method]),
            value=value,
            share_pct=participation_pct(value, total),
        )
        for method, value in sums.items()
    ]
    shares.sort(key=lambda s: (-s.value, s.method))
    return shares
