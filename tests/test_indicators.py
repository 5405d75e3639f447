from datetime import date, timedelta

import pytest

from ceo_finsight.config import EngineConfig
from ceo_finsight.dre import consolidate
from ceo_finsight.indicators import (
    BalanceInputs,
    count_new_customers,
    default_goals,
    delinquency_indicators,
    efficiency_indicators,
    goal_attainment,
    liquidity_indicators,
    sustainability_indicators,
)
from ceo_finsight.models import OPEN, OVERDUE, PAID, ExpenseRecord, TransactionRecord
from ceo_finsight.periods import month_window

AS_OF = date(2025, 3, 20)
MARCH = month_window(2025, 3)


def _tx(tx_id: str, amount: float, **kwargs) -> TransactionRecord:
    kwargs.setdefault("occurrence_date", date(2025, 3, 1))
    return TransactionRecord(tx_id, amount, **kwargs)


# ---------------------------------------------------------------------------
# Delinquency
# ---------------------------------------------------------------------------


def test_example_single_overdue_transaction() -> None:
    t = _tx("t1", 1000.0, cost=400.0, due_date=AS_OF - timedelta(days=10), status=OPEN)

    result = delinquency_indicators([t], as_of=AS_OF)

    assert result.rate.value == pytest.approx(100.0)
    assert result.rate.classification == "critical"
    assert result.aging[0].label == "0-30"
    assert result.aging[0].value == pytest.approx(1000.0)
    assert result.aging[0].pct == pytest.approx(100.0)
    assert all(b.value == 0.0 for b in result.aging[1:])


def test_receivable_exactly_thirty_days_overdue_is_in_second_bucket() -> None:
    t = _tx("t1", 200.0, due_date=AS_OF - timedelta(days=30))

    result = delinquency_indicators([t], as_of=AS_OF)

    by_label = {b.label: b for b in result.aging}
    assert by_label["0-30"].count == 0
    assert by_label["31-60"].count == 1
    assert by_label["31-60"].value == pytest.approx(200.0)


def test_aging_bucket_day_ranges_follow_the_boundaries() -> None:
    result = delinquency_indicators([], as_of=AS_OF)

    assert [(b.label, b.min_days, b.max_days) for b in result.aging] == [
        ("0-30", 0, 29),
        ("31-60", 30, 59),
        ("61-90", 60, 89),
        (">90", 90, None),
    ]


def test_aging_buckets_partition_the_overdue_value() -> None:
    transactions = [
        _tx(f"t{days}", 100.0 + days, due_date=AS_OF - timedelta(days=days))
        for days in (1, 29, 30, 59, 60, 90, 365)
    ]

    result = delinquency_indicators(transactions, as_of=AS_OF)

    assert [b.count for b in result.aging] == [2, 2, 1, 2]
    assert sum(b.value for b in result.aging) == pytest.approx(result.overdue_value)
    assert sum(b.pct for b in result.aging) == pytest.approx(100.0)
    assert result.aging[-1].max_days is None


def test_paid_and_not_yet_due_transactions_are_not_overdue() -> None:
    transactions = [
        _tx("paid", 100.0, due_date=AS_OF - timedelta(days=5), status=PAID),
        _tx("future", 100.0, due_date=AS_OF + timedelta(days=5)),
        _tx("today", 100.0, due_date=AS_OF),
        _tx("late", 100.0, due_date=AS_OF - timedelta(days=1)),
    ]

    result = delinquency_indicators(transactions, as_of=AS_OF)

    assert result.overdue_count == 1
    assert result.overdue_value == pytest.approx(100.0)
    assert result.open_value == pytest.approx(300.0)
    assert result.rate.value == pytest.approx(25.0)


def test_overdue_status_does_not_override_due_date() -> None:
    t = _tx("t1", 100.0, due_date=AS_OF + timedelta(days=1), status=OVERDUE)

    result = delinquency_indicators([t], as_of=AS_OF)

    assert result.overdue_count == 0


def test_missing_due_date_uses_grace_period() -> None:
    t = _tx("t1", 100.0, occurrence_date=date(2025, 1, 1))

    default = delinquency_indicators([t], as_of=AS_OF)
    strict = delinquency_indicators([t], as_of=AS_OF, config=EngineConfig(due_date_grace_days=90))

    assert default.overdue_count == 1
    assert default.inferred_due_dates == 1
    assert "estimated" in default.rate.flags
    assert strict.overdue_count == 0


def test_top_debtors_ranked_by_outstanding_value() -> None:
    transactions = [
        _tx("a1", 100.0, customer_id="a", due_date=AS_OF - timedelta(days=10)),
        _tx("a2", 300.0, customer_id="a", due_date=AS_OF - timedelta(days=40)),
        _tx("b1", 250.0, customer_id="b", due_date=AS_OF - timedelta(days=5)),
        _tx("c1", 50.0, customer_id="c", due_date=AS_OF - timedelta(days=70)),
    ]

    result = delinquency_indicators(transactions, as_of=AS_OF, config=EngineConfig(top_debtors=2))

    assert [d.customer_id for d in result.top_debtors] == ["a", "b"]
    first = result.top_debtors[0]
    assert first.outstanding == pytest.approx(400.0)
    assert first.count == 2
    assert first.average_days_overdue == pytest.approx(25.0)
    assert first.max_days_overdue == 40
    assert result.average_overdue_ticket == pytest.approx(700.0 / 4)


def test_no_transactions_gives_not_applicable_rate() -> None:
    result = delinquency_indicators([], as_of=AS_OF)

    assert result.rate.value == 0.0
    assert result.rate.not_applicable
    assert result.rate.classification == "not_applicable"
    assert result.average_overdue_ticket == 0.0
    assert result.recovery_rate.not_applicable
    assert result.doubtful_debt_provision.value == 0.0


def test_provision_and_recovery_rate() -> None:
    due = date(2025, 3, 1)
    transactions = [
        _tx("late", 300.0, due_date=due, status=PAID, settlement_date=date(2025, 3, 10)),
        _tx("on_time", 500.0, due_date=due, status=PAID, settlement_date=date(2025, 2, 28)),
        _tx("overdue", 100.0, due_date=due, status=OPEN),
        _tx("open", 100.0, due_date=date(2025, 4, 30), status=OPEN),
    ]

    result = delinquency_indicators(transactions, as_of=AS_OF)

    assert result.recovered_value == pytest.approx(300.0)
    # 300 recovered against 100 still overdue.
    assert result.recovery_rate.value == pytest.approx(75.0)
    # 5 % of the 200 still open.
    assert result.doubtful_debt_provision.value == pytest.approx(10.0)
    assert "assumption" in result.doubtful_debt_provision.flags


def test_provision_rate_comes_from_config() -> None:
    t = _tx("t1", 400.0, due_date=date(2025, 4, 30), status=OPEN)

    result = delinquency_indicators(
        [t], as_of=AS_OF, config=EngineConfig(doubtful_provision_pct=10.0)
    )

    assert result.doubtful_debt_provision.value == pytest.approx(40.0)


# ---------------------------------------------------------------------------
# Liquidity
# ---------------------------------------------------------------------------


def test_liquidity_from_balance_inputs() -> None:
    balance = BalanceInputs(
        cash=100.0,
        receivables=200.0,
        inventory=50.0,
        payables=150.0,
        current_assets=350.0,
        current_liabilities=200.0,
    )
    transactions = [_tx("t1", 3100.0, cost=1550.0)]
    expenses = [ExpenseRecord("e1", 1550.0, date(2025, 3, 2), status=PAID)]

    result = liquidity_indicators(
        transactions, expenses, window=MARCH, balance=balance
    )

    assert result.current_ratio.value == pytest.approx(1.75)
    assert result.current_ratio.classification == "excellent"
    assert result.quick_ratio.value == pytest.approx(1.5)
    assert result.immediate_liquidity.value == pytest.approx(0.5)
    assert result.working_capital.value == pytest.approx(150.0)
    assert result.working_capital_need.value == pytest.approx(100.0)
    assert result.working_capital_need.flags == ()
    # 31 days in March: daily revenue 100, daily purchases and cost 50.
    assert result.receivables_days.value == pytest.approx(2.0)
    assert result.payables_days.value == pytest.approx(3.0)
    assert result.inventory_days.value == pytest.approx(1.0)
    assert result.cash_conversion_cycle.value == pytest.approx(0.0)
    assert not result.estimated
    assert result.current_ratio.flags == ()


def test_liquidity_estimates_are_flagged_and_audited() -> None:
    transactions = [
        _tx("t1", 1000.0, status=PAID),
        _tx("t2", 500.0, status=OPEN),
    ]
    expenses = [
        ExpenseRecord("e1", 300.0, date(2025, 3, 2), status=PAID),
        ExpenseRecord("e2", 400.0, date(2025, 3, 3), status=OPEN),
    ]

    result = liquidity_indicators(transactions, expenses, window=MARCH)

    # cash 700, receivables 500, payables 400.
    assert result.current_ratio.value == pytest.approx(1200.0 / 400.0)
    assert result.immediate_liquidity.value == pytest.approx(700.0 / 400.0)
    assert result.estimated
    assert "estimated" in result.current_ratio.flags
    assert result.audit
    assert "assumption" in result.inventory_days.flags
    # 500 receivables - 400 payables, no inventory.
    assert result.working_capital_need.value == pytest.approx(100.0)
    assert result.working_capital_need.estimated


def test_liquidity_without_liabilities_is_not_applicable() -> None:
    result = liquidity_indicators([_tx("t1", 100.0, status=PAID)], [], window=MARCH)

    assert result.current_ratio.not_applicable
    assert result.current_ratio.value == 0.0
    assert result.current_ratio.classification == "not_applicable"


# ---------------------------------------------------------------------------
# Efficiency
# ---------------------------------------------------------------------------


def test_new_customers_use_first_observed_transaction() -> None:
    history = [_tx("old", 10.0, customer_id="a", occurrence_date=date(2024, 12, 1))]
    current = [
        _tx("t1", 10.0, customer_id="a"),
        _tx("t2", 10.0, customer_id="b"),
        _tx("t3", 10.0, customer_id="b"),
        _tx("t4", 10.0),
    ]

    assert count_new_customers(current, MARCH, history) == 1
    assert count_new_customers(current, MARCH) == 2


def test_efficiency_indicators() -> None:
    transactions = [
        _tx("t1", 600.0, cost=200.0, customer_id="a"),
        _tx("t2", 400.0, cost=100.0, customer_id="b"),
    ]
    expenses = [
        ExpenseRecord("e1", 100.0, date(2025, 3, 5), category="Marketing", status=PAID),
        ExpenseRecord("e2", 100.0, date(2025, 3, 5), description="Google Ads", status=PAID),
        ExpenseRecord("e3", 300.0, date(2025, 3, 5), category="Aluguel", status=PAID),
        ExpenseRecord("e4", 900.0, date(2025, 3, 5), category="Marketing", status=OPEN),
    ]

    result = efficiency_indicators(transactions, expenses, window=MARCH)

    assert result.marketing_spend == pytest.approx(200.0)
    assert result.new_customers == 2
    assert result.customer_acquisition_cost.value == pytest.approx(100.0)
    assert result.average_ticket.value == pytest.approx(500.0)
    # 500 * 1.0 * 12 * 0.30
    assert result.lifetime_value.value == pytest.approx(1800.0)
    assert "assumption" in result.lifetime_value.flags
    assert result.ltv_cac.value == pytest.approx(18.0)
    assert result.ltv_cac.classification == "excellent"
    # (300 cost + 500 settled expenses) / 1000 revenue
    assert result.cost_to_revenue.value == pytest.approx(80.0)
    assert result.contribution_margin.value == pytest.approx(70.0)
    # (1000 - 300 - 500) / 1000 without a DRE.
    assert result.operating_margin.value == pytest.approx(20.0)
    assert result.operating_margin.classification == "profitable"
    assert result.markup.value == pytest.approx(700.0 / 300.0 * 100)
    # Only the rent is a fixed expense: 300 / 0.70.
    assert result.breakeven_revenue.value == pytest.approx(300.0 / 0.70)
    assert result.safety_margin.value == pytest.approx((1000.0 - 300.0 / 0.70) / 10.0)


def test_breakeven_is_not_applicable_without_contribution_margin() -> None:
    transactions = [_tx("t1", 100.0, cost=120.0)]
    expenses = [ExpenseRecord("e1", 50.0, date(2025, 3, 5), category="Aluguel", status=PAID)]

    result = efficiency_indicators(transactions, expenses, window=MARCH)

    assert result.contribution_margin.value == pytest.approx(-20.0)
    assert result.breakeven_revenue.not_applicable
    assert result.safety_margin.not_applicable


def test_operating_margin_uses_the_dre_when_given() -> None:
    transactions = [_tx("t1", 1000.0, cost=400.0, tax=100.0)]
    dre = consolidate(transactions, [])

    result = efficiency_indicators(transactions, [], window=MARCH, dre=dre)

    # (900 net revenue - 400 cost) / 900
    assert result.operating_margin.value == pytest.approx(500.0 / 900.0 * 100)


def test_cac_without_new_customers_is_not_applicable() -> None:
    history = [_tx("old", 10.0, customer_id="a", occurrence_date=date(2024, 1, 1))]
    transactions = [_tx("t1", 100.0, customer_id="a")]

    result = efficiency_indicators(transactions, [], window=MARCH, history=history)

    assert result.customer_acquisition_cost.not_applicable
    assert result.ltv_cac.not_applicable


# ---------------------------------------------------------------------------
# Sustainability
# ---------------------------------------------------------------------------


def test_sustainability_with_balance_inputs() -> None:
    expenses = [
        ExpenseRecord("e1", 1000.0, date(2025, 1, 5), category="Aluguel", status=PAID),
        ExpenseRecord("e2", 1000.0, date(2025, 2, 5), category="Salario", status=PAID),
        ExpenseRecord("e3", 5000.0, date(2025, 2, 6), category="Marketing", status=PAID),
    ]
    balance = BalanceInputs(
        reserves=8000.0, total_liabilities=2000.0, total_assets=10000.0, equity=8000.0
    )

    result = sustainability_indicators([], expenses, balance=balance)

    assert result.monthly_fixed_expenses == pytest.approx(1000.0)
    assert result.reserve_coverage.value == pytest.approx(8.0)
    assert result.reserve_coverage.classification == "excellent"
    assert result.debt_ratio.value == pytest.approx(20.0)
    assert result.debt_ratio.classification == "healthy"
    assert result.equity_to_debt.value == pytest.approx(4.0)
    assert result.solvency_index.value == pytest.approx(5.0)
    assert result.health == "excellent"
    assert not result.estimated
    assert result.debt_composition.value == 0.0
    assert result.debt_composition.estimated
    # No DRE: 0 revenue - 7000 settled expenses against 8000 equity.
    assert result.return_on_equity.value == pytest.approx(-87.5)
    assert result.return_on_equity.classification == "loss"
    assert result.return_on_equity.estimated


def test_returns_and_debt_composition_use_dre_and_balance() -> None:
    transactions = [_tx("t1", 1000.0, cost=400.0, tax=0.0, status=PAID)]
    balance = BalanceInputs(
        reserves=3000.0,
        equity=3000.0,
        total_assets=6000.0,
        total_liabilities=3000.0,
        current_liabilities=1000.0,
    )
    dre = consolidate(transactions, [])

    result = sustainability_indicators(transactions, [], balance=balance, dre=dre)

    assert result.return_on_equity.value == pytest.approx(20.0)
    assert result.return_on_assets.value == pytest.approx(10.0)
    assert result.return_on_assets.classification == "profitable"
    assert result.return_on_equity.flags == ()
    assert result.debt_composition.value == pytest.approx(100.0 / 3.0)
    assert result.debt_composition.flags == ()


def test_sustainability_without_fixed_expenses_is_critical_and_flagged() -> None:
    result = sustainability_indicators([_tx("t1", 100.0, status=PAID)], [])

    assert result.reserve_coverage.not_applicable
    assert result.estimated
    assert result.health == "critical"


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


def test_goal_attainment_tiers() -> None:
    goals = {"revenue": 1000.0, "average_ticket": 100.0, "net_margin_pct": 20.0, "nps": 50.0}
    actuals = {"revenue": 1100.0, "average_ticket": 92.0, "net_margin_pct": 10.0}

    results = goal_attainment(actuals, goals)
    by_metric = {r.metric: r for r in results}

    assert [r.metric for r in results] == ["revenue", "average_ticket", "net_margin_pct"]
    assert by_metric["revenue"].status == "exceeded"
    assert by_metric["revenue"].gap == 0.0
    assert by_metric["average_ticket"].status == "reached"
    assert by_metric["average_ticket"].gap == pytest.approx(8.0)
    assert by_metric["net_margin_pct"].attainment_pct == pytest.approx(50.0)
    assert by_metric["net_margin_pct"].status == "far"


def test_zero_target_is_not_applicable() -> None:
    (result,) = goal_attainment({"revenue": 10.0}, {"revenue": 0.0})

    assert result.status == "not_applicable"
    assert result.attainment_pct == 0.0


def test_default_goals_apply_configured_uplifts() -> None:
    goals = default_goals(1000.0, 50.0)

    assert goals["revenue"] == pytest.approx(1150.0)
    assert goals["average_ticket"] == pytest.approx(55.0)
    assert goals["net_margin_pct"] == pytest.approx(20.0)
