from datetime import date

import pytest

from ceo_finsight.exceptions import MalformedRecordError
from ceo_finsight.models import (
    OPEN,
    PAID,
    ExpenseRecord,
    ProductLine,
    TransactionRecord,
    partition_expenses,
    partition_transactions,
    validate_transaction,
)


def test_effective_due_date_falls_back_to_grace_period() -> None:
    explicit = TransactionRecord("t1", 100.0, date(2025, 1, 10), due_date=date(2025, 1, 20))
    inferred = TransactionRecord("t2", 100.0, date(2025, 1, 10))

    assert explicit.effective_due_date(30) == date(2025, 1, 20)
    assert inferred.effective_due_date(30) == date(2025, 2, 9)


def test_dimension_key_per_dimension() -> None:
    t = TransactionRecord(
        "t1",
        10.0,
        date(2025, 1, 1),
        cost_center_id="cc1",
        seller_id="s1",
        store_id="st1",
        channel_id="web",
        products=(ProductLine("p1", 10.0),),
    )

    assert t.dimension_key("cost_center") == "cc1"
    assert t.dimension_key("seller") == "s1"
    assert t.dimension_key("store") == "st1"
    assert t.dimension_key("channel") == "web"
    with pytest.raises(ValueError):
        t.dimension_key("product")
    with pytest.raises(ValueError):
        t.dimension_key("region")


def test_validate_transaction_raises_for_missing_amount() -> None:
    with pytest.raises(MalformedRecordError) as excinfo:
        validate_transaction(TransactionRecord("bad", None, date(2025, 1, 1)))

    assert excinfo.value.record_id == "bad"
    assert excinfo.value.field == "amount"


def test_partition_transactions_skips_malformed_records_with_warnings() -> None:
    records = [
        TransactionRecord("ok", 100.0, date(2025, 1, 1), status=PAID),
        TransactionRecord("no-amount", None, date(2025, 1, 1)),
        TransactionRecord("no-date", 50.0, None),
        TransactionRecord("weird-status", 50.0, date(2025, 1, 1), status="maybe"),
    ]

    valid, warnings = partition_transactions(records)

    assert [r.id for r in valid] == ["ok"]
    assert [(w.record_id, w.code) for w in warnings] == [
        ("no-amount", "missing_amount"),
        ("no-date", "missing_occurrence_date"),
        ("weird-status", "invalid_status"),
    ]


def test_partition_expenses() -> None:
    records = [
        ExpenseRecord("e1", 10.0, date(2025, 1, 1), status=OPEN),
        ExpenseRecord("e2", None, date(2025, 1, 1)),
    ]

    valid, warnings = partition_expenses(records)

    assert [e.id for e in valid] == ["e1"]
    assert warnings[0].code == "missing_amount"
    assert not valid[0].is_settled


@pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_amounts_are_malformed(amount: float) -> None:
    valid, warnings = partition_transactions(
        [
            TransactionRecord("ok", 100.0, date(2025, 1, 1)),
            TransactionRecord("bad", amount, date(2025, 1, 1)),
        ]
    )

    assert [r.id for r in valid] == ["ok"]
    assert [(w.record_id, w.code) for w in warnings] == [("bad", "invalid_amount")]


def test_non_finite_optional_values_are_malformed() -> None:
    valid, warnings = partition_transactions(
        [
            TransactionRecord("cost", 100.0, date(2025, 1, 1), cost=float("nan")),
            TransactionRecord(
                "line", 100.0, date(2025, 1, 1), products=(ProductLine("p1", float("nan")),)
            ),
        ]
    )

    assert valid == []
    assert [w.code for w in warnings] == ["invalid_cost", "invalid_product_amount"]


def test_partition_expenses_rejects_nan_amount() -> None:
    valid, warnings = partition_expenses([ExpenseRecord("e1", float("nan"), date(2025, 1, 1))])

    assert valid == []
    assert warnings[0].code == "invalid_amount"
