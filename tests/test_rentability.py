from datetime import date

import pytest

from ceo_finsight.config import EngineConfig
from ceo_finsight.models import (
    DIMENSIONS,
    OPEN,
    PAID,
    UNASSIGNED,
    CatalogEntry,
    ExpenseRecord,
    ProductLine,
    TransactionRecord,
)
from ceo_finsight.rentability import (
    aggregate_all_dimensions,
    aggregate_by_dimension,
    payment_method_breakdown,
)

D = date(2025, 3, 10)


@pytest.fixture
def transactions() -> list[TransactionRecord]:
    return [
        TransactionRecord(
            "t1",
            600.0,
            D,
            cost=300.0,
            cost_center_id="cc1",
            seller_id="ana",
            store_id="s1",
            channel_id="web",
            payment_method="pix",
            products=(ProductLine("p1", 400.0, 200.0), ProductLine("p2", 200.0, 100.0)),
        ),
        TransactionRecord(
            "t2",
            300.0,
            D,
            cost=100.0,
            cost_center_id="cc2",
            seller_id="bia",
            store_id="s1",
            payment_method="card",
            products=(ProductLine("p1", 300.0, 100.0),),
        ),
        TransactionRecord("t3", 100.0, D, seller_id="ana", payment_method="pix"),
    ]


def test_example_catalog_entry_without_activity_is_emitted(transactions) -> None:
    catalog = [
        CatalogEntry("cc1", "Sales"),
        CatalogEntry("cc2", "Support"),
        CatalogEntry("cc3", "Research"),
    ]

    entries = aggregate_by_dimension(transactions, [], "cost_center", catalog)
    idle = next(e for e in entries if e.key == "cc3")

    assert idle.name == "Research"
    assert idle.revenue == 0.0
    assert idle.status == "breakeven"
    assert idle.participation_pct == 0.0
    assert entries[-1].key == "cc3"


def test_participation_sums_to_one_hundred(transactions) -> None:
    for dimension in DIMENSIONS:
        entries = aggregate_by_dimension(transactions, [], dimension)
        total = sum(e.participation_pct for e in entries)
        assert total == pytest.approx(100.0, abs=0.1), dimension


def test_records_without_key_go_to_unassigned(transactions) -> None:
    entries = aggregate_by_dimension(transactions, [], "cost_center")

    unassigned = next(e for e in entries if e.key == UNASSIGNED)
    assert unassigned.revenue == pytest.approx(100.0)


def test_sort_active_first_then_revenue_descending(transactions) -> None:
    catalog = [CatalogEntry("zz", "Idle")]

    entries = aggregate_by_dimension(transactions, [], "seller", catalog)

    assert [e.key for e in entries] == ["ana", "bia", "zz"]
    assert entries[0].revenue == pytest.approx(700.0)


def test_cost_center_profit_uses_settled_expenses_only(transactions) -> None:
    expenses = [
        ExpenseRecord("e1", 50.0, D, cost_center_id="cc1", status=PAID),
        ExpenseRecord("e2", 500.0, D, cost_center_id="cc1", status=OPEN),
    ]

    entries = aggregate_by_dimension(transactions, expenses, "cost_center")
    cc1 = next(e for e in entries if e.key == "cc1")

    assert cc1.expense == pytest.approx(50.0)
    assert cc1.profit == pytest.approx(600.0 - 300.0 - 50.0)
    assert cc1.margin_pct == pytest.approx(250.0 / 600.0 * 100)
    assert cc1.roi_pct == pytest.approx(250.0 / 350.0 * 100)
    assert cc1.status == "profitable"


def test_expenses_ignored_for_other_dimensions(transactions) -> None:
    expenses = [ExpenseRecord("e1", 50.0, D, cost_center_id="cc1", status=PAID)]

    entries = aggregate_by_dimension(transactions, expenses, "store")

    assert all(e.expense == 0.0 for e in entries)


def test_product_dimension_uses_product_lines(transactions) -> None:
    entries = aggregate_by_dimension(transactions, [], "product")
    by_key = {e.key: e for e in entries}

    assert by_key["p1"].revenue == pytest.approx(700.0)
    assert by_key["p1"].cost == pytest.approx(300.0)
    assert by_key["p1"].transaction_count == 2
    assert by_key["p2"].revenue == pytest.approx(200.0)
    # t3 has no product lines.
    assert by_key[UNASSIGNED].revenue == pytest.approx(100.0)


def test_only_the_product_dimension_is_truncated() -> None:
    many = [
        TransactionRecord(
            f"t{i}",
            float(i + 1),
            D,
            seller_id=f"s{i}",
            products=(ProductLine(f"p{i}", float(i + 1)),),
        )
        for i in range(5)
    ]
    config = EngineConfig(top_products=2)

    products = aggregate_by_dimension(many, [], "product", config=config)
    sellers = aggregate_by_dimension(many, [], "seller", config=config)

    assert [e.key for e in products] == ["p4", "p3"]
    assert len(sellers) == 5


def test_unknown_dimension_raises(transactions) -> None:
    with pytest.raises(ValueError):
        aggregate_by_dimension(transactions, [], "region")


def test_aggregate_all_dimensions_uses_matching_catalogs(transactions) -> None:
    result = aggregate_all_dimensions(
        transactions, [], {"store": [CatalogEntry("s1", "Downtown")]}
    )

    assert set(result) == set(DIMENSIONS)
    assert result["store"][0].name == "Downtown"


def test_loss_status_for_negative_profit() -> None:
    entries = aggregate_by_dimension(
        [TransactionRecord("t1", 100.0, D, cost=150.0, channel_id="web")], [], "channel"
    )

    assert entries[0].status == "loss"


def test_payment_method_breakdown(transactions) -> None:
    shares = payment_method_breakdown(transactions)

    assert [s.method for s in shares] == ["pix", "card"]
    assert shares[0].count == 2
    assert shares[0].value == pytest.approx(700.0)
    assert shares[0].share_pct == pytest.approx(70.0)
