from datetime import date

import pytest

from ceo_finsight.config import EngineConfig
from ceo_finsight.exceptions import ConfigMissingError, InvalidWindowError
from ceo_finsight.models import OPEN, PAID, ExpenseRecord, RecordWarning, TransactionRecord
from ceo_finsight.report import ReportRequest, build_report


@pytest.fixture
def request_march() -> ReportRequest:
    history = [
        TransactionRecord("h1", 100.0, date(2025, 1, 15), tax=0.0, customer_id="a", status=PAID),
        TransactionRecord("h2", 200.0, date(2025, 2, 15), tax=0.0, customer_id="b", status=PAID),
    ]
    transactions = [
        TransactionRecord(
            "t1",
            1000.0,
            date(2025, 3, 5),
            cost=400.0,
            tax=0.0,
            customer_id="a",
            status=PAID,
            store_id="s1",
            payment_method="pix",
        ),
        TransactionRecord(
            "t2",
            500.0,
            date(2025, 3, 10),
            cost=200.0,
            tax=0.0,
            customer_id="c",
            status=OPEN,
            due_date=date(2025, 3, 20),
            store_id="s2",
            payment_method="card",
        ),
        TransactionRecord("t3", None, date(2025, 3, 11)),
        TransactionRecord("t4", 80.0, date(2025, 4, 2), tax=0.0),
    ]
    expenses = [
        ExpenseRecord("e1", 100.0, date(2025, 3, 1), category="aluguel", status=PAID),
        ExpenseRecord("e2", 50.0, None, category="aluguel", status=PAID),
    ]
    return ReportRequest(
        window_start=date(2025, 3, 1),
        window_end=date(2025, 4, 1),
        transactions=transactions,
        expenses=expenses,
        history=history,
        as_of=date(2025, 4, 15),
    )


def test_build_report_end_to_end(request_march: ReportRequest) -> None:
    report = build_report(request_march)

    assert report.window.label == "2025-03"
    assert report.as_of == date(2025, 4, 15)
    assert report.dre.gross_revenue == pytest.approx(1500.0)
    assert report.dre.cost_of_goods_sold == pytest.approx(600.0)
    assert report.dre.administrative_expenses == pytest.approx(100.0)
    assert report.dre.net_result_before_tax == pytest.approx(800.0)

    assert [p.month for p in report.monthly] == ["2025-01", "2025-02", "2025-03"]
    assert [p.revenue for p in report.monthly] == [100.0, 200.0, 1500.0]
    assert report.growth.mom.percent == pytest.approx(650.0)
    assert report.growth.pace == "accelerated"
    assert [p.month for p in report.forecast] == ["2025-04", "2025-05", "2025-06"]

    delinquency = report.indicators.delinquency
    assert delinquency.overdue_value == pytest.approx(500.0)
    assert delinquency.rate.value == pytest.approx(500.0 / 1500.0 * 100)

    stores = {e.key for e in report.rentability["store"]}
    assert stores == {"s1", "s2"}
    assert [s.method for s in report.payment_methods] == ["pix", "card"]

    assert report.recurrence.recurring_customers == 0
    assert report.scenarios[0].projected_revenue == pytest.approx(1800.0)
    assert {g.metric for g in report.goals} == {"revenue", "net_margin_pct", "average_ticket"}


def test_malformed_records_become_warnings(request_march: ReportRequest) -> None:
    report = build_report(request_march)

    codes = {(w.record_id, w.code) for w in report.warnings}

    assert ("t3", "missing_amount") in codes
    assert ("e2", "missing_date") in codes


def test_input_warnings_are_carried_and_deduplicated(request_march: ReportRequest) -> None:
    earlier = RecordWarning("row-9", "missing_amount", "Row 9 has no amount.")
    request = ReportRequest(
        window_start=request_march.window_start,
        window_end=request_march.window_end,
        transactions=request_march.transactions,
        history=request_march.transactions,
        as_of=request_march.as_of,
        input_warnings=(earlier,),
    )

    report = build_report(request)

    assert report.warnings[0] == earlier
    assert sum(1 for w in report.warnings if w.record_id == "t3") == 1


def test_invalid_window_raises() -> None:
    request = ReportRequest(
        window_start=date(2025, 3, 1), window_end=date(2025, 3, 1), transactions=[]
    )

    with pytest.raises(InvalidWindowError):
        build_report(request)


def test_missing_tax_rate_propagates() -> None:
    request = ReportRequest(
        window_start=date(2025, 3, 1),
        window_end=date(2025, 4, 1),
        transactions=[TransactionRecord("t1", 100.0, date(2025, 3, 2))],
        config=EngineConfig(tax_rate_estimate=None),
        as_of=date(2025, 4, 1),
    )

    with pytest.raises(ConfigMissingError):
        build_report(request)


def test_empty_window_produces_zeroed_report() -> None:
    request = ReportRequest(
        window_start=date(2025, 3, 1),
        window_end=date(2025, 4, 1),
        transactions=[],
        as_of=date(2025, 4, 1),
    )

    report = build_report(request)

    assert report.dre.gross_revenue == 0.0
    assert [p.month for p in report.monthly] == ["2025-03"]
    assert report.indicators.delinquency.rate.not_applicable
    assert report.warnings == ()


def test_unit_dres_are_built_on_request() -> None:
    request = ReportRequest(
        window_start=date(2025, 3, 1),
        window_end=date(2025, 4, 1),
        transactions=[
            TransactionRecord("t1", 100.0, date(2025, 3, 2), tax=0.0, unit_id="north"),
            TransactionRecord("t2", 50.0, date(2025, 3, 3), tax=0.0, unit_id="south"),
        ],
        units=["north", "south"],
        as_of=date(2025, 4, 1),
    )

    report = build_report(request)

    assert report.unit_dres["north"].gross_revenue == pytest.approx(100.0)
    assert report.unit_dres["south"].gross_revenue == pytest.approx(50.0)


def test_to_dict_rounds_only_at_the_boundary() -> None:
    request = ReportRequest(
        window_start=date(2025, 3, 1),
        window_end=date(2025, 4, 1),
        transactions=[TransactionRecord("t1", 10.005, date(2025, 3, 2), tax=0.0)],
        as_of=date(2025, 4, 1),
    )

    report = build_report(request)
    data = report.to_dict()

    assert report.dre.gross_revenue == 10.005
    assert data["dre"]["gross_revenue"] == 10.01
    assert data["window"]["start"] == "2025-03-01"
    assert data["as_of"] == "2025-04-01"
    liquidity = data["indicators"]["liquidity"]
    assert "not_applicable" in liquidity["current_ratio"]


def test_report_is_deterministic(request_march: ReportRequest) -> None:
    first = build_report(request_march).to_dict()
    second = build_report(request_march).to_dict()

    assert first == second


def test_nan_amount_is_skipped_with_a_warning() -> None:
    request = ReportRequest(
        window_start=date(2025, 3, 1),
        window_end=date(2025, 4, 1),
        transactions=[
            TransactionRecord("ok", 100.0, date(2025, 3, 2), tax=0.0),
            TransactionRecord("bad", float("nan"), date(2025, 3, 3), tax=0.0),
        ],
        expenses=[ExpenseRecord("e1", float("nan"), date(2025, 3, 4), status=PAID)],
        as_of=date(2025, 4, 1),
    )

    report = build_report(request)

    assert report.dre.gross_revenue == pytest.approx(100.0)
    assert report.dre.operating_expenses == 0.0
    assert [(w.record_id, w.code) for w in report.warnings] == [
        ("bad", "invalid_amount"),
        ("e1", "invalid_amount"),
    ]


def test_unit_dres_share_the_financial_income() -> None:
    request = ReportRequest(
        window_start=date(2025, 3, 1),
        window_end=date(2025, 4, 1),
        transactions=[
            TransactionRecord("t1", 100.0, date(2025, 3, 2), tax=0.0, unit_id="u1"),
            TransactionRecord("t2", 50.0, date(2025, 3, 3), tax=0.0, unit_id="u2"),
        ],
        units=["u1", "u2"],
        financial_income=10.0,
        as_of=date(2025, 4, 1),
    )

    report = build_report(request)

    summed = sum(d.net_result_before_tax for d in report.unit_dres.values())
    assert report.dre.net_result_before_tax == pytest.approx(160.0)
    assert summed == pytest.approx(report.dre.net_result_before_tax)


def test_report_wires_growth_returns_and_scenarios(request_march: ReportRequest) -> None:
    report = build_report(request_march)

    # Monthly revenue 100 -> 200 -> 1500: steps of +100 % and +650 %.
    assert report.growth.average_monthly_growth == pytest.approx(375.0)
    # 1800 * 0.2 + 1650 * 0.6 + 1575 * 0.2
    assert report.expected_revenue == pytest.approx(1665.0)
    # DRE net result 800 against reserves estimated as 1000 paid - 100 settled.
    sustainability = report.indicators.sustainability
    assert sustainability.return_on_equity.inputs["net_result"] == pytest.approx(800.0)
    assert sustainability.return_on_equity.value == pytest.approx(800.0 / 900.0 * 100)
    assert report.indicators.efficiency.operating_margin.value == pytest.approx(
        report.dre.operating_result_pct
    )
    assert "doubtful_debt_provision" in {
        s.name for s in report.indicators.snapshots()["delinquency"]
    }
