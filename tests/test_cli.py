import sys
from pathlib import Path

import pytest

from ceo_finsight import __version__, cli


@pytest.fixture
def inputs(tmp_path: Path) -> dict[str, Path]:
    sales = tmp_path / "sales.csv"
    sales.write_text(
        "id,amount,date,cost,tax,customer_id,status,store_id,due_date\n"
        "t1,1000,2025-02-10,400,0,a,paid,s1,\n"
        "t2,500,2025-03-05,200,0,b,open,s2,2025-03-15\n"
        "t3,,2025-03-06,,0,c,paid,s1,\n",
        encoding="utf-8",
    )
    expenses = tmp_path / "expenses.csv"
    expenses.write_text(
        "id,amount,date,category,status\n" "e1,100,2025-03-02,aluguel,paid\n",
        encoding="utf-8",
    )
    stores = tmp_path / "stores.csv"
    stores.write_text("id,name\ns1,Centro\ns2,Norte\n", encoding="utf-8")
    return {"sales": sales, "expenses": expenses, "stores": stores, "dir": tmp_path}


def _run(monkeypatch, *args: str) -> None:
    monkeypatch.setattr(sys, "argv", ["ceo-finsight", *args])
    cli.main()


def test_version(monkeypatch, capsys) -> None:
    _run(monkeypatch, "--version")

    assert __version__ in capsys.readouterr().out


def test_table_mode_prints_report(monkeypatch, capsys, inputs) -> None:
    _run(
        monkeypatch,
        "--transactions",
        str(inputs["sales"]),
        "--expenses",
        str(inputs["expenses"]),
        "--catalog",
        f"store={inputs['stores']}",
        "--month",
        "2025-03",
        "--as-of",
        "2025-04-01",
    )

    out = capsys.readouterr().out
    assert "Applied window: 2025-03" in out
    assert "=== Dre ===" in out
    assert "Gross revenue" in out
    assert "Norte" in out
    assert "1 row(s) were skipped" in out
    assert "MoM:" in out
    assert "Average monthly growth:" in out
    assert "Expected revenue across scenarios:" in out


def test_csv_mode_writes_timestamped_files(monkeypatch, capsys, inputs) -> None:
    output_dir = inputs["dir"] / "out"

    _run(
        monkeypatch,
        "--transactions",
        str(inputs["sales"]),
        "--from-date",
        "2025-02-01",
        "--to-date",
        "2025-04-01",
        "--as-of",
        "2025-04-01",
        "--mode",
        "csv",
        "--output-dir",
        str(output_dir),
    )

    names = {p.name.rsplit("_", 1)[0] for p in output_dir.glob("*.csv")}
    assert {"dre", "indicators", "monthly", "forecast", "goals", "warnings"} <= names
    assert "=== Dre ===" not in capsys.readouterr().out


def test_missing_transactions_is_a_usage_error(monkeypatch) -> None:
    with pytest.raises(SystemExit) as excinfo:
        _run(monkeypatch, "--month", "2025-03")

    assert excinfo.value.code == 2


def test_unknown_catalog_dimension_is_rejected(monkeypatch, inputs) -> None:
    with pytest.raises(SystemExit) as excinfo:
        _run(
            monkeypatch,
            "--transactions",
            str(inputs["sales"]),
            "--catalog",
            f"region={inputs['stores']}",
        )

    assert excinfo.value.code == 2


def test_missing_tax_rate_exits_with_error(monkeypatch, capsys, tmp_path) -> None:
    sales = tmp_path / "sales.csv"
    sales.write_text("id,amount,date\nt1,100,2025-03-01\n", encoding="utf-8")
    config = tmp_path / "finsight.toml"
    config.write_text("[assumptions]\nrequire_explicit_tax = true\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        _run(
            monkeypatch,
            "--config",
            str(config),
            "--transactions",
            str(sales),
            "--month",
            "2025-03",
        )

    assert excinfo.value.code == 2
    assert "tax_rate_estimate" in capsys.readouterr().err
