# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for CEO FinSight.

This module reads transactions, expense postings and dimension catalogs
from CSV files (or in-memory DataFrames) and normalizes them into the
record types of models.py.

Source systems are heterogeneous, so the readers are tolerant:

- column names are case-insensitive and common aliases are accepted
  (for example ``valor_total`` or ``value`` for ``amount``);
- amounts may use either decimal convention (``1,234.56`` or
  ``1.234,56``) and may carry a currency symbol;
- payment statuses are normalized from many encodings ("1", "Sim",
  "pago", "liquidado", "Concretizada", "paid", ...) to paid / open /
  overdue.

A row missing a required field (amount or date) is skipped and reported
as a RecordWarning. It never aborts the whole read. A file whose
*structure* is wrong (missing required columns) raises ValueError, as it
cannot be recovered row by row.
"""

import logging
import os
import re
import unicodedata
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Optional, Union

import pandas as pd

from .models import (
    OPEN,
    OVERDUE,
    PAID,
    CatalogEntry,
    ExpenseRecord,
    ProductLine,
    RecordWarning,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

TRANSACTION_ALIASES: dict[str, str] = {
    "transaction_id": "id",
    "codigo": "id",
    "value": "amount",
    "valor": "amount",
    "valor_total": "amount",
    "data": "date",
    "occurrence_date": "date",
    "valor_custo": "cost",
    "cliente_id": "customer_id",
    "customer": "customer_id",
    "situacao": "status",
    "liquidado": "status",
    "payment_status": "status",
    "data_vencimento": "due_date",
    "due": "due_date",
    "centro_custo_id": "cost_center_id",
    "cost_center": "cost_center_id",
    "vendedor_id": "seller_id",
    "seller": "seller_id",
    "loja_id": "store_id",
    "store": "store_id",
    "canal_id": "channel_id",
    "channel": "channel_id",
    "unidade": "unit_id",
    "unit": "unit_id",
    "forma_pagamento": "payment_method",
    "valor_impostos": "tax",
    "desconto_valor": "discount",
    "devolucoes": "returns",
    "data_liquidacao": "settlement_date",
}

EXPENSE_ALIASES: dict[str, str] = {
    "codigo": "id",
    "valor": "amount",
    "valor_total": "amount",
    "value": "amount",
    "data": "date",
    "data_vencimento": "date",
    "categoria": "category",
    "plano_contas": "category",
    "descricao": "description",
    "label": "description",
    "centro_custo_id": "cost_center_id",
    "cost_center": "cost_center_id",
    "liquidado": "status",
    "situacao": "status",
    "unidade": "unit_id",
    "unit": "unit_id",
    "taxa_banco": "fees",
    "data_liquidacao": "settlement_date",
}

PRODUCT_ALIASES: dict[str, str] = {
    "venda_id": "transaction_id",
    "produto_id": "product_id",
    "valor_total": "amount",
    "valor": "amount",
    "valor_custo": "cost",
    "quantidade": "quantity",
    "nome_produto": "name",
    "nome": "name",
}

CATALOG_ALIASES: dict[str, str] = {
    "codigo": "id",
    "nome": "name",
    "label": "name",
}

_PAID_TOKENS = {
    "1", "s", "sim", "y", "yes", "true", "pago", "paga", "pg", "paid",
    "liquidado", "liquidada", "quitado", "quitada", "aprovado", "aprovada",
    "concretizado", "concretizada", "recebido", "recebida", "settled",
}
_OPEN_TOKENS = {
    "0", "n", "nao", "no", "false", "aberto", "aberta", "em aberto",
    "pendente", "open", "pending", "a receber", "unpaid",
}
_OVERDUE_TOKENS = {
    "vencido", "vencida", "atrasado", "atrasada", "inadimplente",
    "overdue", "late",
}

_CURRENCY_NOISE = re.compile(r"[^\d,.\-]")
# "1.500" or "12.345": one dot grouping exactly three digits, no cents.
_THOUSANDS_ONLY = re.compile(r"^-?[1-9]\d{0,2}\.\d{3}$")


def _strip_accents(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    return "".join(c for c in normalized if not unicodedata.combining(c))


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def normalize_payment_status(raw: Any) -> Optional[str]:
    """
    Normalize a raw payment status to "paid", "open" or "overdue".

    Missing values are treated as open. Returns None when the encoding is
    not recognized, so that the caller can report it.
    """
    if _is_missing(raw):
        return OPEN
    if isinstance(raw, bool):
        return PAID if raw else OPEN
    if isinstance(raw, (int, float)):
        return PAID if raw == 1 else OPEN if raw == 0 else None

    token = _strip_accents(str(raw)).strip().lower()
    if token in ("", "nan"):
        return OPEN
    if token in _PAID_TOKENS:
        return PAID
    if token in _OVERDUE_TOKENS:
        return OVERDUE
    if token in _OPEN_TOKENS:
        return OPEN
    return None


def parse_amount(raw: Any) -> Optional[float]:
    """
    Parse a monetary amount written in either decimal convention.

    Examples: 1234.5, "1234,50", "1.234,56", "1,234.56", "R$ 99,90".

    A single dot followed by exactly three digits is a thousands
    separator, as in Brazilian amounts without cents: "R$ 1.500" is 1500.
    Values below 1 such as "0.125" keep the dot as decimal separator.
    Returns None for missing or unparseable values.
    """
    if _is_missing(raw):
        return None
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)

    text = _CURRENCY_NOISE.sub("", str(raw).strip())
    if not text or text in ("-", ".", ","):
        return None

    if "," in text and "." in text:
        # The right-most separator is the decimal one.
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".") if text.count(",") == 1 else text.replace(",", "")
    elif text.count(".") > 1 or _THOUSANDS_ONLY.match(text):
        text = text.replace(".", "")

    try:
        return float(text)
    except ValueError:
        return None


def _parse_date(raw: Any) -> Optional[date]:
    if _is_missing(raw):
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    parsed = pd.to_datetime(str(raw).strip(), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def _text(raw: Any) -> Optional[str]:
    if _is_missing(raw):
        return None
    text = str(raw).strip()
    return text or None


def _normalize_columns(frame: pd.DataFrame, aliases: dict[str, str]) -> pd.DataFrame:
    """Lower-case column names and apply aliases without clobbering real columns."""
    df = frame.copy()
    df.columns = [str(c).lower().strip() for c in df.columns]
    renames: dict[str, str] = {}
    taken = set(df.columns)
    for src, dst in aliases.items():
        if src in df.columns and dst not in taken:
            renames[src] = dst
            taken.add(dst)
    return df.rename(columns=renames)


def _require(df: pd.DataFrame, required: set[str], what: str) -> None:
    missing = required - set(df.columns)
    if missing:
        raise ValueError(
            f"Invalid {what} structure: missing column(s) "
            f"{', '.join(sorted(missing))} (column names are case-insensitive)."
        )


def _product_lines_by_transaction(
    products: Optional[pd.DataFrame],
) -> dict[str, tuple[ProductLine, ...]]:
    if products is None or products.empty:
        return {}

    df = _normalize_columns(products, PRODUCT_ALIASES)
    _require(df, {"transaction_id", "product_id", "amount"}, "product lines")

    grouped: dict[str, list[ProductLine]] = defaultdict(list)
    for row in df.to_dict(orient="records"):
        tx_id = _text(row.get("transaction_id"))
        product_id = _text(row.get("product_id"))
        amount = parse_amount(row.get("amount"))
        if tx_id is None or product_id is None or amount is None:
            logger.warning("Skipping incomplete product line: %s", row)
            continue
        quantity = parse_amount(row.get("quantity"))
        grouped[tx_id].append(
            ProductLine(
                product_id=product_id,
                amount=amount,
                cost=parse_amount(row.get("cost")) or 0.0,
                quantity=1.0 if quantity is None else quantity,
                name=_text(row.get("name")) or "",
            )
        )
    return {tx_id: tuple(lines) for tx_id, lines in grouped.items()}


def transactions_from_frame(
    frame: pd.DataFrame, products: Optional[pd.DataFrame] = None
) -> tuple[list[TransactionRecord], list[RecordWarning]]:
    """
    Normalize a DataFrame of transactions into TransactionRecord objects.

    Required columns: ``amount`` and ``date`` (or their aliases). An ``id``
    column is optional; rows without one get their 1-based row number.

    Returns
    -------
    tuple
        (records, warnings). Rows missing an amount or a date are skipped
        and reported in warnings, as are unrecognized payment statuses
        (such rows are kept and treated as open).
    """
    df = _normalize_columns(frame, TRANSACTION_ALIASES)
    _require(df, {"amount", "date"}, "transactions")

    lines = _product_lines_by_transaction(products)
    records: list[TransactionRecord] = []
    warnings: list[RecordWarning] = []

    for position, row in enumerate(df.to_dict(orient="records"), start=1):
        record_id = _text(row.get("id")) or f"row-{position}"

        amount = parse_amount(row.get("amount"))
        occurred = _parse_date(row.get("date"))
        if amount is None or occurred is None:
            field = "amount" if amount is None else "date"
            message = f"Transaction {record_id!r} skipped: missing or invalid {field}."
            logger.warning(message)
            warnings.append(RecordWarning(record_id, f"missing_{field}", message))
            continue

        status = normalize_payment_status(row.get("status"))
        if status is None:
            message = (
                f"Transaction {record_id!r} has unrecognized status "
                f"{row.get('status')!r}; treated as open."
            )
            logger.warning(message)
            warnings.append(RecordWarning(record_id, "unknown_status", message))
            status = OPEN

        records.append(
            TransactionRecord(
                id=record_id,
                amount=amount,
                occurrence_date=occurred,
                cost=parse_amount(row.get("cost")),
                customer_id=_text(row.get("customer_id")),
                status=status,
                due_date=_parse_date(row.get("due_date")),
                cost_center_id=_text(row.get("cost_center_id")),
                seller_id=_text(row.get("seller_id")),
                store_id=_text(row.get("store_id")),
                channel_id=_text(row.get("channel_id")),
                unit_id=_text(row.get("unit_id")),
                payment_method=_text(row.get("payment_method")),
                products=lines.get(record_id, ()),
                tax=parse_amount(row.get("tax")),
                discount=parse_amount(row.get("discount")) or 0.0,
                returns=parse_amount(row.get("returns")) or 0.0,
                settlement_date=_parse_date(row.get("settlement_date")),
            )
        )

    return records, warnings


def expenses_from_frame(
    frame: pd.DataFrame,
) -> tuple[list[ExpenseRecord], list[RecordWarning]]:
    """Normalize a DataFrame of expense postings into ExpenseRecord objects."""
    df = _normalize_columns(frame, EXPENSE_ALIASES)
    _require(df, {"amount", "date"}, "expenses")

    records: list[ExpenseRecord] = []
    warnings: list[RecordWarning] = []

    for position, row in enumerate(df.to_dict(orient="records"), start=1):
        record_id = _text(row.get("id")) or f"row-{position}"

        amount = parse_amount(row.get("amount"))
        posted = _parse_date(row.get("date"))
        if amount is None or posted is None:
            field = "amount" if amount is None else "date"
            message = f"Expense {record_id!r} skipped: missing or invalid {field}."
            logger.warning(message)
            warnings.append(RecordWarning(record_id, f"missing_{field}", message))
            continue

        status = normalize_payment_status(row.get("status"))
        if status is None:
            message = (
                f"Expense {record_id!r} has unrecognized status "
                f"{row.get('status')!r}; treated as open."
            )
            logger.warning(message)
            warnings.append(RecordWarning(record_id, "unknown_status", message))
            status = OPEN

        records.append(
            ExpenseRecord(
                id=record_id,
                amount=amount,
                date=posted,
                category=_text(row.get("category")) or "",
                description=_text(row.get("description")) or "",
                cost_center_id=_text(row.get("cost_center_id")),
                status=status,
                unit_id=_text(row.get("unit_id")),
                fees=parse_amount(row.get("fees")) or 0.0,
                settlement_date=_parse_date(row.get("settlement_date")),
            )
        )

    return records, warnings


def catalog_from_frame(frame: pd.DataFrame) -> list[CatalogEntry]:
    """Normalize a DataFrame with ``id`` and ``name`` columns into catalog entries."""
    df = _normalize_columns(frame, CATALOG_ALIASES)
    _require(df, {"id", "name"}, "catalog")

    entries: list[CatalogEntry] = []
    seen: set[str] = set()
    for row in df.to_dict(orient="records"):
        entry_id = _text(row.get("id"))
        if entry_id is None or entry_id in seen:
            continue
        seen.add(entry_id)
        entries.append(CatalogEntry(id=entry_id, name=_text(row.get("name")) or entry_id))
    return entries


def _read_csv(path: PathLike) -> pd.DataFrame:
    # Everything is read as text: ids keep their leading zeros and amounts
    # are parsed by parse_amount, which understands both decimal styles.
    return pd.read_csv(path, dtype=str, skipinitialspace=True)


def read_transactions(
    path: PathLike, products_path: Optional[PathLike] = None
) -> tuple[list[TransactionRecord], list[RecordWarning]]:
    """
    Read transactions (and optionally their product lines) from CSV files.

    Parameters
    ----------
    path:
        CSV with at least ``amount`` and ``date`` columns.
    products_path:
        Optional CSV of product lines with ``transaction_id``,
        ``product_id``, ``amount`` and optional ``cost``, ``quantity``,
        ``name`` columns.

    Raises
    ------
    ValueError
        If a file does not contain the required columns.
    """
    products = _read_csv(products_path) if products_path is not None else None
    return transactions_from_frame(_read_csv(path), products)


def read_expenses(path: PathLike) -> tuple[list[ExpenseRecord], list[RecordWarning]]:
    """Read expense postings from a CSV file."""
    return expenses_from_frame(_read_csv(path))


def read_catalog(path: PathLike) -> list[CatalogEntry]:
    """Read a dimension catalog (``id``, ``name``) from a CSV file."""
    return catalog_from_frame(_read_csv(path))
