# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Input records for CEO FinSight.

Transactions, expense postings and catalog entries are read-only inputs:
the engine never creates or mutates them. They are validated once at the
boundary (partition_transactions / partition_expenses); every component
downstream can then assume well-typed records.

Payment status is normalized to one of PAID, OPEN or OVERDUE by the
readers in io.py before records are built.
"""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .exceptions import MalformedRecordError
from .periods import shift_days

logger = logging.getLogger(__name__)

PAID = "paid"
OPEN = "open"
OVERDUE = "overdue"
PAYMENT_STATUSES: tuple[str, ...] = (PAID, OPEN, OVERDUE)

DIMENSIONS: tuple[str, ...] = ("cost_center", "seller", "store", "product", "channel")

UNASSIGNED = "unassigned"


@dataclass(frozen=True)
class ProductLine:
    """One product line of a sale, with its own sub-amount and sub-cost."""

    product_id: str
    amount: float
    cost: float = 0.0
    quantity: float = 1.0
    name: str = ""


@dataclass(frozen=True)
class TransactionRecord:
    """
    One commercial sale or financial movement.

    Attributes:
        id: Record identifier.
        amount: Gross revenue in currency units. None marks a malformed record.
        occurrence_date: Date of the sale. None marks a malformed record.
        cost: Cost of goods sold for the sale; None when unknown.
        customer_id: Counterparty identifier.
        status: Normalized payment status ("paid", "open", "overdue").
        due_date: Due date; when missing it is inferred from the
            occurrence date plus a configured grace period.
        cost_center_id, seller_id, store_id, channel_id: Dimension keys.
        unit_id: Legal/business unit the sale belongs to.
        payment_method: Payment method label (cash, card, pix, ...).
        products: Product lines of the sale.
        tax: Explicit tax amount, taking priority over the flat estimate.
        discount: Discounts granted on the sale.
        returns: Value of returned goods.
        settlement_date: Date the payment was received, when paid.
    """

    id: str
    amount: Optional[float]
    occurrence_date: Optional[date]
    cost: Optional[float] = None
    customer_id: Optional[str] = None
    status: str = OPEN
    due_date: Optional[date] = None
    cost_center_id: Optional[str] = None
    seller_id: Optional[str] = None
    store_id: Optional[str] = None
    channel_id: Optional[str] = None
    unit_id: Optional[str] = None
    payment_method: Optional[str] = None
    products: tuple[ProductLine, ...] = ()
    tax: Optional[float] = None
    discount: float = 0.0
    returns: float = 0.0
    settlement_date: Optional[date] = None

    @property
    def is_paid(self) -> bool:
        return self.status == PAID

    def effective_due_date(self, grace_days: int) -> Optional[date]:
        """Due date, or occurrence date + grace_days when it is missing."""
        if self.due_date is not None:
            return self.due_date
        if self.occurrence_date is None:
            return None
        return shift_days(self.occurrence_date, grace_days)

    def dimension_key(self, dimension: str) -> Optional[str]:
        """
        Return the key of this record for a non-product dimension.

        Raises:
            ValueError: for an unknown dimension, or for "product" which
                is keyed per product line instead.
        """
        if dimension == "cost_center":
            return self.cost_center_id
        if dimension == "seller":
            return self.seller_id
        if dimension == "store":
            return self.store_id
        if dimension == "channel":
            return self.channel_id
        if dimension == "product":
            raise ValueError("The product dimension is keyed per product line.")
        raise ValueError(f"Unknown dimension: {dimension!r}")


@dataclass(frozen=True)
class ExpenseRecord:
    """
    One expense posting (accounts payable).

    `fees` holds bank or card-operator fees attached to the payment; they
    are reported as financial expenses.
    """

    id: str
    amount: Optional[float]
    date: Optional[date]
    category: str = ""
    description: str = ""
    cost_center_id: Optional[str] = None
    status: str = OPEN
    unit_id: Optional[str] = None
    fees: float = 0.0
    settlement_date: Optional[date] = None

    @property
    def is_settled(self) -> bool:
        return self.status == PAID


@dataclass(frozen=True)
class CatalogEntry:
    """Dimension id -> display name."""

    id: str
    name: str


@dataclass(frozen=True)
class RecordWarning:
    """A recoverable anomaly found in the input, reported with the output."""

    record_id: str
    code: str
    message: str


def _check_number(record_id: str, field: str, value: Optional[float]) -> None:
    # NaN and infinities usually come from empty cells of a pandas frame.
    if value is not None and not math.isfinite(value):
        raise MalformedRecordError(
            record_id,
            field,
            f"Record {record_id!r} has a non-finite {field} ({value!r}).",
            code=f"invalid_{field}",
        )


def _check_status(record_id: str, status: str) -> None:
    if status not in PAYMENT_STATUSES:
        raise MalformedRecordError(
            record_id,
            "status",
            f"Record {record_id!r} has unknown status {status!r}.",
            code="invalid_status",
        )


def validate_transaction(record: TransactionRecord) -> None:
    """
    Check the required fields of a transaction.

    Raises:
        MalformedRecordError: if amount or occurrence date is missing, a
            monetary value is NaN or infinite, or the status is not
            normalized.
    """
    if record.amount is None:
        raise MalformedRecordError(record.id, "amount")
    _check_number(record.id, "amount", record.amount)
    if record.occurrence_date is None:
        raise MalformedRecordError(record.id, "occurrence_date")
    for name in ("cost", "tax", "discount", "returns"):
        _check_number(record.id, name, getattr(record, name))
    for line in record.products:
        _check_number(record.id, "product_amount", line.amount)
        _check_number(record.id, "product_cost", line.cost)
    _check_status(record.id, record.status)


def validate_expense(record: ExpenseRecord) -> None:
    if record.amount is None:
        raise MalformedRecordError(record.id, "amount")
    _check_number(record.id, "amount", record.amount)
    if record.date is None:
        raise MalformedRecordError(record.id, "date")
    _check_number(record.id, "fees", record.fees)
    _check_status(record.id, record.status)


def _partition(records, validate):
    valid = []
    warnings: list[RecordWarning] = []
    for record in records:
        try:
            validate(record)
        except MalformedRecordError as exc:
            logger.warning("Skipping malformed record %s: %s", exc.record_id, exc)
            warnings.append(
                RecordWarning(record_id=exc.record_id, code=exc.code, message=str(exc))
            )
            continue
        valid.append(record)
    return valid, warnings


def partition_transactions(
    records: Iterable[TransactionRecord],
) -> tuple[list[TransactionRecord], list[RecordWarning]]:
    """Split transactions into valid records and warnings for skipped ones."""
    return _partition(records, validate_transaction)


def partition_expenses(
    records: Iterable[ExpenseRecord],
) -> tuple[list[ExpenseRecord], list[RecordWarning]]:
    """Split expense records into valid records and warnings for skipped ones."""
    return _partition(records, validate_expense)
