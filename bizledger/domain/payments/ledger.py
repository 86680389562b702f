"""
Pure payment ledger rules: amount resolution, status derivation, aggregation.

Nothing in this module touches the database. Functions accept ORM rows or any
object exposing the schedule columns (amount, amount_due, amount_paid, is_paid,
due_date, installment_no), so the same rules apply to fresh rows, snapshots and
legacy records.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from ...shared.money import ZERO, as_float, round_money, to_decimal

SCHEDULE_PENDING = "pending"
SCHEDULE_PARTIALLY_PAID = "partially_paid"
SCHEDULE_PAID = "paid"

CLIENT_PAID = "Paid"
CLIENT_DEPOSIT = "Deposit"
CLIENT_UNPAID = "Unpaid"

PAYMENT_METHODS = ("cash", "card", "transfer", "other")
PAYMENT_SOURCES = ("web", "telegram", "migration")


@dataclass
class PaymentSummary:
    """Aggregate payment position of one client"""

    total_due: Decimal
    total_paid: Decimal
    remaining: Decimal
    status: str

    def to_dict(self) -> dict:
        return {
            "totalDue": as_float(self.total_due),
            "totalPaid": as_float(self.total_paid),
            "remaining": as_float(self.remaining),
            "status": self.status,
        }


def get_schedule_amount_due(schedule: Any) -> Decimal:
    """`amount_due` when positive, else the legacy `amount` column"""
    amount_due = to_decimal(getattr(schedule, "amount_due", None))
    if amount_due > ZERO:
        return amount_due
    return to_decimal(getattr(schedule, "amount", None))


def get_schedule_amount_paid(schedule: Any) -> Decimal:
    """
    Resolve how much has been collected on a schedule.

    1. explicit `amount_paid` when set and positive
    2. the full due amount when the legacy `is_paid` flag is set
    3. zero
    """
    explicit = to_decimal(getattr(schedule, "amount_paid", None))
    if explicit > ZERO:
        return explicit
    if getattr(schedule, "is_paid", None):
        return get_schedule_amount_due(schedule)
    return ZERO


def get_schedule_remaining(schedule: Any) -> Decimal:
    return round_money(max(ZERO, get_schedule_amount_due(schedule) - get_schedule_amount_paid(schedule)))


def derive_status(amount_due: Decimal, amount_paid: Decimal) -> str:
    remaining = max(ZERO, amount_due - amount_paid)
    if remaining <= ZERO:
        return SCHEDULE_PAID
    if remaining < amount_due:
        return SCHEDULE_PARTIALLY_PAID
    return SCHEDULE_PENDING


def derive_schedule_status(schedule: Any) -> str:
    return derive_status(get_schedule_amount_due(schedule), get_schedule_amount_paid(schedule))


def derive_client_payment_status(total_due: Decimal, total_paid: Decimal, remaining: Decimal) -> str:
    # No schedules at all counts as Unpaid: "no obligation recorded yet", not "settled"
    if total_due <= ZERO:
        return CLIENT_UNPAID
    if remaining <= ZERO:
        return CLIENT_PAID
    if total_paid > ZERO:
        return CLIENT_DEPOSIT
    return CLIENT_UNPAID


def summarize_schedules(schedules: Iterable[Any]) -> PaymentSummary:
    total_due = ZERO
    total_paid = ZERO
    for schedule in schedules:
        total_due += get_schedule_amount_due(schedule)
        total_paid += get_schedule_amount_paid(schedule)

    total_due = round_money(total_due)
    total_paid = round_money(total_paid)
    remaining = max(ZERO, total_due - total_paid)
    return PaymentSummary(
        total_due=total_due,
        total_paid=total_paid,
        remaining=remaining,
        status=derive_client_payment_status(total_due, total_paid, remaining),
    )


def _due_sort_key(schedule: Any):
    due_date = getattr(schedule, "due_date", None) or datetime.max
    installment_no = getattr(schedule, "installment_no", None)
    return (due_date, installment_no if installment_no is not None else 0)


def payable_schedules(schedules: Iterable[Any]) -> list:
    """Schedules with a balance left, earliest due first (FIFO collection order)"""
    return sorted(
        (schedule for schedule in schedules if get_schedule_remaining(schedule) > ZERO),
        key=_due_sort_key,
    )


def normalize_method(method: Any) -> str:
    """
    Map a requested payment method onto the closed set.

    Raises:
        ValueError: For values outside the set
    """
    if method is None or method == "":
        return "cash"
    if method not in PAYMENT_METHODS:
        raise ValueError(f"method must be one of: {', '.join(PAYMENT_METHODS)}")
    return method


def normalize_source(source: Any) -> str:
    if source not in PAYMENT_SOURCES:
        raise ValueError(f"source must be one of: {', '.join(PAYMENT_SOURCES)}")
    return source
