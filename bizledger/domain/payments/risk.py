"""
Collection risk scoring from a client's own ledger.

Four signals, each normalized to [0, 1] and weighted:
overdue installments (35), longest overdue run (25), share of the balance
still open (20) and time since the last payment (20). The 0-100 score maps
to low / medium (>= 35) / high (>= 70).
"""

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from ...shared.money import ZERO, as_float, round_money
from ...shared.validators import utcnow
from .ledger import get_schedule_amount_due, get_schedule_amount_paid, get_schedule_remaining

WEIGHTS = {
    "overdue_installment_count": 35,
    "longest_overdue_days": 25,
    "remaining_ratio": 20,
    "days_since_last_payment": 20,
}

HIGH_RISK_SCORE = 70
MEDIUM_RISK_SCORE = 35

MAX_OVERDUE_COUNT = 5
MAX_GAP_DAYS = 60
# Assumed payment gap for a client that owes money and never paid
NO_PAYMENT_GAP_DAYS = 90


@dataclass
class LedgerRiskMetrics:
    total_due: Decimal
    total_paid: Decimal
    remaining: Decimal
    overdue_count: int
    longest_overdue_days: int
    remaining_ratio: float
    days_since_last_payment: int
    last_payment_at: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "totalDue": as_float(self.total_due),
            "totalPaid": as_float(self.total_paid),
            "remaining": as_float(self.remaining),
            "overdueCount": self.overdue_count,
            "longestOverdueDays": self.longest_overdue_days,
            "remainingRatio": self.remaining_ratio,
            "daysSinceLastPayment": self.days_since_last_payment,
            "lastPaymentAt": self.last_payment_at,
        }


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _days_between(later: datetime, earlier: datetime) -> int:
    """Whole days from `earlier` to `later`, never negative"""
    return max(0, math.floor((later - earlier).total_seconds() / 86400))


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def build_ledger_risk_metrics(
    schedules: Iterable[Any],
    transactions: Iterable[Any] = (),
    now: Optional[datetime] = None,
) -> LedgerRiskMetrics:
    """
    Collect the risk signals for one client.

    A schedule is overdue when it still has a balance and its due date is
    before the start of today.
    """
    today = _start_of_day(now or utcnow())

    total_due = ZERO
    total_paid = ZERO
    overdue_count = 0
    longest_overdue_days = 0

    for schedule in schedules:
        total_due += get_schedule_amount_due(schedule)
        total_paid += get_schedule_amount_paid(schedule)

        due_date = getattr(schedule, "due_date", None)
        if get_schedule_remaining(schedule) <= ZERO or due_date is None or due_date >= today:
            continue
        overdue_count += 1
        longest_overdue_days = max(longest_overdue_days, _days_between(today, due_date))

    total_due = round_money(total_due)
    total_paid = round_money(total_paid)
    remaining = max(ZERO, total_due - total_paid)
    remaining_ratio = round(float(remaining / total_due), 2) if total_due > ZERO else 0.0

    paid_dates = [getattr(t, "paid_at", None) for t in transactions]
    last_payment_at = max((paid_at for paid_at in paid_dates if paid_at is not None), default=None)

    if last_payment_at is not None:
        days_since_last_payment = _days_between(today, last_payment_at)
    elif total_due > ZERO and total_paid <= ZERO:
        days_since_last_payment = NO_PAYMENT_GAP_DAYS
    else:
        days_since_last_payment = 0

    return LedgerRiskMetrics(
        total_due=total_due,
        total_paid=total_paid,
        remaining=remaining,
        overdue_count=overdue_count,
        longest_overdue_days=longest_overdue_days,
        remaining_ratio=remaining_ratio,
        days_since_last_payment=days_since_last_payment,
        last_payment_at=last_payment_at,
    )


def resolve_risk_level(score: int) -> str:
    if score >= HIGH_RISK_SCORE:
        return "high"
    if score >= MEDIUM_RISK_SCORE:
        return "medium"
    return "low"


def _contributions(metrics: LedgerRiskMetrics) -> dict:
    normalized = {
        "overdue_installment_count": _clamp(metrics.overdue_count, 0, MAX_OVERDUE_COUNT) / MAX_OVERDUE_COUNT,
        "longest_overdue_days": _clamp(metrics.longest_overdue_days, 0, MAX_GAP_DAYS) / MAX_GAP_DAYS,
        "remaining_ratio": _clamp(metrics.remaining_ratio, 0, 1),
        "days_since_last_payment": _clamp(metrics.days_since_last_payment, 0, MAX_GAP_DAYS) / MAX_GAP_DAYS,
    }
    return {key: normalized[key] * weight for key, weight in WEIGHTS.items()}


def score_collection_risk(metrics: LedgerRiskMetrics) -> dict:
    """
    Score a client's collection risk.

    Returns:
        {"score": 0-100, "level": low|medium|high, "factors": [{key, value, impact}]}
    """
    if metrics.total_due <= ZERO:
        contributions = {key: 0.0 for key in WEIGHTS}
        score = 0
    else:
        contributions = _contributions(metrics)
        # Half-up rounding of the weighted sum
        score = int(_clamp(math.floor(sum(contributions.values()) + 0.5), 0, 100))

    factor_values = {
        "overdue_installment_count": metrics.overdue_count,
        "longest_overdue_days": metrics.longest_overdue_days,
        "remaining_ratio": metrics.remaining_ratio,
        "days_since_last_payment": (
            metrics.days_since_last_payment if metrics.last_payment_at is not None else "no_payment_history"
        ),
    }
    return {
        "score": score,
        "level": resolve_risk_level(score),
        "factors": [
            {"key": key, "value": factor_values[key], "impact": round(contributions[key], 2)}
            for key in WEIGHTS
        ],
    }
