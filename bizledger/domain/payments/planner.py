"""Rule-based payment plan suggestions for newly confirmed customers"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from ...shared.money import ZERO, as_float, parse_money, round_money, split_amount_evenly
from ...shared.validators import utcnow

RISK_LEVELS = ("low", "medium", "high")

FULL_PAYMENT_LIMIT = Decimal("5000")
LARGE_PLAN_THRESHOLD = Decimal("15000")


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def _confidence(risk_level: str, total_amount: Decimal, existing_overdue_count: int, stage: int) -> float:
    confidence = 0.82
    if total_amount <= FULL_PAYMENT_LIMIT:
        confidence += 0.06
    if risk_level == "high":
        confidence += 0.04
    if risk_level == "medium":
        confidence += 0.02
    if existing_overdue_count > 0:
        confidence -= 0.08
    if stage >= 3:
        confidence += 0.03
    return round(_clamp(confidence, 0.6, 0.96), 2)


def suggest_payment_plan(
    total_amount: Any,
    risk_level: str,
    stage: int = 1,
    existing_overdue_count: int = 0,
    now: Optional[datetime] = None,
) -> dict:
    """
    Suggest how a customer should pay an agreed price.

    Small totals from low-risk customers are collected in full. Everything else
    becomes a deposit plus 2 installments (3 above 15,000), monthly, the first
    due a week from now. Riskier customers get a larger deposit.

    Raises:
        ValueError: On a non-positive total or unknown risk level
    """
    total = parse_money(total_amount, "totalAmount")
    if risk_level not in RISK_LEVELS:
        raise ValueError(f"riskLevel must be one of: {', '.join(RISK_LEVELS)}")
    now = now or utcnow()
    stage = stage or 1
    existing_overdue_count = existing_overdue_count or 0
    confidence = _confidence(risk_level, total, existing_overdue_count, stage)

    if total <= FULL_PAYMENT_LIMIT and risk_level == "low":
        return {
            "mode": "full_paid",
            "depositAmount": as_float(total),
            "installmentCount": 1,
            "installments": [],
            "confidence": confidence,
            "reasons": [
                "Total is under 5,000 so full payment is suggested.",
                "Risk level is low so a single collection is appropriate.",
            ],
        }

    installment_count = 3 if total > LARGE_PLAN_THRESHOLD else 2
    base_percent = 40 if total > LARGE_PLAN_THRESHOLD else 50
    min_by_risk = {"high": 50, "medium": 40}.get(risk_level, 0)
    deposit_percent = max(base_percent, min_by_risk)

    deposit = round_money(total * deposit_percent / 100)
    if deposit >= total:
        deposit = round_money(max(total - 1, total / 2))
    remaining = max(ZERO, total - deposit)

    first_due = now + timedelta(days=7)
    installments = [
        {"amount": as_float(amount), "dueDate": first_due + relativedelta(months=index)}
        for index, amount in enumerate(split_amount_evenly(remaining, installment_count))
    ]

    return {
        "mode": "deposit_plan",
        "depositAmount": as_float(deposit),
        "installmentCount": installment_count,
        "installments": installments,
        "confidence": confidence,
        "reasons": [
            (
                "Total is above 15,000 so the balance is split into 3 installments."
                if total > LARGE_PLAN_THRESHOLD
                else "The balance is split into 2 installments for this amount range."
            ),
            f"Risk level is {risk_level} so the deposit floor is {deposit_percent}%.",
            (
                f"Customer has {existing_overdue_count} overdue installment(s), so the deposit was strengthened."
                if existing_overdue_count > 0
                else "No overdue installments on record, standard rule applied."
            ),
        ],
    }
