"""Ledger-driven collection risk"""

from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from bizledger.domain.payments.risk import (
    LedgerRiskMetrics,
    build_ledger_risk_metrics,
    resolve_risk_level,
    score_collection_risk,
)
from bizledger.domain.payments.service import PaymentLedgerService

NOW = datetime(2026, 3, 15, 12, 0)


def schedule(amount, due_date, paid=0):
    return SimpleNamespace(
        amount=None,
        amount_due=Decimal(str(amount)),
        amount_paid=Decimal(str(paid)),
        is_paid=False,
        due_date=due_date,
        installment_no=1,
    )


def payment(paid_at):
    return SimpleNamespace(paid_at=paid_at)


def metrics(**fields):
    base = {
        "total_due": Decimal("1000"),
        "total_paid": Decimal("0"),
        "remaining": Decimal("1000"),
        "overdue_count": 0,
        "longest_overdue_days": 0,
        "remaining_ratio": 0.0,
        "days_since_last_payment": 0,
        "last_payment_at": None,
    }
    base.update(fields)
    return LedgerRiskMetrics(**base)


class TestMetrics:
    def test_overdue_and_never_paid(self):
        result = build_ledger_risk_metrics(
            [schedule(1000, datetime(2026, 3, 5)), schedule(1000, datetime(2026, 4, 5))],
            now=NOW,
        )

        assert result.overdue_count == 1
        assert result.longest_overdue_days == 10
        assert result.remaining_ratio == 1.0
        assert result.days_since_last_payment == 90
        assert result.last_payment_at is None

    def test_due_today_is_not_overdue(self):
        result = build_ledger_risk_metrics([schedule(100, datetime(2026, 3, 15, 0, 0))], now=NOW)
        assert result.overdue_count == 0

    def test_settled_past_schedule_is_not_overdue(self):
        result = build_ledger_risk_metrics(
            [schedule(500, datetime(2026, 1, 1), paid=500), schedule(500, datetime(2026, 5, 1))],
            [payment(datetime(2026, 3, 1, 9, 30)), payment(datetime(2026, 1, 2))],
            now=NOW,
        )

        assert result.overdue_count == 0
        assert result.remaining_ratio == 0.5
        assert result.last_payment_at == datetime(2026, 3, 1, 9, 30)
        assert result.days_since_last_payment == 13

    def test_no_schedules(self):
        result = build_ledger_risk_metrics([], now=NOW)

        assert result.total_due == 0
        assert result.remaining_ratio == 0.0
        assert result.days_since_last_payment == 0


class TestScore:
    def test_weighted_sum(self):
        # 1/5 * 35 + 10/60 * 25 + 1.0 * 20 + 60/60 * 20 = 51.17
        risk = score_collection_risk(
            metrics(overdue_count=1, longest_overdue_days=10, remaining_ratio=1.0, days_since_last_payment=90)
        )

        assert risk["score"] == 51
        assert risk["level"] == "medium"
        assert [(f["key"], f["impact"]) for f in risk["factors"]] == [
            ("overdue_installment_count", 7.0),
            ("longest_overdue_days", 4.17),
            ("remaining_ratio", 20.0),
            ("days_since_last_payment", 20.0),
        ]
        assert risk["factors"][3]["value"] == "no_payment_history"

    def test_signals_are_capped(self):
        risk = score_collection_risk(
            metrics(overdue_count=9, longest_overdue_days=200, remaining_ratio=1.0, days_since_last_payment=400)
        )
        assert risk["score"] == 100
        assert risk["level"] == "high"

    def test_nothing_owed_scores_zero(self):
        risk = score_collection_risk(metrics(total_due=Decimal("0"), overdue_count=3, remaining_ratio=1.0))

        assert risk["score"] == 0
        assert risk["level"] == "low"
        assert all(f["impact"] == 0 for f in risk["factors"])

    def test_payment_gap_reported_in_days_when_history_exists(self):
        risk = score_collection_risk(metrics(days_since_last_payment=30, last_payment_at=datetime(2026, 2, 13)))
        assert risk["factors"][3]["value"] == 30
        assert risk["score"] == 10

    @pytest.mark.parametrize(
        "fields, expected",
        [
            ({"overdue_count": 5, "remaining_ratio": 1.0, "days_since_last_payment": 45}, (70, "high")),
            ({"remaining_ratio": 1.0, "days_since_last_payment": 45}, (35, "medium")),
            ({"remaining_ratio": 1.0, "days_since_last_payment": 42}, (34, "low")),
        ],
    )
    def test_level_thresholds(self, fields, expected):
        risk = score_collection_risk(metrics(**fields))
        assert (risk["score"], risk["level"]) == expected

    def test_resolve_risk_level_boundaries(self):
        assert [resolve_risk_level(s) for s in (0, 34, 35, 69, 70, 100)] == [
            "low",
            "low",
            "medium",
            "medium",
            "high",
            "high",
        ]


class TestClientPlanSuggestion:
    def test_overdue_history_turns_small_total_into_deposit_plan(self, db, client_id, days, now):
        service = PaymentLedgerService(db)
        service.create_schedules_for_client(
            client_id, [{"amount": 1000, "dueDate": days(-10)}, {"amount": 1000, "dueDate": days(20)}]
        )

        result = service.suggest_client_payment_plan(client_id, 3000, now=now)

        assert result["risk"]["level"] == "medium"
        assert result["metrics"].overdue_count == 1
        suggestion = result["suggestion"]
        assert suggestion["mode"] == "deposit_plan"
        assert suggestion["depositAmount"] == 1500.0
        assert "1 overdue" in suggestion["reasons"][2]

    def test_clean_client_gets_full_payment(self, db, client_id, now):
        result = PaymentLedgerService(db).suggest_client_payment_plan(client_id, 3000, now=now)

        assert result["risk"]["score"] == 0
        assert result["suggestion"]["mode"] == "full_paid"

    def test_stage_comes_from_client_record(self, db, make_client, now):
        client = make_client(stage=3)

        result = PaymentLedgerService(db).suggest_client_payment_plan(client, 3000, now=now)

        # 0.82 + 0.06 small total + 0.03 stage >= 3
        assert result["suggestion"]["confidence"] == 0.91
