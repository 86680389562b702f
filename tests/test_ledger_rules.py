"""Pure ledger rules: amount resolution, status derivation, aggregation, ordering"""

from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import Numeric

from bizledger.config import CURRENCY_MINOR_UNITS
from bizledger.database import Base
from bizledger.domain.payments.ledger import (
    CLIENT_DEPOSIT,
    CLIENT_PAID,
    CLIENT_UNPAID,
    derive_schedule_status,
    get_schedule_amount_due,
    get_schedule_amount_paid,
    get_schedule_remaining,
    normalize_method,
    payable_schedules,
    summarize_schedules,
)
from bizledger.shared.money import exceeds, parse_money, split_amount_evenly


def row(**fields):
    base = {
        "id": "s",
        "amount": None,
        "amount_due": None,
        "amount_paid": None,
        "is_paid": None,
        "due_date": datetime(2026, 1, 1),
        "installment_no": 1,
    }
    base.update(fields)
    return SimpleNamespace(**base)


class TestAmountResolution:
    def test_amount_due_falls_back_to_legacy_amount(self):
        assert get_schedule_amount_due(row(amount=Decimal("750"))) == Decimal("750")
        assert get_schedule_amount_due(row(amount_due=Decimal("900"), amount=Decimal("750"))) == Decimal("900")

    def test_legacy_paid_flag_without_paid_amount(self):
        legacy = row(amount_due=Decimal("2000"), is_paid=True)

        assert get_schedule_amount_paid(legacy) == Decimal("2000")
        assert get_schedule_remaining(legacy) == Decimal("0")
        assert derive_schedule_status(legacy) == "paid"

    def test_explicit_paid_amount_wins_over_legacy_flag(self):
        schedule = row(amount_due=Decimal("2000"), amount_paid=Decimal("500"), is_paid=True)
        assert get_schedule_amount_paid(schedule) == Decimal("500")

    def test_missing_values_resolve_to_zero(self):
        schedule = row(amount_due="not a number", amount_paid=None)
        assert get_schedule_amount_due(schedule) == Decimal("0")
        assert get_schedule_amount_paid(schedule) == Decimal("0")


class TestScheduleStatus:
    @pytest.mark.parametrize(
        "paid, expected",
        [
            ("0", "pending"),
            ("0.01", "partially_paid"),
            ("999.99", "partially_paid"),
            ("1000", "paid"),
        ],
    )
    def test_status_follows_remaining_balance(self, paid, expected):
        schedule = row(amount_due=Decimal("1000"), amount_paid=Decimal(paid))
        assert derive_schedule_status(schedule) == expected


class TestSummary:
    def test_no_schedules_is_unpaid(self):
        summary = summarize_schedules([])
        assert summary.total_due == 0
        assert summary.status == CLIENT_UNPAID

    def test_deposit_paid(self):
        summary = summarize_schedules(
            [
                row(amount_due=Decimal("4000"), amount_paid=Decimal("4000")),
                row(amount_due=Decimal("6000"), amount_paid=Decimal("0")),
            ]
        )
        assert summary.status == CLIENT_DEPOSIT
        assert summary.remaining == Decimal("6000")
        assert summary.to_dict() == {
            "totalDue": 10000.0,
            "totalPaid": 4000.0,
            "remaining": 6000.0,
            "status": "Deposit",
        }

    def test_fully_paid(self):
        summary = summarize_schedules([row(amount_due=Decimal("300"), is_paid=True)])
        assert summary.status == CLIENT_PAID
        assert summary.remaining == 0

    def test_nothing_collected(self):
        summary = summarize_schedules([row(amount_due=Decimal("300"), amount_paid=Decimal("0"))])
        assert summary.status == CLIENT_UNPAID


def test_payable_schedules_are_ordered_earliest_due_first():
    later = row(id="later", amount_due=Decimal("100"), due_date=datetime(2026, 3, 1), installment_no=1)
    settled = row(id="settled", amount_due=Decimal("100"), amount_paid=Decimal("100"), due_date=datetime(2025, 1, 1))
    earlier = row(id="earlier", amount_due=Decimal("100"), due_date=datetime(2026, 2, 1), installment_no=2)

    assert [s.id for s in payable_schedules([later, settled, earlier])] == ["earlier", "later"]


def test_normalize_method():
    assert normalize_method(None) == "cash"
    assert normalize_method("transfer") == "transfer"
    with pytest.raises(ValueError):
        normalize_method("crypto")


class TestMoney:
    def test_parse_money_rounds_to_minor_unit(self):
        assert parse_money(500.005) == Decimal("500.01")
        assert parse_money("12.3") == Decimal("12.30")

    @pytest.mark.parametrize("value", [0, -5, "abc", float("nan"), float("inf"), None, True, 0.004])
    def test_parse_money_rejects(self, value):
        with pytest.raises(ValueError):
            parse_money(value)

    def test_exceeds_uses_half_minor_unit_tolerance(self):
        assert not exceeds(Decimal("500.00"), Decimal("500"))
        assert exceeds(Decimal("500.01"), Decimal("500"))

    def test_split_amount_evenly_keeps_every_cent(self):
        parts = split_amount_evenly(Decimal("100"), 3)
        assert parts == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
        assert sum(parts) == Decimal("100")


def test_money_columns_store_the_ledger_minor_unit():
    money_columns = [
        column
        for table in Base.metadata.tables.values()
        for column in table.columns
        if isinstance(column.type, Numeric)
    ]

    assert money_columns
    assert {column.type.scale for column in money_columns} == {CURRENCY_MINOR_UNITS}
