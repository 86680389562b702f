import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

sys.path.insert(0, str(Path(__file__).parent.parent))

from bizledger.database import Base  # noqa: E402
from bizledger.domain.payments.service import PaymentLedgerService  # noqa: E402
from bizledger.models import AuditLog, Client  # noqa: E402
from bizledger.models_payment import PaymentTransaction  # noqa: E402
from migrations.add_payment_ledger_fields import upgrade  # noqa: E402

LEGACY_SCHEMA = [
    """
    CREATE TABLE clients (
        id VARCHAR(36) PRIMARY KEY,
        full_name VARCHAR(255),
        name VARCHAR(255),
        phone VARCHAR(50),
        process_name VARCHAR(255),
        notes TEXT,
        status VARCHAR(50),
        stage INTEGER NOT NULL DEFAULT 0,
        is_confirmed BOOLEAN NOT NULL DEFAULT 0,
        confirmed_at DATETIME,
        price_agreed NUMERIC(12, 2),
        created_at DATETIME,
        updated_at DATETIME
    )
    """,
    """
    CREATE TABLE payment_schedules (
        id VARCHAR(36) PRIMARY KEY,
        client_id VARCHAR(36) NOT NULL REFERENCES clients (id),
        installment_no INTEGER,
        amount NUMERIC(12, 2),
        is_paid BOOLEAN,
        due_date DATETIME NOT NULL,
        paid_at DATETIME,
        note TEXT,
        created_at DATETIME
    )
    """,
    "INSERT INTO clients (id, full_name) VALUES ('c1', 'Legacy Client')",
    """
    INSERT INTO payment_schedules (id, client_id, installment_no, amount, is_paid, due_date)
    VALUES ('s1', 'c1', 1, 2000, 1, '2025-01-01 00:00:00'),
           ('s2', 'c1', 2, 1500, 0, '2025-02-01 00:00:00')
    """,
]


@pytest.fixture()
def legacy_engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    with engine.begin() as conn:
        for statement in LEGACY_SCHEMA:
            conn.execute(text(statement))
    try:
        yield engine
    finally:
        engine.dispose()


def test_legacy_rows_keep_working_after_upgrade(legacy_engine, days):
    upgrade(legacy_engine)
    upgrade(legacy_engine)
    # Reminders table intentionally left out: older deployments never had one
    Base.metadata.create_all(legacy_engine, tables=[PaymentTransaction.__table__, AuditLog.__table__])

    with Session(bind=legacy_engine) as session:
        service = PaymentLedgerService(session)

        before = service.summarize_client_payments("c1")
        assert (before.total_due, before.total_paid, before.status) == (3500, 2000, "Deposit")

        result = service.collect_payment("c1", 1500)
        assert result.updated_schedule_ids == ["s2"]
        assert result.summary.status == "Paid"

        [created] = service.create_schedules_for_client("c1", [{"amount": 100, "dueDate": days(3)}])
        assert created.installment_no == 3
        assert session.get(Client, "c1").payment_status == "Deposit"


def test_upgrade_without_ledger_tables_is_a_no_op():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)

    upgrade(engine)

    with engine.connect() as conn:
        assert conn.execute(text("SELECT name FROM sqlite_master WHERE type = 'table'")).all() == []
    engine.dispose()
