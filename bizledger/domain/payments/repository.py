"""Payment repository - Database operations for schedules and transactions"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Client
from ...models_payment import PaymentSchedule, PaymentTransaction


@dataclass(frozen=True)
class ScheduleState:
    """
    Point-in-time copy of a schedule row.

    Collections are computed from, and conditioned on, this copy so that a
    concurrent writer is detected instead of silently read through.
    """

    id: str
    client_id: str
    installment_no: Optional[int]
    amount: Any
    amount_due: Any
    amount_paid: Any
    is_paid: Optional[bool]
    due_date: Optional[datetime]
    note: Optional[str]

    @classmethod
    def from_row(cls, row: PaymentSchedule) -> "ScheduleState":
        return cls(
            id=row.id,
            client_id=row.client_id,
            installment_no=row.installment_no,
            amount=row.amount,
            amount_due=row.amount_due,
            amount_paid=row.amount_paid,
            is_paid=row.is_paid,
            due_date=row.due_date,
            note=row.note,
        )


class PaymentRepository:
    """Repository for payment ledger database operations"""

    @staticmethod
    def get_client(db: Session, client_id: str) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def get_client_schedules(db: Session, client_id: str) -> list[PaymentSchedule]:
        """All schedules for a client, earliest due first"""
        return (
            db.query(PaymentSchedule)
            .filter(PaymentSchedule.client_id == client_id)
            .order_by(PaymentSchedule.due_date.asc(), PaymentSchedule.installment_no.asc())
            .all()
        )

    @staticmethod
    def get_schedules_by_ids(db: Session, schedule_ids: list[str]) -> list[PaymentSchedule]:
        if not schedule_ids:
            return []
        return (
            db.query(PaymentSchedule)
            .filter(PaymentSchedule.id.in_(schedule_ids))
            .order_by(PaymentSchedule.due_date.asc())
            .all()
        )

    @staticmethod
    def get_max_installment_no(db: Session, client_id: str) -> int:
        value = (
            db.query(func.max(PaymentSchedule.installment_no))
            .filter(PaymentSchedule.client_id == client_id)
            .scalar()
        )
        return int(value or 0)

    @staticmethod
    def insert_schedules(db: Session, rows: list[dict]) -> list[PaymentSchedule]:
        """Stage a batch of schedules; the caller commits"""
        schedules = [PaymentSchedule(**row) for row in rows]
        db.add_all(schedules)
        db.flush()
        return schedules

    @staticmethod
    def apply_collection(
        db: Session,
        state: ScheduleState,
        amount_due: Decimal,
        amount_paid: Decimal,
        status: str,
        paid_at: Optional[datetime],
    ) -> int:
        """
        Conditionally write a new paid amount.

        The update only matches while `amount_paid` and `is_paid` still hold the
        values in `state`. Returns the number of rows updated (0 means another
        request changed the balance first).
        """
        query = db.query(PaymentSchedule).filter(
            PaymentSchedule.id == state.id,
            PaymentSchedule.client_id == state.client_id,
        )
        if state.amount_paid is None:
            query = query.filter(PaymentSchedule.amount_paid.is_(None))
        else:
            query = query.filter(PaymentSchedule.amount_paid == state.amount_paid)
        if state.is_paid is None:
            query = query.filter(PaymentSchedule.is_paid.is_(None))
        else:
            query = query.filter(PaymentSchedule.is_paid == state.is_paid)

        is_paid = status == "paid"
        return query.update(
            {
                PaymentSchedule.amount_due: amount_due,
                PaymentSchedule.amount_paid: amount_paid,
                PaymentSchedule.status: status,
                PaymentSchedule.is_paid: is_paid,
                PaymentSchedule.paid_at: paid_at if is_paid else None,
                PaymentSchedule.updated_at: func.now(),
            },
            synchronize_session=False,
        )

    @staticmethod
    def insert_transaction(db: Session, **fields) -> PaymentTransaction:
        """Stage a transaction; the caller commits"""
        transaction = PaymentTransaction(**fields)
        db.add(transaction)
        db.flush()
        return transaction

    @staticmethod
    def count_schedule_transactions(db: Session, schedule_id: str) -> int:
        return (
            db.query(func.count(PaymentTransaction.id))
            .filter(PaymentTransaction.schedule_id == schedule_id)
            .scalar()
        )

    @staticmethod
    def delete_schedule(db: Session, schedule: PaymentSchedule) -> None:
        """Stage a schedule delete; the caller commits"""
        db.delete(schedule)
        db.flush()

    @staticmethod
    def get_client_transactions(db: Session, client_id: str) -> list[PaymentTransaction]:
        return (
            db.query(PaymentTransaction)
            .filter(PaymentTransaction.client_id == client_id)
            .order_by(PaymentTransaction.paid_at.desc(), PaymentTransaction.created_at.desc())
            .all()
        )

    @staticmethod
    def get_schedules_with_clients(db: Session) -> list[tuple[PaymentSchedule, Optional[Client]]]:
        """Every schedule with its client (if the client row still exists), earliest due first"""
        return (
            db.query(PaymentSchedule, Client)
            .outerjoin(Client, PaymentSchedule.client_id == Client.id)
            .order_by(PaymentSchedule.due_date.asc())
            .all()
        )

    @staticmethod
    def update_client_payment_status(db: Session, client_id: str, status: str) -> int:
        """Write the cached payment status; the caller commits"""
        return (
            db.query(Client)
            .filter(Client.id == client_id)
            .update({Client.payment_status: status}, synchronize_session=False)
        )
