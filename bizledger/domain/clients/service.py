"""Client service - Business logic for client staging and confirmation"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import DEFAULT_INSTALLMENT_DAYS
from ...models import Client
from ...shared.money import ZERO, parse_money, round_money, to_decimal
from ...shared.validators import normalize_timestamp, utcnow
from ...utils.sanitization import sanitize_string
from ..payments.errors import LedgerStoreError
from ..payments.ledger import PaymentSummary
from ..payments.service import PaymentLedgerService
from .repository import ClientRepository
from .schemas import ClientCreate, ConfirmWithPaymentRequest

logger = logging.getLogger(__name__)

# Installment sums may differ from the expected total by at most this much
PLAN_SUM_TOLERANCE = Decimal("0.01")


def due_date_or_default(value, now: datetime) -> datetime:
    """Parse a due date, falling back to DEFAULT_INSTALLMENT_DAYS from now"""
    if value:
        try:
            return normalize_timestamp(value)
        except ValueError:
            logger.warning(f"⚠️ Ignoring unparseable due date {value!r}, using default")
    return now + timedelta(days=DEFAULT_INSTALLMENT_DAYS)


class ClientService:
    """Service layer for client business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ClientRepository()
        self.ledger = PaymentLedgerService(db)

    def get_client(self, client_id: str) -> Client:
        """Get a specific client"""
        client = self.repo.get_client_by_id(self.db, client_id)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        return client

    def create_client(self, data: ClientCreate) -> Client:
        """Create a new lead"""
        client = self.repo.create_client(
            self.db,
            full_name=sanitize_string(data.fullName),
            phone=data.phone,
            process_name=sanitize_string(data.processName),
            notes=sanitize_string(data.notes),
            status="new_lead",
        )
        logger.info(f"📥 Created client {client.id}")
        return client

    def _installments(self, data: ConfirmWithPaymentRequest, expected: Decimal, default_note: str, now: datetime):
        """Requested installments (or a single default one) checked against the expected total"""
        if data.installments:
            installments = [
                {
                    "amount": item.amount,
                    "dueDate": due_date_or_default(item.dueDate, now),
                    "note": item.note,
                }
                for item in data.installments
            ]
        else:
            installments = [
                {
                    "amount": expected,
                    "dueDate": due_date_or_default(data.firstDueDate, now),
                    "note": default_note,
                }
            ]

        installment_sum = round_money(sum((to_decimal(item["amount"]) for item in installments), ZERO))
        if abs(installment_sum - expected) > PLAN_SUM_TOLERANCE:
            raise HTTPException(
                status_code=400,
                detail=f"Installment sum ({installment_sum}) must equal the amount to schedule ({expected})",
            )
        return installments

    def confirm_with_payment(
        self,
        client_id: str,
        data: ConfirmWithPaymentRequest,
        actor: Optional[str] = None,
    ) -> PaymentSummary:
        """
        Confirm a lead as a customer and set up how they pay.

        full_paid: one schedule for the total, collected immediately.
        deposit_plan: a deposit schedule collected immediately plus installments for the rest.
        pay_later: installments for the total, nothing collected.
        """
        try:
            total = parse_money(data.totalAmount, "totalAmount")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from None

        client = self.get_client(client_id)
        now = utcnow()
        note = data.note or None

        logger.info(f"🤝 Confirming client {client_id} with payment mode {data.paymentMode} ({total})")

        if data.paymentMode == "full_paid":
            created = self.ledger.create_schedules_for_client(
                client_id,
                [{"amount": total, "dueDate": now, "note": note or "Paid in full at confirmation"}],
                source="web",
                actor=actor,
            )
            self.ledger.collect_payment(
                client_id,
                total,
                schedule_id=created[0].id,
                method="cash",
                note="Collected at confirmation",
                actor=actor,
            )

        elif data.paymentMode == "deposit_plan":
            try:
                deposit = parse_money(data.depositAmount, "depositAmount")
            except ValueError:
                deposit = None
            if deposit is None or deposit >= total:
                raise HTTPException(
                    status_code=400,
                    detail="depositAmount must be positive and less than totalAmount",
                )

            installments = self._installments(data, total - deposit, "Remaining balance", now)
            created = self.ledger.create_schedules_for_client(
                client_id,
                [{"amount": deposit, "dueDate": now, "note": "Deposit"}] + installments,
                source="web",
                actor=actor,
            )
            self.ledger.collect_payment(
                client_id,
                deposit,
                schedule_id=created[0].id,
                method="cash",
                note="Deposit collected",
                actor=actor,
            )

        else:
            installments = self._installments(data, total, "Pay later", now)
            self.ledger.create_schedules_for_client(client_id, installments, source="web", actor=actor)

        try:
            self.repo.mark_confirmed(self.db, client, price_agreed=total, confirmed_at=now)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to mark client {client_id} confirmed: {e}")
            self.db.rollback()
            raise LedgerStoreError("Failed to confirm client") from e

        return self.ledger.sync_client_payment_status(client_id)
