"""Payment ledger service - schedule creation, collection and status derivation"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import CLIENT_NAME_PLACEHOLDER
from ...models import Client
from ...models_payment import PaymentSchedule, PaymentTransaction
from ...shared.money import ZERO, as_float, exceeds, parse_money, round_money
from ...shared.validators import normalize_timestamp, utcnow
from ...utils.sanitization import sanitize_note
from .errors import (
    ConcurrentUpdateError,
    LedgerError,
    LedgerNotFoundError,
    LedgerStateConflictError,
    LedgerStoreError,
    LedgerValidationError,
)
from .ledger import (
    SCHEDULE_PENDING,
    PaymentSummary,
    derive_schedule_status,
    derive_status,
    get_schedule_amount_due,
    get_schedule_amount_paid,
    get_schedule_remaining,
    normalize_method,
    normalize_source,
    payable_schedules,
    summarize_schedules,
)
from .planner import suggest_payment_plan
from .repository import PaymentRepository, ScheduleState
from .risk import LedgerRiskMetrics, build_ledger_risk_metrics, score_collection_risk
from .side_effects import (
    remove_reminder_for_schedule,
    safe_insert_audit_log,
    sync_reminders_for_schedules,
)

logger = logging.getLogger(__name__)


@dataclass
class CollectionResult:
    updated_schedule_ids: list[str]
    summary: PaymentSummary


def _item_value(item: Any, *keys: str) -> Any:
    for key in keys:
        if isinstance(item, Mapping):
            if key in item:
                return item[key]
        elif hasattr(item, key):
            return getattr(item, key)
    return None


class PaymentLedgerService:
    """
    Service layer for the payment ledger.

    This is the only place that writes amount_paid, status or the client's
    cached payment status. Each call is stateless; all state lives in the store.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentRepository()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _read(self, operation, *args):
        try:
            return operation(self.db, *args)
        except SQLAlchemyError as e:
            logger.error(f"❌ Ledger read failed in {operation.__name__}: {e}")
            self.db.rollback()
            raise LedgerStoreError("Failed to read payment data") from e

    def require_client(self, client_id: str) -> Client:
        if not client_id:
            raise LedgerValidationError("clientId is required")
        client = self._read(self.repo.get_client, client_id)
        if not client:
            raise LedgerNotFoundError("Client not found")
        return client

    def list_client_schedules(self, client_id: str) -> list[PaymentSchedule]:
        self.require_client(client_id)
        return self._read(self.repo.get_client_schedules, client_id)

    def list_client_transactions(self, client_id: str) -> list[PaymentTransaction]:
        self.require_client(client_id)
        return self._read(self.repo.get_client_transactions, client_id)

    def summarize_client_payments(self, client_id: str) -> PaymentSummary:
        return summarize_schedules(self._read(self.repo.get_client_schedules, client_id))

    def sync_client_payment_status(self, client_id: str) -> PaymentSummary:
        """Recompute the client's summary and write its status onto the client record"""
        summary = self.summarize_client_payments(client_id)
        try:
            self.repo.update_client_payment_status(self.db, client_id, summary.status)
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to project payment status for client {client_id}: {e}")
            self.db.rollback()
            raise LedgerStoreError("Failed to update client payment status") from e
        return summary

    def _refresh_status_after_commit(self, client_id: str) -> Optional[PaymentSummary]:
        """
        Re-project the client status once a ledger write is committed.

        The committed write stands either way; a failed projection leaves the
        cached status stale until the next sync and returns None.
        """
        try:
            return self.sync_client_payment_status(client_id)
        except LedgerStoreError as e:
            logger.warning(
                f"⚠️ Payment status for client {client_id} is stale ({e.message}); "
                f"POST /payments/clients/{client_id}/sync-status refreshes it"
            )
            return None

    # ------------------------------------------------------------------
    # Schedule creation
    # ------------------------------------------------------------------

    def _validate_items(self, items: Iterable[Any]) -> list[dict]:
        items = list(items or [])
        if not items:
            raise LedgerValidationError("items is required")

        validated = []
        for index, item in enumerate(items):
            try:
                amount = parse_money(_item_value(item, "amount"), f"items[{index}].amount")
                due_date = normalize_timestamp(
                    _item_value(item, "dueDate", "due_date"), f"items[{index}].dueDate"
                )
            except ValueError as e:
                raise LedgerValidationError(str(e)) from None
            note = sanitize_note(_item_value(item, "note"))
            validated.append({"amount": amount, "due_date": due_date, "note": note})
        return validated

    def create_schedules_for_client(
        self,
        client_id: str,
        items: Iterable[Any],
        source: str = "web",
        actor: Optional[str] = None,
    ) -> list[PaymentSchedule]:
        """
        Create installments for a client in list order.

        Installment numbers continue from the client's highest number ever
        issued. The batch is written in one commit: either every item is
        created or none is.
        """
        validated = self._validate_items(items)
        try:
            source = normalize_source(source)
        except ValueError as e:
            raise LedgerValidationError(str(e)) from None
        client = self.require_client(client_id)

        try:
            start_no = max(
                self.repo.get_max_installment_no(self.db, client_id),
                client.last_installment_no or 0,
            )
            now = utcnow()
            rows = [
                {
                    "client_id": client_id,
                    "amount": item["amount"],
                    "amount_due": item["amount"],
                    "amount_paid": ZERO,
                    "is_paid": False,
                    "status": SCHEDULE_PENDING,
                    "due_date": item["due_date"],
                    "note": item["note"],
                    "installment_no": start_no + index + 1,
                    "source": source,
                    "updated_at": now,
                }
                for index, item in enumerate(validated)
            ]
            created = self.repo.insert_schedules(self.db, rows)
            client.last_installment_no = start_no + len(rows)
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to create payment schedules for client {client_id}: {e}")
            self.db.rollback()
            raise LedgerStoreError("Failed to create payment schedules") from e

        logger.info(
            f"📅 Created {len(created)} payment schedule(s) for client {client_id} "
            f"(installments {start_no + 1}-{start_no + len(created)}, source={source})"
        )

        sync_reminders_for_schedules(self.db, client_id, created)
        safe_insert_audit_log(
            self.db,
            record_id=client_id,
            action="payment_schedule_created",
            changes={
                "source": source,
                "scheduleCount": len(created),
                "scheduleIds": [row.id for row in created],
                "installmentNos": [row.installment_no for row in created],
            },
            user_id=actor,
        )
        self._refresh_status_after_commit(client_id)
        return created

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def _collect_into(
        self,
        state: ScheduleState,
        amount: Decimal,
        method: str,
        source: str,
        paid_at: datetime,
        note: Optional[str],
        actor: Optional[str],
    ) -> None:
        """
        Apply one allocation step: conditional schedule update plus its
        transaction, committed together.
        """
        due = get_schedule_amount_due(state)
        paid = get_schedule_amount_paid(state)
        remaining = get_schedule_remaining(state)

        if remaining <= ZERO:
            raise LedgerStateConflictError("Selected schedule is already fully paid")
        if exceeds(amount, remaining):
            raise LedgerStateConflictError(
                f"Collection amount {amount} exceeds remaining schedule amount {remaining}"
            )

        next_paid = min(due, round_money(paid + amount))
        next_status = derive_status(due, next_paid)

        try:
            updated = self.repo.apply_collection(
                self.db, state, amount_due=due, amount_paid=next_paid, status=next_status, paid_at=paid_at
            )
            if not updated:
                self.db.rollback()
                logger.warning(f"⚠️ Schedule {state.id} changed during collection, rejecting")
                raise ConcurrentUpdateError(
                    "Remaining balance changed while collecting; reload and retry"
                )
            self.repo.insert_transaction(
                self.db,
                client_id=state.client_id,
                schedule_id=state.id,
                amount=amount,
                method=method,
                source=source,
                paid_at=paid_at,
                note=note or None,
                created_by=actor or None,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to record collection on schedule {state.id}: {e}")
            self.db.rollback()
            raise LedgerStoreError("Failed to record payment collection") from e

        logger.info(
            f"💰 Collected {amount} on schedule {state.id} "
            f"(installment #{state.installment_no}, now {next_status})"
        )

    def collect_payment(
        self,
        client_id: str,
        amount: Any,
        schedule_id: Optional[str] = None,
        method: Optional[str] = None,
        note: Optional[str] = None,
        source: str = "web",
        paid_at: Any = None,
        actor: Optional[str] = None,
    ) -> CollectionResult:
        """
        Record money received from a client.

        With `schedule_id` the whole amount goes to that schedule. Without it the
        amount is allocated earliest-due-first across outstanding schedules.
        Each schedule step commits on its own; if a later step fails, the raised
        error lists the schedules already updated.
        """
        try:
            amount = parse_money(amount, "amount")
            method = normalize_method(method)
            source = normalize_source(source)
            occurred_at = normalize_timestamp(paid_at, "paidAt") if paid_at else utcnow()
            note = sanitize_note(note)
        except ValueError as e:
            raise LedgerValidationError(str(e)) from None

        self.require_client(client_id)
        states = [
            ScheduleState.from_row(row)
            for row in self._read(self.repo.get_client_schedules, client_id)
        ]
        before = summarize_schedules(states)
        updated_ids: list[str] = []

        try:
            if schedule_id:
                target = next((state for state in states if state.id == schedule_id), None)
                if target is None:
                    raise LedgerNotFoundError("Schedule not found")
                self._collect_into(target, amount, method, source, occurred_at, note, actor)
                updated_ids.append(target.id)
            else:
                payable = payable_schedules(states)
                if not payable:
                    raise LedgerStateConflictError("No payable schedules found")

                total_remaining = sum((get_schedule_remaining(state) for state in payable), ZERO)
                if exceeds(amount, total_remaining):
                    raise LedgerStateConflictError(
                        f"Collection amount {amount} exceeds total remaining balance {total_remaining}"
                    )

                left = amount
                for state in payable:
                    if left <= ZERO:
                        break
                    portion = min(left, get_schedule_remaining(state))
                    self._collect_into(state, portion, method, source, occurred_at, note, actor)
                    updated_ids.append(state.id)
                    left -= portion
        except LedgerError as e:
            if updated_ids:
                # Earlier steps are committed; keep projections in line with them
                e.updated_schedule_ids = list(updated_ids)
                try:
                    self._refresh_after_collection(client_id, updated_ids)
                except LedgerStoreError as refresh_error:
                    logger.warning(
                        f"⚠️ Could not refresh client {client_id} after partial collection: {refresh_error}"
                    )
            raise

        summary = self._refresh_after_collection(client_id, updated_ids)
        safe_insert_audit_log(
            self.db,
            record_id=client_id,
            action="payment_collected",
            changes={
                "amount": amount,
                "method": method,
                "scheduleId": schedule_id or None,
                "updatedSchedules": updated_ids,
                "source": source,
                "paidAt": occurred_at,
                "note": note or None,
                "before": before.to_dict(),
                "after": summary.to_dict(),
            },
            user_id=actor,
        )
        return CollectionResult(updated_schedule_ids=updated_ids, summary=summary)

    def _refresh_after_collection(self, client_id: str, updated_ids: list[str]) -> PaymentSummary:
        try:
            touched = self.repo.get_schedules_by_ids(self.db, updated_ids)
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Could not reload collected schedules for reminders: {e}")
            self.db.rollback()
            touched = []
        sync_reminders_for_schedules(self.db, client_id, touched)

        try:
            return self.sync_client_payment_status(client_id)
        except LedgerStoreError as e:
            e.updated_schedule_ids = list(updated_ids)
            raise

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_schedule(self, client_id: str, schedule_id: str, actor: Optional[str] = None) -> PaymentSummary:
        """
        Remove an uncollected schedule for good.

        Schedules with recorded collections stay: their transactions reference them.
        """
        self.require_client(client_id)
        schedule = next(
            (row for row in self._read(self.repo.get_client_schedules, client_id) if row.id == schedule_id),
            None,
        )
        if schedule is None:
            raise LedgerNotFoundError("Schedule not found")

        if get_schedule_amount_paid(schedule) > ZERO or self._read(
            self.repo.count_schedule_transactions, schedule_id
        ):
            raise LedgerStateConflictError("Schedules with recorded payments cannot be deleted")

        snapshot = {
            "scheduleId": schedule.id,
            "installmentNo": schedule.installment_no,
            "amountDue": get_schedule_amount_due(schedule),
            "dueDate": schedule.due_date,
            "status": derive_schedule_status(schedule),
        }
        try:
            self.repo.delete_schedule(self.db, schedule)
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to delete schedule {schedule_id}: {e}")
            self.db.rollback()
            raise LedgerStoreError("Failed to delete payment schedule") from e

        logger.info(f"🗑️ Deleted schedule {schedule_id} for client {client_id}")
        remove_reminder_for_schedule(self.db, schedule_id)
        safe_insert_audit_log(
            self.db,
            record_id=client_id,
            action="payment_schedule_deleted",
            changes=snapshot,
            user_id=actor,
        )
        summary = self._refresh_status_after_commit(client_id)
        if summary is None:
            summary = self.summarize_client_payments(client_id)
        return summary

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def list_outstanding_client_payments(self, now: Optional[datetime] = None) -> list[dict]:
        """
        Clients with an open balance, largest remaining balance first.

        Only schedules with a balance left are counted, so totals describe the
        open obligations rather than the client's full history.
        """
        now = now or utcnow()
        rows = self._read(self.repo.get_schedules_with_clients)

        by_client: dict[str, dict] = {}
        for schedule, client in rows:
            remaining = get_schedule_remaining(schedule)
            if remaining <= ZERO:
                continue

            overdue = 1 if schedule.due_date and schedule.due_date < now else 0
            entry = by_client.get(schedule.client_id)
            if entry is None:
                by_client[schedule.client_id] = {
                    "clientId": schedule.client_id,
                    "clientName": (client.full_name or client.name) if client else None,
                    "phone": client.phone if client else None,
                    "processName": client.process_name if client else None,
                    "totalDue": get_schedule_amount_due(schedule),
                    "totalPaid": get_schedule_amount_paid(schedule),
                    "remaining": remaining,
                    "nextDueDate": schedule.due_date,
                    "overdueCount": overdue,
                }
                continue

            entry["totalDue"] += get_schedule_amount_due(schedule)
            entry["totalPaid"] += get_schedule_amount_paid(schedule)
            entry["remaining"] += remaining
            if schedule.due_date and (entry["nextDueDate"] is None or schedule.due_date < entry["nextDueDate"]):
                entry["nextDueDate"] = schedule.due_date
            entry["overdueCount"] += overdue

        results = sorted(by_client.values(), key=lambda entry: entry["remaining"], reverse=True)
        for entry in results:
            entry["clientName"] = entry["clientName"] or CLIENT_NAME_PLACEHOLDER
            for key in ("totalDue", "totalPaid", "remaining"):
                entry[key] = as_float(entry[key])
        return results

    # ------------------------------------------------------------------
    # Risk and plan suggestion
    # ------------------------------------------------------------------

    def assess_client_risk(self, client_id: str, now: Optional[datetime] = None) -> tuple[LedgerRiskMetrics, dict]:
        """Build the client's ledger risk metrics and score them"""
        self.require_client(client_id)
        metrics = build_ledger_risk_metrics(
            self._read(self.repo.get_client_schedules, client_id),
            self._read(self.repo.get_client_transactions, client_id),
            now=now,
        )
        return metrics, score_collection_risk(metrics)

    def suggest_client_payment_plan(self, client_id: str, total_amount: Any, now: Optional[datetime] = None) -> dict:
        """
        Suggest a payment plan for an existing client.

        Risk level and overdue count come from the client's own ledger, the
        stage from the client record.
        """
        client = self.require_client(client_id)
        metrics, risk = self.assess_client_risk(client_id, now=now)
        try:
            suggestion = suggest_payment_plan(
                total_amount,
                risk["level"],
                stage=client.stage if isinstance(client.stage, int) else 1,
                existing_overdue_count=metrics.overdue_count,
                now=now,
            )
        except ValueError as e:
            raise LedgerValidationError(str(e)) from None

        logger.info(
            f"🧮 Plan suggestion for client {client_id}: {suggestion['mode']} "
            f"(risk {risk['level']} / {risk['score']})"
        )
        return {"risk": risk, "metrics": metrics, "suggestion": suggestion}
