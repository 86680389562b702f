"""
Best-effort propagation of ledger state to reminders and the audit log.

Reminders and audit entries are conveniences layered on the ledger. Every
function here goes through `best_effort`, so a missing table or a failed
write is logged and rolled back but never fails the financial operation that
triggered it. Callers commit their ledger writes before calling in here.
"""

import logging
from datetime import datetime
from decimal import Decimal
from functools import wraps
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from ...config import CLIENT_NAME_PLACEHOLDER
from ...models import AuditLog, Client
from ...models_reminder import Reminder
from .ledger import get_schedule_remaining

logger = logging.getLogger(__name__)

REMINDER_SOURCE = "payment_schedule"


def best_effort(operation):
    """Run a side effect; on failure log it, roll back its pending writes and return None"""

    @wraps(operation)
    def wrapper(db: Session, *args, **kwargs):
        try:
            return operation(db, *args, **kwargs)
        except Exception as e:
            logger.warning(f"⚠️ {operation.__name__} skipped: {e}")
            try:
                db.rollback()
            except Exception as rollback_error:
                logger.error(f"❌ Rollback after {operation.__name__} failed: {rollback_error}")
            return None

    return wrapper


def to_json_safe(value: Any) -> Any:
    """Convert Decimals and datetimes inside audit payloads to JSON types"""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(item) for item in value]
    return value


def resolve_client_name(client: Optional[Client]) -> str:
    if client is None:
        return CLIENT_NAME_PLACEHOLDER
    return client.full_name or client.name or CLIENT_NAME_PLACEHOLDER


def build_reminder_title(client_name: str) -> str:
    return f"Payment follow-up: {client_name}"


def build_reminder_description(schedule: Any) -> Optional[str]:
    parts = []
    if isinstance(schedule.installment_no, int):
        parts.append(f"Installment #{schedule.installment_no}")
    if schedule.note:
        parts.append(schedule.note)
    return " - ".join(parts) or None


@best_effort
def sync_reminders_for_schedules(db: Session, client_id: str, schedules: Iterable[Any]) -> int:
    """
    Upsert one reminder per schedule, keyed by schedule id.

    `is_completed` mirrors whether the schedule's balance is settled. Re-running
    with unchanged schedules writes nothing.

    Returns:
        Number of reminders inserted or changed
    """
    schedules = list(schedules)
    if not schedules:
        return 0

    client = db.query(Client).filter(Client.id == client_id).first()
    title = build_reminder_title(resolve_client_name(client))

    existing = {
        reminder.schedule_id: reminder
        for reminder in db.query(Reminder)
        .filter(Reminder.schedule_id.in_([schedule.id for schedule in schedules]))
        .all()
    }

    changed = 0
    for schedule in schedules:
        values = {
            "client_id": client_id,
            "title": title,
            "description": build_reminder_description(schedule),
            "reminder_date": schedule.due_date,
            "is_completed": get_schedule_remaining(schedule) <= 0,
            "source": REMINDER_SOURCE,
        }
        reminder = existing.get(schedule.id)
        if reminder is None:
            db.add(Reminder(schedule_id=schedule.id, **values))
            changed += 1
            continue

        dirty = False
        for key, value in values.items():
            if getattr(reminder, key) != value:
                setattr(reminder, key, value)
                dirty = True
        if dirty:
            changed += 1

    if changed:
        db.commit()
        logger.info(f"🔔 Synced {changed} payment reminder(s) for client {client_id}")
    return changed


@best_effort
def remove_reminder_for_schedule(db: Session, schedule_id: str) -> int:
    removed = (
        db.query(Reminder)
        .filter(Reminder.schedule_id == schedule_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return removed


@best_effort
def safe_insert_audit_log(
    db: Session,
    record_id: str,
    action: str,
    changes: Optional[dict] = None,
    user_id: Optional[str] = None,
    table_name: str = "clients",
) -> int:
    """Append an audit entry and return its id"""
    entry = AuditLog(
        table_name=table_name,
        record_id=record_id,
        action=action,
        user_id=user_id or None,
        changes=to_json_safe(changes) if changes is not None else None,
    )
    db.add(entry)
    db.commit()
    return entry.id
