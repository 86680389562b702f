"""
Add payment ledger fields to databases created before partial collections

Migration to add:
- payment_schedules.amount_due / amount_paid / status / source / updated_at
- clients.payment_status / last_installment_no

Legacy rows keep their `amount` and `is_paid` values; amount_due is backfilled
from `amount` and amount_paid stays NULL so the legacy paid flag still resolves.

Run with: python migrations/add_payment_ledger_fields.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import inspect, text  # noqa: E402

from bizledger.config import CURRENCY_MINOR_UNITS  # noqa: E402

SCHEDULE_COLUMNS = {
    "amount_due": f"NUMERIC(12, {CURRENCY_MINOR_UNITS})",
    "amount_paid": f"NUMERIC(12, {CURRENCY_MINOR_UNITS})",
    "status": "VARCHAR(20) DEFAULT 'pending'",
    "source": "VARCHAR(20)",
    "updated_at": "TIMESTAMP",
}

CLIENT_COLUMNS = {
    "payment_status": "VARCHAR(20) DEFAULT 'Unpaid'",
    "last_installment_no": "INTEGER DEFAULT 0",
}


def _add_missing_columns(conn, table: str, columns: dict) -> list:
    existing = {column["name"] for column in inspect(conn).get_columns(table)}
    added = []
    for name, ddl in columns.items():
        if name in existing:
            print(f"ℹ️  {table}.{name} column already exists")
            continue
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}"))
        added.append(name)
        print(f"✅ Added {table}.{name} column")
    return added


def upgrade(bind=None):
    """Add ledger fields and backfill them from legacy columns"""
    if bind is None:
        from bizledger.database import engine as bind

    with bind.connect() as conn:
        tables = set(inspect(conn).get_table_names())
        if "payment_schedules" not in tables or "clients" not in tables:
            print("ℹ️  Ledger tables not found, nothing to migrate (create_all will build them)")
            return

        _add_missing_columns(conn, "payment_schedules", SCHEDULE_COLUMNS)
        _add_missing_columns(conn, "clients", CLIENT_COLUMNS)

        conn.execute(text("UPDATE payment_schedules SET amount_due = amount WHERE amount_due IS NULL"))
        conn.execute(
            text(
                "UPDATE payment_schedules SET status = 'paid' "
                "WHERE is_paid = :paid AND (status IS NULL OR status = 'pending')"
            ),
            {"paid": True},
        )
        conn.execute(
            text(
                """
                UPDATE clients SET last_installment_no = (
                    SELECT COALESCE(MAX(installment_no), 0)
                    FROM payment_schedules
                    WHERE payment_schedules.client_id = clients.id
                )
                WHERE last_installment_no IS NULL OR last_installment_no = 0
                """
            )
        )
        conn.commit()
        print("\n✅ Migration completed successfully!")
        print("ℹ️  Run POST /payments/clients/{id}/sync-status to refresh cached payment statuses")


def downgrade(bind=None):
    """Remove ledger fields"""
    if bind is None:
        from bizledger.database import engine as bind

    with bind.connect() as conn:
        for name in SCHEDULE_COLUMNS:
            conn.execute(text(f"ALTER TABLE payment_schedules DROP COLUMN {name}"))
        for name in CLIENT_COLUMNS:
            conn.execute(text(f"ALTER TABLE clients DROP COLUMN {name}"))
        conn.commit()
        print("✅ Migration rolled back successfully!")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Manage payment ledger fields migration")
    parser.add_argument("--down", action="store_true", help="Rollback the migration")
    args = parser.parse_args()

    if args.down:
        print("Rolling back migration...")
        downgrade()
    else:
        print("Running migration...")
        upgrade()
