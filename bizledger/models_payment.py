"""
Payment ledger models: installment schedules and collection transactions
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .config import CURRENCY_MINOR_UNITS
from .database import Base
from .models import generate_public_id


class PaymentSchedule(Base):
    """A single promised payment (installment) for a client"""

    __tablename__ = "payment_schedules"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)

    installment_no = Column(Integer, nullable=True)  # Sequential per client, never reused
    # Money columns store CURRENCY_MINOR_UNITS decimal places, the same unit round_money uses
    # Legacy rows only carry `amount`; new rows write the same value to both columns
    amount = Column(Numeric(12, CURRENCY_MINOR_UNITS), nullable=True)
    amount_due = Column(Numeric(12, CURRENCY_MINOR_UNITS), nullable=True)
    # NULL on rows created before partial collections were tracked
    amount_paid = Column(Numeric(12, CURRENCY_MINOR_UNITS), nullable=True)
    # Legacy paid flag, kept in sync with status == "paid"
    is_paid = Column(Boolean, default=False, nullable=True)
    # Cached result of derive_schedule_status(): pending, partially_paid, paid
    status = Column(String(20), default="pending", nullable=True)

    due_date = Column(DateTime, nullable=False, index=True)
    paid_at = Column(DateTime, nullable=True)
    note = Column(Text, nullable=True)
    source = Column(String(20), nullable=True)  # web, telegram, migration

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="schedules")
    transactions = relationship("PaymentTransaction", back_populates="schedule")


class PaymentTransaction(Base):
    """Append-only record of money collected against one schedule"""

    __tablename__ = "payment_transactions"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    schedule_id = Column(String(36), ForeignKey("payment_schedules.id"), nullable=True, index=True)

    amount = Column(Numeric(12, CURRENCY_MINOR_UNITS), nullable=False)
    method = Column(String(20), nullable=False, default="cash")  # cash, card, transfer, other
    source = Column(String(20), nullable=True)
    paid_at = Column(DateTime, nullable=False)
    note = Column(Text, nullable=True)
    created_by = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    client = relationship("Client", back_populates="transactions")
    schedule = relationship("PaymentSchedule", back_populates="transactions")
