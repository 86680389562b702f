import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .config import CURRENCY_MINOR_UNITS
from .database import Base


def generate_public_id():
    """Generate an opaque identifier for a record"""
    return str(uuid.uuid4())


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    full_name = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)  # Older records only carry a short name
    phone = Column(String(50), nullable=True)
    process_name = Column(String(255), nullable=True)  # Service the client booked
    notes = Column(Text, nullable=True)

    # Staging: lead -> confirmed customer
    status = Column(String(50), default="new_lead")  # new_lead, contacted, active, completed
    stage = Column(Integer, default=0, nullable=False)
    is_confirmed = Column(Boolean, default=False, nullable=False)
    confirmed_at = Column(DateTime, nullable=True)
    price_agreed = Column(Numeric(12, CURRENCY_MINOR_UNITS), nullable=True)

    # Cached projection of the payment ledger (Paid, Deposit, Unpaid); never edited by hand
    payment_status = Column(String(20), default="Unpaid", nullable=False)
    # Highest installment number ever issued, so numbers survive schedule deletion
    last_installment_no = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    schedules = relationship("PaymentSchedule", back_populates="client")
    transactions = relationship("PaymentTransaction", back_populates="client")


class AuditLog(Base):
    """Append-only trail of ledger operations"""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    table_name = Column(String(100), nullable=False, default="clients")
    record_id = Column(String(36), nullable=False, index=True)
    action = Column(String(100), nullable=False)  # payment_schedule_created, payment_collected, ...
    user_id = Column(String(255), nullable=True)  # Acting principal, if known
    changes = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
