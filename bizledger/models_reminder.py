"""
Follow-up reminders mirrored from payment schedules
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from .database import Base


class Reminder(Base):
    """Reminder shown on the dashboard; at most one per payment schedule"""

    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(String(36), nullable=False, index=True)
    # No FK: reminders are a convenience projection and may outlive their schedule row
    schedule_id = Column(String(36), unique=True, nullable=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    reminder_date = Column(DateTime, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    source = Column(String(50), default="manual")  # manual, payment_schedule

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
