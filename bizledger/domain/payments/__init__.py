"""Payments domain - installment schedules, collections and payment status"""

from .router import router

__all__ = ["router"]
