"""Payment ledger errors

Every failure leaves the ledger as a structured kind plus a message. Raw store
exceptions are never passed through to callers.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for ledger failures"""

    kind = "ledger_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, updated_schedule_ids: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        # Schedules whose collection step committed before the failure
        self.updated_schedule_ids = list(updated_schedule_ids or [])

    def to_dict(self) -> dict:
        return {
            "ok": False,
            "error": self.kind,
            "message": self.message,
            "retryable": self.retryable,
            "updatedSchedules": self.updated_schedule_ids,
        }


class LedgerValidationError(LedgerError):
    """Bad input, rejected before any store mutation"""

    kind = "validation"
    status_code = 400


class LedgerNotFoundError(LedgerError):
    """Unknown client or schedule"""

    kind = "not_found"
    status_code = 404


class LedgerStateConflictError(LedgerError):
    """Request conflicts with the ledger state (already paid, exceeds remaining)"""

    kind = "state_conflict"
    status_code = 409


class ConcurrentUpdateError(LedgerStateConflictError):
    """A schedule's balance changed between read and conditional update"""

    kind = "concurrent_update"
    retryable = True


class LedgerStoreError(LedgerError):
    """The underlying store failed to read or write"""

    kind = "store_failure"
    status_code = 500
