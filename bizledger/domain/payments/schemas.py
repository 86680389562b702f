"""Payments domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, field_validator

PaymentMethod = Literal["cash", "card", "transfer", "other"]
RiskLevel = Literal["low", "medium", "high"]


class ScheduleItemInput(BaseModel):
    """One installment to create. Amount and date are checked by the ledger"""

    amount: Optional[float] = None
    dueDate: Optional[datetime] = None
    note: Optional[str] = None


class CreateSchedulesRequest(BaseModel):
    """Schema for creating payment schedules"""

    clientId: str
    items: list[ScheduleItemInput]

    @field_validator("clientId")
    @classmethod
    def validate_client_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("clientId is required")
        return v.strip()


class CollectPaymentRequest(BaseModel):
    """Schema for recording a collection"""

    clientId: str
    amount: float
    scheduleId: Optional[str] = None
    method: Optional[PaymentMethod] = None
    paidAt: Optional[datetime] = None
    note: Optional[str] = None

    @field_validator("clientId")
    @classmethod
    def validate_client_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("clientId is required")
        return v.strip()


class PlanSuggestionRequest(BaseModel):
    totalAmount: float
    riskLevel: RiskLevel = "low"
    stage: int = 1
    existingOverdueCount: int = 0


class PaymentSummaryResponse(BaseModel):
    totalDue: float
    totalPaid: float
    remaining: float
    status: str  # Paid, Deposit, Unpaid


class ScheduleResponse(BaseModel):
    id: str
    clientId: str
    installmentNo: Optional[int]
    amountDue: float
    amountPaid: float
    remaining: float
    status: str  # pending, partially_paid, paid
    dueDate: datetime
    paidAt: Optional[datetime] = None
    note: Optional[str] = None
    source: Optional[str] = None


class TransactionResponse(BaseModel):
    id: str
    clientId: str
    scheduleId: Optional[str]
    amount: float
    method: str
    source: Optional[str]
    paidAt: datetime
    note: Optional[str] = None
    createdBy: Optional[str] = None


class CreateSchedulesResponse(BaseModel):
    ok: bool = True
    createdCount: int
    schedules: list[ScheduleResponse]
    paymentSummary: PaymentSummaryResponse


class CollectPaymentResponse(BaseModel):
    ok: bool = True
    updatedSchedules: list[str]
    paymentSummary: PaymentSummaryResponse


class OutstandingClientPaymentResponse(BaseModel):
    clientId: str
    clientName: str
    phone: Optional[str] = None
    processName: Optional[str] = None
    totalDue: float
    totalPaid: float
    remaining: float
    nextDueDate: Optional[datetime] = None
    overdueCount: int


class SuggestedInstallment(BaseModel):
    amount: float
    dueDate: datetime


class PlanSuggestionResponse(BaseModel):
    mode: str  # full_paid, deposit_plan
    depositAmount: float
    installmentCount: int
    installments: list[SuggestedInstallment]
    confidence: float
    reasons: list[str]


class ClientPlanSuggestionRequest(BaseModel):
    """Plan suggestion for an existing client; risk comes from its ledger"""

    totalAmount: float


class RiskFactorResponse(BaseModel):
    key: str  # overdue_installment_count, longest_overdue_days, remaining_ratio, days_since_last_payment
    value: Union[float, str]
    impact: float


class RiskMetricsResponse(BaseModel):
    totalDue: float
    totalPaid: float
    remaining: float
    overdueCount: int
    longestOverdueDays: int
    remainingRatio: float
    daysSinceLastPayment: int
    lastPaymentAt: Optional[datetime] = None


class RiskScoreResponse(BaseModel):
    clientId: str
    score: int
    level: str  # low, medium, high
    factors: list[RiskFactorResponse]
    metrics: RiskMetricsResponse


class ClientPlanSuggestionResponse(BaseModel):
    ok: bool = True
    clientId: str
    risk: RiskScoreResponse
    suggestion: PlanSuggestionResponse
