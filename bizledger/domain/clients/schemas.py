"""Client domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_phone
from ..payments.schemas import PaymentSummaryResponse, ScheduleItemInput

PaymentMode = Literal["full_paid", "deposit_plan", "pay_later"]


class ClientCreate(BaseModel):
    """Schema for creating a new client (lead)"""

    fullName: str
    phone: Optional[str] = None
    processName: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("fullName")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("fullName is required")
        return v.strip()

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_phone(v)
        return v


class ClientResponse(BaseModel):
    """Schema for client response"""

    id: str
    fullName: Optional[str]
    phone: Optional[str]
    processName: Optional[str]
    status: Optional[str]
    stage: int
    isConfirmed: bool
    confirmedAt: Optional[datetime] = None
    priceAgreed: Optional[float] = None
    paymentStatus: str
    created_at: Optional[datetime] = None


class ConfirmWithPaymentRequest(BaseModel):
    """Schema for confirming a lead as a customer together with its payment plan"""

    paymentMode: PaymentMode
    totalAmount: float
    depositAmount: Optional[float] = None
    firstDueDate: Optional[datetime] = None
    installments: list[ScheduleItemInput] = []
    note: Optional[str] = None


class ConfirmWithPaymentResponse(BaseModel):
    ok: bool = True
    clientId: str
    paymentSummary: PaymentSummaryResponse
