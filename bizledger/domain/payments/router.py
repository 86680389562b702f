"""Payments router - FastAPI endpoints for the payment ledger"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import get_current_actor
from ...database import get_db
from ...models_payment import PaymentSchedule, PaymentTransaction
from .ledger import (
    derive_schedule_status,
    get_schedule_amount_due,
    get_schedule_amount_paid,
    get_schedule_remaining,
)
from .planner import suggest_payment_plan
from .schemas import (
    ClientPlanSuggestionRequest,
    ClientPlanSuggestionResponse,
    CollectPaymentRequest,
    CollectPaymentResponse,
    CreateSchedulesRequest,
    CreateSchedulesResponse,
    OutstandingClientPaymentResponse,
    PaymentSummaryResponse,
    PlanSuggestionRequest,
    PlanSuggestionResponse,
    RiskScoreResponse,
    ScheduleResponse,
    TransactionResponse,
)
from .service import PaymentLedgerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_ledger_service(db: Session = Depends(get_db)) -> PaymentLedgerService:
    """Dependency injection for PaymentLedgerService"""
    return PaymentLedgerService(db)


def to_schedule_response(schedule: PaymentSchedule) -> ScheduleResponse:
    return ScheduleResponse(
        id=schedule.id,
        clientId=schedule.client_id,
        installmentNo=schedule.installment_no,
        amountDue=float(get_schedule_amount_due(schedule)),
        amountPaid=float(get_schedule_amount_paid(schedule)),
        remaining=float(get_schedule_remaining(schedule)),
        status=derive_schedule_status(schedule),
        dueDate=schedule.due_date,
        paidAt=schedule.paid_at,
        note=schedule.note,
        source=schedule.source,
    )


def to_risk_response(client_id: str, metrics, risk: dict) -> RiskScoreResponse:
    return RiskScoreResponse(clientId=client_id, metrics=metrics.to_dict(), **risk)


def to_transaction_response(transaction: PaymentTransaction) -> TransactionResponse:
    return TransactionResponse(
        id=transaction.id,
        clientId=transaction.client_id,
        scheduleId=transaction.schedule_id,
        amount=float(transaction.amount),
        method=transaction.method,
        source=transaction.source,
        paidAt=transaction.paid_at,
        note=transaction.note,
        createdBy=transaction.created_by,
    )


# ============================================================================
# LEDGER MUTATIONS
# ============================================================================


@router.post("/schedules", response_model=CreateSchedulesResponse)
async def create_schedules(
    body: CreateSchedulesRequest,
    actor: Optional[str] = Depends(get_current_actor),
    service: PaymentLedgerService = Depends(get_ledger_service),
):
    """Create installment schedules for a client"""
    created = service.create_schedules_for_client(
        body.clientId,
        [item.model_dump() for item in body.items],
        source="web",
        actor=actor,
    )
    summary = service.summarize_client_payments(body.clientId)
    return CreateSchedulesResponse(
        createdCount=len(created),
        schedules=[to_schedule_response(row) for row in created],
        paymentSummary=PaymentSummaryResponse(**summary.to_dict()),
    )


@router.post("/collect", response_model=CollectPaymentResponse)
async def collect_payment(
    body: CollectPaymentRequest,
    actor: Optional[str] = Depends(get_current_actor),
    service: PaymentLedgerService = Depends(get_ledger_service),
):
    """Record a collection, targeted at one schedule or allocated earliest-due-first"""
    result = service.collect_payment(
        body.clientId,
        body.amount,
        schedule_id=body.scheduleId,
        method=body.method,
        note=body.note,
        source="web",
        paid_at=body.paidAt,
        actor=actor,
    )
    return CollectPaymentResponse(
        updatedSchedules=result.updated_schedule_ids,
        paymentSummary=PaymentSummaryResponse(**result.summary.to_dict()),
    )


@router.delete("/clients/{client_id}/schedules/{schedule_id}", response_model=PaymentSummaryResponse)
async def delete_schedule(
    client_id: str,
    schedule_id: str,
    actor: Optional[str] = Depends(get_current_actor),
    service: PaymentLedgerService = Depends(get_ledger_service),
):
    """Delete a schedule that has no recorded payments"""
    summary = service.delete_schedule(client_id, schedule_id, actor=actor)
    return PaymentSummaryResponse(**summary.to_dict())


@router.post("/clients/{client_id}/sync-status", response_model=PaymentSummaryResponse)
async def sync_client_status(
    client_id: str,
    _actor: Optional[str] = Depends(get_current_actor),
    service: PaymentLedgerService = Depends(get_ledger_service),
):
    """Refresh the client's cached payment status from its schedules"""
    service.require_client(client_id)
    summary = service.sync_client_payment_status(client_id)
    return PaymentSummaryResponse(**summary.to_dict())


# ============================================================================
# LEDGER QUERIES
# ============================================================================


@router.get("/clients/{client_id}/summary", response_model=PaymentSummaryResponse)
async def get_client_summary(
    client_id: str,
    _actor: Optional[str] = Depends(get_current_actor),
    service: PaymentLedgerService = Depends(get_ledger_service),
):
    """Get totals and payment status for a client"""
    service.require_client(client_id)
    summary = service.summarize_client_payments(client_id)
    return PaymentSummaryResponse(**summary.to_dict())


@router.get("/clients/{client_id}/schedules", response_model=list[ScheduleResponse])
async def get_client_schedules(
    client_id: str,
    _actor: Optional[str] = Depends(get_current_actor),
    service: PaymentLedgerService = Depends(get_ledger_service),
):
    """Get a client's schedules, earliest due first"""
    return [to_schedule_response(row) for row in service.list_client_schedules(client_id)]


@router.get("/clients/{client_id}/transactions", response_model=list[TransactionResponse])
async def get_client_transactions(
    client_id: str,
    _actor: Optional[str] = Depends(get_current_actor),
    service: PaymentLedgerService = Depends(get_ledger_service),
):
    """Get a client's collections, newest first"""
    return [to_transaction_response(row) for row in service.list_client_transactions(client_id)]


@router.get("/outstanding", response_model=list[OutstandingClientPaymentResponse])
async def get_outstanding_payments(
    _actor: Optional[str] = Depends(get_current_actor),
    service: PaymentLedgerService = Depends(get_ledger_service),
):
    """Get clients with open balances, largest first"""
    return service.list_outstanding_client_payments()


@router.post("/plan-suggestion", response_model=PlanSuggestionResponse)
async def get_plan_suggestion(
    body: PlanSuggestionRequest,
    _actor: Optional[str] = Depends(get_current_actor),
):
    """Suggest a full payment or deposit plan for an agreed price"""
    try:
        return suggest_payment_plan(
            body.totalAmount,
            body.riskLevel,
            stage=body.stage,
            existing_overdue_count=body.existingOverdueCount,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get("/clients/{client_id}/risk-score", response_model=RiskScoreResponse)
async def get_client_risk_score(
    client_id: str,
    _actor: Optional[str] = Depends(get_current_actor),
    service: PaymentLedgerService = Depends(get_ledger_service),
):
    """Score a client's collection risk from its schedules and payments"""
    metrics, risk = service.assess_client_risk(client_id)
    return to_risk_response(client_id, metrics, risk)


@router.post("/clients/{client_id}/plan-suggestion", response_model=ClientPlanSuggestionResponse)
async def get_client_plan_suggestion(
    client_id: str,
    body: ClientPlanSuggestionRequest,
    _actor: Optional[str] = Depends(get_current_actor),
    service: PaymentLedgerService = Depends(get_ledger_service),
):
    """Suggest a payment plan using the client's ledger risk and stage"""
    result = service.suggest_client_payment_plan(client_id, body.totalAmount)
    return ClientPlanSuggestionResponse(
        clientId=client_id,
        risk=to_risk_response(client_id, result["metrics"], result["risk"]),
        suggestion=result["suggestion"],
    )
