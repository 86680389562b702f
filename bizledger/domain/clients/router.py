"""Client router - FastAPI endpoints for client staging"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_actor
from ...database import get_db
from ...models import Client
from ..payments.schemas import PaymentSummaryResponse
from .schemas import (
    ClientCreate,
    ClientResponse,
    ConfirmWithPaymentRequest,
    ConfirmWithPaymentResponse,
)
from .service import ClientService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["Clients"])


def get_client_service(db: Session = Depends(get_db)) -> ClientService:
    """Dependency injection for ClientService"""
    return ClientService(db)


def to_client_response(client: Client) -> ClientResponse:
    return ClientResponse(
        id=client.id,
        fullName=client.full_name or client.name,
        phone=client.phone,
        processName=client.process_name,
        status=client.status,
        stage=client.stage or 0,
        isConfirmed=bool(client.is_confirmed),
        confirmedAt=client.confirmed_at,
        priceAgreed=float(client.price_agreed) if client.price_agreed is not None else None,
        paymentStatus=client.payment_status,
        created_at=client.created_at,
    )


@router.post("", response_model=ClientResponse)
async def create_client(
    data: ClientCreate,
    _actor: Optional[str] = Depends(get_current_actor),
    service: ClientService = Depends(get_client_service),
):
    """Create a new lead"""
    return to_client_response(service.create_client(data))


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: str,
    _actor: Optional[str] = Depends(get_current_actor),
    service: ClientService = Depends(get_client_service),
):
    """Get a specific client"""
    return to_client_response(service.get_client(client_id))


@router.post("/{client_id}/confirm-with-payment", response_model=ConfirmWithPaymentResponse)
async def confirm_with_payment(
    client_id: str,
    data: ConfirmWithPaymentRequest,
    actor: Optional[str] = Depends(get_current_actor),
    service: ClientService = Depends(get_client_service),
):
    """Confirm a lead as a customer and record its payment plan"""
    summary = service.confirm_with_payment(client_id, data, actor=actor)
    return ConfirmWithPaymentResponse(
        clientId=client_id,
        paymentSummary=PaymentSummaryResponse(**summary.to_dict()),
    )
