"""
Payments API routes.

Thin layer: builds the command from the request and the caller identity,
runs it through the command handler and maps the result to HTTP.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.dependencies import get_current_user_id, get_handler, get_payment_facade, get_processor_resolver
from api.middleware import get_request_id
from api.responses import command_response
from application.commands import CommandHandler, CreatePaymentCommand, RefundPaymentCommand, RefundPayload
from application.dtos.payments import PaymentFacadeData, PaymentResult, ProcessorInfo
from application.facades import PaymentFacade
from application.ports.payment_processor import ProcessorResolver
from core.response import Response, success_response
from domain.booking.entity import ServiceType


router = APIRouter(prefix="/payments", tags=["Payments"])


class ProcessPaymentRequest(BaseModel):
    amount: Decimal
    currency: str
    payment_method_id: str
    service_type: ServiceType
    service_id: str = "default"
    description: str = ""
    beneficiary_id: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    country: Optional[str] = None
    provider: Optional[str] = None
    create_invoice: bool = True
    send_notification: bool = True


class RefundRequest(BaseModel):
    reason: Optional[str] = None


def _render_payment(result: PaymentResult) -> dict:
    return result.model_dump(mode="json")


@router.post("/process")
async def process_payment(
    body: ProcessPaymentRequest,
    user_id: str = Depends(get_current_user_id),
    facade: PaymentFacade = Depends(get_payment_facade),
    handler: CommandHandler = Depends(get_handler),
):
    data = PaymentFacadeData(
        customer_id=user_id,
        payer_id=user_id,
        **body.model_dump(),
    )
    result = await handler.execute(CreatePaymentCommand(data, facade=facade, issued_by=user_id))
    return command_response(result, render=_render_payment, request_id=get_request_id())


@router.post("/transactions/{transaction_id}/refund")
async def refund_transaction(
    transaction_id: str,
    body: RefundRequest,
    user_id: str = Depends(get_current_user_id),
    facade: PaymentFacade = Depends(get_payment_facade),
    handler: CommandHandler = Depends(get_handler),
):
    command = RefundPaymentCommand(
        RefundPayload(transaction_id=transaction_id, reason=body.reason),
        facade=facade,
        issued_by=user_id,
    )
    result = await handler.execute(command)
    return command_response(result, request_id=get_request_id())


@router.get("/processors", response_model=Response[list[ProcessorInfo]])
async def list_processors(processors: ProcessorResolver = Depends(get_processor_resolver)):
    return success_response(data=processors.list_processors())
