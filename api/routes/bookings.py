"""
Bookings API routes.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.dependencies import get_booking_facade, get_current_user_id, get_handler
from api.middleware import get_request_id
from api.responses import command_response
from application.commands import (
    CancelBookingCommand,
    CancelBookingPayload,
    CommandHandler,
    CreateBookingCommand,
    UpdateBookingStatusCommand,
    UpdateBookingStatusPayload,
)
from application.dtos.bookings import BookingFacadeData, BookingFacadeResult, BookingPayment, BookingView
from application.facades import BookingFacade
from core.response import success_response
from domain.booking.entity import Booking, BookingStatus, ServiceType
from domain.common.exceptions import BookingNotFoundException


router = APIRouter(prefix="/bookings", tags=["Bookings"])


class CreateBookingRequest(BaseModel):
    provider_id: str
    service_id: str
    service_type: ServiceType
    appointment_date: datetime
    timeslot: Optional[str] = None
    consultation_mode: Optional[Literal["IN_PERSON", "TELEMEDICINE", "HYBRID"]] = None
    recipient: Optional[dict[str, Any]] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    payment: Optional[BookingPayment] = None


class CancelBookingRequest(BaseModel):
    reason: Optional[str] = None


class UpdateStatusRequest(BaseModel):
    status: BookingStatus


def _render_booking(result: BookingFacadeResult) -> dict:
    body = result.model_dump(mode="json")
    body["requires_action"] = result.requires_action
    return body


async def _participant_booking(facade: BookingFacade, booking_id: str, user_id: str) -> Booking:
    booking = await facade.get_booking(booking_id)
    if user_id not in (booking.requester_id, booking.provider_id):
        # 不暴露他人预约是否存在
        raise BookingNotFoundException(booking_id)
    return booking


@router.post("")
async def create_booking(
    body: CreateBookingRequest,
    user_id: str = Depends(get_current_user_id),
    facade: BookingFacade = Depends(get_booking_facade),
    handler: CommandHandler = Depends(get_handler),
):
    data = BookingFacadeData(requester_id=user_id, **body.model_dump(exclude={"payment"}), payment=body.payment)
    result = await handler.execute(CreateBookingCommand(data, facade=facade, issued_by=user_id))
    return command_response(result, created=True, render=_render_booking, request_id=get_request_id())


@router.get("/{booking_id}")
async def get_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    facade: BookingFacade = Depends(get_booking_facade),
):
    booking = await _participant_booking(facade, booking_id, user_id)
    return success_response(data=BookingView.from_entity(booking))


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    body: CancelBookingRequest,
    user_id: str = Depends(get_current_user_id),
    facade: BookingFacade = Depends(get_booking_facade),
    handler: CommandHandler = Depends(get_handler),
):
    await _participant_booking(facade, booking_id, user_id)
    command = CancelBookingCommand(
        CancelBookingPayload(booking_id=booking_id, reason=body.reason),
        facade=facade,
        issued_by=user_id,
    )
    return command_response(await handler.execute(command), request_id=get_request_id())


@router.patch("/{booking_id}/status")
async def update_booking_status(
    booking_id: str,
    body: UpdateStatusRequest,
    user_id: str = Depends(get_current_user_id),
    facade: BookingFacade = Depends(get_booking_facade),
    handler: CommandHandler = Depends(get_handler),
):
    await _participant_booking(facade, booking_id, user_id)
    command = UpdateBookingStatusCommand(
        UpdateBookingStatusPayload(booking_id=booking_id, status=body.status),
        facade=facade,
        issued_by=user_id,
    )
    return command_response(await handler.execute(command), request_id=get_request_id())
