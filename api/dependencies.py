"""
API依赖项 - 调用方身份与应用层对象装配（组合根）
"""
from typing import Optional

from fastapi import Depends, Header

from application.commands import CommandHandler, get_command_handler
from application.facades import BookingFacade, PaymentFacade
from application.ports.notifications import InvoiceGenerator, Notifier
from application.ports.payment_processor import ProcessorResolver
from application.services.invoice_service import InvoiceService
from core.exceptions import UnauthorizedException
from infrastructure.external.payments import get_processor_factory
from infrastructure.notifications import CeleryEmailNotifier
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


async def get_current_user_id(x_user_id: Optional[str] = Header(default=None, alias="X-User-ID")) -> str:
    """上游网关注入的已认证用户ID"""
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedException("Missing X-User-ID header")
    return x_user_id.strip()


def get_uow_factory():
    return SQLAlchemyUnitOfWork


def get_processor_resolver() -> ProcessorResolver:
    return get_processor_factory()


def get_notifier() -> Notifier:
    return CeleryEmailNotifier()


def get_invoice_generator(uow_factory=Depends(get_uow_factory)) -> InvoiceGenerator:
    return InvoiceService(uow_factory=uow_factory)


def get_payment_facade(
    processors: ProcessorResolver = Depends(get_processor_resolver),
    uow_factory=Depends(get_uow_factory),
    invoice_generator: InvoiceGenerator = Depends(get_invoice_generator),
    notifier: Notifier = Depends(get_notifier),
) -> PaymentFacade:
    return PaymentFacade(
        processors=processors,
        uow_factory=uow_factory,
        invoice_generator=invoice_generator,
        notifier=notifier,
    )


def get_booking_facade(
    uow_factory=Depends(get_uow_factory),
    payment_facade: PaymentFacade = Depends(get_payment_facade),
    notifier: Notifier = Depends(get_notifier),
) -> BookingFacade:
    return BookingFacade(uow_factory=uow_factory, payment_facade=payment_facade, notifier=notifier)


def get_handler() -> CommandHandler:
    return get_command_handler()
