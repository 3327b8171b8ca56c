"""
发票服务 - 为成功的支付生成发票记录（InvoiceGenerator 端口实现）
"""
from __future__ import annotations

from typing import Callable

from application.dtos.payments import PaymentData, PaymentResult
from application.ports.notifications import InvoiceRef
from core.logging_config import get_logger
from domain.common.exceptions import DomainValidationException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.invoice.entity import Invoice, InvoiceLine


logger = get_logger(__name__)


class InvoiceService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def generate(self, payment_result: PaymentResult, data: PaymentData) -> InvoiceRef:
        if not payment_result.success:
            raise DomainValidationException("Invoices are only issued for successful payments", field="payment_result")

        description = data.description or f"{data.service_type.value} service {data.service_id}"
        invoice = Invoice.issue(
            user_id=data.effective_payer_id,
            transaction_id=payment_result.transaction_id,
            amount=data.amount,
            currency=data.currency,
            lines=[InvoiceLine(description=description, quantity=1, unit_price=data.amount)],
            metadata={
                "provider": payment_result.provider,
                "payment_intent_id": payment_result.payment_intent_id,
                "beneficiary_id": data.effective_beneficiary_id,
                "service_type": data.service_type.value,
            },
        )
        async with self._uow_factory() as uow:
            saved = await uow.invoice_repository.create(invoice)
        logger.info("invoice_issued", invoice_id=saved.id, invoice_number=saved.invoice_number)
        return InvoiceRef(invoice_id=saved.id, invoice_number=saved.invoice_number)
