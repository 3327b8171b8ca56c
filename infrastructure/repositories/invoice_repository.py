"""
发票仓储实现 - 使用SQLAlchemy实现数据访问
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.invoice.entity import Invoice, InvoiceLine, InvoiceStatus
from domain.invoice.repository import InvoiceRepository
from infrastructure.models.invoice import InvoiceModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyInvoiceRepository(InvoiceRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: InvoiceModel) -> Invoice:
        return Invoice(
            id=model.id,
            invoice_number=model.invoice_number,
            user_id=model.user_id,
            transaction_id=model.transaction_id,
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            lines=[InvoiceLine.from_dict(raw) for raw in (model.lines or [])],
            status=InvoiceStatus(model.status),
            issued_at=model.issued_at,
            metadata=model.extra_metadata or {},
        )

    async def create(self, invoice: Invoice) -> Invoice:
        db_invoice = InvoiceModel(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            user_id=invoice.user_id,
            transaction_id=invoice.transaction_id,
            amount=invoice.amount,
            currency=invoice.currency,
            lines=[line.to_dict() for line in invoice.lines],
            status=invoice.status.value,
            issued_at=invoice.issued_at,
            extra_metadata=invoice.metadata,
        )
        self.session.add(db_invoice)
        await self.session.flush()
        await self.session.refresh(db_invoice)
        logger.info("invoice_created", invoice_id=db_invoice.id, invoice_number=db_invoice.invoice_number)
        return self._to_entity(db_invoice)

    async def get_by_id(self, invoice_id: str) -> Optional[Invoice]:
        result = await self.session.execute(
            select(InvoiceModel).where(InvoiceModel.id == invoice_id)
        )
        db_invoice = result.scalar_one_or_none()
        return self._to_entity(db_invoice) if db_invoice else None
