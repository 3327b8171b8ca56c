"""
交易仓储实现 - 使用SQLAlchemy实现数据访问
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import TransactionNotFoundException
from domain.payment.entity import Transaction, TransactionStatus
from domain.payment.repository import TransactionRepository
from infrastructure.models.transaction import TransactionModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyTransactionRepository(TransactionRepository):
    """交易仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: TransactionModel) -> Transaction:
        return Transaction(
            id=model.id,
            payer_id=model.payer_id,
            beneficiary_id=model.beneficiary_id,
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            service_type=model.service_type,
            service_id=model.service_id,
            provider=model.provider,
            payment_intent_id=model.payment_intent_id,
            provider_ref=model.provider_ref,
            status=TransactionStatus(model.status),
            description=model.description,
            refund_ref=model.refund_ref,
            refund_reason=model.refund_reason,
            created_at=model.created_at,
            updated_at=model.updated_at,
            refunded_at=model.refunded_at,
            metadata=model.extra_metadata or {},
        )

    def _to_model(self, entity: Transaction) -> TransactionModel:
        return TransactionModel(
            id=entity.id,
            payer_id=entity.payer_id,
            beneficiary_id=entity.beneficiary_id,
            amount=entity.amount,
            currency=entity.currency,
            service_type=entity.service_type,
            service_id=entity.service_id,
            provider=entity.provider,
            payment_intent_id=entity.payment_intent_id,
            provider_ref=entity.provider_ref,
            status=entity.status.value,
            description=entity.description,
            refund_ref=entity.refund_ref,
            refund_reason=entity.refund_reason,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            refunded_at=entity.refunded_at,
            extra_metadata=entity.metadata,
        )

    async def create(self, transaction: Transaction) -> Transaction:
        db_tx = self._to_model(transaction)
        self.session.add(db_tx)
        await self.session.flush()
        await self.session.refresh(db_tx)
        logger.info(
            "transaction_created",
            transaction_id=db_tx.id,
            provider=db_tx.provider,
            payment_intent_id=db_tx.payment_intent_id,
        )
        return self._to_entity(db_tx)

    async def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        result = await self.session.execute(
            select(TransactionModel).where(TransactionModel.id == transaction_id)
        )
        db_tx = result.scalar_one_or_none()
        return self._to_entity(db_tx) if db_tx else None

    async def get_by_payment_intent(self, provider: str, payment_intent_id: str) -> Optional[Transaction]:
        result = await self.session.execute(
            select(TransactionModel).where(
                TransactionModel.provider == provider,
                TransactionModel.payment_intent_id == payment_intent_id,
            )
        )
        db_tx = result.scalars().first()
        return self._to_entity(db_tx) if db_tx else None

    async def update(self, transaction: Transaction) -> Transaction:
        result = await self.session.execute(
            select(TransactionModel).where(TransactionModel.id == transaction.id)
        )
        db_tx = result.scalar_one_or_none()
        if not db_tx:
            raise TransactionNotFoundException(transaction.id)

        db_tx.status = transaction.status.value
        db_tx.provider_ref = transaction.provider_ref
        db_tx.refund_ref = transaction.refund_ref
        db_tx.refund_reason = transaction.refund_reason
        db_tx.refunded_at = transaction.refunded_at
        db_tx.updated_at = transaction.updated_at
        db_tx.extra_metadata = transaction.metadata

        await self.session.flush()
        await self.session.refresh(db_tx)
        logger.info("transaction_updated", transaction_id=db_tx.id, status=db_tx.status)
        return self._to_entity(db_tx)
