"""SQLAlchemy Unit of Work：一次预约/支付写入共用一个事务"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.repositories.booking_repository import SQLAlchemyBookingRepository
from infrastructure.repositories.invoice_repository import SQLAlchemyInvoiceRepository
from infrastructure.repositories.transaction_repository import SQLAlchemyTransactionRepository


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        session: Optional[AsyncSession] = None,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self._owns_session = session is None
        self.session: Optional[AsyncSession] = session

    def _bind_repositories(self, session: Optional[AsyncSession]) -> None:
        if session is None:
            self.booking_repository = None  # type: ignore[assignment]
            self.transaction_repository = None  # type: ignore[assignment]
            self.invoice_repository = None  # type: ignore[assignment]
            return
        self.booking_repository = SQLAlchemyBookingRepository(session)
        self.transaction_repository = SQLAlchemyTransactionRepository(session)
        self.invoice_repository = SQLAlchemyInvoiceRepository(session)

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            self.session = self._session_factory()
        self._bind_repositories(self.session)
        if not self._readonly and not self.session.in_transaction():
            await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self._owns_session and self.session is not None:
                await self.session.close()
                self.session = None
            self._bind_repositories(None)

    async def commit(self) -> None:
        # 只读模式只标记，不落库
        if not self._readonly and self.session is not None and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session is not None and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False
