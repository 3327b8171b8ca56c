"""事务边界抽象：预约、交易、发票三个仓储共享同一事务"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.booking.repository import BookingRepository
from domain.invoice.repository import InvoiceRepository
from domain.payment.repository import TransactionRepository


class AbstractUnitOfWork(ABC):
    booking_repository: BookingRepository
    transaction_repository: TransactionRepository
    invoice_repository: InvoiceRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._readonly = readonly
        self._committed = False
        self.booking_repository = None  # type: ignore[assignment]
        self.transaction_repository = None  # type: ignore[assignment]
        self.invoice_repository = None  # type: ignore[assignment]

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        """异常回滚；正常退出且未显式提交时自动提交（只读除外）"""
        if exc is not None:
            await self.rollback()
        elif not (self._readonly or self._committed):
            await self.commit()

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...
