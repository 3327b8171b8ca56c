"""
发票仓储接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Invoice


class InvoiceRepository(ABC):

    @abstractmethod
    async def create(self, invoice: Invoice) -> Invoice:
        pass

    @abstractmethod
    async def get_by_id(self, invoice_id: str) -> Optional[Invoice]:
        pass
