"""
交易仓储接口 - 定义交易数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Transaction


class TransactionRepository(ABC):
    """交易仓储抽象接口"""

    @abstractmethod
    async def create(self, transaction: Transaction) -> Transaction:
        """创建交易记录"""
        pass

    @abstractmethod
    async def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """根据ID获取交易"""
        pass

    @abstractmethod
    async def get_by_payment_intent(self, provider: str, payment_intent_id: str) -> Optional[Transaction]:
        """根据渠道支付意图ID获取交易"""
        pass

    @abstractmethod
    async def update(self, transaction: Transaction) -> Transaction:
        """更新交易记录"""
        pass
