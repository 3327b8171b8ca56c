"""
预约仓储接口 - 定义预约数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Booking


class BookingRepository(ABC):
    """预约仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, booking: Booking) -> Booking:
        """创建预约"""
        pass

    @abstractmethod
    async def get_by_id(self, booking_id: str) -> Optional[Booking]:
        """根据ID获取预约"""
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        """更新预约"""
        pass
