"""Booking domain exports."""
from .entity import Booking, BookingStatus, ServiceType
from .repository import BookingRepository

__all__ = ["Booking", "BookingStatus", "ServiceType", "BookingRepository"]
