from .steps import Step, StepKind, run_steps
from .payment_facade import PaymentFacade
from .booking_facade import BookingFacade

__all__ = ["Step", "StepKind", "run_steps", "PaymentFacade", "BookingFacade"]
