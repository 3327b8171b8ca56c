"""业务码。支付渠道相关的码见 shared.codes.payment_codes"""
from enum import IntEnum


class BusinessCode(IntEnum):
    # Success
    SUCCESS = 0

    # Parameter errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_MISSING = 10001
    PARAM_TYPE_ERROR = 10002
    PARAM_VALIDATION_ERROR = 10003

    # Business errors (2xxxx)
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006  # Generic resource not found
    BOOKING_NOT_FOUND = 20200
    BOOKING_INVALID_TRANSITION = 20201
    TRANSACTION_NOT_FOUND = 20300
    COMMAND_NOT_FOUND = 20400
    COMMAND_ALREADY_EXECUTED = 20401
    COMMAND_NOT_UNDOABLE = 20402

    # Authorization errors (3xxxx)
    PERMISSION_ERROR = 30000
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # System errors (4xxxx)
    SYSTEM_ERROR = 40000
    DATABASE_ERROR = 40001
    NETWORK_ERROR = 40002
    SERVICE_UNAVAILABLE = 40003


__all__ = ["BusinessCode"]
