"""
Business codes shared by the domain, core and API layers.

Generic codes live here; payment lifecycle and gateway codes are in
``shared.codes.payment_codes``.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    SUCCESS = 0

    # request errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003

    # resource errors (2xxxx)
    NOT_FOUND = 20006

    # server side errors (4xxxx)
    SYSTEM_ERROR = 40000
    DATABASE_ERROR = 40001
    SERVICE_UNAVAILABLE = 40003
    CONFIGURATION_ERROR = 40004
    SERIALIZATION_ERROR = 40005


__all__ = ["BusinessCode"]
