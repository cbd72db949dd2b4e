"""Provider contract and bundled vendor implementations."""

from .base import Provider, TaskId
from .capsolver import CapsolverError, CapsolverErrorCode, CapsolverProvider
from .rucaptcha import RucaptchaError, RucaptchaErrorCode, RucaptchaProvider

__all__ = [
    "Provider",
    "TaskId",
    "CapsolverError",
    "CapsolverErrorCode",
    "CapsolverProvider",
    "RucaptchaError",
    "RucaptchaErrorCode",
    "RucaptchaProvider",
]
