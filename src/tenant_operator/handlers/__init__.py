"""Infrastructure handlers run by the reconciliation pipeline."""

from .base import BaseHandler, Delta, Handler
from .endpoints import EndpointsHandler
from .ipam import IPAMHandler
from .s3object import S3ObjectHandler
from .stack import StackHandler

__all__ = [
    "BaseHandler",
    "Delta",
    "EndpointsHandler",
    "Handler",
    "IPAMHandler",
    "S3ObjectHandler",
    "StackHandler",
]
