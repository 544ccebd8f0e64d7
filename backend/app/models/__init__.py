"""Expose SQLAlchemy models for convenient imports."""

from .cycle import Cycle
from .payment import PAYMENT_METHOD_ENUM, PaymentMethod, RecordPayment
from .record import ProductRecord, Record, RecordKind, ServiceRecord
from .user import User, UserRole

__all__ = [
    "Cycle",
    "PAYMENT_METHOD_ENUM",
    "PaymentMethod",
    "RecordPayment",
    "ProductRecord",
    "Record",
    "RecordKind",
    "ServiceRecord",
    "User",
    "UserRole",
]
