"""SQLAlchemy model definitions for record payment breakdowns."""

from __future__ import annotations

import enum

from sqlalchemy import CheckConstraint, Column, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import Cents


class PaymentMethod(str, enum.Enum):
    """Supported payment methods."""

    CARD = "card"
    CASH = "cash"
    CASHAPP = "cashapp"
    ZELLE = "zelle"
    OTHER = "other"


PAYMENT_METHOD_ENUM = Enum(
    PaymentMethod,
    name="payment_method_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=True,
    validate_strings=True,
)


class RecordPayment(Base):
    """One method/amount pair that makes up part of a record's price."""

    __tablename__ = "record_payments"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_record_payments_amount_non_negative"),
    )

    id = Column("payment_id", Integer, primary_key=True, autoincrement=True)
    record_id = Column(
        Integer,
        ForeignKey("records.record_id", ondelete="CASCADE"),
        nullable=False,
    )
    method = Column(PAYMENT_METHOD_ENUM, nullable=False)
    amount = Column(Cents(), nullable=False)
    label = Column(String(120), nullable=True)

    record = relationship("Record", back_populates="payments")


Index("record_payments_record_idx", RecordPayment.record_id)
Index("record_payments_method_idx", RecordPayment.method)
