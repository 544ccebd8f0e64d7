"""Models describing services and products logged by stylists."""

from __future__ import annotations

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import Cents


class RecordKind(str, enum.Enum):
    """Discriminator for the record variants sharing the ``records`` table."""

    SERVICE = "service"
    PRODUCT = "product"


class Record(Base):
    """Common columns shared by services and products.

    ``occurred_on`` keeps the date exactly as it was submitted (a calendar date
    or an ISO datetime). Legacy rows may hold blank or malformed text, which
    the cycle migration reports instead of guessing.
    """

    __tablename__ = "records"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_records_price_non_negative"),
        CheckConstraint("tip IS NULL OR tip >= 0", name="ck_records_tip_non_negative"),
    )

    id = Column("record_id", Integer, primary_key=True, autoincrement=True)
    kind = Column(
        Enum(
            RecordKind,
            name="record_kind_enum",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
    user_id = Column(
        Integer,
        ForeignKey("users.user_id", ondelete="RESTRICT"),
        nullable=False,
    )
    cycle_id = Column(
        Integer,
        ForeignKey("cycles.cycle_id", ondelete="RESTRICT"),
        nullable=True,
    )
    name = Column(String(200), nullable=False)
    customer = Column(String(200), nullable=True)
    price = Column(Cents(), nullable=False)
    tip = Column(Cents(), nullable=True)
    occurred_on = Column(String(40), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    user = relationship("User", back_populates="records")
    cycle = relationship("Cycle", back_populates="records")
    payments = relationship(
        "RecordPayment",
        back_populates="record",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="RecordPayment.id",
    )

    __mapper_args__ = {"polymorphic_on": kind}


class ServiceRecord(Record):
    """A salon service; may carry a customer name and a tip."""

    __mapper_args__ = {"polymorphic_identity": RecordKind.SERVICE}


class ProductRecord(Record):
    """A retail product sale."""

    __mapper_args__ = {"polymorphic_identity": RecordKind.PRODUCT}


Index("records_cycle_user_idx", Record.cycle_id, Record.user_id)
Index("records_user_idx", Record.user_id)
Index("records_kind_idx", Record.kind)
