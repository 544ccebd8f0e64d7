"""SQLAlchemy model for reporting cycles."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import relationship

from ..database import Base


class Cycle(Base):
    """Named inclusive date range used to bucket records for reporting."""

    __tablename__ = "cycles"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_cycles_valid_range"),
    )

    id = Column("cycle_id", Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    records = relationship("Record", back_populates="cycle")

    def contains(self, day) -> bool:
        return self.start_date <= day <= self.end_date


Index("cycles_range_idx", Cycle.start_date, Cycle.end_date)
