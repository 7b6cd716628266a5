"""Slot model definitions."""

from datetime import datetime, timedelta

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, Integer, event
from backend.core.config import SLOT_DURATION_MINUTES
from backend.database import Base


class Slot(Base):
    """Represents a fixed-length bookable time interval."""
    __tablename__ = "slots"
    __table_args__ = (
        CheckConstraint('end_time > start_time', name='ck_slots_end_after_start'),
        Index('idx_slots_start_booked', 'start_time', 'is_booked'),
    )

    id = Column(Integer, primary_key=True)
    start_time = Column(DateTime, nullable=False, unique=True)
    end_time = Column(DateTime, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    @property
    def is_available(self) -> bool:
        return not self.is_booked


def slot_end_for(start_time: datetime) -> datetime:
    return start_time + timedelta(minutes=SLOT_DURATION_MINUTES)


@event.listens_for(Slot, 'before_insert')
def check_slot_duration(mapper, connection, target: Slot) -> None:
    if target.start_time is None or target.end_time is None:
        raise ValueError('Slot start and end times are required.')
    if target.end_time - target.start_time != timedelta(minutes=SLOT_DURATION_MINUTES):
        raise ValueError(f'Slots must be exactly {SLOT_DURATION_MINUTES} minutes long.')
