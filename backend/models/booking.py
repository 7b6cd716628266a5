"""Booking model definitions."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from backend.core.config import MAX_BOOKING_NOTES_LENGTH
from backend.database import Base, OCCUPYING_SLOT_INDEX
from backend.models.slot import Slot  # noqa: F401
from backend.models.user import User  # noqa: F401

STATUS_CONFIRMED = 'confirmed'
STATUS_CANCELLED = 'cancelled'
STATUS_COMPLETED = 'completed'
BOOKING_STATUSES = (STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_COMPLETED)

# Bookings in these states keep their slot held.
OCCUPYING_STATUSES = (STATUS_CONFIRMED, STATUS_COMPLETED)

_occupying_clause = text("status != 'cancelled'")


class Booking(Base):
    """Represents a patient's claim on one slot."""
    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            OCCUPYING_SLOT_INDEX,
            'slot_id',
            unique=True,
            sqlite_where=_occupying_clause,
            postgresql_where=_occupying_clause,
        ),
        Index('idx_bookings_patient_created', 'patient_id', 'created_at'),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'completed')",
            name='ck_bookings_status',
        ),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    slot_id = Column(Integer, ForeignKey("slots.id"), nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_CONFIRMED)
    notes = Column(String(MAX_BOOKING_NOTES_LENGTH))
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    slot = relationship('Slot', lazy='joined')
    patient = relationship('User', lazy='joined')

    @property
    def occupies_slot(self) -> bool:
        return self.status in OCCUPYING_STATUSES
