"""Booking ledger: the one-occupying-booking-per-slot rule and booking lifecycle.

Every mutation here runs as a single transaction. The slot flag flip and the
booking write either both commit or both roll back, and the partial unique
index on ``bookings.slot_id`` backs the claim even across processes.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.config import MAX_BOOKING_NOTES_LENGTH
from backend.core.errors import (
    AccessDenied,
    AlreadyHeld,
    BookingNotFound,
    BookingServiceError,
    InvalidState,
    InvalidStatus,
    SlotInPast,
    SlotTaken,
    ValidationFailure,
)
from backend.models.booking import (
    BOOKING_STATUSES,
    OCCUPYING_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    Booking,
)
from backend.models.slot import Slot
from backend.models.user import User
from backend.services.slot_registry import SlotRegistry

logger = logging.getLogger(__name__)


class BookingLedger:
    """Claims, cancels and completes bookings against the slot registry."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.slots = SlotRegistry(db)
        self.clock = clock

    def get(self, booking_id: int) -> Booking:
        booking = self.db.get(Booking, booking_id)
        if booking is None:
            raise BookingNotFound()
        return booking

    def claim(self, patient_id: int, slot_id: int, notes: str | None = None) -> Booking:
        """Create a confirmed booking and hold its slot in one transaction.

        Raises ``SlotNotFound``, ``SlotInPast`` or ``SlotTaken``. A failed
        claim leaves no trace in either table.
        """
        if notes is not None and len(notes) > MAX_BOOKING_NOTES_LENGTH:
            raise ValidationFailure(f'Notes cannot exceed {MAX_BOOKING_NOTES_LENGTH} characters.')

        slot = self.slots.get(slot_id)
        if slot.start_time <= self.clock():
            raise SlotInPast()

        try:
            self.slots.mark_held(slot_id)
            booking = Booking(
                patient_id=patient_id,
                slot_id=slot_id,
                status=STATUS_CONFIRMED,
                notes=notes,
                created_at=self.clock(),
            )
            self.db.add(booking)
            self.db.flush()
            self.db.commit()
        except (AlreadyHeld, IntegrityError) as exc:
            self.db.rollback()
            logger.info('Patient %s lost the claim on slot %s', patient_id, slot_id)
            raise SlotTaken() from exc
        except (BookingServiceError, SQLAlchemyError):
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info('Booking %s confirmed for patient %s on slot %s', booking.id, patient_id, slot_id)
        return booking

    def cancel(self, booking_id: int, actor: User) -> Booking:
        """Cancel a confirmed booking and release its slot in one transaction."""
        booking = self.get(booking_id)
        if booking.patient_id != actor.id and not actor.is_admin:
            raise AccessDenied()
        if booking.status != STATUS_CONFIRMED:
            raise InvalidState(f'Booking is already {booking.status}.')

        slot_id = booking.slot_id
        try:
            self._transition(booking_id, STATUS_CONFIRMED, STATUS_CANCELLED)
            self.slots.mark_available(slot_id)
            self.db.commit()
        except (BookingServiceError, SQLAlchemyError):
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info('Booking %s cancelled by user %s; slot %s released', booking_id, actor.id, slot_id)
        return booking

    def complete(self, booking_id: int, actor: User) -> Booking:
        """Mark a confirmed booking completed. The slot stays held for good."""
        if not actor.is_admin:
            raise AccessDenied('Only admins can complete bookings.')
        booking = self.get(booking_id)
        if booking.status != STATUS_CONFIRMED:
            raise InvalidState(f'Booking is already {booking.status}.')

        try:
            self._transition(booking_id, STATUS_CONFIRMED, STATUS_COMPLETED)
            self.db.commit()
        except (BookingServiceError, SQLAlchemyError):
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info('Booking %s completed by admin %s', booking_id, actor.id)
        return booking

    def set_status(self, booking_id: int, status: str, actor: User) -> Booking:
        """Admin overwrite of a booking's status.

        The slot flag follows the booking: leaving an occupying status
        releases the slot, entering one re-holds it (``SlotTaken`` if another
        booking got there first).
        """
        if not actor.is_admin:
            raise AccessDenied('Only admins can change booking status.')
        normalized = (status or '').strip().lower()
        if normalized not in BOOKING_STATUSES:
            raise InvalidStatus()

        booking = self.get(booking_id)
        previous = booking.status
        if previous == normalized:
            return booking

        try:
            self._transition(booking_id, previous, normalized)
            if previous in OCCUPYING_STATUSES and normalized not in OCCUPYING_STATUSES:
                self.slots.mark_available(booking.slot_id)
            elif previous not in OCCUPYING_STATUSES and normalized in OCCUPYING_STATUSES:
                self.slots.mark_held(booking.slot_id)
            self.db.commit()
        except (AlreadyHeld, IntegrityError) as exc:
            self.db.rollback()
            raise SlotTaken('Another booking now holds this slot.') from exc
        except (BookingServiceError, SQLAlchemyError):
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info('Booking %s status %s -> %s by admin %s', booking_id, previous, normalized, actor.id)
        return booking

    def list_for_patient(self, patient_id: int) -> list[Booking]:
        return self.db.query(Booking).filter(
            Booking.patient_id == patient_id,
        ).order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    def list_all(self) -> list[Booking]:
        return self.db.query(Booking).order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    def repair_slot_flags(self) -> list[int]:
        """Make every slot's flag match its occupying bookings.

        Returns the ids of the slots that were corrected.
        """
        occupied = select(Booking.slot_id).where(Booking.status.in_(OCCUPYING_STATUSES))
        stale_held = (Slot.is_booked.is_(True), Slot.id.not_in(occupied))
        stale_free = (Slot.is_booked.is_(False), Slot.id.in_(occupied))

        try:
            released = list(self.db.scalars(select(Slot.id).where(*stale_held)))
            held = list(self.db.scalars(select(Slot.id).where(*stale_free)))
            if released:
                self.db.execute(
                    update(Slot).where(*stale_held).values(is_booked=False)
                    .execution_options(synchronize_session=False)
                )
            if held:
                self.db.execute(
                    update(Slot).where(*stale_free).values(is_booked=True)
                    .execution_options(synchronize_session=False)
                )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if released or held:
            logger.warning('Repaired slot flags: released %s, held %s', released, held)
        return sorted(released + held)

    def _transition(self, booking_id: int, current: str, target: str) -> None:
        result = self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == current)
            .values(status=target, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidState('Booking status changed by another request.')
