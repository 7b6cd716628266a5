"""Slot registry: bookable intervals and their availability flag.

The registry never commits. Whoever calls it owns the transaction, so a flag
flip can land in the same unit of work as the booking write that caused it.
"""

import logging
from datetime import datetime

from sqlalchemy import inspect, update
from sqlalchemy.orm import Session

from backend.core.errors import AlreadyHeld, SlotExists, SlotNotFound
from backend.models.slot import Slot, slot_end_for

logger = logging.getLogger(__name__)


class SlotRegistry:
    """Reads and flips slot availability inside the caller's session."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, slot_id: int) -> Slot:
        slot = self.db.get(Slot, slot_id)
        if slot is None:
            raise SlotNotFound()
        return slot

    def list_available(self, range_start: datetime, range_end: datetime) -> list[Slot]:
        """Available slots starting within ``[range_start, range_end]``, earliest first.

        Range size is the caller's concern.
        """
        return self.db.query(Slot).filter(
            Slot.start_time >= range_start,
            Slot.start_time <= range_end,
            Slot.is_booked.is_(False),
        ).order_by(Slot.start_time.asc(), Slot.id.asc()).all()

    def mark_held(self, slot_id: int) -> None:
        """Flip the slot to held with a conditional update.

        Exactly one of any number of concurrent callers sees the row change;
        the rest get ``AlreadyHeld``.
        """
        result = self.db.execute(
            update(Slot)
            .where(Slot.id == slot_id, Slot.is_booked.is_(False))
            .values(is_booked=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            self._expire_flag(slot_id)
            return

        self.get(slot_id)
        raise AlreadyHeld()

    def mark_available(self, slot_id: int) -> None:
        result = self.db.execute(
            update(Slot)
            .where(Slot.id == slot_id)
            .values(is_booked=False)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise SlotNotFound()
        self._expire_flag(slot_id)

    def add_slot(self, start_time: datetime) -> Slot:
        start_time = start_time.replace(second=0, microsecond=0)
        existing = self.db.query(Slot.id).filter(Slot.start_time == start_time).first()
        if existing:
            raise SlotExists()

        slot = Slot(start_time=start_time, end_time=slot_end_for(start_time), is_booked=False)
        self.db.add(slot)
        self.db.flush()
        logger.info('Added slot %s starting %s', slot.id, start_time.isoformat())
        return slot

    def _expire_flag(self, slot_id: int) -> None:
        key = inspect(Slot).identity_key_from_primary_key((slot_id,))
        cached = self.db.identity_map.get(key)
        if cached is not None:
            self.db.expire(cached, ['is_booked'])
