"""Slot housekeeping: template generation, removal and purging.

These helpers flush but do not commit.
"""

import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from backend.core.config import SLOT_DURATION_MINUTES
from backend.core.errors import SlotInUse, SlotNotFound
from backend.models.booking import Booking
from backend.models.slot import Slot, slot_end_for

logger = logging.getLogger(__name__)


def iterate_template_starts(first_day: date, days: int, day_start: time, slots_per_day: int) -> list[datetime]:
    starts: list[datetime] = []
    for day_offset in range(days):
        current = datetime.combine(first_day + timedelta(days=day_offset), day_start)
        for _ in range(slots_per_day):
            starts.append(current)
            current += timedelta(minutes=SLOT_DURATION_MINUTES)
    return starts


def generate_slots(
    db: Session,
    first_day: date,
    days: int,
    day_start: time,
    slots_per_day: int,
    now: datetime | None = None,
) -> int:
    """Add template slots that do not exist yet and start after ``now``."""
    now = now or datetime.now()
    starts = [start for start in iterate_template_starts(first_day, days, day_start, slots_per_day) if start > now]
    if not starts:
        return 0

    existing = {
        row.start_time
        for row in db.query(Slot.start_time).filter(
            Slot.start_time >= starts[0],
            Slot.start_time <= starts[-1],
        )
    }

    created = 0
    for start in starts:
        if start in existing:
            continue
        db.add(Slot(start_time=start, end_time=slot_end_for(start), is_booked=False))
        created += 1

    db.flush()
    logger.info('Generated %d slots for %d days starting %s', created, days, first_day.isoformat())
    return created


def remove_unreferenced_slot(db: Session, slot_id: int) -> None:
    """Delete a slot in one statement, only if no booking references it."""
    result = db.execute(
        delete(Slot)
        .where(
            Slot.id == slot_id,
            Slot.id.not_in(select(Booking.slot_id).where(Booking.slot_id == slot_id)),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        if db.query(Slot.id).filter(Slot.id == slot_id).first() is None:
            raise SlotNotFound()
        raise SlotInUse('Slot is referenced by a booking and cannot be removed.')

    logger.info('Removed slot %s', slot_id)


def purge_stale_slots(db: Session, cutoff: datetime) -> int:
    """Delete slots starting before ``cutoff`` that no booking references."""
    result = db.execute(
        delete(Slot)
        .where(
            Slot.start_time < cutoff,
            Slot.id.not_in(select(Booking.slot_id)),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info('Purged %d slots starting before %s', result.rowcount, cutoff.isoformat())
    return result.rowcount
