"""Generate bookable slots for the rolling horizon and tidy old ones.

Usage:
    python -m backend.seed_slots
"""
import logging
import sys
from datetime import date, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import Base, SessionLocal, engine, ensure_booking_schema
from backend.models import booking, slot, user  # noqa: F401
from backend.services.booking_ledger import BookingLedger
from backend.services.slot_maintenance import generate_slots, purge_stale_slots

logger = logging.getLogger(__name__)


def seed(now: datetime | None = None) -> tuple[int, int, int]:
    """Return (created, purged, repaired) counts."""
    now = now or datetime.now()
    Base.metadata.create_all(bind=engine)
    ensure_booking_schema()

    db = SessionLocal()
    try:
        created = generate_slots(
            db,
            first_day=now.date(),
            days=config.SLOT_HORIZON_DAYS,
            day_start=config.SLOT_DAY_START,
            slots_per_day=config.SLOTS_PER_DAY,
            now=now,
        )
        purged = purge_stale_slots(db, now - timedelta(days=config.SLOT_RETENTION_DAYS))
        db.commit()
        repaired = BookingLedger(db).repair_slot_flags()
    except SQLAlchemyError:
        db.rollback()
        raise
    finally:
        db.close()

    return created, purged, len(repaired)


def main() -> None:
    logging.basicConfig(level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))
    try:
        config.validate_runtime_config()
        created, purged, repaired = seed()
    except (RuntimeError, SQLAlchemyError):
        logger.exception('Slot seeding failed.')
        sys.exit(1)
    print(f"Created {created} slots, purged {purged}, repaired {repaired} flags ({date.today().isoformat()}).")


if __name__ == "__main__":
    main()
