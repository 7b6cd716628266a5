import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from backend.core.errors import SlotTaken
from backend.database import Base, build_engine
from backend.models.booking import Booking
from backend.models.slot import Slot, slot_end_for
from backend.models.user import User
from backend.services.booking_ledger import BookingLedger

NOW = datetime(2026, 1, 5, 8, 0)
CLAIMANTS = 8


@pytest.fixture
def shared_sessions(tmp_path):
    engine = build_engine(f'sqlite:///{tmp_path / "claims.db"}')
    Base.metadata.create_all(bind=engine, tables=[User.__table__, Slot.__table__, Booking.__table__])
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


def test_concurrent_claims_on_one_slot_have_exactly_one_winner(shared_sessions) -> None:
    setup = shared_sessions()
    users = [User(email=f'patient{index}@example.com', role='patient') for index in range(CLAIMANTS)]
    start = NOW.replace(hour=9)
    slot = Slot(start_time=start, end_time=slot_end_for(start), is_booked=False)
    setup.add_all(users + [slot])
    setup.commit()
    patient_ids = [user.id for user in users]
    slot_id = slot.id
    setup.close()

    barrier = threading.Barrier(CLAIMANTS)

    def attempt(patient_id: int) -> str:
        db = shared_sessions()
        try:
            ledger = BookingLedger(db, clock=lambda: NOW)
            barrier.wait()
            ledger.claim(patient_id, slot_id)
            return 'won'
        except SlotTaken:
            return 'taken'
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=CLAIMANTS) as pool:
        outcomes = list(pool.map(attempt, patient_ids))

    assert outcomes.count('won') == 1
    assert outcomes.count('taken') == CLAIMANTS - 1

    check = shared_sessions()
    try:
        bookings = check.query(Booking).filter(Booking.slot_id == slot_id).all()
        assert len(bookings) == 1
        assert bookings[0].status == 'confirmed'
        assert check.get(Slot, slot_id).is_booked is True
    finally:
        check.close()
