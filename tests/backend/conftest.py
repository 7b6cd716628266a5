import os
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base  # noqa: E402
from backend.models.booking import Booking  # noqa: E402
from backend.models.slot import Slot, slot_end_for  # noqa: E402
from backend.models.user import ROLE_ADMIN, ROLE_PATIENT, User  # noqa: E402

TABLES = [User.__table__, Slot.__table__, Booking.__table__]


@pytest.fixture
def booking_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def make_user(booking_db):
    def _make_user(email: str, role: str = ROLE_PATIENT, name: str | None = None) -> User:
        user = User(email=email, name=name or email.split('@')[0].title(), role=role)
        booking_db.add(user)
        booking_db.commit()
        booking_db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def patient(make_user) -> User:
    return make_user('patient@example.com')


@pytest.fixture
def other_patient(make_user) -> User:
    return make_user('other@example.com')


@pytest.fixture
def admin(make_user) -> User:
    return make_user('admin@example.com', role=ROLE_ADMIN)


@pytest.fixture
def make_slot(booking_db):
    def _make_slot(start_time: datetime, is_booked: bool = False) -> Slot:
        slot = Slot(start_time=start_time, end_time=slot_end_for(start_time), is_booked=is_booked)
        booking_db.add(slot)
        booking_db.commit()
        booking_db.refresh(slot)
        return slot

    return _make_slot


@pytest.fixture
def future_slot(make_slot) -> Slot:
    start = (datetime.now() + timedelta(days=1)).replace(hour=10, minute=0, second=0, microsecond=0)
    return make_slot(start)
