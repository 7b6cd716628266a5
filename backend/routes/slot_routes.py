from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_admin
from backend.core.config import SLOT_QUERY_MAX_DAYS
from backend.core.errors import BookingServiceError, InvalidRange, SlotExists, SlotInPast, SlotInUse
from backend.database import get_db
from backend.models.slot import Slot
from backend.models.user import User
from backend.routes.common import (
    database_unavailable,
    ensure_database_ready,
    to_http_exception,
    to_server_time,
)
from backend.services.slot_maintenance import remove_unreferenced_slot
from backend.services.slot_registry import SlotRegistry

router = APIRouter(tags=['slots'])


class FormattedSlotTime(BaseModel):
    start: str
    end: str
    date: str


class SlotResponse(BaseModel):
    id: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    is_booked: bool
    formatted_time: FormattedSlotTime


class SlotListResponse(BaseModel):
    slots: list[SlotResponse]
    count: int
    range_start: datetime
    range_end: datetime


class SlotsByDayResponse(BaseModel):
    slots_by_day: dict[str, list[SlotResponse]]
    total_slots: int
    range_start: datetime
    range_end: datetime


class CreateSlotRequest(BaseModel):
    start_time: datetime

    @field_validator('start_time')
    @classmethod
    def normalize_start_time(cls, value: datetime) -> datetime:
        return to_server_time(value).replace(second=0, microsecond=0)


def format_clock_time(value: datetime) -> str:
    return value.strftime('%I:%M %p')


def format_long_date(value: datetime) -> str:
    return f"{value.strftime('%A, %B')} {value.day}, {value.year}"


def serialize_slot(slot: Slot) -> SlotResponse:
    return SlotResponse(
        id=slot.id,
        start_time=slot.start_time,
        end_time=slot.end_time,
        duration_minutes=slot.duration_minutes,
        is_booked=slot.is_booked,
        formatted_time=FormattedSlotTime(
            start=format_clock_time(slot.start_time),
            end=format_clock_time(slot.end_time),
            date=format_long_date(slot.start_time),
        ),
    )


def group_slots_by_day(slots: list[Slot]) -> dict[str, list[SlotResponse]]:
    grouped: dict[str, list[SlotResponse]] = {}
    for slot in slots:
        grouped.setdefault(format_long_date(slot.start_time), []).append(serialize_slot(slot))
    return grouped


def current_week_range(today: date) -> tuple[datetime, datetime]:
    """Sunday-to-Sunday window containing ``today``."""
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    range_start = datetime.combine(week_start, time.min)
    return range_start, range_start + timedelta(days=7)


def validate_query_range(range_start: datetime, range_end: datetime, now: datetime) -> None:
    if range_start >= range_end:
        raise InvalidRange('From date must be before to date.')

    max_span = timedelta(days=SLOT_QUERY_MAX_DAYS)
    if range_end - range_start > max_span:
        raise InvalidRange(f'Date range cannot span more than {SLOT_QUERY_MAX_DAYS} days.')

    if range_end > now + max_span:
        raise InvalidRange(f'Cannot query slots more than {SLOT_QUERY_MAX_DAYS} days in the future.')


@router.get('/slots', response_model=SlotListResponse)
def list_available_slots(
    range_from: datetime = Query(..., alias='from'),
    range_to: datetime = Query(..., alias='to'),
    db: Session = Depends(get_db),
):
    range_start = to_server_time(range_from)
    range_end = to_server_time(range_to)

    try:
        validate_query_range(range_start, range_end, datetime.now())
    except BookingServiceError as exc:
        raise to_http_exception(exc) from exc

    ensure_database_ready()

    try:
        slots = SlotRegistry(db).list_available(range_start, range_end)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return SlotListResponse(
        slots=[serialize_slot(slot) for slot in slots],
        count=len(slots),
        range_start=range_start,
        range_end=range_end,
    )


@router.get('/slots/today', response_model=SlotListResponse)
def list_today_slots(db: Session = Depends(get_db)):
    ensure_database_ready()

    range_start = datetime.combine(date.today(), time.min)
    range_end = range_start + timedelta(days=1)

    try:
        slots = SlotRegistry(db).list_available(range_start, range_end)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return SlotListResponse(
        slots=[serialize_slot(slot) for slot in slots],
        count=len(slots),
        range_start=range_start,
        range_end=range_end,
    )


@router.get('/slots/next-week', response_model=SlotsByDayResponse)
def list_next_week_slots(db: Session = Depends(get_db)):
    ensure_database_ready()

    range_start = datetime.combine(date.today(), time.min)
    range_end = range_start + timedelta(days=SLOT_QUERY_MAX_DAYS)

    try:
        slots = SlotRegistry(db).list_available(range_start, range_end)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return SlotsByDayResponse(
        slots_by_day=group_slots_by_day(slots),
        total_slots=len(slots),
        range_start=range_start,
        range_end=range_end,
    )


@router.get('/slots/week', response_model=SlotsByDayResponse)
def list_current_week_slots(db: Session = Depends(get_db)):
    ensure_database_ready()

    range_start, range_end = current_week_range(date.today())

    try:
        slots = SlotRegistry(db).list_available(range_start, range_end)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return SlotsByDayResponse(
        slots_by_day=group_slots_by_day(slots),
        total_slots=len(slots),
        range_start=range_start,
        range_end=range_end,
    )


@router.post('/slots', response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def create_slot(
    data: CreateSlotRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if data.start_time <= datetime.now():
        raise to_http_exception(SlotInPast('Slots must start in the future.'))

    ensure_database_ready()

    try:
        slot = SlotRegistry(db).add_slot(data.start_time)
        db.commit()
        db.refresh(slot)
        return serialize_slot(slot)
    except BookingServiceError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except IntegrityError as exc:
        db.rollback()
        raise to_http_exception(SlotExists()) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/slots/{slot_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_slot(
    slot_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        remove_unreferenced_slot(db, slot_id)
        db.commit()
    except BookingServiceError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except IntegrityError as exc:
        db.rollback()
        raise to_http_exception(SlotInUse('Slot is referenced by a booking and cannot be removed.')) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
