from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user, require_admin, require_patient
from backend.core.config import MAX_BOOKING_NOTES_LENGTH
from backend.core.errors import BookingServiceError
from backend.database import get_db
from backend.models.booking import Booking
from backend.models.user import User
from backend.routes.common import database_unavailable, ensure_database_ready, to_http_exception
from backend.routes.slot_routes import SlotResponse, serialize_slot
from backend.services.booking_ledger import BookingLedger

router = APIRouter(tags=['bookings'])


class BookSlotRequest(BaseModel):
    slot_id: int
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_BOOKING_NOTES_LENGTH:
            raise ValueError(f'Notes cannot exceed {MAX_BOOKING_NOTES_LENGTH} characters.')

        return normalized


class UpdateBookingStatusRequest(BaseModel):
    status: str


class PatientSummaryResponse(BaseModel):
    id: int
    name: str | None = None
    email: str | None = None
    role: str | None = None

    class Config:
        from_attributes = True


class BookingResponse(BaseModel):
    id: int
    patient_id: int
    slot_id: int
    status: str
    notes: str | None = None
    created_at: datetime
    slot: SlotResponse
    patient: PatientSummaryResponse | None = None


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    count: int


def serialize_booking(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        patient_id=booking.patient_id,
        slot_id=booking.slot_id,
        status=booking.status,
        notes=booking.notes,
        created_at=booking.created_at,
        slot=serialize_slot(booking.slot),
        patient=PatientSummaryResponse.model_validate(booking.patient) if booking.patient else None,
    )


def serialize_bookings(bookings: list[Booking]) -> BookingListResponse:
    return BookingListResponse(
        bookings=[serialize_booking(booking) for booking in bookings],
        count=len(bookings),
    )


@router.post('/book', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def book_slot(
    data: BookSlotRequest,
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        booking = BookingLedger(db).claim(current_user.id, data.slot_id, notes=data.notes)
        return serialize_booking(booking)
    except BookingServiceError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/my-bookings', response_model=BookingListResponse)
def list_my_bookings(
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return serialize_bookings(BookingLedger(db).list_for_patient(current_user.id))
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/all-bookings', response_model=BookingListResponse)
def list_all_bookings(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return serialize_bookings(BookingLedger(db).list_all())
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.delete('/bookings/{booking_id}', response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        booking = BookingLedger(db).cancel(booking_id, current_user)
        return serialize_booking(booking)
    except BookingServiceError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('/bookings/{booking_id}/complete', response_model=BookingResponse)
def complete_booking(
    booking_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        booking = BookingLedger(db).complete(booking_id, current_user)
        return serialize_booking(booking)
    except BookingServiceError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.patch('/bookings/{booking_id}/status', response_model=BookingResponse)
def update_booking_status(
    booking_id: int,
    data: UpdateBookingStatusRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        booking = BookingLedger(db).set_status(booking_id, data.status, current_user)
        return serialize_booking(booking)
    except BookingServiceError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc
