"""Typed failures raised by the slot registry and booking ledger.

Every failure carries a stable ``code`` so the HTTP layer can map it to a
status and a client can branch on it without parsing messages.
"""


class BookingServiceError(Exception):
    code = 'BOOKING_SERVICE_ERROR'
    message = 'Booking service error.'

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class NotFound(BookingServiceError):
    code = 'NOT_FOUND'
    message = 'Resource not found.'


class StateConflict(BookingServiceError):
    code = 'STATE_CONFLICT'
    message = 'Request conflicts with the current state.'


class ValidationFailure(BookingServiceError):
    code = 'VALIDATION_ERROR'
    message = 'Invalid request.'


class SlotNotFound(NotFound):
    code = 'SLOT_NOT_FOUND'
    message = 'Time slot not found.'


class BookingNotFound(NotFound):
    code = 'BOOKING_NOT_FOUND'
    message = 'Booking not found.'


class AlreadyHeld(StateConflict):
    code = 'ALREADY_HELD'
    message = 'This time slot is already held.'


class SlotTaken(StateConflict):
    code = 'SLOT_TAKEN'
    message = 'This time slot is already booked.'


class InvalidState(StateConflict):
    code = 'INVALID_STATE'
    message = 'Booking cannot change from its current status.'


class SlotExists(StateConflict):
    code = 'SLOT_EXISTS'
    message = 'A slot already starts at this time.'


class SlotInUse(StateConflict):
    code = 'SLOT_IN_USE'
    message = 'Slot is referenced by a booking.'


class AccessDenied(BookingServiceError):
    code = 'ACCESS_DENIED'
    message = 'You can only manage your own bookings.'


class SlotInPast(ValidationFailure):
    code = 'SLOT_IN_PAST'
    message = 'Cannot book slots in the past.'


class InvalidStatus(ValidationFailure):
    code = 'INVALID_STATUS'
    message = 'Invalid status. Must be one of: confirmed, cancelled, completed.'


class InvalidRange(ValidationFailure):
    code = 'INVALID_RANGE'
    message = 'Invalid date range.'
