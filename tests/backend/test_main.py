from backend.main import app, root


def test_root_reports_running() -> None:
    assert root() == {'status': 'Clinic Booking API Running'}


def test_app_registers_booking_and_slot_routes() -> None:
    paths = {getattr(route, 'path', None) for route in app.routes}

    assert {
        '/api/slots',
        '/api/slots/today',
        '/api/slots/next-week',
        '/api/slots/week',
        '/api/slots/{slot_id}',
        '/api/book',
        '/api/my-bookings',
        '/api/all-bookings',
        '/api/bookings/{booking_id}',
        '/api/bookings/{booking_id}/complete',
        '/api/bookings/{booking_id}/status',
        '/auth/me',
    } <= paths
