import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import Base, SessionLocal, engine, ensure_booking_schema
from backend.models import booking, slot, user  # noqa: F401
from backend.routes import auth_routes, booking_routes, slot_routes
from backend.services.booking_ledger import BookingLedger

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Clinic Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')
        return

    db = SessionLocal()
    try:
        repaired = BookingLedger(db).repair_slot_flags()
        if repaired:
            logger.info('Startup repair corrected %d slot flags', len(repaired))
    except SQLAlchemyError:
        logger.exception('Slot flag repair failed at startup.')
    finally:
        db.close()


@app.get('/')
def root():
    return {'status': 'Clinic Booking API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(slot_routes.router, prefix='/api')
app.include_router(booking_routes.router, prefix='/api')
