import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from marketplace.core import config
from marketplace.core.logging_config import configure_logging
from marketplace.database import Base, engine, ensure_scheduling_schema
from marketplace.models import appointment, appointment_period, service, specialist, user  # noqa: F401
from marketplace.routes import appointment_routes, specialist_routes

app = FastAPI(title='Specialist Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'detail': jsonable_encoder(exc.errors())},
    )


@app.on_event('startup')
def initialize_database() -> None:
    configure_logging()
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_scheduling_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.get('/')
def root():
    return {'status': 'Specialist Booking API Running'}


app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(specialist_routes.router, prefix='/specialists')
