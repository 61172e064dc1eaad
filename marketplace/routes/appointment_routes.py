from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.auth.dependencies import get_current_user
from marketplace.database import ensure_scheduling_schema, get_db
from marketplace.models.user import User
from marketplace.scheduling.engine import Actor, SchedulingEngine
from marketplace.scheduling.errors import SchedulingError
from marketplace.scheduling.store import SqlAlchemySchedulingStore

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_NOTES_LENGTH = 600


class CreateAppointmentRequest(BaseModel):
    specialist_id: int = Field(alias='specialistId')
    customer_id: int = Field(alias='customerId')
    service_id: int = Field(alias='serviceId')
    date: date
    time: time
    notes: str | None = None

    class Config:
        populate_by_name = True

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: time) -> time:
        if value.tzinfo is not None:
            raise ValueError('Time must be a local time-of-day without a UTC offset.')
        return value

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class UpdateAppointmentStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Status is required.')
        return normalized


class AppointmentResponse(BaseModel):
    id: int
    specialist_id: int = Field(serialization_alias='specialistId')
    customer_id: int = Field(serialization_alias='customerId')
    service_id: int = Field(serialization_alias='serviceId')
    date: date
    time: time
    start_time: datetime = Field(serialization_alias='startTime')
    end_time: datetime = Field(serialization_alias='endTime')
    status: str
    notes: str | None = None

    class Config:
        from_attributes = True


def ensure_database_ready() -> None:
    try:
        ensure_scheduling_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and Postgres credentials.',
        ) from exc


def build_engine(db: Session) -> SchedulingEngine:
    return SchedulingEngine(SqlAlchemySchedulingStore(db))


def as_http_error(exc: SchedulingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = build_engine(db).request_booking(
            specialist_id=data.specialist_id,
            customer_id=data.customer_id,
            service_id=data.service_id,
            slot_date=data.date,
            slot_time=data.time,
            notes=data.notes,
            actor=Actor(user_id=current_user.id, role=current_user.role),
        )
    except SchedulingError as exc:
        raise as_http_error(exc) from exc

    return AppointmentResponse.model_validate(appointment)


@router.get('', response_model=list[AppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointments = build_engine(db).list_appointments(Actor(user_id=current_user.id, role=current_user.role))
    except SchedulingError as exc:
        raise as_http_error(exc) from exc

    return [AppointmentResponse.model_validate(appointment) for appointment in appointments]


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateAppointmentStatusRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = build_engine(db).update_status(
            appointment_id,
            data.status,
            Actor(user_id=current_user.id, role=current_user.role),
        )
    except SchedulingError as exc:
        raise as_http_error(exc) from exc

    return AppointmentResponse.model_validate(appointment)
