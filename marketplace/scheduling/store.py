"""Persistence port used by the scheduling engine.

``SchedulingStore`` describes everything the engine needs from storage. The
SQLAlchemy implementation below is what the API wires in; tests substitute an
in-memory implementation.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Protocol

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.models.appointment import Appointment
from marketplace.models.appointment_period import AppointmentPeriod
from marketplace.models.service import Service
from marketplace.models.specialist import Specialist
from marketplace.models.user import User
from marketplace.scheduling.errors import ConflictError, StorageError

logger = logging.getLogger(__name__)

CUSTOMER_ROLE = 'customer'
NO_OVERLAP_CONSTRAINT = 'appointment_periods_no_overlap'
STORAGE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'


class SchedulingStore(Protocol):
    def transaction(self): ...

    def get_specialist(self, specialist_id: int, for_update: bool = False) -> Specialist | None: ...

    def get_specialist_for_user(self, user_id: int) -> Specialist | None: ...

    def get_customer(self, customer_id: int) -> User | None: ...

    def get_service(self, service_id: int) -> Service | None: ...

    def find_service_by_speciality(self, speciality: str) -> Service | None: ...

    def find_overlapping_period(
        self, specialist_id: int, start_time: datetime, end_time: datetime
    ) -> AppointmentPeriod | None: ...

    def list_periods(
        self, specialist_id: int, range_start: datetime, range_end: datetime
    ) -> list[AppointmentPeriod]: ...

    def add_booking(self, appointment: Appointment, period: AppointmentPeriod) -> Appointment: ...

    def get_appointment(self, appointment_id: int) -> Appointment | None: ...

    def release_period(self, appointment_id: int) -> None: ...

    def list_customer_appointments(self, customer_id: int) -> list[Appointment]: ...

    def list_specialist_appointments(self, specialist_id: int) -> list[Appointment]: ...


def normalize_speciality(value: str | None) -> str:
    return (value or '').strip().lower()


class SqlAlchemySchedulingStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit everything done inside the block, or roll all of it back."""
        try:
            yield self.db
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if NO_OVERLAP_CONSTRAINT in str(exc.orig):
                raise ConflictError('Time slot unavailable.') from exc
            logger.exception('Booking insert violated a database constraint.')
            raise StorageError(STORAGE_UNAVAILABLE) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Scheduling transaction failed.')
            raise StorageError(STORAGE_UNAVAILABLE) from exc
        except Exception:
            self.db.rollback()
            raise

    def get_specialist(self, specialist_id: int, for_update: bool = False) -> Specialist | None:
        query = self.db.query(Specialist).filter(Specialist.id == specialist_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_specialist_for_user(self, user_id: int) -> Specialist | None:
        return self.db.query(Specialist).filter(Specialist.user_id == user_id).first()

    def get_customer(self, customer_id: int) -> User | None:
        return self.db.query(User).filter(
            User.id == customer_id,
            User.role == CUSTOMER_ROLE,
        ).first()

    def get_service(self, service_id: int) -> Service | None:
        return self.db.query(Service).filter(Service.id == service_id).first()

    def find_service_by_speciality(self, speciality: str) -> Service | None:
        return self.db.query(Service).filter(
            func.lower(func.trim(Service.speciality)) == normalize_speciality(speciality),
        ).first()

    def find_overlapping_period(
        self, specialist_id: int, start_time: datetime, end_time: datetime
    ) -> AppointmentPeriod | None:
        return self.db.query(AppointmentPeriod).filter(
            AppointmentPeriod.specialist_id == specialist_id,
            AppointmentPeriod.start_time < end_time,
            AppointmentPeriod.end_time > start_time,
        ).first()

    def list_periods(
        self, specialist_id: int, range_start: datetime, range_end: datetime
    ) -> list[AppointmentPeriod]:
        return self.db.query(AppointmentPeriod).filter(
            AppointmentPeriod.specialist_id == specialist_id,
            AppointmentPeriod.start_time < range_end,
            AppointmentPeriod.end_time > range_start,
        ).order_by(AppointmentPeriod.start_time.asc()).all()

    def add_booking(self, appointment: Appointment, period: AppointmentPeriod) -> Appointment:
        self.db.add(appointment)
        self.db.flush()
        period.appointment_id = appointment.id
        self.db.add(period)
        self.db.flush()
        return appointment

    def get_appointment(self, appointment_id: int) -> Appointment | None:
        return self.db.query(Appointment).filter(Appointment.id == appointment_id).first()

    def release_period(self, appointment_id: int) -> None:
        self.db.query(AppointmentPeriod).filter(
            AppointmentPeriod.appointment_id == appointment_id,
        ).delete(synchronize_session=False)

    def list_customer_appointments(self, customer_id: int) -> list[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.customer_id == customer_id,
        ).order_by(Appointment.start_time.asc()).all()

    def list_specialist_appointments(self, specialist_id: int) -> list[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.specialist_id == specialist_id,
        ).order_by(Appointment.start_time.asc()).all()
