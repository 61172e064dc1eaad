import itertools
import os
import time as time_module
from contextlib import contextmanager
from datetime import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from marketplace.database import Base  # noqa: E402
from marketplace.models.appointment import Appointment  # noqa: E402
from marketplace.models.appointment_period import AppointmentPeriod  # noqa: E402
from marketplace.models.service import Service  # noqa: E402
from marketplace.models.specialist import Specialist  # noqa: E402
from marketplace.models.user import User  # noqa: E402
from marketplace.scheduling.store import normalize_speciality  # noqa: E402

TABLES = [
    User.__table__,
    Service.__table__,
    Specialist.__table__,
    Appointment.__table__,
    AppointmentPeriod.__table__,
]


@pytest.fixture
def scheduling_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))


@pytest.fixture
def seeded_db(scheduling_db):
    """Haircut specialist working 09:00-17:00 with a one hour service, plus two accounts."""
    customer = User(email='customer@example.com', role='customer')
    other_customer = User(email='other@example.com', role='customer')
    stylist = User(email='stylist@example.com', role='specialist')
    haircut = Service(speciality='Haircut', duration_hours=1.0)
    scheduling_db.add_all([customer, other_customer, stylist, haircut])
    scheduling_db.flush()

    specialist = Specialist(
        user_id=stylist.id,
        name='Sam',
        speciality=' haircut ',
        opening_time=time(9, 0),
        closing_time=time(17, 0),
    )
    scheduling_db.add(specialist)
    scheduling_db.commit()

    scheduling_db.info['ids'] = {
        'customer': customer.id,
        'other_customer': other_customer.id,
        'stylist_user': stylist.id,
        'service': haircut.id,
        'specialist': specialist.id,
    }
    return scheduling_db


class InMemorySchedulingStore:
    """Dict-backed stand-in for the SQLAlchemy store."""

    def __init__(self, overlap_check_delay: float = 0.0):
        self.specialists: dict[int, Specialist] = {}
        self.services: dict[int, Service] = {}
        self.appointments: dict[int, Appointment] = {}
        self.periods: list[AppointmentPeriod] = []
        self.customers: dict[int, User] = {}
        self.overlap_check_delay = overlap_check_delay
        self._ids = itertools.count(1)

    def add_specialist(self, **fields) -> Specialist:
        specialist = Specialist(id=next(self._ids), **fields)
        self.specialists[specialist.id] = specialist
        return specialist

    def add_customer(self, customer_id: int) -> User:
        customer = User(id=customer_id, email=f'customer{customer_id}@example.com', role='customer')
        self.customers[customer_id] = customer
        return customer

    def add_service(self, **fields) -> Service:
        service = Service(id=next(self._ids), **fields)
        self.services[service.id] = service
        return service

    @contextmanager
    def transaction(self):
        appointments = dict(self.appointments)
        periods = list(self.periods)
        try:
            yield self
        except Exception:
            self.appointments = appointments
            self.periods = periods
            raise

    def get_specialist(self, specialist_id, for_update=False):
        return self.specialists.get(specialist_id)

    def get_specialist_for_user(self, user_id):
        for specialist in self.specialists.values():
            if specialist.user_id == user_id:
                return specialist
        return None

    def get_customer(self, customer_id):
        return self.customers.get(customer_id)

    def get_service(self, service_id):
        return self.services.get(service_id)

    def find_service_by_speciality(self, speciality):
        for service in self.services.values():
            if normalize_speciality(service.speciality) == normalize_speciality(speciality):
                return service
        return None

    def find_overlapping_period(self, specialist_id, start_time, end_time):
        matches = [
            period for period in self.periods
            if period.specialist_id == specialist_id
            and period.start_time < end_time
            and period.end_time > start_time
        ]
        if self.overlap_check_delay:
            time_module.sleep(self.overlap_check_delay)
        return matches[0] if matches else None

    def list_periods(self, specialist_id, range_start, range_end):
        return sorted(
            (
                period for period in self.periods
                if period.specialist_id == specialist_id
                and period.start_time < range_end
                and period.end_time > range_start
            ),
            key=lambda period: period.start_time,
        )

    def add_booking(self, appointment, period):
        appointment.id = next(self._ids)
        period.id = next(self._ids)
        period.appointment_id = appointment.id
        self.appointments[appointment.id] = appointment
        self.periods.append(period)
        return appointment

    def get_appointment(self, appointment_id):
        return self.appointments.get(appointment_id)

    def release_period(self, appointment_id):
        self.periods = [period for period in self.periods if period.appointment_id != appointment_id]

    def list_customer_appointments(self, customer_id):
        return sorted(
            (appointment for appointment in self.appointments.values() if appointment.customer_id == customer_id),
            key=lambda appointment: appointment.start_time,
        )

    def list_specialist_appointments(self, specialist_id):
        return sorted(
            (appointment for appointment in self.appointments.values() if appointment.specialist_id == specialist_id),
            key=lambda appointment: appointment.start_time,
        )


@pytest.fixture
def memory_store():
    store = InMemorySchedulingStore()
    haircut = store.add_service(speciality='Haircut', duration_hours=1.0)
    store.add_specialist(
        user_id=None,
        name='Sam',
        speciality='Haircut',
        service_id=haircut.id,
        opening_time=time(9, 0),
        closing_time=time(17, 0),
    )
    for customer_id in [1, *range(100, 108)]:
        store.add_customer(customer_id)
    return store
