import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from marketplace.core import config
from marketplace.models.appointment import Appointment
from marketplace.models.appointment_period import AppointmentPeriod
from marketplace.models.service import Service
from marketplace.models.specialist import Specialist
from marketplace.scheduling.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from marketplace.scheduling.intervals import (
    HOUR,
    booking_interval,
    format_slot,
    intervals_overlap,
    iterate_hour_starts,
    within_working_window,
)
from marketplace.scheduling.locks import SpecialistLockRegistry
from marketplace.scheduling.store import SchedulingStore

logger = logging.getLogger(__name__)

PENDING = 'pending'
CONFIRMED = 'confirmed'
CANCELLED = 'cancelled'
COMPLETED = 'completed'

STATUS_TRANSITIONS = {
    PENDING: {CONFIRMED, CANCELLED},
    CONFIRMED: {COMPLETED, CANCELLED},
    COMPLETED: set(),
    CANCELLED: set(),
}
STATUS_ALIASES = {'canceled': CANCELLED, 'booked': CONFIRMED}

CUSTOMER_ROLE = 'customer'
SPECIALIST_ROLE = 'specialist'
ROLE_TARGET_STATUSES = {
    CUSTOMER_ROLE: {CANCELLED},
    SPECIALIST_ROLE: {CONFIRMED, CANCELLED, COMPLETED},
}

# One lock registry per process; every engine instance shares it.
specialist_locks = SpecialistLockRegistry()


@dataclass
class Actor:
    user_id: int
    role: str


@dataclass
class Availability:
    specialist_id: int
    date: date
    available_slots: list[str] = field(default_factory=list)


def _require(value, field_name: str):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f'{field_name} is required.')
    return value


class SchedulingEngine:
    """Admits booking requests for specialists without ever double-booking them."""

    def __init__(
        self,
        store: SchedulingStore,
        locks: SpecialistLockRegistry | None = None,
        initial_status: str | None = None,
    ):
        self.store = store
        self.locks = locks or specialist_locks
        self.initial_status = initial_status or config.BOOKING_INITIAL_STATUS
        if self.initial_status not in (PENDING, CONFIRMED):
            raise ValueError(f'Unsupported initial status: {self.initial_status}')

    def resolve_service(self, specialist: Specialist) -> Service:
        """Duration row for the specialist, by id reference first, then by speciality name."""
        if specialist.service_id is not None:
            service = self.store.get_service(specialist.service_id)
            if service is not None:
                return service

        if specialist.speciality:
            service = self.store.find_service_by_speciality(specialist.speciality)
            if service is not None:
                return service

        raise ValidationError('No service duration is configured for this speciality.')

    def request_booking(
        self,
        specialist_id: int,
        customer_id: int,
        service_id: int,
        slot_date: date,
        slot_time: time,
        notes: str | None = None,
        actor: Actor | None = None,
    ) -> Appointment:
        _require(specialist_id, 'specialistId')
        _require(customer_id, 'customerId')
        if actor is not None:
            if actor.role != CUSTOMER_ROLE:
                raise PermissionDeniedError('Only customers can book appointments.')
            if actor.user_id != customer_id:
                raise PermissionDeniedError('Customers can only book appointments for themselves.')
        _require(service_id, 'serviceId')
        _require(slot_date, 'date')
        _require(slot_time, 'time')
        if slot_time.tzinfo is not None:
            raise ValidationError('time must not carry a UTC offset.')

        with self.locks.hold(specialist_id), self.store.transaction():
            specialist = self.store.get_specialist(specialist_id, for_update=True)
            if specialist is None:
                raise NotFoundError('Specialist not found.')

            if not within_working_window(slot_time, specialist.opening_time, specialist.closing_time):
                raise ValidationError('Requested time is outside the specialist\'s working hours.')

            if self.store.get_service(service_id) is None:
                raise ValidationError('Unknown service.')

            customer = self.store.get_customer(customer_id)
            if customer is None:
                raise ValidationError('Unknown customer.')

            duration = self.resolve_service(specialist)
            start_time, end_time = booking_interval(slot_date, slot_time, duration.duration_hours)

            if self.store.find_overlapping_period(specialist.id, start_time, end_time) is not None:
                logger.info(
                    'Rejected booking for specialist %s at %s: slot taken.', specialist.id, start_time,
                )
                raise ConflictError('Time slot unavailable.')

            appointment = Appointment(
                specialist_id=specialist.id,
                customer_id=customer_id,
                service_id=service_id,
                date=slot_date,
                time=slot_time,
                start_time=start_time,
                end_time=end_time,
                status=self.initial_status,
                notes=notes,
            )
            period = AppointmentPeriod(
                specialist_id=specialist.id,
                start_time=start_time,
                end_time=end_time,
            )
            self.store.add_booking(appointment, period)
            appointment_id = appointment.id

        logger.info(
            'Booked appointment %s for specialist %s from %s to %s.',
            appointment_id, specialist_id, start_time, end_time,
        )
        return appointment

    def get_availability(self, specialist_id: int, slot_date: date) -> Availability:
        _require(specialist_id, 'specialistId')
        _require(slot_date, 'date')

        with self.store.transaction():
            specialist = self.store.get_specialist(specialist_id)
            if specialist is None:
                raise NotFoundError('Specialist not found.')

            day_start = datetime.combine(slot_date, time.min)
            periods = self.store.list_periods(specialist.id, day_start, day_start + timedelta(days=1))
            booked = [(period.start_time, period.end_time) for period in periods]
            hours = iterate_hour_starts(slot_date, specialist.opening_time, specialist.closing_time)

        available_slots = [
            format_slot(hour_start)
            for hour_start in hours
            if not any(
                intervals_overlap(hour_start, hour_start + HOUR, booked_start, booked_end)
                for booked_start, booked_end in booked
            )
        ]
        return Availability(specialist_id=specialist_id, date=slot_date, available_slots=available_slots)

    def update_status(self, appointment_id: int, new_status: str, actor: Actor) -> Appointment:
        new_status = (new_status or '').strip().lower()
        new_status = STATUS_ALIASES.get(new_status, new_status)
        if new_status not in STATUS_TRANSITIONS:
            raise ValidationError('Invalid status update.')

        with self.store.transaction():
            appointment = self.store.get_appointment(appointment_id)
            if appointment is None:
                raise NotFoundError('Appointment not found.')
            specialist_id = appointment.specialist_id

        allowed_targets = ROLE_TARGET_STATUSES.get(actor.role)
        if allowed_targets is None:
            raise PermissionDeniedError('Unknown account role.')
        if new_status not in allowed_targets:
            raise PermissionDeniedError(f'A {actor.role} cannot mark an appointment {new_status}.')

        with self.locks.hold(specialist_id), self.store.transaction():
            appointment = self.store.get_appointment(appointment_id)
            if appointment is None:
                raise NotFoundError('Appointment not found.')
            self._check_owner(appointment, actor)

            if new_status not in STATUS_TRANSITIONS.get(appointment.status, set()):
                raise ValidationError(
                    f'Cannot change an appointment from {appointment.status} to {new_status}.'
                )

            appointment.status = new_status
            if new_status == CANCELLED:
                self.store.release_period(appointment.id)

        logger.info('Appointment %s is now %s.', appointment_id, new_status)
        return appointment

    def list_appointments(self, actor: Actor) -> list[Appointment]:
        with self.store.transaction():
            if actor.role == SPECIALIST_ROLE:
                specialist = self.store.get_specialist_for_user(actor.user_id)
                if specialist is None:
                    raise NotFoundError('Specialist profile not found.')
                return self.store.list_specialist_appointments(specialist.id)

            if actor.role == CUSTOMER_ROLE:
                return self.store.list_customer_appointments(actor.user_id)

        raise PermissionDeniedError('Unknown account role.')

    def _check_owner(self, appointment: Appointment, actor: Actor) -> None:
        if actor.role == CUSTOMER_ROLE:
            if appointment.customer_id != actor.user_id:
                raise PermissionDeniedError('Only the customer who booked this appointment can cancel it.')
            return

        specialist = self.store.get_specialist_for_user(actor.user_id)
        if specialist is None:
            raise NotFoundError('Specialist profile not found.')
        if appointment.specialist_id != specialist.id:
            raise PermissionDeniedError('Only the booked specialist can update this appointment.')
