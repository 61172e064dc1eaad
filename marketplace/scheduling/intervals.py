from datetime import date, datetime, time, timedelta

HOUR = timedelta(hours=1)


def intervals_overlap(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open ``[start, end)`` and ``[other_start, other_end)`` share at least one instant."""
    return start < other_end and other_start < end


def within_working_window(slot_time: time, opening_time: time, closing_time: time) -> bool:
    return opening_time <= slot_time < closing_time


def booking_interval(slot_date: date, slot_time: time, duration_hours: float) -> tuple[datetime, datetime]:
    start_time = datetime.combine(slot_date, slot_time)
    return start_time, start_time + timedelta(hours=duration_hours)


def iterate_hour_starts(slot_date: date, opening_time: time, closing_time: time) -> list[datetime]:
    """Whole hours of ``slot_date`` falling inside ``[opening_time, closing_time)``."""
    current = datetime.combine(slot_date, opening_time.replace(minute=0, second=0, microsecond=0))
    if current.time() < opening_time:
        current += HOUR

    day_close = datetime.combine(slot_date, closing_time)
    hours: list[datetime] = []
    while current < day_close and current.date() == slot_date:
        hours.append(current)
        current += HOUR

    return hours


def format_slot(slot_start: datetime) -> str:
    return slot_start.strftime('%H:%M')
