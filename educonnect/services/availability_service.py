from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from educonnect.models import WEEKDAYS, TeacherAvailability, User


logger = logging.getLogger(__name__)

DEFAULT_START_TIME = '09:00'
DEFAULT_END_TIME = '17:00'
WEEKEND = ('Saturday', 'Sunday')


def _default_entries() -> list[dict]:
    return [
        {
            'day': day,
            'start_time': DEFAULT_START_TIME,
            'end_time': DEFAULT_END_TIME,
            'available': day not in WEEKEND,
        }
        for day in WEEKDAYS
    ]


def build_default_availability() -> list[TeacherAvailability]:
    return [
        TeacherAvailability(position=position, **entry)
        for position, entry in enumerate(_default_entries())
    ]


def _parse_clock(value: str) -> datetime:
    try:
        return datetime.strptime(str(value or '').strip(), '%H:%M')
    except ValueError as exc:
        raise ValueError(f'Invalid time "{value}". Use HH:MM') from exc


def availability_entries(teacher: User) -> list[dict]:
    if not teacher.availability:
        return _default_entries()
    return [
        {
            'day': row.day,
            'start_time': row.start_time,
            'end_time': row.end_time,
            'available': bool(row.available),
        }
        for row in teacher.availability
    ]


def total_weekly_hours(entries: list[dict]) -> float:
    total = 0.0
    for entry in entries:
        if not entry.get('available'):
            continue
        try:
            start = _parse_clock(entry.get('start_time'))
            end = _parse_clock(entry.get('end_time'))
        except ValueError:
            continue
        total += (end - start).total_seconds() / 3600.0
    return round(total, 2)


def get_availability(teacher: User) -> dict:
    entries = availability_entries(teacher)
    return {
        'teacher_id': teacher.id,
        'availability': entries,
        'on_leave': bool(teacher.on_leave),
        'total_weekly_hours': total_weekly_hours(entries),
    }


def validate_availability(entries: list[dict]) -> list[dict]:
    if len(entries) != len(WEEKDAYS):
        raise ValueError('Availability must contain exactly one entry per weekday')
    cleaned: list[dict] = []
    for expected_day, entry in zip(WEEKDAYS, entries):
        day = str(entry.get('day') or '').strip().capitalize()
        if day != expected_day:
            raise ValueError(f'Availability must be ordered Monday to Sunday; expected {expected_day}, got {day or "blank"}')
        start = _parse_clock(entry.get('start_time'))
        end = _parse_clock(entry.get('end_time'))
        available = bool(entry.get('available'))
        if available and end <= start:
            raise ValueError(f'{day}: end time must be after start time')
        cleaned.append(
            {
                'day': day,
                'start_time': start.strftime('%H:%M'),
                'end_time': end.strftime('%H:%M'),
                'available': available,
            }
        )
    return cleaned


def update_availability(db: Session, teacher: User, entries: list[dict]) -> dict:
    cleaned = validate_availability(entries)
    existing = {row.day: row for row in teacher.availability}
    for position, entry in enumerate(cleaned):
        row = existing.get(entry['day'])
        if row is None:
            row = TeacherAvailability(day=entry['day'])
            teacher.availability.append(row)
        row.position = position
        row.start_time = entry['start_time']
        row.end_time = entry['end_time']
        row.available = entry['available']
    teacher.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(teacher)
    logger.info(
        'teacher_availability_updated teacher_id=%s available_days=%s',
        teacher.id,
        sum(1 for entry in cleaned if entry['available']),
    )
    return get_availability(teacher)


def set_leave(db: Session, teacher: User, on_leave: bool) -> User:
    teacher.on_leave = bool(on_leave)
    db.commit()
    db.refresh(teacher)
    logger.info('teacher_leave_updated teacher_id=%s on_leave=%s', teacher.id, teacher.on_leave)
    return teacher
