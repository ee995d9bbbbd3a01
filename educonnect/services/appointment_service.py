from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy.orm import Session

from educonnect.core.time_provider import TimeProvider, default_time_provider
from educonnect.models import Appointment, AppointmentStatus, Role, User
from educonnect.services.observability_counters import record_observability_event
from educonnect.services.settings_service import get_settings


logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    AppointmentStatus.PENDING.value: frozenset({AppointmentStatus.CONFIRMED.value, AppointmentStatus.CANCELLED.value}),
    AppointmentStatus.CONFIRMED.value: frozenset({AppointmentStatus.COMPLETED.value, AppointmentStatus.CANCELLED.value}),
    AppointmentStatus.COMPLETED.value: frozenset(),
    AppointmentStatus.CANCELLED.value: frozenset(),
}
OPEN_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)
TIME_FILTERS = ('all', 'today', 'upcoming', 'past')

_DATE_FORMATS = ('%Y-%m-%d', '%d/%m/%Y', '%m/%d/%Y')
_TIME_FORMATS = ('%H:%M', '%H:%M:%S', '%I:%M %p', '%I:%M%p')


class AppointmentNotFoundError(LookupError):
    pass


class AppointmentTransitionError(ValueError):
    pass


class BookingRejectedError(ValueError):
    """Raised when a booking request is refused (teacher on leave, open-appointment limit)."""


def is_terminal(status: str) -> bool:
    return not ALLOWED_TRANSITIONS.get(status)


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def parse_appointment_date(value: str) -> date | None:
    raw = str(value or '').strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def parse_appointment_start(date_value: str, time_value: str) -> datetime | None:
    day = parse_appointment_date(date_value)
    if day is None:
        return None
    raw_time = str(time_value or '').strip().upper()
    for fmt in _TIME_FORMATS:
        try:
            clock = datetime.strptime(raw_time, fmt).time()
        except ValueError:
            continue
        return datetime.combine(day, clock)
    return None


def serialize_appointment(row: Appointment) -> dict:
    return {
        'id': row.id,
        'student_id': row.student_id,
        'teacher_id': row.teacher_id,
        'student_name': row.student_name,
        'teacher_name': row.teacher_name,
        'date': row.date,
        'time': row.time,
        'subject': row.subject,
        'message': row.message,
        'status': row.status,
        'allowed_transitions': sorted(ALLOWED_TRANSITIONS.get(row.status, frozenset())),
        'created_at': row.created_at.isoformat() if row.created_at else None,
        'updated_at': row.updated_at.isoformat() if row.updated_at else None,
    }


def count_open_appointments(db: Session, student_id: int) -> int:
    return (
        db.query(Appointment)
        .filter(Appointment.student_id == int(student_id), Appointment.status.in_(OPEN_STATUSES))
        .count()
    )


def book_appointment(
    db: Session,
    *,
    student: User,
    teacher_id: int,
    date_value: str,
    time_value: str,
    message: str | None = None,
    subject: str | None = None,
) -> Appointment:
    """Create a pending appointment request.

    The teacher's weekly availability is descriptive only and is not consulted,
    and overlapping requests for the same teacher, date and time are all kept.
    """
    if student.role != Role.STUDENT.value:
        raise PermissionError('Only students can book appointments')

    teacher = db.query(User).filter(User.id == int(teacher_id)).first()
    if not teacher or teacher.role != Role.TEACHER.value or not teacher.approved:
        raise AppointmentNotFoundError('Teacher not found')
    if teacher.on_leave:
        raise BookingRejectedError(f'{teacher.name} is currently on leave and not accepting bookings')

    limit = int(get_settings(db).max_appointments_per_student or 0)
    if limit > 0 and count_open_appointments(db, student.id) >= limit:
        raise BookingRejectedError(f'You already have {limit} open appointments')

    row = Appointment(
        student_id=student.id,
        teacher_id=teacher.id,
        student_name=student.name or 'Student',
        teacher_name=teacher.name or 'Teacher',
        date=str(date_value).strip(),
        time=str(time_value).strip(),
        subject=(subject or '').strip() or teacher.subject or '',
        message=(message or '').strip() or None,
        status=AppointmentStatus.PENDING.value,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info(
        'appointment_booked id=%s student_id=%s teacher_id=%s date=%s time=%s',
        row.id,
        row.student_id,
        row.teacher_id,
        row.date,
        row.time,
    )
    return row


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    row = db.query(Appointment).filter(Appointment.id == int(appointment_id)).first()
    if not row:
        raise AppointmentNotFoundError('Appointment not found')
    return row


def update_status(db: Session, *, actor: User, appointment_id: int, status: str) -> Appointment:
    target = AppointmentStatus(str(status or '').strip().lower()).value
    row = get_appointment(db, appointment_id)

    if actor.role == Role.TEACHER.value:
        if row.teacher_id != actor.id:
            raise PermissionError('Appointment belongs to another teacher')
    elif actor.role != Role.ADMIN.value:
        raise PermissionError('Only teachers and admins can change appointment status')

    current = row.status
    if not can_transition(current, target):
        record_observability_event('appointment_transition_rejected')
        logger.info(
            'appointment_transition_rejected id=%s from=%s to=%s actor_id=%s',
            row.id,
            current,
            target,
            actor.id,
        )
        if is_terminal(current):
            raise AppointmentTransitionError(f'Appointment is already {current} and can no longer change')
        raise AppointmentTransitionError(f'Cannot change appointment from {current} to {target}')

    row.status = target
    db.commit()
    db.refresh(row)
    logger.info(
        'appointment_status_changed id=%s from=%s to=%s actor_id=%s actor_role=%s',
        row.id,
        current,
        target,
        actor.id,
        actor.role,
    )
    return row


def _matches_time_filter(row: Appointment, when: str, now: datetime) -> bool:
    if when == 'today':
        day = parse_appointment_date(row.date)
        return day is not None and day == now.date()
    start = parse_appointment_start(row.date, row.time)
    if start is None:
        return False
    if when == 'upcoming':
        return start > now
    return start < now


def list_appointments(
    db: Session,
    *,
    actor: User,
    search: str | None = None,
    status: str | None = None,
    when: str = 'all',
    time_provider: TimeProvider = default_time_provider,
) -> list[Appointment]:
    when_value = (when or 'all').strip().lower()
    if when_value not in TIME_FILTERS:
        raise ValueError('Date filter must be one of: all, today, upcoming, past')

    query = db.query(Appointment)
    if actor.role == Role.TEACHER.value:
        query = query.filter(Appointment.teacher_id == actor.id)
    elif actor.role == Role.STUDENT.value:
        query = query.filter(Appointment.student_id == actor.id)
    status_value = (status or 'all').strip().lower()
    if status_value != 'all':
        query = query.filter(Appointment.status == AppointmentStatus(status_value).value)
    rows = query.order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()

    term = (search or '').strip().lower()
    if term:
        rows = [
            row
            for row in rows
            if term in (row.student_name or '').lower()
            or term in (row.teacher_name or '').lower()
            or term in (row.subject or '').lower()
        ]
    if when_value != 'all':
        now = time_provider.local_naive_now()
        rows = [row for row in rows if _matches_time_filter(row, when_value, now)]
    return rows


def appointment_stats(rows: list[Appointment]) -> dict:
    stats = {'total': len(rows)}
    for status in AppointmentStatus:
        stats[status.value] = sum(1 for row in rows if row.status == status.value)
    return stats
