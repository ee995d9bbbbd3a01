from __future__ import annotations

from sqlalchemy.orm import Session

from educonnect.core.time_provider import TimeProvider, default_time_provider
from educonnect.models import Appointment, AppointmentStatus, Role, User
from educonnect.services.appointment_service import (
    appointment_stats,
    list_appointments,
    parse_appointment_date,
    parse_appointment_start,
    serialize_appointment,
)
from educonnect.services.message_service import unread_count
from educonnect.services.observability_counters import observability_snapshot
from educonnect.services.user_service import approved_teachers, pending_approvals, serialize_user


RECENT_LIMIT = 5


def admin_dashboard(db: Session) -> dict:
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    appointments = db.query(Appointment).order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()
    pending = pending_approvals(db)
    return {
        'stats': {
            'total_users': len(users),
            'total_students': sum(1 for row in users if row.role == Role.STUDENT.value),
            'total_teachers': sum(1 for row in users if row.role == Role.TEACHER.value),
            'pending_approvals': len(pending),
            'total_appointments': len(appointments),
            'pending_appointments': sum(1 for row in appointments if row.status == AppointmentStatus.PENDING.value),
            'confirmed_appointments': sum(1 for row in appointments if row.status == AppointmentStatus.CONFIRMED.value),
        },
        'pending_users': [serialize_user(row) for row in pending],
        'recent_users': [serialize_user(row) for row in users[:RECENT_LIMIT]],
        'recent_appointments': [serialize_appointment(row) for row in appointments[:RECENT_LIMIT]],
        'observability': observability_snapshot(),
    }


def teacher_dashboard(db: Session, teacher: User, *, time_provider: TimeProvider = default_time_provider) -> dict:
    rows = list_appointments(db, actor=teacher)
    today = time_provider.today()
    stats = appointment_stats(rows)
    stats['unread_messages'] = unread_count(db, teacher)
    return {
        'teacher': serialize_user(teacher),
        'stats': stats,
        'pending_appointments': [
            serialize_appointment(row) for row in rows if row.status == AppointmentStatus.PENDING.value
        ],
        'today_appointments': [
            serialize_appointment(row)
            for row in rows
            if parse_appointment_date(row.date) == today and row.status != AppointmentStatus.CANCELLED.value
        ],
    }


def student_dashboard(db: Session, student: User, *, time_provider: TimeProvider = default_time_provider) -> dict:
    rows = list_appointments(db, actor=student)
    teachers = approved_teachers(db)
    now = time_provider.local_naive_now()
    upcoming = []
    for row in rows:
        if row.status not in (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value):
            continue
        start = parse_appointment_start(row.date, row.time)
        if start is not None and start > now:
            upcoming.append((start, row))
    upcoming.sort(key=lambda item: item[0])
    stats = appointment_stats(rows)
    stats['available_teachers'] = sum(1 for row in teachers if not row.on_leave)
    stats['unread_messages'] = unread_count(db, student)
    return {
        'student': serialize_user(student),
        'stats': stats,
        'upcoming_appointments': [serialize_appointment(row) for _, row in upcoming],
    }
