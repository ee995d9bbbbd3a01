from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from educonnect.core.router_guard import require_student
from educonnect.db import get_db
from educonnect.models import User
from educonnect.route_logging import EndpointNameRoute
from educonnect.schemas import AppointmentCreateRequest
from educonnect.services.appointment_service import (
    AppointmentNotFoundError,
    BookingRejectedError,
    appointment_stats,
    book_appointment,
    list_appointments,
    serialize_appointment,
)
from educonnect.services.dashboard_service import student_dashboard
from educonnect.services.user_service import (
    UserNotFoundError,
    approved_teachers,
    get_teacher,
    serialize_user,
    teacher_subjects,
)


router = APIRouter(prefix='/api/student', tags=['Student'], route_class=EndpointNameRoute)


@router.get('/dashboard')
def dashboard(student: User = Depends(require_student), db: Session = Depends(get_db)):
    return student_dashboard(db, student)


@router.get('/teachers')
def teachers(
    search: str | None = Query(default=None),
    subject: str | None = Query(default=None),
    _: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    rows = approved_teachers(db, search=search, subject=subject)
    return {
        'subjects': teacher_subjects(approved_teachers(db)),
        'teachers': [serialize_user(row) for row in rows],
    }


@router.get('/teachers/{teacher_id}')
def teacher_detail(teacher_id: int, _: User = Depends(require_student), db: Session = Depends(get_db)):
    try:
        teacher = get_teacher(db, teacher_id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if not teacher.approved:
        raise HTTPException(status_code=404, detail='Teacher not found')
    return serialize_user(teacher)


@router.post('/appointments', status_code=201)
def create_appointment(
    payload: AppointmentCreateRequest,
    student: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    try:
        row = book_appointment(
            db,
            student=student,
            teacher_id=payload.teacher_id,
            date_value=payload.date,
            time_value=payload.time,
            message=payload.message,
            subject=payload.subject,
        )
    except AppointmentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except BookingRejectedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    return serialize_appointment(row)


@router.get('/appointments')
def appointments(
    search: str | None = Query(default=None),
    status: str | None = Query(default=None),
    when: str = Query(default='all'),
    student: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    try:
        rows = list_appointments(db, actor=student, search=search, status=status, when=when)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        'stats': appointment_stats(rows),
        'appointments': [serialize_appointment(row) for row in rows],
    }
