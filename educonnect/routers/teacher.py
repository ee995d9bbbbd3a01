from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from educonnect.core.router_guard import require_teacher
from educonnect.db import get_db
from educonnect.models import User
from educonnect.route_logging import EndpointNameRoute
from educonnect.schemas import (
    AppointmentStatusUpdate,
    AvailabilityUpdateRequest,
    LeaveUpdateRequest,
    TeacherProfileUpdate,
)
from educonnect.services.appointment_service import (
    AppointmentNotFoundError,
    AppointmentTransitionError,
    appointment_stats,
    list_appointments,
    serialize_appointment,
    update_status,
)
from educonnect.services.auth_service import DuplicateEmailError
from educonnect.services.availability_service import get_availability, set_leave, update_availability
from educonnect.services.dashboard_service import teacher_dashboard
from educonnect.services.user_service import serialize_user, update_profile


router = APIRouter(prefix='/api/teacher', tags=['Teacher'], route_class=EndpointNameRoute)


@router.get('/dashboard')
def dashboard(teacher: User = Depends(require_teacher), db: Session = Depends(get_db)):
    return teacher_dashboard(db, teacher)


@router.get('/appointments')
def appointments(
    search: str | None = Query(default=None),
    status: str | None = Query(default=None),
    when: str = Query(default='all'),
    teacher: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    try:
        rows = list_appointments(db, actor=teacher, search=search, status=status, when=when)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        'stats': appointment_stats(rows),
        'appointments': [serialize_appointment(row) for row in rows],
    }


@router.post('/appointments/{appointment_id}/status')
def appointment_status(
    appointment_id: int,
    payload: AppointmentStatusUpdate,
    teacher: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    try:
        row = update_status(db, actor=teacher, appointment_id=appointment_id, status=payload.status)
    except AppointmentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except AppointmentTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return serialize_appointment(row)


@router.get('/profile')
def get_profile(teacher: User = Depends(require_teacher)):
    return serialize_user(teacher)


@router.put('/profile')
def put_profile(
    payload: TeacherProfileUpdate,
    teacher: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    try:
        user = update_profile(db, teacher, payload.model_dump(exclude_unset=True))
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return serialize_user(user)


@router.get('/availability')
def availability(teacher: User = Depends(require_teacher)):
    return get_availability(teacher)


@router.put('/availability')
def put_availability(
    payload: AvailabilityUpdateRequest,
    teacher: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    try:
        return update_availability(db, teacher, [entry.model_dump() for entry in payload.availability])
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.put('/leave')
def put_leave(
    payload: LeaveUpdateRequest,
    teacher: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    user = set_leave(db, teacher, payload.on_leave)
    return {'teacher_id': user.id, 'on_leave': bool(user.on_leave)}
