from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from educonnect.core.router_guard import require_admin
from educonnect.db import get_db
from educonnect.models import User
from educonnect.route_logging import EndpointNameRoute
from educonnect.schemas import AppointmentStatusUpdate, LeaveUpdateRequest, TeacherCreateRequest
from educonnect.services.appointment_service import (
    AppointmentNotFoundError,
    AppointmentTransitionError,
    appointment_stats,
    list_appointments,
    serialize_appointment,
    update_status,
)
from educonnect.services.auth_service import DuplicateEmailError
from educonnect.services.dashboard_service import admin_dashboard
from educonnect.services.user_service import (
    ApprovalStateError,
    UserNotFoundError,
    add_teacher,
    approve_user,
    delete_user,
    list_users,
    pending_approvals,
    reject_user,
    serialize_user,
    set_teacher_leave,
)


router = APIRouter(prefix='/api/admin', tags=['Admin'], route_class=EndpointNameRoute)
logger = logging.getLogger(__name__)


@router.get('/dashboard')
def dashboard(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    return admin_dashboard(db)


@router.get('/users')
def users(
    role: str | None = Query(default=None),
    status: str = Query(default='all'),
    search: str | None = Query(default=None),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        rows = list_users(db, role=role, status=status, search=search)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [serialize_user(row) for row in rows]


@router.get('/users/pending')
def users_pending(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [serialize_user(row) for row in pending_approvals(db)]


@router.post('/users/{user_id}/approve')
def approve(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        user = approve_user(db, user_id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    logger.info('admin_action action=approve admin_id=%s user_id=%s', admin.id, user.id)
    return {'ok': True, 'user': serialize_user(user)}


@router.post('/users/{user_id}/reject')
def reject(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        removed_id = reject_user(db, user_id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ApprovalStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    logger.info('admin_action action=reject admin_id=%s user_id=%s', admin.id, removed_id)
    return {'ok': True, 'deleted_user_id': removed_id}


@router.delete('/users/{user_id}')
def remove(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        removed_id = delete_user(db, user_id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info('admin_action action=delete admin_id=%s user_id=%s', admin.id, removed_id)
    return {'ok': True, 'deleted_user_id': removed_id}


@router.post('/teachers', status_code=201)
def create_teacher(payload: TeacherCreateRequest, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        teacher, password = add_teacher(
            db,
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            subject=payload.subject,
            experience=payload.experience,
            qualification=payload.qualification,
            temp_password=payload.temp_password,
        )
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {'ok': True, 'teacher': serialize_user(teacher), 'temporary_password': password}


@router.put('/teachers/{teacher_id}/leave')
def teacher_leave(
    teacher_id: int,
    payload: LeaveUpdateRequest,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        teacher = set_teacher_leave(db, teacher_id, payload.on_leave)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return serialize_user(teacher)


@router.get('/appointments')
def appointments(
    search: str | None = Query(default=None),
    status: str | None = Query(default=None),
    when: str = Query(default='all'),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        rows = list_appointments(db, actor=admin, search=search, status=status, when=when)
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
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        row = update_status(db, actor=admin, appointment_id=appointment_id, status=payload.status)
    except AppointmentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except AppointmentTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return serialize_appointment(row)
