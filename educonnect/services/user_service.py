from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from educonnect.models import Role, User
from educonnect.services.auth_service import (
    DUPLICATE_EMAIL_MESSAGE,
    DuplicateEmailError,
    create_user,
    find_user_by_email,
    generate_temporary_password,
    normalize_email,
)
from educonnect.services.availability_service import availability_entries


logger = logging.getLogger(__name__)

USER_STATUS_FILTERS = ('all', 'approved', 'pending')


class UserNotFoundError(LookupError):
    pass


class ApprovalStateError(ValueError):
    """Raised when an approval-workflow action does not apply to the user's current state."""


def serialize_user(user: User) -> dict:
    payload = {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'phone': user.phone,
        'role': user.role,
        'approved': bool(user.approved),
        'created_at': user.created_at.isoformat() if user.created_at else None,
    }
    if user.role == Role.TEACHER.value:
        payload.update(
            {
                'subject': user.subject,
                'experience': user.experience,
                'qualification': user.qualification,
                'bio': user.bio,
                'on_leave': bool(user.on_leave),
                'availability': availability_entries(user),
            }
        )
    return payload


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == int(user_id)).first()
    if not user:
        raise UserNotFoundError('User not found')
    return user


def get_teacher(db: Session, teacher_id: int) -> User:
    user = get_user(db, teacher_id)
    if user.role != Role.TEACHER.value:
        raise UserNotFoundError('Teacher not found')
    return user


def _matches(user: User, term: str, fields: tuple[str, ...]) -> bool:
    return any(term in str(getattr(user, field) or '').lower() for field in fields)


def list_users(
    db: Session,
    *,
    role: str | None = None,
    status: str = 'all',
    search: str | None = None,
) -> list[User]:
    status_value = (status or 'all').strip().lower()
    if status_value not in USER_STATUS_FILTERS:
        raise ValueError('Status filter must be one of: all, approved, pending')

    query = db.query(User)
    if role:
        query = query.filter(User.role == Role(role.strip().lower()).value)
    if status_value == 'approved':
        query = query.filter(User.approved.is_(True))
    elif status_value == 'pending':
        query = query.filter(User.approved.is_(False))
    rows = query.order_by(User.created_at.desc(), User.id.desc()).all()

    term = (search or '').strip().lower()
    if term:
        rows = [row for row in rows if _matches(row, term, ('name', 'email', 'subject'))]
    return rows


def pending_approvals(db: Session) -> list[User]:
    return (
        db.query(User)
        .filter(User.approved.is_(False), User.role != Role.ADMIN.value)
        .order_by(User.created_at.asc(), User.id.asc())
        .all()
    )


def approve_user(db: Session, user_id: int) -> User:
    user = get_user(db, user_id)
    if user.approved:
        return user
    user.approved = True
    db.commit()
    db.refresh(user)
    logger.info('user_approved user_id=%s role=%s', user.id, user.role)
    return user


def reject_user(db: Session, user_id: int) -> int:
    """Reject a registration: the user row is deleted outright, nothing is kept."""
    user = get_user(db, user_id)
    if user.role == Role.ADMIN.value:
        raise ApprovalStateError('Admin accounts cannot be rejected')
    if user.approved:
        raise ApprovalStateError('User is already approved; delete the account instead')
    removed_id = user.id
    db.delete(user)
    db.commit()
    logger.info('user_rejected user_id=%s', removed_id)
    return removed_id


def delete_user(db: Session, user_id: int) -> int:
    user = get_user(db, user_id)
    if user.role not in (Role.STUDENT.value, Role.TEACHER.value):
        raise ValueError('Only student and teacher accounts can be deleted')
    removed_id = user.id
    removed_role = user.role
    db.delete(user)
    db.commit()
    logger.info('user_deleted user_id=%s role=%s', removed_id, removed_role)
    return removed_id


def add_teacher(
    db: Session,
    *,
    name: str,
    email: str,
    subject: str,
    phone: str = '',
    experience: str = '',
    qualification: str = '',
    temp_password: str | None = None,
) -> tuple[User, str]:
    password = temp_password or generate_temporary_password()
    teacher = create_user(
        db,
        name=name,
        email=email,
        password=password,
        role=Role.TEACHER.value,
        approved=True,
        phone=phone,
        subject=subject,
        experience=experience,
        qualification=qualification,
    )
    logger.info('teacher_added_by_admin teacher_id=%s', teacher.id)
    return teacher, password


def set_teacher_leave(db: Session, teacher_id: int, on_leave: bool) -> User:
    teacher = get_teacher(db, teacher_id)
    teacher.on_leave = bool(on_leave)
    db.commit()
    db.refresh(teacher)
    logger.info('teacher_leave_set_by_admin teacher_id=%s on_leave=%s', teacher.id, teacher.on_leave)
    return teacher


def update_profile(db: Session, user: User, changes: dict) -> User:
    email = changes.get('email')
    if email is not None:
        clean_email = normalize_email(email)
        if clean_email != user.email:
            existing = find_user_by_email(db, clean_email)
            if existing and existing.id != user.id:
                raise DuplicateEmailError(DUPLICATE_EMAIL_MESSAGE)
            user.email = clean_email

    editable = ('name', 'phone')
    if user.role == Role.TEACHER.value:
        editable += ('subject', 'experience', 'qualification', 'bio')
    for field in editable:
        value = changes.get(field)
        if value is None:
            continue
        setattr(user, field, value.strip() if isinstance(value, str) and field != 'bio' else value)
    db.commit()
    db.refresh(user)
    logger.info('user_profile_updated user_id=%s', user.id)
    return user


def approved_teachers(
    db: Session,
    *,
    search: str | None = None,
    subject: str | None = None,
) -> list[User]:
    rows = (
        db.query(User)
        .filter(User.role == Role.TEACHER.value, User.approved.is_(True))
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )
    term = (search or '').strip().lower()
    if term:
        rows = [row for row in rows if _matches(row, term, ('name', 'subject', 'qualification'))]
    subject_term = (subject or '').strip().lower()
    if subject_term and subject_term != 'all':
        rows = [row for row in rows if subject_term in (row.subject or '').lower()]
    return rows


def teacher_subjects(teachers: list[User]) -> list[str]:
    return sorted({row.subject for row in teachers if row.subject})
