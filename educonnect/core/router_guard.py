from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from educonnect.db import get_db
from educonnect.models import Role, User
from educonnect.services.auth_service import validate_session_token
from educonnect.services.settings_service import get_settings


def resolve_token(request: Request) -> str | None:
    token = request.cookies.get('auth_session')
    if token:
        return token
    authorization = request.headers.get('authorization', '')
    if authorization.lower().startswith('bearer '):
        return authorization[7:].strip()
    return None


def _epoch_seconds(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def require_auth_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the session to a live user row; role and approval are read from storage, not the token."""
    session = validate_session_token(resolve_token(request), db=db)
    if not session:
        raise HTTPException(status_code=401, detail='Unauthorized')
    user_id = int(session.get('user_id') or 0)
    if user_id <= 0:
        raise HTTPException(status_code=401, detail='Unauthorized')
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail='Unauthorized')
    # a token minted before this row existed belongs to an earlier, deleted account
    if user.created_at and int(session.get('issued_at') or 0) < _epoch_seconds(user.created_at):
        raise HTTPException(status_code=401, detail='Unauthorized')
    return user


def require_role(user: User, allowed_roles: set[str]) -> None:
    normalized = {str(role).strip().lower() for role in allowed_roles}
    if str(user.role or '').strip().lower() not in normalized:
        raise HTTPException(status_code=403, detail='Forbidden')


def role_guard(*roles: Role) -> Callable[..., User]:
    allowed = {role.value for role in roles}

    def _dependency(user: User = Depends(require_auth_user), db: Session = Depends(get_db)) -> User:
        require_role(user, allowed)
        if user.role != Role.ADMIN.value:
            if not user.approved:
                raise HTTPException(status_code=403, detail='Account pending admin approval')
            if get_settings(db).maintenance_mode:
                raise HTTPException(status_code=503, detail='The platform is under maintenance. Please try again later.')
        return user

    return _dependency


require_admin = role_guard(Role.ADMIN)
require_teacher = role_guard(Role.TEACHER)
require_student = role_guard(Role.STUDENT)
require_member = role_guard(Role.ADMIN, Role.TEACHER, Role.STUDENT)
