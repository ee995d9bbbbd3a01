from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from educonnect.config import settings
from educonnect.core.router_guard import require_auth_user, resolve_token
from educonnect.db import get_db
from educonnect.models import User
from educonnect.route_logging import EndpointNameRoute
from educonnect.schemas import LoginRequest, RegisterRequest
from educonnect.services.auth_service import (
    AuthAuthorizationError,
    DuplicateEmailError,
    InvalidCredentialsError,
    clear_session_token,
    landing_path,
    login_password,
    register_user,
)
from educonnect.services.rate_limit_service import SafeRateLimitError
from educonnect.services.user_service import serialize_user


router = APIRouter(prefix='/api/auth', tags=['Auth'], route_class=EndpointNameRoute)


def _session_cookie_response(data: dict):
    response = JSONResponse(
        {
            'ok': True,
            'token': data['token'],
            'user_id': data['user_id'],
            'role': data['role'],
            'approved': data['approved'],
            'next': data['next'],
            'expires_at': data['expires_at'],
        }
    )
    response.set_cookie(
        key='auth_session',
        value=data['token'],
        httponly=True,
        samesite='lax',
        secure=settings.app_env == 'production',
        max_age=60 * 60 * max(1, int(settings.auth_session_expiry_hours or 1)),
    )
    return response


@router.post('/register', status_code=201)
def auth_register(payload: RegisterRequest, db: Session = Depends(get_db)):
    try:
        user = register_user(
            db,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            phone=payload.phone,
            subject=payload.subject,
            experience=payload.experience,
            qualification=payload.qualification,
            admin_token=payload.admin_token,
        )
    except AuthAuthorizationError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    message = 'Account created successfully!'
    if not user.approved:
        message = 'Account created successfully! Please wait for admin approval.'
    return {'ok': True, 'message': message, 'user': serialize_user(user)}


@router.post('/login')
def auth_login(payload: LoginRequest, db: Session = Depends(get_db)):
    try:
        data = login_password(db, payload.email, payload.password)
    except SafeRateLimitError as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return _session_cookie_response(data)


@router.post('/logout')
def auth_logout(request: Request, db: Session = Depends(get_db)):
    clear_session_token(resolve_token(request), db=db)
    response = JSONResponse({'ok': True})
    response.delete_cookie('auth_session')
    return response


@router.get('/me')
def auth_me(user: User = Depends(require_auth_user)):
    payload = serialize_user(user)
    payload['next'] = landing_path(user)
    return payload
