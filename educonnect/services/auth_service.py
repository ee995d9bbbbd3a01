from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import secrets
import threading
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from educonnect.config import settings
from educonnect.core.time_provider import TimeProvider, default_time_provider
from educonnect.models import RevokedToken, Role, User
from educonnect.services.availability_service import build_default_availability
from educonnect.services.observability_counters import record_observability_event
from educonnect.services.rate_limit_service import check_rate_limit, reset_rate_limit
from educonnect.services.settings_service import get_settings


_REVOKED_TOKENS: set[str] = set()
_TOKENS_LOCK = threading.RLock()
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
LOGIN_RATE_LIMIT_ACTION = 'auth_login_password'

UNKNOWN_EMAIL_MESSAGE = 'No account found with this email address.'
WRONG_PASSWORD_MESSAGE = 'Incorrect password. Please try again.'
TOO_MANY_ATTEMPTS_MESSAGE = 'Too many failed attempts. Please try again later.'
DUPLICATE_EMAIL_MESSAGE = 'An account with this email already exists.'


class AuthAuthorizationError(ValueError):
    """Raised when an identity operation is not permitted (closed registration, bad admin token)."""


class InvalidCredentialsError(ValueError):
    """Raised when an email/password pair does not identify a user."""


class DuplicateEmailError(ValueError):
    """Raised when registering an email that already has an account."""


def normalize_email(email: str) -> str:
    return str(email or '').strip().lower()


def mask_email(email: str) -> str:
    clean = normalize_email(email)
    local, _, domain = clean.partition('@')
    if not domain:
        return '***'
    return f'{local[:1]}***@{domain}'


def hash_password(password: str) -> str:
    if len(password or '') < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long')
    salt = secrets.token_hex(16)
    iterations = 120000
    derived = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt.encode('utf-8'), iterations)
    return f'pbkdf2_sha256${iterations}${salt}${derived.hex()}'


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algo, iter_raw, salt, digest_hex = password_hash.split('$', 3)
        if algo != 'pbkdf2_sha256':
            return False
        iterations = int(iter_raw)
        derived = hashlib.pbkdf2_hmac('sha256', (password or '').encode('utf-8'), salt.encode('utf-8'), iterations).hex()
        return hmac.compare_digest(derived, digest_hex)
    except ValueError:
        return False


def generate_temporary_password() -> str:
    return secrets.token_urlsafe(9)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def _b64url_decode(value: str) -> bytes:
    padding = '=' * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode('ascii'))


def _encode_jwt(payload: dict) -> str:
    header = {'alg': 'HS256', 'typ': 'JWT'}
    header_part = _b64url_encode(json.dumps(header, separators=(',', ':')).encode('utf-8'))
    payload_part = _b64url_encode(json.dumps(payload, separators=(',', ':')).encode('utf-8'))
    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    signature = hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()
    signature_part = _b64url_encode(signature)
    return f'{header_part}.{payload_part}.{signature_part}'


def _decode_jwt(token: str) -> dict | None:
    try:
        header_part, payload_part, signature_part = token.split('.')
    except ValueError:
        return None

    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    expected_signature = hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()
    try:
        provided_signature = _b64url_decode(signature_part)
    except ValueError:
        return None
    if not hmac.compare_digest(provided_signature, expected_signature):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_part).decode('utf-8'))
    except (ValueError, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict):
        return None
    return payload


def landing_path(user: User) -> str:
    if user.role == Role.ADMIN.value:
        return '/admin/dashboard'
    if not user.approved:
        return '/'
    return f'/{user.role}/dashboard'


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def create_user(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    role: str,
    approved: bool,
    phone: str = '',
    subject: str = '',
    experience: str = '',
    qualification: str = '',
) -> User:
    role_value = Role(str(role or '').strip().lower()).value
    clean_email = normalize_email(email)
    if find_user_by_email(db, clean_email):
        raise DuplicateEmailError(DUPLICATE_EMAIL_MESSAGE)

    user = User(
        name=str(name or '').strip(),
        email=clean_email,
        phone=str(phone or '').strip(),
        role=role_value,
        approved=bool(approved),
        password_hash=hash_password(password),
    )
    if role_value == Role.TEACHER.value:
        user.subject = str(subject or '').strip()
        user.experience = str(experience or '').strip()
        user.qualification = str(qualification or '').strip()
        user.on_leave = False
        user.availability = build_default_availability()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def register_user(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    role: str,
    phone: str = '',
    subject: str = '',
    experience: str = '',
    qualification: str = '',
    admin_token: str | None = None,
) -> User:
    system = get_settings(db)
    if not system.allow_registration:
        raise AuthAuthorizationError('Registration is currently closed.')

    role_value = str(role or '').strip().lower()
    if role_value not in {Role.ADMIN.value, Role.TEACHER.value, Role.STUDENT.value}:
        raise ValueError('Role must be one of: admin, teacher, student')

    if role_value == Role.ADMIN.value:
        expected = settings.admin_signup_token
        if not expected or not hmac.compare_digest(str(admin_token or ''), expected):
            logger.warning('auth_register_admin_denied email=%s', mask_email(email))
            raise AuthAuthorizationError('Admin registration requires a valid admin token.')
        approved = True
    elif role_value == Role.TEACHER.value:
        if not (str(subject or '').strip() and str(experience or '').strip() and str(qualification or '').strip()):
            raise ValueError('Please fill in all teacher-specific fields')
        approved = not system.require_approval
    else:
        approved = not system.require_approval

    user = create_user(
        db,
        name=name,
        email=email,
        password=password,
        role=role_value,
        approved=approved,
        phone=phone,
        subject=subject,
        experience=experience,
        qualification=qualification,
    )
    logger.info('auth_register_success user_id=%s role=%s approved=%s', user.id, user.role, user.approved)
    return user


def issue_session_token(user: User, *, time_provider: TimeProvider = default_time_provider) -> dict:
    now = time_provider.now()
    expires_at = now + timedelta(hours=max(1, int(settings.auth_session_expiry_hours or 1)))
    token = _encode_jwt(
        {
            'sub': user.id,
            'role': user.role,
            'iat': int(now.timestamp()),
            'exp': int(expires_at.timestamp()),
            'nonce': secrets.token_hex(4),
        }
    )
    return {
        'token': token,
        'user_id': user.id,
        'role': user.role,
        'approved': bool(user.approved),
        'next': landing_path(user),
        'expires_at': expires_at.isoformat(),
    }


def login_password(
    db: Session,
    email: str,
    password: str,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    clean_email = normalize_email(email)
    check_rate_limit(
        db,
        scope_type='email',
        scope_key=clean_email,
        action_name=LOGIN_RATE_LIMIT_ACTION,
        max_requests=settings.auth_login_max_attempts,
        window_seconds=settings.auth_login_window_seconds,
        message=TOO_MANY_ATTEMPTS_MESSAGE,
        time_provider=time_provider,
    )

    user = find_user_by_email(db, clean_email)
    if not user:
        record_observability_event('login_failure')
        logger.info('auth_login_unknown_email email=%s', mask_email(clean_email))
        raise InvalidCredentialsError(UNKNOWN_EMAIL_MESSAGE)
    if not user.password_hash or not verify_password(password, user.password_hash):
        record_observability_event('login_failure')
        logger.info('auth_login_wrong_password user_id=%s', user.id)
        raise InvalidCredentialsError(WRONG_PASSWORD_MESSAGE)

    reset_rate_limit(db, scope_type='email', scope_key=clean_email, action_name=LOGIN_RATE_LIMIT_ACTION)
    payload = issue_session_token(user, time_provider=time_provider)
    logger.info('auth_login_success user_id=%s role=%s approved=%s', user.id, user.role, user.approved)
    return payload


def _token_hash(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def is_token_revoked(db: Session, token: str) -> bool:
    """Check the per-process cache first, then the shared revoked_tokens table."""
    with _TOKENS_LOCK:
        if token in _REVOKED_TOKENS:
            return True
    row = db.query(RevokedToken.id).filter(RevokedToken.token_hash == _token_hash(token)).first()
    if row is None:
        return False
    with _TOKENS_LOCK:
        _REVOKED_TOKENS.add(token)
    return True


def validate_session_token(
    token: str | None,
    *,
    db: Session | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> dict | None:
    if not token:
        return None
    with _TOKENS_LOCK:
        if token in _REVOKED_TOKENS:
            return None

    payload = _decode_jwt(token)
    if not payload:
        return None

    role = payload.get('role')
    user_id = payload.get('sub')
    expires_at = int(payload.get('exp') or 0)
    if not role or user_id is None:
        return None
    if expires_at <= int(time_provider.now().timestamp()):
        return None
    if db is not None and is_token_revoked(db, token):
        return None

    return {
        'user_id': int(user_id),
        'role': role,
        'issued_at': int(payload.get('iat') or 0),
        'expires_at': expires_at,
    }


def clear_session_token(
    token: str | None,
    *,
    db: Session | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> None:
    if not token:
        return
    with _TOKENS_LOCK:
        _REVOKED_TOKENS.add(token)
    if db is None:
        return

    payload = _decode_jwt(token)
    if not payload:
        return
    now = time_provider.now()
    expires_at = datetime.fromtimestamp(int(payload.get('exp') or 0), tz=timezone.utc).replace(tzinfo=None)
    utc_now = now.astimezone(timezone.utc).replace(tzinfo=None)
    db.query(RevokedToken).filter(RevokedToken.expires_at < utc_now).delete(synchronize_session=False)
    token_hash = _token_hash(token)
    if not db.query(RevokedToken.id).filter(RevokedToken.token_hash == token_hash).first():
        db.add(
            RevokedToken(
                token_hash=token_hash,
                user_id=int(payload.get('sub') or 0),
                expires_at=expires_at,
                revoked_at=utc_now,
            )
        )
    db.commit()
    logger.info('auth_session_revoked user_id=%s', payload.get('sub'))
