from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from educonnect.core.time_provider import TimeProvider, default_time_provider
from educonnect.models import RateLimitState
from educonnect.services.observability_counters import record_observability_event


logger = logging.getLogger(__name__)


class SafeRateLimitError(ValueError):
    pass


def _load_state(db: Session, scope_type: str, scope_key: str, action_name: str) -> RateLimitState | None:
    return (
        db.query(RateLimitState)
        .filter(
            RateLimitState.scope_type == scope_type,
            RateLimitState.scope_key == scope_key,
            RateLimitState.action_name == action_name,
        )
        .with_for_update()
        .first()
    )


def _normalize_scope(scope_type: str, scope_key: str, action_name: str) -> tuple[str, str, str]:
    normalized_scope_type = str(scope_type or 'user').strip().lower() or 'user'
    normalized_scope_key = str(scope_key or '').strip().lower() or 'unknown'
    normalized_action_name = str(action_name or '').strip() or 'unknown_action'
    return normalized_scope_type, normalized_scope_key, normalized_action_name


def check_rate_limit(
    db: Session,
    *,
    scope_type: str,
    scope_key: str,
    action_name: str,
    max_requests: int,
    window_seconds: int,
    message: str | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> bool:
    """Count one attempt against a fixed window; raise once the window is full."""
    scope_type, scope_key, action_name = _normalize_scope(scope_type, scope_key, action_name)
    max_allowed = max(1, int(max_requests or 1))
    window = max(1, int(window_seconds or 60))
    now = time_provider.now().replace(tzinfo=None)

    row = _load_state(db, scope_type, scope_key, action_name)

    if row is None:
        row = RateLimitState(
            scope_type=scope_type,
            scope_key=scope_key,
            action_name=action_name,
            window_start=now,
            request_count=1,
        )
        db.add(row)
        db.commit()
        return True

    if (now - row.window_start).total_seconds() >= window:
        row.window_start = now
        row.request_count = 1
        db.commit()
        return True

    if int(row.request_count or 0) >= max_allowed:
        record_observability_event('rate_limit_block')
        logger.warning(
            'rate_limit_blocked scope_type=%s action_name=%s max_requests=%s window_seconds=%s',
            scope_type,
            action_name,
            max_allowed,
            window,
        )
        retry_after = max(
            1,
            int((row.window_start + timedelta(seconds=window) - now).total_seconds()),
        )
        raise SafeRateLimitError(message or f'Rate limit exceeded. Retry in {retry_after} seconds.')

    row.request_count = int(row.request_count or 0) + 1
    db.commit()
    return True


def reset_rate_limit(db: Session, *, scope_type: str, scope_key: str, action_name: str) -> None:
    scope_type, scope_key, action_name = _normalize_scope(scope_type, scope_key, action_name)
    row = _load_state(db, scope_type, scope_key, action_name)
    if row is not None:
        db.delete(row)
        db.commit()
