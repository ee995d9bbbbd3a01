import sys

from alembic.config import Config
from alembic.script import ScriptDirectory
from alembic.runtime.migration import MigrationContext
from sqlalchemy import text

from educonnect.config import settings
from educonnect.db import SessionLocal, engine
from educonnect.models import Role, SystemSettings, User
from educonnect.services.auth_service import _decode_jwt, _encode_jwt


GREEN = '\033[32m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_db_connectivity_and_write():
    with engine.begin() as conn:
        conn.execute(text('SELECT 1'))
        conn.execute(text('CREATE TABLE IF NOT EXISTS _healthcheck_probe (id INTEGER PRIMARY KEY, note TEXT)'))
        conn.execute(text("INSERT INTO _healthcheck_probe (note) VALUES ('probe')"))
        conn.execute(text("DELETE FROM _healthcheck_probe WHERE note='probe'"))
        conn.execute(text('DROP TABLE IF EXISTS _healthcheck_probe'))
    return 'connect + write ok'


def check_alembic_head():
    cfg = Config('alembic.ini')
    script = ScriptDirectory.from_config(cfg)
    heads = set(script.get_heads())
    if not heads:
        raise RuntimeError('No alembic heads found in repository')

    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()

    if current is None:
        raise RuntimeError('No migration version in DB (run alembic upgrade head)')
    if current not in heads:
        raise RuntimeError(f'DB revision {current} is not at head {sorted(heads)}')
    return f'current={current}'


def check_required_env():
    required = {
        'DATABASE_URL': settings.database_url,
        'AUTH_SECRET': settings.auth_secret,
    }
    missing = [key for key, value in required.items() if not str(value).strip()]
    if missing:
        raise RuntimeError(f'Missing env vars: {", ".join(missing)}')
    if settings.app_env == 'production' and settings.auth_secret == 'change-me':
        raise RuntimeError('AUTH_SECRET still has the default value')
    return 'all required vars present'


def check_settings_row():
    db = SessionLocal()
    try:
        row = db.query(SystemSettings).filter(SystemSettings.id == 1).first()
        if not row:
            raise RuntimeError('system_settings row missing (run bootstrap.py)')
        return f'maintenance_mode={bool(row.maintenance_mode)}'
    finally:
        db.close()


def check_admin_present():
    db = SessionLocal()
    try:
        admins = db.query(User).filter(User.role == Role.ADMIN.value).count()
        if admins == 0:
            raise RuntimeError('No admin account (set BOOTSTRAP_ADMIN_EMAIL and BOOTSTRAP_ADMIN_PASSWORD)')
        return f'admins={admins}'
    finally:
        db.close()


def check_session_signing():
    token = _encode_jwt({'sub': '0', 'role': 'healthcheck'})
    payload = _decode_jwt(token)
    if not payload or payload.get('role') != 'healthcheck':
        raise RuntimeError('Session token round trip failed')
    return 'sign + verify ok'


def main():
    checks = [
        ('Database connectivity and write access', check_db_connectivity_and_write),
        ('Alembic migration status at head', check_alembic_head),
        ('Required environment variables present', check_required_env),
        ('System settings row present', check_settings_row),
        ('Admin account present', check_admin_present),
        ('Session token signing working', check_session_signing),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok

    if not all_ok:
        sys.exit(1)
    sys.exit(0)


if __name__ == '__main__':
    main()
