import logging

from sqlalchemy.orm import Session

from educonnect.config import settings
from educonnect.models import Role, User
from educonnect.services.auth_service import create_user, find_user_by_email, mask_email
from educonnect.services.settings_service import get_settings


logger = logging.getLogger(__name__)


def _seed_admin_if_needed(db: Session) -> dict:
    admins = db.query(User).filter(User.role == Role.ADMIN.value).count()
    if admins > 0:
        return {'seeded': False, 'reason': 'admin_exists'}

    email = (settings.bootstrap_admin_email or '').strip()
    password = settings.bootstrap_admin_password or ''
    if not email or not password:
        logger.warning('admin_seed_skipped missing_bootstrap_admin_credentials')
        return {'seeded': False, 'reason': 'no_credentials'}
    if find_user_by_email(db, email):
        logger.warning('admin_seed_skipped email_taken email=%s', mask_email(email))
        return {'seeded': False, 'reason': 'email_taken'}

    admin = create_user(
        db,
        name=settings.bootstrap_admin_name,
        email=email,
        password=password,
        role=Role.ADMIN.value,
        approved=True,
    )
    logger.warning('Default admin created - change the bootstrap password after setup (email=%s)', mask_email(email))
    return {'seeded': True, 'user_id': admin.id}


def run_bootstrap(db: Session) -> dict:
    get_settings(db)
    admin_result = _seed_admin_if_needed(db)
    logger.info('bootstrap_complete admin=%s', admin_result)
    return {'ran': True, 'admin': admin_result}
