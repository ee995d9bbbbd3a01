from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from educonnect.models import SystemSettings


logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1

SETTINGS_FIELDS = (
    'site_name',
    'site_description',
    'contact_email',
    'welcome_message',
    'allow_registration',
    'require_approval',
    'max_appointments_per_student',
    'appointment_duration',
    'email_notifications',
    'sms_notifications',
    'maintenance_mode',
)
PUBLIC_SETTINGS_FIELDS = ('site_name', 'site_description', 'welcome_message', 'allow_registration', 'maintenance_mode')


def get_settings(db: Session) -> SystemSettings:
    row = db.query(SystemSettings).filter(SystemSettings.id == SETTINGS_ROW_ID).first()
    if row is None:
        row = SystemSettings(id=SETTINGS_ROW_ID)
        db.add(row)
        db.commit()
        db.refresh(row)
        logger.info('system_settings_created defaults=true')
    return row


def update_settings(db: Session, changes: dict) -> SystemSettings:
    row = get_settings(db)
    changed: list[str] = []
    for field, value in changes.items():
        if field not in SETTINGS_FIELDS or value is None:
            continue
        if getattr(row, field) != value:
            setattr(row, field, value)
            changed.append(field)
    if changed:
        db.commit()
        db.refresh(row)
        logger.info('system_settings_updated fields=%s', ','.join(changed))
    return row


def serialize_settings(row: SystemSettings, *, public: bool = False) -> dict:
    fields = PUBLIC_SETTINGS_FIELDS if public else SETTINGS_FIELDS
    payload = {field: getattr(row, field) for field in fields}
    if not public:
        payload['updated_at'] = row.updated_at.isoformat() if row.updated_at else None
    return payload
