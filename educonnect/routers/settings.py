from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from educonnect.core.router_guard import require_admin
from educonnect.db import get_db
from educonnect.models import User
from educonnect.route_logging import EndpointNameRoute
from educonnect.schemas import SettingsUpdate
from educonnect.services.settings_service import get_settings, serialize_settings, update_settings


router = APIRouter(prefix='/api/settings', tags=['Settings'], route_class=EndpointNameRoute)


@router.get('/public')
def public_settings(db: Session = Depends(get_db)):
    return serialize_settings(get_settings(db), public=True)


@router.get('')
def read_settings(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    return serialize_settings(get_settings(db))


@router.put('')
def save_settings(payload: SettingsUpdate, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    row = update_settings(db, payload.model_dump(exclude_unset=True))
    return serialize_settings(row)
