from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from educonnect.core.router_guard import require_member
from educonnect.db import get_db
from educonnect.models import User
from educonnect.route_logging import EndpointNameRoute
from educonnect.schemas import MessageCreateRequest
from educonnect.services.message_service import (
    MessageNotFoundError,
    contacts,
    conversation,
    conversations,
    list_messages,
    mark_read,
    send_message,
    serialize_message,
    unread_count,
)


router = APIRouter(prefix='/api/messages', tags=['Messages'], route_class=EndpointNameRoute)


@router.get('')
def inbox(user: User = Depends(require_member), db: Session = Depends(get_db)):
    rows = list_messages(db, user)
    return {
        'unread_count': unread_count(db, user),
        'messages': [serialize_message(row, viewer_id=user.id) for row in rows],
    }


@router.get('/conversations')
def conversation_list(
    search: str | None = Query(default=None),
    user: User = Depends(require_member),
    db: Session = Depends(get_db),
):
    return conversations(db, user, search=search)


@router.get('/conversations/{counterpart_id}')
def conversation_thread(counterpart_id: int, user: User = Depends(require_member), db: Session = Depends(get_db)):
    rows = conversation(db, user, counterpart_id)
    return [serialize_message(row, viewer_id=user.id) for row in rows]


@router.get('/contacts')
def contact_list(user: User = Depends(require_member), db: Session = Depends(get_db)):
    return [
        {'id': row.id, 'name': row.name, 'role': row.role, 'subject': row.subject}
        for row in contacts(db, user)
    ]


@router.post('', status_code=201)
def send(payload: MessageCreateRequest, user: User = Depends(require_member), db: Session = Depends(get_db)):
    try:
        row = send_message(db, sender=user, receiver_id=payload.receiver_id, text=payload.message)
    except MessageNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return serialize_message(row, viewer_id=user.id)


@router.post('/{message_id}/read')
def read(message_id: int, user: User = Depends(require_member), db: Session = Depends(get_db)):
    try:
        row = mark_read(db, user=user, message_id=message_id)
    except MessageNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    return serialize_message(row, viewer_id=user.id)

