from __future__ import annotations

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from educonnect.models import Message, Role, User


logger = logging.getLogger(__name__)


class MessageNotFoundError(LookupError):
    pass


def serialize_message(row: Message, *, viewer_id: int | None = None) -> dict:
    payload = {
        'id': row.id,
        'sender_id': row.sender_id,
        'receiver_id': row.receiver_id,
        'sender_name': row.sender_name,
        'message': row.message,
        'timestamp': row.timestamp.isoformat() if row.timestamp else None,
        'read': bool(row.read),
    }
    if viewer_id is not None:
        payload['outgoing'] = row.sender_id == viewer_id
    return payload


def send_message(db: Session, *, sender: User, receiver_id: int, text: str) -> Message:
    body = str(text or '').strip()
    if not body:
        raise ValueError('Message cannot be empty')
    if int(receiver_id) == sender.id:
        raise ValueError('Cannot send a message to yourself')
    receiver = db.query(User).filter(User.id == int(receiver_id)).first()
    if not receiver:
        raise MessageNotFoundError('Recipient not found')

    default_name = 'Teacher' if sender.role == Role.TEACHER.value else 'Student'
    row = Message(
        sender_id=sender.id,
        receiver_id=receiver.id,
        sender_name=sender.name or default_name,
        message=body,
        read=False,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('message_sent id=%s sender_id=%s receiver_id=%s', row.id, row.sender_id, row.receiver_id)
    return row


def list_messages(db: Session, user: User) -> list[Message]:
    return (
        db.query(Message)
        .filter(or_(Message.sender_id == user.id, Message.receiver_id == user.id))
        .order_by(Message.timestamp.desc(), Message.id.desc())
        .all()
    )


def unread_count(db: Session, user: User) -> int:
    return db.query(Message).filter(Message.receiver_id == user.id, Message.read.is_(False)).count()


def conversations(db: Session, user: User, *, search: str | None = None) -> list[dict]:
    """Group the user's messages by counterpart, newest conversation first."""
    grouped: dict[int, list[Message]] = {}
    for row in list_messages(db, user):
        counterpart_id = row.receiver_id if row.sender_id == user.id else row.sender_id
        grouped.setdefault(counterpart_id, []).append(row)

    names = {}
    if grouped:
        names = {
            row.id: row.name
            for row in db.query(User).filter(User.id.in_(list(grouped.keys()))).all()
        }

    items = []
    for counterpart_id, rows in grouped.items():
        # rows are newest first
        fallback = next((row.sender_name for row in rows if row.sender_id == counterpart_id), '')
        items.append(
            {
                'counterpart_id': counterpart_id,
                'counterpart_name': names.get(counterpart_id) or fallback or 'Unknown user',
                'last_message': serialize_message(rows[0], viewer_id=user.id),
                'message_count': len(rows),
                'unread_count': sum(1 for row in rows if row.receiver_id == user.id and not row.read),
            }
        )

    term = (search or '').strip().lower()
    if term:
        items = [item for item in items if term in item['counterpart_name'].lower()]
    return items


def conversation(db: Session, user: User, counterpart_id: int) -> list[Message]:
    other = int(counterpart_id)
    return (
        db.query(Message)
        .filter(
            or_(
                (Message.sender_id == user.id) & (Message.receiver_id == other),
                (Message.sender_id == other) & (Message.receiver_id == user.id),
            )
        )
        .order_by(Message.timestamp.asc(), Message.id.asc())
        .all()
    )


def mark_read(db: Session, *, user: User, message_id: int) -> Message:
    row = db.query(Message).filter(Message.id == int(message_id)).first()
    if not row:
        raise MessageNotFoundError('Message not found')
    if row.receiver_id != user.id:
        raise PermissionError('Only the recipient can mark a message as read')
    if not row.read:
        row.read = True
        db.commit()
        db.refresh(row)
        logger.info('message_read id=%s receiver_id=%s', row.id, row.receiver_id)
    return row


def contacts(db: Session, user: User) -> list[User]:
    query = db.query(User).filter(User.approved.is_(True), User.id != user.id)
    if user.role == Role.STUDENT.value:
        query = query.filter(User.role == Role.TEACHER.value)
    elif user.role == Role.TEACHER.value:
        query = query.filter(User.role == Role.STUDENT.value)
    return query.order_by(User.name.asc(), User.id.asc()).all()
