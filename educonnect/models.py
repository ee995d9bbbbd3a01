from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from educonnect.db import Base


class Role(str, Enum):
    ADMIN = 'admin'
    TEACHER = 'teacher'
    STUDENT = 'student'


class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


WEEKDAYS = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')


class User(Base):
    __tablename__ = 'users'
    __table_args__ = (
        Index('ix_users_role_approved', 'role', 'approved'),
        {'sqlite_autoincrement': True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    phone: Mapped[str] = mapped_column(String(30), default='')
    role: Mapped[str] = mapped_column(String(20), default=Role.STUDENT.value, index=True)
    approved: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), default='')
    # Teacher-only profile fields; empty for other roles.
    subject: Mapped[str] = mapped_column(String(120), default='', index=True)
    experience: Mapped[str] = mapped_column(String(120), default='')
    qualification: Mapped[str] = mapped_column(String(255), default='')
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    on_leave: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    availability: Mapped[list['TeacherAvailability']] = relationship(
        'TeacherAvailability',
        back_populates='teacher',
        cascade='all, delete-orphan',
        order_by='TeacherAvailability.position',
    )


class TeacherAvailability(Base):
    __tablename__ = 'teacher_availability'
    __table_args__ = (
        UniqueConstraint('teacher_id', 'day', name='uq_teacher_availability_teacher_day'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    teacher_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    day: Mapped[str] = mapped_column(String(10))
    start_time: Mapped[str] = mapped_column(String(5), default='09:00')
    end_time: Mapped[str] = mapped_column(String(5), default='17:00')
    available: Mapped[bool] = mapped_column(Boolean, default=True)

    teacher: Mapped['User'] = relationship('User', back_populates='availability')


class Appointment(Base):
    __tablename__ = 'appointments'
    __table_args__ = (
        Index('ix_appointments_teacher_slot', 'teacher_id', 'date', 'time'),
        Index('ix_appointments_student_status', 'student_id', 'status'),
        {'sqlite_autoincrement': True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # Plain ids: user rows can be hard-deleted while their appointments remain.
    student_id: Mapped[int] = mapped_column(Integer, index=True)
    teacher_id: Mapped[int] = mapped_column(Integer, index=True)
    student_name: Mapped[str] = mapped_column(String(120), default='Student')
    teacher_name: Mapped[str] = mapped_column(String(120), default='Teacher')
    date: Mapped[str] = mapped_column(String(20))
    time: Mapped[str] = mapped_column(String(20))
    subject: Mapped[str] = mapped_column(String(120), default='')
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=AppointmentStatus.PENDING.value, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Message(Base):
    __tablename__ = 'messages'
    __table_args__ = (
        Index('ix_messages_receiver_read', 'receiver_id', 'read'),
        {'sqlite_autoincrement': True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    sender_id: Mapped[int] = mapped_column(Integer, index=True)
    receiver_id: Mapped[int] = mapped_column(Integer, index=True)
    sender_name: Mapped[str] = mapped_column(String(120), default='')
    message: Mapped[str] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    read: Mapped[bool] = mapped_column(Boolean, default=False)


class SystemSettings(Base):
    __tablename__ = 'system_settings'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    site_name: Mapped[str] = mapped_column(String(120), default='Student-Teacher System')
    site_description: Mapped[str] = mapped_column(
        Text,
        default='A comprehensive platform for connecting students with qualified teachers',
    )
    contact_email: Mapped[str] = mapped_column(String(255), default='admin@example.com')
    welcome_message: Mapped[str] = mapped_column(
        Text,
        default='Welcome to our learning platform! Connect with amazing teachers and start your learning journey.',
    )
    allow_registration: Mapped[bool] = mapped_column(Boolean, default=True)
    require_approval: Mapped[bool] = mapped_column(Boolean, default=True)
    max_appointments_per_student: Mapped[int] = mapped_column(Integer, default=5)
    appointment_duration: Mapped[int] = mapped_column(Integer, default=60)
    email_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    sms_notifications: Mapped[bool] = mapped_column(Boolean, default=False)
    maintenance_mode: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class RateLimitState(Base):
    __tablename__ = 'rate_limit_states'
    __table_args__ = (
        UniqueConstraint('scope_type', 'scope_key', 'action_name', name='uq_rate_limit_scope_action'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    scope_type: Mapped[str] = mapped_column(String(20), default='user', index=True)
    scope_key: Mapped[str] = mapped_column(String(255), default='', index=True)
    action_name: Mapped[str] = mapped_column(String(80), default='', index=True)
    window_start: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    request_count: Mapped[int] = mapped_column(Integer, default=0)


class RevokedToken(Base):
    __tablename__ = 'revoked_tokens'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, default=0, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    revoked_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
