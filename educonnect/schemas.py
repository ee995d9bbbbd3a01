from typing import Literal

from pydantic import BaseModel, EmailStr, Field


RoleName = Literal['student', 'teacher', 'admin']
AppointmentStatusName = Literal['pending', 'confirmed', 'completed', 'cancelled']


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    phone: str = ''
    password: str
    role: RoleName
    subject: str = ''
    experience: str = ''
    qualification: str = ''
    admin_token: str | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TeacherCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    phone: str = ''
    subject: str = Field(min_length=1, max_length=120)
    experience: str = ''
    qualification: str = ''
    temp_password: str | None = None


class LeaveUpdateRequest(BaseModel):
    on_leave: bool


class AvailabilityEntry(BaseModel):
    day: str
    start_time: str = Field(pattern=r'^\d{2}:\d{2}$')
    end_time: str = Field(pattern=r'^\d{2}:\d{2}$')
    available: bool = True


class AvailabilityUpdateRequest(BaseModel):
    availability: list[AvailabilityEntry]


class TeacherProfileUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    email: EmailStr | None = None
    phone: str | None = None
    subject: str | None = Field(default=None, min_length=1, max_length=120)
    experience: str | None = None
    qualification: str | None = None
    bio: str | None = None


class AppointmentCreateRequest(BaseModel):
    teacher_id: int
    date: str = Field(min_length=1, max_length=20)
    time: str = Field(min_length=1, max_length=20)
    message: str | None = None
    subject: str | None = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatusName


class MessageCreateRequest(BaseModel):
    receiver_id: int
    message: str = Field(min_length=1)


class SettingsUpdate(BaseModel):
    site_name: str | None = Field(default=None, min_length=1, max_length=120)
    site_description: str | None = None
    contact_email: EmailStr | None = None
    welcome_message: str | None = None
    allow_registration: bool | None = None
    require_approval: bool | None = None
    max_appointments_per_student: int | None = Field(default=None, ge=1, le=100)
    appointment_duration: int | None = Field(default=None, ge=15, le=480)
    email_notifications: bool | None = None
    sms_notifications: bool | None = None
    maintenance_mode: bool | None = None
