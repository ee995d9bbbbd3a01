from datetime import date, timedelta
from pathlib import Path
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from educonnect.db import Base, SessionLocal, engine
from educonnect.models import Appointment, AppointmentStatus, Message, Role, User
from educonnect.services.auth_service import create_user
from educonnect.services.settings_service import get_settings


SAMPLE_PASSWORD = 'password123'

Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    get_settings(db)
    if not db.query(User).filter(User.role != Role.ADMIN.value).first():
        teachers = [
            create_user(
                db,
                name='Priya Sharma',
                email='priya.teacher@example.com',
                password=SAMPLE_PASSWORD,
                role=Role.TEACHER.value,
                approved=True,
                subject='Mathematics',
                experience='8 years',
                qualification='M.Sc. Mathematics',
            ),
            create_user(
                db,
                name='Rahul Verma',
                email='rahul.teacher@example.com',
                password=SAMPLE_PASSWORD,
                role=Role.TEACHER.value,
                approved=True,
                subject='Physics',
                experience='5 years',
                qualification='M.Sc. Physics',
            ),
        ]
        students = [
            create_user(db, name='Aarav', email='aarav@example.com', password=SAMPLE_PASSWORD,
                        role=Role.STUDENT.value, approved=True),
            create_user(db, name='Diya', email='diya@example.com', password=SAMPLE_PASSWORD,
                        role=Role.STUDENT.value, approved=True),
            create_user(db, name='Ishaan', email='ishaan@example.com', password=SAMPLE_PASSWORD,
                        role=Role.STUDENT.value, approved=False),
        ]

        day = (date.today() + timedelta(days=2)).isoformat()
        db.add_all(
            [
                Appointment(
                    student_id=students[0].id,
                    teacher_id=teachers[0].id,
                    student_name=students[0].name,
                    teacher_name=teachers[0].name,
                    date=day,
                    time='10:00',
                    subject=teachers[0].subject,
                    message='Help with calculus homework',
                    status=AppointmentStatus.PENDING.value,
                ),
                Appointment(
                    student_id=students[1].id,
                    teacher_id=teachers[1].id,
                    student_name=students[1].name,
                    teacher_name=teachers[1].name,
                    date=day,
                    time='14:00',
                    subject=teachers[1].subject,
                    status=AppointmentStatus.CONFIRMED.value,
                ),
                Message(
                    sender_id=students[0].id,
                    receiver_id=teachers[0].id,
                    sender_name=students[0].name,
                    message='Hello, could we go over integrals?',
                ),
            ]
        )
        db.commit()
finally:
    db.close()

print('DB initialized with sample data.')
