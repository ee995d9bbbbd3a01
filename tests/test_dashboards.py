import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from educonnect.db import Base, get_db
from educonnect.models import Appointment, AppointmentStatus, Message, Role, SystemSettings, TeacherAvailability, User
from educonnect.routers import admin, student, teacher
from educonnect.services.auth_service import create_user, issue_session_token
from educonnect.services.observability_counters import (
    clear_observability_events,
    count_observability_events,
    record_observability_event,
)


class DashboardTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_dashboards.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        app = FastAPI()
        app.include_router(admin.router)
        app.include_router(student.router)
        app.include_router(teacher.router)

        def override_get_db():
            db = cls._session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        cls.client.close()
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        clear_observability_events()
        db = self._session_factory()
        try:
            db.query(Message).delete()
            db.query(Appointment).delete()
            db.query(TeacherAvailability).delete()
            db.query(User).delete()
            db.query(SystemSettings).delete()
            db.commit()
            admin_user = create_user(
                db, name='Admin', email='admin@example.com', password='secret1', role=Role.ADMIN.value, approved=True
            )
            teacher_user = create_user(
                db,
                name='Priya Sharma',
                email='priya@example.com',
                password='secret1',
                role=Role.TEACHER.value,
                approved=True,
                subject='Mathematics',
                experience='8 years',
                qualification='M.Sc.',
            )
            on_leave = create_user(
                db,
                name='Rahul Verma',
                email='rahul@example.com',
                password='secret1',
                role=Role.TEACHER.value,
                approved=True,
                subject='Physics',
                experience='5 years',
                qualification='M.Sc.',
            )
            on_leave.on_leave = True
            student_user = create_user(
                db, name='Aarav', email='aarav@example.com', password='secret1', role=Role.STUDENT.value, approved=True
            )
            create_user(
                db, name='Waiting', email='waiting@example.com', password='secret1', role=Role.STUDENT.value, approved=False
            )

            def appointment(day, clock, status):
                return Appointment(
                    student_id=student_user.id,
                    teacher_id=teacher_user.id,
                    student_name=student_user.name,
                    teacher_name=teacher_user.name,
                    date=day,
                    time=clock,
                    subject='Mathematics',
                    status=status,
                )

            db.add_all(
                [
                    appointment('2026-05-04', '09:00', AppointmentStatus.PENDING.value),
                    appointment('2026-05-04', '16:00', AppointmentStatus.CONFIRMED.value),
                    appointment('2026-05-06', '10:00', AppointmentStatus.PENDING.value),
                    appointment('2026-05-04', '11:00', AppointmentStatus.CANCELLED.value),
                    appointment('2026-04-20', '10:00', AppointmentStatus.COMPLETED.value),
                    Message(
                        sender_id=student_user.id,
                        receiver_id=teacher_user.id,
                        sender_name=student_user.name,
                        message='Hi',
                    ),
                ]
            )
            db.commit()
            self.admin_headers = {'Authorization': f"Bearer {issue_session_token(admin_user)['token']}"}
            self.teacher_headers = {'Authorization': f"Bearer {issue_session_token(teacher_user)['token']}"}
            self.student_headers = {'Authorization': f"Bearer {issue_session_token(student_user)['token']}"}
        finally:
            db.close()

    def test_admin_dashboard_counts(self):
        record_observability_event('login_failure')
        res = self.client.get('/api/admin/dashboard', headers=self.admin_headers)
        self.assertEqual(res.status_code, 200)
        body = res.json()
        stats = body['stats']
        self.assertEqual(stats['total_users'], 5)
        self.assertEqual(stats['total_students'], 2)
        self.assertEqual(stats['total_teachers'], 2)
        self.assertEqual(stats['pending_approvals'], 1)
        self.assertEqual(stats['total_appointments'], 5)
        self.assertEqual(stats['pending_appointments'], 2)
        self.assertEqual(stats['confirmed_appointments'], 1)
        self.assertEqual([row['name'] for row in body['pending_users']], ['Waiting'])
        self.assertEqual(body['observability']['login_failure'], 1)

    def test_teacher_dashboard(self):
        now = datetime(2026, 5, 4, 8, 0, 0, tzinfo=timezone.utc)
        with patch('educonnect.services.dashboard_service.default_time_provider.now', return_value=now):
            res = self.client.get('/api/teacher/dashboard', headers=self.teacher_headers)
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body['stats']['total'], 5)
        self.assertEqual(body['stats']['unread_messages'], 1)
        self.assertEqual(len(body['pending_appointments']), 2)
        self.assertEqual([row['time'] for row in body['today_appointments']], ['16:00', '09:00'])

    def test_student_dashboard(self):
        now = datetime(2026, 5, 4, 12, 0, 0, tzinfo=timezone.utc)
        with patch('educonnect.services.dashboard_service.default_time_provider.now', return_value=now):
            res = self.client.get('/api/student/dashboard', headers=self.student_headers)
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body['stats']['available_teachers'], 1)
        self.assertEqual(body['stats']['unread_messages'], 0)
        self.assertEqual(
            [(row['date'], row['time']) for row in body['upcoming_appointments']],
            [('2026-05-04', '16:00'), ('2026-05-06', '10:00')],
        )


def test_observability_counts_only_events_inside_window():
    clear_observability_events()
    now = datetime(2026, 5, 4, 12, 0, 0)
    record_observability_event('rate_limit_block', at=now - timedelta(hours=30))
    record_observability_event('rate_limit_block', at=now - timedelta(hours=2))
    record_observability_event('rate_limit_block', at=now - timedelta(minutes=5))
    assert count_observability_events('rate_limit_block', now=now) == 2
    assert count_observability_events('rate_limit_block', window_hours=1, now=now) == 1
    assert count_observability_events('login_failure', now=now) == 0
    clear_observability_events()


def test_unknown_observability_event_is_rejected():
    with pytest.raises(ValueError):
        record_observability_event('page_view')
