import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from educonnect.db import Base, get_db
from educonnect.models import Appointment, Role, SystemSettings, TeacherAvailability, User
from educonnect.routers import admin, auth, student
from educonnect.services.auth_service import create_user, issue_session_token


class ApprovalWorkflowTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_approval_workflow.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        app = FastAPI()
        app.include_router(auth.router)
        app.include_router(admin.router)
        app.include_router(student.router)

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
        self.client.cookies.clear()
        db = self._session_factory()
        try:
            db.query(Appointment).delete()
            db.query(TeacherAvailability).delete()
            db.query(User).delete()
            db.query(SystemSettings).delete()
            db.commit()
            admin_user = create_user(
                db, name='Admin', email='admin@example.com', password='secret1', role=Role.ADMIN.value, approved=True
            )
            pending_student = create_user(
                db, name='Pending Pat', email='pat@example.com', password='secret1', role=Role.STUDENT.value, approved=False
            )
            pending_teacher = create_user(
                db,
                name='Pending Teacher',
                email='pt@example.com',
                password='secret1',
                role=Role.TEACHER.value,
                approved=False,
                subject='Chemistry',
                experience='2 years',
                qualification='B.Sc.',
            )
            approved_student = create_user(
                db, name='Sam', email='sam@example.com', password='secret1', role=Role.STUDENT.value, approved=True
            )
            self.admin_id = admin_user.id
            self.pending_student_id = pending_student.id
            self.pending_teacher_id = pending_teacher.id
            self.approved_student_id = approved_student.id
            self.admin_headers = {'Authorization': f"Bearer {issue_session_token(admin_user)['token']}"}
            self.pending_headers = {'Authorization': f"Bearer {issue_session_token(pending_student)['token']}"}
            self.student_headers = {'Authorization': f"Bearer {issue_session_token(approved_student)['token']}"}
        finally:
            db.close()

    def test_pending_user_is_blocked_from_role_endpoints(self):
        res = self.client.get('/api/student/dashboard', headers=self.pending_headers)
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.json()['detail'], 'Account pending admin approval')
        me = self.client.get('/api/auth/me', headers=self.pending_headers)
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()['next'], '/')

    def test_non_admin_cannot_reach_admin_endpoints(self):
        res = self.client.get('/api/admin/users', headers=self.student_headers)
        self.assertEqual(res.status_code, 403)
        self.assertEqual(self.client.get('/api/admin/users').status_code, 401)

    def test_pending_list_excludes_approved_users_and_admins(self):
        res = self.client.get('/api/admin/users/pending', headers=self.admin_headers)
        self.assertEqual(res.status_code, 200)
        ids = {row['id'] for row in res.json()}
        self.assertEqual(ids, {self.pending_student_id, self.pending_teacher_id})

    def test_approve_keeps_role_and_is_idempotent(self):
        first = self.client.post(f'/api/admin/users/{self.pending_teacher_id}/approve', headers=self.admin_headers)
        self.assertEqual(first.status_code, 200)
        self.assertTrue(first.json()['user']['approved'])
        self.assertEqual(first.json()['user']['role'], 'teacher')

        second = self.client.post(f'/api/admin/users/{self.pending_teacher_id}/approve', headers=self.admin_headers)
        self.assertEqual(second.status_code, 200)
        self.assertTrue(second.json()['user']['approved'])

    def test_approval_takes_effect_without_new_login(self):
        before = self.client.get('/api/student/dashboard', headers=self.pending_headers)
        self.assertEqual(before.status_code, 403)
        self.client.post(f'/api/admin/users/{self.pending_student_id}/approve', headers=self.admin_headers)
        after = self.client.get('/api/student/dashboard', headers=self.pending_headers)
        self.assertEqual(after.status_code, 200)

    def test_reject_deletes_pending_user(self):
        res = self.client.post(f'/api/admin/users/{self.pending_student_id}/reject', headers=self.admin_headers)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()['deleted_user_id'], self.pending_student_id)

        db = self._session_factory()
        try:
            self.assertIsNone(db.query(User).filter(User.id == self.pending_student_id).first())
        finally:
            db.close()
        me = self.client.get('/api/auth/me', headers=self.pending_headers)
        self.assertEqual(me.status_code, 401)

    def test_reject_approved_user_conflicts(self):
        res = self.client.post(f'/api/admin/users/{self.approved_student_id}/reject', headers=self.admin_headers)
        self.assertEqual(res.status_code, 409)

    def test_reject_unknown_user_is_not_found(self):
        res = self.client.post('/api/admin/users/99999/reject', headers=self.admin_headers)
        self.assertEqual(res.status_code, 404)

    def test_delete_user_keeps_their_appointments(self):
        db = self._session_factory()
        try:
            db.add(
                Appointment(
                    student_id=self.approved_student_id,
                    teacher_id=self.pending_teacher_id,
                    student_name='Sam',
                    teacher_name='Pending Teacher',
                    date='2026-05-04',
                    time='10:00',
                    subject='Chemistry',
                )
            )
            db.commit()
        finally:
            db.close()

        res = self.client.delete(f'/api/admin/users/{self.pending_teacher_id}', headers=self.admin_headers)
        self.assertEqual(res.status_code, 200)

        db = self._session_factory()
        try:
            self.assertEqual(db.query(Appointment).filter(Appointment.teacher_id == self.pending_teacher_id).count(), 1)
            self.assertEqual(
                db.query(TeacherAvailability).filter(TeacherAvailability.teacher_id == self.pending_teacher_id).count(),
                0,
            )
        finally:
            db.close()

    def test_admin_accounts_cannot_be_deleted(self):
        res = self.client.delete(f'/api/admin/users/{self.admin_id}', headers=self.admin_headers)
        self.assertEqual(res.status_code, 400)

    def test_add_teacher_returns_temporary_password_once(self):
        res = self.client.post(
            '/api/admin/teachers',
            json={
                'name': 'Meera Iyer',
                'email': 'meera@example.com',
                'subject': 'Biology',
                'experience': '6 years',
                'qualification': 'Ph.D.',
            },
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 201)
        body = res.json()
        self.assertTrue(body['teacher']['approved'])
        temp_password = body['temporary_password']
        self.assertTrue(temp_password)

        listing = self.client.get('/api/admin/users', params={'role': 'teacher'}, headers=self.admin_headers)
        self.assertNotIn(temp_password, listing.text)

        login = self.client.post('/api/auth/login', json={'email': 'meera@example.com', 'password': temp_password})
        self.assertEqual(login.status_code, 200)
        self.assertEqual(login.json()['next'], '/teacher/dashboard')

    def test_user_listing_filters(self):
        res = self.client.get(
            '/api/admin/users',
            params={'status': 'pending', 'search': 'chem'},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 200)
        self.assertEqual([row['id'] for row in res.json()], [self.pending_teacher_id])

        bad = self.client.get('/api/admin/users', params={'status': 'weird'}, headers=self.admin_headers)
        self.assertEqual(bad.status_code, 400)

    def test_admin_can_put_teacher_on_leave(self):
        res = self.client.put(
            f'/api/admin/teachers/{self.pending_teacher_id}/leave',
            json={'on_leave': True},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.json()['on_leave'])

        missing = self.client.put(
            f'/api/admin/teachers/{self.approved_student_id}/leave',
            json={'on_leave': True},
            headers=self.admin_headers,
        )
        self.assertEqual(missing.status_code, 404)

    def test_new_account_never_inherits_deleted_user_id(self):
        deleted = self.client.delete(f'/api/admin/users/{self.approved_student_id}', headers=self.admin_headers)
        self.assertEqual(deleted.status_code, 200)

        res = self.client.post(
            '/api/auth/register',
            json={'name': 'Newcomer', 'email': 'new@example.com', 'password': 'secret1', 'role': 'student'},
        )
        self.assertEqual(res.status_code, 201)
        new_id = res.json()['user']['id']
        self.assertNotEqual(new_id, self.approved_student_id)
        self.assertGreater(new_id, self.approved_student_id)

        me = self.client.get('/api/auth/me', headers=self.student_headers)
        self.assertEqual(me.status_code, 401)

    def test_rejected_user_token_does_not_carry_over_to_next_registrant(self):
        self.client.post(f'/api/admin/users/{self.pending_student_id}/reject', headers=self.admin_headers)
        res = self.client.post(
            '/api/auth/register',
            json={'name': 'Other Pat', 'email': 'other@example.com', 'password': 'secret1', 'role': 'student'},
        )
        self.assertEqual(res.status_code, 201)
        self.assertNotEqual(res.json()['user']['id'], self.pending_student_id)
        self.assertEqual(self.client.get('/api/auth/me', headers=self.pending_headers).status_code, 401)

    def test_token_issued_before_account_creation_is_rejected(self):
        db = self._session_factory()
        try:
            user = db.query(User).filter(User.id == self.approved_student_id).first()
            user.created_at = datetime.utcnow() + timedelta(minutes=10)
            db.commit()
        finally:
            db.close()
        me = self.client.get('/api/auth/me', headers=self.student_headers)
        self.assertEqual(me.status_code, 401)
