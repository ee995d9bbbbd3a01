import tempfile
import unittest
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from educonnect.db import Base, get_db
from educonnect.models import Message, Role, SystemSettings, TeacherAvailability, User
from educonnect.routers import messages
from educonnect.services.auth_service import create_user, issue_session_token


class MessagesTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_messages.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        app = FastAPI()
        app.include_router(messages.router)

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
        db = self._session_factory()
        try:
            db.query(Message).delete()
            db.query(TeacherAvailability).delete()
            db.query(User).delete()
            db.query(SystemSettings).delete()
            db.commit()
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
            student_one = create_user(
                db, name='Aarav', email='aarav@example.com', password='secret1', role=Role.STUDENT.value, approved=True
            )
            student_two = create_user(
                db, name='Diya', email='diya@example.com', password='secret1', role=Role.STUDENT.value, approved=True
            )
            create_user(
                db, name='Waiting', email='waiting@example.com', password='secret1', role=Role.STUDENT.value, approved=False
            )
            self.teacher_id = teacher_user.id
            self.student_one_id = student_one.id
            self.student_two_id = student_two.id
            self.teacher_headers = {'Authorization': f"Bearer {issue_session_token(teacher_user)['token']}"}
            self.student_one_headers = {'Authorization': f"Bearer {issue_session_token(student_one)['token']}"}
            self.student_two_headers = {'Authorization': f"Bearer {issue_session_token(student_two)['token']}"}
        finally:
            db.close()

    def _send(self, headers, receiver_id, text):
        return self.client.post('/api/messages', json={'receiver_id': receiver_id, 'message': text}, headers=headers)

    def test_send_creates_unread_message(self):
        res = self._send(self.student_one_headers, self.teacher_id, 'Hello teacher')
        self.assertEqual(res.status_code, 201)
        body = res.json()
        self.assertFalse(body['read'])
        self.assertEqual(body['sender_name'], 'Aarav')
        self.assertTrue(body['outgoing'])

        inbox = self.client.get('/api/messages', headers=self.teacher_headers)
        self.assertEqual(inbox.json()['unread_count'], 1)
        self.assertFalse(inbox.json()['messages'][0]['outgoing'])

    def test_blank_and_self_messages_are_rejected(self):
        blank = self._send(self.student_one_headers, self.teacher_id, '   ')
        self.assertEqual(blank.status_code, 400)
        to_self = self._send(self.student_one_headers, self.student_one_id, 'Note to self')
        self.assertEqual(to_self.status_code, 400)
        missing = self._send(self.student_one_headers, 99999, 'Anyone there?')
        self.assertEqual(missing.status_code, 404)

    def test_only_recipient_marks_read_and_it_stays_read(self):
        message_id = self._send(self.student_one_headers, self.teacher_id, 'Hello').json()['id']

        by_sender = self.client.post(f'/api/messages/{message_id}/read', headers=self.student_one_headers)
        self.assertEqual(by_sender.status_code, 403)
        by_stranger = self.client.post(f'/api/messages/{message_id}/read', headers=self.student_two_headers)
        self.assertEqual(by_stranger.status_code, 403)

        first = self.client.post(f'/api/messages/{message_id}/read', headers=self.teacher_headers)
        self.assertEqual(first.status_code, 200)
        self.assertTrue(first.json()['read'])
        second = self.client.post(f'/api/messages/{message_id}/read', headers=self.teacher_headers)
        self.assertEqual(second.status_code, 200)
        self.assertTrue(second.json()['read'])

        self.assertEqual(self.client.post('/api/messages/99999/read', headers=self.teacher_headers).status_code, 404)

    def test_conversations_group_by_counterpart(self):
        self._send(self.student_one_headers, self.teacher_id, 'First from Aarav')
        self._send(self.teacher_headers, self.student_one_id, 'Reply to Aarav')
        self._send(self.student_two_headers, self.teacher_id, 'Hi from Diya')

        res = self.client.get('/api/messages/conversations', headers=self.teacher_headers)
        self.assertEqual(res.status_code, 200)
        by_id = {row['counterpart_id']: row for row in res.json()}
        self.assertEqual(set(by_id), {self.student_one_id, self.student_two_id})
        self.assertEqual(by_id[self.student_one_id]['message_count'], 2)
        self.assertEqual(by_id[self.student_one_id]['unread_count'], 1)
        self.assertEqual(by_id[self.student_two_id]['counterpart_name'], 'Diya')

        searched = self.client.get('/api/messages/conversations', params={'search': 'diya'}, headers=self.teacher_headers)
        self.assertEqual([row['counterpart_id'] for row in searched.json()], [self.student_two_id])

    def test_conversation_thread_is_chronological(self):
        self._send(self.student_one_headers, self.teacher_id, 'one')
        self._send(self.teacher_headers, self.student_one_id, 'two')
        self._send(self.student_two_headers, self.teacher_id, 'unrelated')

        res = self.client.get(f'/api/messages/conversations/{self.teacher_id}', headers=self.student_one_headers)
        self.assertEqual([row['message'] for row in res.json()], ['one', 'two'])

    def test_contacts_show_opposite_role(self):
        teacher_contacts = self.client.get('/api/messages/contacts', headers=self.teacher_headers)
        self.assertEqual({row['name'] for row in teacher_contacts.json()}, {'Aarav', 'Diya'})

        student_contacts = self.client.get('/api/messages/contacts', headers=self.student_one_headers)
        self.assertEqual([row['name'] for row in student_contacts.json()], ['Priya Sharma'])
