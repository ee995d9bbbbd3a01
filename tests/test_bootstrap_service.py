import tempfile
import unittest
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from educonnect.config import settings
from educonnect.db import Base
from educonnect.models import Role, SystemSettings, TeacherAvailability, User
from educonnect.services.auth_service import verify_password
from educonnect.services.bootstrap_service import run_bootstrap


class BootstrapServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_bootstrap_service.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self._original = (settings.bootstrap_admin_email, settings.bootstrap_admin_password)
        db = self._session_factory()
        try:
            for table in (TeacherAvailability, User, SystemSettings):
                db.query(table).delete()
            db.commit()
        finally:
            db.close()

    def tearDown(self):
        settings.bootstrap_admin_email, settings.bootstrap_admin_password = self._original

    def test_creates_settings_row_without_admin_credentials(self):
        settings.bootstrap_admin_email = ''
        settings.bootstrap_admin_password = ''
        db = self._session_factory()
        try:
            result = run_bootstrap(db)
            self.assertEqual(result['admin']['reason'], 'no_credentials')
            self.assertEqual(db.query(SystemSettings).count(), 1)
            self.assertEqual(db.query(User).count(), 0)
        finally:
            db.close()

    def test_seeds_admin_once(self):
        settings.bootstrap_admin_email = 'Owner@Example.com'
        settings.bootstrap_admin_password = 'bootstrap-pass'
        db = self._session_factory()
        try:
            first = run_bootstrap(db)
            self.assertTrue(first['admin']['seeded'])
            admin = db.query(User).filter(User.role == Role.ADMIN.value).one()
            self.assertEqual(admin.email, 'owner@example.com')
            self.assertTrue(admin.approved)
            self.assertTrue(verify_password('bootstrap-pass', admin.password_hash))

            second = run_bootstrap(db)
            self.assertEqual(second['admin']['reason'], 'admin_exists')
            self.assertEqual(db.query(User).count(), 1)
        finally:
            db.close()
