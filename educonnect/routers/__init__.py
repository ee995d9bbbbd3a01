from educonnect.routers import admin, auth, messages, settings, student, teacher

__all__ = [
    'admin',
    'auth',
    'messages',
    'settings',
    'student',
    'teacher',
]
