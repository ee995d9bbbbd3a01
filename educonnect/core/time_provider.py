from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from educonnect.config import settings


APP_TIMEZONE = settings.app_timezone or "Asia/Kolkata"
APP_ZONEINFO = ZoneInfo(APP_TIMEZONE)


class TimeProvider:
    def now(self) -> datetime:
        return datetime.now(APP_ZONEINFO)

    def today(self) -> date:
        return self.now().date()

    def local_naive_now(self) -> datetime:
        # Appointment date/time strings are wall-clock values in the app timezone.
        return self.now().replace(tzinfo=None)


default_time_provider = TimeProvider()
