from datetime import datetime
from zoneinfo import ZoneInfo


class SystemClock:
    """Wall clock in the salon's timezone, returned as naive local time."""

    def __init__(self, timezone="Asia/Tokyo"):
        self.tz = ZoneInfo(timezone)

    def now(self):
        return datetime.now(self.tz).replace(tzinfo=None)


class FixedClock:
    def __init__(self, now):
        self._now = now

    def now(self):
        return self._now

    def set(self, now):
        self._now = now
