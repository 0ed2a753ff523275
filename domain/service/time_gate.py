from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from domain.entity.active_window import ActiveWindow


class TimeGate:
    """Проверка активного окна обслуживания пользователей"""

    def __init__(self, window: ActiveWindow):
        self.window = window
        try:
            self._zone = ZoneInfo(window.timezone)
        except ZoneInfoNotFoundError:
            raise ValueError(f"Unknown timezone: {window.timezone}")

    def local_time(self, now: datetime) -> time:
        """Время суток в часовом поясе окна (naive datetime считается UTC)"""
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self._zone).time().replace(tzinfo=None)

    def is_active(self, now: datetime) -> bool:
        return self.window.contains(self.local_time(now))

    def is_inactive(self, now: datetime) -> bool:
        return not self.is_active(now)

    def resume_time_label(self) -> str:
        """Время возобновления работы для уведомления, например '6 AM'"""
        start = self.window.start
        hour = start.hour % 12 or 12
        suffix = "AM" if start.hour < 12 else "PM"
        if start.minute:
            return f"{hour}:{start.minute:02d} {suffix}"
        return f"{hour} {suffix}"
