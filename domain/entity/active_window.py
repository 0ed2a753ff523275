from dataclasses import dataclass
from datetime import time


@dataclass(frozen=True)
class ActiveWindow:
    """Ежедневное окно полного обслуживания пользователей.

    Начало включается в окно, конец - нет. Если start > end, окно
    переходит через полночь. start == end означает работу круглые сутки.
    """
    start: time = time(6, 0)
    end: time = time(0, 0)
    timezone: str = "Africa/Nairobi"

    @property
    def wraps_midnight(self) -> bool:
        return self.start > self.end

    def contains(self, local_time: time) -> bool:
        """Попадает ли локальное время суток в активное окно"""
        if self.start == self.end:
            return True
        if self.wraps_midnight:
            return local_time >= self.start or local_time < self.end
        return self.start <= local_time < self.end
