from dataclasses import dataclass
from typing import Optional, Union

UserId = Union[int, str]


@dataclass
class PendingDelivery:
    """Инструкция оператора: кому отправить следующие файлы"""
    target_user_id: UserId
    caption: Optional[str] = None
    remaining: int = 1

    def __post_init__(self):
        if isinstance(self.remaining, bool) or not isinstance(self.remaining, int) or self.remaining < 1:
            raise ValueError(f"remaining must be a positive integer, got {self.remaining!r}")
        if self.caption == "":
            self.caption = None

    def consume(self) -> 'DeliveryTicket':
        """Списать одну доставку и вернуть снимок до уменьшения счетчика"""
        ticket = DeliveryTicket(
            target_user_id=self.target_user_id,
            caption=self.caption,
            remaining=self.remaining - 1
        )
        self.remaining -= 1
        return ticket

    @property
    def is_exhausted(self) -> bool:
        return self.remaining <= 0


@dataclass(frozen=True)
class DeliveryTicket:
    """Результат consume_one: куда отправить файл и сколько доставок осталось"""
    target_user_id: UserId
    caption: Optional[str]
    remaining: int
