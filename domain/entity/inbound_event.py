from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventKind(Enum):
    START = "start"
    COMMAND = "command"
    DOCUMENT = "document"
    PHOTO = "photo"
    TEXT = "text"
    # голосовые, видео, стикеры, контакты и прочее
    OTHER = "other"


@dataclass(frozen=True)
class Sender:
    user_id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


@dataclass(frozen=True)
class InboundEvent:
    """Нормализованное входящее сообщение, не зависящее от Telegram"""
    sender: Sender
    sender_is_operator: bool
    kind: EventKind
    chat_id: int
    message_id: int
    text: Optional[str] = None
    caption: Optional[str] = None
    file_id: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return self.kind in (EventKind.DOCUMENT, EventKind.PHOTO)

    @property
    def body(self) -> str:
        """Текст сообщения или подпись к файлу"""
        return self.text or self.caption or ""
