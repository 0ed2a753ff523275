from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union

from domain.entity.delivery_result import DeliveryResult

ChatId = Union[int, str]


class ChatTransport(ABC):
    """Абстрактный интерфейс исходящих вызовов к чат-платформе.

    Реализации не бросают исключений при ошибках доставки: любая ошибка
    возвращается как DeliveryResult с причиной.
    """

    @abstractmethod
    async def send_text(
        self,
        chat_id: ChatId,
        text: str,
        parse_mode: Optional[str] = None,
        keyboard: Optional[Sequence[Sequence[str]]] = None
    ) -> DeliveryResult:
        pass

    @abstractmethod
    async def send_document(self, chat_id: ChatId, file_id: str, caption: Optional[str] = None) -> DeliveryResult:
        pass

    @abstractmethod
    async def send_photo(self, chat_id: ChatId, file_id: str, caption: Optional[str] = None) -> DeliveryResult:
        pass

    @abstractmethod
    async def forward_message(self, to_chat_id: ChatId, from_chat_id: ChatId, message_id: int) -> DeliveryResult:
        pass
