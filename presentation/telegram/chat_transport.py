from typing import Awaitable, Callable, Optional, Sequence

from telegram import Bot, ReplyKeyboardMarkup
from telegram.error import BadRequest, Forbidden, RetryAfter, TelegramError, TimedOut

from domain.entity.delivery_result import DeliveryResult
from domain.exception.telegram import DeliveryErrorKind
from domain.interfaces.chat_transport import ChatId, ChatTransport
from infrastructure.monitoring.logging import StructuredLogger
from infrastructure.monitoring.metrics import metrics_collector


class TelegramChatTransport(ChatTransport):
    """
    Обертка для безопасной отправки через Telegram Bot API.
    Ошибки не пробрасываются, а возвращаются как DeliveryResult.
    Повторов нет: каждое событие обрабатывается за ограниченное число шагов.
    """

    def __init__(self, bot: Bot):
        self.bot = bot
        self.logger = StructuredLogger("telegram_transport")

    async def _call(self, operation: str, chat_id: ChatId, send: Callable[[], Awaitable]) -> DeliveryResult:
        try:
            await send()
            metrics_collector.record_delivery(operation, "success")
            self.logger.debug(f"{operation} to chat {chat_id} succeeded", extra={'chat_id': str(chat_id)})
            return DeliveryResult.success()

        except RetryAfter as e:
            # Telegram просит подождать; повторять не будем
            self.logger.warning(f"Telegram RetryAfter ({e.retry_after}s) for chat {chat_id}")
            metrics_collector.record_delivery(operation, "retry_after")
            return DeliveryResult.failure(DeliveryErrorKind.RetryAfter, str(e))

        except TimedOut as e:
            self.logger.warning(f"Telegram timeout for chat {chat_id}")
            metrics_collector.record_delivery(operation, "timeout")
            return DeliveryResult.failure(DeliveryErrorKind.TimedOut, str(e))

        except Forbidden as e:
            self.logger.warning(f"User blocked the bot or chat is forbidden: {chat_id}")
            metrics_collector.record_delivery(operation, "forbidden")
            return DeliveryResult.failure(DeliveryErrorKind.Forbidden, str(e))

        except BadRequest as e:
            # Неизвестный chat_id, неверный file_id и т.п.
            self.logger.warning(f"Telegram bad request for chat {chat_id}: {e}")
            metrics_collector.record_delivery(operation, "bad_request")
            return DeliveryResult.failure(DeliveryErrorKind.BadRequest, str(e))

        except TelegramError as e:
            self.logger.error(f"Telegram error for chat {chat_id}: {e}")
            metrics_collector.record_delivery(operation, f"error_{e.__class__.__name__}")
            return DeliveryResult.failure(DeliveryErrorKind.TelegramError, str(e))

        except Exception as e:
            # Неожиданные ошибки
            self.logger.error(f"Unexpected error in {operation} to chat {chat_id}: {e}")
            metrics_collector.record_delivery(operation, "unexpected_error")
            return DeliveryResult.failure(DeliveryErrorKind.Other, str(e))

    async def send_text(
        self,
        chat_id: ChatId,
        text: str,
        parse_mode: Optional[str] = None,
        keyboard: Optional[Sequence[Sequence[str]]] = None
    ) -> DeliveryResult:
        reply_markup = None
        if keyboard:
            reply_markup = ReplyKeyboardMarkup(
                [list(row) for row in keyboard],
                resize_keyboard=True,
                one_time_keyboard=False
            )

        return await self._call(
            "send_text",
            chat_id,
            lambda: self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=parse_mode,
                reply_markup=reply_markup
            )
        )

    async def send_document(self, chat_id: ChatId, file_id: str, caption: Optional[str] = None) -> DeliveryResult:
        return await self._call(
            "send_document",
            chat_id,
            lambda: self.bot.send_document(chat_id=chat_id, document=file_id, caption=caption)
        )

    async def send_photo(self, chat_id: ChatId, file_id: str, caption: Optional[str] = None) -> DeliveryResult:
        return await self._call(
            "send_photo",
            chat_id,
            lambda: self.bot.send_photo(chat_id=chat_id, photo=file_id, caption=caption)
        )

    async def forward_message(self, to_chat_id: ChatId, from_chat_id: ChatId, message_id: int) -> DeliveryResult:
        return await self._call(
            "forward_message",
            to_chat_id,
            lambda: self.bot.forward_message(
                chat_id=to_chat_id,
                from_chat_id=from_chat_id,
                message_id=message_id
            )
        )
