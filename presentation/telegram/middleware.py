from telegram import Update

from domain.entity.inbound_event import EventKind, InboundEvent, Sender


class TelegramMiddleware:
    def __init__(self, operator_id: int):
        self.operator_id = operator_id

    @staticmethod
    def create_sender_from_telegram(telegram_user) -> Sender:
        return Sender(
            user_id=telegram_user.id,
            username=telegram_user.username,
            first_name=telegram_user.first_name,
            last_name=telegram_user.last_name
        )

    def event_from_update(self, update: Update, kind: EventKind) -> InboundEvent:
        """Преобразовать Telegram Update в InboundEvent"""
        message = update.effective_message
        user = update.effective_user

        file_id = None
        if kind == EventKind.DOCUMENT and message.document:
            file_id = message.document.file_id
        elif kind == EventKind.PHOTO and message.photo:
            # Последний размер - самый большой
            file_id = message.photo[-1].file_id

        return InboundEvent(
            sender=self.create_sender_from_telegram(user),
            sender_is_operator=user.id == self.operator_id,
            kind=kind,
            chat_id=message.chat_id,
            message_id=message.message_id,
            text=message.text,
            caption=message.caption,
            file_id=file_id
        )
