from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from application.use_case.manage_delivery import ManageDeliveryUseCase
from application.use_case.reply_texts import MARKDOWN, USER_KEYBOARD, ReplyTexts
from domain.entity.classification import ClassificationResult, MessageLabel
from domain.entity.inbound_event import EventKind, InboundEvent
from domain.interfaces.chat_transport import ChatTransport
from domain.service.command_parser import parse_command
from domain.service.payment_classifier import PaymentClassifier
from domain.service.pending_delivery_registry import PendingDeliveryRegistry
from domain.service.time_gate import TimeGate
from infrastructure.monitoring.logging import StructuredLogger
from infrastructure.monitoring.metrics import metrics_collector, Timer
from infrastructure.monitoring.tracing import trace_span


class RouteState(Enum):
    OPERATOR_COMMAND = "operator_command"
    OPERATOR_DELIVERY = "operator_delivery"
    USER_START = "user_start"
    USER_DOCUMENT = "user_document"
    USER_PHOTO = "user_photo"
    USER_TEXT = "user_text"
    USER_OTHER = "user_other"
    USER_INACTIVE = "user_inactive"
    IGNORED = "ignored"


class MessageRouter:
    """Маршрутизация входящих событий между пользователями и оператором.

    Оператор никогда не ограничивается активным окном. Обычный пользователь
    вне окна получает только уведомление о неактивности: его файлы и
    сообщения оператору не пересылаются.

    Каждый исходящий вызов обрабатывается отдельно: ошибка уведомления
    оператора не отменяет ответ пользователю и наоборот.
    """

    def __init__(
        self,
        operator_id: int,
        transport: ChatTransport,
        registry: PendingDeliveryRegistry,
        time_gate: TimeGate,
        classifier: PaymentClassifier,
        texts: ReplyTexts,
        delivery_uc: Optional[ManageDeliveryUseCase] = None
    ):
        self.operator_id = operator_id
        self.transport = transport
        self.time_gate = time_gate
        self.classifier = classifier
        self.texts = texts
        self.delivery_uc = delivery_uc or ManageDeliveryUseCase(operator_id, transport, registry, texts)
        self.logger = StructuredLogger("message_router")

    @trace_span("usecase.route_message", attributes={"component": "application"})
    async def handle(self, event: InboundEvent, now: Optional[datetime] = None) -> RouteState:
        """Обработать одно входящее событие"""
        role = "operator" if event.sender_is_operator else "user"
        metrics_collector.record_event_received(event.kind.value, role)

        with Timer("route_message"):
            state = await self._route(event, now or datetime.now(timezone.utc))

        metrics_collector.record_event_routed(state.value)
        self.logger.info(
            "Event routed",
            extra={'user_id': event.sender.user_id, 'kind': event.kind.value, 'state': state.value}
        )
        return state

    async def _route(self, event: InboundEvent, now: datetime) -> RouteState:
        if event.sender_is_operator:
            return await self._route_operator(event)

        # Окно проверяется заново для каждого события
        if self.time_gate.is_inactive(now):
            metrics_collector.record_inactive_reply()
            await self._reply(event, self.texts.inactive_notice())
            return RouteState.USER_INACTIVE

        if event.kind == EventKind.START:
            return await self._user_start(event)
        if event.kind == EventKind.DOCUMENT:
            return await self._user_document(event)
        if event.kind == EventKind.PHOTO:
            return await self._user_photo(event)
        if event.kind == EventKind.OTHER:
            return await self._user_other(event)
        return await self._user_text(event)

    # --- Оператор ---

    async def _route_operator(self, event: InboundEvent) -> RouteState:
        if event.kind == EventKind.START:
            await self._reply(event, self.texts.operator_help(), parse_mode=MARKDOWN)
            return RouteState.OPERATOR_COMMAND

        if event.kind == EventKind.COMMAND:
            await self.delivery_uc.execute_command(event, parse_command(event.text))
            return RouteState.OPERATOR_COMMAND

        if event.is_file:
            await self.delivery_uc.deliver_staged_file(event)
            return RouteState.OPERATOR_DELIVERY

        # Обычный текст оператора не обрабатывается: ответы идут через /reply
        self.logger.debug("Operator plain text ignored")
        return RouteState.IGNORED

    # --- Пользователь ---

    async def _user_start(self, event: InboundEvent) -> RouteState:
        self.logger.info(
            "New user started the bot",
            extra={'user_id': event.sender.user_id, 'username': event.sender.username}
        )
        await self._reply(event, self.texts.welcome(), keyboard=USER_KEYBOARD)
        await self._notify_operator(self.texts.new_user_started(event.sender))
        return RouteState.USER_START

    async def _user_document(self, event: InboundEvent) -> RouteState:
        await self._notify_operator(self.texts.document_from_user(event.sender))
        await self._forward_to_operator(event)
        await self._reply(event, self.texts.file_received(), parse_mode=MARKDOWN)
        return RouteState.USER_DOCUMENT

    async def _user_photo(self, event: InboundEvent) -> RouteState:
        # Подпись к скриншоту может быть текстом оплаты
        result = self._classify(event.caption)
        await self._notify_operator(self.texts.photo_from_user(event.sender, result.label, result.amount))
        await self._forward_to_operator(event)

        if result.is_payment:
            await self._reply_payment(event, result)
        else:
            await self._reply(event, self.texts.file_received(), parse_mode=MARKDOWN)
        return RouteState.USER_PHOTO

    async def _user_text(self, event: InboundEvent) -> RouteState:
        text = event.body
        keyboard_reply = self.texts.keyboard_reply(text)
        if keyboard_reply:
            await self._reply(event, keyboard_reply, parse_mode=MARKDOWN)
            return RouteState.USER_TEXT

        result = self._classify(text)
        await self._notify_operator(
            self.texts.message_from_user(event.sender, result.label, result.amount, text)
        )
        # В уведомлении длинный текст обрезается, полный текст приходит пересылкой
        await self._forward_to_operator(event)

        # На обычную переписку автоответа нет: оператор отвечает через /reply
        if result.is_payment:
            await self._reply_payment(event, result)
        return RouteState.USER_TEXT

    async def _user_other(self, event: InboundEvent) -> RouteState:
        await self._notify_operator(self.texts.other_from_user(event.sender))
        await self._forward_to_operator(event)
        return RouteState.USER_OTHER

    def _classify(self, text: Optional[str]) -> ClassificationResult:
        result = self.classifier.classify(text)
        metrics_collector.record_classification(result.label.value)
        return result

    async def _reply_payment(self, event: InboundEvent, result: ClassificationResult):
        if result.label == MessageLabel.UNDERPAYMENT:
            text = self.texts.possible_underpayment(result.amount, self.classifier.rules.min_amount)
        else:
            text = self.texts.payment_received()
        await self._reply(event, text, parse_mode=MARKDOWN)

    # --- Исходящие вызовы ---

    async def _reply(self, event: InboundEvent, text: str, parse_mode: Optional[str] = None,
                     keyboard=None) -> bool:
        result = await self.transport.send_text(event.chat_id, text, parse_mode=parse_mode, keyboard=keyboard)
        if not result.ok:
            self.logger.error(
                f"Failed to reply to user {event.sender.user_id}: {result.cause}",
                extra={'user_id': event.sender.user_id}
            )
        return result.ok

    async def _notify_operator(self, text: str) -> bool:
        result = await self.transport.send_text(self.operator_id, text)
        if not result.ok:
            self.logger.error(f"Error notifying operator: {result.cause}")
        return result.ok

    async def _forward_to_operator(self, event: InboundEvent) -> bool:
        result = await self.transport.forward_message(self.operator_id, event.chat_id, event.message_id)
        if not result.ok:
            self.logger.error(
                f"Error forwarding message to operator: {result.cause}",
                extra={'user_id': event.sender.user_id}
            )
        return result.ok
