import re
from typing import Optional, Union

from application.use_case.reply_texts import MARKDOWN, ReplyTexts
from domain.entity.command import (
    CancelDeliveryCommand,
    Command,
    MalformedCommand,
    RelayCommand,
    StageDeliveryCommand,
    UnknownCommand,
)
from domain.entity.delivery_result import DeliveryResult
from domain.entity.inbound_event import EventKind, InboundEvent
from domain.interfaces.chat_transport import ChatTransport
from domain.service.pending_delivery_registry import PendingDeliveryRegistry
from infrastructure.monitoring.logging import StructuredLogger
from infrastructure.monitoring.metrics import metrics_collector
from infrastructure.monitoring.tracing import trace_span

_NUMERIC_ID_RE = re.compile(r"^-?\d+$")


def to_chat_id(user_id: Union[int, str]) -> Union[int, str]:
    """Числовые идентификаторы передаем как int, остальные (@channel) как есть"""
    if isinstance(user_id, str) and _NUMERIC_ID_RE.match(user_id):
        return int(user_id)
    return user_id


class ManageDeliveryUseCase:
    """Команды оператора: ответ текстом, постановка и доставка файлов"""

    def __init__(self, operator_id: int, transport: ChatTransport, registry: PendingDeliveryRegistry,
                 texts: ReplyTexts):
        self.operator_id = operator_id
        self.transport = transport
        self.registry = registry
        self.texts = texts
        self.logger = StructuredLogger("manage_delivery_uc")

    async def _notify_operator(self, event: InboundEvent, text: str, parse_mode: Optional[str] = None) -> bool:
        result = await self.transport.send_text(event.chat_id, text, parse_mode=parse_mode)
        if not result.ok:
            self.logger.error(
                f"Failed to report to operator: {result.cause}",
                extra={'operator_id': self.operator_id}
            )
        return result.ok

    @trace_span("usecase.operator_command", attributes={"component": "application"})
    async def execute_command(self, event: InboundEvent, command: Command) -> None:
        """Выполнить разобранную команду оператора"""
        if isinstance(command, RelayCommand):
            await self.relay_text(event, command)
        elif isinstance(command, StageDeliveryCommand):
            await self.stage(event, command)
        elif isinstance(command, CancelDeliveryCommand):
            await self.cancel(event)
        elif isinstance(command, MalformedCommand):
            metrics_collector.record_operator_action("malformed")
            self.logger.info(f"Malformed /{command.name} command")
            await self._notify_operator(event, command.usage)
        elif isinstance(command, UnknownCommand):
            metrics_collector.record_operator_action("unknown")
            await self._notify_operator(event, self.texts.unknown_command(command.name))

    async def relay_text(self, event: InboundEvent, command: RelayCommand) -> DeliveryResult:
        metrics_collector.record_operator_action("relay")
        result = await self.transport.send_text(to_chat_id(command.user_id), command.text)

        if result.ok:
            self.logger.info(f"Operator message relayed to user {command.user_id}")
            await self._notify_operator(event, self.texts.message_sent(command.user_id))
        else:
            self.logger.error(
                f"Error sending reply: {result.cause}",
                extra={'target_user_id': command.user_id}
            )
            await self._notify_operator(event, self.texts.message_failed(result.cause))
        return result

    async def stage(self, event: InboundEvent, command: StageDeliveryCommand) -> None:
        metrics_collector.record_operator_action("stage")
        self.registry.stage(self.operator_id, command.user_id, command.caption, command.count)
        metrics_collector.set_pending_deliveries(len(self.registry))
        await self._notify_operator(
            event,
            self.texts.delivery_staged(command.user_id, command.count, command.caption)
        )

    async def cancel(self, event: InboundEvent) -> None:
        metrics_collector.record_operator_action("cancel")
        cancelled = self.registry.clear(self.operator_id)
        metrics_collector.set_pending_deliveries(len(self.registry))
        if cancelled is None:
            await self._notify_operator(event, self.texts.nothing_to_cancel())
            return
        await self._notify_operator(
            event,
            self.texts.delivery_cancelled(cancelled.target_user_id, cancelled.remaining)
        )

    @trace_span("usecase.deliver_staged_file", attributes={"component": "application"})
    async def deliver_staged_file(self, event: InboundEvent) -> Optional[DeliveryResult]:
        """Отправить загруженный оператором файл пользователю из очереди.

        Доставка списывается до отправки: при ошибке оператор получает
        причину и должен поставить файл заново.
        """
        ticket = self.registry.consume_one(self.operator_id)
        metrics_collector.set_pending_deliveries(len(self.registry))

        if ticket is None:
            await self._notify_operator(event, self.texts.stage_first(), parse_mode=MARKDOWN)
            return None

        metrics_collector.record_operator_action("deliver")
        target = to_chat_id(ticket.target_user_id)
        if event.kind == EventKind.PHOTO:
            result = await self.transport.send_photo(target, event.file_id, caption=ticket.caption)
        else:
            result = await self.transport.send_document(target, event.file_id, caption=ticket.caption)

        if result.ok:
            self.logger.info(
                f"File sent to user {ticket.target_user_id}",
                extra={'remaining': ticket.remaining, 'kind': event.kind.value}
            )
            await self._notify_operator(event, self.texts.file_sent(ticket.target_user_id, ticket.remaining))
        else:
            self.logger.error(
                f"Error sending file to user: {result.cause}",
                extra={'target_user_id': ticket.target_user_id}
            )
            await self._notify_operator(event, self.texts.file_failed(result.cause))
        return result
