# tests/test_route_message.py
import pytest
import os
import sys
from datetime import datetime, time, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from application.use_case.reply_texts import (
    MARKDOWN, MESSAGE_LIMIT, USER_KEYBOARD, KEY_SEND_DOC, ReplyTexts, telegram_length
)
from application.use_case.route_message import MessageRouter, RouteState
from domain.entity.active_window import ActiveWindow
from domain.entity.classification import PaymentRules
from domain.entity.delivery_result import DeliveryResult
from domain.entity.inbound_event import EventKind, InboundEvent, Sender
from domain.exception.telegram import DeliveryErrorKind
from domain.interfaces.chat_transport import ChatTransport
from domain.service.payment_classifier import PaymentClassifier
from domain.service.pending_delivery_registry import PendingDeliveryRegistry
from domain.service.time_gate import TimeGate

OPERATOR_ID = 6569201830
USER_ID = 7488919090

ACTIVE_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
INACTIVE_NOW = datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc)

PAYMENT_TEXT = "QJK12ABC Confirmed. Ksh 100.00 paid to JOHN Makokha WANJALA"
UNDERPAYMENT_TEXT = "QJK Confirmed. Ksh 50.00 paid to JK SHOP till 6164915"


def make_event(kind, sender_is_operator=False, text=None, caption=None, file_id=None, message_id=10):
    user_id = OPERATOR_ID if sender_is_operator else USER_ID
    return InboundEvent(
        sender=Sender(user_id=user_id, username="tester", first_name="Test", last_name="User"),
        sender_is_operator=sender_is_operator,
        kind=kind,
        chat_id=user_id,
        message_id=message_id,
        text=text,
        caption=caption,
        file_id=file_id
    )


def sent_texts(transport, chat_id):
    return [c.args[1] for c in transport.send_text.call_args_list if c.args[0] == chat_id]


class TestMessageRouter:
    @pytest.fixture
    def transport(self):
        transport = AsyncMock(spec=ChatTransport)
        transport.send_text.return_value = DeliveryResult.success()
        transport.send_document.return_value = DeliveryResult.success()
        transport.send_photo.return_value = DeliveryResult.success()
        transport.forward_message.return_value = DeliveryResult.success()
        return transport

    @pytest.fixture
    def registry(self):
        return PendingDeliveryRegistry()

    @pytest.fixture
    def texts(self):
        return ReplyTexts(resume_time="6 AM")

    @pytest.fixture
    def router(self, transport, registry, texts):
        time_gate = TimeGate(ActiveWindow(start=time(6, 0), end=time(0, 0), timezone="UTC"))
        classifier = PaymentClassifier(PaymentRules(min_amount=Decimal("80")))
        return MessageRouter(
            operator_id=OPERATOR_ID,
            transport=transport,
            registry=registry,
            time_gate=time_gate,
            classifier=classifier,
            texts=texts
        )

    # --- Пользователь ---

    @pytest.mark.asyncio
    async def test_user_start(self, router, transport, texts):
        """Тест: /start пользователя - приветствие с клавиатурой и уведомление оператора"""
        state = await router.handle(make_event(EventKind.START, text="/start"), now=ACTIVE_NOW)

        assert state == RouteState.USER_START
        transport.send_text.assert_any_await(USER_ID, texts.welcome(), parse_mode=None, keyboard=USER_KEYBOARD)
        operator_messages = sent_texts(transport, OPERATOR_ID)
        assert len(operator_messages) == 1
        assert "New user started the bot" in operator_messages[0]
        assert str(USER_ID) in operator_messages[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,text,file_id", [
        (EventKind.START, "/start", None),
        (EventKind.TEXT, "hello", None),
        (EventKind.TEXT, PAYMENT_TEXT, None),
        (EventKind.DOCUMENT, None, "doc-1"),
        (EventKind.PHOTO, None, "photo-1"),
    ])
    async def test_user_inactive_gets_only_notice(self, router, transport, texts, kind, text, file_id):
        """Тест: вне окна пользователь получает только уведомление о неактивности"""
        event = make_event(kind, text=text, file_id=file_id)

        state = await router.handle(event, now=INACTIVE_NOW)

        assert state == RouteState.USER_INACTIVE
        transport.send_text.assert_awaited_once_with(USER_ID, texts.inactive_notice(), parse_mode=None, keyboard=None)
        assert "resume at 6 AM" in texts.inactive_notice()
        transport.forward_message.assert_not_awaited()
        transport.send_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_user_document(self, router, transport, texts):
        """Тест: документ пользователя - ровно одно уведомление, пересылка и ответ"""
        event = make_event(EventKind.DOCUMENT, file_id="doc-1", message_id=77)

        state = await router.handle(event, now=ACTIVE_NOW)

        assert state == RouteState.USER_DOCUMENT
        operator_messages = sent_texts(transport, OPERATOR_ID)
        assert len(operator_messages) == 1
        assert "Document from user" in operator_messages[0]
        transport.forward_message.assert_awaited_once_with(OPERATOR_ID, USER_ID, 77)
        assert sent_texts(transport, USER_ID) == [texts.file_received()]

    @pytest.mark.asyncio
    async def test_user_photo_without_caption(self, router, transport, texts):
        """Тест: фото без подписи обрабатывается как файл"""
        state = await router.handle(make_event(EventKind.PHOTO, file_id="photo-1"), now=ACTIVE_NOW)

        assert state == RouteState.USER_PHOTO
        assert "Photo from user" in sent_texts(transport, OPERATOR_ID)[0]
        transport.forward_message.assert_awaited_once()
        assert sent_texts(transport, USER_ID) == [texts.file_received()]

    @pytest.mark.asyncio
    async def test_user_photo_with_payment_caption(self, router, transport, texts):
        """Тест: скриншот с текстом оплаты в подписи"""
        event = make_event(EventKind.PHOTO, caption=PAYMENT_TEXT, file_id="photo-1")

        await router.handle(event, now=ACTIVE_NOW)

        operator_message = sent_texts(transport, OPERATOR_ID)[0]
        assert "Payment text from user" in operator_message
        assert "Amount: 100 KES" in operator_message
        assert sent_texts(transport, USER_ID) == [texts.payment_received()]

    @pytest.mark.asyncio
    async def test_user_chat_text(self, router, transport):
        """Тест: обычный текст уходит оператору без автоответа"""
        state = await router.handle(make_event(EventKind.TEXT, text="hey how much is a recheck"), now=ACTIVE_NOW)

        assert state == RouteState.USER_TEXT
        operator_messages = sent_texts(transport, OPERATOR_ID)
        assert len(operator_messages) == 1
        assert "New message from user" in operator_messages[0]
        assert operator_messages[0].endswith("hey how much is a recheck")
        assert sent_texts(transport, USER_ID) == []
        transport.forward_message.assert_awaited_once_with(OPERATOR_ID, USER_ID, 10)

    @pytest.mark.asyncio
    async def test_user_text_at_message_limit_reaches_operator(self, router, transport):
        """Тест: текст длиной 4096 символов доходит до оператора"""
        async def send_text(chat_id, text, parse_mode=None, keyboard=None):
            if telegram_length(text) > MESSAGE_LIMIT:
                return DeliveryResult.failure(DeliveryErrorKind.BadRequest, "Message is too long")
            return DeliveryResult.success()

        transport.send_text.side_effect = send_text
        long_text = "x" * MESSAGE_LIMIT

        state = await router.handle(make_event(EventKind.TEXT, text=long_text), now=ACTIVE_NOW)

        assert state == RouteState.USER_TEXT
        operator_messages = sent_texts(transport, OPERATOR_ID)
        assert len(operator_messages) == 1
        assert telegram_length(operator_messages[0]) <= MESSAGE_LIMIT
        assert "truncated" in operator_messages[0]
        # Полный текст оператор получает пересылкой
        transport.forward_message.assert_awaited_once_with(OPERATOR_ID, USER_ID, 10)

    @pytest.mark.asyncio
    async def test_user_other_message(self, router, transport):
        """Тест: голосовое или стикер пересылается оператору без ответа пользователю"""
        state = await router.handle(make_event(EventKind.OTHER, message_id=31), now=ACTIVE_NOW)

        assert state == RouteState.USER_OTHER
        operator_messages = sent_texts(transport, OPERATOR_ID)
        assert len(operator_messages) == 1
        assert "Message from user" in operator_messages[0]
        transport.forward_message.assert_awaited_once_with(OPERATOR_ID, USER_ID, 31)
        assert sent_texts(transport, USER_ID) == []

    @pytest.mark.asyncio
    async def test_user_other_message_inactive(self, router, transport, texts):
        """Тест: вне окна прочие сообщения не пересылаются"""
        state = await router.handle(make_event(EventKind.OTHER), now=INACTIVE_NOW)

        assert state == RouteState.USER_INACTIVE
        assert sent_texts(transport, USER_ID) == [texts.inactive_notice()]
        transport.forward_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_operator_other_message_ignored(self, router, transport):
        state = await router.handle(make_event(EventKind.OTHER, sender_is_operator=True), now=ACTIVE_NOW)

        assert state == RouteState.IGNORED
        transport.send_text.assert_not_awaited()
        transport.forward_message.assert_not_awaited()

    def test_registry_owned_by_delivery_use_case(self, router, registry):
        """Тест: реестр доставок используется только сценарием оператора"""
        assert router.delivery_uc.registry is registry
        assert not hasattr(router, "registry")

    @pytest.mark.asyncio
    async def test_user_payment_text(self, router, transport, texts):
        """Тест: текст оплаты - метка для оператора и подтверждение пользователю"""
        await router.handle(make_event(EventKind.TEXT, text=PAYMENT_TEXT), now=ACTIVE_NOW)

        assert "Payment text from user" in sent_texts(transport, OPERATOR_ID)[0]
        transport.send_text.assert_any_await(USER_ID, texts.payment_received(), parse_mode=MARKDOWN, keyboard=None)

    @pytest.mark.asyncio
    async def test_user_underpayment_text(self, router, transport):
        """Тест: недоплата помечается для оператора и пользователя"""
        await router.handle(make_event(EventKind.TEXT, text=UNDERPAYMENT_TEXT), now=ACTIVE_NOW)

        assert "Possible underpayment" in sent_texts(transport, OPERATOR_ID)[0]
        user_messages = sent_texts(transport, USER_ID)
        assert len(user_messages) == 1
        assert "below the expected" in user_messages[0]
        assert "*50 KES*" in user_messages[0]
        assert "*80 KES*" in user_messages[0]

    @pytest.mark.asyncio
    async def test_keyboard_button(self, router, transport, texts):
        """Тест: кнопка клавиатуры - подсказка без уведомления оператора"""
        await router.handle(make_event(EventKind.TEXT, text=KEY_SEND_DOC), now=ACTIVE_NOW)

        assert sent_texts(transport, USER_ID) == [texts.how_to_send_document()]
        assert sent_texts(transport, OPERATOR_ID) == []
        transport.forward_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_user_slash_command_treated_as_text(self, router, transport):
        """Тест: команда от пользователя пересылается оператору как текст"""
        state = await router.handle(make_event(EventKind.COMMAND, text="/reply 1 hack"), now=ACTIVE_NOW)

        assert state == RouteState.USER_TEXT
        assert sent_texts(transport, OPERATOR_ID)[0].endswith("/reply 1 hack")
        transport.send_text.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_operator_notify_failure_does_not_block_user_reply(self, router, transport, texts):
        """Тест: ошибка уведомления оператора не отменяет ответ пользователю"""
        async def send_text(chat_id, text, parse_mode=None, keyboard=None):
            if chat_id == OPERATOR_ID:
                return DeliveryResult.failure(DeliveryErrorKind.TimedOut, "Timed out")
            return DeliveryResult.success()

        transport.send_text.side_effect = send_text
        transport.forward_message.return_value = DeliveryResult.failure(DeliveryErrorKind.BadRequest, "nope")

        state = await router.handle(make_event(EventKind.DOCUMENT, file_id="doc-1"), now=ACTIVE_NOW)

        assert state == RouteState.USER_DOCUMENT
        assert sent_texts(transport, USER_ID) == [texts.file_received()]

    # --- Оператор ---

    @pytest.mark.asyncio
    async def test_operator_start_ignores_window(self, router, transport, texts):
        """Тест: оператор получает справку даже вне окна"""
        state = await router.handle(make_event(EventKind.START, sender_is_operator=True, text="/start"),
                                    now=INACTIVE_NOW)

        assert state == RouteState.OPERATOR_COMMAND
        transport.send_text.assert_awaited_once_with(OPERATOR_ID, texts.operator_help(), parse_mode=MARKDOWN,
                                                     keyboard=None)

    @pytest.mark.asyncio
    async def test_operator_relay(self, router, transport):
        """Тест: /reply доставляет текст пользователю и подтверждает оператору"""
        event = make_event(EventKind.COMMAND, sender_is_operator=True, text=f"/reply {USER_ID} Your report is ready")

        state = await router.handle(event, now=INACTIVE_NOW)

        assert state == RouteState.OPERATOR_COMMAND
        transport.send_text.assert_any_await(USER_ID, "Your report is ready")
        assert sent_texts(transport, OPERATOR_ID) == [f"✅ Message sent to user {USER_ID}"]

    @pytest.mark.asyncio
    async def test_operator_relay_failure(self, router, transport):
        """Тест: ошибка доставки сообщается оператору с причиной"""
        async def send_text(chat_id, text, parse_mode=None, keyboard=None):
            if chat_id == USER_ID:
                return DeliveryResult.failure(DeliveryErrorKind.Forbidden, "bot was blocked by the user")
            return DeliveryResult.success()

        transport.send_text.side_effect = send_text

        await router.handle(
            make_event(EventKind.COMMAND, sender_is_operator=True, text=f"/reply {USER_ID} hi"),
            now=ACTIVE_NOW
        )

        assert sent_texts(transport, OPERATOR_ID) == ["❌ Failed to send message: bot was blocked by the user"]

    @pytest.mark.asyncio
    async def test_operator_malformed_relay(self, router, transport):
        """Тест: /reply без текста - подсказка и никакой доставки"""
        await router.handle(make_event(EventKind.COMMAND, sender_is_operator=True, text="/reply 42"), now=ACTIVE_NOW)

        assert sent_texts(transport, OPERATOR_ID) == ["Usage: /reply <userId> <message>"]
        assert transport.send_text.await_count == 1

    @pytest.mark.asyncio
    async def test_operator_file_without_staging(self, router, transport, texts):
        """Тест: файл без /file - подсказка оператору"""
        event = make_event(EventKind.DOCUMENT, sender_is_operator=True, file_id="report-1")

        state = await router.handle(event, now=ACTIVE_NOW)

        assert state == RouteState.OPERATOR_DELIVERY
        transport.send_text.assert_awaited_once_with(OPERATOR_ID, texts.stage_first(), parse_mode=MARKDOWN)
        transport.send_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_operator_stage_and_deliver_document(self, router, transport, registry):
        """Тест: /file и затем документ - доставка пользователю с подписью"""
        await router.handle(
            make_event(EventKind.COMMAND, sender_is_operator=True, text=f"/file {USER_ID} Here is your report ✅"),
            now=ACTIVE_NOW
        )
        assert registry.get(OPERATOR_ID).remaining == 1

        await router.handle(
            make_event(EventKind.DOCUMENT, sender_is_operator=True, file_id="report-1"),
            now=ACTIVE_NOW
        )

        transport.send_document.assert_awaited_once_with(USER_ID, "report-1", caption="Here is your report ✅")
        assert sent_texts(transport, OPERATOR_ID)[-1] == f"✅ File sent to user {USER_ID}"
        assert registry.get(OPERATOR_ID) is None

    @pytest.mark.asyncio
    async def test_operator_stage_two_files(self, router, transport):
        """Тест: /file2 обслуживает два файла, третий требует новой постановки"""
        operator = dict(sender_is_operator=True)
        await router.handle(make_event(EventKind.COMMAND, text="/file2 42", **operator), now=ACTIVE_NOW)

        await router.handle(make_event(EventKind.DOCUMENT, file_id="f1", **operator), now=ACTIVE_NOW)
        assert "1 more file(s) staged" in sent_texts(transport, OPERATOR_ID)[-1]

        await router.handle(make_event(EventKind.PHOTO, file_id="f2", **operator), now=ACTIVE_NOW)
        assert sent_texts(transport, OPERATOR_ID)[-1] == "✅ File sent to user 42"

        await router.handle(make_event(EventKind.DOCUMENT, file_id="f3", **operator), now=ACTIVE_NOW)

        transport.send_document.assert_awaited_once_with(42, "f1", caption=None)
        transport.send_photo.assert_awaited_once_with(42, "f2", caption=None)
        assert "first run" in sent_texts(transport, OPERATOR_ID)[-1]

    @pytest.mark.asyncio
    async def test_operator_restage_overwrites_target(self, router, transport):
        """Тест: новая постановка заменяет оставшуюся"""
        operator = dict(sender_is_operator=True)
        await router.handle(make_event(EventKind.COMMAND, text="/file2 111", **operator), now=ACTIVE_NOW)
        await router.handle(make_event(EventKind.DOCUMENT, file_id="f1", **operator), now=ACTIVE_NOW)
        await router.handle(make_event(EventKind.COMMAND, text="/file 222", **operator), now=ACTIVE_NOW)
        await router.handle(make_event(EventKind.DOCUMENT, file_id="f2", **operator), now=ACTIVE_NOW)

        targets = [c.args[0] for c in transport.send_document.call_args_list]
        assert targets == [111, 222]

    @pytest.mark.asyncio
    async def test_operator_delivery_failure_consumes_slot(self, router, transport, registry):
        """Тест: при ошибке отправки доставка все равно списана"""
        transport.send_document.return_value = DeliveryResult.failure(DeliveryErrorKind.BadRequest, "Chat not found")
        operator = dict(sender_is_operator=True)

        await router.handle(make_event(EventKind.COMMAND, text="/file 42", **operator), now=ACTIVE_NOW)
        await router.handle(make_event(EventKind.DOCUMENT, file_id="f1", **operator), now=ACTIVE_NOW)

        assert sent_texts(transport, OPERATOR_ID)[-1] == "❌ Failed to send file: Chat not found"
        assert registry.get(OPERATOR_ID) is None

    @pytest.mark.asyncio
    async def test_operator_cancel(self, router, transport, registry):
        """Тест: /cancel снимает постановку"""
        operator = dict(sender_is_operator=True)
        await router.handle(make_event(EventKind.COMMAND, text="/cancel", **operator), now=ACTIVE_NOW)
        assert sent_texts(transport, OPERATOR_ID)[-1] == "Nothing is staged right now."

        await router.handle(make_event(EventKind.COMMAND, text="/file2 42", **operator), now=ACTIVE_NOW)
        await router.handle(make_event(EventKind.COMMAND, text="/cancel", **operator), now=ACTIVE_NOW)

        assert "cancelled" in sent_texts(transport, OPERATOR_ID)[-1]
        assert registry.get(OPERATOR_ID) is None

    @pytest.mark.asyncio
    async def test_operator_unknown_command(self, router, transport):
        await router.handle(make_event(EventKind.COMMAND, sender_is_operator=True, text="/stats"), now=ACTIVE_NOW)

        assert "Unknown command /stats" in sent_texts(transport, OPERATOR_ID)[0]

    @pytest.mark.asyncio
    async def test_operator_plain_text_ignored(self, router, transport):
        """Тест: обычный текст оператора ни к чему не приводит"""
        state = await router.handle(make_event(EventKind.TEXT, sender_is_operator=True, text="hi"), now=ACTIVE_NOW)

        assert state == RouteState.IGNORED
        transport.send_text.assert_not_awaited()
        transport.forward_message.assert_not_awaited()
