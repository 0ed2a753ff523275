from telegram import Bot, Update
from telegram.ext import Application, CommandHandler, MessageHandler, filters, ContextTypes

from infrastructure.monitoring.logging import setup_logging, StructuredLogger
from infrastructure.monitoring.metrics import metrics_collector
from infrastructure.monitoring.tracing import trace_manager
from infrastructure.monitoring.health_check import HealthChecker

from domain.entity.inbound_event import EventKind
from domain.service.payment_classifier import PaymentClassifier
from domain.service.pending_delivery_registry import PendingDeliveryRegistry
from domain.service.time_gate import TimeGate

from application.use_case.reply_texts import ReplyTexts
from application.use_case.route_message import MessageRouter

from presentation.telegram.chat_transport import TelegramChatTransport
from presentation.telegram.middleware import TelegramMiddleware
from presentation.http.health_server import HealthServer

from config.settings import config


class RelayBot:
    def __init__(self):
        setup_logging()
        self.logger = StructuredLogger("relay_bot")

        self._log_configuration()

        self.operator_id = config.bot.operator_id

        # Инициализация бизнес-логики
        self.time_gate = TimeGate(config.active_window.window)
        self.classifier = PaymentClassifier(config.payment.rules)
        self.registry = PendingDeliveryRegistry()
        self.texts = ReplyTexts(
            recipient_display_name=config.payment.recipient_display_name,
            till_number=config.payment.till_number,
            price_check=config.payment.price_check,
            price_recheck=config.payment.price_recheck,
            resume_time=self.time_gate.resume_time_label()
        )
        self.middleware = TelegramMiddleware(self.operator_id)

        self.health_checker = HealthChecker(self.registry, self.time_gate)
        self.health_server = HealthServer(self.health_checker, config.server.port)

        self._setup_monitoring()

        # Роутер создается после Application, ему нужен Bot
        self.application = None
        self.router = None

        self.logger.info("RelayBot initialized successfully")

    def _log_configuration(self):
        window = config.active_window
        config_info = {
            'operator_id': config.bot.operator_id,
            'active_window': f"{window.start.strftime('%H:%M')}-{window.end.strftime('%H:%M')}",
            'timezone': window.timezone,
            'min_payment_amount': str(config.payment.min_amount),
            'http_port': config.server.port,
            'metrics_enabled': config.monitoring.enable_metrics,
            'metrics_port': config.monitoring.metrics_port,
            'log_level': config.monitoring.log_level
        }
        self.logger.info("Application configuration", extra=config_info)

    def _setup_monitoring(self):
        metrics_collector.start_metrics_server()
        trace_manager.setup_tracing()

    def build_router(self, bot: Bot) -> MessageRouter:
        return MessageRouter(
            operator_id=self.operator_id,
            transport=TelegramChatTransport(bot),
            registry=self.registry,
            time_gate=self.time_gate,
            classifier=self.classifier,
            texts=self.texts
        )

    async def _dispatch(self, update: Update, kind: EventKind):
        if update.effective_user is None or update.effective_message is None:
            return
        if self.router is None:
            self.logger.error("Router not available")
            return

        event = self.middleware.event_from_update(update, kind)
        await self.router.handle(event)

    async def start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._dispatch(update, EventKind.START)

    async def handle_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._dispatch(update, EventKind.COMMAND)

    async def handle_document(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._dispatch(update, EventKind.DOCUMENT)

    async def handle_photo(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._dispatch(update, EventKind.PHOTO)

    async def handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._dispatch(update, EventKind.TEXT)

    async def handle_other(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._dispatch(update, EventKind.OTHER)

    async def error_handler(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        """Логируем необработанные ошибки, бот продолжает работу"""
        user_id = None
        if isinstance(update, Update) and update.effective_user:
            user_id = update.effective_user.id
        self.logger.error(
            f"Unhandled error while processing update: {context.error}",
            extra={'user_id': user_id}
        )

    def setup_handlers(self):
        self.router = self.build_router(self.application.bot)

        # Только новые сообщения, правки игнорируются
        new_messages = filters.UpdateType.MESSAGE

        self.application.add_handler(CommandHandler("start", self.start, filters=new_messages))
        self.application.add_handler(MessageHandler(new_messages & filters.COMMAND, self.handle_command))
        self.application.add_handler(MessageHandler(new_messages & filters.Document.ALL, self.handle_document))
        self.application.add_handler(MessageHandler(new_messages & filters.PHOTO, self.handle_photo))
        self.application.add_handler(
            MessageHandler(new_messages & filters.TEXT & ~filters.COMMAND, self.handle_message)
        )
        # Голосовые, видео, стикеры и прочее: обработчик последний, срабатывает только без совпадений выше
        self.application.add_handler(MessageHandler(new_messages & ~filters.COMMAND, self.handle_other))

        self.application.add_error_handler(self.error_handler)

    async def _post_init(self, application: Application):
        try:
            await self.health_server.start()
        except OSError as e:
            self.logger.error(f"Failed to start HTTP server: {e}")

    async def _post_shutdown(self, application: Application):
        """Корректное завершение работы"""
        self.logger.info("Cleaning up resources...")
        await self.health_server.stop()
        if len(self.registry):
            self.logger.warning("Shutting down with a staged delivery, it will be lost")
        self.logger.info("Cleanup completed")

    def run(self):
        self.application = (
            Application.builder()
            .token(config.bot.token)
            .post_init(self._post_init)
            .post_shutdown(self._post_shutdown)
            .build()
        )
        self.setup_handlers()

        self.logger.info(
            "Relay bot is running!",
            extra={
                'http_port': config.server.port,
                'metrics_port': config.monitoring.metrics_port
            }
        )

        # SIGINT/SIGTERM обрабатываются run_polling (stop_signals)
        self.application.run_polling(allowed_updates=Update.ALL_TYPES)
