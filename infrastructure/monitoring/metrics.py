# infrastructure/monitoring/metrics.py
import time
import os
from prometheus_client import Counter, Histogram, Gauge
from prometheus_client.exposition import start_http_server
from infrastructure.monitoring.logging import StructuredLogger


class MetricsCollector:
    def __init__(self):
        self.logger = StructuredLogger("metrics")
        self._server_started = False

        # 📊 ВХОДЯЩИЕ СОБЫТИЯ
        self.events_received = Counter(
            'bot_events_received_total',
            'Total number of inbound events received',
            ['kind', 'role']  # start, command, document, photo, text / operator, user
        )

        self.events_routed = Counter(
            'bot_events_routed_total',
            'Total number of inbound events by router state',
            ['state']
        )

        self.routing_time = Histogram(
            'bot_routing_duration_seconds',
            'Time spent routing one inbound event',
            ['operation'],
            buckets=[0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0]
        )

        # 📤 ИСХОДЯЩИЕ ВЫЗОВЫ
        self.deliveries = Counter(
            'bot_deliveries_total',
            'Total number of outbound chat platform calls',
            ['operation', 'status']  # send_text, send_document, send_photo, forward_message
        )

        # 💰 КЛАССИФИКАЦИЯ ПЛАТЕЖЕЙ
        self.classifications = Counter(
            'payment_classifications_total',
            'Total number of classified user texts',
            ['label']  # chat, payment, underpayment
        )

        self.inactive_replies = Counter(
            'inactive_window_replies_total',
            'Number of events answered with the inactive notice'
        )

        # 🆕 МЕТРИКИ ОПЕРАТОРА
        self.operator_actions = Counter(
            'operator_actions_total',
            'Total number of operator actions',
            ['action_type']  # relay, stage, cancel, deliver, malformed, unknown
        )

        self.pending_deliveries = Gauge(
            'pending_deliveries',
            'Number of staged file deliveries waiting for an upload'
        )

    # 📊 МЕТОДЫ ДЛЯ РЕГИСТРАЦИИ МЕТРИК

    def record_event_received(self, kind: str, role: str = "user"):
        """Записать получение события"""
        self.events_received.labels(kind=kind, role=role).inc()

    def record_event_routed(self, state: str):
        """Записать состояние маршрутизатора"""
        self.events_routed.labels(state=state).inc()

    def record_processing_time(self, operation: str, duration: float):
        """Записать время обработки"""
        self.routing_time.labels(operation=operation).observe(duration)

    def record_delivery(self, operation: str, status: str = "success"):
        """Записать исходящий вызов"""
        self.deliveries.labels(operation=operation, status=status).inc()

    def record_classification(self, label: str):
        """Записать результат классификации"""
        self.classifications.labels(label=label).inc()

    def record_inactive_reply(self):
        """Записать ответ вне активного окна"""
        self.inactive_replies.inc()

    def record_operator_action(self, action_type: str):
        """Записать действие оператора"""
        self.operator_actions.labels(action_type=action_type).inc()

    def set_pending_deliveries(self, count: int):
        self.pending_deliveries.set(count)

    def start_metrics_server(self):
        """Запустить сервер метрик"""
        if self._server_started:
            return

        metrics_port = int(os.getenv("METRICS_PORT", "8000"))
        enable_metrics = os.getenv("ENABLE_METRICS", "true").lower() == "true"

        if enable_metrics:
            try:
                start_http_server(metrics_port)
                self._server_started = True
                self.logger.info(f"Metrics server started on port {metrics_port}")

                available_metrics = [
                    'bot_events_received_total',
                    'bot_events_routed_total',
                    'bot_deliveries_total',
                    'payment_classifications_total',
                    'operator_actions_total'
                ]
                self.logger.info(f"Available metrics: {', '.join(available_metrics)}")

            except OSError as e:
                self.logger.error(f"Failed to start metrics server: {e}")


# Глобальный инстанс метрик
metrics_collector = MetricsCollector()


class Timer:
    """Контекстный менеджер для измерения времени с автоматической записью в метрики"""

    def __init__(self, operation: str):
        self.operation = operation
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start_time
        metrics_collector.record_processing_time(self.operation, duration)
