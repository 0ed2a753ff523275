import logging
import sys
import os
from datetime import datetime, timezone
from typing import Dict, Any
import uuid
from pythonjsonlogger import jsonlogger

SERVICE_NAME = 'relay-bot'


class ELKJSONFormatter(jsonlogger.JsonFormatter):
    """Форматтер для ELK-совместимого JSON-логирования"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        # Стандартные поля для ELK
        log_record['@timestamp'] = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
        log_record['level'] = record.levelname
        log_record['logger_name'] = record.name
        log_record['service'] = SERVICE_NAME
        log_record['environment'] = os.getenv('ENVIRONMENT', 'development')

        # Убираем дублирующиеся поля
        if 'message' in log_record and 'msg' in log_record:
            log_record.pop('msg')


class StructuredLogger:
    """Класс для структурированного логирования с ELK-поддержкой"""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.trace_id = str(uuid.uuid4())

    def _log_with_context(self, level: int, message: str, extra: Dict[str, Any] = None):
        extra_data = dict(extra or {})
        extra_data['trace_id'] = self.trace_id

        # Информация о сервисе
        extra_data['service'] = SERVICE_NAME
        extra_data['component'] = self.logger.name

        self.logger.log(level, message, extra=extra_data)

    def info(self, message: str, extra: Dict[str, Any] = None):
        self._log_with_context(logging.INFO, message, extra)

    def error(self, message: str, extra: Dict[str, Any] = None):
        self._log_with_context(logging.ERROR, message, extra)

    def warning(self, message: str, extra: Dict[str, Any] = None):
        self._log_with_context(logging.WARNING, message, extra)

    def debug(self, message: str, extra: Dict[str, Any] = None):
        self._log_with_context(logging.DEBUG, message, extra)


def setup_logging():
    """Настройка логирования для ELK"""
    root_logger = logging.getLogger()
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Форматтер для ELK
    formatter = ELKJSONFormatter(
        '%(timestamp)s %(level)s %(name)s %(message)s',
        rename_fields={
            'level': 'level',
            'name': 'logger_name'
        }
    )

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler для Logstash/Filebeat
    log_file = os.getenv("LOG_FILE", "logs/relay-bot.log")
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Настраиваем логирование для сторонних библиотек
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    return root_logger
