import os
from dataclasses import dataclass
from datetime import time
from decimal import Decimal, InvalidOperation
from typing import Optional

from domain.entity.active_window import ActiveWindow
from domain.entity.classification import PaymentRules


def _parse_time(name: str, default: str) -> time:
    """Разобрать 'HH' или 'HH:MM'; '24:00' означает полночь"""
    raw = os.getenv(name, default).strip()
    hours, _, minutes = raw.partition(":")
    try:
        hour = int(hours)
        minute = int(minutes) if minutes else 0
    except ValueError:
        raise ValueError(f"{name} must be in HH:MM format, got {raw!r}")
    if hour == 24 and minute == 0:
        hour = 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"{name} is out of range: {raw!r}")
    return time(hour, minute)


def _parse_decimal(name: str, default: Optional[str] = None) -> Optional[Decimal]:
    raw = os.getenv(name, default)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = Decimal(raw.strip().replace(",", ""))
    except InvalidOperation:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    # NaN и Infinity не сравниваются с суммами из SMS
    if not value.is_finite() or value < 0:
        raise ValueError(f"{name} must be a finite non-negative number, got {raw!r}")
    return value


@dataclass
class BotConfig:
    @property
    def token(self):
        token = os.getenv("TELEGRAM_BOT_TOKEN")
        if not token:
            raise ValueError("TELEGRAM_BOT_TOKEN environment variable is required")
        return token

    @property
    def operator_id(self) -> int:
        raw = os.getenv("OPERATOR_ID")
        if not raw:
            raise ValueError("OPERATOR_ID environment variable is required")
        try:
            return int(raw.strip())
        except ValueError:
            raise ValueError(f"OPERATOR_ID must be a numeric Telegram user id, got {raw!r}")


@dataclass
class ActiveWindowConfig:
    @property
    def start(self) -> time:
        return _parse_time("ACTIVE_WINDOW_START", "06:00")

    @property
    def end(self) -> time:
        return _parse_time("ACTIVE_WINDOW_END", "00:00")

    @property
    def timezone(self) -> str:
        return os.getenv("ACTIVE_WINDOW_TIMEZONE", "Africa/Nairobi")

    @property
    def window(self) -> ActiveWindow:
        return ActiveWindow(start=self.start, end=self.end, timezone=self.timezone)


@dataclass
class PaymentConfig:
    @property
    def recipient_first_name(self):
        return os.getenv("RECIPIENT_FIRST_NAME", "john")

    @property
    def recipient_surname(self):
        return os.getenv("RECIPIENT_SURNAME", "makokha")

    @property
    def recipient_display_name(self):
        return os.getenv("RECIPIENT_DISPLAY_NAME", "John Wanjala")

    @property
    def till_number(self):
        return os.getenv("MERCHANT_TILL_NUMBER", "6164915")

    @property
    def min_amount(self) -> Optional[Decimal]:
        return _parse_decimal("MIN_PAYMENT_AMOUNT")

    @property
    def price_check(self) -> Decimal:
        return _parse_decimal("PRICE_CHECK", "60")

    @property
    def price_recheck(self) -> Decimal:
        return _parse_decimal("PRICE_RECHECK", "50")

    @property
    def rules(self) -> PaymentRules:
        return PaymentRules(
            recipient_first_name=self.recipient_first_name,
            recipient_surname=self.recipient_surname,
            merchant_id=self.till_number or None,
            min_amount=self.min_amount
        )


@dataclass
class ServerConfig:
    @property
    def port(self):
        return int(os.getenv("PORT", "3000"))


@dataclass
class MonitoringConfig:
    @property
    def log_level(self):
        return os.getenv("LOG_LEVEL", "INFO")

    @property
    def log_file(self):
        return os.getenv("LOG_FILE", "logs/relay-bot.log")

    @property
    def enable_metrics(self):
        return os.getenv("ENABLE_METRICS", "true").lower() == "true"

    @property
    def metrics_port(self):
        return int(os.getenv("METRICS_PORT", "8000"))

    @property
    def enable_tracing(self):
        return os.getenv("ENABLE_TRACING", "false").lower() == "true"

    @property
    def otlp_endpoint(self):
        return os.getenv("OTLP_ENDPOINT", "http://localhost:4318/v1/traces")


class Config:
    def __init__(self):
        self._bot = BotConfig()
        self._active_window = ActiveWindowConfig()
        self._payment = PaymentConfig()
        self._server = ServerConfig()
        self._monitoring = MonitoringConfig()

    @property
    def bot(self):
        return self._bot

    @property
    def active_window(self):
        return self._active_window

    @property
    def payment(self):
        return self._payment

    @property
    def server(self):
        return self._server

    @property
    def monitoring(self):
        return self._monitoring


config = Config()
