from enum import Enum, auto


class DeliveryErrorKind(Enum):
    RetryAfter = auto()  # 1
    TimedOut = auto()  # 2
    Forbidden = auto()  # 3
    BadRequest = auto()  # 4
    TelegramError = auto()  # 5
    Other = auto()  # 6
