from dataclasses import dataclass
from typing import Optional

from domain.exception.telegram import DeliveryErrorKind


@dataclass(frozen=True)
class DeliveryResult:
    """Результат исходящего вызова к чат-платформе"""
    ok: bool
    error_kind: Optional[DeliveryErrorKind] = None
    cause: Optional[str] = None

    @classmethod
    def success(cls) -> 'DeliveryResult':
        return cls(ok=True)

    @classmethod
    def failure(cls, error_kind: DeliveryErrorKind, cause: str) -> 'DeliveryResult':
        return cls(ok=False, error_kind=error_kind, cause=cause)
