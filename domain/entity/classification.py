from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class MessageLabel(Enum):
    CHAT = "chat"
    PAYMENT = "payment"
    UNDERPAYMENT = "underpayment"


@dataclass(frozen=True)
class ClassificationResult:
    """Результат эвристической классификации текста"""
    is_payment: bool
    amount: Optional[Decimal] = None
    label: MessageLabel = MessageLabel.CHAT

    @property
    def is_underpayment(self) -> bool:
        return self.label == MessageLabel.UNDERPAYMENT

    @classmethod
    def chat(cls) -> 'ClassificationResult':
        return cls(is_payment=False, amount=None, label=MessageLabel.CHAT)


@dataclass(frozen=True)
class PaymentRules:
    """Настройки эвристики распознавания M-PESA подтверждений"""
    recipient_first_name: str = "john"
    recipient_surname: str = "makokha"
    merchant_id: Optional[str] = "6164915"
    min_amount: Optional[Decimal] = None
    confirmation_markers: List[str] = field(default_factory=lambda: ["confirmed"])
    transfer_markers: List[str] = field(default_factory=lambda: ["paid to"])
    currency_tokens: List[str] = field(default_factory=lambda: ["ksh", "kes"])
