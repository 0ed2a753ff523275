import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from domain.entity.classification import ClassificationResult, MessageLabel, PaymentRules
from infrastructure.monitoring.logging import StructuredLogger


class PaymentClassifier:
    """Эвристика распознавания текста подтверждения оплаты (M-PESA SMS).

    Это подсказка для оператора, а не проверка платежа: возможны ложные
    срабатывания и пропуски.
    """

    def __init__(self, rules: PaymentRules = None):
        self.rules = rules or PaymentRules()
        self.logger = StructuredLogger("payment_classifier")
        self._amount_pattern = self._build_amount_pattern()

    def _build_amount_pattern(self) -> re.Pattern:
        """Якорь суммы: '<confirmed>. <ksh> <число>'"""
        confirmations = "|".join(re.escape(m.lower()) for m in self.rules.confirmation_markers)
        currencies = "|".join(re.escape(c.lower()) for c in self.rules.currency_tokens)
        return re.compile(
            rf"(?:{confirmations})\.?\s*(?:{currencies})\.?\s*([0-9][0-9,.]*)"
        )

    def classify(self, text: Optional[str]) -> ClassificationResult:
        if not text:
            return ClassificationResult.chat()

        lowered = text.lower()
        if not self._looks_like_payment(lowered):
            return ClassificationResult.chat()

        amount = self.extract_amount(lowered)
        label = MessageLabel.PAYMENT
        min_amount = self.rules.min_amount
        if min_amount is not None and amount is not None and amount < min_amount:
            label = MessageLabel.UNDERPAYMENT

        self.logger.debug(
            "Payment text detected",
            extra={'amount': str(amount) if amount is not None else None, 'label': label.value}
        )
        return ClassificationResult(is_payment=True, amount=amount, label=label)

    def _looks_like_payment(self, lowered: str) -> bool:
        # Все три признака обязательны
        has_confirmation = any(m.lower() in lowered for m in self.rules.confirmation_markers)
        has_transfer = any(m.lower() in lowered for m in self.rules.transfer_markers)
        return has_confirmation and has_transfer and self._has_identity(lowered)

    def _has_identity(self, lowered: str) -> bool:
        first_name = self.rules.recipient_first_name.lower()
        surname = self.rules.recipient_surname.lower()
        has_name = bool(first_name and surname) and first_name in lowered and surname in lowered
        merchant_id = self.rules.merchant_id
        has_merchant = bool(merchant_id) and merchant_id in lowered
        return has_name or has_merchant

    def extract_amount(self, text: str) -> Optional[Decimal]:
        """Извлечь сумму после якоря; None если не найдена или не парсится"""
        match = self._amount_pattern.search(text.lower())
        if not match:
            return None

        # Точка или запятая в конце - знак препинания, а не часть суммы
        raw_amount = match.group(1).rstrip(".,").replace(",", "")
        try:
            return Decimal(raw_amount)
        except InvalidOperation:
            self.logger.debug(f"Unparseable amount token: {match.group(1)}")
            return None
