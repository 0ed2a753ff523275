import threading
from typing import Dict, Optional

from domain.entity.pending_delivery import DeliveryTicket, PendingDelivery, UserId
from infrastructure.monitoring.logging import StructuredLogger


class PendingDeliveryRegistry:
    """Хранилище отложенных доставок файлов: не больше одной на оператора.

    Данные живут только в памяти процесса. Все операции выполняются под
    одной блокировкой, поэтому stage и consume_one не перемежаются.
    """

    def __init__(self):
        self.logger = StructuredLogger("pending_delivery_registry")
        self._pending: Dict[int, PendingDelivery] = {}
        self._lock = threading.Lock()

    def stage(self, operator_id: int, target_user_id: UserId, caption: Optional[str], count: int) -> PendingDelivery:
        """Поставить доставку, перезаписав предыдущую (последняя команда побеждает)"""
        delivery = PendingDelivery(target_user_id=target_user_id, caption=caption, remaining=count)

        with self._lock:
            previous = self._pending.get(operator_id)
            self._pending[operator_id] = delivery

        if previous:
            self.logger.info(
                f"Pending delivery for user {previous.target_user_id} replaced",
                extra={'operator_id': operator_id, 'discarded_remaining': previous.remaining}
            )
        self.logger.info(
            f"Delivery staged for user {target_user_id}",
            extra={'operator_id': operator_id, 'count': count}
        )
        return delivery

    def consume_one(self, operator_id: int) -> Optional[DeliveryTicket]:
        """Списать одну доставку; None если ничего не поставлено"""
        with self._lock:
            delivery = self._pending.get(operator_id)
            if delivery is None:
                return None

            ticket = delivery.consume()
            if delivery.is_exhausted:
                del self._pending[operator_id]

        self.logger.debug(
            f"Delivery consumed for user {ticket.target_user_id}",
            extra={'operator_id': operator_id, 'remaining': ticket.remaining}
        )
        return ticket

    def get(self, operator_id: int) -> Optional[DeliveryTicket]:
        """Снимок текущей доставки без изменения состояния"""
        with self._lock:
            delivery = self._pending.get(operator_id)
            if delivery is None:
                return None
            return DeliveryTicket(
                target_user_id=delivery.target_user_id,
                caption=delivery.caption,
                remaining=delivery.remaining
            )

    def clear(self, operator_id: int) -> Optional[DeliveryTicket]:
        """Отменить доставку; возвращает отмененную или None"""
        with self._lock:
            delivery = self._pending.pop(operator_id, None)

        if delivery is None:
            return None

        self.logger.info(
            f"Pending delivery for user {delivery.target_user_id} cancelled",
            extra={'operator_id': operator_id, 'remaining': delivery.remaining}
        )
        return DeliveryTicket(
            target_user_id=delivery.target_user_id,
            caption=delivery.caption,
            remaining=delivery.remaining
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
