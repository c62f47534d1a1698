"""
Publicação/assinatura de eventos entre as telas do painel.
O sinal é apenas um aviso para recarregar dados; não é transacional.
"""

from enum import Enum
from typing import Callable, Dict, List, Any
import logging

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], None]


class Topic(Enum):
    ORDERS_CHANGED = "orders:changed"
    CUSTOMERS_CHANGED = "customers:changed"
    PRODUCTS_CHANGED = "products:changed"
    USERS_CHANGED = "users:changed"

    @classmethod
    def for_collection(cls, collection: str) -> "Topic":
        return cls(f"{collection}:changed")


class EventBus:
    """Barramento síncrono em processo"""

    def __init__(self):
        self._handlers: Dict[Topic, List[Handler]] = {}

    def subscribe(self, topic: Topic, handler: Handler) -> Callable[[], None]:
        """
        Registra ``handler`` no tópico.

        Returns:
            Função que cancela a assinatura
        """
        self._handlers.setdefault(topic, []).append(handler)

        def unsubscribe():
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, topic: Topic, payload: Dict[str, Any]) -> int:
        """Entrega o evento a cada assinante; devolve quantos receberam sem erro."""
        delivered = 0
        for handler in list(self._handlers.get(topic, [])):
            try:
                handler(payload)
                delivered += 1
            except Exception as e:
                logger.error(f"Erro no assinante de {topic.value}: {e}")
        return delivered

    def subscriber_count(self, topic: Topic) -> int:
        return len(self._handlers.get(topic, []))
