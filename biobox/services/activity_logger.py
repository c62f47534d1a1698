"""
Registro de atividades recentes (quem criou, alterou ou removeu o quê).
"""

from enum import Enum
from typing import Dict, Any, List, Optional
import logging
import time

from biobox.models.local_cache import LocalCache
from biobox.models.store_base import DocumentStore, SERVER_TIMESTAMP
from biobox.utils.normalize import now_iso, sanitize_for_store

logger = logging.getLogger(__name__)

ACTIVITIES_COLLECTION = "activities"
LOCAL_LIMIT = 50


class ActionType(Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    COMPLETE = "complete"


class ActivityLogger:
    """
    Grava atividades no banco remoto quando configurado, senão no cache
    local (só as 50 mais recentes). Nunca propaga erro: a atividade é
    informativa e não pode derrubar a operação principal.
    """

    def __init__(self, cache: LocalCache, store: Optional[DocumentStore] = None):
        self.cache = cache
        self.store = store

    @property
    def local_key(self) -> str:
        return self.cache.collection_key(ACTIVITIES_COLLECTION)

    def log(self, user, action_type: ActionType, entity_type: str, description: str,
            entity_id: Optional[str] = None, entity_name: Optional[str] = None,
            metadata: Optional[Dict[str, Any]] = None) -> None:
        activity = {
            "user_id": getattr(user, "id", None),
            "user_name": getattr(user, "name", None) or "Sistema",
            "action_type": action_type.value,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "entity_name": entity_name,
            "description": description,
            "metadata": metadata or {},
        }
        try:
            if self.store is not None:
                self.store.add(ACTIVITIES_COLLECTION, sanitize_for_store({
                    **activity,
                    "created_at": SERVER_TIMESTAMP,
                }))
                return
            stored = self.cache.get_json(self.local_key, [])
            if not isinstance(stored, list):
                stored = []
            stored.insert(0, {
                **activity,
                "id": f"act-{int(time.time() * 1000)}",
                "created_at": now_iso(),
            })
            self.cache.set_json(self.local_key, stored[:LOCAL_LIMIT])
        except Exception as e:
            logger.error(f"Erro ao registrar atividade: {e}")

    def recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Atividades mais recentes primeiro."""
        try:
            if self.store is not None:
                documents = self.store.query(ACTIVITIES_COLLECTION, order_by="created_at", descending=True)
                return [d.to_record() for d in documents[:limit]]
        except Exception as e:
            logger.warning(f"Erro ao carregar atividades remotas: {e}")
        stored = self.cache.get_json(self.local_key, [])
        return stored[:limit] if isinstance(stored, list) else []
