"""
Cache local em chave/valor JSON.
Guarda uma lista JSON por coleção, as configurações por escopo e a sessão
do último usuário autenticado (mais o perfil de cada usuário logado).
É o armazenamento usado quando o banco remoto não responde.
"""

import json
import logging
from typing import Any, List

from sqlalchemy.exc import SQLAlchemyError

from biobox.models import db, CacheEntry

logger = logging.getLogger(__name__)


class LocalCache:
    """Acesso às chaves do cache local (tabela ``local_cache``)"""

    def __init__(self, prefix: str = "biobox"):
        self.prefix = prefix

    def collection_key(self, collection: str) -> str:
        return f"{self.prefix}_{collection}"

    def settings_key(self, scope: str) -> str:
        return f"{self.prefix}_settings_{scope}"

    @property
    def session_key(self) -> str:
        return f"{self.prefix}sys_user"

    def profile_key(self, user_id: str) -> str:
        return f"{self.session_key}_{user_id}"

    def get_raw(self, key: str):
        entry = db.session.get(CacheEntry, key)
        return entry.value if entry else None

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_raw(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Cache local: valor inválido em {key}, ignorando")
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_raw(key, json.dumps(value, ensure_ascii=False, default=str))

    def set_raw(self, key: str, raw: str) -> None:
        try:
            entry = db.session.get(CacheEntry, key)
            if entry is None:
                db.session.add(CacheEntry(key=key, value=raw))
            else:
                entry.value = raw
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def remove(self, key: str) -> None:
        try:
            entry = db.session.get(CacheEntry, key)
            if entry is not None:
                db.session.delete(entry)
                db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def has(self, key: str) -> bool:
        return db.session.get(CacheEntry, key) is not None

    def get_list(self, collection: str) -> List[dict]:
        items = self.get_json(self.collection_key(collection), [])
        if not isinstance(items, list):
            return []
        return [item for item in items if isinstance(item, dict)]

    def set_list(self, collection: str, items: List[dict]) -> None:
        self.set_json(self.collection_key(collection), items)
