"""
Gateway de persistência.

Cada coleção é acessada por um ``Repository``. Existem duas implementações
intercambiáveis (banco remoto e cache local) e um decorador,
``FallbackRepository``, que aplica a regra do painel: tenta o remoto e, em
qualquer exceção, usa o cache local.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Any, Optional, Type
import copy
import logging
import time

from biobox.models.entities import Customer, Order, Product, User
from biobox.models.local_cache import LocalCache
from biobox.models.store_base import DocumentStore, Where, SERVER_TIMESTAMP
from biobox.services.events import EventBus, Topic
from biobox.utils.normalize import now_iso, parse_datetime, sanitize_for_store

logger = logging.getLogger(__name__)

# Usuário padrão do cache local quando ainda não há cadastro nenhum
DEFAULT_LOCAL_USERS = [
    {
        "id": "550e8400-e29b-41d4-a716-446655440000",
        "email": "admin@bioboxsys.com",
        "name": "Administrator",
        "role": "admin",
        "permissions": ["all"],
    },
]


def _matches(record: Dict[str, Any], where: Optional[List[Where]]) -> bool:
    return all(record.get(f) == v for f, v in where or [])


def _created_sort_key(record: Dict[str, Any], field_name: str) -> float:
    parsed = parse_datetime(record.get(field_name))
    return parsed.timestamp() if parsed else 0.0


class Repository(ABC):
    """CRUD de uma coleção. Falhas saem como exceção."""

    def __init__(self, collection: str):
        self.collection = collection

    @abstractmethod
    def list(self, where: Optional[List[Where]] = None, order_by: Optional[str] = None,
             descending: bool = False) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def update(self, record_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Devolve o registro completo já atualizado, ou ``None`` se não existe."""

    @abstractmethod
    def delete(self, record_id: str) -> None:
        pass


class RemoteRepository(Repository):
    """Coleção no banco de documentos remoto"""

    def __init__(self, collection: str, store: DocumentStore):
        super().__init__(collection)
        self.store = store

    def list(self, where=None, order_by=None, descending=False):
        documents = self.store.query(self.collection, where=where, order_by=order_by, descending=descending)
        return [d.to_record() for d in documents]

    def get(self, record_id):
        document = self.store.get(self.collection, record_id)
        return document.to_record() if document else None

    def create(self, data):
        payload = {k: v for k, v in data.items() if k != "id"}
        doc_id = self.store.add(self.collection, sanitize_for_store({
            **payload,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        }))
        now = now_iso()
        return {**payload, "id": doc_id, "created_at": now, "updated_at": now}

    def update(self, record_id, patch):
        payload = {k: v for k, v in patch.items() if k not in ("id", "created_at")}
        self.store.update(self.collection, record_id, sanitize_for_store({
            **payload,
            "updated_at": SERVER_TIMESTAMP,
        }))
        # relê o documento para devolver a visão consistente do servidor
        return self.get(record_id)

    def delete(self, record_id):
        self.store.delete(self.collection, record_id)


class LocalRepository(Repository):
    """Coleção guardada como lista JSON no cache local (mais recente primeiro)"""

    def __init__(self, collection: str, cache: LocalCache, id_prefix: str,
                 defaults: Optional[List[Dict[str, Any]]] = None):
        super().__init__(collection)
        self.cache = cache
        self.id_prefix = id_prefix
        self.defaults = defaults or []

    def _load(self) -> List[Dict[str, Any]]:
        if self.defaults and not self.cache.has(self.cache.collection_key(self.collection)):
            return copy.deepcopy(self.defaults)
        return self.cache.get_list(self.collection)

    def _new_id(self, existing: List[Dict[str, Any]]) -> str:
        taken = {str(r.get("id")) for r in existing}
        stamp = int(time.time() * 1000)
        record_id = f"{self.id_prefix}-{stamp}"
        while record_id in taken:
            stamp += 1
            record_id = f"{self.id_prefix}-{stamp}"
        return record_id

    def list(self, where=None, order_by=None, descending=False):
        records = [r for r in self._load() if _matches(r, where)]
        if order_by:
            records.sort(key=lambda r: _created_sort_key(r, order_by), reverse=descending)
        return records

    def get(self, record_id):
        for record in self._load():
            if str(record.get("id")) == str(record_id):
                return record
        return None

    def create(self, data):
        records = self._load()
        now = now_iso()
        saved = {**data, "id": self._new_id(records), "created_at": now, "updated_at": now}
        self.cache.set_list(self.collection, [saved] + records)
        return saved

    def update(self, record_id, patch):
        records = self._load()
        updated = None
        for index, record in enumerate(records):
            if str(record.get("id")) == str(record_id):
                updated = {**record, **patch, "id": record.get("id"), "updated_at": now_iso()}
                records[index] = updated
                break
        if updated is None:
            return None
        self.cache.set_list(self.collection, records)
        return updated

    def delete(self, record_id):
        records = self._load()
        self.cache.set_list(self.collection, [r for r in records if str(r.get("id")) != str(record_id)])

    def replace_all(self, records: List[Dict[str, Any]]) -> None:
        self.cache.set_list(self.collection, records)


class FallbackRepository(Repository):
    """
    Decorador remoto -> local.
    Qualquer exceção do remoto (não só falta de conexão) cai para o cache local.
    Leituras remotas vazias também usam o cache. Com ``mirror_reads`` a leitura
    remota bem-sucedida é espelhada no cache.
    """

    def __init__(self, primary: Repository, fallback: LocalRepository, mirror_reads: bool = False):
        super().__init__(primary.collection)
        self.primary = primary
        self.fallback = fallback
        self.mirror_reads = mirror_reads

    def list(self, where=None, order_by=None, descending=False):
        try:
            records = self.primary.list(where=where, order_by=order_by, descending=descending)
            if records:
                if self.mirror_reads:
                    try:
                        self.fallback.replace_all(records)
                    except Exception as e:
                        logger.warning(f"[{self.collection}] Erro ao salvar cache: {e}")
                return records
            logger.warning(f"[{self.collection}] Banco remoto vazio, usando cache local")
        except Exception as e:
            logger.warning(f"[{self.collection}] Banco remoto indisponível, usando cache local: {e}")
        return self.fallback.list(where=where, order_by=order_by, descending=descending)

    def get(self, record_id):
        try:
            record = self.primary.get(record_id)
            if record is not None:
                return record
        except Exception as e:
            logger.warning(f"[{self.collection}] Erro ao ler {record_id} no remoto: {e}")
        return self.fallback.get(record_id)

    def create(self, data):
        try:
            return self.primary.create(data)
        except Exception as e:
            logger.warning(f"[{self.collection}] Banco remoto indisponível, criando no cache local: {e}")
        return self.fallback.create(data)

    def update(self, record_id, patch):
        try:
            record = self.primary.update(record_id, patch)
            if record is not None:
                return record
            logger.warning(f"[{self.collection}] {record_id} não encontrado no remoto, tentando cache local")
        except Exception as e:
            logger.warning(f"[{self.collection}] Banco remoto indisponível, atualizando cache local: {e}")
        return self.fallback.update(record_id, patch)

    def delete(self, record_id):
        try:
            self.primary.delete(record_id)
            return
        except Exception as e:
            logger.warning(f"[{self.collection}] Banco remoto indisponível, removendo do cache local: {e}")
        self.fallback.delete(record_id)


class EntityGateway:
    """
    Fachada tipada de uma coleção: converte registros em entidades e avisa
    o barramento de eventos depois de cada escrita.
    """

    def __init__(self, repository: Repository, entity_cls: Type, events: EventBus):
        self.repository = repository
        self.entity_cls = entity_cls
        self.events = events
        self.topic = Topic.for_collection(repository.collection)

    @property
    def collection(self) -> str:
        return self.repository.collection

    def _entity(self, record):
        return self.entity_cls.from_record(record, record.get("id"))

    def _notify(self, action: str, record_id: str):
        self.events.publish(self.topic, {"id": record_id, "action": action})

    def list(self, where: Optional[List[Where]] = None, order_by: Optional[str] = None,
             descending: bool = False) -> list:
        return [self._entity(r) for r in self.repository.list(where=where, order_by=order_by, descending=descending)]

    def get(self, record_id: str):
        record = self.repository.get(record_id)
        return self._entity(record) if record else None

    def create(self, data: Dict[str, Any]):
        record = self.repository.create(data)
        entity = self._entity(record)
        self._notify("created", entity.id)
        return entity

    def update(self, record_id: str, patch: Dict[str, Any]):
        record = self.repository.update(record_id, patch)
        if record is None:
            return None
        entity = self._entity(record)
        self._notify("updated", entity.id)
        return entity

    def delete(self, record_id: str) -> bool:
        """Nunca lança exceção: devolve False se nem o cache local aceitou a remoção."""
        try:
            self.repository.delete(record_id)
        except Exception as e:
            logger.error(f"[{self.collection}] Erro ao remover {record_id}: {e}")
            return False
        self._notify("deleted", record_id)
        return True


class OrderGateway(EntityGateway):
    """Pedidos: mais recentes primeiro e, para não-admin, só os do próprio vendedor."""

    def list_for(self, user=None) -> List[Order]:
        where = None
        if user is not None and not user.is_admin:
            where = [("seller_id", user.id)]
        return self.list(where=where, order_by="created_at", descending=True)

    def get_for(self, user, order_id: str) -> Optional[Order]:
        """Pedido de outro vendedor fica invisível (None) para não-admin."""
        order = self.get(order_id)
        if order is not None and user is not None and not user.is_admin and order.seller_id != user.id:
            logger.warning(f"[{self.collection}] {user.id} sem acesso ao pedido {order_id}")
            return None
        return order


class PersistenceGateway:
    """Ponto único de acesso às coleções do painel"""

    ID_PREFIXES = {"users": "user", "customers": "customer", "products": "product", "orders": "order"}

    def __init__(self, cache: LocalCache, events: EventBus, store: Optional[DocumentStore] = None):
        self.cache = cache
        self.events = events
        self.store = store
        self.users = EntityGateway(self._repository("users", defaults=DEFAULT_LOCAL_USERS), User, events)
        self.customers = EntityGateway(self._repository("customers"), Customer, events)
        self.products = EntityGateway(self._repository("products"), Product, events)
        self.orders = OrderGateway(self._repository("orders", mirror_reads=True), Order, events)

    @property
    def remote_configured(self) -> bool:
        return self.store is not None

    def _repository(self, collection: str, mirror_reads: bool = False, defaults=None) -> Repository:
        local = LocalRepository(collection, self.cache, self.ID_PREFIXES[collection], defaults=defaults)
        if self.store is None:
            return local
        return FallbackRepository(RemoteRepository(collection, self.store), local, mirror_reads=mirror_reads)

    def get_store_info(self) -> Dict[str, Any]:
        if self.store is None:
            return {"name": "local", "status": "local-only"}
        return self.store.get_store_info()
