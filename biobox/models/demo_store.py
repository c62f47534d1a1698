"""
Banco de documentos de demonstração, em memória.
Usado em testes e demonstrações quando não há banco remoto configurado.
Reproduz o formato do banco hospedado: ids gerados pelo servidor e datas
gravadas como ``{"seconds": ..., "nanoseconds": ...}``.
"""

import copy
import time
import uuid
from typing import Dict, List, Any, Optional
import logging

from biobox.exceptions import RemoteStoreError
from biobox.models.store_base import DocumentStore, StoreConfig, Document, Where, SERVER_TIMESTAMP
from biobox.utils.normalize import parse_datetime

logger = logging.getLogger(__name__)


def _server_timestamp() -> Dict[str, int]:
    now = time.time_ns()
    return {"seconds": now // 1_000_000_000, "nanoseconds": now % 1_000_000_000}


def _resolve_sentinels(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (_server_timestamp() if v == SERVER_TIMESTAMP else v) for k, v in data.items()}


def _sort_key(value):
    parsed = parse_datetime(value) if isinstance(value, (dict, str)) else None
    if parsed is not None:
        return (0, parsed.timestamp())
    if isinstance(value, (int, float)):
        return (0, value)
    return (1, str(value))


class DemoDocumentStore(DocumentStore):
    """
    Banco em memória com o mesmo contrato do remoto.
    ``online = False`` simula o banco fora do ar (toda chamada falha).
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        super().__init__(config or StoreConfig(name="demo"))
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.online = True

    def _check_online(self):
        if not self.online:
            raise RemoteStoreError("Demo: banco remoto simulado fora do ar")

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(name, {})

    def query(self, collection: str, where: Optional[List[Where]] = None,
              order_by: Optional[str] = None, descending: bool = False) -> List[Document]:
        self._check_online()
        docs = [
            Document(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self._collection(collection).items()
            if all(data.get(f) == v for f, v in where or [])
        ]
        if order_by:
            docs.sort(key=lambda d: _sort_key(d.data.get(order_by)), reverse=descending)
        return docs

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        self._check_online()
        data = self._collection(collection).get(doc_id)
        return Document(id=doc_id, data=copy.deepcopy(data)) if data is not None else None

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        self._check_online()
        doc_id = uuid.uuid4().hex[:20]
        self._collection(collection)[doc_id] = _resolve_sentinels(copy.deepcopy(data))
        logger.info(f"Demo: documento {doc_id} criado em {collection}")
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._check_online()
        self._collection(collection)[doc_id] = _resolve_sentinels(copy.deepcopy(data))

    def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        self._check_online()
        docs = self._collection(collection)
        if doc_id not in docs:
            raise RemoteStoreError(f"Demo: documento {doc_id} não encontrado em {collection}")
        docs[doc_id].update(_resolve_sentinels(copy.deepcopy(patch)))

    def delete(self, collection: str, doc_id: str) -> None:
        self._check_online()
        self._collection(collection).pop(doc_id, None)
