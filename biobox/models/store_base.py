"""
Classe base abstrata para bancos de documentos.
Define a interface comum do banco remoto hospedado e do banco de demonstração.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Any, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

# Marcador enviado no lugar de created_at/updated_at: o servidor grava o horário dele
SERVER_TIMESTAMP = {"__type__": "serverTimestamp"}

COLLECTIONS = ("users", "customers", "products", "orders", "activities")


class StoreStatus(Enum):
    """Status do banco de documentos"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


@dataclass
class StoreConfig:
    """Configuração de acesso ao banco de documentos"""
    name: str
    base_url: str = ""
    api_key: str = ""
    auth_url: str = ""
    timeout: int = 15
    status: StoreStatus = StoreStatus.ACTIVE
    additional_config: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Document:
    """Documento como devolvido pelo banco: id gerado + dados brutos"""
    id: str
    data: Dict[str, Any]

    def to_record(self) -> Dict[str, Any]:
        record = {k: v for k, v in self.data.items() if k != "id"}
        record["id"] = self.id
        return record


# (campo, valor) -> filtro por igualdade
Where = Tuple[str, Any]


class DocumentStore(ABC):
    """
    Interface comum dos bancos de documentos.
    Qualquer falha de comunicação deve sair como exceção; quem decide o
    fallback para o cache local é o gateway.
    """

    def __init__(self, config: StoreConfig):
        self.config = config

    @abstractmethod
    def query(self, collection: str, where: Optional[List[Where]] = None,
              order_by: Optional[str] = None, descending: bool = False) -> List[Document]:
        """
        Lista documentos de uma coleção.

        Args:
            collection: Nome da coleção (orders, customers...)
            where: Filtros de igualdade
            order_by: Campo de ordenação
            descending: Ordem decrescente

        Returns:
            List[Document]: Documentos encontrados
        """

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Obtém um documento pelo id; ``None`` se não existir."""

    @abstractmethod
    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """
        Cria um documento com id gerado pelo servidor.

        Returns:
            str: id do novo documento
        """

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Cria ou substitui um documento com id conhecido."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        """Aplica uma atualização parcial."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Remove um documento."""

    def test_connection(self) -> bool:
        """
        Testa a conexão com o banco.

        Returns:
            bool: True se a conexão está funcionando
        """
        try:
            self.query("users")
            return True
        except Exception as e:
            logger.error(f"Erro ao testar conexão com {self.config.name}: {e}")
            return False

    def get_store_info(self) -> Dict[str, Any]:
        return {
            'name': self.config.name,
            'status': self.config.status.value,
            'base_url': self.config.base_url,
            'timeout': self.config.timeout,
        }
