"""
Cliente HTTP do banco de documentos hospedado.

Contrato REST usado:
    GET    {base}/v1/{coleção}?order_by=&direction=&filter[campo]=valor
    GET    {base}/v1/{coleção}/{id}
    POST   {base}/v1/{coleção}            -> {"id": ...}
    PUT    {base}/v1/{coleção}/{id}
    PATCH  {base}/v1/{coleção}/{id}
    DELETE {base}/v1/{coleção}/{id}
Os documentos vêm como ``{"id": ..., "data": {...}}``.
"""

from typing import Dict, List, Any, Optional
import logging

import requests

from biobox.exceptions import RemoteStoreError
from biobox.models.store_base import DocumentStore, StoreConfig, Document, Where

logger = logging.getLogger(__name__)


class RemoteDocumentStore(DocumentStore):
    """
    Banco de documentos remoto acessado via HTTP.
    Não faz retentativas: o gateway cai para o cache local na primeira falha.
    """

    def __init__(self, config: StoreConfig):
        super().__init__(config)
        if not config.base_url:
            raise ValueError("REMOTE_STORE_URL não configurada")
        self.api_base_url = config.base_url.rstrip("/") + "/v1"
        self.session = requests.Session()
        self._setup_session()

    def _setup_session(self):
        """Configuração inicial da sessão HTTP"""
        self.session.headers.update({
            'User-Agent': f'BioBox-Store/{self.config.name}',
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        })
        if self.config.api_key:
            self.session.headers['Authorization'] = f'Bearer {self.config.api_key}'

    def _make_request(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Faz uma requisição HTTP ao banco remoto.

        Args:
            method: Método HTTP (GET, POST, etc.)
            path: Caminho relativo a /v1
            **kwargs: Parâmetros adicionais para requests

        Returns:
            requests.Response: Resposta da requisição

        Raises:
            RemoteStoreError: erro de rede ou status HTTP de erro
        """
        url = f"{self.api_base_url}/{path.lstrip('/')}"
        kwargs.setdefault('timeout', self.config.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Falha de comunicação com {url}: {e}")
            raise RemoteStoreError(f"Banco remoto indisponível: {e}") from e
        if response.status_code == 404 and method == 'GET':
            return response
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise RemoteStoreError(f"Banco remoto respondeu {response.status_code}", url=url) from e
        return response

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteStoreError("Resposta inválida do banco remoto") from e
        if not isinstance(payload, dict):
            raise RemoteStoreError("Resposta inválida do banco remoto")
        return payload

    @staticmethod
    def _parse_document(raw: Any) -> Document:
        if not isinstance(raw, dict) or not raw.get('id'):
            raise RemoteStoreError("Documento sem id na resposta do banco remoto")
        data = raw.get('data') if isinstance(raw.get('data'), dict) else {}
        return Document(id=str(raw['id']), data=data)

    def query(self, collection: str, where: Optional[List[Where]] = None,
              order_by: Optional[str] = None, descending: bool = False) -> List[Document]:
        params = {}
        if order_by:
            params['order_by'] = order_by
            params['direction'] = 'desc' if descending else 'asc'
        for field_name, value in where or []:
            params[f'filter[{field_name}]'] = value

        response = self._make_request('GET', collection, params=params)
        if response.status_code == 404:
            return []
        documents = self._json(response).get('documents') or []
        return [self._parse_document(d) for d in documents]

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        response = self._make_request('GET', f"{collection}/{doc_id}")
        if response.status_code == 404:
            return None
        return self._parse_document(self._json(response))

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        response = self._make_request('POST', collection, json=data)
        doc_id = self._json(response).get('id')
        if not doc_id:
            raise RemoteStoreError("Banco remoto não devolveu o id do documento")
        return str(doc_id)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._make_request('PUT', f"{collection}/{doc_id}", json=data)

    def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        self._make_request('PATCH', f"{collection}/{doc_id}", json=patch)

    def delete(self, collection: str, doc_id: str) -> None:
        self._make_request('DELETE', f"{collection}/{doc_id}")
