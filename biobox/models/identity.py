"""
Provedores de identidade (login) do painel.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional
import logging
import uuid

import requests

from biobox.exceptions import AuthenticationError, RemoteStoreError
from biobox.models.store_base import StoreConfig

logger = logging.getLogger(__name__)


@dataclass
class Account:
    """Conta autenticada no provedor"""
    uid: str
    email: str
    id_token: str = ""


class IdentityProvider(ABC):

    @abstractmethod
    def sign_in(self, email: str, password: str) -> Account:
        """
        Autentica com e-mail e senha.

        Raises:
            AuthenticationError: credenciais recusadas
            RemoteStoreError: provedor indisponível
        """

    @abstractmethod
    def sign_out(self) -> None:
        pass

    @abstractmethod
    def current_account(self) -> Optional[Account]:
        """Conta com sessão ativa no provedor, se houver."""


class RemoteIdentityProvider(IdentityProvider):
    """
    Provedor de identidade hospedado.
        POST {auth_url}/v1/auth/sign-in  {"email", "password"} -> {"uid", "email", "id_token"}
        POST {auth_url}/v1/auth/sign-out
    """

    def __init__(self, config: StoreConfig):
        base = config.auth_url or config.base_url
        if not base:
            raise ValueError("REMOTE_AUTH_URL não configurada")
        self.config = config
        self.auth_base_url = base.rstrip("/") + "/v1/auth"
        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': f'BioBox-Auth/{config.name}',
            'Content-Type': 'application/json',
        })
        self._account: Optional[Account] = None

    def sign_in(self, email: str, password: str) -> Account:
        try:
            response = self.session.post(
                f"{self.auth_base_url}/sign-in",
                json={'email': email, 'password': password},
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise RemoteStoreError(f"Provedor de identidade indisponível: {e}") from e

        if response.status_code in (400, 401, 403):
            raise AuthenticationError("Credenciais inválidas")
        if response.status_code >= 400:
            raise RemoteStoreError(f"Provedor de identidade respondeu {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteStoreError("Resposta inválida do provedor de identidade") from e

        self._account = Account(
            uid=str(data.get('uid') or ''),
            email=data.get('email') or email,
            id_token=data.get('id_token') or '',
        )
        if not self._account.uid:
            self._account = None
            raise RemoteStoreError("Provedor de identidade não devolveu o uid")
        return self._account

    def sign_out(self) -> None:
        account, self._account = self._account, None
        if account is None:
            return
        try:
            self.session.post(
                f"{self.auth_base_url}/sign-out",
                headers={'Authorization': f'Bearer {account.id_token}'},
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Aviso no logout remoto: {e}")

    def current_account(self) -> Optional[Account]:
        return self._account


class DemoIdentityProvider(IdentityProvider):
    """Provedor em memória para demonstração e testes."""

    def __init__(self, accounts: Optional[Dict[str, str]] = None):
        # e-mail -> senha
        self.accounts: Dict[str, str] = dict(accounts or {})
        self.uids: Dict[str, str] = {email: uuid.uuid4().hex[:28] for email in self.accounts}
        self._account: Optional[Account] = None

    def register(self, email: str, password: str, uid: Optional[str] = None) -> str:
        self.accounts[email] = password
        self.uids[email] = uid or uuid.uuid4().hex[:28]
        return self.uids[email]

    def sign_in(self, email: str, password: str) -> Account:
        if self.accounts.get(email) != password:
            raise AuthenticationError("Credenciais inválidas")
        self._account = Account(uid=self.uids[email], email=email, id_token=f"demo-{self.uids[email]}")
        return self._account

    def sign_out(self) -> None:
        self._account = None

    def current_account(self) -> Optional[Account]:
        return self._account
