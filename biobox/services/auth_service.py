"""
Sessão do usuário autenticado no painel.

Cada cliente HTTP guarda só o id do usuário no cookie de sessão assinado.
O perfil fica no cache local (``bioboxsys_user`` e ``bioboxsys_user_<id>``),
de modo que o painel continua autenticado mesmo com o provedor fora do ar.
"""

from typing import Optional
import logging

from biobox.exceptions import AuthenticationError, PermissionDeniedError, ValidationError
from biobox.models.entities import AuthUser
from biobox.models.identity import IdentityProvider
from biobox.models.local_cache import LocalCache
from biobox.models.permissions import (
    DEFAULT_PROFILE_PERMISSIONS, DEFAULT_SELLER_PERMISSIONS, has_permission,
)
from biobox.models.store_base import DocumentStore, SERVER_TIMESTAMP
from biobox.services.gateway import DEFAULT_LOCAL_USERS
from biobox.utils.normalize import sanitize_for_store

logger = logging.getLogger(__name__)


def _name_from_email(email: str) -> str:
    return (email or "").split("@")[0] or "Usuário"


class SessionManager:
    """Login, logout e resolução do usuário atual"""

    def __init__(self, cache: LocalCache, identity_provider: Optional[IdentityProvider] = None,
                 store: Optional[DocumentStore] = None, local_password: str = "password"):
        self.cache = cache
        self.identity_provider = identity_provider
        self.store = store
        self.local_password = local_password

    def _save_session(self, user: AuthUser) -> AuthUser:
        record = user.to_record()
        self.cache.set_json(self.cache.session_key, record)
        self.cache.set_json(self.cache.profile_key(user.id), record)
        return user

    def _read_cached(self, key: str) -> Optional[AuthUser]:
        if not self.cache.has(key):
            return None
        try:
            return AuthUser.from_record(self.cache.get_json(key))
        except (ValueError, TypeError):
            logger.warning(f"Sessão local inválida em {key}, removendo")
            self.cache.remove(key)
            return None

    def _read_profile(self, uid: str) -> Optional[dict]:
        if self.store is None:
            return None
        try:
            document = self.store.get("users", uid)
        except Exception as e:
            logger.warning(f"Erro ao carregar perfil {uid}: {e}")
            return None
        return document.data if document else None

    def _user_from_profile(self, uid: str, email: str, profile: dict) -> AuthUser:
        return AuthUser.from_record({
            "id": uid,
            "name": profile.get("name") or _name_from_email(email),
            "email": email or "",
            "role": profile.get("role") or "seller",
            "permissions": profile.get("permissions") or DEFAULT_PROFILE_PERMISSIONS,
        })

    def current_user(self) -> Optional[AuthUser]:
        """
        Resolve o usuário atual, nesta ordem:
          1. sessão guardada no cache local
          2. conta ativa no provedor de identidade (perfil lido da coleção ``users``)
          3. ninguém
        Uma sessão corrompida no cache é descartada.
        """
        user = self._read_cached(self.cache.session_key)
        if user is not None:
            return user

        if self.identity_provider is None:
            return None
        account = self.identity_provider.current_account()
        if account is None:
            return None

        profile = self._read_profile(account.uid) or {}
        return self._save_session(self._user_from_profile(account.uid, account.email, profile))

    def resolve(self, user_id: Optional[str]) -> Optional[AuthUser]:
        """
        Usuário do id guardado no cookie de sessão.

        Usa o perfil atual da coleção ``users`` no banco remoto; com o banco
        fora do ar (ou sem banco), usa o perfil guardado no login.
        """
        if not user_id:
            return None
        cached = self._read_cached(self.cache.profile_key(user_id))
        profile = self._read_profile(user_id)
        if not profile and self.cache.has(self.cache.collection_key("users")):
            profile = next((u for u in self.cache.get_list("users") if u.get("id") == user_id), None)
        if profile:
            email = profile.get("email") or (cached.email if cached else "")
            user = self._user_from_profile(user_id, email, profile)
            self.cache.set_json(self.cache.profile_key(user_id), user.to_record())
            return user
        return cached

    def _create_profile(self, uid: str, profile: dict) -> None:
        """Grava o perfil padrão; com o banco fora do ar o perfil fica só no cache local."""
        if self.store is None:
            return
        try:
            self.store.set("users", uid, sanitize_for_store({
                **profile,
                "created_at": SERVER_TIMESTAMP,
                "updated_at": SERVER_TIMESTAMP,
            }))
            logger.info(f"Perfil padrão criado para {profile.get('email')}")
        except Exception as e:
            logger.warning(f"Erro ao gravar perfil {uid}, mantendo só no cache local: {e}")

    def login(self, email: str, password: str) -> AuthUser:
        """
        Autentica e guarda a sessão.

        Com provedor de identidade configurado, o primeiro login de uma conta
        sem perfil cria um perfil de vendedor. Sem provedor, valida contra os
        usuários do cache local com a senha local configurada.

        Raises:
            ValidationError: e-mail ou senha ausentes
            AuthenticationError: credenciais inválidas
        """
        if not email or not password:
            raise ValidationError("E-mail e senha são obrigatórios")

        if self.identity_provider is not None:
            account = self.identity_provider.sign_in(email, password)
            profile = self._read_profile(account.uid)
            if not profile:
                profile = {
                    "id": account.uid,
                    "email": email,
                    "name": _name_from_email(email),
                    "role": "seller",
                    "permissions": list(DEFAULT_SELLER_PERMISSIONS),
                }
                self._create_profile(account.uid, profile)
            user = AuthUser.from_record({
                "id": account.uid,
                "name": profile.get("name") or _name_from_email(email),
                "email": email,
                "role": profile.get("role"),
                "permissions": profile.get("permissions") or [],
            })
            logger.info(f"Login remoto: {email}")
            return self._save_session(user)

        users_key = self.cache.collection_key("users")
        users = self.cache.get_list("users") if self.cache.has(users_key) else DEFAULT_LOCAL_USERS
        found = next((u for u in users if u.get("email") == email), None)
        if found is None or password != self.local_password:
            raise AuthenticationError("Credenciais inválidas")
        user = AuthUser.from_record({
            "id": found.get("id"),
            "name": found.get("name"),
            "email": found.get("email"),
            "role": found.get("role"),
            "permissions": found.get("permissions") or [],
        })
        logger.info(f"Login local: {email}")
        return self._save_session(user)

    def logout(self, user_id: Optional[str] = None) -> None:
        if self.identity_provider is not None:
            try:
                self.identity_provider.sign_out()
            except Exception as e:
                logger.warning(f"Aviso no logout: {e}")
        self.cache.remove(self.cache.session_key)
        if user_id:
            self.cache.remove(self.cache.profile_key(user_id))

    def require(self, module, action, user_id: Optional[str] = None) -> AuthUser:
        """
        Usuário atual (ou o do cookie, quando ``user_id`` é dado), desde que
        possa executar ``action`` em ``module``.

        Raises:
            AuthenticationError: sem sessão
            PermissionDeniedError: sem permissão
        """
        user = self.resolve(user_id) if user_id else self.current_user()
        if user is None:
            raise AuthenticationError("Usuário não autenticado")
        ensure_permission(user, module, action)
        return user


def ensure_permission(user, module, action) -> None:
    if not has_permission(user, module, action):
        module_name = getattr(module, "value", module)
        action_name = getattr(action, "value", action)
        raise PermissionDeniedError(
            f"Sem permissão para {action_name} em {module_name}",
            module=module_name, action=action_name,
        )
