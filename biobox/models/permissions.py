"""
Permissões do painel como pares fechados (módulo, ação).

As permissões gravadas nos perfis são strings que evoluíram com o tempo
(``orders:view``, ``orders-full``, ``orders:read``, ``all``...). A tabela
``COMPATIBILITY_MAP`` traduz os nomes antigos para os pares atuais.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple


class Module(Enum):
    DASHBOARD = "dashboard"
    ORDERS = "orders"
    CUSTOMERS = "customers"
    PRODUCTION = "production"
    PRODUCTS = "products"
    SETTINGS = "settings"
    USERS = "users"


class Action(Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    CANCEL = "cancel"
    ADVANCE = "advance"
    DELIVER = "deliver"


ALL_TOKEN = "all"


@dataclass(frozen=True)
class Permission:
    module: Module
    action: Action

    @property
    def token(self) -> str:
        return f"{self.module.value}:{self.action.value}"

    @property
    def full_token(self) -> str:
        return f"{self.module.value}-full"

    @classmethod
    def of(cls, module, action) -> "Permission":
        """Aceita enums ou strings (``Permission.of("orders", "view")``)."""
        return cls(Module(module) if not isinstance(module, Module) else module,
                   Action(action) if not isinstance(action, Action) else action)

    @classmethod
    def parse(cls, token: str) -> Optional["Permission"]:
        """``"orders:view"`` -> Permission; ``None`` para tokens fora do formato."""
        module, sep, action = (token or "").partition(":")
        if not sep:
            return None
        try:
            return cls.of(module, action)
        except ValueError:
            return None


def _p(module: Module, action: Action) -> Permission:
    return Permission(module, action)


COMPATIBILITY_MAP: Dict[Permission, Tuple[str, ...]] = {
    _p(Module.ORDERS, Action.VIEW): ("orders-full", "orders:read", "orders:view"),
    _p(Module.ORDERS, Action.CREATE): ("orders-full", "orders:create"),
    _p(Module.ORDERS, Action.EDIT): ("orders-full", "orders:edit"),
    _p(Module.ORDERS, Action.DELETE): ("orders-full", "orders:delete"),
    _p(Module.ORDERS, Action.APPROVE): ("orders-full", "orders:approve", "orders:edit"),
    _p(Module.ORDERS, Action.CANCEL): ("orders-full", "orders:cancel", "orders:delete"),
    _p(Module.ORDERS, Action.ADVANCE): ("orders-full", "orders:advance", "orders:edit"),
    _p(Module.ORDERS, Action.DELIVER): ("orders-full", "orders:deliver", "orders:edit"),
    _p(Module.CUSTOMERS, Action.VIEW): ("customers-full", "customers:read", "customers:view"),
    _p(Module.CUSTOMERS, Action.CREATE): ("customers-full", "customers:create"),
    _p(Module.CUSTOMERS, Action.EDIT): ("customers-full", "customers:edit"),
    _p(Module.CUSTOMERS, Action.DELETE): ("customers-full", "customers:delete"),
    _p(Module.DASHBOARD, Action.VIEW): ("dashboard:view", ALL_TOKEN),
    _p(Module.PRODUCTION, Action.VIEW): ("production:view", "production-manage", ALL_TOKEN),
    _p(Module.PRODUCTS, Action.VIEW): ("products:view", "products-manage", ALL_TOKEN),
    _p(Module.SETTINGS, Action.VIEW): ("settings:view", ALL_TOKEN),
}

# Perfil criado no primeiro login remoto de um usuário sem cadastro
DEFAULT_SELLER_PERMISSIONS = [
    "orders:create",
    "orders:read",
    "customers:read",
    "production:view",
    "products:view",
]

# Perfil assumido quando o cadastro existe mas não lista permissões
DEFAULT_PROFILE_PERMISSIONS = [
    "orders:read",
    "customers:read",
    "production:view",
    "products:view",
    "settings:view",
]


def has_permission(user, module, action) -> bool:
    """
    Verifica se ``user`` pode executar ``action`` em ``module``.

    Ordem: sem usuário nega; admin libera; token exato ``module:action``;
    ``module-full``; ``all``; tabela de compatibilidade.
    """
    if user is None:
        return False
    if user.is_admin:
        return True
    try:
        permission = Permission.of(module, action)
    except ValueError:
        return False
    tokens = set(user.permissions or ())
    if permission.token in tokens:
        return True
    if permission.full_token in tokens:
        return True
    if ALL_TOKEN in tokens:
        return True
    return any(token in tokens for token in COMPATIBILITY_MAP.get(permission, ()))


def granted_permissions(user) -> Iterable[Permission]:
    """Todos os pares liberados para ``user`` (usado pela rota ``/auth/me``)."""
    for module in Module:
        for action in Action:
            if has_permission(user, module, action):
                yield Permission(module, action)
