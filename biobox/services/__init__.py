"""
Montagem dos serviços da aplicação a partir da configuração.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from biobox.models.demo_store import DemoDocumentStore
from biobox.models.identity import DemoIdentityProvider, IdentityProvider, RemoteIdentityProvider
from biobox.models.local_cache import LocalCache
from biobox.models.permissions import Module
from biobox.models.remote_store import RemoteDocumentStore
from biobox.models.store_base import DocumentStore, StoreConfig, SERVER_TIMESTAMP
from biobox.services.activity_logger import ActivityLogger
from biobox.services.auth_service import SessionManager
from biobox.services.crud_service import CrudService, UserService
from biobox.services.events import EventBus
from biobox.services.fragment_service import FragmentService
from biobox.services.gateway import DEFAULT_LOCAL_USERS, PersistenceGateway
from biobox.services.order_lifecycle import OrderLifecycleService
from biobox.services.order_service import OrderService
from biobox.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

EXTENSION_KEY = "biobox"


@dataclass
class Services:
    cache: LocalCache
    events: EventBus
    store: Optional[DocumentStore]
    gateway: PersistenceGateway
    sessions: SessionManager
    activities: ActivityLogger
    orders: OrderService
    lifecycle: OrderLifecycleService
    fragments: FragmentService
    customers: CrudService
    products: CrudService
    users: UserService
    settings: SettingsService


def _store_config(config) -> StoreConfig:
    return StoreConfig(
        name=config.get("REMOTE_BACKEND") or "local",
        base_url=config.get("REMOTE_STORE_URL", ""),
        api_key=config.get("REMOTE_STORE_API_KEY", ""),
        auth_url=config.get("REMOTE_AUTH_URL", ""),
        timeout=config.get("REMOTE_TIMEOUT", 15),
    )


def _seed_demo(store: DemoDocumentStore, provider: DemoIdentityProvider, password: str):
    """Banco de demonstração já nasce com o administrador padrão."""
    for user in DEFAULT_LOCAL_USERS:
        uid = provider.register(user["email"], password, uid=user["id"])
        store.set("users", uid, {**user, "created_at": SERVER_TIMESTAMP, "updated_at": SERVER_TIMESTAMP})


def build_backend(config):
    """
    Escolhe o banco remoto e o provedor de identidade por ``REMOTE_BACKEND``.

    Returns:
        (DocumentStore | None, IdentityProvider | None)
    """
    backend = (config.get("REMOTE_BACKEND") or "").lower()
    if not backend:
        logger.info("Sem banco remoto configurado: usando somente o cache local")
        return None, None
    store_config = _store_config(config)
    if backend == "demo":
        store = DemoDocumentStore(store_config)
        provider = DemoIdentityProvider()
        _seed_demo(store, provider, config.get("LOCAL_FALLBACK_PASSWORD", "password"))
        logger.info("Banco remoto de demonstração ativo")
        return store, provider
    if backend == "http":
        store = RemoteDocumentStore(store_config)
        provider = RemoteIdentityProvider(store_config)
        logger.info(f"Banco remoto: {store.api_base_url}")
        return store, provider
    raise ValueError(f"REMOTE_BACKEND desconhecido: {backend}")


def init_services(app, store: Optional[DocumentStore] = None,
                  identity_provider: Optional[IdentityProvider] = None) -> Services:
    """Cria os serviços e guarda em ``app.extensions["biobox"]``."""
    if store is None and identity_provider is None:
        store, identity_provider = build_backend(app.config)

    cache = LocalCache(app.config.get("CACHE_PREFIX", "biobox"))
    events = EventBus()
    gateway = PersistenceGateway(cache, events, store)
    activities = ActivityLogger(cache, store)
    services = Services(
        cache=cache,
        events=events,
        store=store,
        gateway=gateway,
        sessions=SessionManager(cache, identity_provider, store,
                                local_password=app.config.get("LOCAL_FALLBACK_PASSWORD", "password")),
        activities=activities,
        orders=OrderService(gateway, activities),
        lifecycle=OrderLifecycleService(gateway, activities),
        fragments=FragmentService(gateway, activities),
        customers=CrudService(gateway.customers, Module.CUSTOMERS, "customer", activities),
        products=CrudService(gateway.products, Module.PRODUCTS, "product", activities),
        users=UserService(gateway.users, activities),
        settings=SettingsService(cache),
    )
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services(app) -> Services:
    return app.extensions[EXTENSION_KEY]
