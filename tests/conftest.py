import pytest

from biobox.main import create_app
from biobox.models.entities import AuthUser, UserRole
from biobox.services import get_services

BASE_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "REMOTE_BACKEND": "",
    "CACHE_PREFIX": "biobox",
    "LOCAL_FALLBACK_PASSWORD": "password",
}


def _make_app(**overrides):
    return create_app({**BASE_CONFIG, **overrides})


@pytest.fixture()
def app():
    """Aplicação só com cache local (sem banco remoto)."""
    app = _make_app()
    with app.app_context():
        yield app


@pytest.fixture()
def demo_app():
    """Aplicação com o banco remoto de demonstração."""
    app = _make_app(REMOTE_BACKEND="demo")
    with app.app_context():
        yield app


@pytest.fixture()
def services(app):
    return get_services(app)


@pytest.fixture()
def demo_services(demo_app):
    return get_services(demo_app)


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin():
    return AuthUser(id="admin-1", name="Admin", email="admin@bioboxsys.com",
                    role=UserRole.ADMIN, permissions=["all"])


@pytest.fixture()
def seller():
    return AuthUser(id="seller-1", name="Vendedor", email="vendedor@bioboxsys.com",
                    role=UserRole.SELLER, permissions=["orders:create", "orders:read", "customers:read"])


def make_customer(svc, user, **extra):
    return svc.customers.create(user, {"name": "Maria Silva", "phone": "(11) 98888-7777",
                                       "email": "maria@example.com", **extra})


def make_order(svc, user, customer=None, **extra):
    customer = customer or make_customer(svc, user)
    data = {
        "customer_id": customer.id,
        "scheduled_date": "2025-03-10",
        "priority": "high",
        "products": [
            {"product_id": "p1", "product_name": "Cama Box", "quantity": 3, "unit_price": 100.00},
            {"product_id": "p2", "product_name": "Cabeceira", "quantity": 2, "unit_price": 50.00},
        ],
        **extra,
    }
    return svc.orders.create_order(user, data)
