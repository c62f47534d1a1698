import pytest

from biobox.main import create_app
from conftest import BASE_CONFIG

ADMIN_LOGIN = {"email": "admin@bioboxsys.com", "password": "password"}


def _login(client, credentials=None):
    r = client.post("/api/auth/login", json=credentials or ADMIN_LOGIN)
    assert r.status_code == 200, r.json
    return r.json


def _create_order(client, **extra):
    r = client.post("/api/customers/", json={"name": "Maria Silva", "phone": "(11) 98888-7777"})
    assert r.status_code == 201, r.json
    customer_id = r.json["customer"]["id"]

    r = client.post("/api/orders/", json={
        "customer_id": customer_id,
        "scheduled_date": "2025-03-10",
        "products": [
            {"product_id": "p1", "product_name": "Cama Box", "quantity": 3, "unit_price": 100},
            {"product_id": "p2", "product_name": "Cabeceira", "quantity": 2, "unit_price": 50},
        ],
        **extra,
    })
    assert r.status_code == 201, r.json
    return r.json["order"]


@pytest.fixture()
def logged_in(client):
    _login(client)
    return client


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json["status"] == "healthy"
    assert r.json["store"]["status"] == "local-only"


def test_login_and_me(client):
    body = _login(client)
    assert body["user"]["role"] == "admin"
    assert "orders:delete" in body["granted"]

    r = client.get("/api/auth/me")
    assert r.json["user"]["email"] == "admin@bioboxsys.com"

    client.post("/api/auth/logout")
    assert client.get("/api/auth/me").status_code == 401


def test_login_with_wrong_password(client):
    r = client.post("/api/auth/login", json={"email": "admin@bioboxsys.com", "password": "x"})
    assert r.status_code == 401
    assert r.json == {"success": False, "message": "Credenciais inválidas", "details": {}}


def test_orders_require_session(client):
    r = client.get("/api/orders/")
    assert r.status_code == 401
    assert r.json["success"] is False


def test_session_belongs_to_the_logged_in_client(app, client):
    _login(client)
    stranger = app.test_client()

    r = stranger.get("/api/orders/", headers={"Origin": "https://evil.example"})

    assert r.status_code == 401
    assert "Access-Control-Allow-Origin" not in r.headers
    assert client.get("/api/orders/").status_code == 200


def test_cors_allows_only_the_dashboard_origin(client):
    r = client.get("/api/health", headers={"Origin": "http://localhost:8080"})

    assert r.headers["Access-Control-Allow-Origin"] == "http://localhost:8080"
    assert r.headers["Access-Control-Allow-Credentials"] == "true"


def test_each_client_keeps_its_own_user(app, logged_in):
    r = logged_in.post("/api/users/", json={
        "name": "Vendedor", "email": "vendedor@bioboxsys.com", "role": "seller",
        "permissions": ["orders:create", "orders:read", "customers:read"],
    })
    assert r.status_code == 201
    seller_client = app.test_client()
    _login(seller_client, {"email": "vendedor@bioboxsys.com", "password": "password"})

    assert logged_in.get("/api/auth/me").json["user"]["email"] == "admin@bioboxsys.com"
    assert seller_client.get("/api/auth/me").json["user"]["email"] == "vendedor@bioboxsys.com"
    assert seller_client.get("/api/settings/backup").status_code == 403
    assert logged_in.get("/api/settings/backup").status_code == 200


def test_create_and_list_orders(logged_in):
    order = _create_order(logged_in)
    assert order["total_amount"] == 400.0
    assert order["total_quantity"] == 5
    assert order["status"] == "pending"

    r = logged_in.get("/api/orders/")
    assert r.json["total"] == 1

    r = logged_in.get("/api/orders/", query_string={"status": "delivered"})
    assert r.json["items"] == []


def test_order_detail_lists_transitions(logged_in):
    order = _create_order(logged_in)

    r = logged_in.get(f"/api/orders/{order['id']}")

    assert [t["status"] for t in r.json["transitions"]] == ["confirmed", "cancelled"]
    assert logged_in.get("/api/orders/missing").status_code == 404


def test_create_order_validation_error(logged_in):
    r = logged_in.post("/api/orders/", json={"customer": {"name": "X"}, "products": []})
    assert r.status_code == 400
    assert r.json["message"] == "Defina a data de produção"


def test_transition_endpoints(logged_in):
    order = _create_order(logged_in)
    url = f"/api/orders/{order['id']}"

    r = logged_in.post(f"{url}/advance")
    assert r.json["order"]["status"] == "confirmed"

    r = logged_in.post(f"{url}/transition", json={"status": "in_production", "operator": "João"})
    assert r.json["order"]["production_progress"] == 50
    assert r.json["order"]["assigned_operator"] == "João"

    r = logged_in.post(f"{url}/transition", json={"status": "delivered"})
    assert r.status_code == 409

    r = logged_in.post(f"{url}/cancel", json={})
    assert r.status_code == 400

    r = logged_in.post(f"{url}/cancel", json={"reason": "Falta de material", "reason_code": "material"})
    assert r.json["order"]["status"] == "cancelled"
    assert r.json["order"]["notes"] == "Cancelado: Falta de material."


def test_report_issue_endpoint(logged_in):
    order = _create_order(logged_in, notes="Entrega rápida")

    r = logged_in.post(f"/api/orders/{order['id']}/issue", json={"description": "Tecido errado"})

    assert r.json["order"]["notes"] == "PROBLEMA: Tecido errado. Entrega rápida"


def test_update_and_delete_order(logged_in):
    order = _create_order(logged_in)
    url = f"/api/orders/{order['id']}"

    r = logged_in.put(url, json={"discount_percentage": 10})
    assert r.json["order"]["total_amount"] == 360.0

    r = logged_in.put(url, json={"status": "delivered"})
    assert r.status_code == 400

    line_id = order["products"][0]["id"]
    r = logged_in.patch(f"{url}/products/{line_id}", json={"quantity": 1})
    assert r.json["order"]["subtotal"] == 200.0

    assert logged_in.delete(url).json["deleted"] == order["id"]
    assert logged_in.get("/api/orders/").json["total"] == 0


def test_fragment_endpoints(logged_in):
    order = _create_order(logged_in)
    url = f"/api/orders/{order['id']}/fragments"

    r = logged_in.put(url, json={"fragments": [{"quantity": 2, "scheduled_date": "2025-03-10"}]})
    assert r.status_code == 400
    assert r.json["details"] == {"fragment_sum": 2, "total_quantity": 5}

    r = logged_in.put(url, json={"fragments": [
        {"quantity": 2, "scheduled_date": "2025-03-10"},
        {"quantity": 3, "scheduled_date": "2025-03-11"},
    ]})
    fragments = r.json["order"]["fragments"]
    assert [f["fragment_number"] for f in fragments] == [1, 2]
    assert r.json["order"]["fragment_progress"] == 0

    first = fragments[0]["id"]
    logged_in.post(f"{url}/{first}/start")
    r = logged_in.post(f"{url}/{first}/complete")
    assert r.json["order"]["fragment_progress"] == 40
    assert r.json["order"]["released_value"] == 160.0
    assert r.json["order"]["fragments_completed"] is False

    r = logged_in.post(f"{url}/{first}/complete")
    assert r.status_code == 409


def test_export_csv(logged_in):
    _create_order(logged_in)

    r = logged_in.get("/api/orders/export.csv")

    assert r.status_code == 200
    assert r.mimetype == "text/csv"
    assert r.headers["Content-Disposition"].startswith('attachment; filename="pedidos_')
    lines = r.get_data(as_text=True).split("\n")
    assert lines[0].startswith("Pedido,Cliente,Vendedor")
    assert lines[1].endswith(",Pendente,Média,10/03/2025,N/A,400.00,0%")


def test_seller_permissions(logged_in):
    order = _create_order(logged_in)
    r = logged_in.post("/api/users/", json={
        "name": "Vendedor", "email": "vendedor@bioboxsys.com", "role": "seller",
        "permissions": ["orders:create", "orders:read", "customers:read"],
    })
    assert r.status_code == 201
    logged_in.post("/api/auth/logout")

    _login(logged_in, {"email": "vendedor@bioboxsys.com", "password": "password"})

    assert logged_in.get("/api/orders/").json["total"] == 0
    assert logged_in.post(f"/api/orders/{order['id']}/advance").status_code == 403
    assert logged_in.delete(f"/api/orders/{order['id']}").status_code == 403
    r = logged_in.post(f"/api/orders/{order['id']}/transition", json={"status": "confirmed"})
    assert r.status_code == 403
    assert logged_in.post("/api/users/", json={"name": "X", "email": "x@x.com"}).status_code == 403
    assert logged_in.get("/api/settings/backup").status_code == 403


def test_settings_and_backup(logged_in):
    _create_order(logged_in)

    r = logged_in.put("/api/settings/system", json={"companyName": "BioBox SP"})
    assert r.json["settings"]["companyName"] == "BioBox SP"

    r = logged_in.get("/api/settings/backup")
    backup = r.json["backup"]
    assert len(backup["orders"]) == 1
    assert r.json["filename"].startswith("bioboxsys-backup-")
    assert logged_in.get("/api/settings/system").json["settings"]["lastBackup"] == backup["meta"]["generatedAt"]

    r = logged_in.post("/api/settings/restore", json={"orders": [], "customers": [{"id": "c1", "name": "Só"}]})
    assert r.json["restored"] == ["customers"]


def test_dashboard(logged_in):
    _create_order(logged_in)

    metrics = logged_in.get("/api/dashboard/metrics").json["metrics"]
    assert metrics["total_orders"] == 1
    assert metrics["total_revenue"] == 400.0

    activities = logged_in.get("/api/dashboard/activities").json["items"]
    assert activities[0]["entity_type"] == "order"


def test_dashboard_metrics_need_only_dashboard_permission(app, logged_in):
    _create_order(logged_in)
    r = logged_in.post("/api/users/", json={
        "name": "Painel", "email": "painel@bioboxsys.com", "role": "operator",
        "permissions": ["dashboard:view"],
    })
    assert r.status_code == 201
    viewer = app.test_client()
    _login(viewer, {"email": "painel@bioboxsys.com", "password": "password"})

    r = viewer.get("/api/dashboard/metrics")

    assert r.status_code == 200
    assert r.json["metrics"]["total_orders"] == 0
    assert viewer.get("/api/orders/").status_code == 403


def test_product_crud(logged_in):
    r = logged_in.post("/api/products/", json={
        "name": "Cama Box Queen", "sku": "CBQ-01", "basePrice": "1299.90",
        "models": [{"name": "Premium", "sizes": ["158x198"], "colors": ["Bege"], "stock": 4}],
    })
    assert r.status_code == 201
    product = r.json["product"]
    assert product["base_price"] == 1299.9
    assert product["models"][0]["stock"] == 4

    r = logged_in.put(f"/api/products/{product['id']}", json={"status": "inactive"})
    assert r.json["product"]["status"] == "inactive"
    assert r.json["product"]["sku"] == "CBQ-01"

    assert logged_in.get("/api/products/").json["total"] == 1
    assert logged_in.delete(f"/api/products/{product['id']}").status_code == 200
    assert logged_in.get(f"/api/products/{product['id']}").status_code == 404


def test_customer_requires_name(logged_in):
    r = logged_in.post("/api/customers/", json={"email": "sem@nome.com"})
    assert r.status_code == 400
    assert r.json["details"] == {"fields": ["name"]}


def test_debug_routes_only_when_enabled(client):
    assert client.get("/api/_routes").status_code == 404

    app = create_app({**BASE_CONFIG, "DEBUG_ROUTES": True})
    debug_client = app.test_client()
    rules = {r["rule"] for r in debug_client.get("/api/_routes").json}
    assert "/api/orders/<order_id>/transition" in rules

    health = debug_client.get("/api/health/full").json
    assert health["remote_online"] is False
    assert "orders" in health["blueprints"]
