from datetime import date

import pytest

from biobox.exceptions import ValidationError
from biobox.models.entities import Order
from biobox.services.backup_service import backup_filename, create_backup, restore_backup
from biobox.services.report_service import (
    CSV_HEADER, csv_filename, export_orders_csv, filter_orders, order_metrics,
)
from biobox.services.settings_service import SYSTEM_SCOPE, user_scope
from conftest import make_order


def _order(number, status="pending", priority="medium", amount=100, progress=0, **extra):
    return Order.from_record({
        "id": number, "order_number": number, "status": status, "priority": priority,
        "total_amount": amount, "production_progress": progress,
        "customer_name": "Maria Silva", "seller_name": "Carlos",
        "scheduled_date": "2025-03-10T00:00:00.000Z", **extra,
    })


def test_csv_header_and_rows():
    orders = [
        _order("ORD-2025-0001", status="in_production", priority="high", amount=400, progress=50,
               delivery_date="2025-03-20T00:00:00.000Z"),
        _order("ORD-2025-0002"),
    ]

    lines = export_orders_csv(orders).split("\n")

    assert lines[0] == ",".join(CSV_HEADER)
    assert lines[1] == "ORD-2025-0001,Maria Silva,Carlos,Em Produção,Alta,10/03/2025,20/03/2025,400.00,50%"
    assert lines[2] == "ORD-2025-0002,Maria Silva,Carlos,Pendente,Média,10/03/2025,N/A,100.00,0%"
    assert len(lines) == 3


def test_csv_quotes_fields_with_commas():
    csv_text = export_orders_csv([_order("ORD-2025-0003", customer_name="Silva, Maria")])
    assert '"Silva, Maria"' in csv_text


def test_csv_filename():
    assert csv_filename(date(2025, 3, 10)) == "pedidos_2025-03-10.csv"


def test_filter_orders():
    orders = [
        _order("ORD-2025-0001", status="pending", priority="urgent"),
        _order("ORD-2025-0002", status="confirmed", customer_name="Loja Nova"),
    ]

    assert [o.order_number for o in filter_orders(orders, status="pending")] == ["ORD-2025-0001"]
    assert [o.order_number for o in filter_orders(orders, priority="urgent")] == ["ORD-2025-0001"]
    assert [o.order_number for o in filter_orders(orders, search="loja")] == ["ORD-2025-0002"]
    assert len(filter_orders(orders, status="all", priority="all")) == 2


def test_order_metrics():
    orders = [
        _order("A", status="pending", priority="urgent", amount=100),
        _order("B", status="in_production", amount=200, progress=50),
        _order("C", status="delivered", amount=300, progress=100),
        _order("D", status="cancelled", amount=999),
    ]

    metrics = order_metrics(orders)

    assert metrics["total_orders"] == 4
    assert metrics["by_status"]["cancelled"] == 1
    assert metrics["active_orders"] == 2
    assert metrics["urgent_orders"] == 1
    assert metrics["total_revenue"] == 600.0
    assert metrics["delivered_revenue"] == 300.0
    assert metrics["average_progress"] == 25
    assert order_metrics([])["average_progress"] == 0


def test_backup_contains_all_collections(services, admin):
    order = make_order(services, admin)

    backup = create_backup(services.gateway)

    assert backup["meta"]["app"] == "BioBoxsys"
    assert backup["meta"]["version"] == 1
    assert [o["id"] for o in backup["orders"]] == [order.id]
    assert len(backup["customers"]) == 1
    assert backup["users"][0]["email"] == "admin@bioboxsys.com"
    assert backup["products"] == []


def test_backup_filename():
    assert backup_filename("2025-03-10T12:30:00.000Z") == "bioboxsys-backup-2025-03-10T12-30-00-000Z.json"


def test_restore_overwrites_present_collections(services, admin):
    make_order(services, admin)

    restored = restore_backup(services.cache, {
        "meta": {"app": "BioBoxsys"},
        "customers": [{"id": "customer-9", "name": "Restaurado"}],
        "orders": [],
    })

    assert restored == ["customers"]
    assert [c.name for c in services.gateway.customers.list()] == ["Restaurado"]
    assert len(services.gateway.orders.list()) == 1


def test_restore_rejects_non_object(services):
    with pytest.raises(ValidationError):
        restore_backup(services.cache, ["orders"])


def test_settings_defaults_and_save(services):
    system = services.settings.get_settings(SYSTEM_SCOPE)
    assert system["companyName"] == "BioBox Indústria de Móveis"
    assert system["backupFrequency"] == "daily"

    saved = services.settings.save_settings(SYSTEM_SCOPE, {"companyName": "BioBox SP"})
    assert saved["companyName"] == "BioBox SP"
    assert services.settings.get_settings(SYSTEM_SCOPE)["taxId"] == system["taxId"]

    with pytest.raises(ValidationError):
        services.settings.save_settings(SYSTEM_SCOPE, {"backupFrequency": "hourly"})


def test_user_settings_are_scoped(services):
    services.settings.save_settings(user_scope("u1"), {"phone": "11 9999-0000"})

    assert services.settings.get_settings(user_scope("u1"))["phone"] == "11 9999-0000"
    assert services.settings.get_settings(user_scope("u2"))["phone"] == ""
    assert services.settings.get_settings(user_scope("u2"))["preferences"]["theme"] == "dark"
