"""
Relatórios de pedidos: exportação CSV, filtros e indicadores do painel.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Any, Optional
import csv
import io

from biobox.models.entities import Order, OrderStatus, PRIORITY_LABELS, STATUS_LABELS
from biobox.utils.normalize import parse_datetime, to_money

CSV_HEADER = [
    "Pedido",
    "Cliente",
    "Vendedor",
    "Status",
    "Prioridade",
    "Data Produção",
    "Data Entrega",
    "Valor",
    "Progresso",
]

CLOSED_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


def format_date(value) -> str:
    parsed = parse_datetime(value)
    return parsed.strftime("%d/%m/%Y") if parsed else ""


def csv_filename(day: Optional[date] = None) -> str:
    return f"pedidos_{(day or date.today()).isoformat()}.csv"


def export_orders_csv(orders: List[Order]) -> str:
    """Uma linha por pedido, com rótulos em português e datas dd/mm/aaaa."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for order in orders:
        writer.writerow([
            order.order_number,
            order.customer_name,
            order.seller_name,
            STATUS_LABELS[order.status],
            PRIORITY_LABELS[order.priority],
            format_date(order.scheduled_date),
            format_date(order.delivery_date) if order.delivery_date else "N/A",
            f"{order.total_amount or 0:.2f}",
            f"{order.production_progress}%",
        ])
    return buffer.getvalue().rstrip("\n")


def filter_orders(orders: List[Order], status: Optional[str] = None, priority: Optional[str] = None,
                  search: Optional[str] = None) -> List[Order]:
    """Filtro das listagens: ``"all"`` ou vazio não filtra."""
    result = orders
    if status and status != "all":
        result = [o for o in result if o.status.value == status]
    if priority and priority != "all":
        result = [o for o in result if o.priority.value == priority]
    if search:
        term = search.strip().lower()
        result = [
            o for o in result
            if term in o.order_number.lower()
            or term in o.customer_name.lower()
            or term in o.seller_name.lower()
        ]
    return result


def order_metrics(orders: List[Order]) -> Dict[str, Any]:
    by_status = {status.value: 0 for status in OrderStatus}
    for order in orders:
        by_status[order.status.value] += 1

    active = [o for o in orders if o.status not in CLOSED_STATUSES]
    revenue = sum((to_money(o.total_amount) for o in orders if o.status != OrderStatus.CANCELLED),
                  Decimal("0.00"))
    delivered = sum((to_money(o.total_amount) for o in orders if o.status == OrderStatus.DELIVERED),
                    Decimal("0.00"))
    average = round(sum(o.production_progress for o in active) / len(active)) if active else 0
    return {
        "total_orders": len(orders),
        "by_status": by_status,
        "active_orders": len(active),
        "urgent_orders": sum(1 for o in active if o.priority.value == "urgent"),
        "total_revenue": float(revenue),
        "delivered_revenue": float(delivered),
        "average_progress": average,
    }
