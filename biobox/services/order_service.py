"""
Criação e edição de pedidos (itens, totais e desconto).
Mudanças de status ficam com ``order_lifecycle``; fragmentos com ``fragment_service``.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Any, Optional
import logging
import random
import uuid

from biobox.exceptions import FragmentAllocationError, NotFoundError, OrderUpdateError, ValidationError
from biobox.models.entities import Order, OrderPriority, OrderStatus
from biobox.models.permissions import Action, Module
from biobox.services.activity_logger import ActionType
from biobox.services.auth_service import ensure_permission
from biobox.services.order_lifecycle import PROGRESS_BY_STATUS
from biobox.utils.normalize import to_iso_string, to_money, to_number

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 20

# Campos que a edição livre do pedido não pode tocar (os totais saem dos itens)
PROTECTED_FIELDS = ("id", "order_number", "status", "production_progress", "fragments",
                    "is_fragmented", "created_at", "updated_at", "completed_date",
                    "subtotal", "discount_amount", "total_amount", "total_quantity")


def generate_order_number(year: Optional[int] = None) -> str:
    year = year or datetime.now().year
    return f"ORD-{year}-{random.randint(0, 9999):04d}"


def build_line_item(raw: Dict[str, Any], product_name: str = "") -> Dict[str, Any]:
    """
    Normaliza um item do pedido e calcula ``total_price = quantity * unit_price``.

    Raises:
        ValidationError: sem produto, quantidade ou preço
    """
    product_id = str(raw.get("product_id") or raw.get("productId") or "")
    name = raw.get("product_name") or raw.get("productName") or product_name
    if not product_id and not name:
        raise ValidationError("Item sem produto")
    quantity = to_number(raw.get("quantity"))
    unit_price = to_money(raw.get("unit_price", raw.get("unitPrice")))
    if quantity <= 0 or int(quantity) != quantity:
        raise ValidationError("Quantidade do item deve ser um inteiro positivo", product_id=product_id)
    if unit_price <= 0:
        raise ValidationError("Preço unitário do item deve ser positivo", product_id=product_id)

    return {
        "id": str(raw.get("id") or uuid.uuid4().hex[:12]),
        "product_id": product_id,
        "product_name": name,
        "model": raw.get("model") or "",
        "size": raw.get("size") or "",
        "color": raw.get("color") or "",
        "fabric": raw.get("fabric") or "",
        "quantity": int(quantity),
        "unit_price": float(unit_price),
        "total_price": float(unit_price * int(quantity)),
        "specifications": raw.get("specifications") if isinstance(raw.get("specifications"), dict) else {},
    }


def recalculate_totals(products: List[Dict[str, Any]], discount_percentage: Any = 0) -> Dict[str, Any]:
    """Subtotal, desconto e total do pedido a partir dos itens (Decimal, 2 casas)."""
    subtotal = sum((to_money(p.get("total_price")) for p in products), Decimal("0.00"))
    percentage = max(Decimal("0"), min(Decimal("100"), Decimal(str(to_number(discount_percentage)))))
    discount = (subtotal * percentage / Decimal("100")).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return {
        "subtotal": float(subtotal),
        "discount_percentage": float(percentage),
        "discount_amount": float(discount),
        "total_amount": float(subtotal - discount),
        "total_quantity": sum(int(to_number(p.get("quantity"))) for p in products),
    }


class OrderService:

    def __init__(self, gateway, activities):
        self.gateway = gateway
        self.activities = activities

    def _load(self, order_id: str, user=None) -> Order:
        order = self.gateway.orders.get_for(user, order_id)
        if order is None:
            raise NotFoundError("Pedido não encontrado", order_id=order_id)
        return order

    def _check_fragments(self, order: Order, total_quantity: int) -> None:
        """A soma dos fragmentos precisa continuar igual à quantidade do pedido."""
        if not order.is_fragmented:
            return
        fragment_sum = sum(f.quantity for f in order.fragments)
        if fragment_sum != total_quantity:
            raise FragmentAllocationError(
                f"Soma dos fragmentos ({fragment_sum}) difere da nova quantidade do pedido "
                f"({total_quantity}); refaça os fragmentos",
                fragment_sum=fragment_sum, total_quantity=total_quantity,
            )

    def _unique_order_number(self) -> str:
        known = {o.order_number for o in self.gateway.orders.list()}
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            number = generate_order_number()
            if number not in known:
                return number
        logger.warning("Não foi possível gerar número de pedido inédito, usando o último sorteado")
        return number

    def _resolve_customer(self, data: Dict[str, Any]):
        customer_id = data.get("customer_id")
        if customer_id:
            customer = self.gateway.customers.get(customer_id)
            if customer is None:
                raise ValidationError("Cliente não encontrado", customer_id=customer_id)
            return customer
        inline = data.get("customer")
        if isinstance(inline, dict) and inline.get("name"):
            return self.gateway.customers.create(inline)
        raise ValidationError("Selecione um cliente ou cadastre um novo")

    def _build_products(self, raw_products) -> List[Dict[str, Any]]:
        if not isinstance(raw_products, list) or not raw_products:
            raise ValidationError("Adicione pelo menos um produto ao pedido")
        items = []
        for raw in raw_products:
            if not isinstance(raw, dict):
                raise ValidationError("Item do pedido inválido")
            name = ""
            if raw.get("product_id") and not raw.get("product_name"):
                product = self.gateway.products.get(raw["product_id"])
                name = product.name if product else ""
            items.append(build_line_item(raw, name))
        return items

    def list_orders(self, user) -> List[Order]:
        ensure_permission(user, Module.ORDERS, Action.VIEW)
        return self.gateway.orders.list_for(user)

    def get_order(self, user, order_id: str) -> Order:
        ensure_permission(user, Module.ORDERS, Action.VIEW)
        return self._load(order_id, user)

    def create_order(self, user, data: Dict[str, Any]) -> Order:
        """
        Cria um pedido ``pending`` (ou ``awaiting_approval``, quando pedido).

        Raises:
            ValidationError: cliente, itens ou data de produção ausentes
        """
        ensure_permission(user, Module.ORDERS, Action.CREATE)
        scheduled = to_iso_string(data.get("scheduled_date"))
        if not scheduled:
            raise ValidationError("Defina a data de produção")
        customer = self._resolve_customer(data)
        products = self._build_products(data.get("products"))

        discount = data.get("discount_percentage")
        if discount in (None, "") and customer.default_discount is not None:
            discount = customer.default_discount
        status = OrderStatus.AWAITING_APPROVAL if data.get("status") == OrderStatus.AWAITING_APPROVAL.value \
            else OrderStatus.PENDING
        try:
            priority = OrderPriority(data.get("priority") or OrderPriority.MEDIUM.value)
        except ValueError:
            raise ValidationError("Prioridade inválida", priority=data.get("priority"))

        record = {
            "order_number": self._unique_order_number(),
            "customer_id": customer.id,
            "customer_name": customer.name,
            "customer_phone": customer.phone,
            "customer_email": customer.email,
            "seller_id": user.id,
            "seller_name": user.name,
            "status": status.value,
            "priority": priority.value,
            "scheduled_date": scheduled,
            "delivery_date": to_iso_string(data.get("delivery_date")),
            "production_progress": PROGRESS_BY_STATUS[status],
            "assigned_operator": data.get("assigned_operator"),
            "notes": data.get("notes") or "",
            "products": products,
            "is_fragmented": False,
            "fragments": [],
            **recalculate_totals(products, discount or 0),
        }
        order = self.gateway.orders.create(record)
        logger.info(f"Pedido {order.order_number} criado ({order.id})")
        self.activities.log(
            user, ActionType.CREATE, "order",
            f"Pedido {order.order_number} criado por {user.name}",
            entity_id=order.id, entity_name=order.order_number,
            metadata={"total_amount": order.total_amount},
        )
        return order

    def update_order(self, user, order_id: str, patch: Dict[str, Any]) -> Order:
        """Edição livre dos dados do pedido. Recalcula os totais quando itens ou desconto mudam."""
        ensure_permission(user, Module.ORDERS, Action.EDIT)
        blocked = [f for f in PROTECTED_FIELDS if f in patch]
        if blocked:
            raise ValidationError(f"Campos não editáveis: {', '.join(blocked)}", fields=blocked)
        order = self._load(order_id, user)

        changes = dict(patch)
        for date_field in ("scheduled_date", "delivery_date"):
            if date_field in changes:
                changes[date_field] = to_iso_string(changes[date_field])
        if "products" in changes or "discount_percentage" in changes:
            products = self._build_products(changes["products"]) if "products" in changes \
                else [p.to_record() for p in order.products]
            discount = changes.get("discount_percentage", order.discount_percentage)
            changes["products"] = products
            changes.update(recalculate_totals(products, discount))
            self._check_fragments(order, changes["total_quantity"])
        return self._save(order, changes)

    def update_line_item(self, user, order_id: str, line_id: str, quantity: Any = None,
                         unit_price: Any = None) -> Order:
        """Altera quantidade e/ou preço de um item e recalcula item e pedido."""
        ensure_permission(user, Module.ORDERS, Action.EDIT)
        order = self._load(order_id, user)
        products = [p.to_record() for p in order.products]
        target = next((p for p in products if p["id"] == line_id), None)
        if target is None:
            raise NotFoundError("Item do pedido não encontrado", line_id=line_id)
        if quantity is not None:
            target["quantity"] = quantity
        if unit_price is not None:
            target["unit_price"] = unit_price
        products = [build_line_item(p) if p is target else p for p in products]
        totals = recalculate_totals(products, order.discount_percentage)
        self._check_fragments(order, totals["total_quantity"])
        return self._save(order, {"products": products, **totals})

    def delete_order(self, user, order_id: str) -> bool:
        """Remoção incondicional, sem checar status."""
        ensure_permission(user, Module.ORDERS, Action.DELETE)
        order = self.gateway.orders.get_for(user, order_id)
        if order is None and not user.is_admin:
            raise NotFoundError("Pedido não encontrado", order_id=order_id)
        deleted = self.gateway.orders.delete(order_id)
        if deleted:
            number = order.order_number if order else order_id
            self.activities.log(
                user, ActionType.DELETE, "order", f"Pedido {number} removido",
                entity_id=order_id, entity_name=number,
            )
        return deleted

    def _save(self, order: Order, changes: Dict[str, Any]) -> Order:
        try:
            updated = self.gateway.orders.update(order.id, changes)
        except Exception as e:
            logger.error(f"Erro ao atualizar pedido {order.id}: {e}")
            raise OrderUpdateError("Não foi possível atualizar o pedido", order_id=order.id) from e
        if updated is None:
            raise NotFoundError("Pedido não encontrado", order_id=order.id)
        return updated
