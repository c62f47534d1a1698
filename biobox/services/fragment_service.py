"""
Fragmentação de pedidos em lotes de produção.

A soma das quantidades dos fragmentos precisa fechar com a quantidade
total do pedido. O status de cada fragmento é independente do status do
pedido: concluir todos os fragmentos não avança o pedido sozinho.
"""

from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Any, Optional, Iterable
import logging
import time

from biobox.exceptions import (
    FragmentAllocationError, InvalidTransitionError, NotFoundError, OrderUpdateError, ValidationError,
)
from biobox.models.entities import FragmentStatus, Order, OrderFragment, OrderStatus
from biobox.models.permissions import Action, Module
from biobox.services.activity_logger import ActionType
from biobox.services.auth_service import ensure_permission
from biobox.utils.normalize import now_iso, to_iso_string, to_money, to_number

logger = logging.getLogger(__name__)

FRAGMENT_TRANSITIONS = {
    FragmentStatus.PENDING: FragmentStatus.IN_PRODUCTION,
    FragmentStatus.IN_PRODUCTION: FragmentStatus.COMPLETED,
}


@dataclass
class FragmentSpec:
    """Pedido de um lote: quantidade, data de produção e, opcionalmente, valor"""
    quantity: int
    scheduled_date: str
    value: Optional[float] = None
    assigned_operator: Optional[str] = None

    @classmethod
    def from_record(cls, raw: Dict[str, Any]) -> "FragmentSpec":
        if not isinstance(raw, dict):
            raise ValidationError("Fragmento inválido")
        quantity = to_number(raw.get("quantity"))
        if int(quantity) != quantity:
            raise FragmentAllocationError("Quantidade do fragmento deve ser inteira", quantity=quantity)
        scheduled = to_iso_string(raw.get("scheduled_date", raw.get("scheduledDate")))
        if not scheduled:
            raise ValidationError("Fragmento sem data de produção")
        value = raw.get("value")
        return cls(
            quantity=int(quantity),
            scheduled_date=scheduled,
            value=None if value in (None, "") else to_number(value),
            assigned_operator=raw.get("assigned_operator") or None,
        )


def allocate(order: Order, specs: Iterable[FragmentSpec], stamp: Optional[int] = None) -> List[OrderFragment]:
    """
    Divide a quantidade do pedido em fragmentos numerados 1..N.

    Um pedido sem quantidade definida (0) adota a soma dos fragmentos.
    O valor ausente é proporcional à quantidade; quando todos são
    proporcionais, a soma dos valores fecha com o total do pedido.

    Raises:
        FragmentAllocationError: quantidade não positiva ou soma diferente do total
    """
    specs = list(specs)
    if not specs:
        return []
    for spec in specs:
        if spec.quantity <= 0:
            raise FragmentAllocationError("Quantidade do fragmento deve ser positiva", quantity=spec.quantity)

    fragment_sum = sum(s.quantity for s in specs)
    total = order.total_quantity or fragment_sum
    if fragment_sum != total:
        raise FragmentAllocationError(
            f"Soma dos fragmentos ({fragment_sum}) difere da quantidade do pedido ({total})",
            fragment_sum=fragment_sum, total_quantity=total,
        )

    stamp = stamp or int(time.time() * 1000)
    total_amount = to_money(order.total_amount)
    values = [
        (total_amount * spec.quantity / total).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if spec.value is None else to_money(spec.value)
        for spec in specs
    ]
    if all(spec.value is None for spec in specs):
        # centavos do arredondamento ficam no último fragmento
        values[-1] = total_amount - sum(values[:-1], Decimal("0.00"))

    fragments = []
    for number, (spec, value) in enumerate(zip(specs, values), start=1):
        fragments.append(OrderFragment(
            id=f"{order.id}-frag-{number}-{stamp}",
            order_id=order.id,
            fragment_number=number,
            quantity=spec.quantity,
            scheduled_date=spec.scheduled_date,
            status=FragmentStatus.PENDING,
            progress=0,
            value=float(value),
            assigned_operator=spec.assigned_operator,
        ))
    return fragments


def build_patch(order: Order, fragments: List[OrderFragment]) -> Dict[str, Any]:
    fragment_sum = sum(f.quantity for f in fragments)
    return {
        "fragments": [f.to_record() for f in fragments],
        "is_fragmented": len(fragments) > 0,
        "total_quantity": max(order.total_quantity, fragment_sum),
    }


def fragment_progress(order: Order) -> int:
    """Percentual concluído do pedido ponderado pelo valor dos fragmentos."""
    total_value = sum(f.value for f in order.fragments)
    if total_value <= 0:
        return 0
    return round(released_value(order) / total_value * 100)


def released_value(order: Order) -> float:
    """Valor já liberado (fragmentos concluídos)."""
    return float(sum((to_money(f.value) for f in order.fragments if f.status == FragmentStatus.COMPLETED),
                     Decimal("0.00")))


def all_fragments_completed(order: Order) -> bool:
    """Usado pelas telas para sugerir o avanço manual do pedido."""
    return bool(order.fragments) and all(f.status == FragmentStatus.COMPLETED for f in order.fragments)


class FragmentService:

    def __init__(self, gateway, activities):
        self.gateway = gateway
        self.activities = activities

    def _load(self, order_id: str, user=None) -> Order:
        order = self.gateway.orders.get_for(user, order_id)
        if order is None:
            raise NotFoundError("Pedido não encontrado", order_id=order_id)
        return order

    def _save(self, order: Order, patch: Dict[str, Any]) -> Order:
        try:
            updated = self.gateway.orders.update(order.id, patch)
        except Exception as e:
            logger.error(f"Erro ao salvar fragmentos do pedido {order.id}: {e}")
            raise OrderUpdateError("Não foi possível salvar os fragmentos", order_id=order.id) from e
        if updated is None:
            raise NotFoundError("Pedido não encontrado", order_id=order.id)
        return updated

    def save_fragments(self, user, order_id: str, raw_specs: List[Dict[str, Any]]) -> Order:
        """Substitui os fragmentos do pedido. Lista vazia desfaz a fragmentação."""
        ensure_permission(user, Module.ORDERS, Action.EDIT)
        if not isinstance(raw_specs, list):
            raise ValidationError("Informe a lista de fragmentos")
        order = self._load(order_id, user)
        if order.status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
            raise InvalidTransitionError(
                f"Pedido em status final: {order.status.value}", current=order.status.value,
            )
        fragments = allocate(order, [FragmentSpec.from_record(r) for r in raw_specs])
        updated = self._save(order, build_patch(order, fragments))
        logger.info(f"Pedido {order.order_number}: {len(fragments)} fragmento(s)")
        self.activities.log(
            user, ActionType.UPDATE, "order",
            f"Pedido {order.order_number} dividido em {len(fragments)} fragmento(s)",
            entity_id=order.id, entity_name=order.order_number,
        )
        return updated

    def _advance_fragment(self, user, order_id: str, fragment_id: str, target: FragmentStatus,
                          operator: Optional[str] = None) -> Order:
        ensure_permission(user, Module.ORDERS, Action.ADVANCE)
        order = self._load(order_id, user)
        fragments = list(order.fragments)
        index = next((i for i, f in enumerate(fragments) if f.id == fragment_id), None)
        if index is None:
            raise NotFoundError("Fragmento não encontrado", fragment_id=fragment_id)
        fragment = fragments[index]
        if FRAGMENT_TRANSITIONS.get(fragment.status) != target:
            raise InvalidTransitionError(
                f"Transição inválida do fragmento: {fragment.status.value} -> {target.value}",
                current=fragment.status.value, target=target.value,
            )

        changes: Dict[str, Any] = {"status": target}
        if target == FragmentStatus.IN_PRODUCTION:
            changes["started_at"] = now_iso()
        else:
            changes["progress"] = 100
            changes["completed_at"] = now_iso()
        if operator:
            changes["assigned_operator"] = operator
        fragments[index] = replace(fragment, **changes)

        updated = self._save(order, {"fragments": [f.to_record() for f in fragments]})
        if target == FragmentStatus.COMPLETED:
            self.activities.log(
                user, ActionType.COMPLETE, "production",
                f"Fragmento {fragment.fragment_number} do pedido {order.order_number} concluído",
                entity_id=order.id, entity_name=order.order_number,
                metadata={"fragment_id": fragment_id, "value": fragment.value},
            )
        return updated

    def start_fragment(self, user, order_id: str, fragment_id: str, operator: Optional[str] = None) -> Order:
        return self._advance_fragment(user, order_id, fragment_id, FragmentStatus.IN_PRODUCTION, operator)

    def complete_fragment(self, user, order_id: str, fragment_id: str) -> Order:
        return self._advance_fragment(user, order_id, fragment_id, FragmentStatus.COMPLETED)
